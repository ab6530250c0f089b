#################################################################################################
# Lapa
#
# A minimalist web micro-framework
#
# (C) 2025 Lapa contributors, MIT License
#
#################################################################################################
"""Full-page HTML error renderer used for bootstrap failures."""
import traceback

from jinja2 import Environment, DictLoader, select_autoescape

STYLES = """
body { font-family: -apple-system, system-ui, "Segoe UI", Roboto, sans-serif;
       line-height: 1.6; margin: 0; padding: 20px; background: #f8f9fa; color: #333; }
.container { max-width: 1200px; margin: 0 auto; background: white; border-radius: 8px;
             box-shadow: 0 2px 4px rgba(0,0,0,0.1); overflow: hidden; }
.header { background: #dc3545; color: white; padding: 2rem; }
.content { padding: 2rem; }
.error-title { font-size: 24px; font-weight: 500; margin: 0; }
.error-message { font-size: 16px; margin: 1rem 0; color: #666; }
.stack-trace { font-family: monospace; font-size: 13px; white-space: pre-wrap; overflow-x: auto;
               background: #f1f3f5; padding: 1rem; border-radius: 4px; color: #666; }
"""

TEMPLATES = {
    "debug.html": """<!DOCTYPE html>
<html>
<head><title>{{ title }}</title><style>{{ styles|safe }}</style></head>
<body>
<div class="container">
  <div class="header"><h1 class="error-title">{{ code }} {{ title }}</h1></div>
  <div class="content">
    <div class="error-message">{{ message }}</div>
    <div class="stack-trace">{{ trace }}</div>
  </div>
</div>
</body>
</html>""",
    "production.html": """<!DOCTYPE html>
<html>
<head><title>Server Error</title><style>{{ styles|safe }}</style></head>
<body>
<div class="container">
  <div class="header"><h1 class="error-title">Server Error</h1></div>
  <div class="content">
    <div class="error-message">{{ message }}</div>
  </div>
</div>
</body>
</html>""",
}

_env = Environment(loader=DictLoader(TEMPLATES), autoescape=select_autoescape(["html"]))


def render_error_page(exc, debug=False, code=500):
    """
    Render the error page for exc. Debug mode shows the exception type,
    message and traceback; production mode shows a generic message.
    """
    if debug:
        trace = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
        return _env.get_template("debug.html").render(
            styles=STYLES, code=code, title=type(exc).__name__, message=str(exc), trace=trace)
    return _env.get_template("production.html").render(
        styles=STYLES, message="An unexpected error occurred. Please try again later.")
