#################################################################################################
# Lapa
#
# A minimalist web micro-framework
#
# (C) 2025 Lapa contributors, MIT License
#
#################################################################################################
"""
Command line interface.

    lapa new myproject      create a project skeleton
    lapa serve              run ./app.py's `app` with wsgiref or waitress
"""
import argparse
import os
import runpy
import sys

from .core import ErrorApp, serve
from .errors import ConfigurationError

DIRECTORIES = (
    "routes",
    "plugins",
    "resources/views",
    "storage/app/public",
    "storage/app/private",
    "storage/logs",
    "storage/cache",
    "storage/temp",
    "storage/uploads",
)

FILES = {
    "app.py": '''import os

from lapa import create_app

app = create_app(root=os.path.dirname(os.path.abspath(__file__)))

if __name__ == "__main__":
    app.run()
''',
    "config.py": '''CONFIG = {
    "debug": True,
    "timezone": "UTC",
    "cache": {"ttl": 3600},
}
''',
    "routes/web.py": '''app.on("GET /", lambda ctx: {"message": "Welcome to Lapa!"})
''',
}


def create_project(path):
    """Create the project skeleton under path; existing files are left alone."""
    created = []
    for directory in DIRECTORIES:
        os.makedirs(os.path.join(path, directory), mode=0o755, exist_ok=True)
    for name, content in FILES.items():
        target = os.path.join(path, name)
        if os.path.exists(target):
            continue
        with open(target, "w", encoding="utf-8") as fp:
            fp.write(content)
        created.append(name)
    return created


def load_app(path):
    try:
        namespace = runpy.run_path(path)
    except ConfigurationError as ex:
        return ErrorApp(ex)
    app = namespace.get("app")
    if app is None:
        raise SystemExit(f"{path} does not define `app`")
    return app


def main(argv=None):
    parser = argparse.ArgumentParser(prog="lapa", description="Lapa web micro-framework")
    commands = parser.add_subparsers(dest="command", required=True)

    new = commands.add_parser("new", help="create a new project")
    new.add_argument("path")

    run = commands.add_parser("serve", help="serve ./app.py")
    run.add_argument("--app", default="app.py")
    run.add_argument("--host", default="127.0.0.1")
    run.add_argument("--port", type=int, default=5000)
    run.add_argument("--server", default="wsgiref", choices=["wsgiref", "waitress"])

    args = parser.parse_args(argv)
    if args.command == "new":
        created = create_project(args.path)
        for name in created:
            print(f"created {os.path.join(args.path, name)}")
        return 0

    app = load_app(args.app)
    serve(app, args.host, args.port, args.server)
    return 0


if __name__ == "__main__":
    sys.exit(main())
