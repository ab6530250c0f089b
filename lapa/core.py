#################################################################################################
# Lapa
#
# A minimalist web micro-framework
#
# routes are "METHOD /path/:param" strings, matched first-registered-first-served
#
# (C) 2025 Lapa contributors, MIT License
#
#################################################################################################
import datetime
import json
import logging
import os
import re
import time
import traceback
import zoneinfo
from dataclasses import dataclass, field, replace

from jinja2 import Environment, FileSystemLoader, select_autoescape

from . import loader
from .cache import FileCache
from .config import load_config
from .database import Database
from .errors import ConfigurationError, HttpError, NotFound
from .http import Context, Request, Response, dump_json
from .log import setup_logging
from .mail import Mailer
from .pages import render_error_page
from .storage import Storage

logger = logging.getLogger("lapa")

PARAM_RE = re.compile(r":([a-zA-Z_][a-zA-Z0-9_]*)")


# ------------------------------
# Helpers for Compiling Dynamic Routes
# ------------------------------
def compile_route(pattern):
    """
    Convert a route pattern into an anchored regular expression.

      /users/:id          => captures one segment, returned as ["id"]
      /posts/:year/:slug  => captures two segments, ["year", "slug"]

    Returns (compiled, names); the names line up with match.groups().
    Anything that is not a placeholder is used as regex text unchanged, so a
    malformed pattern raises re.error here, at dispatch time.
    """
    names = PARAM_RE.findall(pattern)
    regex = PARAM_RE.sub("([^/]+)", pattern)
    return re.compile("^" + regex + "$"), names


def join_path(prefix, path):
    """join_path("/api/", "/users/") ==> "/api/users"; the root stays "/"."""
    if prefix:
        full = prefix.rstrip("/") + "/" + path.lstrip("/")
    else:
        full = path
    return "/" + full.strip("/")


def nest_prefix(current, prefix):
    nested = current.rstrip("/") + "/" + prefix.strip("/")
    return nested.rstrip("/") or "/"


@dataclass(frozen=True)
class Route:
    method: str
    pattern: str
    handler: object
    vhost: str = ""
    middleware: tuple = ()


@dataclass(frozen=True)
class Scope:
    """
    The registration context: active group prefix, virtual host and
    middleware. Each nested group/vhost gets a new Scope derived from its
    parent, so leaving a callback never needs to restore anything.
    """
    prefix: str = ""
    vhost: str = ""
    middleware: tuple = field(default_factory=tuple)

    def nested(self, prefix):
        return replace(self, prefix=nest_prefix(self.prefix, prefix))

    def on_host(self, host):
        return replace(self, vhost=host)

    def with_middleware(self, middleware):
        return replace(self, middleware=self.middleware + (middleware,))


# ------------------------------
# Route registration
# ------------------------------
class Registrar:
    """
    Registers routes into an application under one Scope.

    The application itself is the root registrar; group() and vhost() hand
    their callback a new Registrar for the nested scope.
    """
    def __init__(self, app, scope=None):
        self.app = app
        self.scope = scope or Scope()

    def on(self, route, handler):
        """
        Register handler for a route string such as "GET /users/:id" or
        "GET|POST /contact". The handler is called as handler(ctx).
        """
        method_part, _, path = route.strip().partition(" ")
        methods = [m.strip().upper() for m in method_part.split("|") if m.strip()]
        full_path = join_path(self.scope.prefix, path.strip())

        for method in methods:
            self.app.routes.setdefault(method, {})[full_path] = Route(
                method, full_path, handler, self.scope.vhost, self.scope.middleware)

        if self.app.debug:
            logger.debug("Route registered: %s %s (group=%r, vhost=%r)",
                         "|".join(methods), full_path, self.scope.prefix, self.scope.vhost)
        return self

    def any(self, handler):
        """Catch-all handler, used when no route matches before any not-found handler."""
        self.app.any_handler = handler
        return self

    def group(self, prefix, callback):
        callback(Registrar(self.app, self.scope.nested(prefix)))
        return self

    def vhost(self, host, callback):
        callback(Registrar(self.app, self.scope.on_host(host)))
        return self

    def not_found(self, handler):
        """Register the not-found handler for the current group (or "/" at the top)."""
        self.app.not_found_handlers[self.scope.prefix or "/"] = handler
        return self

    def use(self, middleware):
        """
        Apply middleware (a callable or a registered name) to routes registered
        after this call in the current scope. Middleware is called as
        middleware(ctx, next) and returns next() to continue.
        """
        if isinstance(middleware, str):
            middleware = self.app.middleware(middleware)
        self.scope = self.scope.with_middleware(middleware)
        return self


# ------------------------------
# Lapa Web Framework Class
# ------------------------------
class Lapa(Registrar):
    def __init__(self, config=None, root=None, config_file=None, load_routes=True):
        super().__init__(self)
        self.root = os.path.abspath(root or os.getcwd())
        self.routes = {}
        self.not_found_handlers = {}
        self.any_handler = None
        self.helpers = {}
        self.middlewares = {}
        self.sessions = {}
        self.session_seen = {}
        self.http_client = None

        self._config = load_config(config, config_file, self.root)
        self.debug = bool(self._config.get("debug"))

        storage = self._config["storage"]
        self.store = Storage(self.root, storage["paths"], storage["permissions"])
        self.store.ensure()

        self.tz = self._timezone(self._config["timezone"])
        level = "debug" if self.debug else self._config["log"]["level"]
        self.logger = setup_logging(self.store.path("logs"), level, self.tz)

        self.file_cache = FileCache(self.store.path("cache"), self._config["cache"]["ttl"])
        self.jinja_env = Environment(loader=FileSystemLoader(self.store.path("views")),
                                     autoescape=select_autoescape())

        self._db = Database(self._config["db"], self.store, self.debug) if self._config.get("db") else None
        self._mailer = Mailer(self._config["mail"]) if self._config.get("mail") else None

        if load_routes:
            self.load_plugins()
            self.load_routes()

    @staticmethod
    def _timezone(name):
        if name in ("UTC", "utc"):
            return datetime.timezone.utc
        try:
            return zoneinfo.ZoneInfo(name)
        except (zoneinfo.ZoneInfoNotFoundError, ValueError) as ex:
            raise ConfigurationError(f"Invalid timezone: {name}") from ex

    # ------------------------------
    # Configuration and services
    # ------------------------------
    def config(self, key=None, default=None):
        """config() -> everything; config("cache.ttl") -> one (dotted) value."""
        if key is None:
            return self._config
        value = self._config
        for part in key.split("."):
            if not isinstance(value, dict) or part not in value:
                return default
            value = value[part]
        return value

    def storage(self, kind="app"):
        return self.store.path(kind)

    def clear(self, kind="cache"):
        self.store.clear(kind)
        return self

    def cleanup(self, max_age=86400):
        self.store.cleanup(max_age)
        return self

    def touch_session(self, session_id):
        self.session_seen[session_id] = time.time()

    def prune_sessions(self):
        """Drop sessions idle for longer than session.lifetime seconds."""
        lifetime = self._config["session"].get("lifetime")
        if not lifetime:
            return 0
        cutoff = time.time() - lifetime
        expired = [sid for sid, seen in self.session_seen.items() if seen < cutoff]
        for session_id in expired:
            self.session_seen.pop(session_id, None)
            self.sessions.pop(session_id, None)
        return len(expired)

    def move(self, source, target):
        return self.store.move(source, target)

    def cache(self, key, value=None, ttl=None):
        """cache(key) reads (None when missing or expired); cache(key, value, ttl) writes."""
        if value is None:
            return self.file_cache.get(key)
        self.file_cache.set(key, value, ttl)
        return self

    def log(self, message, level="info"):
        if isinstance(message, (dict, list)):
            message = json.dumps(message)
        levelno = logging.getLevelName(level.upper())
        if not isinstance(levelno, int):
            levelno = logging.INFO
        self.logger.log(levelno, message)
        return self

    def db(self):
        return self._db

    def mail(self):
        return self._mailer

    # ------------------------------
    # Capability registries
    # ------------------------------
    def register_helper(self, name, fn):
        """Register fn(ctx, *args) so handlers can call ctx.helper(name)(*args)."""
        if name in self.helpers:
            logger.warning("Duplicate helper ignored: %s", name)
            return self
        self.helpers[name] = fn
        return self

    def register_middleware(self, name, fn):
        self.middlewares[name] = fn
        return self

    def middleware(self, name):
        try:
            return self.middlewares[name]
        except KeyError:
            raise LookupError(f"No middleware named '{name}' is registered") from None

    def load_routes(self, path=None):
        loader.load_routes(self, path or os.path.join(self.root, "routes"))
        return self

    def load_plugins(self, path=None):
        loader.load_plugins(self, path or os.path.join(self.root, "plugins"))
        return self

    def dump_routes(self):
        """Log and return the route table as "METHOD pattern [vhost]" lines."""
        lines = []
        for method, entries in self.routes.items():
            for pattern, route in entries.items():
                line = f"{method} {pattern}" + (f" [{route.vhost}]" if route.vhost else "")
                lines.append(line)
                logger.debug("Route: %s", line)
        return lines

    # ------------------------------
    # Request dispatch
    # ------------------------------
    def handle_request(self, environ):
        """
        Dispatch one WSGI request and return the Response.
        Nothing raised by a handler escapes: application errors become their
        JSON envelope, anything else a 500.
        """
        request = None
        self.prune_sessions()
        try:
            request = Request(environ, temp_dir=self.store.path("temp"))
            if self._config.get("secure") and request.scheme != "https":
                response = Response(status_code=301)
                response.set_header("Location", "https://" + request.url.split("://", 1)[1])
                return response
            response = self._dispatch(Context(self, request))
        except HttpError as ex:
            response = self._error_response(ex)
        except Exception as ex:
            response = self._server_error(ex)
        finally:
            if request is not None:
                request.discard_files()
        self._apply_cors(response)
        return response

    def _dispatch(self, ctx):
        request = ctx.request
        for route in list(self.routes.get(request.method, {}).values()):
            if route.vhost and route.vhost != request.host:
                continue
            regex, names = compile_route(route.pattern)
            match = regex.fullmatch(request.path)
            if match is None:
                continue
            ctx.params = dict(zip(names, match.groups()))
            return self._finalize(ctx, self._call(route.handler, route.middleware, ctx))

        if self.any_handler is not None:
            return self._finalize(ctx, self.any_handler(ctx))
        if request.method == "OPTIONS" and self._config["cors"]["enabled"]:
            return Response(status_code=204)
        return self._not_found(ctx)

    def _not_found(self, ctx):
        """Invoke the not-found handler registered for the longest matching group prefix."""
        handler = None
        longest = 0
        for prefix, candidate in self.not_found_handlers.items():
            if ctx.request.path.startswith(prefix) and len(prefix) > longest:
                longest = len(prefix)
                handler = candidate
        if handler is None:
            raise NotFound()
        ctx.status(404)
        return self._finalize(ctx, handler(ctx))

    def _call(self, handler, middleware, ctx):
        def call(index):
            if index == len(middleware):
                return handler(ctx)
            return middleware[index](ctx, lambda: call(index + 1))
        return call(0)

    def _finalize(self, ctx, result):
        """Turn a handler's return value into the response."""
        if isinstance(result, Response):
            return result
        status = None
        if isinstance(result, tuple):
            if len(result) == 1:
                result = result[0]
            elif len(result) == 2:
                result, status = result
            else:
                raise TypeError(f"Handlers return a body or (body, status), not a {len(result)}-tuple")

        if result is None or result is ctx:
            pass  # the handler already wrote the response
        elif isinstance(result, (dict, list)):
            ctx.json(result, status)
        else:
            kind = ctx._type or ctx.response.headers.get("Content-Type") or "text"
            ctx.respond(result, kind, status)

        response = ctx.response
        if not response.written:
            response.status_code = status or ctx._status
        elif status is not None:
            response.status_code = status
        return response

    def _error_response(self, ex):
        response = Response(dump_json(ex.envelope()), ex.code, "application/json")
        for key, value in ex.headers.items():
            response.set_header(key, value)
        return response

    def _server_error(self, ex):
        logger.error("Request handling failed: %s", ex, exc_info=ex)
        envelope = {"error": True, "message": "Internal server error", "data": None}
        if self.debug:
            envelope["message"] = str(ex) or type(ex).__name__
            envelope["data"] = {
                "type": type(ex).__name__,
                "trace": "".join(traceback.format_exception(type(ex), ex, ex.__traceback__)),
            }
        return Response(dump_json(envelope), 500, "application/json")

    def _apply_cors(self, response):
        cors = self._config["cors"]
        if not cors.get("enabled") or "Access-Control-Allow-Origin" in response.headers:
            return
        origins = cors.get("origins") or "*"
        if isinstance(origins, (list, tuple)):
            origins = ", ".join(origins)
        response.set_header("Access-Control-Allow-Origin", origins)
        response.set_header("Access-Control-Allow-Methods", cors.get("methods", ""))
        if cors.get("headers"):
            response.set_header("Access-Control-Allow-Headers", cors["headers"])
        if cors.get("credentials"):
            response.set_header("Access-Control-Allow-Credentials", "true")

    # ------------------------------
    # WSGI Application Interface
    # ------------------------------
    def wsgi_app(self, environ, start_response):
        response = self.handle_request(environ)
        start_response(response.status, response.wsgi_headers())
        if environ.get("REQUEST_METHOD", "GET").upper() == "HEAD":
            return [b""]
        return [response.body]

    def __call__(self, environ, start_response):
        return self.wsgi_app(environ, start_response)

    def run(self, host="127.0.0.1", port=5000, server="wsgiref"):
        """
        Run the application using the specified server.

        Parameters:
          host    - hostname to bind (default '127.0.0.1')
          port    - port number to bind (default 5000)
          server  - one of 'wsgiref', 'waitress'
        """
        serve(self.wsgi_app, host, port, server)


def serve(wsgi_app, host="127.0.0.1", port=5000, server="wsgiref"):
    server = server.lower()
    if server == "wsgiref":
        from wsgiref.simple_server import make_server
        print(f"Serving on http://{host}:{port} with wsgiref")
        httpd = make_server(host, port, wsgi_app)
        httpd.serve_forever()

    elif server == "waitress":
        from waitress import serve as waitress_serve
        print(f"Serving on http://{host}:{port} with waitress")
        waitress_serve(wsgi_app, host=host, port=port)

    else:
        raise ValueError(f"Unknown server type: {server}")


class ErrorApp:
    """
    WSGI application answering every request with the full-page error for a
    failed bootstrap.
    """
    def __init__(self, exc, debug=False):
        self.page = render_error_page(exc, debug=debug).encode("utf-8")

    def __call__(self, environ, start_response):
        start_response("500 Internal Server Error", [
            ("Content-Type", "text/html; charset=utf-8"),
            ("Content-Length", str(len(self.page))),
        ])
        return [self.page]

    def run(self, host="127.0.0.1", port=5000, server="wsgiref"):
        serve(self, host, port, server)


def create_app(*args, debug=False, **kwargs):
    """
    Build a Lapa application, or an ErrorApp rendering the bootstrap failure
    when configuration or storage setup fails.
    """
    try:
        return Lapa(*args, **kwargs)
    except ConfigurationError as ex:
        logger.error("Initialization failed: %s", ex)
        return ErrorApp(ex, debug=debug)
