#################################################################################################
# Lapa
#
# A minimalist web micro-framework
#
# (C) 2025 Lapa contributors, MIT License
#
#################################################################################################
import functools
import http
import io
import json
import logging
import os
import shutil
import tempfile
import time
import uuid
from dataclasses import dataclass
from email.utils import formatdate
from http import cookies
from urllib.parse import parse_qs
from wsgiref.headers import Headers

from python_multipart import parse_form

from . import remote, validation
from .errors import BadRequest, Forbidden, NotFound
from .storage import sniff_mime

logger = logging.getLogger("lapa")

CONTENT_TYPES = {
    "json": "application/json",
    "text": "text/plain",
    "html": "text/html",
    "xml": "application/xml",
}

COOKIE_DEFAULTS = {
    "expire": 0,        # 0 = until the browser closes
    "path": "/",
    "domain": "",
    "secure": False,
    "httponly": True,
    "samesite": "Lax",
}

_MISSING = object()


def normalize_path(path):
    """Strip the trailing slash, except for the root path."""
    return path.rstrip("/") or "/"


def dump_json(data):
    return json.dumps(data, separators=(",", ":"), ensure_ascii=False, default=str)


def _flatten(parsed):
    # single values are returned as scalars, repeated keys as lists
    return {key: value[0] if len(value) == 1 else value for key, value in parsed.items()}


def _text(value):
    if isinstance(value, bytes):
        return value.decode("utf-8", "replace")
    return value


# ------------------------------
# WSGI-Adapted Request and Response Classes
# ------------------------------
@dataclass(frozen=True)
class UploadedFile:
    """A file received in a multipart body, spooled to a temporary file."""
    field: str
    filename: str
    size: int
    path: str


class Request:
    """
    Everything the client sent, read once from the WSGI environ.
    The body is read lazily and cached so the input stream is consumed only once.
    """
    def __init__(self, environ, temp_dir=None):
        self.environ = environ
        self.method = environ.get("REQUEST_METHOD", "GET").upper()
        # PATH_INFO carries the raw bytes decoded as latin-1
        raw_path = environ.get("PATH_INFO", "")
        try:
            raw_path = raw_path.encode("latin-1").decode("utf-8", "replace")
        except UnicodeEncodeError:
            pass  # already text
        self.path = normalize_path(raw_path or "/")
        self.host = environ.get("HTTP_HOST", "")
        self.scheme = environ.get("wsgi.url_scheme", "http")
        self.query_string = environ.get("QUERY_STRING", "")
        self.query = _flatten(parse_qs(self.query_string, keep_blank_values=True))
        self.temp_dir = temp_dir

        # Build headers from the WSGI environ (headers are in HTTP_ variables)
        self.headers = {}
        for key, value in environ.items():
            if key.startswith("HTTP_"):
                self.headers[key[5:].replace("_", "-").title()] = value
        if environ.get("CONTENT_TYPE"):
            self.headers["Content-Type"] = environ["CONTENT_TYPE"]
        if environ.get("CONTENT_LENGTH"):
            self.headers["Content-Length"] = environ["CONTENT_LENGTH"]

        jar = cookies.SimpleCookie()
        try:
            jar.load(environ.get("HTTP_COOKIE", ""))
        except cookies.CookieError:
            pass
        self.cookies = {name: morsel.value for name, morsel in jar.items()}

        self._body = None
        self._form = None
        self._files = None
        self._json = _MISSING

    @property
    def content_type(self):
        return self.headers.get("Content-Type", "").split(";")[0].strip().lower()

    @property
    def url(self):
        url = f"{self.scheme}://{self.host}{self.environ.get('SCRIPT_NAME', '')}{self.environ.get('PATH_INFO', '')}"
        if self.query_string:
            url += "?" + self.query_string
        return url

    def header(self, name, default=None):
        return self.headers.get(name.title(), default)

    @property
    def body(self):
        """The raw request body as bytes."""
        if self._body is None:
            try:
                length = int(self.environ.get("CONTENT_LENGTH") or 0)
            except (ValueError, TypeError):
                length = 0
            stream = self.environ.get("wsgi.input")
            self._body = stream.read(length) if stream is not None and length > 0 else b""
        return self._body

    @property
    def form(self):
        if self._form is None:
            self._parse_form()
        return self._form

    @property
    def files(self):
        if self._files is None:
            self._parse_form()
        return self._files

    def _parse_form(self):
        self._form, self._files = {}, {}
        if self.content_type == "application/x-www-form-urlencoded":
            self._form = _flatten(parse_qs(self.body.decode("utf-8", "replace"), keep_blank_values=True))
        elif self.content_type == "multipart/form-data":
            self._parse_multipart()

    def _parse_multipart(self):
        fields = {}

        def on_field(field):
            name = _text(field.field_name)
            value = _text(field.value) or ""
            if name in fields:
                existing = fields[name]
                fields[name] = (existing if isinstance(existing, list) else [existing]) + [value]
            else:
                fields[name] = value

        def on_file(part):
            source = part.file_object
            source.seek(0)
            with tempfile.NamedTemporaryFile(dir=self.temp_dir, prefix="upload-", delete=False) as fp:
                shutil.copyfileobj(source, fp)
                size = fp.tell()
            name = _text(part.field_name)
            self._files[name] = UploadedFile(name, _text(part.file_name) or "", size, fp.name)

        headers = {"Content-Type": self.headers["Content-Type"], "Content-Length": str(len(self.body))}
        try:
            parse_form(headers, io.BytesIO(self.body), on_field, on_file)
        except Exception as ex:
            raise BadRequest("Malformed multipart body") from ex
        self._form = fields

    def discard_files(self):
        """Remove spooled uploads that no handler moved out of temp storage."""
        for file in (self._files or {}).values():
            if os.path.exists(file.path):
                os.unlink(file.path)

    @property
    def json(self):
        """The body decoded as JSON, or None when the body is empty."""
        if self._json is _MISSING:
            if not self.body.strip():
                self._json = None
            else:
                try:
                    self._json = json.loads(self.body)
                except ValueError as ex:
                    raise BadRequest("Invalid JSON body") from ex
        return self._json


class Response:
    def __init__(self, body=b"", status_code=200, content_type=None):
        self.headers = Headers([])
        self._cookies = cookies.SimpleCookie()
        self.status_code = status_code  # Default status code
        self.body = b""
        self.written = False
        if body or content_type:
            self.set_body(body, content_type)

    def set_header(self, key, value):
        self.headers[key] = str(value)

    def remove_header(self, key):
        del self.headers[key]

    def set_body(self, body, content_type=None):
        if isinstance(body, str):
            body = body.encode("utf-8")
        self.body = body
        if content_type:
            self.set_header("Content-Type", content_type)
        self.written = True

    def set_cookie(self, key, value, path="/", expires=0, domain="", secure=False,
                   httponly=True, samesite="Lax", max_age=None):
        self._cookies[key] = value
        morsel = self._cookies[key]
        morsel["path"] = path
        if expires:
            morsel["expires"] = formatdate(expires, usegmt=True)
        if max_age is not None:
            morsel["max-age"] = max_age
        if domain:
            morsel["domain"] = domain
        if secure:
            morsel["secure"] = True
        if httponly:
            morsel["httponly"] = True
        if samesite:
            morsel["samesite"] = samesite

    def delete_cookie(self, key, path="/"):
        self.set_cookie(key, "", path=path, expires=time.time() - 3600, max_age=0)

    @property
    def cookies(self):
        return {name: morsel.value for name, morsel in self._cookies.items()}

    def redirect(self, location, status_code=302):
        """
        Set up a redirect response.

        Parameters:
          location (str): The URL to redirect to.
          status_code (int): The HTTP status code for the redirect (default is 302).
        """
        self.status_code = status_code
        self.set_header("Location", location)
        self.written = True

    @property
    def status(self):
        try:
            phrase = http.HTTPStatus(self.status_code).phrase
        except ValueError:
            phrase = "Unknown Status Code"
        return f"{self.status_code} {phrase}"

    def wsgi_headers(self):
        headers = list(self.headers.items())
        if "Content-Type" not in self.headers and self.body:
            headers.append(("Content-Type", CONTENT_TYPES["text"]))
        headers.append(("Content-Length", str(len(self.body))))
        for morsel in self._cookies.values():
            headers.append(("Set-Cookie", morsel.OutputString()))
        return headers


# ------------------------------
# Per-request context handed to every handler
# ------------------------------
class Context:
    """
    The single argument every route handler, middleware and helper receives.

    It gives access to the application (ctx.app), the inbound request, the
    route parameters and the response being built. Emitters (json, text,
    success, error, ...) write into ctx.response and return None, so a
    handler can simply `return ctx.success(data)`.
    """
    def __init__(self, app, request):
        self.app = app
        self.request = request
        self.response = Response()
        self.params = {}
        self._status = 200
        self._type = None
        self._cookies = dict(request.cookies)
        self._session = None

    # ------------------------------
    # Request data
    # ------------------------------
    def get(self, key=None, default=None):
        """Query string parameters."""
        if key is None:
            return dict(self.request.query)
        return self.request.query.get(key, default)

    def post(self, key=None, default=None):
        """Form (url-encoded or multipart) parameters."""
        if key is None:
            return dict(self.request.form)
        return self.request.form.get(key, default)

    def input(self, key=None, default=None):
        """Query, form and JSON object body merged; the body wins on conflicts."""
        data = dict(self.request.query)
        data.update(self.request.form)
        if self.request.content_type == "application/json" and isinstance(self.request.json, dict):
            data.update(self.request.json)
        if key is None:
            return data
        return data.get(key, default)

    def body(self, key=None, default=None):
        """The JSON body, or one key of it."""
        data = self.request.json
        if key is None:
            return data
        if not isinstance(data, dict):
            return default
        return data.get(key, default)

    def param(self, name, default=None):
        return self.params.get(name, default)

    def header(self, name=None, default=None):
        if name is None:
            return dict(self.request.headers)
        return self.request.header(name, default)

    def token(self):
        """The bearer token from the Authorization header, or None."""
        auth = self.request.header("Authorization") or ""
        if auth.startswith("Bearer "):
            return auth[7:]
        return None

    def config(self, key=None, default=None):
        return self.app.config(key, default)

    # ------------------------------
    # Cookies, sessions, flash
    # ------------------------------
    def cookie(self, key=None, value=None, **options):
        """
        cookie()                 -> all cookies
        cookie("name")           -> one value (None if missing)
        cookie("name", "v", ...) -> set; options: expire, path, domain, secure, httponly, samesite
        cookie("name", False)    -> delete
        cookie({"a": "1", "b": {"value": "2", "expire": ...}}) -> set many
        cookie("destroy")        -> delete every cookie
        """
        if key == "destroy":
            for name in list(self._cookies):
                self.response.delete_cookie(name)
            self._cookies.clear()
            return self
        if key is None:
            return dict(self._cookies)
        if isinstance(key, dict):
            for name, item in key.items():
                if isinstance(item, dict) and "value" in item:
                    opts = {k: v for k, v in item.items() if k != "value"}
                    self.cookie(name, item["value"], **opts)
                else:
                    self.cookie(name, item, **options)
            return self
        if value is None:
            return self._cookies.get(key)
        if value is False:
            self.response.delete_cookie(key)
            self._cookies.pop(key, None)
            return self

        opts = dict(COOKIE_DEFAULTS, **options)
        self.response.set_cookie(key, str(value), path=opts["path"], expires=opts["expire"],
                                 domain=opts["domain"], secure=opts["secure"],
                                 httponly=opts["httponly"], samesite=opts["samesite"])
        self._cookies[key] = str(value)
        return self

    def _session_data(self, create=False):
        """
        Retrieve an existing session (via a cookie) or, when create is set,
        start a new one.
        """
        if self._session is None:
            name = self.app.config("session.name")
            session_id = self._cookies.get(name)
            if session_id and session_id in self.app.sessions:
                self._session = self.app.sessions[session_id]
                self.app.touch_session(session_id)
            elif create:
                session_id = uuid.uuid4().hex
                self._session = self.app.sessions[session_id] = {}
                self.app.touch_session(session_id)
                self.response.set_cookie(name, session_id)
                self._cookies[name] = session_id
        return self._session

    def session(self, key=None, value=None):
        """Same conventions as cookie(): read, set, False deletes, "destroy" ends the session."""
        if key == "destroy":
            name = self.app.config("session.name")
            session_id = self._cookies.pop(name, None)
            self.app.sessions.pop(session_id, None)
            self.app.session_seen.pop(session_id, None)
            self.response.delete_cookie(name)
            self._session = None
            return self
        if key is None:
            return dict(self._session_data() or {})
        if isinstance(key, dict):
            self._session_data(create=True).update(key)
            return self
        if value is None:
            return (self._session_data() or {}).get(key)
        if value is False:
            (self._session_data() or {}).pop(key, None)
            return self
        self._session_data(create=True)[key] = value
        return self

    def flash(self, key, value=None):
        """flash(key, value) stores a message; flash(key) returns it once and deletes it."""
        if value is None:
            value = self.session(key)
            self.session(key, False)
            return value
        return self.session(key, value)

    # ------------------------------
    # Capabilities
    # ------------------------------
    def helper(self, name):
        """Look up a registered helper and bind this context as its first argument."""
        try:
            fn = self.app.helpers[name]
        except KeyError:
            raise LookupError(f"No helper named '{name}' is registered") from None
        return functools.partial(fn, self)

    def validate(self, rules, data=None):
        if data is None:
            data = self.input()
        return validation.validate(rules, data)

    def protect(self, check=None):
        """Raise Forbidden unless check(ctx) is truthy (default: a "user" in the session)."""
        if check is None:
            authorized = self.session("user") is not None
        else:
            authorized = check(self)
        if not authorized:
            raise Forbidden()
        return True

    def upload(self, field, path=None):
        """
        Store an uploaded file and return its generated name, or None when the
        field is missing, too large or of a type that is not allowed.
        """
        file = self.request.files.get(field)
        if file is None:
            return None
        settings = self.app.config("upload")
        if file.size > settings["max_size"]:
            logger.error("Upload rejected: file too large (%s bytes)", file.size)
            os.unlink(file.path)
            return None

        mime = sniff_mime(file.path)
        allowed = settings.get("allowed_types")
        if allowed and mime not in allowed:
            logger.error("Upload rejected: type %s not allowed", mime)
            os.unlink(file.path)
            return None

        extension = os.path.splitext(file.filename)[1].lower()
        filename = uuid.uuid4().hex + extension
        directory = path or self.app.storage("uploads")
        os.makedirs(directory, exist_ok=True)
        target = os.path.join(directory, filename)
        shutil.move(file.path, target)
        os.chmod(target, self.app.store.permissions["public"])
        logger.info("File uploaded: %s", filename)
        return filename

    def download(self, file, name=None):
        if os.path.isabs(file):
            path = file
        else:
            # relative names must stay inside public storage
            public = os.path.realpath(self.app.storage("public"))
            path = os.path.realpath(os.path.join(public, file))
            if os.path.commonpath([public, path]) != public:
                path = None
        if not path or not os.path.isfile(path):
            logger.error("File not found: %s", file)
            raise NotFound("File not found")

        name = name or os.path.basename(path)
        with open(path, "rb") as fp:
            data = fp.read()
        self.response.status_code = self._status
        self.response.set_header("Content-Disposition", f'attachment; filename="{name}"')
        self.response.set_header("Cache-Control", "no-cache")
        self.response.set_body(data, "application/octet-stream")
        self._status = 200
        return None

    def import_url(self, url, **options):
        options.setdefault("timeout", self.app.config("http.timeout"))
        return remote.import_url(url, client=self.app.http_client, **options)

    # ------------------------------
    # Response emitters
    # ------------------------------
    def status(self, code):
        self._status = code
        return self

    def set_header(self, key, value):
        self.response.set_header(key, value)
        return self

    def remove_header(self, key):
        self.response.remove_header(key)
        return self

    def type(self, kind):
        """Choose the content type (json, text, html, xml or a full MIME type)."""
        self._type = kind
        self.response.set_header("Content-Type", CONTENT_TYPES.get(kind, kind))
        return self

    def cors(self, origins="*", methods="GET, POST, OPTIONS", headers=""):
        self.response.set_header("Access-Control-Allow-Origin", origins)
        self.response.set_header("Access-Control-Allow-Methods", methods)
        self.response.set_header("Access-Control-Allow-Headers", headers)
        return self

    def respond(self, data, type="json", code=None):
        """
        Emit data as the response body.

        json data that is already a string is sent verbatim (assumed
        pre-encoded); anything else is serialised. Other types are sent as is.
        The pending status resets to 200 afterwards.
        """
        if code is not None:
            self._status = code
        if type == "json" and not isinstance(data, (str, bytes)):
            data = dump_json(data)
        elif data is None:
            data = b""
        elif not isinstance(data, (str, bytes)):
            data = str(data)
        self.response.status_code = self._status
        self.response.set_body(data, CONTENT_TYPES.get(type, type))
        self._status = 200
        return None

    def json(self, data, code=None):
        return self.respond(data, "json", code)

    def text(self, content, code=None):
        return self.respond(content, "text", code)

    def html(self, content, code=None):
        return self.respond(content, "html", code)

    def xml(self, content, code=None):
        return self.respond(content, "xml", code)

    def view(self, template, data=None, code=None):
        """Render a Jinja2 template from the views storage directory as HTML."""
        content = self.app.jinja_env.get_template(template).render(**(data or {}))
        return self.respond(content, "html", code)

    def redirect(self, url, code=302):
        self.response.redirect(url, code)
        self._status = 200
        return None

    def success(self, data=None, message="Success"):
        return self.json({"error": False, "message": message, "data": data})

    def error(self, message, code=400, data=None):
        return self.json({"error": True, "message": message, "data": data}, code)
