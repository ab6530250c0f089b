# you've got to have tests!
#
import json
import logging
import shutil
import tempfile
import unittest
from io import BytesIO

from lapa import Lapa
from lapa.log import DailyFileHandler


def make_environ(path, method="GET", query_string="", headers=None, body=b"", scheme="http"):
    """Build a minimal WSGI environ dictionary."""
    if isinstance(body, str):
        body = body.encode("utf-8")
    environ = {
        'REQUEST_METHOD': method,
        'PATH_INFO': path,
        'QUERY_STRING': query_string,
        'SCRIPT_NAME': '',
        'CONTENT_LENGTH': str(len(body)),
        'wsgi.input': BytesIO(body),
        'wsgi.errors': BytesIO(),
        'wsgi.version': (1, 0),
        'wsgi.run_once': False,
        'wsgi.url_scheme': scheme,
        'wsgi.multithread': False,
        'wsgi.multiprocess': False,
    }

    # Add any extra headers.
    for key, value in (headers or {}).items():
        name = key.upper().replace("-", "_")
        if name in ("CONTENT_TYPE", "CONTENT_LENGTH"):
            environ[name] = value
        else:
            environ['HTTP_' + name] = value
    return environ


def simulate_request(app, path, method="GET", query_string="", headers=None, body=b"", scheme="http"):
    """
    Simulate a WSGI request to the Lapa app.

    Returns a tuple of (status, response_headers as dict, response_body as string).
    """
    environ = make_environ(path, method, query_string, headers, body, scheme)

    # A dictionary to capture status and headers set by start_response.
    captured = {}
    def start_response(status, response_headers, exc_info=None):
        captured['status'] = status
        captured['headers'] = response_headers

    # Call the WSGI application.
    result = app(environ, start_response)
    response_body = b"".join(result).decode('utf-8')
    return captured.get('status'), dict(captured.get('headers')), response_body


class LapaTestCase(unittest.TestCase):
    """Creates an app rooted in a throw-away directory for every test."""
    config = {}

    def setUp(self):
        self.root = tempfile.mkdtemp(prefix="lapa-test-")
        self.app = self.make_app()

    def make_app(self, **config):
        settings = dict(self.config)
        settings.update(config)
        return Lapa(config=settings, root=self.root)

    def tearDown(self):
        logger = logging.getLogger("lapa")
        for handler in list(logger.handlers):
            if isinstance(handler, DailyFileHandler):
                logger.removeHandler(handler)
                handler.close()
        shutil.rmtree(self.root, ignore_errors=True)

    def request(self, path, **kwargs):
        return simulate_request(self.app, path, **kwargs)

    def request_json(self, path, **kwargs):
        status, headers, body = simulate_request(self.app, path, **kwargs)
        return status, headers, json.loads(body)

    def handle(self, path, **kwargs):
        """Dispatch without the WSGI layer and return the Response object."""
        return self.app.handle_request(make_environ(path, **kwargs))
