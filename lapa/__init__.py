# Lapa - a minimalist web micro-framework
# (C) 2025 Lapa contributors, MIT License
# Routes are registered as "METHOD /path/:param" strings, grouped by path
# prefix and virtual host, and dispatched first-match-wins over WSGI.
from .core import Lapa, Registrar, Route, Scope, compile_route, create_app
from .errors import (BadRequest, ConfigurationError, Forbidden, HttpError, LapaError,
                     NotFound, Unauthorized, ValidationError)
from .http import Context, Request, Response, UploadedFile

__version__ = "1.0.0"
