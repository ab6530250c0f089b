#################################################################################################
# Lapa
#
# A minimalist web micro-framework
#
# (C) 2025 Lapa contributors, MIT License
#
#################################################################################################
"""
Lapa exception hierarchy.

Bootstrap problems raise ConfigurationError. Anything a handler wants to report
to the caller (validation failure, forbidden access, ...) raises an HttpError;
the dispatcher turns it into a JSON envelope with the matching status code.
"""


class LapaError(Exception):
    """Base for all lapa-specific errors."""


class ConfigurationError(LapaError):
    """Raised when the application cannot be bootstrapped."""


class HttpError(LapaError):
    """An application-level error that maps directly to an HTTP status code."""
    code = 500
    default_message = "Internal server error"

    def __init__(self, message=None, code=None, data=None, headers=None):
        self.message = message or self.default_message
        if code is not None:
            self.code = code
        self.data = data
        self.headers = dict(headers or {})
        super().__init__(self.message)

    def envelope(self):
        return {"error": True, "message": self.message, "data": self.data}

    def __str__(self):
        return f"{self.code}: {self.message}"


class BadRequest(HttpError):
    code = 400
    default_message = "Bad request"


class Unauthorized(HttpError):
    code = 401
    default_message = "Unauthorized"


class Forbidden(HttpError):
    code = 403
    default_message = "Access denied"


class NotFound(HttpError):
    code = 404
    default_message = "Route not found"


class ValidationError(HttpError):
    """422 carrying per-field error messages."""
    code = 422
    default_message = "Validation failed"

    def __init__(self, errors, message=None):
        self.errors = errors
        super().__init__(message)

    def envelope(self):
        body = super().envelope()
        body["errors"] = self.errors
        return body
