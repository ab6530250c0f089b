#################################################################################################
# Lapa
#
# A minimalist web micro-framework
#
# (C) 2025 Lapa contributors, MIT License
#
#################################################################################################
"""
Rule-string validation.

Rules are written per field as a pipe separated string::

    validate({"name": "required|min:3", "email": "required|email", "age": "numeric"}, data)

Supported rules: required, min:n, max:n, email, numeric, integer, alpha,
alpha_num, in:a,b,c, same:other_field, regex:pattern.
min and max compare the numeric value when the field also carries numeric or
integer, and the string length otherwise.
"""
import re

from .errors import ConfigurationError, ValidationError

_EMAIL_RE = re.compile(r"^[a-zA-Z0-9._%+\-]+@[a-zA-Z0-9.\-]+\.[a-zA-Z]{2,}$")
_NUMERIC_RE = re.compile(r"^[+-]?(\d+(\.\d*)?|\.\d+)([eE][+-]?\d+)?$")
_INTEGER_RE = re.compile(r"^[+-]?\d+$")


def parse_rules(rules):
    """Split "required|min:3" into [("required", None), ("min", "3")]."""
    if isinstance(rules, (list, tuple)):
        parts = rules
    else:
        parts = rules.split("|")
    parsed = []
    for part in parts:
        part = part.strip()
        if not part:
            continue
        name, _, arg = part.partition(":")
        parsed.append((name, arg if _ else None))
    return parsed


def _is_empty(value):
    return value is None or (isinstance(value, str) and not value.strip()) or value in ([], {})


def _size(value, numeric):
    if numeric:
        return float(value)
    if isinstance(value, (str, list, tuple, dict)):
        return len(value)
    return float(value)


def check_rule(name, arg, value, data, numeric):
    """Return an error message for one rule, or None if the value passes."""
    if name == "required":
        return "This field is required" if _is_empty(value) else None

    text = str(value)
    if name in ("min", "max") and numeric and not _NUMERIC_RE.match(text):
        return None  # reported by the numeric rule
    if name == "min":
        if _size(value, numeric) < float(arg):
            if numeric:
                return f"Must be at least {arg}"
            return f"Must be at least {arg} characters"
    elif name == "max":
        if _size(value, numeric) > float(arg):
            if numeric:
                return f"Must be at most {arg}"
            return f"Must be at most {arg} characters"
    elif name == "email":
        if not _EMAIL_RE.match(text):
            return "Must be a valid email address"
    elif name == "numeric":
        if not _NUMERIC_RE.match(text):
            return "Must be a number"
    elif name == "integer":
        if not _INTEGER_RE.match(text):
            return "Must be an integer"
    elif name == "alpha":
        if not text.isalpha():
            return "Must contain only letters"
    elif name == "alpha_num":
        if not text.isalnum():
            return "Must contain only letters and numbers"
    elif name == "in":
        choices = arg.split(",")
        if text not in choices:
            return f"Must be one of: {', '.join(choices)}"
    elif name == "same":
        if value != data.get(arg):
            return f"Must match {arg}"
    elif name == "regex":
        if not re.search(arg, text):
            return "Has an invalid format"
    else:
        raise ConfigurationError(f"Unknown validation rule: {name}")
    return None


def validate(rules, data):
    """
    Validate data against rules.

    Returns a dict holding only the validated fields that are present.
    Raises ValidationError with {field: [messages]} when anything fails.
    """
    errors = {}
    validated = {}
    for field, field_rules in rules.items():
        parsed = parse_rules(field_rules)
        names = {name for name, _ in parsed}
        value = data.get(field)
        numeric = bool(names & {"numeric", "integer"})

        messages = []
        for name, arg in parsed:
            if name != "required" and _is_empty(value):
                # optional fields are only checked when present
                continue
            message = check_rule(name, arg, value, data, numeric)
            if message:
                messages.append(message)
                if name in ("required", "numeric", "integer"):
                    break
        if messages:
            errors[field] = messages
        elif field in data:
            validated[field] = value

    if errors:
        raise ValidationError(errors)
    return validated
