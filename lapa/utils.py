#################################################################################################
# Lapa
#
# A minimalist web micro-framework
#
# (C) 2025 Lapa contributors, MIT License
#
#################################################################################################
"""Small string/date/geo helpers available to handlers."""
import datetime
import math
import re
import secrets
import string

_PERIODS = (
    ("year", 31536000),
    ("month", 2592000),
    ("week", 604800),
    ("day", 86400),
    ("hour", 3600),
    ("minute", 60),
    ("second", 1),
)

_ALPHABETS = {
    "alpha": string.ascii_letters,
    "numeric": string.digits,
    "alphanumeric": string.ascii_letters + string.digits,
}

DEFAULT_CLEAN_CHARS = "!@#$%^&*()+={}[]:;\"'<>?/\\|`~"


def ago(date, now=None):
    """
    Human readable time elapsed since date.

    date may be a datetime, an epoch number or an ISO 8601 string.
    ago(datetime.datetime.now() - datetime.timedelta(hours=3)) ==> '3 hours ago'
    """
    if isinstance(date, str):
        date = datetime.datetime.fromisoformat(date)
    if isinstance(date, datetime.datetime):
        date = date.timestamp()
    if now is None:
        now = datetime.datetime.now().timestamp()
    difference = now - date
    if difference < 60:
        return "just now"
    for name, seconds in _PERIODS:
        units = int(difference // seconds)
        if units > 0:
            return f"{units} {name}{'s' if units > 1 else ''} ago"
    return "just now"


def random_string(length=16, kind="alphanumeric"):
    alphabet = _ALPHABETS.get(kind)
    if alphabet is None:
        raise ValueError(f"Unknown random string type: {kind}")
    return "".join(secrets.choice(alphabet) for _ in range(length))


def slug(text):
    """slug('Hello, World!') ==> 'hello-world'"""
    value = re.sub(r"[^a-z0-9-]", "-", text.lower())
    value = re.sub(r"-+", "-", value)
    return value.strip("-")


def distance(lat1, lon1, lat2, lon2, unit="K"):
    """
    Great-circle distance between two points, rounded to 2 decimals.
    unit: K (kilometers), N (nautical miles), M (miles)
    """
    if lat1 == lat2 and lon1 == lon2:
        return 0
    theta = lon1 - lon2
    dist = (math.sin(math.radians(lat1)) * math.sin(math.radians(lat2))
            + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.cos(math.radians(theta)))
    dist = math.degrees(math.acos(min(1.0, max(-1.0, dist))))
    miles = dist * 60 * 1.1515

    unit = unit.upper()
    if unit == "K":
        return round(miles * 1.609344, 2)
    if unit == "N":
        return round(miles * 0.8684, 2)
    return round(miles, 2)


def clean(text, chars=None):
    """Remove every character of chars (default: common punctuation) from text."""
    if not chars:
        chars = DEFAULT_CLEAN_CHARS
    for c in chars:
        text = text.replace(c, "")
    return text
