#################################################################################################
# Lapa
#
# A minimalist web micro-framework
#
# (C) 2025 Lapa contributors, MIT License
#
#################################################################################################
"""
Configuration loading.

A user supplied mapping (or a config.py / config.json file) is merged over
DEFAULTS. Nested dictionaries merge key by key, anything else is replaced.
"""
import copy
import json
import os
import runpy

from .errors import ConfigurationError

DEFAULTS = {
    "name": "Lapa Application",
    "debug": False,
    "secure": False,
    "timezone": "UTC",
    "key": "",
    "storage": {
        "paths": {
            "app": "storage/app",
            "public": "storage/app/public",
            "private": "storage/app/private",
            "logs": "storage/logs",
            "cache": "storage/cache",
            "temp": "storage/temp",
            "uploads": "storage/uploads",
            "views": "resources/views",
        },
        "permissions": {
            "public": 0o644,   # rw-r--r--
            "private": 0o600,  # rw-------
            "folder": 0o755,   # rwxr-xr-x
        },
    },
    "cors": {
        "enabled": False,
        "origins": "*",
        "methods": "GET, POST, PUT, DELETE, OPTIONS",
        "headers": "",
        "credentials": False,
    },
    "upload": {
        "max_size": 5 * 1024 * 1024,
        "allowed_types": [
            "image/jpeg",
            "image/png",
            "image/gif",
            "application/pdf",
            "text/plain",
        ],
    },
    "cache": {"ttl": 3600},
    "session": {"name": "lapa_session", "lifetime": 7200},
    "log": {"level": "debug"},
    "http": {"timeout": 30},
}

CONFIG_FILES = ("config.py", "config.json")


def merge(base, override):
    """Return a new dict with override merged recursively over base."""
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = merge(merged[key], value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def read_config_file(path):
    """
    Read a configuration file.

    .json files hold a single object, .py files must define a CONFIG dict.
    """
    if not os.path.isfile(path):
        raise ConfigurationError(f"Configuration file not found: {path}")
    try:
        if path.endswith(".json"):
            with open(path, encoding="utf-8") as fp:
                data = json.load(fp)
        else:
            data = runpy.run_path(path).get("CONFIG")
    except ConfigurationError:
        raise
    except Exception as ex:
        raise ConfigurationError(f"Invalid configuration file {path}: {ex}") from ex
    if not isinstance(data, dict):
        raise ConfigurationError(f"Configuration in {path} must be a dictionary")
    return data


def load_config(user=None, path=None, root=None):
    """
    Build the effective configuration.

      user - a dict of overrides (takes precedence over any file)
      path - an explicit config file, which must exist
      root - directory searched for config.py / config.json when neither is given
    """
    if user is not None and not isinstance(user, dict):
        raise ConfigurationError("Configuration must be a dictionary")

    if user is None:
        if path is not None:
            user = read_config_file(path)
        elif root is not None:
            for name in CONFIG_FILES:
                candidate = os.path.join(root, name)
                if os.path.isfile(candidate):
                    user = read_config_file(candidate)
                    break
    return merge(DEFAULTS, user or {})
