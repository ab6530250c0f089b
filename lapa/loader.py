#################################################################################################
# Lapa
#
# A minimalist web micro-framework
#
# (C) 2025 Lapa contributors, MIT License
#
#################################################################################################
"""
Auto-loading of route files and plugins.

A route file is a plain script executed with `app` (and its alias `router`)
in its globals::

    # routes/api.py
    app.on("GET /status", lambda ctx: {"ok": True})

A plugin is a module exposing register(app)::

    # plugins/greeter.py
    def register(app):
        app.register_helper("greet", lambda ctx, name: f"Hello, {name}!")
"""
import glob
import importlib.util
import logging
import os
import runpy

from .errors import ConfigurationError

logger = logging.getLogger("lapa")


def _python_files(directory):
    return sorted(f for f in glob.glob(os.path.join(directory, "*.py"))
                  if not os.path.basename(f).startswith("_"))


def load_routes(app, directory):
    """
    Execute every route file in directory. A broken file is logged and
    skipped so one bad file doesn't take the others down.
    Returns the list of files that loaded.
    """
    if not os.path.isdir(directory):
        logger.warning("Routes directory not found: %s", directory)
        return []
    loaded = []
    for filename in _python_files(directory):
        try:
            runpy.run_path(filename, init_globals={"app": app, "router": app})
        except Exception as ex:
            logger.error("Failed to load route file: %s - %s", filename, ex)
            continue
        loaded.append(filename)
    return loaded


def load_plugin(app, filename):
    name = "lapa_plugin_" + os.path.splitext(os.path.basename(filename))[0]
    spec = importlib.util.spec_from_file_location(name, filename)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    register = getattr(module, "register", None)
    if not callable(register):
        raise ConfigurationError(f"Plugin {filename} does not define register(app)")
    register(app)
    return module


def load_plugins(app, directory):
    """Import each plugin in directory and call its register(app)."""
    if not os.path.isdir(directory):
        return []
    plugins = []
    for filename in _python_files(directory):
        plugins.append(load_plugin(app, filename))
        logger.debug("Plugin loaded: %s", filename)
    return plugins
