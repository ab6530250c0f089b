#################################################################################################
# Lapa
#
# A minimalist web micro-framework
#
# (C) 2025 Lapa contributors, MIT License
#
#################################################################################################
import codecs
import logging
import os
import time

import filetype

from .errors import ConfigurationError

logger = logging.getLogger("lapa")


class Storage:
    """
    Resolves logical storage names (cache, logs, uploads, temp, views, ...)
    to directories under the application root.
    """
    def __init__(self, root, paths, permissions):
        self.root = root
        self.permissions = dict(permissions)
        self.paths = {}
        for name, path in paths.items():
            if not os.path.isabs(path):
                path = os.path.join(root, path)
            self.paths[name] = os.path.normpath(path)

    def path(self, kind="app"):
        """Return the directory for kind, falling back to the app directory."""
        return self.paths.get(kind, self.paths["app"])

    def ensure(self):
        """Create every storage directory that does not exist yet."""
        for path in self.paths.values():
            if os.path.isdir(path):
                continue
            try:
                os.makedirs(path, mode=self.permissions["folder"], exist_ok=True)
            except OSError as ex:
                raise ConfigurationError(f"Failed to create directory: {path}") from ex

    def clear(self, kind="cache"):
        path = self.path(kind)
        if not os.path.isdir(path):
            return
        for entry in os.scandir(path):
            if entry.is_file():
                os.unlink(entry.path)
        logger.info("Storage %s cleared", kind)

    def cleanup(self, max_age=86400):
        """Delete temp and cache files older than max_age seconds."""
        cutoff = time.time() - max_age
        for kind in ("temp", "cache"):
            path = self.path(kind)
            if not os.path.isdir(path):
                continue
            for entry in os.scandir(path):
                if entry.is_file() and entry.stat().st_mtime < cutoff:
                    os.unlink(entry.path)
        logger.info("Storage cleanup executed")

    def move(self, source, target):
        """Move a file from temp storage into public storage."""
        source_path = os.path.join(self.path("temp"), source)
        target_path = os.path.join(self.path("public"), target)
        if not os.path.isfile(source_path):
            logger.error("Source file not found: %s", source)
            return False
        os.makedirs(os.path.dirname(target_path), exist_ok=True)
        os.replace(source_path, target_path)
        os.chmod(target_path, self.permissions["public"])
        logger.info("File moved: %s -> %s", source, target)
        return True


def sniff_mime(path):
    """
    Detect a file's MIME type from its content, never from its name.
    Unrecognised content that decodes as UTF-8 text is reported as text/plain.
    """
    kind = filetype.guess(path)
    if kind is not None:
        return kind.mime
    with open(path, "rb") as fp:
        head = fp.read(8192)
    if b"\x00" in head:
        return "application/octet-stream"
    try:
        codecs.getincrementaldecoder("utf-8")().decode(head, final=False)
    except UnicodeDecodeError:
        return "application/octet-stream"
    return "text/plain"
