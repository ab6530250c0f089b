#################################################################################################
# Lapa
#
# A minimalist web micro-framework
#
# (C) 2025 Lapa contributors, MIT License
#
#################################################################################################
import hashlib
import json
import os
import time


class FileCache:
    """
    File backed key/value cache.

    Each entry lives in its own file named after the md5 of the key and holds
    {"value": ..., "expires": epoch}. Expired entries are removed when read.
    There is no locking; concurrent writers to one key race.
    """
    def __init__(self, directory, default_ttl=3600):
        self.directory = directory
        self.default_ttl = default_ttl

    def _filename(self, key):
        digest = hashlib.md5(key.encode("utf-8")).hexdigest()
        return os.path.join(self.directory, digest + ".cache")

    def get(self, key, default=None):
        filename = self._filename(key)
        if not os.path.isfile(filename):
            return default
        with open(filename, encoding="utf-8") as fp:
            data = json.load(fp)
        if data["expires"] < time.time():
            os.unlink(filename)
            return default
        return data["value"]

    def set(self, key, value, ttl=None):
        if ttl is None:
            ttl = self.default_ttl
        data = {"value": value, "expires": time.time() + ttl}
        os.makedirs(self.directory, exist_ok=True)
        with open(self._filename(key), "w", encoding="utf-8") as fp:
            json.dump(data, fp)

    def delete(self, key):
        filename = self._filename(key)
        if os.path.isfile(filename):
            os.unlink(filename)
            return True
        return False

    def clear(self):
        for entry in os.scandir(self.directory):
            if entry.is_file() and entry.name.endswith(".cache"):
                os.unlink(entry.path)
