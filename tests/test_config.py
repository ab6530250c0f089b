# you've got to have tests!
#
import datetime
import json
import logging
import os
import shutil
import tempfile
import unittest

from lapa import ConfigurationError, Lapa, create_app
from lapa.config import DEFAULTS, load_config, merge, read_config_file
from lapa.core import ErrorApp
from lapa.pages import render_error_page
from tests.helpers import LapaTestCase, simulate_request


class TestMerge(unittest.TestCase):

    def test_nested_keys_merge(self):
        merged = merge(DEFAULTS, {"debug": True, "cors": {"enabled": True}})
        self.assertTrue(merged["debug"])
        self.assertTrue(merged["cors"]["enabled"])
        self.assertEqual(merged["cors"]["methods"], DEFAULTS["cors"]["methods"])

    def test_defaults_are_not_mutated(self):
        merged = merge(DEFAULTS, {"upload": {"max_size": 1}})
        merged["storage"]["paths"]["cache"] = "elsewhere"
        self.assertEqual(DEFAULTS["upload"]["max_size"], 5 * 1024 * 1024)
        self.assertEqual(DEFAULTS["storage"]["paths"]["cache"], "storage/cache")

    def test_lists_are_replaced(self):
        merged = merge(DEFAULTS, {"upload": {"allowed_types": ["image/png"]}})
        self.assertEqual(merged["upload"]["allowed_types"], ["image/png"])


class TestConfigFiles(unittest.TestCase):

    def setUp(self):
        self.root = tempfile.mkdtemp()

    def tearDown(self):
        shutil.rmtree(self.root, ignore_errors=True)

    def write(self, name, content):
        path = os.path.join(self.root, name)
        with open(path, "w") as fp:
            fp.write(content)
        return path

    def test_python_config(self):
        self.write("config.py", 'CONFIG = {"name": "Shop", "cache": {"ttl": 10}}\n')
        config = load_config(root=self.root)
        self.assertEqual(config["name"], "Shop")
        self.assertEqual(config["cache"]["ttl"], 10)

    def test_json_config(self):
        self.write("config.json", json.dumps({"timezone": "Europe/Lisbon"}))
        self.assertEqual(load_config(root=self.root)["timezone"], "Europe/Lisbon")

    def test_user_mapping_wins_over_files(self):
        self.write("config.json", json.dumps({"name": "From file"}))
        self.assertEqual(load_config({"name": "From code"}, root=self.root)["name"], "From code")

    def test_defaults_without_files(self):
        self.assertEqual(load_config(root=self.root), DEFAULTS)

    def test_explicit_missing_file(self):
        with self.assertRaises(ConfigurationError):
            load_config(path=os.path.join(self.root, "missing.json"))

    def test_invalid_files(self):
        broken = self.write("broken.json", "{oops")
        with self.assertRaises(ConfigurationError):
            read_config_file(broken)
        no_dict = self.write("list.py", "CONFIG = [1, 2]\n")
        with self.assertRaises(ConfigurationError):
            read_config_file(no_dict)

    def test_non_dict_user_config(self):
        with self.assertRaises(ConfigurationError):
            load_config(["debug"])


class TestBootstrap(LapaTestCase):

    def test_config_lookup(self):
        self.assertEqual(self.app.config("session.name"), "lapa_session")
        self.assertEqual(self.app.config("storage.permissions.public"), 0o644)
        self.assertIsNone(self.app.config("cache.nothing"))
        self.assertIs(self.app.config(), self.app.config())

    def test_timezone(self):
        self.assertIs(self.app.tz, datetime.timezone.utc)

    def test_invalid_timezone(self):
        with self.assertRaises(ConfigurationError):
            self.make_app(timezone="Mars/Olympus_Mons")

    def test_config_file_from_root(self):
        with open(os.path.join(self.root, "config.json"), "w") as fp:
            json.dump({"name": "Rooted"}, fp)
        app = Lapa(root=self.root)
        self.assertEqual(app.config("name"), "Rooted")

    def test_log_writes_daily_file(self):
        self.app.log("Order created").log({"order": 7}, "warning")
        for handler in logging.getLogger("lapa").handlers:
            handler.flush()

        today = datetime.datetime.now(self.app.tz).strftime("%Y-%m-%d")
        with open(os.path.join(self.app.storage("logs"), today + ".log")) as fp:
            lines = fp.read().splitlines()
        self.assertTrue(lines[-2].endswith("INFO: Order created"))
        self.assertTrue(lines[-1].endswith('WARNING: {"order": 7}'))
        self.assertTrue(lines[-1].startswith("[" + today))

    def test_log_level_filters(self):
        self.app = self.make_app(log={"level": "error"})
        self.app.log("quiet", "info").log("loud", "error")
        for handler in logging.getLogger("lapa").handlers:
            handler.flush()

        contents = ""
        for name in os.listdir(self.app.storage("logs")):
            with open(os.path.join(self.app.storage("logs"), name)) as fp:
                contents += fp.read()
        self.assertNotIn("quiet", contents)
        self.assertIn("ERROR: loud", contents)

    def test_services_are_optional(self):
        self.assertIsNone(self.app.db())
        self.assertIsNone(self.app.mail())


class TestBootstrapFailure(unittest.TestCase):

    def setUp(self):
        self.root = tempfile.mkdtemp()

    def tearDown(self):
        shutil.rmtree(self.root, ignore_errors=True)

    def test_create_app_returns_error_page(self):
        app = create_app(config={"timezone": "Nowhere/Special"}, root=self.root)
        self.assertIsInstance(app, ErrorApp)
        status, headers, body = simulate_request(app, "/anything")
        self.assertEqual(status, "500 Internal Server Error")
        self.assertEqual(headers["Content-Type"], "text/html; charset=utf-8")
        self.assertIn("Server Error", body)
        self.assertNotIn("Nowhere/Special", body)

    def test_debug_error_page_has_detail(self):
        app = create_app(config={"timezone": "Nowhere/Special"}, root=self.root, debug=True)
        body = simulate_request(app, "/")[2]
        self.assertIn("ConfigurationError", body)
        self.assertIn("Invalid timezone: Nowhere/Special", body)

    def test_render_error_page_escapes(self):
        page = render_error_page(ValueError("<script>"), debug=True)
        self.assertIn("&lt;script&gt;", page)
        self.assertNotIn("<script>", page)

    def test_storage_failure(self):
        blocker = os.path.join(self.root, "storage")
        with open(blocker, "w") as fp:
            fp.write("not a directory")
        with self.assertRaises(ConfigurationError):
            Lapa(config={}, root=self.root)


if __name__ == "__main__":
    unittest.main()
