# you've got to have tests!
#
import logging
import os
import runpy
import shutil
import tempfile
import unittest

from lapa import Lapa
from lapa.log import DailyFileHandler
from tests.helpers import make_environ, simulate_request

EXAMPLES = os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), "examples")


class TestSiteExample(unittest.TestCase):

    def setUp(self):
        self.root = os.path.join(tempfile.mkdtemp(), "site")
        shutil.copytree(os.path.join(EXAMPLES, "site"), self.root)
        self.app = runpy.run_path(os.path.join(self.root, "app.py"))["app"]

    def tearDown(self):
        logger = logging.getLogger("lapa")
        for handler in list(logger.handlers):
            if isinstance(handler, DailyFileHandler):
                logger.removeHandler(handler)
                handler.close()
        shutil.rmtree(os.path.dirname(self.root), ignore_errors=True)

    def test_bootstrap_from_project_files(self):
        self.assertIsInstance(self.app, Lapa)
        self.assertEqual(self.app.config("name"), "Lapa Site")
        self.assertEqual(sorted(self.app.helpers), ["greet", "visits"])

    def test_index_page(self):
        status, headers, body = simulate_request(self.app, "/")
        self.assertTrue(status.startswith("200"))
        self.assertEqual(headers["Content-Type"], "text/html")
        self.assertIn("<h1>Lapa Site</h1>", body)
        self.assertIn("visited this page 1 time.", body)

    def test_login_flashes_a_notice(self):
        response = self.app.handle_request(make_environ(
            "/login", method="POST", body="name=Ana",
            headers={"Content-Type": "application/x-www-form-urlencoded"}))
        self.assertEqual(response.status_code, 302)
        self.assertEqual(response.headers["Location"], "/")

        cookie = "site_session=" + response.cookies["site_session"]
        body = simulate_request(self.app, "/", headers={"Cookie": cookie})[2]
        self.assertIn("Welcome back, Ana", body)
        body = simulate_request(self.app, "/", headers={"Cookie": cookie})[2]
        self.assertNotIn("Welcome back", body)
        self.assertIn("visited this page 2 times.", body)

    def test_plugin_helper_route(self):
        self.assertEqual(simulate_request(self.app, "/greet/Ana")[2], "Hello, Ana!")

    def test_not_found_page(self):
        status, headers, body = simulate_request(self.app, "/missing")
        self.assertTrue(status.startswith("404"))
        self.assertEqual(body, "<h1>Nothing here</h1>")


if __name__ == "__main__":
    unittest.main()
