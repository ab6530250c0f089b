# you've got to have tests!
#
import os
import textwrap

from lapa import ConfigurationError, Lapa
from lapa import loader
from tests.helpers import LapaTestCase


class TestLoader(LapaTestCase):

    def write(self, relative, content):
        path = os.path.join(self.root, relative)
        os.makedirs(os.path.dirname(path), exist_ok=True)
        with open(path, "w") as fp:
            fp.write(textwrap.dedent(content))
        return path

    def test_route_files_are_loaded_at_startup(self):
        self.write("routes/web.py", """
            app.on("GET /", lambda ctx: "home")
        """)
        self.write("routes/api.py", """
            router.group("/api", lambda r: r.on("GET /status", lambda ctx: {"ok": True}))
        """)
        self.app = Lapa(config={}, root=self.root)
        self.assertEqual(self.request("/")[2], "home")
        self.assertEqual(self.request_json("/api/status")[2], {"ok": True})

    def test_broken_route_file_is_skipped(self):
        good = self.write("routes/b_good.py", 'app.on("GET /good", lambda ctx: "good")\n')
        self.write("routes/a_broken.py", "raise RuntimeError('broken on purpose')\n")
        self.write("routes/_private.py", 'app.on("GET /private", lambda ctx: "private")\n')

        loaded = loader.load_routes(self.app, os.path.join(self.root, "routes"))
        self.assertEqual(loaded, [good])
        self.assertEqual(self.request("/good")[2], "good")
        self.assertTrue(self.request("/private")[0].startswith("404"))

    def test_missing_routes_directory(self):
        self.assertEqual(loader.load_routes(self.app, os.path.join(self.root, "nope")), [])

    def test_plugins_register_helpers_before_routes(self):
        self.write("plugins/greeter.py", """
            def greet(ctx, name):
                return f"Hello, {name}!"

            def register(app):
                app.register_helper("greet", greet)
        """)
        self.write("routes/web.py", """
            app.on("GET /greet/:name", lambda ctx: ctx.helper("greet")(ctx.param("name")))
        """)
        self.app = Lapa(config={}, root=self.root)
        self.assertIn("greet", self.app.helpers)
        self.assertEqual(self.request("/greet/Ana")[2], "Hello, Ana!")

    def test_plugin_registering_middleware(self):
        self.write("plugins/auth.py", """
            def register(app):
                app.register_middleware("auth", lambda ctx, next: next() if ctx.token() else ctx.error("Unauthorized", 401))
        """)
        self.write("routes/admin.py", """
            app.group("/admin", lambda r: r.use("auth").on("GET /", lambda ctx: "admin"))
        """)
        self.app = Lapa(config={}, root=self.root)
        self.assertTrue(self.request("/admin")[0].startswith("401"))
        self.assertEqual(self.request("/admin", headers={"Authorization": "Bearer t"})[2], "admin")

    def test_plugin_without_register(self):
        path = self.write("plugins/empty.py", "VALUE = 1\n")
        with self.assertRaises(ConfigurationError):
            loader.load_plugin(self.app, path)

    def test_explicit_directories(self):
        self.write("elsewhere/extra.py", 'app.on("GET /extra", lambda ctx: "extra")\n')
        self.app.load_routes(os.path.join(self.root, "elsewhere"))
        self.assertEqual(self.request("/extra")[2], "extra")
