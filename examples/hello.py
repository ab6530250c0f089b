import os

from lapa import Lapa

app = Lapa(root=os.path.dirname(os.path.abspath(__file__)), load_routes=False)


def home(ctx):
    return ctx.html("<h1>Hello from Lapa!</h1>")


app.on("GET /", home)

# a returned dict is sent as JSON
app.on("GET /hello/:name", lambda ctx: {"greeting": "Hello, " + ctx.param("name")})

if __name__ == "__main__":
    app.run()
