def index(ctx):
    return ctx.view("index.html", {
        "title": app.config("name"),
        "visits": ctx.helper("visits")(),
        "notice": ctx.flash("notice"),
    })


def login(ctx):
    data = ctx.validate({"name": "required|alpha_num"})
    ctx.session("user", data["name"])
    ctx.flash("notice", "Welcome back, " + data["name"])
    return ctx.redirect("/")


app.on("GET /", index)
app.on("POST /login", login)
app.on("GET /greet/:name", lambda ctx: ctx.helper("greet")(ctx.param("name")))
app.not_found(lambda ctx: ctx.html("<h1>Nothing here</h1>"))
