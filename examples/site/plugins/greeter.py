def greet(ctx, name):
    return f"Hello, {name}!"


def visits(ctx):
    count = (ctx.session("visits") or 0) + 1
    ctx.session("visits", count)
    return count


def register(app):
    app.register_helper("greet", greet)
    app.register_helper("visits", visits)
