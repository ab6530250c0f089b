import os

from lapa import Lapa, NotFound

app = Lapa(config={"cors": {"enabled": True}},
           root=os.path.dirname(os.path.abspath(__file__)), load_routes=False)

USERS = {"1": {"id": "1", "name": "Ana"}}


def require_token(ctx, next):
    if ctx.token() != "letmein":
        return ctx.error("Unauthorized", 401)
    return next()


def show_user(ctx):
    user = USERS.get(ctx.param("id"))
    if user is None:
        raise NotFound("User not found")
    return ctx.success(user)


def create_user(ctx):
    data = ctx.validate({"name": "required|min:3|max:40"})
    user_id = str(len(USERS) + 1)
    USERS[user_id] = {"id": user_id, **data}
    return USERS[user_id], 201


def v1(api):
    api.on("GET /users/:id", show_user)
    api.use(require_token)
    api.on("POST /users", create_user)
    api.not_found(lambda ctx: ctx.error("No such API endpoint", 404))


app.group("/api", lambda api: api.group("/v1", v1))

# only answered when the request is for status.example.com
app.vhost("status.example.com", lambda r: r.on("GET /", lambda ctx: {"status": "up"}))

if __name__ == "__main__":
    app.run()
