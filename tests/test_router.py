"""
Router composition, served through ASGI with httpx.
"""

from dataclasses import dataclass

import pytest

from nexarest import (
    ContextKey,
    NoopValidator,
    Router,
    bad_request,
    created,
    ok,
    unauthorized,
    validated,
)

USER = ContextKey[str]("user")
TRAIL = ContextKey[tuple]("trail", ())


def mark(name: str):
    def handler(request):
        trail = request.context().value(TRAIL)
        return request.context().with_value(TRAIL, trail + (name,)), None
    handler.__name__ = f"mark_{name}"
    return handler


async def show_trail(request):
    return ok(list(request.context().value(TRAIL)))


async def authenticate(request):
    token = request.header("Authorization")
    if not token:
        return request.context(), unauthorized("missing token")
    return request.context().with_value(USER, token), None


@dataclass
class CreateNote:
    text: str = validated("required|max_length:20")


class TestRegistration:
    async def test_verbs_and_decorators(self, client_for):
        router = Router()

        @router.get("/notes")
        async def list_notes(request):
            return ok(["a"])

        @router.post("/notes")
        async def create_note(request):
            return created(await request.body(CreateNote))

        router.put("/notes/{id}", lambda request: ok(request.param("id")))
        router.method("purge", "/notes", lambda request: ok("purged"))

        async with client_for(router) as client:
            assert (await client.get("/notes")).json() == {"data": ["a"]}
            response = await client.post("/notes", json={"text": "hello"})
            assert response.status_code == 201
            assert response.json() == {"data": {"text": "hello"}}
            assert (await client.put("/notes/9", json={})).json() == {"data": "9"}
            assert (await client.request("PURGE", "/notes")).json() == {"data": "purged"}

        assert list_notes.__name__ == "list_notes"

    async def test_content_type_headers(self, client_for):
        router = Router()
        router.get("/notes", lambda request: ok(["a", "b"]))

        async with client_for(router) as client:
            response = await client.get("/notes")
            assert response.headers["content-type"] == "application/json"

            response = await client.get("/notes", headers={"Content-Type": "application/xml"})
            assert response.headers["content-type"] == "application/xml"
            assert response.text == "<response><data>a</data><data>b</data></response>"

    async def test_xml_request_body(self, client_for):
        router = Router()

        @router.post("/notes")
        async def create_note(request):
            return created(await request.body(CreateNote))

        async with client_for(router) as client:
            response = await client.post(
                "/notes",
                content=b"<note><text>hi</text></note>",
                headers={"Content-Type": "application/xml"},
            )
        assert response.status_code == 201
        assert response.text == "<response><data><text>hi</text></data></response>"

    async def test_validation_failure_can_be_mapped_to_400(self, client_for):
        router = Router()

        @router.post("/notes")
        async def create_note(request):
            try:
                note = await request.body(CreateNote)
            except Exception as exc:
                return bad_request(exc)
            return created(note)

        async with client_for(router) as client:
            response = await client.post("/notes", json={"text": ""})
        assert response.status_code == 400
        assert response.json()["detail"] == "The text field is required"

    async def test_router_validator_is_used(self, client_for):
        router = Router(validator=NoopValidator())

        @router.post("/notes")
        async def create_note(request):
            return created(await request.body(CreateNote))

        async with client_for(router) as client:
            response = await client.post("/notes", json={"text": ""})
        assert response.status_code == 201


class TestMiddleware:
    async def test_use_applies_to_later_routes(self, client_for):
        router = Router()
        router.get("/before", show_trail)
        router.use(mark("a"), mark("b"))
        router.get("/after", show_trail)

        async with client_for(router) as client:
            assert (await client.get("/before")).json() == {"data": []}
            assert (await client.get("/after")).json() == {"data": ["a", "b"]}

    async def test_with_scope_does_not_leak(self, client_for):
        router = Router()
        router.use(mark("root"))
        router.with_(mark("scoped")).get("/scoped", show_trail)
        router.get("/plain", show_trail)

        async with client_for(router) as client:
            assert (await client.get("/scoped")).json() == {"data": ["root", "scoped"]}
            assert (await client.get("/plain")).json() == {"data": ["root"]}

    async def test_group(self, client_for):
        router = Router()

        def admin(r):
            r.use(mark("admin"))
            r.get("/admin/stats", show_trail)

        scope = router.group(admin)
        router.get("/public", show_trail)

        async with client_for(router) as client:
            assert (await client.get("/admin/stats")).json() == {"data": ["admin"]}
            assert (await client.get("/public")).json() == {"data": []}
        assert len(scope.middlewares) == 1
        assert router.middlewares == ()

    async def test_short_circuit(self, client_for):
        router = Router()
        router.with_(authenticate).get("/me", lambda request: ok(request.context().value(USER)))

        async with client_for(router) as client:
            denied = await client.get("/me")
            assert denied.status_code == 401
            assert denied.json()["detail"] == "missing token"

            allowed = await client.get("/me", headers={"Authorization": "ada"})
            assert allowed.json() == {"data": "ada"}


class TestSubRouters:
    async def test_route_builds_and_mounts(self, client_for):
        router = Router()
        router.use(mark("root"))

        def articles(r):
            r.use(mark("article"))
            r.get("/", lambda request: ok(request.param("id")))
            r.get("/trail", show_trail)

        router.route("/articles/{id}", articles)

        async with client_for(router) as client:
            assert (await client.get("/articles/5")).json() == {"data": "5"}
            assert (await client.get("/articles/5/trail")).json() == {"data": ["root", "article"]}

    async def test_mount_router(self, client_for):
        api = Router()
        api.get("/ping", lambda request: ok("pong"))
        router = Router()
        router.mount("/api", api)

        async with client_for(router) as client:
            assert (await client.get("/api/ping")).json() == {"data": "pong"}
            missing = await client.get("/api/nothing")
        assert missing.status_code == 404
        assert missing.json()["detail"] == "no route for GET /api/nothing"

    def test_duplicate_mount(self):
        router = Router()
        router.mount("/api", Router())
        with pytest.raises(ValueError):
            router.route("/api", lambda r: None)

    def test_walk(self):
        router = Router()
        router.get("/health", lambda request: ok())

        def articles(r):
            r.get("/", lambda request: ok())
            r.delete("/", lambda request: ok())

        router.route("/articles/{id}", articles)

        assert set(router.walk()) == {
            ("GET", "/health"),
            ("GET", "/articles/{id}/"),
            ("DELETE", "/articles/{id}/"),
        }


class TestServing:
    async def test_not_found_and_method_not_allowed(self, client_for):
        router = Router()
        router.get("/notes", lambda request: ok())

        async with client_for(router) as client:
            missing = await client.get("/nope")
            assert missing.status_code == 404
            assert missing.json()["title"] == "Not Found"

            wrong = await client.delete("/notes")
        assert wrong.status_code == 405
        assert wrong.headers["allow"] == "GET, HEAD"
        assert wrong.json()["detail"] == "method DELETE is not allowed on /notes"

    async def test_head_has_no_body(self, client_for):
        router = Router()
        router.get("/notes", lambda request: ok(["a"]))

        async with client_for(router) as client:
            response = await client.head("/notes")
        assert response.status_code == 200
        assert response.content == b""

    async def test_access_log(self, client_for, log_records):
        router = Router()
        router.get("/notes", lambda request: ok())

        async with client_for(router) as client:
            await client.get("/notes")

        assert "GET /notes 200" in log_records.messages()

    async def test_lifespan_hooks(self):
        router = Router()
        events = []

        @router.on_startup
        async def connect():
            events.append("startup")

        @router.on_shutdown
        async def disconnect():
            events.append("shutdown")

        messages = iter([{"type": "lifespan.startup"}, {"type": "lifespan.shutdown"}])
        sent = []

        async def receive():
            return next(messages)

        async def send(message):
            sent.append(message["type"])

        await router({"type": "lifespan"}, receive, send)

        assert events == ["startup", "shutdown"]
        assert sent == ["lifespan.startup.complete", "lifespan.shutdown.complete"]

    async def test_failed_startup(self):
        router = Router()

        @router.on_startup
        async def broken():
            raise RuntimeError("no database")

        sent = []

        async def receive():
            return {"type": "lifespan.startup"}

        async def send(message):
            sent.append(message)

        await router({"type": "lifespan"}, receive, send)
        assert sent == [{"type": "lifespan.startup.failed", "message": "no database"}]

    async def test_unsupported_scope(self):
        with pytest.raises(ValueError):
            await Router()({"type": "websocket"}, None, None)
