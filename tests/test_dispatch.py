"""
Action and context handler adapters.
"""

import orjson
import pytest

from nexarest.core.context import ContextKey
from nexarest.core.dispatch import contain, handle_action, handle_context, negotiate, render
from nexarest.core.http import HTTPReply, HTTPRequest
from nexarest.core.response import bad_request, conflict, no_content, ok, reset_content, see_other, unauthorized
from nexarest.utils.logger import LogLevel

USER = ContextKey[str]("user")


def json_request(content_type: str = "application/json") -> HTTPRequest:
    return HTTPRequest("GET", "/things", headers={"Content-Type": content_type})


class TestNegotiation:
    def test_json_is_the_default(self):
        assert negotiate(HTTPRequest()) == "application/json"
        assert negotiate(json_request("text/html")) == "application/json"

    def test_xml_follows_request_content_type(self):
        assert negotiate(json_request("application/xml; charset=utf-8")) == "application/xml"

    def test_accept_header_is_not_consulted(self):
        raw = HTTPRequest(headers={"Accept": "application/xml"})
        assert negotiate(raw) == "application/json"

    def test_render_json(self):
        reply = render(HTTPRequest(), ok({"id": 1}))
        assert reply.status_code == 200
        assert reply.headers["Content-Type"] == "application/json"
        assert orjson.loads(reply.body) == {"data": {"id": 1}}

    def test_render_xml(self):
        reply = render(json_request("application/xml"), ok({"id": 1}))
        assert reply.headers["Content-Type"] == "application/xml"
        assert reply.body == b"<response><data><id>1</id></data></response>"

    def test_render_keeps_response_headers(self):
        reply = render(HTTPRequest(), see_other("/things/1"))
        assert reply.status_code == 303
        assert reply.headers["Location"] == "/things/1"

    def test_no_content_has_empty_body(self):
        reply = render(HTTPRequest(), no_content())
        assert reply.status_code == 204
        assert reply.body == b""

    def test_reset_content_has_empty_body(self):
        reply = render(HTTPRequest(), reset_content())
        assert reply.status_code == 205
        assert reply.body == b""

    def test_handler_content_type_is_replaced_not_duplicated(self):
        response = ok(1).with_header("content-type", "application/problem+json")
        reply = render(HTTPRequest(), response)
        names = [name for name, _ in reply._get_headers()]
        assert names.count(b"content-type") == 1
        assert reply.content_type == "application/json"


class TestHandleAction:
    async def test_sync_and_async_handlers(self):
        def sync_handler(request):
            return ok("sync")

        async def async_handler(request):
            return ok("async")

        assert orjson.loads((await handle_action(sync_handler)(HTTPRequest())).body) == {"data": "sync"}
        assert orjson.loads((await handle_action(async_handler)(HTTPRequest())).body) == {"data": "async"}

    async def test_keeps_handler_name(self):
        async def show_thing(request):
            return ok()

        assert handle_action(show_thing).__name__ == "show_thing"

    async def test_raised_error_response_keeps_status(self):
        async def handler(request):
            raise conflict("already exists")

        reply = await handle_action(handler)(HTTPRequest())
        assert reply.status_code == 409
        assert orjson.loads(reply.body)["detail"] == "already exists"

    async def test_unexpected_exception_becomes_500(self, log_records):
        async def handler(request):
            raise RuntimeError("database is down")

        reply = await handle_action(handler)(HTTPRequest("GET", "/things"))
        body = orjson.loads(reply.body)
        assert reply.status_code == 500
        assert body["detail"] == "Internal Server Error"
        assert "database is down" not in reply.body.decode()

        errors = [r for r in log_records.records if r.level == LogLevel.ERROR]
        assert errors[-1].message == "Unhandled error in handler"
        assert isinstance(errors[-1].exception, RuntimeError)
        assert errors[-1].context["path"] == "/things"

    async def test_debug_reveals_error_detail(self, config):
        config.set("app.debug", True)

        async def handler(request):
            raise RuntimeError("database is down")

        reply = await handle_action(handler)(HTTPRequest())
        assert orjson.loads(reply.body)["detail"] == "database is down"

    async def test_non_response_result_is_a_server_error(self):
        async def handler(request):
            return {"id": 1}

        reply = await handle_action(handler)(HTTPRequest())
        assert reply.status_code == 500


class TestHandleContext:
    @staticmethod
    async def echo_user(raw: HTTPRequest) -> HTTPReply:
        return render(raw, ok(raw.context.value(USER, "anonymous")))

    async def test_continues_with_new_context(self):
        async def authenticate(request):
            return request.context().with_value(USER, request.query("user")), None

        stage = handle_context(authenticate)(self.echo_user)
        reply = await stage(HTTPRequest(query_string="user=ada"))
        assert orjson.loads(reply.body) == {"data": "ada"}

    async def test_response_short_circuits(self):
        calls = []

        async def next_handler(raw):
            calls.append(raw)
            return HTTPReply(200)

        def deny(request):
            return request.context(), unauthorized("missing token")

        reply = await handle_context(deny)(next_handler)(HTTPRequest())
        assert reply.status_code == 401
        assert orjson.loads(reply.body)["detail"] == "missing token"
        assert calls == []

    async def test_short_circuit_renders_xml_for_xml_requests(self):
        def deny(request):
            return request.context(), bad_request("nope")

        reply = await handle_context(deny)(self.echo_user)(json_request("application/xml"))
        assert reply.headers["Content-Type"] == "application/xml"
        assert b"<detail>nope</detail>" in reply.body

    async def test_exception_is_contained(self):
        async def broken(request):
            raise ValueError("boom")

        reply = await handle_context(broken)(self.echo_user)(HTTPRequest())
        assert reply.status_code == 500

    async def test_invalid_context_is_a_server_error(self):
        def broken(request):
            return "not a context", None

        reply = await handle_context(broken)(self.echo_user)(HTTPRequest())
        assert reply.status_code == 500

    async def test_original_request_is_not_mutated(self):
        raw = HTTPRequest()

        def tag(request):
            return request.context().with_value(USER, "grace"), None

        await handle_context(tag)(self.echo_user)(raw)
        assert USER not in raw.context


def test_contain_passes_error_responses_through():
    error = bad_request("bad")
    assert contain(HTTPRequest(), error) is error
