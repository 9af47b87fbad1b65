"""
NativeRequest accessors and body decoding.
"""

from dataclasses import dataclass, field
from typing import List

import pytest

from nexarest.core.context import ContextKey
from nexarest.core.exceptions import DecodeError, UnsupportedMediaType
from nexarest.core.http import HTTPRequest
from nexarest.core.request import NativeRequest, Request, media_type
from nexarest.validation import NoopValidator, StructValidator, ValidationError, validated


@dataclass
class CreateArticle:
    title: str = validated("required|max_length:10")
    tags: List[str] = field(default_factory=list)


def make_request(body: bytes = b"", content_type: str = None, query: str = "", validator=None) -> NativeRequest:
    headers = {"Content-Type": content_type} if content_type else {}
    raw = HTTPRequest("POST", "/articles", query_string=query, headers=headers, body=body)
    return NativeRequest(raw, validator)


def test_native_request_satisfies_protocol():
    assert isinstance(make_request(), Request)


def test_param_defaults_to_empty_string():
    raw = HTTPRequest("GET", "/articles/7")
    raw.path_params = {"id": "7"}
    request = NativeRequest(raw)
    assert request.param("id") == "7"
    assert request.param("missing") == ""


def test_query_first_value_default_and_blank():
    request = make_request(query="tag=a&tag=b&take=")
    assert request.query("tag") == "a"
    assert request.query("missing") == ""
    assert request.query("missing", "30") == "30"
    assert request.query("take", "30") == ""


def test_header_method_and_path():
    request = make_request(content_type="application/json")
    assert request.header("content-type") == "application/json"
    assert request.header("X-Missing", "none") == "none"
    assert request.method == "POST"
    assert request.path == "/articles"


def test_context_comes_from_raw_request():
    key = ContextKey[str]("tenant")
    raw = HTTPRequest().with_context(HTTPRequest().context.with_value(key, "acme"))
    assert NativeRequest(raw).context().value(key) == "acme"


async def test_json_body():
    request = make_request(b'{"title": "Hello", "tags": ["a"]}', "application/json; charset=utf-8")
    assert await request.body(CreateArticle) == CreateArticle(title="Hello", tags=["a"])


async def test_xml_body():
    request = make_request(
        b"<article><title>Hello</title><tags>a</tags><tags>b</tags></article>",
        "application/xml",
    )
    assert await request.body(CreateArticle) == CreateArticle(title="Hello", tags=["a", "b"])


async def test_empty_body():
    with pytest.raises(DecodeError, match="empty body from request"):
        await make_request(b"", "application/json").body(CreateArticle)


async def test_unsupported_content_type():
    with pytest.raises(UnsupportedMediaType) as info:
        await make_request(b"title=x", "text/plain").body(CreateArticle)
    assert str(info.value) == "content type 'text/plain' is unsupported"


async def test_missing_content_type():
    with pytest.raises(UnsupportedMediaType, match="content type '' is unsupported"):
        await make_request(b"{}").body(CreateArticle)


async def test_malformed_documents():
    with pytest.raises(DecodeError):
        await make_request(b"{nope", "application/json").body(CreateArticle)
    with pytest.raises(DecodeError):
        await make_request(b"<open>", "application/xml").body(CreateArticle)


async def test_validator_runs_after_binding():
    request = make_request(b'{"title": "far too long a title"}', "application/json", validator=StructValidator())
    with pytest.raises(ValidationError) as info:
        await request.body(CreateArticle)
    assert "title" in info.value.errors


async def test_validation_can_be_skipped():
    body = b'{"title": "far too long a title"}'
    assert (await make_request(body, "application/json", validator=NoopValidator()).body(CreateArticle)).title
    request = make_request(body, "application/json", validator=StructValidator())
    assert (await request.body(CreateArticle, validate=False)).title == "far too long a title"


async def test_body_is_cached_across_reads():
    request = make_request(b'{"title": "Hello"}', "application/json")
    first = await request.body(CreateArticle)
    second = await request.body(CreateArticle)
    assert first == second


def test_media_type_ignores_parameters():
    assert media_type("Application/JSON; charset=utf-8") == "application/json"
    assert media_type(None) == ""
