"""
Response constructors and rendering.
"""

from dataclasses import dataclass
from datetime import date
from http import HTTPStatus

import pytest

from nexarest.core.response import (
    PROBLEM_TYPE,
    DataResponse,
    ErrorResponse,
    RedirectResponse,
    accepted,
    bad_request,
    conflict,
    created,
    internal_server_error,
    moved_permanently,
    no_content,
    not_found,
    ok,
    request_entity_too_large,
    reset_content,
    see_other,
    temporary_redirect,
    unprocessable_entity,
)


@dataclass
class Article:
    id: int
    title: str


def test_ok_without_payload_renders_null_data():
    response = ok()
    assert response.status_code == 200
    assert response.render_json() == '{"data":null}'
    assert response.render_xml() == "<response></response>"


def test_single_payload_is_the_body():
    response = ok("test")
    assert response.data == "test"
    assert response.render_json() == '{"data":"test"}'
    assert response.render_xml() == "<response><data>test</data></response>"


def test_several_payloads_become_a_list():
    response = ok("test", "test")
    assert response.data == ["test", "test"]
    assert response.render_json() == '{"data":["test","test"]}'
    assert response.render_xml() == "<response><data>test</data><data>test</data></response>"


def test_dataclass_payload_renders_as_object_and_nested_elements():
    response = created(Article(id=1, title="Hello"))
    assert response.status_code == 201
    assert response.render_json() == '{"data":{"id":1,"title":"Hello"}}'
    assert response.render_xml() == "<response><data><id>1</id><title>Hello</title></data></response>"


def test_mapping_payload_xml_skips_none_and_formats_scalars():
    response = accepted({"published": True, "on": date(2024, 1, 15), "missing": None})
    assert response.status_code == 202
    assert response.render_xml() == (
        "<response><data><published>true</published><on>2024-01-15</on></data></response>"
    )


def test_bodyless_constructors_drop_payload():
    assert no_content("ignored").data is None
    assert no_content().status_code == 204
    assert reset_content("ignored").data is None
    assert reset_content().status_code == 205


def test_unserializable_payload_degrades(log_records):
    response = ok(object())
    assert response.render_json() == "{}"
    assert response.render_xml() == ""
    assert any("encoding failed" in m for m in log_records.messages())


def test_invalid_xml_tag_degrades_to_empty_string():
    assert ok({"not a tag": 1}).render_xml() == ""


def test_error_envelope_json_key_order():
    response = bad_request(ValueError("boom"))
    assert response.status_code == 400
    assert response.render_json() == (
        '{"type":"' + PROBLEM_TYPE + '","title":"Bad Request","detail":"boom","status":400}'
    )


def test_error_envelope_xml():
    response = not_found("no such article")
    assert response.render_xml() == (
        "<response>"
        f"<type>{PROBLEM_TYPE}</type>"
        "<title>Not Found</title>"
        "<detail>no such article</detail>"
        "<status>404</status>"
        "</response>"
    )


def test_error_message_overrides_error_text():
    response = conflict(ValueError("duplicate key"), "article already exists")
    assert response.detail == "article already exists"
    assert response.title == "Conflict"
    assert response.type == PROBLEM_TYPE


def test_error_without_error_uses_phrase():
    assert internal_server_error().detail == "Internal Server Error"


def test_error_titles_follow_standard_phrases():
    assert request_entity_too_large("big").title == HTTPStatus(413).phrase
    assert unprocessable_entity("bad").title == HTTPStatus(422).phrase


def test_wrapping_an_error_response_keeps_it():
    original = not_found("gone fishing")
    wrapped = bad_request(original)
    assert wrapped is original
    assert wrapped.status_code == 404


def test_error_response_is_raisable_and_comparable():
    with pytest.raises(ErrorResponse) as info:
        raise conflict("taken")

    assert info.value == conflict("taken")
    assert hash(info.value) == hash(conflict("taken"))
    assert info.value != conflict("other")
    assert str(info.value) == "taken"


def test_redirects_carry_only_a_location():
    response = see_other("/articles/1")
    assert isinstance(response, RedirectResponse)
    assert response.status_code == 303
    assert response.headers == {"Location": "/articles/1"}
    assert response.location == "/articles/1"
    assert response.render_json() == ""
    assert response.render_xml() == ""
    assert moved_permanently("/a").status_code == 301
    assert temporary_redirect("/a").status_code == 307


def test_redirect_rejects_non_redirect_status():
    with pytest.raises(ValueError):
        RedirectResponse(200, "/")


def test_with_header_returns_same_response():
    response = ok()
    assert response.with_header("X-Request-Id", "abc") is response
    assert response.headers["X-Request-Id"] == "abc"


def test_header_names_are_case_insensitive():
    response = ok().with_header("Cache-Control", "no-store").with_header("cache-control", "max-age=60")
    assert response.headers == {"Cache-Control": "max-age=60"}
    assert response.header("CACHE-CONTROL") == "max-age=60"


def test_redirect_location_can_be_replaced_in_any_case():
    response = see_other("/a").with_header("location", "/b")
    assert response.headers == {"Location": "/b"}
    assert response.location == "/b"


def test_self_referencing_payload_degrades_in_both_encodings(log_records):
    payload = []
    payload.append(payload)
    response = ok(payload)
    assert response.render_json() == "{}"
    assert response.render_xml() == ""
    assert "XML encoding failed, sending empty body" in log_records.messages()


def test_data_responses_compare_by_status_and_payload():
    assert ok("a") == DataResponse(200, "a")
    assert ok("a") != created("a")
