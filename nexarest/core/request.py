"""
nexarest Request
================

The narrow request view handed to action and context handlers.

Handlers see four things: path parameters, query parameters, a typed body
and the propagation context. The raw ``HTTPRequest`` stays behind it.

Example:
    async def create_article(request: Request) -> Response:
        payload = await request.body(CreateArticle)
        user = request.context().value(USER)
        ...
"""

from __future__ import annotations

import xml.etree.ElementTree as ET
from typing import Any, Optional, Protocol, Type, TypeVar, runtime_checkable

import orjson

from nexarest.core.binding import bind, xml_to_payload
from nexarest.core.context import Context
from nexarest.core.exceptions import DecodeError, UnsupportedMediaType
from nexarest.core.http import HTTPRequest
from nexarest.validation.validator import Validator

T = TypeVar("T")

JSON_MEDIA_TYPE = "application/json"
XML_MEDIA_TYPE = "application/xml"


def media_type(content_type: Optional[str]) -> str:
    """``"application/json; charset=utf-8"`` -> ``"application/json"``."""
    if not content_type:
        return ""
    return content_type.split(";", 1)[0].strip().lower()


@runtime_checkable
class Request(Protocol):
    """What a handler can ask of the inbound request."""

    def param(self, name: str) -> str:
        """Path parameter ``name``, ``""`` when the route has none by that name."""
        ...

    def query(self, name: str, default: str = "") -> str:
        """First value of query parameter ``name``, ``default`` when absent."""
        ...

    async def body(self, target: Type[T], *, validate: bool = True) -> T:
        """Decode the body into ``target``."""
        ...

    def context(self) -> Context:
        """The propagation context accumulated by context middleware."""
        ...


class NativeRequest:
    """
    ``Request`` over an ``HTTPRequest``.

    Args:
        raw: The routed raw request
        validator: Run on every successfully bound body, if given
    """

    __slots__ = ("_raw", "_validator")

    def __init__(self, raw: HTTPRequest, validator: Optional[Validator] = None) -> None:
        self._raw = raw
        self._validator = validator

    @property
    def raw(self) -> HTTPRequest:
        return self._raw

    @property
    def method(self) -> str:
        return self._raw.method

    @property
    def path(self) -> str:
        return self._raw.path

    def header(self, name: str, default: Optional[str] = None) -> Optional[str]:
        return self._raw.headers.get(name, default)

    def param(self, name: str) -> str:
        return self._raw.path_params.get(name, "")

    def query(self, name: str, default: str = "") -> str:
        value = self._raw.query.get(name)
        return default if value is None else value

    async def body(self, target: Type[T], *, validate: bool = True) -> T:
        """
        Read, decode, bind and validate the body.

        Pass ``validate=False`` to skip the validator for this call.

        Raises:
            DecodeError: Empty body, malformed document or shape mismatch
            UnsupportedMediaType: Content type is neither JSON nor XML
            ValidationError: The validator rejected the bound value
        """
        content = await self._raw.body()
        if not content:
            raise DecodeError("empty body from request")

        kind = media_type(self._raw.content_type)
        if kind == JSON_MEDIA_TYPE:
            value = bind(target, self._decode_json(content))
        elif kind == XML_MEDIA_TYPE:
            value = bind(target, self._decode_xml(content), text=True)
        else:
            raise UnsupportedMediaType(self._raw.content_type)

        if validate and self._validator is not None:
            self._validator.validate(value)
        return value

    def context(self) -> Context:
        return self._raw.context

    @staticmethod
    def _decode_json(content: bytes) -> Any:
        try:
            return orjson.loads(content)
        except orjson.JSONDecodeError as exc:
            raise DecodeError(f"malformed JSON body: {exc}") from exc

    @staticmethod
    def _decode_xml(content: bytes) -> Any:
        try:
            root = ET.fromstring(content)
        except ET.ParseError as exc:
            raise DecodeError(f"malformed XML body: {exc}") from exc
        return xml_to_payload(root)

    def __repr__(self) -> str:
        return f"<NativeRequest {self._raw.method} {self._raw.path}>"
