"""
nexarest Response Objects
=========================

The uniform result value returned by every handler and middleware.

Three variants share one contract (status, headers, JSON rendering, XML
rendering):

- ``DataResponse``: ``{"data": ...}`` / ``<response><data>...</data></response>``
- ``ErrorResponse``: ``{"type", "title", "detail", "status"}`` problem document
- ``RedirectResponse``: a ``Location`` header and no body

Constructors are grouped by status family and named after the status:

    return ok(article)
    return created(article)
    return no_content()
    return not_found(exc)
    return bad_request(exc, "title is required")
    return see_other("/articles/1")

Rendering never raises. A payload that cannot be serialized degrades to
``{}`` (JSON) or an empty string (XML) and a warning is logged.
"""

from __future__ import annotations

import dataclasses
import re
import xml.etree.ElementTree as ET
from abc import ABC, abstractmethod
from datetime import date, datetime, time
from decimal import Decimal
from enum import Enum
from http import HTTPStatus
from typing import Any, Callable, Dict, Mapping, Optional, Union
from uuid import UUID

import orjson

from nexarest.utils.logger import get_logger

logger = get_logger("nexarest.response")

# Problem-type document referenced by every error envelope
PROBLEM_TYPE = "http://www.w3.org/Protocols/rfc2616/rfc2616-sec10.html"

REDIRECT_STATUSES = frozenset({300, 301, 302, 303, 304, 305, 307})

# Standard HTTP status messages
HTTP_STATUS_PHRASES = {s.value: s.phrase for s in HTTPStatus}

_XML_NAME = re.compile(r"^[A-Za-z_][\w.\-]*$")


class Response(ABC):
    """
    Base class of every handler result.

    Status is fixed at construction. Headers are the only mutable part
    and are copied onto the outbound reply by the dispatch adapter.

    Example:
        return ok(article).with_header("Cache-Control", "no-store")
    """

    def __init__(self, status_code: int, headers: Optional[Dict[str, str]] = None) -> None:
        self._status_code = int(status_code)
        self._headers: Dict[str, str] = {}
        for key, value in (headers or {}).items():
            self.with_header(key, value)

    @property
    def status_code(self) -> int:
        return self._status_code

    @property
    def headers(self) -> Dict[str, str]:
        return self._headers

    @property
    def status_phrase(self) -> str:
        return HTTP_STATUS_PHRASES.get(self._status_code, "Unknown")

    def with_header(self, key: str, value: str) -> "Response":
        """
        Set a header on the response and return the response.

        Names are case-insensitive: setting ``content-type`` replaces an
        existing ``Content-Type`` under its original spelling.
        """
        self._headers[self._header_key(key)] = value
        return self

    def header(self, key: str, default: Optional[str] = None) -> Optional[str]:
        return self._headers.get(self._header_key(key), default)

    def _header_key(self, key: str) -> str:
        lowered = key.lower()
        return next((existing for existing in self._headers if existing.lower() == lowered), key)

    @abstractmethod
    def render_json(self) -> str:
        """Encode the response body as JSON."""

    @abstractmethod
    def render_xml(self) -> str:
        """Encode the response body as XML."""

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self._status_code} {self.status_phrase}>"


class DataResponse(Response):
    """
    Success response carrying an optional payload.

    ``data`` is ``None`` for responses that never carry a body.
    """

    def __init__(
        self,
        status_code: int,
        data: Any = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> None:
        super().__init__(status_code, headers)
        self._data = data

    @property
    def data(self) -> Any:
        return self._data

    def render_json(self) -> str:
        return _to_json({"data": self._data})

    def render_xml(self) -> str:
        def build() -> ET.Element:
            root = ET.Element("response")
            _append_xml(root, "data", self._data)
            return root
        return _to_xml(build)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, DataResponse):
            return NotImplemented
        return (self._status_code, self._data) == (other._status_code, other._data)

    __hash__ = None  # type: ignore[assignment]


class ErrorResponse(Response, Exception):
    """
    Problem-document error response.

    It is an exception as well, so data-access code can ``raise`` one and
    have its status preserved all the way to the client. Wrapping an
    ``ErrorResponse`` with any error constructor returns it unchanged.

    Attributes:
        type: Problem-type URI (always ``PROBLEM_TYPE``)
        title: Reason phrase of the status code
        detail: Human readable message
    """

    def __init__(
        self,
        status_code: int,
        detail: str,
        headers: Optional[Dict[str, str]] = None,
    ) -> None:
        Response.__init__(self, status_code, headers)
        Exception.__init__(self, detail)
        self._type = PROBLEM_TYPE
        self._title = HTTP_STATUS_PHRASES.get(self._status_code, "")
        self._detail = detail

    @property
    def type(self) -> str:
        return self._type

    @property
    def title(self) -> str:
        return self._title

    @property
    def detail(self) -> str:
        return self._detail

    @property
    def status(self) -> int:
        return self._status_code

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self._type,
            "title": self._title,
            "detail": self._detail,
            "status": self._status_code,
        }

    def render_json(self) -> str:
        return _to_json(self.to_dict())

    def render_xml(self) -> str:
        def build() -> ET.Element:
            root = ET.Element("response")
            for key, value in self.to_dict().items():
                _append_xml(root, key, value)
            return root
        return _to_xml(build)

    def _identity(self) -> tuple:
        return (self._status_code, self._type, self._title, self._detail)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ErrorResponse):
            return NotImplemented
        return self._identity() == other._identity()

    def __hash__(self) -> int:
        return hash(self._identity())

    def __str__(self) -> str:
        return self._detail

    def __repr__(self) -> str:
        return f"<ErrorResponse {self._status_code} {self._title}: {self._detail}>"


class RedirectResponse(Response):
    """Redirect carrying only a ``Location`` header."""

    def __init__(
        self,
        status_code: int,
        location: str,
        headers: Optional[Dict[str, str]] = None,
    ) -> None:
        if int(status_code) not in REDIRECT_STATUSES:
            raise ValueError(f"{status_code} is not a redirect status")
        super().__init__(status_code, headers)
        self.with_header("Location", location)

    @property
    def location(self) -> str:
        return self.header("Location", "")

    def render_json(self) -> str:
        return ""

    def render_xml(self) -> str:
        return ""


# Encoding helpers

def _json_default(value: Any) -> Any:
    if isinstance(value, (set, frozenset)):
        return list(value)
    if isinstance(value, Decimal):
        return str(value)
    raise TypeError(f"Type is not JSON serializable: {type(value).__name__}")


def _to_json(document: Any) -> str:
    try:
        return orjson.dumps(
            document,
            default=_json_default,
            option=orjson.OPT_NON_STR_KEYS,
        ).decode("utf-8")
    except (TypeError, ValueError, RecursionError) as exc:
        logger.warning("JSON encoding failed, sending empty object", error=str(exc))
        return "{}"


def _to_xml(build: Callable[[], ET.Element]) -> str:
    try:
        return ET.tostring(build(), encoding="unicode", short_empty_elements=False)
    except (TypeError, ValueError, RecursionError) as exc:
        logger.warning("XML encoding failed, sending empty body", error=str(exc))
        return ""


def _xml_text(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    if isinstance(value, Enum):
        return _xml_text(value.value)
    if isinstance(value, (str, int, float, Decimal, UUID)):
        return str(value)
    raise TypeError(f"Type is not XML serializable: {type(value).__name__}")


def _append_xml(parent: ET.Element, tag: str, value: Any) -> None:
    """
    Append ``value`` under ``parent`` as one or more ``tag`` elements.

    Sequences repeat the tag, mappings and dataclasses nest child elements,
    ``None`` appends nothing.
    """
    if value is None:
        return

    if not isinstance(tag, str) or not _XML_NAME.match(tag):
        raise ValueError(f"'{tag}' is not a valid XML element name")

    if isinstance(value, (list, tuple, set, frozenset)):
        for item in value:
            _append_xml(parent, tag, item)
        return

    element = ET.SubElement(parent, tag)

    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        for f in dataclasses.fields(value):
            _append_xml(element, f.name, getattr(value, f.name))
    elif isinstance(value, Mapping):
        for key, item in value.items():
            _append_xml(element, str(key), item)
    else:
        element.text = _xml_text(value)


# Constructor factories

DataConstructor = Callable[..., DataResponse]
ErrorConstructor = Callable[..., ErrorResponse]
RedirectConstructor = Callable[[str], RedirectResponse]


def _data_constructor(status: HTTPStatus, render_body: bool) -> DataConstructor:
    def constructor(*data: Any) -> DataResponse:
        body = None
        if render_body and len(data) == 1:
            body = data[0]
        elif render_body and len(data) > 1:
            body = list(data)
        return DataResponse(status.value, body)

    constructor.__doc__ = f"{status.value} {status.phrase}."
    return constructor


def _error_constructor(status: HTTPStatus) -> ErrorConstructor:
    def constructor(
        error: Union[BaseException, str, None] = None,
        message: Optional[str] = None,
    ) -> ErrorResponse:
        if isinstance(error, ErrorResponse):
            return error

        if message is not None:
            detail = message
        elif error is None:
            detail = status.phrase
        else:
            detail = str(error)

        return ErrorResponse(status.value, detail)

    constructor.__doc__ = (
        f"{status.value} {status.phrase}. "
        f"An ErrorResponse given as ``error`` is returned unchanged."
    )
    return constructor


def _redirect_constructor(status: HTTPStatus) -> RedirectConstructor:
    def constructor(url: str) -> RedirectResponse:
        return RedirectResponse(status.value, url)

    constructor.__doc__ = f"{status.value} {status.phrase} to ``url``."
    return constructor


# 2xx
ok = _data_constructor(HTTPStatus.OK, True)
created = _data_constructor(HTTPStatus.CREATED, True)
accepted = _data_constructor(HTTPStatus.ACCEPTED, True)
non_authoritative_information = _data_constructor(HTTPStatus.NON_AUTHORITATIVE_INFORMATION, True)
no_content = _data_constructor(HTTPStatus.NO_CONTENT, False)
reset_content = _data_constructor(HTTPStatus.RESET_CONTENT, False)
partial_content = _data_constructor(HTTPStatus.PARTIAL_CONTENT, True)

# 3xx
multiple_choices = _redirect_constructor(HTTPStatus.MULTIPLE_CHOICES)
moved_permanently = _redirect_constructor(HTTPStatus.MOVED_PERMANENTLY)
found = _redirect_constructor(HTTPStatus.FOUND)
see_other = _redirect_constructor(HTTPStatus.SEE_OTHER)
not_modified = _redirect_constructor(HTTPStatus.NOT_MODIFIED)
use_proxy = _redirect_constructor(HTTPStatus.USE_PROXY)
temporary_redirect = _redirect_constructor(HTTPStatus.TEMPORARY_REDIRECT)

# 4xx
bad_request = _error_constructor(HTTPStatus.BAD_REQUEST)
unauthorized = _error_constructor(HTTPStatus.UNAUTHORIZED)
forbidden = _error_constructor(HTTPStatus.FORBIDDEN)
not_found = _error_constructor(HTTPStatus.NOT_FOUND)
method_not_allowed = _error_constructor(HTTPStatus.METHOD_NOT_ALLOWED)
not_acceptable = _error_constructor(HTTPStatus.NOT_ACCEPTABLE)
proxy_authentication_required = _error_constructor(HTTPStatus.PROXY_AUTHENTICATION_REQUIRED)
request_timeout = _error_constructor(HTTPStatus.REQUEST_TIMEOUT)
conflict = _error_constructor(HTTPStatus.CONFLICT)
gone = _error_constructor(HTTPStatus.GONE)
length_required = _error_constructor(HTTPStatus.LENGTH_REQUIRED)
precondition_failed = _error_constructor(HTTPStatus.PRECONDITION_FAILED)
request_entity_too_large = _error_constructor(HTTPStatus.REQUEST_ENTITY_TOO_LARGE)
request_uri_too_long = _error_constructor(HTTPStatus.REQUEST_URI_TOO_LONG)
unsupported_media_type = _error_constructor(HTTPStatus.UNSUPPORTED_MEDIA_TYPE)
requested_range_not_satisfiable = _error_constructor(HTTPStatus.REQUESTED_RANGE_NOT_SATISFIABLE)
expectation_failed = _error_constructor(HTTPStatus.EXPECTATION_FAILED)
unprocessable_entity = _error_constructor(HTTPStatus.UNPROCESSABLE_ENTITY)
too_many_requests = _error_constructor(HTTPStatus.TOO_MANY_REQUESTS)

# 5xx
internal_server_error = _error_constructor(HTTPStatus.INTERNAL_SERVER_ERROR)
not_implemented = _error_constructor(HTTPStatus.NOT_IMPLEMENTED)
bad_gateway = _error_constructor(HTTPStatus.BAD_GATEWAY)
service_unavailable = _error_constructor(HTTPStatus.SERVICE_UNAVAILABLE)
gateway_timeout = _error_constructor(HTTPStatus.GATEWAY_TIMEOUT)
http_version_not_supported = _error_constructor(HTTPStatus.HTTP_VERSION_NOT_SUPPORTED)
