"""
nexarest raw HTTP messages
==========================

The wire-level request and reply the mux works with, bound to ASGI.

``HTTPRequest`` is what the router sees: method, path, headers, query
string, the path parameters collected so far and the propagation context.
The body is read lazily from the ASGI ``receive`` channel and cached, and
the cache is shared by every copy derived from the same inbound request,
so a middleware reading the body does not starve the handler.

``HTTPReply`` is what a raw handler returns; it knows how to send itself.
"""

from __future__ import annotations

import copy
from typing import (
    Any,
    Awaitable,
    Callable,
    Coroutine,
    Dict,
    Iterable,
    List,
    Optional,
    Tuple,
    Union,
)
from urllib.parse import parse_qs

from nexarest.core.context import Context

Receive = Callable[[], Coroutine[Any, Any, Dict[str, Any]]]
Send = Callable[[Dict[str, Any]], Coroutine[Any, Any, None]]


class QueryParams:
    """
    Query string parameters.

    Supports:
    - Single values: ?name=value -> params.get("name") = "value"
    - Multiple values: ?tag=a&tag=b -> params.get_list("tag") = ["a", "b"]
    - Blank values are kept: ?take= -> params.get("take") = ""
    """

    def __init__(self, query_string: str = "") -> None:
        self._data: Dict[str, List[str]] = parse_qs(query_string, keep_blank_values=True)

    def get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        """Get single value (first if multiple)."""
        values = self._data.get(key)
        return values[0] if values else default

    def get_list(self, key: str) -> List[str]:
        return list(self._data.get(key, []))

    def __contains__(self, key: str) -> bool:
        return key in self._data

    def keys(self) -> List[str]:
        return list(self._data.keys())

    def to_dict(self) -> Dict[str, Union[str, List[str]]]:
        """Convert to dictionary (single values unwrapped)."""
        return {k: v[0] if len(v) == 1 else v for k, v in self._data.items()}


class Headers:
    """
    Case-insensitive HTTP headers container.

    Example:
        headers["Content-Type"]  # application/json
        headers["content-type"]  # application/json (same)
        headers.get("X-Custom", "default")
    """

    def __init__(self, raw_headers: Iterable[Tuple[Union[str, bytes], Union[str, bytes]]] = ()) -> None:
        self._headers: Dict[str, str] = {}

        for key, value in raw_headers:
            if isinstance(key, bytes):
                key = key.decode("latin-1")
            if isinstance(value, bytes):
                value = value.decode("latin-1")
            self._headers[key.lower()] = value

    def get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        return self._headers.get(key.lower(), default)

    def __getitem__(self, key: str) -> str:
        return self._headers[key.lower()]

    def __contains__(self, key: str) -> bool:
        return key.lower() in self._headers

    def items(self) -> List[Tuple[str, str]]:
        return list(self._headers.items())

    def to_dict(self) -> Dict[str, str]:
        return self._headers.copy()


class _BodyStream:
    """Reads the ASGI body once and remembers it."""

    __slots__ = ("_receive", "_body")

    def __init__(self, receive: Optional[Receive] = None, body: Optional[bytes] = None) -> None:
        self._receive = receive
        self._body = body

    async def read(self) -> bytes:
        if self._body is not None:
            return self._body

        if self._receive is None:
            self._body = b""
            return self._body

        chunks: List[bytes] = []
        while True:
            message = await self._receive()
            if message["type"] == "http.request":
                chunk = message.get("body", b"")
                if chunk:
                    chunks.append(chunk)
                if not message.get("more_body", False):
                    break
            elif message["type"] == "http.disconnect":
                raise ConnectionError("Client disconnected before the body was read")

        self._body = b"".join(chunks)
        return self._body


class HTTPRequest:
    """
    Inbound HTTP request as seen by the mux and raw middleware.

    Attributes:
        method: Upper-case HTTP method
        path: Full request path
        route_path: Part of the path not yet consumed by mounts
        query: Parsed query parameters
        headers: Case-insensitive headers
        path_params: Path parameters matched so far
        context: Propagation context
    """

    __slots__ = (
        "method",
        "path",
        "route_path",
        "query_string",
        "query",
        "headers",
        "path_params",
        "context",
        "scope",
        "_stream",
    )

    def __init__(
        self,
        method: str = "GET",
        path: str = "/",
        *,
        query_string: str = "",
        headers: Union[Headers, Dict[str, str], Iterable[Tuple[Any, Any]], None] = None,
        body: Optional[bytes] = None,
        receive: Optional[Receive] = None,
        scope: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.method = method.upper()
        self.path = path or "/"
        self.route_path = self.path
        self.query_string = query_string
        self.query = QueryParams(query_string)

        if isinstance(headers, Headers):
            self.headers = headers
        elif isinstance(headers, dict):
            self.headers = Headers(headers.items())
        else:
            self.headers = Headers(headers or ())

        self.path_params: Dict[str, str] = {}
        self.context = Context.empty()
        self.scope = scope or {}
        self._stream = _BodyStream(receive=receive, body=body)

    @classmethod
    def from_scope(cls, scope: Dict[str, Any], receive: Receive) -> "HTTPRequest":
        """Create a request from an ASGI HTTP scope."""
        return cls(
            method=scope.get("method", "GET"),
            path=scope.get("path", "/"),
            query_string=scope.get("query_string", b"").decode("latin-1"),
            headers=scope.get("headers", []),
            receive=receive,
            scope=scope,
        )

    async def body(self) -> bytes:
        """Read the whole body. Cached after the first call."""
        return await self._stream.read()

    @property
    def content_type(self) -> Optional[str]:
        return self.headers.get("content-type")

    def derive(self, **changes: Any) -> "HTTPRequest":
        """
        Return a copy with some attributes replaced.

        The copy shares the body stream with the original.
        """
        clone = copy.copy(self)
        for name, value in changes.items():
            setattr(clone, name, value)
        return clone

    def with_context(self, context: Context) -> "HTTPRequest":
        return self.derive(context=context)

    def __repr__(self) -> str:
        return f"<HTTPRequest {self.method} {self.path}>"


class HTTPReply:
    """
    Outbound HTTP reply.

    Example:
        reply = HTTPReply(200, {"Content-Type": "application/json"}, b'{"data":null}')
        await reply.send(send)
    """

    __slots__ = ("status_code", "headers", "body")

    def __init__(
        self,
        status_code: int = 200,
        headers: Optional[Dict[str, str]] = None,
        body: bytes = b"",
    ) -> None:
        self.status_code = status_code
        self.headers: Dict[str, str] = dict(headers or {})
        self.body = body

    @property
    def content_type(self) -> Optional[str]:
        for key, value in self.headers.items():
            if key.lower() == "content-type":
                return value
        return None

    def _get_headers(self) -> List[Tuple[bytes, bytes]]:
        headers = [
            (k.lower().encode("latin-1"), str(v).encode("latin-1"))
            for k, v in self.headers.items()
            if k.lower() != "content-length"
        ]
        headers.append((b"content-length", str(len(self.body)).encode("latin-1")))
        return headers

    async def send(self, send: Send) -> None:
        """Send the reply over the ASGI interface."""
        await send({
            "type": "http.response.start",
            "status": self.status_code,
            "headers": self._get_headers(),
        })
        await send({
            "type": "http.response.body",
            "body": self.body,
        })

    def __repr__(self) -> str:
        return f"<HTTPReply {self.status_code}>"


RawHandler = Callable[[HTTPRequest], Awaitable[HTTPReply]]
RawMiddleware = Callable[[RawHandler], RawHandler]
