"""
nexarest Dispatch Adapters
==========================

Bridges between handler functions and the raw HTTP layer.

``handle_action`` turns ``fn(request) -> Response`` into a raw handler.
``handle_context`` turns ``fn(request) -> (Context, Response | None)`` into
a raw middleware: a response short-circuits the chain, otherwise the
returned context is handed to the next stage.

Handlers may be plain functions or coroutines.

Example:
    async def show(request: Request) -> Response:
        return ok({"id": request.param("id")})

    async def authenticate(request: Request):
        token = request.query("token")
        if not token:
            return request.context(), unauthorized("missing token")
        return request.context().with_value(TOKEN, token), None

    handler = handle_context(authenticate)(handle_action(show))
"""

from __future__ import annotations

import inspect
from typing import Any, Awaitable, Callable, Optional, Tuple, TypeVar, Union

from nexarest.core.config import get_config
from nexarest.core.context import Context
from nexarest.core.http import HTTPReply, HTTPRequest, RawHandler, RawMiddleware
from nexarest.core.request import XML_MEDIA_TYPE, JSON_MEDIA_TYPE, NativeRequest, Request, media_type
from nexarest.core.response import ErrorResponse, Response, internal_server_error
from nexarest.utils.logger import get_logger
from nexarest.validation.validator import Validator

logger = get_logger("nexarest.dispatch")

T = TypeVar("T")

MaybeAwaitable = Union[T, Awaitable[T]]
ActionHandler = Callable[[Request], MaybeAwaitable[Response]]
ContextResult = Tuple[Context, Optional[Response]]
ContextHandler = Callable[[Request], MaybeAwaitable[ContextResult]]

# Statuses that never carry a body
_BODYLESS = frozenset({204, 205, 304})


async def resolve(value: MaybeAwaitable[T]) -> T:
    """Await ``value`` if it is awaitable."""
    if inspect.isawaitable(value):
        return await value
    return value


def negotiate(raw: HTTPRequest) -> str:
    """
    Pick the reply encoding from the request's own ``Content-Type``.

    XML only when the request body is declared as XML; JSON otherwise.
    ``Accept`` is not consulted.
    """
    if media_type(raw.content_type) == XML_MEDIA_TYPE:
        return XML_MEDIA_TYPE
    return JSON_MEDIA_TYPE


def render(raw: HTTPRequest, response: Response) -> HTTPReply:
    """Serialize ``response`` for ``raw`` into an outbound reply."""
    kind = negotiate(raw)
    headers = {k: v for k, v in response.headers.items() if k.lower() != "content-type"}
    headers["Content-Type"] = kind

    status = response.status_code
    if status < 200 or status in _BODYLESS:
        body = b""
    elif kind == XML_MEDIA_TYPE:
        body = response.render_xml().encode("utf-8")
    else:
        body = response.render_json().encode("utf-8")

    return HTTPReply(status, headers, body)


def contain(raw: HTTPRequest, error: BaseException) -> ErrorResponse:
    """
    Convert an exception escaping a handler into an error response.

    An ``ErrorResponse`` is returned as is. Anything else is logged with
    its traceback and becomes a 500 whose detail is only revealed when
    ``app.debug`` is on.
    """
    if isinstance(error, ErrorResponse):
        return error

    logger.with_context(method=raw.method, path=raw.path).error("Unhandled error in handler", error)

    if get_config().get_bool("app.debug"):
        return internal_server_error(error)
    return internal_server_error()


def _expect_response(value: Any) -> Response:
    if not isinstance(value, Response):
        raise TypeError(f"handler must return a Response, got {type(value).__name__}")
    return value


def handle_action(handler: ActionHandler, validator: Optional[Validator] = None) -> RawHandler:
    """Adapt an action handler to a raw handler."""

    async def action(raw: HTTPRequest) -> HTTPReply:
        try:
            response = _expect_response(await resolve(handler(NativeRequest(raw, validator))))
        except Exception as exc:
            response = contain(raw, exc)
        return render(raw, response)

    action.__name__ = getattr(handler, "__name__", "action")
    action.__wrapped__ = handler  # type: ignore[attr-defined]
    return action


def handle_context(handler: ContextHandler, validator: Optional[Validator] = None) -> RawMiddleware:
    """Adapt a context handler to a raw middleware."""

    def middleware(next_handler: RawHandler) -> RawHandler:
        async def stage(raw: HTTPRequest) -> HTTPReply:
            try:
                result = await resolve(handler(NativeRequest(raw, validator)))
                context, response = result
                if response is not None:
                    response = _expect_response(response)
                elif not isinstance(context, Context):
                    raise TypeError(f"context handler must return a Context, got {type(context).__name__}")
            except Exception as exc:
                return render(raw, contain(raw, exc))

            if response is not None:
                return render(raw, response)
            return await next_handler(raw.with_context(context))

        return stage

    middleware.__name__ = getattr(handler, "__name__", "context")
    middleware.__wrapped__ = handler  # type: ignore[attr-defined]
    return middleware
