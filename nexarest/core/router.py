"""
nexarest Router
===============

Composable router speaking only ``Request`` / ``Response``.

Handlers are registered per method and pattern; context handlers are
stacked with ``use`` and scoped with ``with_``, ``group`` and ``route``.
A router is an ASGI application, so it can be served directly.

Example:
    router = Router()
    router.use(authenticate)

    @router.get("/articles")
    async def list_articles(request):
        return ok(await store.all())

    def articles(r: Router) -> None:
        r.use(load_article)
        r.get("/", show_article)
        r.delete("/", delete_article)

    router.route("/articles/{id:int}", articles)

    router.with_(paginate()).get("/feed", feed)

    if __name__ == "__main__":
        router.run()
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import (
    Any,
    Awaitable,
    Callable,
    Dict,
    Iterator,
    List,
    Optional,
    Tuple,
    Union,
)

from nexarest.core.config import get_config
from nexarest.core.dispatch import ActionHandler, ContextHandler, contain, handle_action, handle_context, render
from nexarest.core.http import HTTPReply, HTTPRequest, RawHandler, RawMiddleware, Receive, Send
from nexarest.core.mux import Mux
from nexarest.core.pipeline import Pipeline
from nexarest.core.response import method_not_allowed, not_found
from nexarest.utils.logger import get_logger
from nexarest.validation.validator import StructValidator, Validator

logger = get_logger("nexarest.router")

Hook = Callable[[], Awaitable[None]]


@dataclass
class _Shared:
    """State every scope of one router shares."""
    mux: Mux
    mounted: Dict[str, "Router"] = field(default_factory=dict)
    on_startup: List[Hook] = field(default_factory=list)
    on_shutdown: List[Hook] = field(default_factory=list)


class Router:
    """
    REST router over a ``Mux``.

    Args:
        mux: Route table to register into (a new one by default)
        validator: Body validator handed to every handler registered here,
            and inherited by scopes and sub-routers; ``StructValidator()``
            when omitted

    Each router has a middleware stack. The stack a handler runs behind is
    the one in place when the handler is registered.
    """

    def __init__(self, mux: Optional[Mux] = None, *, validator: Optional[Validator] = None) -> None:
        self._shared = _Shared(mux=mux if mux is not None else Mux())
        self._stack: Tuple[RawMiddleware, ...] = ()
        self._validator: Validator = validator if validator is not None else StructValidator()

        self._shared.mux.not_found = self._not_found
        self._shared.mux.method_not_allowed = self._method_not_allowed

    @property
    def mux(self) -> Mux:
        return self._shared.mux

    @property
    def validator(self) -> Validator:
        return self._validator

    @property
    def middlewares(self) -> Tuple[RawMiddleware, ...]:
        return self._stack

    # Middleware and scoping

    def use(self, *handlers: ContextHandler) -> None:
        """Append context handlers to this router's stack."""
        self._stack += tuple(handle_context(h, self._validator) for h in handlers)

    def with_(self, *handlers: ContextHandler) -> "Router":
        """
        Return a scope sharing this router's routes, with ``handlers``
        appended to a copy of its stack.
        """
        scope = Router.__new__(Router)
        scope._shared = self._shared
        scope._validator = self._validator
        scope._stack = self._stack + tuple(handle_context(h, self._validator) for h in handlers)
        return scope

    def group(self, fn: Optional[Callable[["Router"], Any]] = None) -> "Router":
        """Run ``fn`` on a fresh scope of this router and return the scope."""
        scope = self.with_()
        if fn is not None:
            fn(scope)
        return scope

    def route(self, pattern: str, fn: Optional[Callable[["Router"], Any]] = None) -> "Router":
        """Build a sub-router with ``fn`` and mount it at ``pattern``."""
        sub = Router(validator=self._validator)
        if fn is not None:
            fn(sub)
        self.mount(pattern, sub)
        return sub

    def mount(self, pattern: str, handler: Union["Router", RawHandler]) -> None:
        """
        Hand every path under ``pattern`` to ``handler``.

        Raises:
            ValueError: ``pattern`` is already mounted
        """
        raw: RawHandler = handler.dispatch if isinstance(handler, Router) else handler
        self._shared.mux.mount(pattern, Pipeline(self._stack).wrap(raw))
        if isinstance(handler, Router):
            self._shared.mounted[pattern] = handler

    # Method registration

    def method(
        self,
        name: str,
        pattern: str,
        handler: Optional[ActionHandler] = None,
    ) -> Any:
        """
        Register ``handler`` for HTTP method ``name`` on ``pattern``.

        Without ``handler`` this returns a decorator.
        """
        if handler is None:
            def decorator(fn: ActionHandler) -> ActionHandler:
                self.method(name, pattern, fn)
                return fn
            return decorator

        raw = Pipeline(self._stack).wrap(handle_action(handler, self._validator))
        self._shared.mux.handle(name.upper(), pattern, raw)
        return handler

    def connect(self, pattern: str, handler: Optional[ActionHandler] = None) -> Any:
        return self.method("CONNECT", pattern, handler)

    def delete(self, pattern: str, handler: Optional[ActionHandler] = None) -> Any:
        return self.method("DELETE", pattern, handler)

    def get(self, pattern: str, handler: Optional[ActionHandler] = None) -> Any:
        return self.method("GET", pattern, handler)

    def head(self, pattern: str, handler: Optional[ActionHandler] = None) -> Any:
        return self.method("HEAD", pattern, handler)

    def options(self, pattern: str, handler: Optional[ActionHandler] = None) -> Any:
        return self.method("OPTIONS", pattern, handler)

    def patch(self, pattern: str, handler: Optional[ActionHandler] = None) -> Any:
        return self.method("PATCH", pattern, handler)

    def post(self, pattern: str, handler: Optional[ActionHandler] = None) -> Any:
        return self.method("POST", pattern, handler)

    def put(self, pattern: str, handler: Optional[ActionHandler] = None) -> Any:
        return self.method("PUT", pattern, handler)

    def trace(self, pattern: str, handler: Optional[ActionHandler] = None) -> Any:
        return self.method("TRACE", pattern, handler)

    # Introspection

    def walk(self, prefix: str = "") -> Iterator[Tuple[str, str]]:
        """Yield ``(method, pattern)`` for every route, sub-routers included."""
        for method, pattern, _ in self._shared.mux.routes():
            yield method, prefix + pattern
        for pattern, sub in self._shared.mounted.items():
            yield from sub.walk(prefix + pattern.rstrip("/"))

    # Serving

    async def dispatch(self, request: HTTPRequest) -> HTTPReply:
        """Route a raw request through this router's table."""
        return await self._shared.mux.serve(request)

    async def _not_found(self, request: HTTPRequest) -> HTTPReply:
        return render(request, not_found(f"no route for {request.method} {request.path}"))

    async def _method_not_allowed(self, request: HTTPRequest) -> HTTPReply:
        return render(request, method_not_allowed(f"method {request.method} is not allowed on {request.path}"))

    def on_startup(self, fn: Hook) -> Hook:
        """Register a coroutine to run at ASGI lifespan startup."""
        self._shared.on_startup.append(fn)
        return fn

    def on_shutdown(self, fn: Hook) -> Hook:
        """Register a coroutine to run at ASGI lifespan shutdown."""
        self._shared.on_shutdown.append(fn)
        return fn

    async def __call__(self, scope: Dict[str, Any], receive: Receive, send: Send) -> None:
        """ASGI application interface."""
        if scope["type"] == "http":
            await self._handle_http(scope, receive, send)
        elif scope["type"] == "lifespan":
            await self._handle_lifespan(receive, send)
        else:
            raise ValueError(f"Unsupported scope type: {scope['type']}")

    async def _handle_http(self, scope: Dict[str, Any], receive: Receive, send: Send) -> None:
        request = HTTPRequest.from_scope(scope, receive)
        started = time.perf_counter()

        try:
            reply = await self.dispatch(request)
        except Exception as exc:
            reply = render(request, contain(request, exc))

        if request.method == "HEAD":
            reply.body = b""

        await reply.send(send)

        logger.info(
            f"{request.method} {request.path} {reply.status_code}",
            method=request.method,
            path=request.path,
            status=reply.status_code,
            duration_ms=round((time.perf_counter() - started) * 1000, 3),
        )

    async def _handle_lifespan(self, receive: Receive, send: Send) -> None:
        while True:
            message = await receive()
            if message["type"] == "lifespan.startup":
                try:
                    for hook in self._shared.on_startup:
                        await hook()
                except Exception as exc:
                    logger.error("Startup failed", exc)
                    await send({"type": "lifespan.startup.failed", "message": str(exc)})
                    return
                logger.info("nexarest started", routes=sum(1 for _ in self.walk()))
                await send({"type": "lifespan.startup.complete"})
            elif message["type"] == "lifespan.shutdown":
                for hook in self._shared.on_shutdown:
                    await hook()
                logger.info("nexarest shutdown complete")
                await send({"type": "lifespan.shutdown.complete"})
                return

    def run(
        self,
        host: Optional[str] = None,
        port: Optional[int] = None,
        **options: Any,
    ) -> None:
        """
        Serve this router with uvicorn.

        ``host`` and ``port`` default to ``server.host`` / ``server.port``.
        For production, point an ASGI server at the router directly:
            uvicorn app:router --host 0.0.0.0 --port 8000 --workers 4
        """
        import uvicorn

        config = get_config()
        options.setdefault("log_level", str(config.get("log.level", "info")).lower())
        options.setdefault("lifespan", "on")
        uvicorn.run(
            self,
            host=host or config.get("server.host", "127.0.0.1"),
            port=port or config.get_int("server.port", 8000),
            **options,
        )

    def __repr__(self) -> str:
        return f"<Router routes={sum(1 for _ in self.walk())} middlewares={len(self._stack)}>"
