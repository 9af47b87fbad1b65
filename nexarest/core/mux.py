"""
nexarest Mux
============

Path matching, method dispatch and sub-handler mounting.

Patterns:
    /articles                 - Static path
    /articles/{id}            - Dynamic segment (anything but "/")
    /articles/{id:int}        - Typed segment
    /files/{rest:path}        - Rest of the path, slashes included
    /v{major:[0-9]+}/status   - Regex segment
    /assets/*                 - Wildcard tail, captured as "*"

Matching is exact: ``/articles`` and ``/articles/`` are different routes.
Static routes are tried before dynamic ones, and routes before mounts.

A mount at ``/api`` receives ``/api``, ``/api/`` and ``/api/...``. The
mounted handler sees the remainder of the path (``/`` when nothing is
left) as the request's ``route_path``; the full path is untouched.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional, Pattern, Tuple

from nexarest.core.http import HTTPReply, HTTPRequest, RawHandler
from nexarest.utils.logger import get_logger

logger = get_logger("nexarest.mux")

HTTP_METHODS = ("CONNECT", "DELETE", "GET", "HEAD", "OPTIONS", "PATCH", "POST", "PUT", "TRACE")

# Regex fragments for typed segments
PARAM_PATTERNS: Dict[str, str] = {
    "str": r"[^/]+",
    "int": r"[0-9]+",
    "uuid": r"[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}",
    "slug": r"[a-z0-9]+(?:-[a-z0-9]+)*",
    "path": r".+",
}

WILDCARD = "*"

_PARAM = re.compile(r"\{(\w+)(?::([^{}]+(?:\{[^{}]*\}[^{}]*)*))?\}")


def compile_pattern(pattern: str) -> Tuple[str, List[str]]:
    """
    Translate a route pattern into a regex body and its parameter names.

    The body is not anchored, so mounts can append their own tail.

    Raises:
        ValueError: Pattern does not start with "/", or misplaced wildcard
    """
    if not pattern.startswith("/"):
        raise ValueError(f"pattern '{pattern}' must begin with '/'")

    names: List[str] = []
    parts: List[str] = []
    segments = pattern[1:].split("/")

    for index, segment in enumerate(segments):
        if segment == WILDCARD:
            if index != len(segments) - 1:
                raise ValueError(f"wildcard '*' must be the last segment of '{pattern}'")
            names.append(WILDCARD)
            parts.append("(?P<_wildcard>.*)")
            continue

        regex = ""
        position = 0
        for match in _PARAM.finditer(segment):
            regex += re.escape(segment[position:match.start()])
            name, kind = match.group(1), match.group(2) or "str"
            if name in names:
                raise ValueError(f"duplicate parameter '{name}' in '{pattern}'")
            names.append(name)
            regex += f"(?P<{name}>{PARAM_PATTERNS.get(kind, kind)})"
            position = match.end()
        regex += re.escape(segment[position:])
        parts.append(regex)

    return "/" + "/".join(parts), names


def _params(match: "re.Match[str]", names: List[str]) -> Dict[str, str]:
    groups = match.groupdict()
    return {
        name: groups["_wildcard" if name == WILDCARD else name]
        for name in names
    }


@dataclass
class Route:
    """
    One pattern and its handler per method.

    Attributes:
        pattern: Pattern as registered
        handlers: Method -> raw handler
    """
    pattern: str
    handlers: Dict[str, RawHandler] = field(default_factory=dict)
    regex: Optional[Pattern[str]] = field(default=None, init=False, repr=False)
    param_names: List[str] = field(default_factory=list, init=False)

    def __post_init__(self) -> None:
        body, self.param_names = compile_pattern(self.pattern)
        self.regex = re.compile(f"^{body}$")

    @property
    def is_static(self) -> bool:
        return not self.param_names

    def match(self, path: str) -> Optional[Dict[str, str]]:
        match = self.regex.match(path)
        if match is None:
            return None
        return _params(match, self.param_names)

    def allowed_methods(self) -> List[str]:
        methods = set(self.handlers)
        if "GET" in methods:
            methods.add("HEAD")
        return sorted(methods)


@dataclass
class Mount:
    """A handler owning every path below ``pattern``."""
    pattern: str
    handler: RawHandler
    regex: Optional[Pattern[str]] = field(default=None, init=False, repr=False)
    param_names: List[str] = field(default_factory=list, init=False)

    def __post_init__(self) -> None:
        prefix = self.pattern.rstrip("/") or ""
        if WILDCARD in prefix.split("/"):
            raise ValueError(f"mount pattern '{self.pattern}' cannot contain a wildcard")
        body, self.param_names = compile_pattern(prefix or "/")
        if not prefix:
            body = ""
        self.regex = re.compile(f"^{body}(?P<_rest>/.*)?$")

    def match(self, path: str) -> Optional[Tuple[Dict[str, str], str]]:
        match = self.regex.match(path)
        if match is None:
            return None
        return _params(match, self.param_names), match.group("_rest") or "/"


async def default_not_found(request: HTTPRequest) -> HTTPReply:
    return HTTPReply(404, {"Content-Type": "text/plain; charset=utf-8"}, b"404 page not found")


async def default_method_not_allowed(request: HTTPRequest) -> HTTPReply:
    return HTTPReply(405, {"Content-Type": "text/plain; charset=utf-8"}, b"405 method not allowed")


class Mux:
    """
    Request multiplexer.

    Example:
        mux = Mux()
        mux.handle("GET", "/articles/{id:int}", show_article)
        mux.mount("/admin", admin_handler)

        reply = await mux.serve(request)
    """

    def __init__(self) -> None:
        self._static: Dict[str, Route] = {}
        self._dynamic: List[Route] = []
        self._mounts: Dict[str, Mount] = {}
        self.not_found: RawHandler = default_not_found
        self.method_not_allowed: RawHandler = default_method_not_allowed

    def handle(self, method: str, pattern: str, handler: RawHandler) -> Route:
        """
        Register ``handler`` for ``method`` on ``pattern``.

        Registering the same method and pattern again replaces the handler.
        """
        method = method.upper()
        if not method or not method.isalpha():
            raise ValueError(f"invalid HTTP method '{method}'")

        route = self._find_route(pattern)
        if route is None:
            route = Route(pattern)
            if route.is_static:
                self._static[pattern] = route
            else:
                self._dynamic.append(route)

        route.handlers[method] = handler
        return route

    def mount(self, pattern: str, handler: RawHandler) -> Mount:
        """
        Attach ``handler`` below ``pattern``.

        Raises:
            ValueError: Something is already mounted at ``pattern``
        """
        key = pattern.rstrip("/") or "/"
        if key in self._mounts:
            raise ValueError(f"attempting to mount a handler on an existing path, '{pattern}'")
        mount = self._mounts[key] = Mount(pattern, handler)
        return mount

    def _find_route(self, pattern: str) -> Optional[Route]:
        if pattern in self._static:
            return self._static[pattern]
        return next((r for r in self._dynamic if r.pattern == pattern), None)

    def match(self, path: str) -> Optional[Tuple[Route, Dict[str, str]]]:
        route = self._static.get(path)
        if route is not None:
            return route, {}
        for route in self._dynamic:
            params = route.match(path)
            if params is not None:
                return route, params
        return None

    def match_mount(self, path: str) -> Optional[Tuple[Mount, Dict[str, str], str]]:
        # Longest prefix first
        for mount in sorted(self._mounts.values(), key=lambda m: len(m.pattern.rstrip("/")), reverse=True):
            matched = mount.match(path)
            if matched is not None:
                return mount, matched[0], matched[1]
        return None

    async def serve(self, request: HTTPRequest) -> HTTPReply:
        """Route ``request`` to its handler and return the reply."""
        path = request.route_path

        found = self.match(path)
        if found is not None:
            route, params = found
            handler = route.handlers.get(request.method)
            if handler is None and request.method == "HEAD":
                handler = route.handlers.get("GET")
            if handler is None:
                logger.debug("Method not allowed", method=request.method, path=request.path)
                reply = await self.method_not_allowed(request)
                reply.headers.setdefault("Allow", ", ".join(route.allowed_methods()))
                return reply
            return await handler(self._descend(request, params, path))

        mounted = self.match_mount(path)
        if mounted is not None:
            mount, params, rest = mounted
            return await mount.handler(self._descend(request, params, rest))

        logger.debug("No route matched", method=request.method, path=request.path)
        return await self.not_found(request)

    __call__ = serve

    @staticmethod
    def _descend(request: HTTPRequest, params: Dict[str, str], route_path: str) -> HTTPRequest:
        if not params and route_path == request.route_path:
            return request
        return request.derive(
            path_params={**request.path_params, **params},
            route_path=route_path,
        )

    def routes(self) -> Iterator[Tuple[str, str, RawHandler]]:
        """Yield ``(method, pattern, handler)`` for every direct route."""
        for route in [*self._static.values(), *self._dynamic]:
            for method in sorted(route.handlers):
                yield method, route.pattern, route.handlers[method]

    def mounts(self) -> Iterator[Tuple[str, RawHandler]]:
        for mount in self._mounts.values():
            yield mount.pattern, mount.handler
