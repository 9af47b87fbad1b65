"""
nexarest Middleware Pipeline
============================

Chains raw middleware around a raw handler, onion style:

    Pipeline([a, b, c]).wrap(handler)  ==  a(b(c(handler)))

``a`` sees the request first and the reply last.
"""

from __future__ import annotations

from typing import Iterable, Tuple

from nexarest.core.http import RawHandler, RawMiddleware


class Pipeline:
    """
    An ordered, immutable stack of raw middleware.

    Example:
        pipeline = Pipeline([timing, auth])
        handler = pipeline.wrap(list_articles)
        reply = await handler(request)
    """

    __slots__ = ("_middlewares",)

    def __init__(self, middlewares: Iterable[RawMiddleware] = ()) -> None:
        self._middlewares: Tuple[RawMiddleware, ...] = tuple(middlewares)

    @property
    def middlewares(self) -> Tuple[RawMiddleware, ...]:
        return self._middlewares

    def extend(self, middlewares: Iterable[RawMiddleware]) -> "Pipeline":
        """Return a new pipeline with ``middlewares`` appended."""
        return Pipeline(self._middlewares + tuple(middlewares))

    def wrap(self, handler: RawHandler) -> RawHandler:
        """Wrap ``handler`` so the first middleware runs outermost."""
        chain = handler
        for middleware in reversed(self._middlewares):
            chain = middleware(chain)
        return chain

    def __len__(self) -> int:
        return len(self._middlewares)

    def __iter__(self):
        return iter(self._middlewares)


def chain(*middlewares: RawMiddleware) -> RawMiddleware:
    """Compose several middleware into one."""
    def composed(handler: RawHandler) -> RawHandler:
        return Pipeline(middlewares).wrap(handler)
    return composed
