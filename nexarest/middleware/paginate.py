"""
Take/skip pagination.

``paginate()`` is a context handler reading ``?take=`` and ``?skip=`` and
binding a ``Page`` into the request context:

    router.with_(paginate()).get("/articles", list_articles)

    async def list_articles(request):
        page = current_page(request)
        return ok(await store.slice(page.skip, page.take))

Missing parameters fall back to the defaults (``pagination.take`` and
``pagination.skip`` in the configuration unless given explicitly).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from nexarest.core.config import get_config
from nexarest.core.context import Context, ContextKey
from nexarest.core.dispatch import ContextHandler, handle_context
from nexarest.core.http import RawMiddleware
from nexarest.core.request import Request
from nexarest.core.response import Response, bad_request

TAKE_PARAM = "take"
SKIP_PARAM = "skip"


@dataclass(frozen=True)
class Page:
    """How many items to return, after skipping how many."""
    take: int
    skip: int

    @property
    def offset(self) -> int:
        return self.skip

    @property
    def limit(self) -> int:
        return self.take


PAGE: ContextKey[Page] = ContextKey("page")


def _parse(raw: str, name: str) -> int:
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"param '{name}' should be an integer, got '{raw}'") from None


def paginate(default_take: Optional[int] = None, default_skip: Optional[int] = None) -> ContextHandler:
    """
    Build the pagination context handler.

    Args:
        default_take: Used when ``take`` is absent (config ``pagination.take``)
        default_skip: Used when ``skip`` is absent (config ``pagination.skip``)
    """

    def handler(request: Request) -> tuple[Context, Optional[Response]]:
        config = get_config()
        take_default = default_take if default_take is not None else config.get_int("pagination.take", 30)
        skip_default = default_skip if default_skip is not None else config.get_int("pagination.skip", 0)

        try:
            take = _parse(request.query(TAKE_PARAM, str(take_default)), TAKE_PARAM)
            skip = _parse(request.query(SKIP_PARAM, str(skip_default)), SKIP_PARAM)
        except ValueError as exc:
            return request.context(), bad_request(exc)

        if take <= 0:
            return request.context(), bad_request("param 'take' should be greater than 0")
        if skip < 0:
            return request.context(), bad_request("param 'skip' should not be negative")

        return request.context().with_value(PAGE, Page(take=take, skip=skip)), None

    handler.__name__ = "paginate"
    return handler


def paginate_middleware(default_take: Optional[int] = None, default_skip: Optional[int] = None) -> RawMiddleware:
    """``paginate`` adapted to a raw middleware, for use outside a ``Router``."""
    return handle_context(paginate(default_take, default_skip))


def current_page(request: Request) -> Optional[Page]:
    """The page bound by ``paginate``, or ``None``."""
    return request.context().value(PAGE)
