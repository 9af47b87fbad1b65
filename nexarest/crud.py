"""
nexarest CRUD Generator
=======================

Builds a resource router from a data-access object.

    class ArticleService(CRUD[Article, CreateArticle, UpdateArticle]):
        create_payload = CreateArticle
        update_payload = UpdateArticle

        async def find_one(self, id): ...
        async def find(self): ...
        async def create(self, payload): ...
        async def update(self, entity, payload): ...
        async def delete(self, entity): ...

    router.mount("/articles", new_crud(ArticleService()))

Routes:
    GET    /        find()                     200
    POST   /        create(payload)            201
    GET    /{id}    find_one(id)               200
    PUT    /{id}    update(entity, payload)    200
    PATCH  /{id}    update(entity, payload)    200
    DELETE /{id}    delete(entity)             204

Errors raised by the service keep their status when they are
``ErrorResponse`` instances; anything else is answered with 400. The
entity lookup for ``/{id}`` answers 404 instead.
"""

from __future__ import annotations

import collections.abc
from abc import ABC, abstractmethod
from typing import Any, ClassVar, Generic, Optional, Type, TypeVar

from nexarest.core.context import Context, ContextKey
from nexarest.core.dispatch import MaybeAwaitable, resolve
from nexarest.core.exceptions import NotFoundError
from nexarest.core.request import Request
from nexarest.core.response import (
    ErrorResponse,
    Response,
    bad_request,
    created,
    no_content,
    not_found,
    ok,
)
from nexarest.core.router import Router
from nexarest.utils.logger import get_logger
from nexarest.validation.validator import Validator

logger = get_logger("nexarest.crud")

EntityT = TypeVar("EntityT")
CreateT = TypeVar("CreateT")
UpdateT = TypeVar("UpdateT")


class CRUD(ABC, Generic[EntityT, CreateT, UpdateT]):
    """
    Data-access contract behind ``new_crud``.

    Methods may be plain or ``async``. Signal failures by raising:
    ``not_found(...)``/``conflict(...)`` and friends keep their status,
    any other exception becomes a 400.
    """

    create_payload: ClassVar[Type[Any]] = dict
    update_payload: ClassVar[Type[Any]] = dict

    @abstractmethod
    def find_one(self, id: str) -> MaybeAwaitable[Optional[EntityT]]:
        """Look up one entity by its path id; ``None`` when there is none."""

    @abstractmethod
    def find(self) -> MaybeAwaitable[Any]:
        """
        Every entity, usually a list. The value is sent as the ``data``
        payload unchanged, except that an iterator is drained into a list.
        """

    @abstractmethod
    def create(self, payload: CreateT) -> MaybeAwaitable[EntityT]:
        ...

    @abstractmethod
    def update(self, entity: EntityT, payload: UpdateT) -> MaybeAwaitable[EntityT]:
        ...

    @abstractmethod
    def delete(self, entity: EntityT) -> MaybeAwaitable[None]:
        ...


def _failure(error: Exception) -> ErrorResponse:
    if isinstance(error, ErrorResponse):
        return error
    return bad_request(error)


class _Endpoints:
    """Handlers of one generated resource."""

    def __init__(self, service: CRUD[Any, Any, Any]) -> None:
        self.service = service
        self.entity: ContextKey[Any] = ContextKey(f"{type(service).__name__}.entity")

    async def find_all(self, request: Request) -> Response:
        try:
            items = await resolve(self.service.find())
        except Exception as exc:
            return _failure(exc)
        if isinstance(items, collections.abc.Iterator):
            items = list(items)
        return ok(items)

    async def create(self, request: Request) -> Response:
        try:
            payload = await request.body(self.service.create_payload)
            entity = await resolve(self.service.create(payload))
        except Exception as exc:
            return _failure(exc)
        return created(entity)

    async def with_element(self, request: Request) -> tuple[Context, Optional[Response]]:
        entity_id = request.param("id")
        try:
            entity = await resolve(self.service.find_one(entity_id))
        except Exception as exc:
            logger.debug("Entity lookup failed", service=type(self.service).__name__, id=entity_id, error=str(exc))
            return request.context(), not_found(exc)

        if entity is None:
            return request.context(), not_found(NotFoundError())

        return request.context().with_value(self.entity, entity), None

    def _current(self, request: Request) -> Any:
        entity = request.context().value(self.entity)
        if entity is None:
            raise not_found(NotFoundError())
        return entity

    async def find_one(self, request: Request) -> Response:
        return ok(self._current(request))

    async def update(self, request: Request) -> Response:
        entity = self._current(request)
        try:
            payload = await request.body(self.service.update_payload)
            updated = await resolve(self.service.update(entity, payload))
        except Exception as exc:
            return _failure(exc)
        return ok(updated)

    async def delete(self, request: Request) -> Response:
        entity = self._current(request)
        try:
            await resolve(self.service.delete(entity))
        except Exception as exc:
            return _failure(exc)
        return no_content()


def new_crud(service: CRUD[Any, Any, Any], *, validator: Optional[Validator] = None) -> Router:
    """
    Generate the resource router for ``service``.

    Args:
        service: The data-access object
        validator: Body validator for create/update (router default if omitted)
    """
    endpoints = _Endpoints(service)

    router = Router(validator=validator)
    router.get("/", endpoints.find_all)
    router.post("/", endpoints.create)

    def element(r: Router) -> None:
        r.use(endpoints.with_element)
        r.get("/", endpoints.find_one)
        r.put("/", endpoints.update)
        r.patch("/", endpoints.update)
        r.delete("/", endpoints.delete)

    router.route("/{id}", element)
    return router
