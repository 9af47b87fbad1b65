"""
nexarest - REST ergonomics over ASGI
====================================

A thin layer for writing REST endpoints that only speak ``Request`` and
``Response``:

- Uniform responses rendered as JSON or XML from the request's content type
- Typed body binding with pluggable validation
- Composable routing with context middleware, scopes and sub-routers
- A CRUD router generator and take/skip pagination

Quick Start:
    from nexarest import Router, ok

    router = Router()

    @router.get("/ping")
    async def ping(request):
        return ok("pong")

    $ nexarest serve app:router
"""

from __future__ import annotations

__version__ = "0.1.0"
__license__ = "MIT"

from nexarest.core.config import Config, get_config
from nexarest.core.context import Context, ContextKey
from nexarest.core.dispatch import handle_action, handle_context
from nexarest.core.exceptions import DecodeError, NotFoundError, RequestError, UnsupportedMediaType
from nexarest.core.mux import Mux
from nexarest.core.request import NativeRequest, Request
from nexarest.core.response import (
    PROBLEM_TYPE,
    DataResponse,
    ErrorResponse,
    RedirectResponse,
    Response,
    accepted,
    bad_gateway,
    bad_request,
    conflict,
    created,
    expectation_failed,
    forbidden,
    found,
    gateway_timeout,
    gone,
    http_version_not_supported,
    internal_server_error,
    length_required,
    method_not_allowed,
    moved_permanently,
    multiple_choices,
    no_content,
    non_authoritative_information,
    not_acceptable,
    not_found,
    not_implemented,
    not_modified,
    ok,
    partial_content,
    precondition_failed,
    proxy_authentication_required,
    request_entity_too_large,
    request_timeout,
    request_uri_too_long,
    requested_range_not_satisfiable,
    reset_content,
    see_other,
    service_unavailable,
    temporary_redirect,
    too_many_requests,
    unauthorized,
    unprocessable_entity,
    unsupported_media_type,
    use_proxy,
)
from nexarest.core.router import Router
from nexarest.crud import CRUD, new_crud
from nexarest.middleware.paginate import PAGE, Page, current_page, paginate, paginate_middleware
from nexarest.validation import NoopValidator, StructValidator, ValidationError, Validator, rules, validated
