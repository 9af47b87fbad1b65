"""
nexarest Core Module
====================

Contains the building blocks of the REST layer:
- Response: uniform handler result with JSON/XML rendering
- Request: narrow request view with typed body binding
- Dispatch: action and context handler adapters
- Router: composable routing over the mux
- Context: typed propagation context
- Config: configuration management
"""

from nexarest.core.config import Config, get_config
from nexarest.core.context import Context, ContextKey
from nexarest.core.dispatch import handle_action, handle_context, render
from nexarest.core.exceptions import DecodeError, NotFoundError, RequestError, UnsupportedMediaType
from nexarest.core.http import HTTPReply, HTTPRequest
from nexarest.core.mux import Mux
from nexarest.core.pipeline import Pipeline
from nexarest.core.request import NativeRequest, Request
from nexarest.core.response import DataResponse, ErrorResponse, RedirectResponse, Response
from nexarest.core.router import Router

__all__ = [
    "Config",
    "get_config",
    "Context",
    "ContextKey",
    "handle_action",
    "handle_context",
    "render",
    "DecodeError",
    "NotFoundError",
    "RequestError",
    "UnsupportedMediaType",
    "HTTPReply",
    "HTTPRequest",
    "Mux",
    "Pipeline",
    "NativeRequest",
    "Request",
    "DataResponse",
    "ErrorResponse",
    "RedirectResponse",
    "Response",
    "Router",
]
