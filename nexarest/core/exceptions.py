"""
Request-layer error kinds.

These are raised inside handlers (mostly by ``Request.body``) and turned
into error responses by the handler itself or by the CRUD generator.
"""

from __future__ import annotations

from typing import Optional


class RequestError(Exception):
    """Base class for errors caused by the inbound request."""


class DecodeError(RequestError):
    """The request body is missing or cannot be decoded into the target."""


class UnsupportedMediaType(RequestError):
    """The request declares a content type the body decoder cannot read."""

    def __init__(self, content_type: Optional[str]) -> None:
        self.content_type = content_type or ""
        super().__init__(f"content type '{self.content_type}' is unsupported")


class NotFoundError(LookupError):
    """A looked-up entity does not exist."""

    def __init__(self, message: str = "entity not found") -> None:
        super().__init__(message)
