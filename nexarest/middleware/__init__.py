"""
nexarest Middleware
===================

Ready-made context handlers.
"""

from nexarest.middleware.paginate import (
    PAGE,
    Page,
    current_page,
    paginate,
    paginate_middleware,
)

__all__ = [
    "PAGE",
    "Page",
    "current_page",
    "paginate",
    "paginate_middleware",
]
