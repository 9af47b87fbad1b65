"""
nexarest Utils Package
======================

Logging.
"""

from __future__ import annotations

from nexarest.utils.logger import Logger, LogLevel, configure_logging, get_logger

__all__ = [
    "Logger",
    "LogLevel",
    "configure_logging",
    "get_logger",
]
