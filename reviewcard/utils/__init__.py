"""Utility modules for reviewcard."""

from .logging_config import (
    RequestContextFilter,
    bind_request,
    current_request,
    get_logger,
    reset_request,
    setup_logging,
)
from .retry import fixed_retrying

__all__ = [
    "RequestContextFilter",
    "bind_request",
    "current_request",
    "get_logger",
    "reset_request",
    "setup_logging",
    "fixed_retrying",
]
