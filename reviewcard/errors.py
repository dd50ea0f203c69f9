"""Error taxonomy for the review card pipeline.

Every failure surfaced to a caller carries a stable machine-readable code,
a human-readable message and an optional detail string.
"""

from enum import Enum
from typing import Optional


class ErrorCode(str, Enum):
    """Stable machine-readable error codes."""

    # Input validation
    EMPTY_URL = "EMPTY_URL"
    INVALID_URL_FORMAT = "INVALID_URL_FORMAT"
    INVALID_PROTOCOL = "INVALID_PROTOCOL"
    INVALID_DOMAIN = "INVALID_DOMAIN"
    NOT_REVIEW_URL = "NOT_REVIEW_URL"
    MISSING_URL = "MISSING_URL"
    INVALID_PRESET = "INVALID_PRESET"
    INVALID_REQUEST = "INVALID_REQUEST"

    # Upstream fetch
    ACCESS_DENIED = "ACCESS_DENIED"
    NOT_FOUND = "NOT_FOUND"
    HTTP_ERROR = "HTTP_ERROR"
    FETCH_FAILED = "FETCH_FAILED"
    INVALID_REDIRECT = "INVALID_REDIRECT"
    REDIRECT_FAILED = "REDIRECT_FAILED"

    # Session / cache
    MISSING_SESSION = "MISSING_SESSION"
    SESSION_EXPIRED = "SESSION_EXPIRED"

    # Render
    RENDER_TIMEOUT = "RENDER_TIMEOUT"
    RENDER_FAILED = "RENDER_FAILED"

    # Rate limiting
    RATE_LIMITED = "RATE_LIMITED"

    INTERNAL_ERROR = "INTERNAL_ERROR"


class ReviewCardError(Exception):
    """Base exception for all pipeline failures."""

    def __init__(self, code: ErrorCode, message: str, details: Optional[str] = None):
        super().__init__(message)
        self.code = code
        self.message = message
        self.details = details

    def to_dict(self) -> dict:
        """Convert to the wire error shape."""
        data = {"error": self.message, "code": self.code.value}
        if self.details:
            data["details"] = self.details
        return data

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.code.value}: {self.message})"


class ValidationError(ReviewCardError):
    """Malformed or incomplete request (MISSING_URL, INVALID_PRESET, INVALID_REQUEST)."""


class UrlNormalizationError(ReviewCardError):
    """Input URL rejected, or short-link redirect could not be resolved."""


class ReviewFetchError(ReviewCardError):
    """Primary review page could not be fetched."""


class SessionError(ReviewCardError):
    """Metadata session missing or expired; the caller should re-fetch metadata."""


class RenderError(ReviewCardError):
    """Render engine failure (RENDER_TIMEOUT or RENDER_FAILED)."""


class RateLimitError(ReviewCardError):
    """Client exceeded its request budget."""

    def __init__(self, message: str, retry_after: int, details: Optional[str] = None):
        super().__init__(ErrorCode.RATE_LIMITED, message, details)
        self.retry_after = retry_after
