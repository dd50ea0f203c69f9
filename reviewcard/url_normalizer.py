"""URL validation and canonicalization for review links.

Accepts canonical review URLs (letterboxd.com/<user>/film/<slug>/...) and
short links (boxd.it/...), which are resolved with a single redirect-following
request. Every other input is rejected before any network call.
"""

from typing import Iterable, Optional
from urllib.parse import urlparse

import requests

from .config import settings
from .errors import ErrorCode, UrlNormalizationError
from .utils import get_logger

logger = get_logger(__name__)

_ALLOWED_SCHEMES = {"http", "https"}

# Fixed marker segment: /<username>/film/<slug>/
REVIEW_MARKER_SEGMENT = "film"


class UrlNormalizer:
    """Validates and canonicalizes review URLs."""

    def __init__(
        self,
        session: Optional[requests.Session] = None,
        allowed_hosts: Optional[Iterable[str]] = None,
        canonical_host: Optional[str] = None,
        short_link_host: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        if session is None:
            session = requests.Session()
            session.headers.update({"User-Agent": settings.user_agent})
        self._session = session
        self.allowed_hosts = {h.lower() for h in (allowed_hosts or settings.allowed_hosts)}
        self.canonical_host = (canonical_host or settings.canonical_host).lower()
        self.short_link_host = (short_link_host or settings.short_link_host).lower()
        self.timeout = timeout or settings.fetch_timeout_seconds

    def normalize(self, input_url: str) -> str:
        """
        Validate a review link and return its canonical form.

        Args:
            input_url: Raw user-supplied URL (canonical or short link)

        Returns:
            Canonical https URL with a trailing slash

        Raises:
            UrlNormalizationError: With one of EMPTY_URL, INVALID_URL_FORMAT,
                INVALID_PROTOCOL, INVALID_DOMAIN, NOT_REVIEW_URL,
                INVALID_REDIRECT, REDIRECT_FAILED
        """
        trimmed = (input_url or "").strip()
        if not trimmed:
            raise UrlNormalizationError(ErrorCode.EMPTY_URL, "URL cannot be empty")

        try:
            parsed = urlparse(trimmed)
            hostname = (parsed.hostname or "").lower()
        except ValueError:
            raise UrlNormalizationError(
                ErrorCode.INVALID_URL_FORMAT, "Invalid URL format"
            ) from None

        if not parsed.scheme:
            raise UrlNormalizationError(ErrorCode.INVALID_URL_FORMAT, "Invalid URL format")

        # mailto:, javascript:, file:// and data: parse with a scheme but no host
        if parsed.scheme.lower() not in _ALLOWED_SCHEMES:
            raise UrlNormalizationError(
                ErrorCode.INVALID_PROTOCOL, "URL must use HTTP or HTTPS protocol"
            )

        if not parsed.netloc or not hostname:
            raise UrlNormalizationError(ErrorCode.INVALID_URL_FORMAT, "Invalid URL format")

        if hostname not in self.allowed_hosts:
            raise UrlNormalizationError(
                ErrorCode.INVALID_DOMAIN,
                f"URL must be from {self.canonical_host} or {self.short_link_host}",
                details=hostname,
            )

        if hostname == self.short_link_host:
            resolved = self._follow_redirect(trimmed)
            return self._canonical_review_url(resolved)

        return self._canonical_review_url(trimmed)

    def _follow_redirect(self, short_url: str) -> str:
        """Resolve a short link with one redirect-following request."""
        logger.info(f"Resolving short link: {short_url}")
        try:
            response = self._session.head(
                short_url, allow_redirects=True, timeout=self.timeout
            )
            final_url = response.url
        except requests.RequestException as e:
            logger.warning(f"Short link resolution failed for {short_url}: {e}")
            raise UrlNormalizationError(
                ErrorCode.REDIRECT_FAILED, "Failed to resolve short URL", details=str(e)
            ) from e

        final_host = (urlparse(final_url).hostname or "").lower()
        if not self._is_canonical_host(final_host):
            raise UrlNormalizationError(
                ErrorCode.INVALID_REDIRECT,
                f"Short URL did not redirect to {self.canonical_host}",
                details=final_url,
            )

        logger.debug(f"Short link {short_url} -> {final_url}")
        return final_url

    def _is_canonical_host(self, hostname: str) -> bool:
        return hostname == self.canonical_host or hostname.endswith("." + self.canonical_host)

    def _canonical_review_url(self, url: str) -> str:
        """Check the review path shape and rebuild the URL in canonical form."""
        parts = path_segments(url)
        if len(parts) < 3 or parts[1] != REVIEW_MARKER_SEGMENT:
            raise UrlNormalizationError(
                ErrorCode.NOT_REVIEW_URL,
                "URL does not appear to be a review",
                details=url,
            )
        return f"https://{self.canonical_host}/{'/'.join(parts)}/"


def path_segments(url: str) -> list[str]:
    """Non-empty path segments of a URL."""
    return [p for p in urlparse(url).path.split("/") if p]


def extract_username(normalized_url: str) -> Optional[str]:
    """Extract the review author's username (first path segment)."""
    try:
        parts = path_segments(normalized_url)
    except ValueError:
        return None
    return parts[0] if parts else None
