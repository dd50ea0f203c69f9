"""Inline remote images as data: URIs so rendering never goes back to the network."""

import base64
from typing import Optional

import requests

from ..config import settings
from ..models import is_embedded_image
from ..utils import fixed_retrying, get_logger

logger = get_logger(__name__)

DEFAULT_IMAGE_TYPE = "image/jpeg"


def to_data_uri(content: bytes, content_type: Optional[str]) -> str:
    """Encode raw image bytes as a base64 data: URI."""
    mime = (content_type or DEFAULT_IMAGE_TYPE).split(";", 1)[0].strip() or DEFAULT_IMAGE_TYPE
    return f"data:{mime};base64,{base64.b64encode(content).decode('ascii')}"


class ImageEmbedder:
    """Fetches images and returns them as embedded payloads."""

    def __init__(
        self,
        session: Optional[requests.Session] = None,
        timeout: Optional[float] = None,
        retries: Optional[int] = None,
        retry_delay: Optional[float] = None,
    ):
        if session is None:
            session = requests.Session()
            session.headers.update({"User-Agent": settings.user_agent})
        self._session = session
        self.timeout = timeout if timeout is not None else settings.image_fetch_timeout_seconds
        self.retries = retries if retries is not None else settings.image_fetch_retries
        self.retry_delay = (
            retry_delay if retry_delay is not None else settings.image_fetch_retry_delay_seconds
        )

    def embed(self, url: Optional[str]) -> Optional[str]:
        """
        Fetch an image and return it as a data: URI.

        Values that are already embedded are returned unchanged without a fetch.

        Args:
            url: Remote image URL

        Returns:
            data: URI, or None when the image could not be fetched
        """
        if not url:
            return None
        if is_embedded_image(url):
            return url

        try:
            response = fixed_retrying(self.retries, self.retry_delay)(self._get, url)
        except requests.RequestException as e:
            logger.warning(f"Image fetch failed for {url}: {e}")
            return None

        if not response.ok:
            logger.debug(f"Image fetch returned HTTP {response.status_code} for {url}")
            return None

        return to_data_uri(response.content, response.headers.get("content-type"))

    def _get(self, url: str) -> requests.Response:
        return self._session.get(url, headers={"Accept": "image/*"}, timeout=self.timeout)
