"""Review page fetching and metadata extraction."""

from typing import Optional

import requests

from ..adapters import PosterLookup, poster_lookup_from_settings
from ..config import settings
from ..errors import ErrorCode, ReviewFetchError
from ..models import ReviewMetadata, is_embedded_image
from ..utils import get_logger
from .images import ImageEmbedder
from .strategies import parse_html

logger = get_logger(__name__)

PAGE_ACCEPT = "text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8"


class ReviewExtractor:
    """Fetches a review page and derives ReviewMetadata from it.

    Failures on the review page itself are fatal. Failures fetching
    supplementary images (poster upgrade, avatar) only degrade the result.
    """

    def __init__(
        self,
        session: Optional[requests.Session] = None,
        poster_lookup: Optional[PosterLookup] = None,
        embedder: Optional[ImageEmbedder] = None,
        timeout: Optional[float] = None,
    ):
        if session is None:
            session = requests.Session()
            session.headers.update({"User-Agent": settings.user_agent})
        self._session = session
        self.poster_lookup = poster_lookup or poster_lookup_from_settings()
        self.embedder = embedder or ImageEmbedder()
        self.timeout = timeout or settings.fetch_timeout_seconds

    def extract(self, url: str) -> ReviewMetadata:
        """
        Fetch and parse a review, then inline its images.

        Args:
            url: Canonical review URL

        Returns:
            ReviewMetadata with poster/avatar embedded where possible

        Raises:
            ReviewFetchError: ACCESS_DENIED, NOT_FOUND, HTTP_ERROR or FETCH_FAILED
        """
        html = self.fetch_page(url)
        metadata = parse_html(html, url)
        logger.info(
            f"Extracted review of '{metadata.film_title}' ({metadata.film_year or '?'}) "
            f"by {metadata.author_username}"
        )

        poster = self.upgrade_poster(metadata)
        if poster is not None:
            metadata.poster_url = poster

        avatar = self.embed_avatar(metadata)
        if avatar is not None:
            metadata.avatar_url = avatar

        return metadata

    def fetch_page(self, url: str) -> str:
        """Fetch the review page HTML, mapping failures to error codes."""
        headers = {
            "Accept": PAGE_ACCEPT,
            "Accept-Language": "en-US,en;q=0.5",
        }
        try:
            response = self._session.get(url, headers=headers, timeout=self.timeout)
        except requests.RequestException as e:
            logger.error(f"Failed to fetch review page {url}: {e}")
            raise ReviewFetchError(
                ErrorCode.FETCH_FAILED, "Failed to fetch review page", details=str(e)
            ) from e

        status = response.status_code
        if status == 403:
            raise ReviewFetchError(
                ErrorCode.ACCESS_DENIED, "Access denied by review site - may be rate limited"
            )
        if status == 404:
            raise ReviewFetchError(ErrorCode.NOT_FOUND, "Review not found")
        if not response.ok:
            raise ReviewFetchError(ErrorCode.HTTP_ERROR, f"HTTP error: {status}")

        return response.text

    def upgrade_poster(self, metadata: ReviewMetadata) -> Optional[str]:
        """
        Find the best embeddable poster for the review.

        Tries the external database poster first, then the poster scraped from
        the page.

        Returns:
            Embedded poster, or None to keep the current value
        """
        if is_embedded_image(metadata.poster_url):
            return None

        remote = self.poster_lookup.find_poster_url(metadata.film_title, metadata.film_year)
        if remote:
            embedded = self.embedder.embed(remote)
            if embedded:
                logger.info(f"Fetched poster from TMDB for: {metadata.film_title}")
                return embedded
        else:
            logger.info(f"No TMDB poster found for: {metadata.film_title}")

        if metadata.poster_url:
            return self.embedder.embed(metadata.poster_url)
        return None

    def embed_avatar(self, metadata: ReviewMetadata) -> Optional[str]:
        """Embedded avatar, or None to keep the current value."""
        if not metadata.avatar_url or is_embedded_image(metadata.avatar_url):
            return None
        embedded = self.embedder.embed(metadata.avatar_url)
        if embedded is None:
            logger.debug(f"Keeping remote avatar URL for {metadata.author_username}")
        return embedded
