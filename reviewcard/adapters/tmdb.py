"""Poster lookup adapter interface and TMDB implementation.

The lookup is a best-effort upgrade of the poster scraped from the review
page. It matches on title and optional year only; no further verification of
the match is attempted.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

import requests

from ..config import settings
from ..utils import fixed_retrying, get_logger

logger = get_logger(__name__)

TMDB_API_BASE = "https://api.themoviedb.org/3"
TMDB_IMAGE_BASE = "https://image.tmdb.org/t/p"

# Poster sizes available: w92, w154, w185, w342, w500, w780, original
POSTER_SIZE = "w500"


@dataclass
class MovieMatch:
    """First search hit for a title/year query."""

    tmdb_id: int
    title: str
    release_date: Optional[str] = None
    poster_path: Optional[str] = None

    @property
    def year(self) -> Optional[int]:
        if self.release_date and len(self.release_date) >= 4 and self.release_date[:4].isdigit():
            return int(self.release_date[:4])
        return None

    @property
    def poster_url(self) -> Optional[str]:
        if not self.poster_path:
            return None
        return f"{TMDB_IMAGE_BASE}/{POSTER_SIZE}{self.poster_path}"


class PosterLookup(ABC):
    """Abstract source of higher-quality film posters.

    Implementations must not raise for lookup failures; they return None.
    """

    @abstractmethod
    def find_poster_url(self, title: str, year: Optional[int] = None) -> Optional[str]:
        """Return a poster image URL for the film, or None.

        Args:
            title: Film title as extracted from the review
            year: Release year if known

        Returns:
            Absolute image URL or None
        """
        pass


class NullPosterLookup(PosterLookup):
    """Lookup used when no external database is configured."""

    def find_poster_url(self, title: str, year: Optional[int] = None) -> Optional[str]:
        return None


class TMDBPosterLookup(PosterLookup):
    """TMDB /search/movie implementation."""

    def __init__(
        self,
        api_key: str,
        session: Optional[requests.Session] = None,
        timeout: Optional[float] = None,
        retries: Optional[int] = None,
        retry_delay: Optional[float] = None,
    ):
        self.api_key = api_key
        self._session = session or requests.Session()
        self.timeout = timeout if timeout is not None else settings.image_fetch_timeout_seconds
        self.retries = retries if retries is not None else settings.image_fetch_retries
        self.retry_delay = (
            retry_delay if retry_delay is not None else settings.image_fetch_retry_delay_seconds
        )

    def search_movie(self, title: str, year: Optional[int] = None) -> Optional[MovieMatch]:
        """
        Search for a movie by title and optional year.

        A year-filtered search with no results is retried once without the year.

        Returns:
            First (best) match or None
        """
        params = {
            "api_key": self.api_key,
            "query": title,
            "language": "en-US",
            "page": "1",
            "include_adult": "false",
        }
        if year:
            params["year"] = str(year)

        try:
            response = fixed_retrying(self.retries, self.retry_delay)(
                self._session.get,
                f"{TMDB_API_BASE}/search/movie",
                params=params,
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            logger.warning(f"TMDB search failed for '{title}': {e}")
            return None

        if not response.ok:
            logger.error(f"TMDB API error: {response.status_code}")
            return None

        try:
            results = response.json().get("results") or []
        except ValueError as e:
            logger.warning(f"TMDB returned invalid JSON for '{title}': {e}")
            return None

        if not results:
            if year:
                logger.info(f"No TMDB results for '{title}' ({year}), trying without year...")
                return self.search_movie(title)
            return None

        first = results[0]
        match = MovieMatch(
            tmdb_id=first.get("id", 0),
            title=first.get("title", ""),
            release_date=first.get("release_date"),
            poster_path=first.get("poster_path"),
        )
        logger.info(f"Found TMDB match: '{match.title}' ({match.year or 'unknown year'})")
        return match

    def find_poster_url(self, title: str, year: Optional[int] = None) -> Optional[str]:
        match = self.search_movie(title, year)
        return match.poster_url if match else None


def poster_lookup_from_settings() -> PosterLookup:
    """Build the configured poster lookup; disabled without an API key."""
    if not settings.tmdb_enabled:
        logger.warning("TMDB_API_KEY not configured. Posters will not be fetched from TMDB.")
        return NullPosterLookup()
    return TMDBPosterLookup(api_key=settings.tmdb_api_key)
