"""Review card service - wires the pipeline stages together.

Normalizer -> Extractor -> Metadata cache -> Card layout -> Render engine
-> Image cache. Cosmetic re-renders re-enter at the metadata cache and skip
every network fetch.
"""

import asyncio
import contextlib
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from .cache import ImageCache, MetadataCache
from .card_renderer import CardRenderer
from .config import settings
from .errors import ErrorCode, ValidationError
from .extraction import ReviewExtractor
from .models import MetadataSummary, RenderOptions, ReviewMetadata
from .rate_limit import RateLimiter
from .render_engine import HealthStatus, RenderEngine
from .url_normalizer import UrlNormalizer
from .utils import get_logger

logger = get_logger(__name__)


@dataclass
class RenderResult:
    """PNG bytes plus whether they came from the image cache."""

    png: bytes
    cache_hit: bool
    cache_key: str


class ReviewCardService:
    """Owns the shared pipeline components and exposes the public operations."""

    def __init__(
        self,
        normalizer: Optional[UrlNormalizer] = None,
        extractor: Optional[ReviewExtractor] = None,
        metadata_cache: Optional[MetadataCache] = None,
        image_cache: Optional[ImageCache] = None,
        card_renderer: Optional[CardRenderer] = None,
        engine: Optional[RenderEngine] = None,
        sweep_interval_seconds: Optional[float] = None,
        rate_limiter: Optional[RateLimiter] = None,
    ):
        self.normalizer = normalizer or UrlNormalizer()
        self.extractor = extractor or ReviewExtractor()
        self.metadata_cache = metadata_cache or MetadataCache()
        self.image_cache = image_cache or ImageCache()
        self.card_renderer = card_renderer or CardRenderer()
        self.engine = engine or RenderEngine()
        self.rate_limiter = rate_limiter
        self.sweep_interval_seconds = (
            sweep_interval_seconds
            if sweep_interval_seconds is not None
            else settings.cache_sweep_interval_seconds
        )
        self._sweep_task: Optional[asyncio.Task] = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Start the periodic cache sweep."""
        if self._sweep_task is None or self._sweep_task.done():
            self._sweep_task = asyncio.create_task(self._sweep_loop())
            logger.info(f"Cache sweep scheduled every {self.sweep_interval_seconds}s")

    async def close(self) -> None:
        """Stop the sweep task and shut the render engine down."""
        task, self._sweep_task = self._sweep_task, None
        if task is not None:
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
        await self.engine.close()

    async def __aenter__(self) -> "ReviewCardService":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def _sweep_loop(self) -> None:
        while True:
            await asyncio.sleep(self.sweep_interval_seconds)
            self.sweep_caches()

    def sweep_caches(self) -> dict:
        """Purge expired cache entries and stale rate limit windows."""
        removed = {
            "metadata": self.metadata_cache.sweep(),
            "images": self.image_cache.sweep(),
            "rate_limits": self.rate_limiter.prune() if self.rate_limiter else 0,
        }
        if any(removed.values()):
            logger.info(
                f"Swept {removed['metadata']} metadata, {removed['images']} image entries "
                f"and {removed['rate_limits']} rate limit windows"
            )
        return removed

    # ------------------------------------------------------------------
    # Metadata
    # ------------------------------------------------------------------

    async def _normalize(self, url: Optional[str]) -> str:
        return await asyncio.to_thread(self.normalizer.normalize, url or "")

    async def _extract(self, url: Optional[str]) -> ReviewMetadata:
        normalized = await self._normalize(url)
        logger.info(f"Fetching review: {normalized}")
        return await asyncio.to_thread(self.extractor.extract, normalized)

    async def fetch_metadata(self, url: Optional[str]) -> MetadataSummary:
        """
        Fetch a review and cache its metadata for later cosmetic renders.

        Args:
            url: Raw review URL or short link

        Returns:
            Summary carrying the session id (no embedded image payloads)
        """
        metadata = await self._extract(url)
        session_id = self.metadata_cache.store(metadata)
        return MetadataSummary.from_metadata(session_id, metadata)

    async def parse(self, url: Optional[str]) -> ReviewMetadata:
        """Fetch and extract a review without caching it."""
        return await self._extract(url)

    def get_metadata(self, session_id: Optional[str]) -> ReviewMetadata:
        """Full metadata for a session; raises SessionError when gone."""
        return self.metadata_cache.load(session_id)

    # ------------------------------------------------------------------
    # Rendering
    # ------------------------------------------------------------------

    async def render(
        self,
        url: Optional[str] = None,
        session_id: Optional[str] = None,
        options: Optional[RenderOptions] = None,
    ) -> RenderResult:
        """
        Render a card from a review URL or from a cached metadata session.

        Exactly one of url / session_id must be given.

        Args:
            url: Raw review URL or short link
            session_id: Identifier returned by fetch_metadata
            options: Preset, font scale, style and template version

        Returns:
            RenderResult with PNG bytes and the cache-hit flag

        Raises:
            ValidationError: MISSING_URL when zero or two sources are given
            ReviewCardError: any normalization, fetch, session or render failure
        """
        if bool(url) == bool(session_id):
            raise ValidationError(
                ErrorCode.MISSING_URL,
                "Provide exactly one of url or sessionId",
            )
        if options is None:
            options = RenderOptions()

        if session_id:
            metadata = self.metadata_cache.load(session_id)
            key = ImageCache.fingerprint(metadata.review_url or session_id, options)
            cached = self.image_cache.get(key)
            if cached is not None:
                logger.info(f"Image cache hit for session {session_id}")
                return RenderResult(png=cached, cache_hit=True, cache_key=key)
            return await self._render_and_cache(metadata, options, key)

        normalized = await self._normalize(url)
        key = ImageCache.fingerprint(normalized, options)
        cached = self.image_cache.get(key)
        if cached is not None:
            logger.info(f"Image cache hit for {normalized}")
            return RenderResult(png=cached, cache_hit=True, cache_key=key)

        logger.info(f"Image cache miss for {normalized}; fetching review")
        metadata = await asyncio.to_thread(self.extractor.extract, normalized)
        return await self._render_and_cache(metadata, options, key)

    async def _render_and_cache(
        self, metadata: ReviewMetadata, options: RenderOptions, key: str
    ) -> RenderResult:
        html = self.card_renderer.generate_html(metadata, options)
        png = await self.engine.render(html, options.preset)
        self.image_cache.put(key, png)
        logger.info(
            f"Rendered {options.serialize()} card for '{metadata.film_title}' ({len(png)} bytes)"
        )
        return RenderResult(png=png, cache_hit=False, cache_key=key)

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    async def health(self) -> dict:
        """Engine status plus cache statistics."""
        status = await self.engine.health_check()
        return {
            "status": status.value,
            "browser": "connected" if status is HealthStatus.HEALTHY else "disconnected",
            "cache": {
                "metadata": self.metadata_cache.stats(),
                "images": self.image_cache.stats(),
            },
            "engine": self.engine.stats.to_dict(),
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    def templates(self) -> dict:
        return self.card_renderer.list_templates()
