"""Metadata (session) cache and rendered image cache."""

import hashlib
import secrets
from typing import Optional

from ..config import settings
from ..errors import ErrorCode, SessionError
from ..models import RenderOptions, ReviewMetadata
from ..utils import get_logger
from .ttl_cache import Clock, TTLCache

logger = get_logger(__name__)

SESSION_PREFIX = "sess_"


def new_session_id() -> str:
    """Opaque, unguessable session identifier."""
    return f"{SESSION_PREFIX}{secrets.token_urlsafe(18)}"


class MetadataCache:
    """Short-lived session store so cosmetic re-renders skip network fetches."""

    def __init__(
        self,
        ttl_seconds: Optional[float] = None,
        max_entries: Optional[int] = None,
        clock: Optional[Clock] = None,
    ):
        self._cache: TTLCache[ReviewMetadata] = TTLCache(
            ttl_seconds=ttl_seconds or settings.metadata_cache_ttl_seconds,
            max_entries=max_entries or settings.metadata_cache_max_entries,
            name="metadata-cache",
            clock=clock,
        )

    def store(self, metadata: ReviewMetadata) -> str:
        """Cache metadata under a fresh session identifier and return it."""
        session_id = new_session_id()
        while session_id in self._cache:
            session_id = new_session_id()
        self._cache.set(session_id, metadata)
        logger.info(f"Cached metadata for session {session_id}, total cached: {len(self._cache)}")
        return session_id

    def load(self, session_id: Optional[str]) -> ReviewMetadata:
        """
        Return the metadata for a session.

        Raises:
            SessionError: MISSING_SESSION for an empty id, SESSION_EXPIRED when
                the entry has expired or been evicted
        """
        if not session_id:
            raise SessionError(ErrorCode.MISSING_SESSION, "Session ID is required")
        metadata = self._cache.get(session_id)
        if metadata is None:
            raise SessionError(
                ErrorCode.SESSION_EXPIRED, "Session expired - please generate again"
            )
        return metadata

    def sweep(self) -> int:
        return self._cache.sweep()

    def clear(self) -> None:
        self._cache.clear()

    @property
    def size(self) -> int:
        return len(self._cache)

    def stats(self) -> dict:
        return self._cache.stats()


class ImageCache:
    """Content-addressed store of rendered PNG bytes."""

    def __init__(
        self,
        ttl_seconds: Optional[float] = None,
        max_entries: Optional[int] = None,
        clock: Optional[Clock] = None,
    ):
        self._cache: TTLCache[bytes] = TTLCache(
            ttl_seconds=ttl_seconds or settings.image_cache_ttl_seconds,
            max_entries=max_entries or settings.image_cache_max_entries,
            name="image-cache",
            clock=clock,
        )

    @staticmethod
    def fingerprint(source: str, options: RenderOptions) -> str:
        """
        Deterministic key for (source, style options, template version).

        Args:
            source: Normalized review URL, or a metadata session id
            options: Render options

        Returns:
            Hex SHA-256 digest
        """
        material = "::".join([source, options.serialize(), options.template_version])
        return hashlib.sha256(material.encode("utf-8")).hexdigest()

    def get(self, key: str) -> Optional[bytes]:
        return self._cache.get(key)

    def put(self, key: str, image: bytes) -> None:
        self._cache.set(key, image)

    def sweep(self) -> int:
        return self._cache.sweep()

    def clear(self) -> None:
        self._cache.clear()

    @property
    def size(self) -> int:
        return len(self._cache)

    def stats(self) -> dict:
        return self._cache.stats()
