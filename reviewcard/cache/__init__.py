"""TTL/LRU caches for review metadata sessions and rendered images."""

from .stores import ImageCache, MetadataCache, new_session_id
from .ttl_cache import CacheEntry, TTLCache

__all__ = [
    "CacheEntry",
    "ImageCache",
    "MetadataCache",
    "TTLCache",
    "new_session_id",
]
