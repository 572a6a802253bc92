"""Versioned resource cache for retrieved content, using diskcache."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import diskcache

from webfetch_mcp.config import DEFAULT_MAX_VERSIONS, get_settings, resolve_data_dir
from webfetch_mcp.models.retrieval import CachedResource, ContentPage, StrategyName, utc_now
from webfetch_mcp.utils import paginate_content

# Configure logging
logger = logging.getLogger(__name__)

DEFAULT_SIZE_LIMIT = int(1e9)  # 1GB
CACHE_SIZE_WARNING_THRESHOLD = int(9e8)  # 900MB (90% of 1GB)
RESOURCE_SUBDIR = "resources"
SEQUENCE_SUBDIR = "sequences"


class ResourceCache:
    """Thread-safe and process-safe store of retrieved content, keyed by URL.

    Every write for a URL creates a new immutable version with a higher
    ``sequence``; lookups return the newest one. Each URL's history is stored
    under a single key, so eviction drops a URL's versions together.

    Sequence counters live in a separate, never-evicted cache, so a URL's
    sequence keeps increasing after deletion, clearing, expiry or eviction.

    Features:
    - Persistent disk-based storage with SQLite backend
    - Bounded per-URL history (``max_versions``)
    - Global size limit with LRU eviction
    - Optional TTL per URL history
    - Hit/miss statistics for monitoring
    """

    def __init__(
        self,
        cache_dir: str | Path | None = None,
        size_limit: int = DEFAULT_SIZE_LIMIT,
        max_versions: int = DEFAULT_MAX_VERSIONS,
        ttl: int | None = None,
        eviction_policy: str = "least-recently-used",
        enable_statistics: bool = True,
    ) -> None:
        """Initialize the resource cache.

        Args:
            cache_dir: Directory for cache storage (default: <data dir>/resources)
            size_limit: Maximum cache size in bytes (default: 1GB)
            max_versions: Versions kept per URL, oldest dropped first (default: 5)
            ttl: Seconds before a URL's history expires (None = never)
            eviction_policy: Eviction policy when size limit reached (default: LRU)
            enable_statistics: Enable hit/miss statistics tracking
        """
        if max_versions < 1:
            raise ValueError("max_versions must be >= 1")

        if cache_dir is None:
            cache_dir = resolve_data_dir() / RESOURCE_SUBDIR
        else:
            cache_dir = Path(cache_dir)

        self.cache_dir = cache_dir
        self.size_limit = size_limit
        self.max_versions = max_versions
        self.ttl = ttl

        try:
            self.cache = diskcache.Cache(
                directory=str(cache_dir),
                size_limit=size_limit,
                eviction_policy=eviction_policy,
                statistics=enable_statistics,
                cull_limit=10,  # Remove up to 10 items when size limit reached
            )
            self.sequences = diskcache.Cache(
                directory=str(cache_dir / SEQUENCE_SUBDIR),
                eviction_policy="none",
            )
            logger.info(
                f"Resource cache initialized at {cache_dir} with {size_limit / 1e9:.1f}GB limit"
            )
        except Exception as e:
            logger.error(f"Failed to initialize resource cache: {e}")
            raise

        self.check_size()

    @staticmethod
    def _key(url: str) -> tuple[str, str]:
        return ("resource", url)

    def _history(self, url: str) -> list[CachedResource]:
        try:
            history = self.cache.get(self._key(url), default=None, retry=True)
        except Exception as e:
            logger.error(f"Cache get error: {e}")
            return []
        return list(history or [])

    def write(
        self,
        url: str,
        content: str,
        strategy_used: StrategyName,
        mime_type: str = "text/html",
    ) -> int:
        """Store a new version of a URL's content.

        Args:
            url: The URL the content was retrieved from
            content: The retrieved content
            strategy_used: Strategy that produced the content
            mime_type: MIME type of the content

        Returns:
            Sequence number of the new version
        """
        key = self._key(url)
        with self.cache.transact(retry=True):
            # pop reads without touching hit/miss statistics; the key is set again below
            history = list(self.cache.pop(key, default=None, retry=True) or [])
            sequence = self.sequences.incr(url, retry=True)
            resource = CachedResource(
                url=url,
                content=content,
                mime_type=mime_type,
                strategy_used=strategy_used,
                scraped_at=utc_now(),
                sequence=sequence,
            )
            history.append(resource)
            history.sort(key=lambda r: r.sequence, reverse=True)
            self.cache.set(key, history[: self.max_versions], expire=self.ttl, retry=True)

        logger.debug(f"Cached {url} as version {sequence} ({len(content)} chars)")
        return sequence

    def find_latest(self, url: str) -> CachedResource | None:
        """Return the newest cached version of a URL, if any."""
        history = self._history(url)
        if history:
            logger.debug(f"Resource cache HIT for {url} (version {history[0].sequence})")
            return history[0]
        logger.debug(f"Resource cache MISS for {url}")
        return None

    def find_all(self, url: str) -> list[CachedResource]:
        """Return every cached version of a URL, newest first."""
        return sorted(self._history(url), key=lambda r: r.sequence, reverse=True)

    def find_version(self, url: str, sequence: int) -> CachedResource | None:
        """Return a specific cached version of a URL, if still held."""
        for resource in self._history(url):
            if resource.sequence == sequence:
                return resource
        return None

    def read_page(
        self,
        url: str,
        start_index: int = 0,
        max_chars: int | None = None,
        sequence: int | None = None,
    ) -> ContentPage | None:
        """Read a window of a cached version's content.

        Args:
            url: Cached URL
            start_index: Character index to start from
            max_chars: Maximum characters to return (None = rest of content)
            sequence: Version to read (default: newest)

        Returns:
            ContentPage, or None if the URL (or version) is not cached
        """
        if sequence is None:
            resource = self.find_latest(url)
        else:
            resource = self.find_version(url, sequence)
        if resource is None:
            return None
        return paginate_content(resource.content, start_index, max_chars)

    def delete(self, url: str) -> bool:
        """Delete every cached version of a URL.

        The URL's sequence counter is kept.

        Returns:
            True if the URL was cached, False otherwise
        """
        try:
            return self.cache.delete(self._key(url), retry=True)
        except Exception as e:
            logger.error(f"Cache delete error: {e}")
            return False

    def clear(self) -> int:
        """Clear all entries from cache and reset statistics.

        Sequence counters are kept, so later writes continue numbering.

        Returns:
            Number of URLs removed
        """
        try:
            removed = self.cache.clear(retry=True)
            self.cache.stats(reset=True)
            logger.info("Resource cache cleared successfully and statistics reset")
            return removed
        except Exception as e:
            logger.error(f"Cache clear error: {e}")
            return 0

    def get_stats(self) -> dict[str, Any]:
        """Get cache statistics.

        Returns:
            Dictionary with cache statistics
        """
        try:
            volume = self.cache.volume()
            hits, misses = self.cache.stats(enable=True)
            hit_rate = hits / (hits + misses) if (hits + misses) > 0 else 0.0

            return {
                "url_count": len(self.cache),
                "size_bytes": volume,
                "size_mb": round(volume / (1024 * 1024), 2),
                "size_limit_mb": round(self.size_limit / (1024 * 1024), 2),
                "utilization_percent": round((volume / self.size_limit) * 100, 2),
                "max_versions": self.max_versions,
                "ttl": self.ttl,
                "hits": hits,
                "misses": misses,
                "hit_rate": round(hit_rate, 4),
                "cache_dir": str(self.cache_dir),
            }
        except Exception as e:
            logger.error(f"Error getting cache stats: {e}")
            return {"error": str(e)}

    def check_size(self) -> None:
        """Check cache size and log warning if approaching limit."""
        try:
            volume = self.cache.volume()
            volume_mb = volume / (1024 * 1024)

            logger.debug(f"Current resource cache size: {volume_mb:.2f} MB")

            if volume >= CACHE_SIZE_WARNING_THRESHOLD:
                logger.warning(
                    f"Resource cache size ({volume_mb:.2f} MB) exceeds warning threshold "
                    f"({CACHE_SIZE_WARNING_THRESHOLD / (1024 * 1024):.0f} MB). "
                    "Automatic eviction will occur on next write."
                )
        except Exception as e:
            logger.error(f"Error checking cache size: {e}")

    def close(self) -> None:
        """Close the cache and release resources."""
        try:
            self.cache.close()
            self.sequences.close()
            logger.info("Resource cache closed successfully")
        except Exception as e:
            logger.error(f"Error closing resource cache: {e}")

    def __enter__(self) -> ResourceCache:
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()


# Global resource cache instance
_resource_cache: ResourceCache | None = None


def get_resource_cache() -> ResourceCache:
    """Get or create the global resource cache instance."""
    global _resource_cache

    if _resource_cache is None:
        settings = get_settings()
        cache_dir = resolve_data_dir(settings.data_dir) / RESOURCE_SUBDIR
        _resource_cache = ResourceCache(
            cache_dir=cache_dir,
            max_versions=settings.cache_max_versions,
            ttl=settings.cache_ttl,
        )

    return _resource_cache
