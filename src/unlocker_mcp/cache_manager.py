"""Resolution cache: successful stage results stored in diskcache."""

from __future__ import annotations

import hashlib
import json
import logging
import os
from pathlib import Path
from typing import TYPE_CHECKING, Any

import diskcache

if TYPE_CHECKING:
    from unlocker_mcp.resolvers.base import StageResult

logger = logging.getLogger(__name__)

DEFAULT_DATA_DIR = "/app/data"
DEFAULT_SIZE_LIMIT = int(2.5e8)  # 250MB

# Unlocked links are short-lived tokens
DEFAULT_TTL = 600  # 10 minutes
STABLE_LINK_TTL = 3600  # gdflix/drivehub links change rarely
TIMER_LINK_TTL = 120  # timer pages rotate quickly

STABLE_PATTERNS = ("gdflix", "drivehub")
TIMER_PATTERNS = ("gadgetsweb", "review-tech", "ngwin", "cryptoinsights")


def get_data_directory(subdir: str) -> Path:
    """Return ``$DATA_DIR/<subdir>``, created on demand.

    Falls back to ``./.cache/<subdir>`` when the data directory is not writable
    (local runs outside the container).
    """
    data_dir = os.getenv("DATA_DIR", DEFAULT_DATA_DIR)
    path = Path(data_dir) / subdir

    try:
        path.mkdir(parents=True, exist_ok=True)
    except OSError:
        path = Path.cwd() / ".cache" / subdir
        path.mkdir(parents=True, exist_ok=True)
        logger.info(f"{data_dir} not writable, storing {subdir} in {path}")

    return path


class CacheManager:
    """Cache of successful resolver answers keyed by (resolver, url).

    Failures are never cached. Entries expire by link family and the cache is
    bounded by size with LRU eviction. Cache errors degrade to misses.
    """

    def __init__(
        self,
        cache_dir: str | Path | None = None,
        size_limit: int = DEFAULT_SIZE_LIMIT,
    ) -> None:
        """Open the cache.

        Args:
            cache_dir: Cache directory (default: $DATA_DIR/resolutions)
            size_limit: Maximum size in bytes (default: 250MB)
        """
        self.cache_dir = Path(cache_dir) if cache_dir is not None else get_data_directory(
            "resolutions"
        )
        self.size_limit = size_limit
        self.cache = diskcache.Cache(
            directory=str(self.cache_dir),
            size_limit=size_limit,
            eviction_policy="least-recently-used",
            statistics=True,
            cull_limit=10,
        )
        logger.info(f"Resolution cache opened at {self.cache_dir}")

    @staticmethod
    def generate_cache_key(url: str, **kwargs: Any) -> str:
        """Hash a URL plus extra parameters (e.g. resolver name) into a key."""
        key_str = json.dumps({"url": url, **kwargs}, sort_keys=True)
        return hashlib.sha256(key_str.encode()).hexdigest()

    @staticmethod
    def get_ttl_for_url(url: str) -> int:
        """TTL in seconds for a resolution of url."""
        url_lower = url.lower()
        if any(pattern in url_lower for pattern in STABLE_PATTERNS):
            return STABLE_LINK_TTL
        if any(pattern in url_lower for pattern in TIMER_PATTERNS):
            return TIMER_LINK_TTL
        return DEFAULT_TTL

    def get_result(self, resolver: str, url: str) -> StageResult | None:
        """Return the cached answer of resolver for url, if any."""
        key = self.generate_cache_key(url=url, resolver=resolver)
        try:
            return self.cache.get(key, retry=True)
        except Exception as e:
            logger.error(f"Resolution cache read failed for {resolver}: {e}")
            return None

    def put_result(self, resolver: str, url: str, result: StageResult) -> bool:
        """Store a successful answer; failed results are ignored."""
        if not result.success:
            return False
        key = self.generate_cache_key(url=url, resolver=resolver)
        try:
            return self.cache.set(key, result, expire=self.get_ttl_for_url(url), retry=True)
        except Exception as e:
            logger.error(f"Resolution cache write failed for {resolver}: {e}")
            return False

    def clear(self) -> int:
        """Drop every entry and reset hit statistics.

        Returns:
            Number of entries removed
        """
        removed = self.cache.clear(retry=True)
        self.cache.stats(reset=True)
        logger.info(f"Resolution cache cleared ({removed} entries)")
        return removed

    def expire(self) -> int:
        """Remove expired entries and return how many were dropped."""
        return self.cache.expire()

    def get_stats(self) -> dict[str, int | float | str]:
        """Entry count, size and hit rate for the stats endpoint."""
        volume = self.cache.volume()
        hits, misses = self.cache.stats(enable=True)
        lookups = hits + misses
        return {
            "entry_count": len(self.cache),
            "size_mb": round(volume / (1024 * 1024), 2),
            "size_limit_mb": round(self.size_limit / (1024 * 1024), 2),
            "hits": hits,
            "misses": misses,
            "hit_rate": round(hits / lookups, 4) if lookups else 0.0,
            "cache_dir": str(self.cache_dir),
        }

    def close(self) -> None:
        self.cache.close()

    def __enter__(self) -> CacheManager:
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()


# Global cache manager instance
_cache_manager: CacheManager | None = None


def get_cache_manager() -> CacheManager:
    """Get or create the global resolution cache."""
    global _cache_manager

    if _cache_manager is None:
        _cache_manager = CacheManager()

    return _cache_manager
