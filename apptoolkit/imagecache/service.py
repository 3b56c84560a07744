"""Image cache service module.

This module provides the public image cache API:
- cache_from_url(): Return a remote image, fetching only on a miss
- cache_from_asset(): Return a bundled asset, loading only on a miss
- get_from_cache(): Look up a key in memory, then on disk (never fetches)
- clear(): Drop every cached payload
- report_size(): Human-readable size of the disk tier
- cleanup(): Age and size eviction, run after every successful write

Filesystem failures during maintenance are logged and swallowed: the cache
may temporarily hold stale or oversized content, but reads and writes keep
working. Fetch failures propagate to the caller.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from types import TracebackType
from typing import TYPE_CHECKING

from apptoolkit.imagecache.cache_key import derive_key, is_cache_key
from apptoolkit.imagecache.disk import CacheIOError, DiskStore, format_size
from apptoolkit.imagecache.fetch import AssetBundle, HttpFetcher
from apptoolkit.imagecache.memory import MemoryStore

if TYPE_CHECKING:
    from apptoolkit.config import Settings

logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class CleanupReport:
    """Keys removed by one maintenance pass."""

    expired: list[str] = field(default_factory=list)
    reduced: list[str] = field(default_factory=list)

    @property
    def removed(self) -> list[str]:
        return self.expired + self.reduced


@dataclass
class CacheStats:
    """Snapshot of cache occupancy."""

    disk_entries: int
    disk_bytes: int
    memory_items: int
    max_cache_size_bytes: int
    max_memory_items: int


class ImageCache:
    """Two-tier (memory + disk) cache for image payloads.

    Entries are keyed by derive_key(source). The disk file is the durable
    copy; the memory slot only speeds up repeated reads.
    """

    def __init__(
        self,
        disk: DiskStore,
        memory: MemoryStore,
        fetcher: HttpFetcher | None = None,
        assets: AssetBundle | None = None,
        max_cache_size_bytes: int = 100 * 1024 * 1024,
        max_age_days: int = 7,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self.disk = disk
        self.memory = memory
        self.fetcher = fetcher
        self.assets = assets
        self.max_cache_size_bytes = max_cache_size_bytes
        self.max_age = timedelta(days=max_age_days)
        self._clock = clock

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        fetcher: HttpFetcher | None = None,
        initial_cleanup: bool = True,
    ) -> ImageCache:
        """Build a cache from configuration and run an initial cleanup.

        Args:
            settings: Application settings.
            fetcher: Optional fetcher (a new one is created if omitted).
            initial_cleanup: Run cleanup() once before returning.

        Returns:
            Ready-to-use ImageCache.
        """
        cache = cls(
            disk=DiskStore(settings.cache_dir),
            memory=MemoryStore(
                settings.max_memory_cache_items,
                strict_lru=settings.memory_strict_lru,
            ),
            fetcher=fetcher or HttpFetcher(timeout=settings.fetch_timeout),
            assets=AssetBundle(settings.assets_dir),
            max_cache_size_bytes=settings.max_cache_size_bytes,
            max_age_days=settings.max_age_days,
        )
        try:
            cache.disk.ensure_root()
        except CacheIOError as e:
            logger.error("Image cache unavailable: %s", e)
        else:
            if initial_cleanup:
                cache.cleanup()
        return cache

    def cache_from_url(self, url: str) -> bytes:
        """Return the payload for a URL, downloading it on a miss.

        Raises:
            FetchError: If the download fails or returns a non-2xx status.
        """
        if self.fetcher is None:
            raise RuntimeError("ImageCache has no HTTP fetcher configured")
        return self._cache_from(url, self.fetcher.get)

    def cache_from_asset(self, path: str) -> bytes:
        """Return the payload for a bundled asset, loading it on a miss.

        Raises:
            AssetNotFoundError: If the asset does not exist.
        """
        if self.assets is None:
            raise RuntimeError("ImageCache has no asset bundle configured")
        return self._cache_from(path, self.assets.load_asset)

    def get_from_cache(self, key: str) -> bytes | None:
        """Look up a cache key without fetching.

        Memory is checked first; on a memory miss the disk file is read and
        promoted into memory.

        Args:
            key: Cache key (see derive_key).

        Returns:
            Cached payload, or None if the key is in neither tier or is not
            a derived cache key.
        """
        if not is_cache_key(key):
            logger.debug("Rejected malformed cache key %r", key)
            return None

        data = self.memory.get(key)
        if data is not None:
            return data

        try:
            data = self.disk.read(key)
        except CacheIOError as e:
            logger.warning("Failed to read cache entry %s: %s", key, e)
            return None

        if data is not None:
            self.memory.put(key, data)
        return data

    def lookup(self, source: str) -> bytes | None:
        """Look up a URL or asset path without fetching."""
        return self.get_from_cache(derive_key(source))

    def clear(self) -> None:
        """Empty the memory tier and delete every disk file."""
        self.memory.clear()
        try:
            self.disk.clear()
        except CacheIOError as e:
            logger.error("Error clearing cache: %s", e)

    def total_size(self) -> int:
        """Return the aggregate disk size in bytes (0 if it cannot be read)."""
        try:
            return self.disk.total_size()
        except CacheIOError as e:
            logger.warning("Failed to compute cache size: %s", e)
            return 0

    def report_size(self) -> str:
        """Return the disk cache size as a human-readable string."""
        return format_size(self.total_size())

    def stats(self) -> CacheStats:
        try:
            entries = self.disk.entries()
        except CacheIOError as e:
            logger.warning("Failed to list cache entries: %s", e)
            entries = []
        return CacheStats(
            disk_entries=len(entries),
            disk_bytes=sum(e.size_bytes for e in entries),
            memory_items=len(self.memory),
            max_cache_size_bytes=self.max_cache_size_bytes,
            max_memory_items=self.memory.max_items,
        )

    def cleanup(self) -> CleanupReport:
        """Evict expired files, then shrink the cache if it is over its limit.

        Evicted keys are dropped from the memory tier as well.

        Returns:
            CleanupReport with the removed keys.
        """
        report = CleanupReport()
        try:
            report.expired = self.disk.evict_expired(self.max_age, now=self._clock())
            report.reduced = self.disk.reduce_size(self.max_cache_size_bytes)
        except CacheIOError as e:
            logger.error("Error cleaning up cache: %s", e)

        for key in report.removed:
            self.memory.discard(key)
        return report

    def close(self) -> None:
        if self.fetcher is not None:
            self.fetcher.close()

    def __enter__(self) -> ImageCache:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()

    def _cache_from(self, source: str, loader: Callable[[str], bytes]) -> bytes:
        key = derive_key(source)

        cached = self._read_hit(key)
        if cached is not None:
            logger.debug("Cache hit for %s (%s)", source, key[:16])
            return cached

        logger.debug("Cache miss for %s (%s)", source, key[:16])
        data = loader(source)
        self._store(key, data)
        return data

    def _read_hit(self, key: str) -> bytes | None:
        if not self.disk.exists(key):
            return None

        try:
            self.disk.touch(key, self._clock())
        except CacheIOError as e:
            logger.warning("Failed to refresh cache entry %s: %s", key, e)

        return self.get_from_cache(key)

    def _store(self, key: str, data: bytes) -> None:
        self.memory.put(key, data)
        try:
            self.disk.write(key, data)
        except CacheIOError as e:
            logger.warning("Failed to persist cache entry %s: %s", key, e)
            return
        self.cleanup()


__all__ = ["CacheStats", "CleanupReport", "ImageCache"]
