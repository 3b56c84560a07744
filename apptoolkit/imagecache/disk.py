"""Disk tier of the image cache.

This module handles:
- One file per cache key directly under the cache root
- Atomic writes (temp file + rename)
- Listing entries with size and modification time
- Age-based and size-based eviction

The disk tier is the durable source of truth. Every filesystem failure is
raised as CacheIOError so callers can decide whether it is fatal.
"""

from __future__ import annotations

import logging
import os
import tempfile
import time
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path

logger = logging.getLogger(__name__)

# Fraction of the size ceiling the cache is reduced to once it is exceeded
SIZE_TARGET_RATIO = 0.75

_TMP_SUFFIX = ".tmp"


class CacheIOError(Exception):
    """Raised when a cache filesystem operation fails."""

    def __init__(
        self,
        message: str,
        path: Path | None = None,
        code: str = "cache_io_error",
    ) -> None:
        super().__init__(message)
        self.path = path
        self.code = code


@dataclass
class DiskEntry:
    """A cached file as seen on disk.

    Attributes:
        key: Cache key (file name).
        path: Absolute path to the file.
        size_bytes: File size.
        modified_at: Last modification time (UTC).
    """

    key: str
    path: Path
    size_bytes: int
    modified_at: datetime


def format_size(size_bytes: int) -> str:
    """Format a byte count as a human-readable string (1024 base).

    Args:
        size_bytes: Size in bytes.

    Returns:
        String such as "512 B", "1.50 KB", "100.00 MB".
    """
    if size_bytes < 1024:
        return f"{size_bytes} B"
    if size_bytes < 1024 * 1024:
        return f"{size_bytes / 1024:.2f} KB"
    if size_bytes < 1024 * 1024 * 1024:
        return f"{size_bytes / (1024 * 1024):.2f} MB"
    return f"{size_bytes / (1024 * 1024 * 1024):.2f} GB"


class DiskStore:
    """File-per-key store rooted at a cache directory."""

    def __init__(self, root: Path) -> None:
        self.root = root

    def ensure_root(self) -> None:
        """Create the cache directory if it does not exist."""
        try:
            self.root.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise CacheIOError(
                f"Failed to create cache directory {self.root}: {e}", self.root
            ) from e

    def path_for(self, key: str) -> Path:
        """Return the file path for a cache key."""
        return self.root / key

    def exists(self, key: str) -> bool:
        return self.path_for(key).is_file()

    def read(self, key: str) -> bytes | None:
        """Read a cached payload.

        Returns:
            File content, or None if the key is not on disk.

        Raises:
            CacheIOError: If the file exists but cannot be read.
        """
        path = self.path_for(key)
        try:
            return path.read_bytes()
        except FileNotFoundError:
            return None
        except OSError as e:
            raise CacheIOError(f"Failed to read {path}: {e}", path) from e

    def write(self, key: str, data: bytes) -> Path:
        """Write a payload atomically, replacing any existing file.

        Raises:
            CacheIOError: If the file cannot be written.
        """
        self.ensure_root()
        path = self.path_for(key)
        tmp_path: Path | None = None

        try:
            with tempfile.NamedTemporaryFile(
                dir=self.root, prefix=f".{key}.", suffix=_TMP_SUFFIX, delete=False
            ) as tmp_file:
                tmp_path = Path(tmp_file.name)
                tmp_file.write(data)
            os.replace(tmp_path, path)
        except OSError as e:
            if tmp_path is not None:
                tmp_path.unlink(missing_ok=True)
            raise CacheIOError(f"Failed to write {path}: {e}", path) from e

        logger.debug("Wrote %s (%d bytes)", path.name, len(data))
        return path

    def touch(self, key: str, when: datetime | None = None) -> None:
        """Set a file's modification time (defaults to now).

        Raises:
            CacheIOError: If the timestamp cannot be updated.
        """
        path = self.path_for(key)
        timestamp = when.timestamp() if when is not None else time.time()
        try:
            os.utime(path, (timestamp, timestamp))
        except OSError as e:
            raise CacheIOError(f"Failed to touch {path}: {e}", path) from e

    def delete(self, key: str) -> bool:
        """Delete a cached file.

        Returns:
            True if a file was removed, False if it did not exist.

        Raises:
            CacheIOError: If the file exists but cannot be removed.
        """
        path = self.path_for(key)
        try:
            path.unlink()
        except FileNotFoundError:
            return False
        except OSError as e:
            raise CacheIOError(f"Failed to delete {path}: {e}", path) from e
        return True

    def entries(self) -> list[DiskEntry]:
        """List cached files with their size and modification time.

        In-flight temp files are skipped.

        Raises:
            CacheIOError: If the directory cannot be listed.
        """
        if not self.root.exists():
            return []

        entries: list[DiskEntry] = []
        try:
            for path in self.root.iterdir():
                if path.name.endswith(_TMP_SUFFIX) or not path.is_file():
                    continue
                try:
                    stat = path.stat()
                except FileNotFoundError:
                    # Removed between listing and stat
                    continue
                entries.append(
                    DiskEntry(
                        key=path.name,
                        path=path,
                        size_bytes=stat.st_size,
                        modified_at=datetime.fromtimestamp(
                            stat.st_mtime, tz=timezone.utc
                        ),
                    )
                )
        except OSError as e:
            raise CacheIOError(
                f"Failed to list cache directory {self.root}: {e}", self.root
            ) from e
        return entries

    def total_size(self) -> int:
        """Return the aggregate size of all cached files in bytes."""
        return sum(entry.size_bytes for entry in self.entries())

    def clear(self) -> int:
        """Delete every cached file.

        Returns:
            Number of files removed.
        """
        removed = 0
        for entry in self.entries():
            if self.delete(entry.key):
                removed += 1
        logger.info("Cleared %d cached files from %s", removed, self.root)
        return removed

    def evict_expired(
        self,
        max_age: timedelta,
        now: datetime | None = None,
    ) -> list[str]:
        """Delete files whose age in whole days exceeds max_age.

        Ages are truncated to whole days, so with a 7 day limit a file that
        is 7.5 days old is kept and one that is 8 days old is removed. With
        a limit of 0 only files at least a day old are removed.
        A file that cannot be deleted is logged and skipped.

        Args:
            max_age: Maximum allowed age (only whole days are considered).
            now: Reference time (defaults to current UTC time).

        Returns:
            Keys that were removed.
        """
        if now is None:
            now = datetime.now(timezone.utc)

        removed: list[str] = []
        for entry in self.entries():
            if (now - entry.modified_at).days <= max_age.days:
                continue
            try:
                if self.delete(entry.key):
                    removed.append(entry.key)
            except CacheIOError as e:
                logger.warning("Could not evict expired entry %s: %s", entry.key, e)

        if removed:
            logger.info("Evicted %d expired cache entries", len(removed))
        return removed

    def reduce_size(
        self,
        max_bytes: int,
        target_ratio: float = SIZE_TARGET_RATIO,
    ) -> list[str]:
        """Delete the least recently modified files once the cache is too big.

        Nothing happens while the aggregate size is within max_bytes. Once it
        is exceeded, files are removed oldest first until the total is at or
        below max_bytes * target_ratio.

        Args:
            max_bytes: Size ceiling in bytes.
            target_ratio: Fraction of the ceiling to shrink down to.

        Returns:
            Keys that were removed, oldest first.
        """
        entries = self.entries()
        current_size = sum(entry.size_bytes for entry in entries)
        if current_size <= max_bytes:
            return []

        target_size = int(max_bytes * target_ratio)
        logger.info(
            "Cache size %d exceeds limit %d, reducing to %d",
            current_size,
            max_bytes,
            target_size,
        )

        removed: list[str] = []
        for entry in sorted(entries, key=lambda e: (e.modified_at, e.key)):
            if current_size <= target_size:
                break
            try:
                if self.delete(entry.key):
                    removed.append(entry.key)
            except CacheIOError as e:
                logger.warning("Could not evict cache entry %s: %s", entry.key, e)
                continue
            current_size -= entry.size_bytes

        return removed


__all__ = [
    "SIZE_TARGET_RATIO",
    "CacheIOError",
    "DiskEntry",
    "DiskStore",
    "format_size",
]
