"""Tiered image cache module.

This module handles:
- Deriving content-addressed cache keys from URLs and asset paths
- Fetching remote images and loading bundled assets on a miss
- A bounded disk tier with age and size eviction
- A bounded memory tier in front of the disk tier
"""

from apptoolkit.imagecache.cache_key import derive_key, is_cache_key
from apptoolkit.imagecache.disk import CacheIOError, DiskEntry, DiskStore, format_size
from apptoolkit.imagecache.fetch import (
    AssetBundle,
    AssetNotFoundError,
    FetchError,
    HttpFetcher,
)
from apptoolkit.imagecache.memory import MemoryStore
from apptoolkit.imagecache.service import CacheStats, CleanupReport, ImageCache

__all__ = [
    # Keys
    "derive_key",
    "is_cache_key",
    # Stores
    "CacheIOError",
    "DiskEntry",
    "DiskStore",
    "MemoryStore",
    "format_size",
    # Sources
    "AssetBundle",
    "AssetNotFoundError",
    "FetchError",
    "HttpFetcher",
    # Service
    "CacheStats",
    "CleanupReport",
    "ImageCache",
]
