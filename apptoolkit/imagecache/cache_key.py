"""Cache key derivation for the image cache.

Keys are content addresses of the source identifier (a remote URL or a
bundled asset path): the SHA-256 hex digest of its UTF-8 encoding. The same
identifier always maps to the same key, and a key only contains lowercase
hex characters so it is safe to use directly as a file name.
"""

from __future__ import annotations

import hashlib
import re

# Length of a SHA-256 hex digest
CACHE_KEY_LENGTH = 64

_CACHE_KEY_PATTERN = re.compile(rf"^[0-9a-f]{{{CACHE_KEY_LENGTH}}}$")


def derive_key(source: str) -> str:
    """Derive the cache key for a source identifier.

    Args:
        source: URL or asset path the payload was loaded from.

    Returns:
        Cache key as a lowercase hex string.
    """
    return hashlib.sha256(source.encode("utf-8")).hexdigest()


def is_cache_key(value: str) -> bool:
    """Check whether a string has the shape of a derived cache key."""
    return bool(_CACHE_KEY_PATTERN.match(value))


__all__ = ["CACHE_KEY_LENGTH", "derive_key", "is_cache_key"]
