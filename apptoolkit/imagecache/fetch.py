"""Payload sources for the image cache.

This module handles:
- Fetching remote images over HTTP (non-2xx is an error)
- Loading bundled assets from a local asset root

Both collaborators are only consulted on a cache miss.
"""

from __future__ import annotations

import logging
from pathlib import Path
from types import TracebackType

import httpx

logger = logging.getLogger(__name__)

# Timeout for image fetches (seconds)
FETCH_TIMEOUT = 30.0


class FetchError(Exception):
    """Raised when a remote fetch fails or returns a non-2xx status."""

    def __init__(
        self,
        message: str,
        code: str = "fetch_error",
        status_code: int | None = None,
    ) -> None:
        """Initialize FetchError.

        Args:
            message: Error description.
            code: Error code for structured error handling.
            status_code: HTTP status code, when a response was received.
        """
        super().__init__(message)
        self.code = code
        self.status_code = status_code


class AssetNotFoundError(Exception):
    """Raised when a bundled asset does not exist."""

    def __init__(self, path: str, code: str = "asset_not_found") -> None:
        super().__init__(f"Asset not found: {path}")
        self.path = path
        self.code = code


class HttpFetcher:
    """Fetch raw bytes from remote URLs.

    Wraps an httpx client. When no client is given the fetcher creates and
    owns one; call close() (or use it as a context manager) to release it.
    """

    def __init__(
        self,
        client: httpx.Client | None = None,
        timeout: float = FETCH_TIMEOUT,
    ) -> None:
        self._owns_client = client is None
        self._client = client if client is not None else httpx.Client()
        self.timeout = timeout

    def get(self, url: str) -> bytes:
        """Download a URL and return the response body.

        Args:
            url: URL to download.

        Returns:
            Response body bytes.

        Raises:
            FetchError: If the request fails or the status is not 2xx.
        """
        logger.debug("Fetching %s", url)

        try:
            response = self._client.get(
                url, timeout=self.timeout, follow_redirects=True
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise FetchError(
                f"HTTP error fetching {url}: {e.response.status_code} {e.response.reason_phrase}",
                code="http_error",
                status_code=e.response.status_code,
            ) from e
        except httpx.TimeoutException as e:
            raise FetchError(
                f"Timeout fetching {url}",
                code="timeout",
            ) from e
        except httpx.RequestError as e:
            raise FetchError(
                f"Network error fetching {url}: {e}",
                code="network_error",
            ) from e

        logger.debug("Fetched %s (%d bytes)", url, len(response.content))
        return response.content

    def close(self) -> None:
        """Close the underlying client if this fetcher created it."""
        if self._owns_client:
            self._client.close()

    def __enter__(self) -> HttpFetcher:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()


class AssetBundle:
    """Read-only view over the bundled asset directory."""

    def __init__(self, root: Path) -> None:
        self.root = root

    def resolve(self, path: str) -> Path:
        """Resolve an asset path against the bundle root.

        Raises:
            AssetNotFoundError: If the path escapes the root or is not a file.
        """
        root = self.root.resolve()
        candidate = (root / path).resolve()
        if not candidate.is_relative_to(root) or not candidate.is_file():
            raise AssetNotFoundError(path)
        return candidate

    def load_asset(self, path: str) -> bytes:
        """Load an asset's bytes.

        Args:
            path: Asset path relative to the bundle root.

        Returns:
            Asset content.

        Raises:
            AssetNotFoundError: If the asset does not exist.
        """
        asset_path = self.resolve(path)
        try:
            return asset_path.read_bytes()
        except FileNotFoundError as e:
            raise AssetNotFoundError(path) from e


__all__ = [
    "FETCH_TIMEOUT",
    "AssetBundle",
    "AssetNotFoundError",
    "FetchError",
    "HttpFetcher",
]
