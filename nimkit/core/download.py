"""
HTTP download helpers.

This module provides:
- Streaming HTTP/HTTPS downloads with TLS verification
- GitHub token headers for requests that would otherwise be rate limited
- Timeout handling

Failures are not retried: a failed fetch is fatal for the install.
"""

import logging
from pathlib import Path
from typing import Dict, Optional
from urllib.parse import urlparse

import requests
from requests.exceptions import RequestException

from nimkit.core.exceptions import NetworkFailure

logger = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024
DEFAULT_TIMEOUT = 30


class DownloadError(NetworkFailure):
    """Exception raised when a download fails."""

    pass


def github_headers(token: Optional[str]) -> Dict[str, str]:
    """
    Build request headers carrying a GitHub access token.

    Args:
        token: Personal access token or None

    Returns:
        Headers dict (empty when no token is available)
    """
    if not token:
        return {}
    return {"Authorization": f"token {token}"}


def is_github_url(url: str) -> bool:
    host = urlparse(url).hostname or ""
    return host == "github.com" or host.endswith(".github.com") or host.endswith(
        ".githubusercontent.com"
    )


def download_file(
    url: str,
    destination: Path,
    headers: Optional[Dict[str, str]] = None,
    timeout: int = DEFAULT_TIMEOUT,
    session: Optional[requests.Session] = None,
) -> Path:
    """
    Stream url into destination.

    Args:
        url: URL to download from
        destination: Local path to save file
        headers: Extra request headers
        timeout: Request timeout in seconds
        session: Optional requests session

    Returns:
        Path to downloaded file

    Raises:
        DownloadError: If the request or the write fails
        ValueError: If URL is empty
    """
    if not url:
        raise ValueError("URL cannot be empty")

    destination = Path(destination)
    destination.parent.mkdir(parents=True, exist_ok=True)
    http = session or requests

    logger.info(f"Downloading from {url}")

    try:
        response = http.get(
            url,
            headers=headers or {},
            stream=True,
            timeout=timeout,
            allow_redirects=True,
        )
        response.raise_for_status()

        downloaded = 0
        with open(destination, "wb") as f:
            for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
                if chunk:
                    f.write(chunk)
                    downloaded += len(chunk)
    except (RequestException, OSError) as e:
        destination.unlink(missing_ok=True)
        raise DownloadError(f"Download of {url} failed: {e}") from e

    logger.debug(f"Downloaded {downloaded} bytes to {destination}")
    return destination


__all__ = ["DownloadError", "download_file", "github_headers", "is_github_url"]
