"""HTTP retrieval of feed and page payloads."""

from __future__ import annotations

import logging

import requests

from . import __version__
from .errors import NetworkError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10.0
USER_AGENT = f"blog_reader/{__version__}"


def fetch(url: str, timeout: float = DEFAULT_TIMEOUT) -> bytes:
    """Return the body of ``url`` or raise NetworkError."""
    logger.debug("Fetching %s (timeout=%.1fs)", url, timeout)
    try:
        response = requests.get(
            url, timeout=timeout, headers={"User-Agent": USER_AGENT}
        )
        response.raise_for_status()
    except requests.RequestException as exc:
        logger.warning("Failed to fetch %s: %s", url, exc)
        raise NetworkError(f"{url}: {exc}") from exc

    content = response.content
    logger.debug("Fetched %d bytes from %s", len(content), url)
    return content
