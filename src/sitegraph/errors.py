"""
Failures that abort a crawl. Everything else degrades into the graph.
"""
from __future__ import annotations

from typing import Optional


class CrawlError(Exception):
    """Base class for fatal crawl errors."""


class InvalidInput(CrawlError, ValueError):
    """The domain string cannot be turned into a crawlable URL."""


class RootUnreachable(CrawlError):
    """The root page failed on its first fetch (network error or non-2xx)."""

    def __init__(self, url: str, status_code: Optional[int] = None, reason: Optional[str] = None) -> None:
        self.url = url
        self.status_code = status_code
        self.reason = reason
        if status_code is not None:
            detail = f"HTTP {status_code}"
        else:
            detail = reason or "network error"
        super().__init__(f"Root page {url} could not be fetched: {detail}")
