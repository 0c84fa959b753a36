"""Error taxonomy for the crawler.

An empty results page is deliberately absent: it is a stop signal handled by
the pagination loop, not an error.
"""

from __future__ import annotations


class CrawlerError(Exception):
    """Base class for crawler errors."""


class UnknownSource(CrawlerError):
    """A configured source name has no registry entry."""

    def __init__(self, name: str) -> None:
        super().__init__(f"unknown source: {name}")
        self.name = name


class PageRequestFailure(CrawlerError):
    """Network failure, timeout or non-2xx response while fetching a page."""

    def __init__(self, message: str, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status


class SessionUnsupported(PageRequestFailure):
    """The active session backend cannot perform the requested operation."""


class MalformedPayload(CrawlerError):
    """A structured response has no recognizable listing array."""


class RunAlreadyInProgress(CrawlerError):
    """A crawl run is already active; new runs are rejected, not queued."""
