"""Exception taxonomy shared by the pipeline stages."""

from __future__ import annotations


class PromoCrawlerError(Exception):
    """Base class for all promo-crawler failures."""


class FetchError(PromoCrawlerError):
    """A page could not be fetched, or the fetcher reported it as blocked."""

    def __init__(self, url: str, reason: str) -> None:
        super().__init__(f"{url}: {reason}")
        self.url = url
        self.reason = reason


class ParseRejected(PromoCrawlerError):
    """A title/article did not yield a promotion. A filtering outcome, not a fault."""

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


class PersistenceError(PromoCrawlerError):
    """Insert, update or delete failed at the store boundary."""


__all__ = ["FetchError", "ParseRejected", "PersistenceError", "PromoCrawlerError"]
