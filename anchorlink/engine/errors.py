"""Exception taxonomy for the sync pipeline and the matcher.

Content-filter rejections are values (:class:`~.types.Rejection`) and never
appear here.
"""

from __future__ import annotations

from django.core.exceptions import ImproperlyConfigured


class AnchorlinkError(Exception):
    """Base class for run-level failures raised by the engine."""


class ConfigurationError(ImproperlyConfigured):
    """Credentials or configuration are missing; raised before any state changes."""


class SnapshotReadError(AnchorlinkError):
    """The corpus snapshot could not be read completely."""


class BatchPersistenceError(AnchorlinkError):
    """A single write batch failed; the sync engine absorbs it into ``failed``."""

    def __init__(self, operation: str, size: int, cause: BaseException) -> None:
        super().__init__(f"{operation} batch of {size} rows failed: {cause}")
        self.operation = operation
        self.size = size
        self.cause = cause


class SyncHistoryError(AnchorlinkError):
    """The audit row could not be created, or was finalized twice."""


class EmbeddingError(AnchorlinkError):
    """The embedding provider did not return a usable vector."""


class CrawlSourceError(AnchorlinkError):
    """The crawl export could not be read or lacks required columns."""


class SearchTimeoutError(TimeoutError):
    """The similarity search exceeded its deadline."""
