"""
Queue error hierarchy.

Per-entry delivery failures never surface here: they are absorbed into a
reschedule. These errors are the systemic ones a run's caller must handle.
"""
from __future__ import annotations


class QueueError(Exception):
    """Base exception for all queue operations."""


class InvalidQueueInputError(QueueError, TypeError):
    """A processing target is neither a queue entry nor a collection of entries."""


class InvalidIntervalError(QueueError, ValueError):
    """An interval value could not be turned into a duration."""


class DataProviderUnavailableError(QueueError):
    """Bulk contact/company fetch failed; the whole page is abandoned."""


class PersistenceFailureError(QueueError):
    """Saving a processed page failed; entries will be re-selected next run."""
