"""
Abstract Queue Store — Interface for all storage backends.

Implementations:
  - SqlQueueStore      (PostgreSQL / MySQL / SQLite via SQLAlchemy)
  - InMemoryQueueStore (dict-based, single-process, no persistence)
  - FileQueueStore     (JSON file on disk, single-process, durable)

Entries handed out by a store are detached copies: mutating one in memory
changes nothing until it is passed back to ``save`` / ``save_all``.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Collection, Optional

from models.schemas import QueueEntry


class BaseQueueStore(ABC):
    """Interface that all queue store backends must implement."""

    @abstractmethod
    async def find_message(self, channel: str, channel_id: Optional[int], target_id: str) -> Optional[QueueEntry]:
        """Return the pending/rescheduled entry for this dedup key, if any."""
        ...

    @abstractmethod
    async def get_queued_messages(
        self, limit: int, as_of: datetime,
        channel: Optional[str] = None, channel_id: Optional[int] = None,
        exclude_ids: Optional[Collection[str]] = None,
    ) -> list[QueueEntry]:
        """
        Due entries: status pending/rescheduled and scheduled_date <= as_of,
        ordered by priority then scheduled_date, at most ``limit``.
        Entries whose id is in ``exclude_ids`` are passed over.
        """
        ...

    @abstractmethod
    async def get(self, entry_id: str) -> Optional[QueueEntry]:
        ...

    @abstractmethod
    async def save(self, entry: QueueEntry) -> QueueEntry:
        """Insert or update one entry, assigning an id when missing."""
        ...

    @abstractmethod
    async def save_all(self, entries: list[QueueEntry]) -> list[QueueEntry]:
        """Insert or update every entry in one batch."""
        ...

    async def release(self) -> None:
        """Drop any identity cache the backend keeps between pages."""
        return None
