"""
InMemoryQueueStore — Dict-backed store for development and testing.

Features:
  - Zero dependencies (no database, no Redis)
  - Full interface compatibility with SqlQueueStore
  - Safe within one asyncio event loop
  - All data lost on process restart

Best for: local development, unit tests, quick prototyping.
"""
from __future__ import annotations

import structlog
from datetime import datetime
from typing import Collection, Optional

from database.store_base import BaseQueueStore
from models.schemas import QueueEntry, as_utc, normalize_channel_id

logger = structlog.get_logger()


class InMemoryQueueStore(BaseQueueStore):
    """
    Full-featured in-memory store with the same interface as SqlQueueStore.
    Keeps its own copies so callers never alias stored state.
    """

    def __init__(self):
        self._entries: dict[str, QueueEntry] = {}                 # id → entry
        self._dedup_index: dict[tuple[str, int, str], str] = {}   # dedup key → id of queued entry
        self.save_calls: int = 0
        logger.info("inmemory_queue_store_initialized")

    async def find_message(self, channel: str, channel_id: Optional[int], target_id: str) -> Optional[QueueEntry]:
        entry_id = self._dedup_index.get((channel, normalize_channel_id(channel_id), str(target_id)))
        if not entry_id:
            return None
        entry = self._entries.get(entry_id)
        return entry.model_copy(deep=True) if entry and entry.is_queued else None

    async def get_queued_messages(
        self, limit: int, as_of: datetime,
        channel: Optional[str] = None, channel_id: Optional[int] = None,
        exclude_ids: Optional[Collection[str]] = None,
    ) -> list[QueueEntry]:
        as_of = as_utc(as_of)
        skip = set(exclude_ids or ())
        due = [
            e for e in self._entries.values()
            if e.is_queued
            and e.scheduled_date <= as_of
            and (channel is None or e.channel == channel)
            and (channel_id is None or normalize_channel_id(e.channel_id) == normalize_channel_id(channel_id))
            and e.id not in skip
        ]
        due.sort(key=lambda e: (e.priority, e.scheduled_date))
        return [e.model_copy(deep=True) for e in due[:limit]]

    async def get(self, entry_id: str) -> Optional[QueueEntry]:
        entry = self._entries.get(entry_id)
        return entry.model_copy(deep=True) if entry else None

    async def save(self, entry: QueueEntry) -> QueueEntry:
        self._store(entry)
        self.save_calls += 1
        return entry

    async def save_all(self, entries: list[QueueEntry]) -> list[QueueEntry]:
        for entry in entries:
            self._store(entry)
        self.save_calls += 1
        return entries

    def _store(self, entry: QueueEntry) -> None:
        entry.ensure_id()
        key = entry.dedup_key
        if entry.is_queued:
            self._dedup_index[key] = entry.id
        elif self._dedup_index.get(key) == entry.id:
            del self._dedup_index[key]
        self._entries[entry.id] = entry.model_copy(deep=True)

    # ── Stats (for debugging) ─────────────────────────────

    def all_entries(self) -> list[QueueEntry]:
        return [e.model_copy(deep=True) for e in self._entries.values()]

    def stats(self) -> dict[str, int]:
        counts: dict[str, int] = {"total": len(self._entries)}
        for e in self._entries.values():
            counts[e.status.value] = counts.get(e.status.value, 0) + 1
        return counts
