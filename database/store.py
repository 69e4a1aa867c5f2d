"""
SqlQueueStore — Portable SQL queries for PostgreSQL, MySQL, SQLite.

Timestamps are written and compared in UTC; SQLite hands them back naive,
so rows are re-tagged as UTC on the way out.
"""
from __future__ import annotations

import structlog
from contextlib import asynccontextmanager
from datetime import datetime
from typing import AsyncGenerator, Collection, Optional

from sqlalchemy import select, and_
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from database.models import MessageQueueRow
from database.session import get_session, session_scope
from database.store_base import BaseQueueStore
from models.schemas import QueueEntry, QueueStatus, QUEUED_STATUSES, as_utc, normalize_channel_id

logger = structlog.get_logger()

_QUEUED = [s.value for s in QUEUED_STATUSES]


class SqlQueueStore(BaseQueueStore):
    """
    Persistent queue store backed by any SQLAlchemy-supported database.
    Works with PostgreSQL, MySQL 8+, and SQLite.

    Pass ``session_factory`` to bind to a specific engine; otherwise the
    global engine from settings is used.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession] = None):
        self._session_factory = session_factory

    @asynccontextmanager
    async def _session(self) -> AsyncGenerator[AsyncSession, None]:
        if self._session_factory is not None:
            async with session_scope(self._session_factory) as db:
                yield db
        else:
            async with get_session() as db:
                yield db

    # ── Lookups ────────────────────────────────────────────

    async def find_message(self, channel: str, channel_id: Optional[int], target_id: str) -> Optional[QueueEntry]:
        async with self._session() as db:
            stmt = (
                select(MessageQueueRow)
                .where(and_(
                    MessageQueueRow.channel == channel,
                    MessageQueueRow.channel_id == normalize_channel_id(channel_id),
                    MessageQueueRow.target_id == str(target_id),
                    MessageQueueRow.status.in_(_QUEUED),
                ))
                .order_by(MessageQueueRow.date_published)
                .limit(1)
            )
            result = await db.execute(stmt)
            row = result.scalar_one_or_none()
            return self._row_to_entry(row) if row else None

    async def get_queued_messages(
        self, limit: int, as_of: datetime,
        channel: Optional[str] = None, channel_id: Optional[int] = None,
        exclude_ids: Optional[Collection[str]] = None,
    ) -> list[QueueEntry]:
        conditions = [
            MessageQueueRow.status.in_(_QUEUED),
            MessageQueueRow.scheduled_date <= as_utc(as_of),
        ]
        if channel is not None:
            conditions.append(MessageQueueRow.channel == channel)
        if channel_id is not None:
            conditions.append(MessageQueueRow.channel_id == normalize_channel_id(channel_id))
        if exclude_ids:
            conditions.append(MessageQueueRow.id.not_in(list(exclude_ids)))

        async with self._session() as db:
            stmt = (
                select(MessageQueueRow)
                .where(and_(*conditions))
                .order_by(MessageQueueRow.priority, MessageQueueRow.scheduled_date)
                .limit(limit)
            )
            result = await db.execute(stmt)
            return [self._row_to_entry(r) for r in result.scalars().all()]

    async def get(self, entry_id: str) -> Optional[QueueEntry]:
        async with self._session() as db:
            row = await db.get(MessageQueueRow, entry_id)
            return self._row_to_entry(row) if row else None

    # ── Writes ─────────────────────────────────────────────

    async def save(self, entry: QueueEntry) -> QueueEntry:
        async with self._session() as db:
            await db.merge(self._entry_to_row(entry))
        return entry

    async def save_all(self, entries: list[QueueEntry]) -> list[QueueEntry]:
        if not entries:
            return entries
        async with self._session() as db:
            for entry in entries:
                await db.merge(self._entry_to_row(entry))
        logger.debug("queue_entries_saved", count=len(entries))
        return entries

    # ── Converters ─────────────────────────────────────────

    @staticmethod
    def _entry_to_row(entry: QueueEntry) -> MessageQueueRow:
        entry.ensure_id()
        return MessageQueueRow(
            id=entry.id,
            channel=entry.channel,
            channel_id=normalize_channel_id(entry.channel_id),
            target_id=entry.target_id,
            campaign_event_id=entry.campaign_event_id,
            status=entry.status.value,
            priority=entry.priority,
            scheduled_date=as_utc(entry.scheduled_date),
            date_published=as_utc(entry.date_published),
            last_attempt=as_utc(entry.last_attempt),
            date_sent=as_utc(entry.date_sent),
            attempts=entry.attempts,
            max_attempts=entry.max_attempts,
            options=dict(entry.options or {}),
        )

    @staticmethod
    def _row_to_entry(row: MessageQueueRow) -> QueueEntry:
        return QueueEntry(
            id=row.id,
            channel=row.channel,
            channel_id=row.channel_id,
            target_id=row.target_id,
            campaign_event_id=row.campaign_event_id,
            status=QueueStatus(row.status),
            priority=row.priority,
            scheduled_date=as_utc(row.scheduled_date),
            date_published=as_utc(row.date_published),
            last_attempt=as_utc(row.last_attempt),
            date_sent=as_utc(row.date_sent),
            attempts=row.attempts,
            max_attempts=row.max_attempts,
            options=row.options or {},
        )
