"""
Enqueuer — validates and inserts new queue entries.

At most one pending/rescheduled entry exists per (channel, channel_id,
target). A target that already has one is skipped silently; everything else
in the call is persisted in a single batch with a shared scheduled date.
"""
from __future__ import annotations

import inspect
from datetime import datetime
from typing import Any, Awaitable, Callable, Iterable, Optional, Union

import structlog

from database.store_base import BaseQueueStore
from job_queue.clock import Clock, SystemClock
from job_queue.intervals import DATE, IntervalLike, parse_interval
from models.schemas import EnqueueResult, QueueEntry, QueueStatus, as_utc, normalize_channel_id

logger = structlog.get_logger()

QueuedListener = Callable[[QueueEntry], Union[None, Awaitable[None]]]


def target_id_of(target: Any) -> str:
    """Accept raw ids, mappings with an ``id`` key, or objects with an ``id`` attribute."""
    if isinstance(target, dict):
        target = target.get("id")
    elif hasattr(target, "id"):
        target = target.id
    if target is None or target == "":
        raise ValueError("Queue target has no id")
    return str(target)


class Enqueuer:
    def __init__(self, store: BaseQueueStore, clock: Clock = None):
        self.store = store
        self.clock = clock or SystemClock()
        self._listeners: list[QueuedListener] = []

    def on_queued(self, listener: QueuedListener) -> QueuedListener:
        """Register a callback fired once per newly persisted entry."""
        self._listeners.append(listener)
        return listener

    def resolve_scheduled_date(
        self, schedule_interval: Union[IntervalLike, datetime], style: str = DATE,
    ) -> datetime:
        now = self.clock.now()
        if not schedule_interval:
            return now
        if isinstance(schedule_interval, datetime):
            return as_utc(schedule_interval)
        return parse_interval(schedule_interval, style).add_to(now)

    async def add_to_queue(
        self,
        targets: Iterable[Any],
        channel: str,
        channel_id: Optional[int] = None,
        schedule_interval: Union[IntervalLike, datetime] = None,
        max_attempts: int = 1,
        priority: int = 1,
        campaign_event_id: Optional[str] = None,
        options: dict[str, Any] = None,
        interval_style: str = DATE,
    ) -> EnqueueResult:
        if not channel:
            raise ValueError("channel is required")
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")

        scheduled_date = self.resolve_scheduled_date(schedule_interval, interval_style)
        now = self.clock.now()
        result = EnqueueResult()
        seen: set[str] = set()

        for target in targets:
            target_id = target_id_of(target)
            if target_id in seen:
                result.skipped.append(target_id)
                continue
            seen.add(target_id)

            if await self.store.find_message(channel, channel_id, target_id):
                result.skipped.append(target_id)
                continue

            result.queued.append(QueueEntry(
                channel=channel,
                channel_id=channel_id,
                target_id=target_id,
                campaign_event_id=str(campaign_event_id) if campaign_event_id else None,
                status=QueueStatus.PENDING,
                priority=priority,
                scheduled_date=scheduled_date,
                date_published=now,
                attempts=0,
                max_attempts=max_attempts,
                options=dict(options or {}),
            ))

        if result.queued:
            await self.store.save_all(result.queued)
            await self.store.release()
            for entry in result.queued:
                await self._notify(entry)

        logger.info("messages_queued",
                    channel=channel,
                    channel_id=normalize_channel_id(channel_id),
                    queued=result.queued_count,
                    skipped=result.skipped_count,
                    scheduled_date=scheduled_date.isoformat())
        return result

    async def _notify(self, entry: QueueEntry) -> None:
        for listener in self._listeners:
            try:
                outcome = listener(entry)
                if inspect.isawaitable(outcome):
                    await outcome
            except Exception as e:
                logger.error("queued_listener_error",
                             entry_id=entry.id,
                             listener=getattr(listener, "__name__", repr(listener)),
                             error=str(e))
