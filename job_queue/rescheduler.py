"""
Rescheduler — pushes an entry back by a fixed interval and bumps its attempts.

The new date is computed from the entry's previous scheduled date, not from
"now", so a recurring cadence does not drift with processing delay.
``max_attempts`` is not enforced here; that policy belongs to the processor.
"""
from __future__ import annotations

from typing import Optional, Union

import structlog

from database.store_base import BaseQueueStore
from job_queue.clock import Clock, SystemClock
from job_queue.intervals import TIME, IntervalLike, parse_interval
from models.schemas import QueueEntry, QueueItem, QueueStatus

logger = structlog.get_logger()


class Rescheduler:
    def __init__(self, store: BaseQueueStore, clock: Clock = None):
        self.store = store
        self.clock = clock or SystemClock()

    async def reschedule_message(
        self,
        message: Union[QueueItem, QueueEntry, None],
        interval: IntervalLike = None,
        *,
        interval_style: str = TIME,
        target_id: Optional[str] = None,
        channel: Optional[str] = None,
        channel_id: Optional[int] = None,
        persist: bool = False,
    ) -> Optional[QueueEntry]:
        """Reschedule ``message``, or the queued entry found by (target, channel, channel_id).

        A looked-up entry is always persisted since no page write will follow.
        Returns the rescheduled entry, or ``None`` if there was nothing to reschedule.
        """
        item = message if isinstance(message, QueueItem) else None
        entry = item.entry if item else message

        if entry is None and target_id and channel:
            entry = await self.store.find_message(channel, channel_id, str(target_id))
            persist = True

        if entry is None:
            logger.debug("reschedule_target_not_found",
                         target_id=target_id, channel=channel, channel_id=channel_id)
            return None

        delay = parse_interval(interval, interval_style)
        entry.attempts += 1
        entry.last_attempt = self.clock.now()
        entry.scheduled_date = delay.add_to(entry.scheduled_date)
        entry.status = QueueStatus.RESCHEDULED

        if persist:
            await self.store.save(entry)

        if item is not None:
            item.mark_processed()

        logger.info("message_rescheduled",
                    entry_id=entry.id,
                    channel=entry.channel,
                    target_id=entry.target_id,
                    attempts=entry.attempts,
                    scheduled_date=entry.scheduled_date.isoformat())
        return entry
