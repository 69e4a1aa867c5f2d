"""
Queue Runner — one processing run over everything due at the run's start.

The "as of" timestamp is taken once and reused for every page, so entries
that become due during the run (including ones this run rescheduled a few
seconds ahead) wait for the next run instead of looping forever.

Entries a page leaves exactly as selected (no handler for the channel, or
already sent by a racing run) are passed over by later pages of the same
run, so they never hide lower-ordered entries behind them.
"""
from __future__ import annotations

from typing import Optional

import structlog

from config.settings import QueueConfig
from database.store_base import BaseQueueStore
from job_queue.clock import Clock, SystemClock
from job_queue.processor import QueueProcessor

logger = structlog.get_logger()


class QueueRunner:
    def __init__(
        self,
        store: BaseQueueStore,
        processor: QueueProcessor,
        config: QueueConfig = None,
        clock: Clock = None,
    ):
        self.store = store
        self.processor = processor
        self.config = config or QueueConfig()
        self.clock = clock or SystemClock()

    async def send_messages(self, channel: Optional[str] = None, channel_id: Optional[int] = None) -> int:
        """Process every page due as of now; return the number of entries sent."""
        as_of = self.clock.now()
        limit = self.config.batch_limit
        passed_over: set[str] = set()
        sent = 0
        pages = 0

        logger.info("queue_run_started",
                    as_of=as_of.isoformat(), channel=channel, channel_id=channel_id, limit=limit)

        while True:
            page = await self.store.get_queued_messages(
                limit, as_of, channel, channel_id, exclude_ids=passed_over,
            )
            if not page:
                break

            result = await self.processor.process_page(page)
            sent += result.sent
            pages += 1
            await self.store.release()

            fresh = set(result.unchanged_ids) - passed_over
            if result.changed == 0 and not fresh:
                # the store handed back only entries already passed over
                logger.warning("queue_run_stalled",
                               pages=pages, untouched=result.untouched, selected=result.selected)
                break
            passed_over |= fresh

            if pages >= self.config.max_pages:
                logger.warning("queue_run_page_limit_reached", pages=pages)
                break

        logger.info("queue_run_finished",
                    as_of=as_of.isoformat(), pages=pages, sent=sent, passed_over=len(passed_over))
        return sent
