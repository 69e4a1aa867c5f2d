"""
Queue Processor — dispatches one page of due entries and applies the outcomes.

Flow for a page:
  1. Bulk-fetch contact + company data for every target, once
  2. Drop entries that are no longer queued (already sent by a racing run)
  3. Group by (channel, channel_id) and hand each group to the batch handler
  4. Offer every item the batch handler left untouched to the single handler
  5. Classify: success → sent; failed → reschedule (or give up at max_attempts);
     neither → the handler already repositioned it, leave as-is
  6. Persist the whole page in one write

Delivery failures are recovered per entry. Contact provider and store
failures abort the page and propagate to the caller.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Union

import structlog

from backend.connector import ContactDataProvider
from channels.base import ChannelRegistry
from config.settings import QueueConfig
from database.store_base import BaseQueueStore
from job_queue.clock import Clock, SystemClock
from job_queue.errors import (
    DataProviderUnavailableError,
    InvalidQueueInputError,
    PersistenceFailureError,
)
from job_queue.rescheduler import Rescheduler
from models.schemas import ContactData, QueueEntry, QueueItem, QueueStatus

logger = structlog.get_logger()


@dataclass
class PageResult:
    """Counts for one processed page."""
    selected: int = 0
    dropped: int = 0          # no longer queued when the page started
    sent: int = 0
    rescheduled: int = 0
    gave_up: int = 0          # moved to the terminal failed status
    untouched: int = 0        # no handler processed the item
    changed: int = 0          # entries whose persisted state moved
    unchanged_ids: list[str] = field(default_factory=list)   # still due exactly as selected

    def to_dict(self) -> dict[str, int]:
        return {
            "selected": self.selected, "dropped": self.dropped,
            "sent": self.sent, "rescheduled": self.rescheduled,
            "gave_up": self.gave_up, "untouched": self.untouched,
            "changed": self.changed,
        }


def _state_of(entry: QueueEntry) -> tuple[Any, ...]:
    return (entry.status, entry.scheduled_date, entry.attempts, entry.date_sent)


def normalize_queue(queue: Any) -> list[QueueEntry]:
    """Accept one entry, a list/tuple of entries, or a mapping of id → entry."""
    if isinstance(queue, QueueEntry):
        return [queue]
    if isinstance(queue, dict):
        entries = list(queue.values())
    elif isinstance(queue, (list, tuple)):
        entries = list(queue)
    else:
        raise InvalidQueueInputError(
            f"queue must be a QueueEntry or a collection of QueueEntry, got {type(queue).__name__}"
        )
    invalid = [type(e).__name__ for e in entries if not isinstance(e, QueueEntry)]
    if invalid:
        raise InvalidQueueInputError(f"queue contains non-QueueEntry items: {sorted(set(invalid))}")
    return entries


class QueueProcessor:
    def __init__(
        self,
        store: BaseQueueStore,
        contacts: ContactDataProvider,
        registry: ChannelRegistry,
        rescheduler: Rescheduler = None,
        config: QueueConfig = None,
        clock: Clock = None,
    ):
        self.store = store
        self.contacts = contacts
        self.registry = registry
        self.clock = clock or SystemClock()
        self.rescheduler = rescheduler or Rescheduler(store, self.clock)
        self.config = config or QueueConfig()

    async def process_message_queue(self, queue: Union[QueueEntry, list[QueueEntry], dict[str, QueueEntry]]) -> int:
        """Process a page (or a single entry) and return how many were sent."""
        result = await self.process_page(queue)
        return result.sent

    async def process_page(self, queue: Any) -> PageResult:
        entries = normalize_queue(queue)
        result = PageResult(selected=len(entries))
        if not entries:
            return result

        contacts = await self._load_contacts(entries)

        items: list[QueueItem] = []
        for entry in entries:
            if not entry.is_queued:
                result.dropped += 1
                result.unchanged_ids.append(entry.id)
                logger.debug("queue_entry_dropped", entry_id=entry.id, status=entry.status.value)
                continue
            contact = contacts.get(entry.target_id) or ContactData(id=entry.target_id)
            items.append(QueueItem(entry=entry, contact=contact.model_copy(deep=True)))

        before = {id(item): _state_of(item.entry) for item in items}

        await self._dispatch_batches(items)
        for item in items:
            if not item.processed:
                await self._dispatch_single(item)
            await self._apply_outcome(item, result)

        for item in items:
            if _state_of(item.entry) == before[id(item)]:
                result.unchanged_ids.append(item.id)
            else:
                result.changed += 1

        if items:
            try:
                await self.store.save_all([item.entry for item in items])
            except Exception as e:
                logger.error("queue_page_save_failed", entries=len(items), error=str(e))
                raise PersistenceFailureError(f"Failed to save {len(items)} queue entries") from e

        logger.info("queue_page_processed", **result.to_dict())
        return result

    # ── Steps ─────────────────────────────────────────────

    async def _load_contacts(self, entries: list[QueueEntry]) -> dict[str, ContactData]:
        target_ids = list(dict.fromkeys(e.target_id for e in entries))
        try:
            fields = await self.contacts.bulk_fetch(target_ids)
            companies = await self.contacts.bulk_fetch_related(target_ids)
        except Exception as e:
            logger.error("contact_fetch_failed", targets=len(target_ids), error=str(e))
            raise DataProviderUnavailableError(
                f"Contact data unavailable for {len(target_ids)} targets"
            ) from e

        return {
            tid: ContactData(
                id=tid,
                fields=fields.get(tid) or {},
                companies=companies.get(tid) or [],
            )
            for tid in target_ids
        }

    async def _dispatch_batches(self, items: list[QueueItem]) -> None:
        groups: dict[tuple[str, int], list[QueueItem]] = {}
        for item in items:
            groups.setdefault((item.channel, item.channel_id), []).append(item)

        for (channel, channel_id), group in groups.items():
            handler = self.registry.batch_handler(channel)
            if handler is None:
                continue
            try:
                await handler.process_batch(list(group), channel, channel_id)
            except Exception as e:
                logger.error("batch_handler_error",
                             channel=channel, channel_id=channel_id,
                             items=len(group), error=str(e))
                for item in group:
                    if not item.processed:
                        item.mark_failed(str(e))

    async def _dispatch_single(self, item: QueueItem) -> None:
        handler = self.registry.single_handler(item.channel)
        if handler is None:
            logger.debug("no_handler_for_channel", channel=item.channel, entry_id=item.id)
            return
        try:
            await handler.process_one(item)
        except Exception as e:
            logger.error("single_handler_error",
                         channel=item.channel, entry_id=item.id, error=str(e))
            item.mark_failed(str(e))

    async def _apply_outcome(self, item: QueueItem, result: PageResult) -> None:
        entry = item.entry
        if item.success:
            now = self.clock.now()
            entry.status = QueueStatus.SENT
            entry.last_attempt = now
            entry.date_sent = now
            result.sent += 1
        elif item.failed:
            if self.config.fail_after_max_attempts and entry.attempts >= entry.max_attempts:
                self._give_up(item)
                result.gave_up += 1
            else:
                await self.rescheduler.reschedule_message(
                    item,
                    self.config.retry_interval,
                    interval_style=self.config.retry_interval_style,
                )
                result.rescheduled += 1
        elif not item.processed:
            result.untouched += 1
        # processed without a verdict: the handler repositioned the entry itself

    def _give_up(self, item: QueueItem) -> None:
        entry = item.entry
        entry.attempts += 1
        entry.last_attempt = self.clock.now()
        entry.status = QueueStatus.FAILED
        logger.warning("message_delivery_abandoned",
                       entry_id=entry.id,
                       channel=entry.channel,
                       target_id=entry.target_id,
                       attempts=entry.attempts,
                       max_attempts=entry.max_attempts,
                       reason=item.outcome.reason)
