"""
MessageQueueService — the queue's public face.

Wires the store, contact provider, channel registry and clock into the
enqueuer, rescheduler, processor and runner, and exposes their operations.

Usage:
    service = create_queue_service()
    service.channels.register("email", EmailBatchHandler())
    await service.add_to_queue([{"id": "1"}, {"id": "2"}], "email", channel_id=7)
    sent = await service.send_messages()
"""
from __future__ import annotations

from datetime import datetime
from typing import Any, Iterable, Optional, Union

import structlog

from backend.connector import ContactDataProvider, create_contact_provider
from channels.base import ChannelRegistry
from config.settings import Settings, QueueConfig, get_settings
from database.store_base import BaseQueueStore
from database.store_factory import create_store
from job_queue.clock import Clock, SystemClock
from job_queue.enqueuer import Enqueuer, QueuedListener
from job_queue.intervals import DATE, TIME, IntervalLike
from job_queue.processor import QueueProcessor
from job_queue.rescheduler import Rescheduler
from job_queue.runner import QueueRunner
from models.schemas import EnqueueResult, QueueEntry, QueueItem

logger = structlog.get_logger()


class MessageQueueService:
    def __init__(
        self,
        store: BaseQueueStore,
        contacts: ContactDataProvider,
        channels: ChannelRegistry = None,
        config: QueueConfig = None,
        clock: Clock = None,
    ):
        self.store = store
        self.contacts = contacts
        self.channels = channels or ChannelRegistry()
        self.config = config or QueueConfig()
        self.clock = clock or SystemClock()

        self.enqueuer = Enqueuer(store, self.clock)
        self.rescheduler = Rescheduler(store, self.clock)
        self.processor = QueueProcessor(
            store, contacts, self.channels,
            rescheduler=self.rescheduler, config=self.config, clock=self.clock,
        )
        self.runner = QueueRunner(store, self.processor, config=self.config, clock=self.clock)

    def on_queued(self, listener: QueuedListener) -> QueuedListener:
        return self.enqueuer.on_queued(listener)

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
        return await self.enqueuer.add_to_queue(
            targets, channel, channel_id,
            schedule_interval=schedule_interval,
            max_attempts=max_attempts,
            priority=priority,
            campaign_event_id=campaign_event_id,
            options=options,
            interval_style=interval_style,
        )

    async def send_messages(self, channel: Optional[str] = None, channel_id: Optional[int] = None) -> int:
        return await self.runner.send_messages(channel, channel_id)

    async def process_message_queue(self, queue: Any) -> int:
        return await self.processor.process_message_queue(queue)

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
        return await self.rescheduler.reschedule_message(
            message, interval,
            interval_style=interval_style,
            target_id=target_id, channel=channel, channel_id=channel_id,
            persist=persist,
        )

    async def close(self) -> None:
        await self.contacts.close()


def create_queue_service(
    settings: Settings = None,
    store: BaseQueueStore = None,
    contacts: ContactDataProvider = None,
    channels: ChannelRegistry = None,
) -> MessageQueueService:
    """Build a service from configuration; explicit collaborators win."""
    settings = settings or get_settings()
    store = store or create_store(settings.database)
    contacts = contacts or create_contact_provider(settings.contacts)
    logger.info("queue_service_created",
                store=type(store).__name__,
                contacts=type(contacts).__name__,
                batch_limit=settings.queue.batch_limit)
    return MessageQueueService(store, contacts, channels, settings.queue)
