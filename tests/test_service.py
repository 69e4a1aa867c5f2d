"""Tests for the service facade and its construction from settings."""
import shutil
import tempfile
from unittest.mock import AsyncMock

import pytest

from backend.connector import InMemoryContactDataProvider, RESTContactDataProvider
from channels.base import ChannelRegistry
from config.settings import ContactsConfig, DatabaseConfig, QueueConfig, Settings
from database.store_file import FileQueueStore
from database.store_memory import InMemoryQueueStore
from job_queue.service import MessageQueueService, create_queue_service
from models.schemas import QueueStatus


class TestCreateQueueService:
    def test_defaults_from_settings(self):
        settings = Settings(queue=QueueConfig(batch_limit=10))
        service = create_queue_service(settings)

        assert isinstance(service.store, InMemoryQueueStore)
        assert isinstance(service.contacts, InMemoryContactDataProvider)
        assert isinstance(service.channels, ChannelRegistry)
        assert service.config.batch_limit == 10
        assert service.runner.config is service.config
        assert service.processor.rescheduler is service.rescheduler

    def test_file_store_and_rest_contacts(self):
        data_dir = tempfile.mkdtemp(prefix="message_queue_svc_")
        try:
            settings = Settings(
                database=DatabaseConfig(store_backend="file", store_file_dir=data_dir),
                contacts=ContactsConfig(type="rest", base_url="https://crm.example.com"),
            )
            service = create_queue_service(settings)
            assert isinstance(service.store, FileQueueStore)
            assert isinstance(service.contacts, RESTContactDataProvider)
        finally:
            shutil.rmtree(data_dir, ignore_errors=True)

    def test_explicit_collaborators_win(self, store, contacts, registry):
        service = create_queue_service(Settings(), store=store, contacts=contacts, channels=registry)
        assert service.store is store
        assert service.contacts is contacts
        assert service.channels is registry


class TestMessageQueueService:
    @pytest.mark.asyncio
    async def test_round_trip(self, service, store, registry, clock, single_handler_cls):
        queued = []
        service.on_queued(lambda entry: queued.append(entry.target_id))
        registry.register("email", single_handler_cls())

        result = await service.add_to_queue([{"id": "1"}, {"id": "2"}], "email", channel_id=3)
        assert result.queued_count == 2
        assert queued == ["1", "2"]

        assert await service.send_messages() == 2
        assert store.stats() == {"total": 2, "sent": 2}

    @pytest.mark.asyncio
    async def test_reschedule_by_lookup(self, service, store):
        await service.add_to_queue(["7"], "sms")
        entry = await service.reschedule_message(None, "1", target_id="7", channel="sms")
        assert entry.status == QueueStatus.RESCHEDULED
        assert (await store.get(entry.id)).attempts == 1

    @pytest.mark.asyncio
    async def test_close_closes_provider(self, store, registry, clock):
        contacts = InMemoryContactDataProvider()
        contacts.close = AsyncMock()
        service = MessageQueueService(store, contacts, registry, clock=clock)
        await service.close()
        contacts.close.assert_awaited_once()
