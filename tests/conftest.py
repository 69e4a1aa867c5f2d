"""Shared test fixtures for the message queue."""
import pytest
from datetime import datetime, timezone
from typing import Sequence

from backend.connector import InMemoryContactDataProvider
from channels.base import BatchHandler, ChannelRegistry, SingleHandler
from config.settings import QueueConfig
from database.store_factory import reset_store
from database.store_memory import InMemoryQueueStore
from job_queue.clock import FrozenClock
from job_queue.service import MessageQueueService
from models.schemas import QueueEntry, QueueItem


NOW = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)


# ──────────────────────────────────────────────────────────────
#  Recording handlers
# ──────────────────────────────────────────────────────────────

class RecordingBatchHandler(BatchHandler):
    """Marks configured targets success/failed and leaves the rest untouched."""

    def __init__(self, succeed: Sequence[str] = (), fail: Sequence[str] = ()):
        self.succeed = set(succeed)
        self.fail = set(fail)
        self.calls: list[tuple[str, int, list[str]]] = []

    async def process_batch(self, items, channel, channel_id):
        self.calls.append((channel, channel_id, [i.entry.target_id for i in items]))
        for item in items:
            if item.entry.target_id in self.succeed:
                item.mark_success()
            elif item.entry.target_id in self.fail:
                item.mark_failed("bounced")


class RecordingSingleHandler(SingleHandler):
    """Succeeds for every item unless its target is listed in ``fail``."""

    def __init__(self, fail: Sequence[str] = ()):
        self.fail = set(fail)
        self.calls: list[str] = []
        self.items: list[QueueItem] = []

    async def process_one(self, item):
        self.calls.append(item.entry.target_id)
        self.items.append(item)
        if item.entry.target_id in self.fail:
            item.mark_failed("unreachable")
        else:
            item.mark_success()


# ──────────────────────────────────────────────────────────────
#  Fixtures
# ──────────────────────────────────────────────────────────────

@pytest.fixture(autouse=True)
def _fresh_store_singleton():
    reset_store()
    yield
    reset_store()


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock(NOW)


@pytest.fixture
def store() -> InMemoryQueueStore:
    return InMemoryQueueStore()


@pytest.fixture
def contacts() -> InMemoryContactDataProvider:
    return InMemoryContactDataProvider(
        contacts={
            "1": {"firstname": "Asha", "email": "asha@example.com"},
            "2": {"firstname": "Ben", "email": "ben@example.com"},
            "3": {"firstname": "Chen", "email": "chen@example.com"},
        },
        companies={
            "1": [{"id": "co_1", "companyname": "Acme"}],
        },
    )


@pytest.fixture
def registry() -> ChannelRegistry:
    return ChannelRegistry()


@pytest.fixture
def queue_config() -> QueueConfig:
    return QueueConfig()


@pytest.fixture
def service(store, contacts, registry, queue_config, clock) -> MessageQueueService:
    return MessageQueueService(store, contacts, registry, queue_config, clock)


@pytest.fixture
def make_entry(clock):
    """Build a queue entry due at the frozen "now" unless told otherwise."""
    def _make(target_id: str = "1", channel: str = "email", channel_id=7, **kwargs) -> QueueEntry:
        kwargs.setdefault("scheduled_date", clock.now())
        kwargs.setdefault("date_published", clock.now())
        return QueueEntry(channel=channel, channel_id=channel_id, target_id=target_id, **kwargs)
    return _make


@pytest.fixture
def batch_handler_cls():
    return RecordingBatchHandler


@pytest.fixture
def single_handler_cls():
    return RecordingSingleHandler
