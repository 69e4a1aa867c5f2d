"""Tests for rescheduling entries directly and by lookup."""
from datetime import datetime, timedelta, timezone

import pytest

from job_queue.errors import InvalidIntervalError
from job_queue.intervals import DATE
from job_queue.rescheduler import Rescheduler
from models.schemas import ContactData, QueueItem, QueueStatus


@pytest.fixture
def rescheduler(store, clock):
    return Rescheduler(store, clock)


class TestRescheduleEntry:
    @pytest.mark.asyncio
    async def test_moves_from_previous_scheduled_date(self, rescheduler, make_entry, clock):
        earlier = clock.now() - timedelta(hours=3)
        entry = make_entry("1", scheduled_date=earlier)

        result = await rescheduler.reschedule_message(entry, "15M")

        assert result is entry
        assert entry.scheduled_date == earlier + timedelta(minutes=15)
        assert entry.status == QueueStatus.RESCHEDULED
        assert entry.attempts == 1
        assert entry.last_attempt == clock.now()

    @pytest.mark.asyncio
    async def test_default_interval(self, rescheduler, make_entry, clock):
        entry = make_entry("1")
        await rescheduler.reschedule_message(entry)
        assert entry.scheduled_date == clock.now() + timedelta(minutes=15)

    @pytest.mark.asyncio
    async def test_date_style_month(self, rescheduler, make_entry):
        entry = make_entry("1", scheduled_date=datetime(2026, 3, 31, 10, 0, tzinfo=timezone.utc))
        await rescheduler.reschedule_message(entry, "1M", interval_style=DATE)
        assert entry.scheduled_date == datetime(2026, 4, 30, 10, 0, tzinfo=timezone.utc)

    @pytest.mark.asyncio
    async def test_does_not_enforce_max_attempts(self, rescheduler, make_entry):
        entry = make_entry("1", attempts=4, max_attempts=1)
        await rescheduler.reschedule_message(entry, "1")
        assert entry.status == QueueStatus.RESCHEDULED
        assert entry.attempts == 5

    @pytest.mark.asyncio
    async def test_not_persisted_unless_asked(self, rescheduler, store, make_entry):
        entry = make_entry("1")
        await store.save(entry)
        saves = store.save_calls

        await rescheduler.reschedule_message(entry, "1")
        assert store.save_calls == saves
        assert (await store.get(entry.id)).status == QueueStatus.PENDING

        await rescheduler.reschedule_message(entry, "1", persist=True)
        assert (await store.get(entry.id)).attempts == 2

    @pytest.mark.asyncio
    async def test_marks_item_processed(self, rescheduler, make_entry):
        item = QueueItem(entry=make_entry("1"), contact=ContactData(id="1"))
        await rescheduler.reschedule_message(item, "30M")
        assert item.processed
        assert not item.success and not item.failed
        assert item.entry.status == QueueStatus.RESCHEDULED

    @pytest.mark.asyncio
    async def test_invalid_interval(self, rescheduler, make_entry):
        entry = make_entry("1")
        with pytest.raises(InvalidIntervalError):
            await rescheduler.reschedule_message(entry, "soon")
        assert entry.attempts == 0


class TestRescheduleByLookup:
    @pytest.mark.asyncio
    async def test_finds_and_persists(self, rescheduler, store, make_entry, clock):
        entry = make_entry("42", channel="sms", channel_id=None)
        await store.save(entry)

        result = await rescheduler.reschedule_message(
            None, "2H", target_id=42, channel="sms", channel_id=0,
        )

        assert result is not None
        assert result.id == entry.id
        stored = await store.get(entry.id)
        assert stored.status == QueueStatus.RESCHEDULED
        assert stored.scheduled_date == clock.now() + timedelta(hours=2)
        assert stored.attempts == 1

    @pytest.mark.asyncio
    async def test_nothing_queued(self, rescheduler, store, make_entry):
        sent = make_entry("1", status=QueueStatus.SENT)
        await store.save(sent)

        assert await rescheduler.reschedule_message(None, target_id="1", channel="email", channel_id=7) is None
        assert await rescheduler.reschedule_message(None, target_id="2", channel="email", channel_id=7) is None
        assert await rescheduler.reschedule_message(None) is None
