"""
Core data models for the message queue.
These are the universal types shared across all modules.
"""
from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Tag naive datetimes as UTC; convert aware ones to UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def new_id() -> str:
    return uuid.uuid4().hex[:16]


# ──────────────────────────────────────────────────────────────
#  Enums
# ──────────────────────────────────────────────────────────────

class QueueStatus(str, Enum):
    PENDING = "pending"
    SENT = "sent"
    RESCHEDULED = "rescheduled"
    FAILED = "failed"           # terminal: gave up after max_attempts


QUEUED_STATUSES = (QueueStatus.PENDING, QueueStatus.RESCHEDULED)


def normalize_channel_id(channel_id: Optional[int]) -> int:
    """``None`` and ``0`` both mean "no sub-grouping" within a channel."""
    return int(channel_id) if channel_id else 0


# ──────────────────────────────────────────────────────────────
#  QueueEntry: one scheduled delivery for one target
# ──────────────────────────────────────────────────────────────

class QueueEntry(BaseModel):
    """A persisted queue record: deliver on ``channel`` to ``target_id`` once due."""
    model_config = ConfigDict(validate_assignment=True)

    id: str = ""                                # assigned on persist
    channel: str                                # delivery subsystem, e.g. "email"
    channel_id: Optional[int] = None            # e.g. template id; 0/None = no sub-grouping
    target_id: str                              # recipient contact ("lead") id
    campaign_event_id: Optional[str] = None     # weak ref to the originating workflow step
    status: QueueStatus = QueueStatus.PENDING
    priority: int = 1                           # lower value = higher priority
    scheduled_date: datetime = Field(default_factory=utcnow)
    date_published: datetime = Field(default_factory=utcnow)
    last_attempt: Optional[datetime] = None
    date_sent: Optional[datetime] = None
    attempts: int = 0
    max_attempts: int = 1
    options: dict[str, Any] = {}                # opaque payload for channel handlers

    @field_validator("scheduled_date", "date_published", "last_attempt", "date_sent")
    @classmethod
    def _utc_dates(cls, value: Optional[datetime]) -> Optional[datetime]:
        return as_utc(value)

    @property
    def dedup_key(self) -> tuple[str, int, str]:
        return (self.channel, normalize_channel_id(self.channel_id), self.target_id)

    @property
    def is_queued(self) -> bool:
        return self.status in QUEUED_STATUSES

    def ensure_id(self) -> str:
        if not self.id:
            self.id = new_id()
        return self.id


# ──────────────────────────────────────────────────────────────
#  Contact data attached to each item for handlers
# ──────────────────────────────────────────────────────────────

class ContactData(BaseModel):
    """Contact profile fields plus related companies, fetched in bulk per page."""
    id: str
    fields: dict[str, Any] = {}
    companies: list[dict[str, Any]] = []

    def get(self, key: str, default: Any = None) -> Any:
        return self.fields.get(key, default)


# ──────────────────────────────────────────────────────────────
#  Per-run transient state
# ──────────────────────────────────────────────────────────────

@dataclass
class ProcessingOutcome:
    """What a handler reported for an entry during one processing pass. Never persisted."""
    processed: bool = False
    success: bool = False
    failed: bool = False
    reason: str = ""


@dataclass
class QueueItem:
    """
    Handler-facing view of one entry during a processing pass.

    Handlers call ``mark_success()`` or ``mark_failed()`` on the items they
    delivered (or tried to). Items they leave untouched stay unprocessed and
    are offered to the channel's single handler.
    """
    entry: QueueEntry
    contact: ContactData
    outcome: ProcessingOutcome = field(default_factory=ProcessingOutcome)

    @property
    def id(self) -> str:
        return self.entry.id

    @property
    def channel(self) -> str:
        return self.entry.channel

    @property
    def channel_id(self) -> int:
        return normalize_channel_id(self.entry.channel_id)

    @property
    def options(self) -> dict[str, Any]:
        return self.entry.options

    @property
    def processed(self) -> bool:
        return self.outcome.processed

    @property
    def success(self) -> bool:
        return self.outcome.success

    @property
    def failed(self) -> bool:
        return self.outcome.failed

    def mark_processed(self) -> None:
        self.outcome.processed = True

    def mark_success(self) -> None:
        self.outcome.processed = True
        self.outcome.success = True
        self.outcome.failed = False

    def mark_failed(self, reason: str = "") -> None:
        self.outcome.processed = True
        self.outcome.failed = True
        self.outcome.success = False
        if reason:
            self.outcome.reason = reason


# ──────────────────────────────────────────────────────────────
#  Enqueue result
# ──────────────────────────────────────────────────────────────

@dataclass
class EnqueueResult:
    """
    Outcome of an enqueue call. Always truthy: skipping duplicates is not an
    error, the counts tell callers what actually happened.
    """
    queued: list[QueueEntry] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)

    @property
    def queued_count(self) -> int:
        return len(self.queued)

    @property
    def skipped_count(self) -> int:
        return len(self.skipped)

    def __bool__(self) -> bool:
        return True
