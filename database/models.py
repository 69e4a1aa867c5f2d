"""
SQLAlchemy ORM models — Cross-database compatible.

Supports: PostgreSQL, MySQL 8+, SQLite.

Key design decisions:
  - JSON type instead of PostgreSQL-specific JSONB — on PG the dialect maps
    JSON to jsonb automatically; on MySQL it uses native JSON; on SQLite
    it serializes to TEXT.
  - String primary keys (uuid hex) — no database-specific sequences.
  - channel_id stored normalized (0 = no sub-grouping) so the dedup lookup
    is a plain equality on every dialect.
"""
from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from sqlalchemy import String, Integer, DateTime, Index, JSON
from sqlalchemy.ext.asyncio import AsyncAttrs
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from models.schemas import new_id, utcnow


class Base(AsyncAttrs, DeclarativeBase):
    """Base class for all ORM models."""
    pass


# ──────────────────────────────────────────────────────────────
#  Message queue
# ──────────────────────────────────────────────────────────────

class MessageQueueRow(Base):
    __tablename__ = "message_queue"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=new_id)
    channel: Mapped[str] = mapped_column(String(64), nullable=False)
    channel_id: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    target_id: Mapped[str] = mapped_column(String(64), nullable=False)
    campaign_event_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)

    status: Mapped[str] = mapped_column(String(32), default="pending")
    priority: Mapped[int] = mapped_column(Integer, default=1)

    scheduled_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    date_published: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    last_attempt: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    date_sent: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    attempts: Mapped[int] = mapped_column(Integer, default=0)
    max_attempts: Mapped[int] = mapped_column(Integer, default=1)

    options: Mapped[Any] = mapped_column(JSON, default=dict)

    __table_args__ = (
        Index("ix_message_queue_status_scheduled", "status", "scheduled_date"),
        Index("ix_message_queue_dedup", "channel", "channel_id", "target_id"),
        Index("ix_message_queue_priority", "priority", "scheduled_date"),
    )
