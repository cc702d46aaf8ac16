"""ContentSyncEvent ORM: durable outbox row for downstream content updates."""

from __future__ import annotations

import uuid
from datetime import UTC, datetime

from sqlalchemy import DateTime, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from regtruth.db.session import Base
from regtruth.db.types import JSONType, UUIDType
from regtruth.models.enums import ContentSyncStatus


class ContentSyncEvent(Base):
    """One downstream-relevant rule change.

    event_id is deterministic (see content_sync.event_id). version is the optimistic
    lock: every ORM update is issued as ``WHERE version = :read_version`` and a stale
    read raises StaleDataError instead of overwriting.
    """

    __tablename__ = "content_sync_events"

    __table_args__ = (Index("ix_content_sync_events_status_created", "status", "created_at"),)

    event_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False)
    type: Mapped[str] = mapped_column(String(32), nullable=False)
    rule_id: Mapped[uuid.UUID] = mapped_column(UUIDType, nullable=False, index=True)
    concept_id: Mapped[str] = mapped_column(String(128), nullable=False)
    status: Mapped[str] = mapped_column(
        String(16), default=ContentSyncStatus.PENDING.value, nullable=False
    )
    attempts: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    payload: Mapped[dict] = mapped_column(JSONType, nullable=False)
    last_error: Mapped[str | None] = mapped_column(Text, nullable=True)
    dead_letter_reason: Mapped[str | None] = mapped_column(String(32), nullable=True)
    dead_letter_note: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        nullable=False,
    )
    enqueued_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    last_attempt_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    next_attempt_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    processed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    __mapper_args__ = {"version_id_col": version}
