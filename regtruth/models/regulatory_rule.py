"""RegulatoryRule ORM and the rule -> source pointer association."""

from __future__ import annotations

import uuid
from datetime import UTC, date, datetime

from sqlalchemy import Column, Date, DateTime, Float, ForeignKey, String, Table, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from regtruth.db.session import Base
from regtruth.db.types import UUIDType
from regtruth.models.enums import RuleStatus

rule_source_pointers = Table(
    "rule_source_pointers",
    Base.metadata,
    Column(
        "rule_id",
        UUIDType,
        ForeignKey("regulatory_rules.id", ondelete="CASCADE"),
        primary_key=True,
    ),
    Column(
        "source_pointer_id",
        UUIDType,
        ForeignKey("source_pointers.id", ondelete="CASCADE"),
        primary_key=True,
    ),
)


class RegulatoryRule(Base):
    """Versioned factual rule for one concept and effective period.

    Status changes go through regtruth.rules.status; never assign status directly.
    """

    __tablename__ = "regulatory_rules"

    id: Mapped[uuid.UUID] = mapped_column(UUIDType, primary_key=True, default=uuid.uuid4)
    concept_slug: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    title: Mapped[str] = mapped_column(String(512), nullable=False)
    domain: Mapped[str | None] = mapped_column(String(128), nullable=True)
    value: Mapped[str] = mapped_column(Text, nullable=False)
    value_type: Mapped[str] = mapped_column(String(32), nullable=False)
    normalized_value: Mapped[str] = mapped_column(Text, nullable=False)
    risk_tier: Mapped[str] = mapped_column(String(4), nullable=False)
    authority_level: Mapped[str | None] = mapped_column(String(32), nullable=True)
    status: Mapped[str] = mapped_column(
        String(32), default=RuleStatus.DRAFT.value, nullable=False, index=True
    )
    effective_from: Mapped[date] = mapped_column(Date, nullable=False)
    effective_until: Mapped[date | None] = mapped_column(Date, nullable=True)
    confidence: Mapped[float] = mapped_column(Float, nullable=False)
    superseded_by_id: Mapped[uuid.UUID | None] = mapped_column(
        UUIDType,
        ForeignKey("regulatory_rules.id", ondelete="SET NULL"),
        nullable=True,
    )
    approved_by: Mapped[str | None] = mapped_column(String(255), nullable=True)
    approved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    published_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    status_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
        nullable=False,
    )

    source_pointers: Mapped[list["SourcePointer"]] = relationship(
        "SourcePointer",
        secondary=rule_source_pointers,
        order_by="SourcePointer.created_at",
    )
