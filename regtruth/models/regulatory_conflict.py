"""RegulatoryConflict ORM: two rules disagreeing on a concept for overlapping periods."""

from __future__ import annotations

import uuid
from datetime import UTC, datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from regtruth.db.session import Base
from regtruth.db.types import UUIDType
from regtruth.models.enums import ConflictStatus


class RegulatoryConflict(Base):
    """OPEN until resolved by policy (authority, recency, confidence) or by a human."""

    __tablename__ = "regulatory_conflicts"

    id: Mapped[uuid.UUID] = mapped_column(UUIDType, primary_key=True, default=uuid.uuid4)
    concept_slug: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    conflict_type: Mapped[str] = mapped_column(String(32), nullable=False)
    rule_a_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType, ForeignKey("regulatory_rules.id", ondelete="CASCADE"), nullable=False
    )
    rule_b_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType, ForeignKey("regulatory_rules.id", ondelete="CASCADE"), nullable=False
    )
    status: Mapped[str] = mapped_column(
        String(16), default=ConflictStatus.OPEN.value, nullable=False, index=True
    )
    requires_human_review: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    escalation_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    winning_rule_id: Mapped[uuid.UUID | None] = mapped_column(
        UUIDType, ForeignKey("regulatory_rules.id", ondelete="SET NULL"), nullable=True
    )
    decided_by: Mapped[str | None] = mapped_column(String(16), nullable=True)
    resolved_by: Mapped[str | None] = mapped_column(String(255), nullable=True)
    resolution_note: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        nullable=False,
    )
    resolved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    rule_a: Mapped["RegulatoryRule"] = relationship("RegulatoryRule", foreign_keys=[rule_a_id])
    rule_b: Mapped["RegulatoryRule"] = relationship("RegulatoryRule", foreign_keys=[rule_b_id])

    def involves(self, rule_id: uuid.UUID) -> bool:
        return rule_id in (self.rule_a_id, self.rule_b_id)
