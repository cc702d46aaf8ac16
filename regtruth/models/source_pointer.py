"""SourcePointer ORM: one claimed fact with its quote, grounded against evidence text."""

from __future__ import annotations

import uuid
from datetime import UTC, date, datetime

from sqlalchemy import Date, DateTime, Float, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from regtruth.db.session import Base
from regtruth.db.types import UUIDType
from regtruth.evidence.refs import EvidenceRef
from regtruth.models.enums import MatchType


class SourcePointer(Base):
    """Extracted assertion. evidence_id is a soft reference (no FK): evidence may live elsewhere."""

    __tablename__ = "source_pointers"

    id: Mapped[uuid.UUID] = mapped_column(UUIDType, primary_key=True, default=uuid.uuid4)
    evidence_id: Mapped[uuid.UUID] = mapped_column(UUIDType, nullable=False, index=True)
    agent_run_id: Mapped[uuid.UUID | None] = mapped_column(
        UUIDType,
        ForeignKey("agent_runs.id", ondelete="SET NULL"),
        nullable=True,
    )
    domain: Mapped[str] = mapped_column(String(128), nullable=False)
    concept_slug: Mapped[str | None] = mapped_column(String(128), nullable=True, index=True)
    value_type: Mapped[str | None] = mapped_column(String(32), nullable=True)
    extracted_value: Mapped[str] = mapped_column(Text, nullable=False)
    exact_quote: Mapped[str] = mapped_column(Text, nullable=False)
    article_ref: Mapped[str | None] = mapped_column(String(255), nullable=True)
    confidence: Mapped[float] = mapped_column(Float, nullable=False)
    effective_from: Mapped[date | None] = mapped_column(Date, nullable=True)
    effective_until: Mapped[date | None] = mapped_column(Date, nullable=True)

    match_type: Mapped[str] = mapped_column(
        String(32), default=MatchType.PENDING_VERIFICATION.value, nullable=False, index=True
    )
    match_mode: Mapped[str | None] = mapped_column(String(16), nullable=True)
    match_start: Mapped[int | None] = mapped_column(Integer, nullable=True)
    match_end: Mapped[int | None] = mapped_column(Integer, nullable=True)
    matched_prefix_length: Mapped[int | None] = mapped_column(Integer, nullable=True)
    divergence_index: Mapped[int | None] = mapped_column(Integer, nullable=True)
    diagnosis: Mapped[str | None] = mapped_column(String(32), nullable=True)
    verified_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        nullable=False,
    )

    @property
    def evidence_ref(self) -> EvidenceRef:
        return EvidenceRef(self.evidence_id)

    @property
    def is_citable(self) -> bool:
        return self.match_type == MatchType.GROUNDED.value
