"""EvidenceArtifact ORM: derived text of an Evidence (clean, OCR, parsed). Insert-only."""

from __future__ import annotations

import uuid
from datetime import UTC, datetime

from sqlalchemy import DateTime, ForeignKey, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from regtruth.db.session import Base
from regtruth.db.types import JSONType, UUIDType


class EvidenceArtifact(Base):
    """One derived representation, deduplicated by (evidence_id, kind, content_hash)."""

    __tablename__ = "evidence_artifacts"

    __table_args__ = (
        UniqueConstraint(
            "evidence_id",
            "kind",
            "content_hash",
            name="uq_evidence_artifacts_evidence_kind_hash",
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUIDType, primary_key=True, default=uuid.uuid4)
    evidence_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("evidence.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    kind: Mapped[str] = mapped_column(String(32), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    content_hash: Mapped[str] = mapped_column(String(64), nullable=False)
    # e.g. {"ocr_confidence": 0.82, "engine": "tesseract"}
    artifact_metadata: Mapped[dict | None] = mapped_column("metadata", JSONType, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        nullable=False,
    )

    evidence: Mapped["Evidence"] = relationship("Evidence", back_populates="artifacts")
