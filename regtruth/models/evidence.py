"""Evidence ORM: one fetched source snapshot, content-addressed by (url, content_hash)."""

from __future__ import annotations

import uuid
from datetime import UTC, datetime

from sqlalchemy import DateTime, Index, LargeBinary, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from regtruth.db.session import Base
from regtruth.db.types import UUIDType
from regtruth.models.enums import StalenessStatus


class Evidence(Base):
    """Fetched source document. Never physically deleted; duplicates are soft-deleted on merge.

    (url, content_hash) is unique among rows with deleted_at IS NULL. That is enforced on
    the write path (get-or-create) and repaired by the dedup tool, not by a DB constraint,
    so legacy duplicates stay visible to the merge.
    """

    __tablename__ = "evidence"

    __table_args__ = (
        Index("ix_evidence_url_content_hash", "url", "content_hash"),
        Index("ix_evidence_deleted_at", "deleted_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUIDType, primary_key=True, default=uuid.uuid4)
    url: Mapped[str] = mapped_column(String(2048), nullable=False)
    content_class: Mapped[str] = mapped_column(String(32), nullable=False)
    content_type: Mapped[str | None] = mapped_column(String(255), nullable=True)
    raw_content: Mapped[str | None] = mapped_column(Text, nullable=True)
    raw_bytes: Mapped[bytes | None] = mapped_column(LargeBinary, nullable=True)
    content_hash: Mapped[str] = mapped_column(String(64), nullable=False)
    authority_level: Mapped[str | None] = mapped_column(String(32), nullable=True)
    fetched_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        nullable=False,
    )
    staleness_status: Mapped[str] = mapped_column(
        String(16), default=StalenessStatus.FRESH.value, nullable=False
    )
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    merged_into_id: Mapped[uuid.UUID | None] = mapped_column(UUIDType, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        nullable=False,
    )

    artifacts: Mapped[list["EvidenceArtifact"]] = relationship(
        "EvidenceArtifact",
        back_populates="evidence",
        order_by="EvidenceArtifact.created_at",
    )
