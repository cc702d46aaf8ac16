"""ParsedDocument ORM: one versioned structural parse of an Evidence."""

from __future__ import annotations

import uuid
from datetime import UTC, datetime

from sqlalchemy import Boolean, DateTime, Float, ForeignKey, Index, Integer, String, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from regtruth.db.session import Base
from regtruth.db.types import JSONType, UUIDType


class ParsedDocument(Base):
    """Parse output keyed by (parser_id, parser_version, parse_config_hash).

    At most one row per evidence has is_latest = true (partial unique index).
    """

    __tablename__ = "parsed_documents"

    __table_args__ = (
        Index(
            "uq_parsed_documents_evidence_latest",
            "evidence_id",
            unique=True,
            postgresql_where=text("is_latest"),
            sqlite_where=text("is_latest"),
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUIDType, primary_key=True, default=uuid.uuid4)
    evidence_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("evidence.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    artifact_id: Mapped[uuid.UUID | None] = mapped_column(
        UUIDType,
        ForeignKey("evidence_artifacts.id", ondelete="SET NULL"),
        nullable=True,
    )
    parser_id: Mapped[str] = mapped_column(String(64), nullable=False)
    parser_version: Mapped[str] = mapped_column(String(32), nullable=False)
    parse_config_hash: Mapped[str] = mapped_column(String(64), nullable=False)
    clean_text_hash: Mapped[str] = mapped_column(String(64), nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False)
    node_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    coverage_percent: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    stats: Mapped[dict | None] = mapped_column(JSONType, nullable=True)
    warnings: Mapped[list | None] = mapped_column(JSONType, nullable=True)
    is_latest: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    supersedes_id: Mapped[uuid.UUID | None] = mapped_column(
        UUIDType,
        ForeignKey("parsed_documents.id", ondelete="SET NULL"),
        nullable=True,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        nullable=False,
    )

    nodes: Mapped[list["ProvisionNode"]] = relationship(
        "ProvisionNode",
        back_populates="parsed_document",
        cascade="all, delete-orphan",
        order_by="ProvisionNode.sort_key",
    )
