"""RuleRelease ORM: immutable, hash-addressed bundle of published rules."""

from __future__ import annotations

import uuid
from datetime import UTC, datetime

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Table
from sqlalchemy.orm import Mapped, mapped_column, relationship

from regtruth.db.session import Base
from regtruth.db.types import JSONType, UUIDType

release_rules = Table(
    "release_rules",
    Base.metadata,
    Column(
        "release_id",
        UUIDType,
        ForeignKey("rule_releases.id", ondelete="RESTRICT"),
        primary_key=True,
    ),
    Column(
        "rule_id",
        UUIDType,
        ForeignKey("regulatory_rules.id", ondelete="RESTRICT"),
        primary_key=True,
    ),
)


class RuleRelease(Base):
    """Insert-only. content_hash is reproducible from the member rules (see rules.canonical)."""

    __tablename__ = "rule_releases"

    id: Mapped[uuid.UUID] = mapped_column(UUIDType, primary_key=True, default=uuid.uuid4)
    version: Mapped[str] = mapped_column(String(32), nullable=False, unique=True)
    release_type: Mapped[str] = mapped_column(String(8), nullable=False)
    content_hash: Mapped[str] = mapped_column(String(64), nullable=False)
    changelog: Mapped[list | None] = mapped_column(JSONType, nullable=True)
    rule_count: Mapped[int] = mapped_column(Integer, nullable=False)
    previous_release_id: Mapped[uuid.UUID | None] = mapped_column(
        UUIDType, ForeignKey("rule_releases.id", ondelete="RESTRICT"), nullable=True
    )
    released_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        nullable=False,
        index=True,
    )

    rules: Mapped[list["RegulatoryRule"]] = relationship(
        "RegulatoryRule",
        secondary=release_rules,
        order_by="RegulatoryRule.concept_slug",
    )
