"""Rule table ORM: versioned lookup tables (rates, brackets) plus snapshots and calculations."""

from __future__ import annotations

import uuid
from datetime import UTC, date, datetime

from sqlalchemy import Date, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from regtruth.db.session import Base
from regtruth.db.types import JSONType, UUIDType


class RuleTable(Base):
    __tablename__ = "rule_tables"

    id: Mapped[uuid.UUID] = mapped_column(UUIDType, primary_key=True, default=uuid.uuid4)
    key: Mapped[str] = mapped_column(String(128), nullable=False, unique=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        nullable=False,
    )

    versions: Mapped[list["RuleVersion"]] = relationship(
        "RuleVersion", back_populates="table", order_by="RuleVersion.version"
    )


class RuleVersion(Base):
    """One immutable version of a rule table; data_hash is the canonical JSON hash of data."""

    __tablename__ = "rule_versions"

    __table_args__ = (
        UniqueConstraint("table_id", "version", name="uq_rule_versions_table_version"),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUIDType, primary_key=True, default=uuid.uuid4)
    table_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType, ForeignKey("rule_tables.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    version: Mapped[int] = mapped_column(Integer, nullable=False)
    effective_from: Mapped[date] = mapped_column(Date, nullable=False)
    effective_until: Mapped[date | None] = mapped_column(Date, nullable=True)
    data: Mapped[dict] = mapped_column(JSONType, nullable=False)
    data_hash: Mapped[str] = mapped_column(String(64), nullable=False)
    published_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        nullable=False,
    )

    table: Mapped["RuleTable"] = relationship("RuleTable", back_populates="versions")


class RuleSnapshot(Base):
    __tablename__ = "rule_snapshots"

    id: Mapped[uuid.UUID] = mapped_column(UUIDType, primary_key=True, default=uuid.uuid4)
    rule_version_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType, ForeignKey("rule_versions.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    data: Mapped[dict] = mapped_column(JSONType, nullable=False)
    data_hash: Mapped[str] = mapped_column(String(64), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        nullable=False,
    )


class RuleCalculation(Base):
    """Audit record of one calculation performed against a rule version."""

    __tablename__ = "rule_calculations"

    id: Mapped[uuid.UUID] = mapped_column(UUIDType, primary_key=True, default=uuid.uuid4)
    rule_version_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType, ForeignKey("rule_versions.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    table_key: Mapped[str] = mapped_column(String(128), nullable=False)
    input: Mapped[dict] = mapped_column(JSONType, nullable=False)
    result: Mapped[dict] = mapped_column(JSONType, nullable=False)
    reference_date: Mapped[date] = mapped_column(Date, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        nullable=False,
    )
