"""ExtractionQuarantine ORM: extraction items rejected by validation."""

from __future__ import annotations

import uuid
from datetime import UTC, datetime

from sqlalchemy import DateTime, Text
from sqlalchemy.orm import Mapped, mapped_column

from regtruth.db.session import Base
from regtruth.db.types import JSONType, UUIDType


class ExtractionQuarantine(Base):
    """One quarantined extraction item; no FK to agent runs or evidence."""

    __tablename__ = "extraction_quarantine"

    id: Mapped[uuid.UUID] = mapped_column(UUIDType, primary_key=True, default=uuid.uuid4)
    agent_run_id: Mapped[uuid.UUID | None] = mapped_column(UUIDType, nullable=True)
    evidence_id: Mapped[uuid.UUID | None] = mapped_column(UUIDType, nullable=True)
    payload: Mapped[dict] = mapped_column(JSONType, nullable=False)
    reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        nullable=False,
    )
