"""Content-sync event payload (version 1) and read DTOs."""

from __future__ import annotations

import uuid
from datetime import date, datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from regtruth.models.enums import ContentSyncEventType

ChangeType = Literal["create", "update", "repeal"]
Severity = Literal["breaking", "major", "minor", "info"]


class ContentSyncPayloadV1(BaseModel):
    """Snapshot of a rule change as stored in content_sync_events.payload."""

    model_config = ConfigDict(extra="forbid")

    version: Literal[1] = 1
    event_id: str = Field(..., min_length=64, max_length=64)
    type: ContentSyncEventType
    rule_id: uuid.UUID
    concept_id: str = Field(..., min_length=1, max_length=128)
    domain: str | None = Field(None, max_length=128)
    change_type: ChangeType
    effective_from: date
    previous_value: str | None = Field(None)
    new_value: str | None = Field(None)
    value_type: str | None = Field(None, max_length=32)
    source_pointer_ids: list[uuid.UUID] = Field(default_factory=list)
    confidence_level: int = Field(..., ge=0, le=100)
    severity: Severity


class ContentSyncEventRead(BaseModel):
    """Read DTO for one content-sync event (operators / internal API)."""

    model_config = ConfigDict(extra="forbid")

    event_id: str
    type: str
    rule_id: uuid.UUID
    concept_id: str
    status: str
    attempts: int
    version: int
    dead_letter_reason: str | None = Field(None)
    dead_letter_note: str | None = Field(None)
    last_error: str | None = Field(None)
    created_at: datetime
    processed_at: datetime | None = Field(None)
