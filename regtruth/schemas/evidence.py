"""Evidence store DTOs. Read/return schemas for the Evidence Store and Repository."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from regtruth.models.enums import ArtifactKind, AuthorityLevel, ContentClass


class StoreEvidenceRequest(BaseModel):
    """Request body for POST /internal/evidence."""

    model_config = ConfigDict(extra="forbid")

    url: str = Field(..., min_length=1, max_length=2048)
    content_class: ContentClass
    raw_content: str = Field(..., min_length=1)
    content_type: str | None = Field(None, max_length=255)
    authority_level: AuthorityLevel | None = Field(None)
    fetched_at: datetime | None = Field(None)


class StoreArtifactRequest(BaseModel):
    """Request body for POST /internal/evidence/{evidence_id}/artifacts (OCR / clean text)."""

    model_config = ConfigDict(extra="forbid")

    kind: ArtifactKind
    content: str = Field(..., min_length=1)
    metadata: dict[str, Any] | None = Field(None, description="e.g. ocr_confidence")


class EvidenceRead(BaseModel):
    """Read DTO for one evidence row (repository). raw content omitted."""

    model_config = ConfigDict(extra="forbid")

    id: uuid.UUID = Field(..., description="Evidence primary key")
    url: str = Field(..., max_length=2048)
    content_class: str
    content_hash: str = Field(..., min_length=64, max_length=64)
    authority_level: str | None = Field(None)
    fetched_at: datetime
    staleness_status: str
    deleted_at: datetime | None = Field(None)
    merged_into_id: uuid.UUID | None = Field(None)


class EvidenceArtifactRead(BaseModel):
    """Read DTO for one evidence artifact."""

    model_config = ConfigDict(extra="forbid")

    id: uuid.UUID
    evidence_id: uuid.UUID
    kind: str
    content_hash: str = Field(..., min_length=64, max_length=64)
    metadata: dict[str, Any] | None = Field(None)
    created_at: datetime


class StoredArtifact(BaseModel):
    """Return type for store_artifact: the artifact plus whether evidence text changed."""

    model_config = ConfigDict(extra="forbid")

    artifact: EvidenceArtifactRead
    created: bool
    primary_text_changed: bool
