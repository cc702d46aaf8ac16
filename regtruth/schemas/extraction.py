"""Extractor collaborator contract: candidate assertions for one evidence."""

from __future__ import annotations

import uuid
from datetime import date

from pydantic import BaseModel, ConfigDict, Field


class ExtractionItem(BaseModel):
    """One candidate assertion. Becomes a PENDING_VERIFICATION source pointer."""

    model_config = ConfigDict(extra="ignore")

    domain: str = Field(..., min_length=1, max_length=128)
    extracted_value: str = Field(..., min_length=1)
    exact_quote: str = Field(..., min_length=1)
    confidence: float = Field(..., ge=0.0, le=1.0)
    concept_slug: str | None = Field(None, max_length=128)
    value_type: str | None = Field(None, max_length=32)
    article_ref: str | None = Field(None, max_length=255)
    effective_from: date | None = Field(None)
    effective_until: date | None = Field(None)


class ExtractionResult(BaseModel):
    """What extract(evidence_id) returns. Invalid raw items go to rejected, not extractions."""

    evidence_id: uuid.UUID
    extractions: list[ExtractionItem] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    rejected: list[dict] = Field(default_factory=list)
