"""Rule, conflict and release schemas for the public and internal APIs."""

from __future__ import annotations

import uuid
from datetime import date, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class CanonicalRuleEntry(BaseModel):
    """One member of a release as it enters the content hash."""

    conceptSlug: str
    value: str
    valueType: str
    effectiveFrom: str
    effectiveUntil: str | None = None


class ResolvedRuleBundle(BaseModel):
    """Response of GET /rules/resolve. content_hash covers `entries` exactly."""

    concept_slug: str
    effective_on: date
    release_version: str
    release_type: str
    content_hash: str
    released_at: datetime
    rule: CanonicalRuleEntry
    rule_id: uuid.UUID
    risk_tier: str
    confidence: float = Field(..., ge=0.0, le=1.0)
    source_pointer_ids: list[uuid.UUID] = Field(default_factory=list)
    entries: list[CanonicalRuleEntry] = Field(default_factory=list)


class RuleRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    concept_slug: str
    title: str
    value: str
    value_type: str
    risk_tier: str
    authority_level: str | None = None
    status: str
    effective_from: date
    effective_until: date | None = None
    confidence: float
    superseded_by_id: uuid.UUID | None = None
    approved_by: str | None = None
    status_reason: str | None = None


class RuleReleaseRead(BaseModel):
    """Schema for GET /rules/releases/{version}."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    version: str
    release_type: str
    content_hash: str
    rule_count: int
    released_at: datetime
    changelog: list[dict[str, Any]] | None = None
    entries: list[CanonicalRuleEntry] = Field(default_factory=list)


class ConflictRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    concept_slug: str
    conflict_type: str
    rule_a_id: uuid.UUID
    rule_b_id: uuid.UUID
    status: str
    requires_human_review: bool
    escalation_reason: str | None = None
    winning_rule_id: uuid.UUID | None = None
    decided_by: str | None = None
    resolved_by: str | None = None
    resolution_note: str | None = None


class RuleDecisionRequest(BaseModel):
    """Body for approving or rejecting a rule."""

    model_config = ConfigDict(extra="forbid")

    actor: str = Field(..., min_length=1, max_length=255)
    note: str | None = Field(None, max_length=2000)


class ConflictResolutionRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    winning_rule_id: uuid.UUID
    actor: str = Field(..., min_length=1, max_length=255)
    note: str | None = Field(None, max_length=2000)
