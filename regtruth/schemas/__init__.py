"""Pydantic schemas for request/response validation."""

from regtruth.schemas.content_sync import ContentSyncEventRead, ContentSyncPayloadV1
from regtruth.schemas.evidence import (
    EvidenceArtifactRead,
    EvidenceRead,
    StoreArtifactRequest,
    StoredArtifact,
    StoreEvidenceRequest,
)
from regtruth.schemas.extraction import ExtractionItem, ExtractionResult
from regtruth.schemas.rules import (
    CanonicalRuleEntry,
    ConflictRead,
    ConflictResolutionRequest,
    ResolvedRuleBundle,
    RuleDecisionRequest,
    RuleRead,
    RuleReleaseRead,
)

__all__ = [
    # Content sync
    "ContentSyncPayloadV1",
    "ContentSyncEventRead",
    # Evidence
    "StoreEvidenceRequest",
    "StoreArtifactRequest",
    "EvidenceRead",
    "EvidenceArtifactRead",
    "StoredArtifact",
    # Extraction
    "ExtractionItem",
    "ExtractionResult",
    # Rules
    "CanonicalRuleEntry",
    "ResolvedRuleBundle",
    "RuleRead",
    "RuleReleaseRead",
    "ConflictRead",
    "RuleDecisionRequest",
    "ConflictResolutionRequest",
]
