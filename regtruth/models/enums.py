"""Closed value sets stored as strings in the database."""

from __future__ import annotations

from enum import Enum


class ContentClass(str, Enum):
    HTML = "HTML"
    PDF_TEXT = "PDF_TEXT"
    PDF_SCANNED = "PDF_SCANNED"
    JSON = "JSON"


class ArtifactKind(str, Enum):
    CLEAN_TEXT = "CLEAN_TEXT"
    OCR_TEXT = "OCR_TEXT"
    PARSED_CLEAN_TEXT = "PARSED_CLEAN_TEXT"


class StalenessStatus(str, Enum):
    FRESH = "FRESH"
    STALE = "STALE"


class AuthorityLevel(str, Enum):
    """Source authority; lower rank wins a conflict."""

    LAW = "LAW"
    GUIDANCE = "GUIDANCE"
    PROCEDURE = "PROCEDURE"
    PRACTICE = "PRACTICE"

    @property
    def rank(self) -> int:
        return _AUTHORITY_RANK[self.value]


_AUTHORITY_RANK = {"LAW": 1, "GUIDANCE": 2, "PROCEDURE": 3, "PRACTICE": 4}
UNKNOWN_AUTHORITY_RANK = 999


def authority_rank(level: str | None) -> int:
    """Rank for a stored authority string; unknown or missing sorts last."""
    if level is None:
        return UNKNOWN_AUTHORITY_RANK
    return _AUTHORITY_RANK.get(level, UNKNOWN_AUTHORITY_RANK)


class MatchType(str, Enum):
    GROUNDED = "GROUNDED"
    NOT_FOUND = "NOT_FOUND"
    PENDING_VERIFICATION = "PENDING_VERIFICATION"


class MatchMode(str, Enum):
    EXACT = "EXACT"
    NORMALIZED = "NORMALIZED"


class RiskTier(str, Enum):
    T0 = "T0"
    T1 = "T1"
    T2 = "T2"
    T3 = "T3"


class RuleStatus(str, Enum):
    DRAFT = "DRAFT"
    PENDING_REVIEW = "PENDING_REVIEW"
    APPROVED = "APPROVED"
    PUBLISHED = "PUBLISHED"
    REJECTED = "REJECTED"


class ConflictStatus(str, Enum):
    OPEN = "OPEN"
    RESOLVED = "RESOLVED"


class ConflictType(str, Enum):
    SOURCE_CONFLICT = "SOURCE_CONFLICT"  # same effective_from, different values
    TEMPORAL_CONFLICT = "TEMPORAL_CONFLICT"  # overlapping periods with different starts


class ResolutionPolicy(str, Enum):
    AUTHORITY = "AUTHORITY"
    RECENCY = "RECENCY"
    CONFIDENCE = "CONFIDENCE"
    HUMAN = "HUMAN"


class ReleaseType(str, Enum):
    MAJOR = "major"
    MINOR = "minor"
    PATCH = "patch"


class ContentSyncStatus(str, Enum):
    PENDING = "PENDING"
    ENQUEUED = "ENQUEUED"
    PROCESSING = "PROCESSING"
    DONE = "DONE"
    FAILED = "FAILED"
    DEAD_LETTERED = "DEAD_LETTERED"
    SKIPPED = "SKIPPED"


class ContentSyncEventType(str, Enum):
    RULE_RELEASED = "RULE_RELEASED"
    RULE_SUPERSEDED = "RULE_SUPERSEDED"
    RULE_EFFECTIVE = "RULE_EFFECTIVE"
    SOURCE_CHANGED = "SOURCE_CHANGED"
    POINTERS_CHANGED = "POINTERS_CHANGED"
    CONFIDENCE_DROPPED = "CONFIDENCE_DROPPED"


class DeadLetterReason(str, Enum):
    UNMAPPED_CONCEPT = "UNMAPPED_CONCEPT"
    INVALID_PAYLOAD = "INVALID_PAYLOAD"
    MISSING_POINTERS = "MISSING_POINTERS"
    CONTENT_NOT_FOUND = "CONTENT_NOT_FOUND"
    PATCH_CONFLICT = "PATCH_CONFLICT"
    REPO_WRITE_FAILED = "REPO_WRITE_FAILED"
    DB_WRITE_FAILED = "DB_WRITE_FAILED"
