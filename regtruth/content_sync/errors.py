"""Content-sync error taxonomy.

Every failure the worker can hit maps to PERMANENT (dead-letter now, fixed reason) or
TRANSIENT (retry with backoff; dead-letter with a fixed reason once attempts run out).
"""

from __future__ import annotations

from enum import Enum

from regtruth.models.enums import DeadLetterReason


class ErrorKind(str, Enum):
    PERMANENT = "PERMANENT"
    TRANSIENT = "TRANSIENT"


class ContentSyncError(Exception):
    kind: ErrorKind = ErrorKind.TRANSIENT
    dead_letter_reason: DeadLetterReason | None = None


class UnmappedConceptError(ContentSyncError):
    kind = ErrorKind.PERMANENT
    dead_letter_reason = DeadLetterReason.UNMAPPED_CONCEPT

    def __init__(self, concept_id: str) -> None:
        super().__init__(f"No content mapping for concept: {concept_id}")
        self.concept_id = concept_id


class InvalidPayloadError(ContentSyncError):
    kind = ErrorKind.PERMANENT
    dead_letter_reason = DeadLetterReason.INVALID_PAYLOAD

    def __init__(self, reason: str, payload: object = None) -> None:
        super().__init__(f"Invalid event payload: {reason}")
        self.reason = reason
        self.payload = payload


class MissingPointersError(ContentSyncError):
    kind = ErrorKind.PERMANENT
    dead_letter_reason = DeadLetterReason.MISSING_POINTERS

    def __init__(self, rule_id: str) -> None:
        super().__init__(f"Event has no source_pointer_ids for rule: {rule_id}")
        self.rule_id = rule_id


class ContentNotFoundError(ContentSyncError):
    kind = ErrorKind.PERMANENT
    dead_letter_reason = DeadLetterReason.CONTENT_NOT_FOUND

    def __init__(self, path: str, concept_id: str) -> None:
        super().__init__(f"Content file not found: {path} (concept {concept_id})")
        self.path = path
        self.concept_id = concept_id


class PatchConflictError(ContentSyncError):
    """Content cannot take the patch: the event is already in its changelog or the
    frontmatter cannot be parsed."""

    kind = ErrorKind.PERMANENT
    dead_letter_reason = DeadLetterReason.PATCH_CONFLICT

    def __init__(self, event_id: str, path: str, detail: str | None = None) -> None:
        message = detail or f"Event {event_id} already present in changelog"
        super().__init__(f"{message}: {path}")
        self.event_id = event_id
        self.path = path


class RepoWriteFailedError(ContentSyncError):
    kind = ErrorKind.TRANSIENT
    dead_letter_reason = DeadLetterReason.REPO_WRITE_FAILED

    def __init__(self, operation: str, cause: BaseException | None = None) -> None:
        super().__init__(f"Content write failed during {operation}: {cause}")
        self.operation = operation
        self.cause = cause


class DbWriteFailedError(ContentSyncError):
    kind = ErrorKind.TRANSIENT
    dead_letter_reason = DeadLetterReason.DB_WRITE_FAILED

    def __init__(self, operation: str, cause: BaseException | None = None) -> None:
        super().__init__(f"Database write failed during {operation}: {cause}")
        self.operation = operation
        self.cause = cause


def classify_error(exc: BaseException) -> ErrorKind:
    """PERMANENT only for known permanent errors; anything unknown is retried."""
    if isinstance(exc, ContentSyncError):
        return exc.kind
    return ErrorKind.TRANSIENT


def dead_letter_reason_for(exc: BaseException) -> DeadLetterReason:
    """Fixed reason code for exc; unknown errors count as content write failures."""
    if isinstance(exc, ContentSyncError) and exc.dead_letter_reason is not None:
        return exc.dead_letter_reason
    return DeadLetterReason.REPO_WRITE_FAILED
