"""Content-sync worker: claim one event, patch the mapped content files, record the outcome.

Claiming, patching and marking the result are separate transactions. Patching is
idempotent per file (a file already holding the event id is skipped), so a crash
between patching and marking DONE is repaired by the next attempt.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta

from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from regtruth.concepts.loader import get_concept
from regtruth.config import Settings, get_settings
from regtruth.content_sync.errors import (
    DbWriteFailedError,
    ErrorKind,
    InvalidPayloadError,
    MissingPointersError,
    PatchConflictError,
    UnmappedConceptError,
    classify_error,
    dead_letter_reason_for,
)
from regtruth.content_sync.patcher import FrontmatterError, patch_frontmatter
from regtruth.content_sync.repo_adapter import FilesystemContentRepo
from regtruth.models.content_sync_event import ContentSyncEvent
from regtruth.models.enums import ContentSyncStatus
from regtruth.schemas.content_sync import ContentSyncPayloadV1

logger = logging.getLogger(__name__)

CLAIMABLE_STATUSES = (
    ContentSyncStatus.PENDING.value,
    ContentSyncStatus.ENQUEUED.value,
    ContentSyncStatus.FAILED.value,
)
NOT_CLAIMED = "NOT_CLAIMED"


@dataclass
class ProcessOutcome:
    event_id: str
    status: str
    patched: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    retry_in: int | None = None
    error: str | None = None

    def as_dict(self) -> dict:
        return {
            "event_id": self.event_id,
            "status": self.status,
            "patched": self.patched,
            "skipped": self.skipped,
            "retry_in": self.retry_in,
            "error": self.error,
        }


def retry_delay(attempts: int, backoff_seconds: int) -> int:
    """Exponential backoff: backoff, 2*backoff, 4*backoff ... for attempts 1, 2, 3 ..."""
    return backoff_seconds * 2 ** max(0, attempts - 1)


def claim_event(db: Session, event_id: str) -> ContentSyncEvent | None:
    """Move a claimable event to PROCESSING and count the attempt. Commits.

    Returns None when the event is missing, not claimable, or another worker claimed it
    first (the version check fails with StaleDataError).
    """
    event = db.get(ContentSyncEvent, event_id, populate_existing=True)
    if event is None or event.status not in CLAIMABLE_STATUSES:
        return None
    event.status = ContentSyncStatus.PROCESSING.value
    event.attempts = (event.attempts or 0) + 1
    event.last_attempt_at = datetime.now(UTC)
    event.next_attempt_at = None
    try:
        db.commit()
    except StaleDataError:
        db.rollback()
        logger.info("Content sync claim lost: event_id=%s", event_id[:12])
        return None
    return event


def _validate_payload(event: ContentSyncEvent) -> ContentSyncPayloadV1:
    try:
        payload = ContentSyncPayloadV1.model_validate(event.payload)
    except ValidationError as exc:
        raise InvalidPayloadError(str(exc.errors()[:3]), event.payload) from exc
    if payload.event_id != event.event_id:
        raise InvalidPayloadError("payload event_id does not match row", event.payload)
    return payload


def _patch_content(
    repo: FilesystemContentRepo,
    paths: tuple[str, ...],
    payload: ContentSyncPayloadV1,
) -> tuple[list[str], list[str]]:
    """Patch every path; returns (patched, skipped). Nothing is written if any file is missing
    or unparseable."""
    originals = {path: repo.read(path, payload.concept_id) for path in paths}
    patches: dict[str, str] = {}
    skipped: list[str] = []
    for path, text in originals.items():
        try:
            patched = patch_frontmatter(text, payload)
        except FrontmatterError as exc:
            raise PatchConflictError(payload.event_id, path, detail=str(exc)) from exc
        if patched is None:
            logger.info("Content sync skip (event present): event_id=%s path=%s", payload.event_id[:12], path)
            skipped.append(path)
        else:
            patches[path] = patched
    for path, text in patches.items():
        repo.write(path, text)
    return list(patches), skipped


def _record_failure(
    db: Session, event_id: str, exc: BaseException, settings: Settings
) -> ProcessOutcome:
    db.rollback()
    event = db.get(ContentSyncEvent, event_id)
    if event is None:
        raise LookupError(f"Content sync event disappeared: {event_id}") from exc
    message = str(exc)[:2000]
    event.last_error = message
    kind = classify_error(exc)
    if kind == ErrorKind.PERMANENT or event.attempts >= settings.content_sync_max_attempts:
        reason = dead_letter_reason_for(exc)
        event.status = ContentSyncStatus.DEAD_LETTERED.value
        event.dead_letter_reason = reason.value
        event.dead_letter_note = message
        event.next_attempt_at = None
        db.commit()
        logger.error(
            "Content sync dead-lettered: event_id=%s reason=%s attempts=%d error=%s",
            event_id[:12],
            reason.value,
            event.attempts,
            message,
        )
        return ProcessOutcome(event_id, event.status, error=message)

    delay = retry_delay(event.attempts, settings.content_sync_backoff_seconds)
    event.status = ContentSyncStatus.FAILED.value
    event.next_attempt_at = datetime.now(UTC) + timedelta(seconds=delay)
    db.commit()
    logger.warning(
        "Content sync failed (retry in %ds): event_id=%s attempts=%d error=%s",
        delay,
        event_id[:12],
        event.attempts,
        message,
    )
    return ProcessOutcome(event_id, event.status, retry_in=delay, error=message)


def process_event(
    db: Session,
    event_id: str,
    repo: FilesystemContentRepo | None = None,
    settings: Settings | None = None,
) -> ProcessOutcome:
    """Process one content-sync event end to end. Commits.

    PERMANENT errors dead-letter at once; TRANSIENT errors leave the event FAILED with
    retry_in set, until the attempt budget is spent.
    """
    settings = settings or get_settings()
    repo = repo or FilesystemContentRepo(settings.content_dir)

    event = claim_event(db, event_id)
    if event is None:
        logger.info("Content sync event not claimable: event_id=%s", event_id[:12])
        return ProcessOutcome(event_id, NOT_CLAIMED)

    try:
        payload = _validate_payload(event)
        concept = get_concept(event.concept_id)
        if concept is None or not concept.content_paths:
            raise UnmappedConceptError(event.concept_id)
        if not payload.source_pointer_ids:
            raise MissingPointersError(str(payload.rule_id))
        patched, skipped = _patch_content(repo, concept.content_paths, payload)
    except Exception as exc:
        return _record_failure(db, event_id, exc, settings)

    try:
        event.status = (
            ContentSyncStatus.DONE.value if patched else ContentSyncStatus.SKIPPED.value
        )
        event.processed_at = datetime.now(UTC)
        event.last_error = None
        if not patched:
            event.dead_letter_note = "event already present in every content file"
        db.commit()
    except SQLAlchemyError as exc:
        return _record_failure(db, event_id, DbWriteFailedError("mark_done", exc), settings)

    logger.info(
        "Content sync %s: event_id=%s concept=%s patched=%d skipped=%d",
        event.status,
        event_id[:12],
        event.concept_id,
        len(patched),
        len(skipped),
    )
    return ProcessOutcome(event_id, event.status, patched=patched, skipped=skipped)


def requeue_dead_letter(db: Session, event_id: str, actor: str) -> ContentSyncEvent:
    """Return a dead-lettered event to PENDING with a fresh attempt budget. Commits.

    Raises:
        LookupError: If the event does not exist.
        ValueError: If the event is not DEAD_LETTERED.
    """
    event = db.get(ContentSyncEvent, event_id, populate_existing=True)
    if event is None:
        raise LookupError(f"Content sync event not found: {event_id}")
    if event.status != ContentSyncStatus.DEAD_LETTERED.value:
        raise ValueError(f"Event {event_id} is {event.status}, not DEAD_LETTERED")
    previous_reason = event.dead_letter_reason
    event.status = ContentSyncStatus.PENDING.value
    event.attempts = 0
    event.dead_letter_reason = None
    event.dead_letter_note = f"requeued by {actor} (was {previous_reason})"
    event.next_attempt_at = None
    db.commit()
    logger.info(
        "Content sync dead letter requeued: event_id=%s reason=%s actor=%s",
        event_id[:12],
        previous_reason,
        actor,
    )
    return event
