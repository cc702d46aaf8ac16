"""Evidence Store write path. Insert-only; content-addressed evidence and artifacts; staleness."""

from __future__ import annotations

import hashlib
import logging
import uuid
from datetime import UTC, datetime, timedelta

from sqlalchemy import update
from sqlalchemy.orm import Session

from regtruth.evidence.repository import _row_to_artifact_read
from regtruth.models.enums import ArtifactKind, ContentClass, StalenessStatus
from regtruth.models.evidence import Evidence
from regtruth.models.evidence_artifact import EvidenceArtifact
from regtruth.schemas.evidence import StoredArtifact

logger = logging.getLogger(__name__)

# Primary text resolution order: first kind with an artifact wins, raw content last.
PRIMARY_TEXT_KINDS = (
    ArtifactKind.OCR_TEXT,
    ArtifactKind.PARSED_CLEAN_TEXT,
    ArtifactKind.CLEAN_TEXT,
)


def content_hash(raw: bytes | str) -> str:
    """SHA-256 hex digest of raw bytes (str is hashed as UTF-8)."""
    if isinstance(raw, str):
        raw = raw.encode("utf-8")
    return hashlib.sha256(raw).hexdigest()


def _find_live_evidence(db: Session, url: str, digest: str) -> Evidence | None:
    """Newest non-deleted evidence for (url, content_hash)."""
    return (
        db.query(Evidence)
        .filter(
            Evidence.url == url,
            Evidence.content_hash == digest,
            Evidence.deleted_at.is_(None),
        )
        .order_by(Evidence.fetched_at.desc(), Evidence.created_at.desc())
        .first()
    )


def store_evidence(
    db: Session,
    url: str,
    raw: bytes | str,
    content_class: ContentClass | str,
    content_type: str | None = None,
    authority_level: str | None = None,
    fetched_at: datetime | None = None,
) -> tuple[Evidence, bool]:
    """Get-or-create Evidence by (url, content_hash) among non-deleted rows.

    Text content classes are stored decoded in raw_content; binary (PDF) bodies are kept
    in raw_bytes. Caller commits.

    Returns:
        (evidence, created)
    """
    digest = content_hash(raw)
    existing = _find_live_evidence(db, url, digest)
    if existing is not None:
        logger.info("Evidence unchanged: url=%s content_hash=%s id=%s", url, digest[:12], existing.id)
        return existing, False

    klass = ContentClass(content_class)
    raw_content: str | None
    raw_bytes: bytes | None = None
    if isinstance(raw, bytes):
        if klass in (ContentClass.HTML, ContentClass.JSON):
            raw_content = raw.decode("utf-8", errors="replace")
        else:
            raw_content = None
            raw_bytes = raw
    else:
        raw_content = raw

    row = Evidence(
        url=url,
        content_class=klass.value,
        content_type=content_type,
        raw_content=raw_content,
        raw_bytes=raw_bytes,
        content_hash=digest,
        authority_level=authority_level,
        fetched_at=fetched_at or datetime.now(UTC),
        staleness_status=StalenessStatus.FRESH.value,
    )
    db.add(row)
    db.flush()
    logger.info("Evidence stored: url=%s class=%s id=%s", url, klass.value, row.id)
    return row, True


def latest_artifact(db: Session, evidence_id: uuid.UUID, kind: ArtifactKind) -> EvidenceArtifact | None:
    return (
        db.query(EvidenceArtifact)
        .filter(
            EvidenceArtifact.evidence_id == evidence_id,
            EvidenceArtifact.kind == kind.value,
        )
        .order_by(EvidenceArtifact.created_at.desc())
        .first()
    )


def get_primary_text(db: Session, evidence: Evidence) -> str:
    """Text that extraction and grounding both read: newest OCR, parsed, clean text, then raw."""
    for kind in PRIMARY_TEXT_KINDS:
        artifact = latest_artifact(db, evidence.id, kind)
        if artifact is not None:
            return artifact.content
    return evidence.raw_content or ""


def store_artifact(
    db: Session,
    evidence_id: uuid.UUID,
    kind: ArtifactKind | str,
    content: str,
    metadata: dict | None = None,
) -> StoredArtifact:
    """Get-or-create an artifact by (evidence_id, kind, content_hash). Caller commits.

    primary_text_changed tells the caller to revalidate the evidence's pointers.

    Raises:
        LookupError: If evidence_id does not exist.
    """
    evidence = db.get(Evidence, evidence_id)
    if evidence is None:
        raise LookupError(f"Evidence not found: {evidence_id}")

    kind = ArtifactKind(kind)
    digest = content_hash(content)
    existing = (
        db.query(EvidenceArtifact)
        .filter(
            EvidenceArtifact.evidence_id == evidence_id,
            EvidenceArtifact.kind == kind.value,
            EvidenceArtifact.content_hash == digest,
        )
        .first()
    )
    if existing is not None:
        return StoredArtifact(
            artifact=_row_to_artifact_read(existing),
            created=False,
            primary_text_changed=False,
        )

    before = get_primary_text(db, evidence)
    row = EvidenceArtifact(
        evidence_id=evidence_id,
        kind=kind.value,
        content=content,
        content_hash=digest,
        artifact_metadata=metadata,
    )
    db.add(row)
    db.flush()
    after = get_primary_text(db, evidence)
    changed = content_hash(before) != content_hash(after)
    logger.info(
        "Artifact stored: evidence_id=%s kind=%s primary_text_changed=%s",
        evidence_id,
        kind.value,
        changed,
    )
    return StoredArtifact(
        artifact=_row_to_artifact_read(row),
        created=True,
        primary_text_changed=changed,
    )


def mark_stale_evidence(db: Session, max_age_days: int, now: datetime | None = None) -> int:
    """Flip FRESH evidence fetched more than max_age_days ago to STALE. Commits. Returns count."""
    cutoff = (now or datetime.now(UTC)) - timedelta(days=max_age_days)
    result = db.execute(
        update(Evidence)
        .where(
            Evidence.staleness_status == StalenessStatus.FRESH.value,
            Evidence.deleted_at.is_(None),
            Evidence.fetched_at < cutoff,
        )
        .values(staleness_status=StalenessStatus.STALE.value)
        .execution_options(synchronize_session=False)
    )
    db.commit()
    count = result.rowcount or 0
    if count:
        logger.info("Marked %d evidence rows STALE (older than %d days)", count, max_age_days)
    return count
