"""Evidence Repository read interface. Read-only."""

from __future__ import annotations

import uuid

from sqlalchemy.orm import Session

from regtruth.models.evidence import Evidence
from regtruth.models.evidence_artifact import EvidenceArtifact
from regtruth.schemas.evidence import EvidenceArtifactRead, EvidenceRead


def get_evidence(db: Session, evidence_id: uuid.UUID) -> EvidenceRead | None:
    """Return one evidence row by id (soft-deleted rows included), or None if not found."""
    row = db.get(Evidence, evidence_id)
    if row is None:
        return None
    return _row_to_evidence_read(row)


def list_evidence_by_url(db: Session, url: str, include_deleted: bool = False) -> list[EvidenceRead]:
    """Return all snapshots of url, newest first."""
    q = db.query(Evidence).filter(Evidence.url == url)
    if not include_deleted:
        q = q.filter(Evidence.deleted_at.is_(None))
    rows = q.order_by(Evidence.fetched_at.desc()).all()
    return [_row_to_evidence_read(r) for r in rows]


def list_artifacts(db: Session, evidence_id: uuid.UUID) -> list[EvidenceArtifactRead]:
    """Return all artifacts for one evidence, oldest first."""
    rows = (
        db.query(EvidenceArtifact)
        .filter(EvidenceArtifact.evidence_id == evidence_id)
        .order_by(EvidenceArtifact.created_at.asc())
        .all()
    )
    return [_row_to_artifact_read(r) for r in rows]


def _row_to_evidence_read(row: Evidence) -> EvidenceRead:
    return EvidenceRead(
        id=row.id,
        url=row.url,
        content_class=row.content_class,
        content_hash=row.content_hash,
        authority_level=row.authority_level,
        fetched_at=row.fetched_at,
        staleness_status=row.staleness_status,
        deleted_at=row.deleted_at,
        merged_into_id=row.merged_into_id,
    )


def _row_to_artifact_read(row: EvidenceArtifact) -> EvidenceArtifactRead:
    return EvidenceArtifactRead(
        id=row.id,
        evidence_id=row.evidence_id,
        kind=row.kind,
        content_hash=row.content_hash,
        metadata=row.artifact_metadata,
        created_at=row.created_at,
    )
