"""Internal job endpoints for cron/scripts and reviewers' tooling.

These endpoints are secured with a static token (X-Internal-Token header).
They are meant for automated triggers and operator tools only.
"""

from __future__ import annotations

import logging
import secrets
from uuid import UUID

from fastapi import APIRouter, Body, Depends, Header, HTTPException, Query
from sqlalchemy.orm import Session

from regtruth.config import get_settings
from regtruth.content_sync.worker import requeue_dead_letter
from regtruth.db.session import get_db
from regtruth.evidence.repository import get_evidence
from regtruth.evidence.store import store_artifact, store_evidence
from regtruth.grounding.revalidation import revalidate_evidence
from regtruth.pipeline.executor import run_stage as execute_stage
from regtruth.pipeline.stages import STAGE_REGISTRY
from regtruth.rules.arbiter import ConflictResolutionError, resolve_conflict_manually
from regtruth.rules.provenance import ProvenanceGateError
from regtruth.rules.reviewer import RuleInConflictError, approve_rule, reject_rule
from regtruth.rules.status import InvalidTransitionError
from regtruth.schemas.content_sync import ContentSyncEventRead
from regtruth.schemas.evidence import StoreArtifactRequest, StoreEvidenceRequest
from regtruth.schemas.rules import (
    ConflictRead,
    ConflictResolutionRequest,
    RuleDecisionRequest,
    RuleRead,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/internal", include_in_schema=False)


# ── Token dependency ────────────────────────────────────────────────


def _require_internal_token(x_internal_token: str = Header(...)) -> None:
    """Validate the internal job token from the request header.

    Uses constant-time comparison. Raises 403 if the token is empty or does not
    match the configured value.
    """
    expected = get_settings().internal_job_token
    if not expected or not secrets.compare_digest(x_internal_token, expected):
        logger.warning("Internal endpoint auth failed: invalid or missing token")
        raise HTTPException(status_code=403, detail="Invalid internal token")


def _parse_uuid_or_422(value: str, param_name: str) -> UUID:
    """Parse value as a UUID; raise HTTPException 422 if it is not one."""
    try:
        return UUID(value.strip())
    except (ValueError, TypeError, AttributeError):
        raise HTTPException(
            status_code=422,
            detail=f"Invalid {param_name}: must be a valid UUID",
        ) from None


# ── Pipeline ────────────────────────────────────────────────────────


@router.post("/run_stage")
async def run_stage(
    job_type: str = Query(..., description="Registered pipeline stage name"),
    db: Session = Depends(get_db),
    _token: None = Depends(_require_internal_token),
    x_idempotency_key: str | None = Header(None, alias="X-Idempotency-Key"),
):
    """Run one pipeline stage and return its StageResult.

    Idempotency: pass X-Idempotency-Key to get the cached result of an earlier
    completed run instead of running the stage again.
    """
    if job_type not in STAGE_REGISTRY:
        raise HTTPException(
            status_code=422,
            detail=f"Unknown job_type: {job_type}. Expected one of {sorted(STAGE_REGISTRY)}",
        )
    try:
        return dict(execute_stage(db, job_type=job_type, idempotency_key=x_idempotency_key))
    except Exception as exc:
        logger.exception("Internal run_stage failed: job_type=%s", job_type)
        return {"status": "failed", "error": str(exc)}


# ── Evidence ────────────────────────────────────────────────────────


@router.post("/evidence")
async def create_evidence(
    body: StoreEvidenceRequest,
    db: Session = Depends(get_db),
    _token: None = Depends(_require_internal_token),
):
    """Store a fetched source snapshot (get-or-create by url + content hash)."""
    try:
        evidence, created = store_evidence(
            db,
            url=body.url,
            raw=body.raw_content,
            content_class=body.content_class,
            content_type=body.content_type,
            authority_level=body.authority_level.value if body.authority_level else None,
            fetched_at=body.fetched_at,
        )
        db.commit()
    except Exception:
        db.rollback()
        raise
    return {
        "created": created,
        "evidence": get_evidence(db, evidence.id).model_dump(mode="json"),
    }


@router.post("/evidence/{evidence_id}/artifacts")
async def attach_artifact(
    evidence_id: str,
    body: StoreArtifactRequest,
    db: Session = Depends(get_db),
    _token: None = Depends(_require_internal_token),
):
    """Attach OCR or clean text to evidence; revalidates pointers when the primary text changed."""
    ev_id = _parse_uuid_or_422(evidence_id, "evidence_id")
    try:
        stored = store_artifact(db, ev_id, body.kind, body.content, metadata=body.metadata)
        db.commit()
    except LookupError as exc:
        db.rollback()
        raise HTTPException(status_code=404, detail=str(exc)) from None
    except Exception:
        db.rollback()
        raise

    revalidation = None
    if stored.primary_text_changed:
        revalidation = revalidate_evidence(db, ev_id)
    return {
        "artifact": stored.artifact.model_dump(mode="json"),
        "created": stored.created,
        "primary_text_changed": stored.primary_text_changed,
        "revalidation": revalidation,
    }


# ── Review ──────────────────────────────────────────────────────────


@router.post("/rules/{rule_id}/approve")
async def approve(
    rule_id: str,
    body: RuleDecisionRequest,
    db: Session = Depends(get_db),
    _token: None = Depends(_require_internal_token),
):
    """Human approval of a PENDING_REVIEW rule."""
    r_id = _parse_uuid_or_422(rule_id, "rule_id")
    try:
        rule = approve_rule(db, r_id, actor=body.actor, note=body.note)
    except LookupError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from None
    except (InvalidTransitionError, RuleInConflictError, ProvenanceGateError) as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from None
    return RuleRead.model_validate(rule).model_dump(mode="json")


@router.post("/rules/{rule_id}/reject")
async def reject(
    rule_id: str,
    body: RuleDecisionRequest,
    db: Session = Depends(get_db),
    _token: None = Depends(_require_internal_token),
):
    """Human rejection of a rule that is not yet terminal."""
    r_id = _parse_uuid_or_422(rule_id, "rule_id")
    try:
        rule = reject_rule(db, r_id, actor=body.actor, reason=body.note or f"rejected by {body.actor}")
    except LookupError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from None
    except InvalidTransitionError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from None
    return RuleRead.model_validate(rule).model_dump(mode="json")


@router.post("/conflicts/{conflict_id}/resolve")
async def resolve_conflict(
    conflict_id: str,
    body: ConflictResolutionRequest,
    db: Session = Depends(get_db),
    _token: None = Depends(_require_internal_token),
):
    """Record a human decision for an OPEN conflict."""
    c_id = _parse_uuid_or_422(conflict_id, "conflict_id")
    try:
        conflict = resolve_conflict_manually(
            db, c_id, body.winning_rule_id, actor=body.actor, note=body.note
        )
    except LookupError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from None
    except (ConflictResolutionError, InvalidTransitionError) as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from None
    return ConflictRead.model_validate(conflict).model_dump(mode="json")


# ── Content sync ────────────────────────────────────────────────────


@router.post("/content_sync/{event_id}/requeue")
async def requeue_content_sync_event(
    event_id: str,
    actor: str = Body(..., embed=True, min_length=1, max_length=255),
    db: Session = Depends(get_db),
    _token: None = Depends(_require_internal_token),
):
    """Return a dead-lettered content-sync event to PENDING."""
    try:
        event = requeue_dead_letter(db, event_id, actor=actor)
    except LookupError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from None
    except ValueError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from None
    return ContentSyncEventRead(
        event_id=event.event_id,
        type=event.type,
        rule_id=event.rule_id,
        concept_id=event.concept_id,
        status=event.status,
        attempts=event.attempts,
        version=event.version,
        dead_letter_reason=event.dead_letter_reason,
        dead_letter_note=event.dead_letter_note,
        last_error=event.last_error,
        created_at=event.created_at,
        processed_at=event.processed_at,
    ).model_dump(mode="json")
