"""Run an extractor over evidence and persist its candidate assertions.

The AgentRun row is committed as "running" before the external call so no
transaction stays open while the model works. Evidence already extracted with the
same extractor version and the same input text is skipped. Candidate assertions
become PENDING_VERIFICATION source pointers; items that failed validation are written
to extraction_quarantine.
"""

from __future__ import annotations

import logging
import uuid
from datetime import UTC, datetime

from sqlalchemy.orm import Session

from regtruth.concepts.loader import resolve_concept_slug
from regtruth.evidence.refs import EvidenceRef, resolve_evidence_ref
from regtruth.evidence.store import content_hash, get_primary_text
from regtruth.extraction.base import Extractor
from regtruth.models.agent_run import AgentRun
from regtruth.models.enums import MatchType
from regtruth.models.evidence import Evidence
from regtruth.models.extraction_quarantine import ExtractionQuarantine
from regtruth.models.source_pointer import SourcePointer
from regtruth.schemas.extraction import ExtractionItem

logger = logging.getLogger(__name__)

AGENT_TYPE_EXTRACTOR = "EXTRACTOR"
RUN_RUNNING = "running"
RUN_COMPLETED = "completed"
RUN_FAILED = "failed"


def _cached_run(db: Session, evidence_id: uuid.UUID, version: str, input_hash: str) -> AgentRun | None:
    return (
        db.query(AgentRun)
        .filter(
            AgentRun.agent_type == AGENT_TYPE_EXTRACTOR,
            AgentRun.evidence_id == evidence_id,
            AgentRun.extractor_version == version,
            AgentRun.input_content_hash == input_hash,
            AgentRun.status == RUN_COMPLETED,
        )
        .order_by(AgentRun.started_at.desc())
        .first()
    )


def _pointer_from_item(evidence_id: uuid.UUID, run_id: uuid.UUID, item: ExtractionItem) -> SourcePointer:
    return SourcePointer(
        evidence_id=evidence_id,
        agent_run_id=run_id,
        domain=item.domain,
        concept_slug=resolve_concept_slug(item.concept_slug) or resolve_concept_slug(item.domain),
        value_type=item.value_type,
        extracted_value=item.extracted_value,
        exact_quote=item.exact_quote,
        article_ref=item.article_ref,
        confidence=item.confidence,
        effective_from=item.effective_from,
        effective_until=item.effective_until,
        match_type=MatchType.PENDING_VERIFICATION.value,
    )


def run_extraction(
    db: Session, evidence_id: uuid.UUID, extractor: Extractor
) -> tuple[AgentRun, bool]:
    """Extract assertions for one evidence. Commits.

    Returns (run, cached); cached runs are earlier completed runs for the same input. A failing
    extractor is recorded as a failed run, not raised.

    Raises:
        LookupError: If the evidence is missing or soft-deleted.
    """
    evidence = resolve_evidence_ref(db, EvidenceRef(evidence_id))
    if evidence is None:
        raise LookupError(f"Evidence not found: {evidence_id}")
    input_hash = content_hash(get_primary_text(db, evidence))

    cached = _cached_run(db, evidence_id, extractor.version, input_hash)
    if cached is not None:
        logger.info(
            "Extraction skipped (cached): evidence=%s version=%s run=%s",
            evidence_id,
            extractor.version,
            cached.id,
        )
        return cached, True

    run = AgentRun(
        agent_type=AGENT_TYPE_EXTRACTOR,
        evidence_id=evidence_id,
        extractor_version=extractor.version,
        input_content_hash=input_hash,
        status=RUN_RUNNING,
        started_at=datetime.now(UTC),
    )
    db.add(run)
    db.flush()
    run_id = run.id
    db.commit()

    try:
        result = extractor.extract(evidence_id)
    except Exception as exc:
        logger.exception("Extraction failed: evidence=%s run=%s", evidence_id, run_id)
        run.status = RUN_FAILED
        run.error_message = str(exc)[:2000]
        run.finished_at = datetime.now(UTC)
        db.commit()
        return run, False

    try:
        for item in result.extractions:
            db.add(_pointer_from_item(evidence_id, run_id, item))
        for rejected in result.rejected:
            payload = rejected.get("item")
            db.add(
                ExtractionQuarantine(
                    agent_run_id=run_id,
                    evidence_id=evidence_id,
                    payload=payload if isinstance(payload, dict) else {"raw": payload},
                    reason=rejected.get("reason"),
                )
            )
        run.status = RUN_COMPLETED
        run.item_count = len(result.extractions)
        run.warnings = result.warnings or None
        run.finished_at = datetime.now(UTC)
        db.commit()
    except Exception:
        db.rollback()
        raise

    if result.rejected:
        logger.warning(
            "Extraction quarantined %d item(s): evidence=%s run=%s",
            len(result.rejected),
            evidence_id,
            run_id,
        )
    logger.info(
        "Extraction completed: evidence=%s run=%s pointers=%d",
        evidence_id,
        run_id,
        len(result.extractions),
    )
    return run, False


def run_pending_extractions(db: Session, extractor: Extractor, limit: int | None = None) -> dict:
    """Run extraction for every live evidence with text. Cached evidence costs one query."""
    q = (
        db.query(Evidence.id)
        .filter(Evidence.deleted_at.is_(None))
        .order_by(Evidence.fetched_at.asc(), Evidence.id.asc())
    )
    if limit:
        q = q.limit(limit)
    counts = {"evidence": 0, "completed": 0, "cached": 0, "failed": 0, "pointers": 0}
    for (evidence_id,) in q.all():
        counts["evidence"] += 1
        run, cached = run_extraction(db, evidence_id, extractor)
        if run.status == RUN_FAILED:
            counts["failed"] += 1
        elif cached:
            counts["cached"] += 1
        else:
            counts["completed"] += 1
            counts["pointers"] += run.item_count or 0
    return counts
