"""Pipeline stage protocol and registry.

Every stage records a JobRun (running -> completed | failed). Exceptions never escape
a stage: they are logged, stored in JobRun.error_message and returned with
status "failed".
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import UTC, date, datetime
from typing import Any, Protocol

from sqlalchemy.orm import Session

from regtruth.config import get_settings
from regtruth.content_sync.drainer import QueueBackend, drain_pending
from regtruth.content_sync.emitter import emit_effective_rules
from regtruth.content_sync.tasks import CeleryQueueBackend
from regtruth.db.session import SessionLocal
from regtruth.evidence.store import mark_stale_evidence
from regtruth.extraction.base import Extractor
from regtruth.extraction.llm_extractor import LLMExtractor
from regtruth.extraction.runner import run_pending_extractions
from regtruth.grounding.revalidation import revalidate_orphans, verify_pending_pointers
from regtruth.models.job_run import JobRun
from regtruth.parser.storage import parse_unparsed_evidence
from regtruth.rules.arbiter import arbitrate
from regtruth.rules.composer import compose_rules, resubmit_drafts
from regtruth.rules.releaser import ReleaseBlockedError, release
from regtruth.rules.reviewer import review_pending

logger = logging.getLogger(__name__)


class StageResult(dict[str, Any]):
    """Result from a pipeline stage. Extends dict so it serialises as-is."""


class PipelineStage(Protocol):
    def __call__(self, db: Session, idempotency_key: str | None = None, **kwargs: Any) -> StageResult:
        ...


def build_extractor() -> Extractor:
    return LLMExtractor(SessionLocal)


def build_queue_backend() -> QueueBackend:
    return CeleryQueueBackend()


def _run_with_job(
    db: Session,
    job_type: str,
    work: Callable[[], dict],
    items_key: str,
    idempotency_key: str | None,
) -> StageResult:
    job = JobRun(job_type=job_type, status="running", idempotency_key=idempotency_key)
    db.add(job)
    db.commit()
    db.refresh(job)

    try:
        counts = work()
    except Exception as exc:
        db.rollback()
        logger.exception("Stage %s failed: job_run_id=%s", job_type, job.id)
        job.finished_at = datetime.now(UTC)
        job.status = "failed"
        job.error_message = str(exc)[:2000]
        db.commit()
        return StageResult({"status": "failed", "job_run_id": job.id, "error": str(exc)})

    job.finished_at = datetime.now(UTC)
    job.status = "completed"
    job.items_processed = int(counts.get(items_key) or 0)
    job.result = counts
    db.commit()
    logger.info("Stage %s completed: job_run_id=%s %s", job_type, job.id, counts)
    return StageResult({"status": "completed", "job_run_id": job.id, **counts})


def _parse_stage(db: Session, idempotency_key: str | None = None, **kwargs: Any) -> StageResult:
    """Parse stage: structural parse of evidence without a latest parse."""
    return _run_with_job(
        db, "parse", lambda: parse_unparsed_evidence(db, limit=kwargs.get("limit")), "parsed", idempotency_key
    )


def _extract_stage(db: Session, idempotency_key: str | None = None, **kwargs: Any) -> StageResult:
    """Extract stage: candidate assertions for every evidence (cached per input hash)."""

    def work() -> dict:
        return run_pending_extractions(db, build_extractor(), limit=kwargs.get("limit"))

    return _run_with_job(db, "extract", work, "evidence", idempotency_key)


def _verify_stage(db: Session, idempotency_key: str | None = None, **kwargs: Any) -> StageResult:
    """Verify stage: ground PENDING_VERIFICATION pointers against their evidence."""
    return _run_with_job(
        db, "verify", lambda: verify_pending_pointers(db, limit=kwargs.get("limit")), "verified", idempotency_key
    )


def _compose_stage(db: Session, idempotency_key: str | None = None, **kwargs: Any) -> StageResult:
    """Compose stage: grounded pointers into draft rules, then resubmit repaired drafts."""

    def work() -> dict:
        counts = compose_rules(db)
        counts["resubmitted"] = resubmit_drafts(db)
        return counts

    return _run_with_job(db, "compose", work, "pointers", idempotency_key)


def _arbitrate_stage(db: Session, idempotency_key: str | None = None, **kwargs: Any) -> StageResult:
    """Arbitrate stage: detect and resolve conflicts per concept."""
    return _run_with_job(
        db, "arbitrate", lambda: arbitrate(db, kwargs.get("concepts")), "detected", idempotency_key
    )


def _review_stage(db: Session, idempotency_key: str | None = None, **kwargs: Any) -> StageResult:
    """Review stage: provenance gate and auto-approval of low-risk rules."""
    return _run_with_job(db, "review", lambda: review_pending(db), "reviewed", idempotency_key)


def _release_stage(db: Session, idempotency_key: str | None = None, **kwargs: Any) -> StageResult:
    """Release stage: publish approved rules as the next versioned release."""

    def work() -> dict:
        try:
            bundle = release(db)
        except ReleaseBlockedError as exc:
            raise RuntimeError(
                f"release blocked by provenance gate for {len(exc.problems)} rule(s)"
            ) from exc
        if bundle is None:
            return {"released": 0, "version": None}
        return {
            "released": bundle.rule_count,
            "version": bundle.version,
            "release_type": bundle.release_type,
            "content_hash": bundle.content_hash,
        }

    return _run_with_job(db, "release", work, "released", idempotency_key)


def _revalidate_stage(db: Session, idempotency_key: str | None = None, **kwargs: Any) -> StageResult:
    """Revalidate stage: orphaned pointers become NOT_FOUND; citing rules go back to DRAFT."""
    return _run_with_job(db, "revalidate", lambda: revalidate_orphans(db), "orphans", idempotency_key)


def _effective_scan_stage(db: Session, idempotency_key: str | None = None, **kwargs: Any) -> StageResult:
    """Effective scan: RULE_EFFECTIVE events for published rules now in force."""
    as_of = kwargs.get("as_of") or date.today()
    if isinstance(as_of, str):
        as_of = date.fromisoformat(as_of)
    return _run_with_job(
        db,
        "effective_scan",
        lambda: {"rules": emit_effective_rules(db, as_of), "as_of": as_of.isoformat()},
        "rules",
        idempotency_key,
    )


def _drain_content_sync_stage(db: Session, idempotency_key: str | None = None, **kwargs: Any) -> StageResult:
    """Drain stage: hand PENDING content-sync events to the queue."""

    def work() -> dict:
        return drain_pending(db, build_queue_backend(), limit=kwargs.get("limit"))

    return _run_with_job(db, "drain_content_sync", work, "enqueued", idempotency_key)


def _mark_stale_stage(db: Session, idempotency_key: str | None = None, **kwargs: Any) -> StageResult:
    """Mark-stale stage: FRESH evidence older than the staleness window becomes STALE."""
    days = int(kwargs.get("max_age_days") or get_settings().evidence_stale_days)
    return _run_with_job(
        db, "mark_stale", lambda: {"marked_stale": mark_stale_evidence(db, days)}, "marked_stale", idempotency_key
    )


# Registry: job_type -> callable (db, idempotency_key, **kwargs) -> StageResult
STAGE_REGISTRY: dict[str, PipelineStage] = {
    "parse": _parse_stage,
    "extract": _extract_stage,
    "verify": _verify_stage,
    "compose": _compose_stage,
    "arbitrate": _arbitrate_stage,
    "review": _review_stage,
    "release": _release_stage,
    "revalidate": _revalidate_stage,
    "effective_scan": _effective_scan_stage,
    "drain_content_sync": _drain_content_sync_stage,
    "mark_stale": _mark_stale_stage,
}
