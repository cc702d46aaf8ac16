"""Job executor: idempotency and stage dispatch."""

from __future__ import annotations

import logging
from typing import Any

from sqlalchemy.orm import Session

from regtruth.models.job_run import JobRun
from regtruth.pipeline.stages import STAGE_REGISTRY, StageResult

logger = logging.getLogger(__name__)


def run_stage(
    db: Session,
    job_type: str,
    idempotency_key: str | None = None,
    **kwargs: Any,
) -> StageResult:
    """Run a pipeline stage.

    Returns the cached result if idempotency_key matches a completed run of the
    same job_type. Failed runs with the same key are retried.

    Raises:
        ValueError: If job_type is not a registered stage.
    """
    stage = STAGE_REGISTRY.get(job_type)
    if not stage:
        raise ValueError(f"Unknown job_type: {job_type}")

    if idempotency_key:
        existing = (
            db.query(JobRun)
            .filter(
                JobRun.idempotency_key == idempotency_key,
                JobRun.job_type == job_type,
                JobRun.status == "completed",
            )
            .order_by(JobRun.started_at.desc())
            .first()
        )
        if existing is not None:
            logger.info(
                "Idempotent skip: job_type=%s idempotency_key=%s job_run_id=%s",
                job_type,
                idempotency_key,
                existing.id,
            )
            return _cached_result(existing)

    return stage(db, idempotency_key=idempotency_key, **kwargs)


def _cached_result(job: JobRun) -> StageResult:
    return StageResult({**(job.result or {}), "status": job.status, "job_run_id": job.id, "cached": True})
