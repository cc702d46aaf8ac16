"""Pipeline health gates for cron / CI gating.

Each gate returns PASS, WARN or FAIL with the measured value and its thresholds.
Any FAIL means the pipeline needs operator attention.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from enum import Enum

from sqlalchemy import func
from sqlalchemy.orm import Session

from regtruth.config import Settings, get_settings
from regtruth.models.content_sync_event import ContentSyncEvent
from regtruth.models.enums import (
    ArtifactKind,
    ConflictStatus,
    ContentClass,
    ContentSyncStatus,
    MatchType,
)
from regtruth.models.evidence import Evidence
from regtruth.models.evidence_artifact import EvidenceArtifact
from regtruth.models.parsed_document import ParsedDocument
from regtruth.models.regulatory_conflict import RegulatoryConflict
from regtruth.models.source_pointer import SourcePointer
from regtruth.parser.structural import ParseStatus
from regtruth.rules.releaser import latest_release, verify_release_integrity

logger = logging.getLogger(__name__)

DEAD_LETTER_WINDOW = timedelta(hours=24)


class GateStatus(str, Enum):
    PASS = "PASS"
    WARN = "WARN"
    FAIL = "FAIL"


@dataclass
class GateResult:
    name: str
    status: GateStatus
    value: float
    warn_threshold: float | None = None
    fail_threshold: float | None = None
    detail: str = ""


def _rate_status(value: float, warn: float, fail: float) -> GateStatus:
    if value > fail:
        return GateStatus.FAIL
    if value > warn:
        return GateStatus.WARN
    return GateStatus.PASS


def grounding_failure_gate(db: Session, settings: Settings) -> GateResult:
    rows = dict(
        db.query(SourcePointer.match_type, func.count(SourcePointer.id))
        .filter(SourcePointer.match_type != MatchType.PENDING_VERIFICATION.value)
        .group_by(SourcePointer.match_type)
        .all()
    )
    failed = rows.get(MatchType.NOT_FOUND.value, 0)
    total = failed + rows.get(MatchType.GROUNDED.value, 0)
    rate = failed / total if total else 0.0
    return GateResult(
        "grounding_failure_rate",
        _rate_status(rate, settings.grounding_failure_warn_rate, settings.grounding_failure_fail_rate),
        round(rate, 4),
        settings.grounding_failure_warn_rate,
        settings.grounding_failure_fail_rate,
        f"{failed}/{total} verified pointers NOT_FOUND",
    )


def _ocr_ok(artifact: EvidenceArtifact | None, min_confidence: float) -> bool:
    if artifact is None or not artifact.content.strip():
        return False
    confidence = (artifact.artifact_metadata or {}).get("ocr_confidence")
    return confidence is None or float(confidence) >= min_confidence


def ocr_failure_gate(db: Session, settings: Settings) -> GateResult:
    scanned = (
        db.query(Evidence.id)
        .filter(
            Evidence.content_class == ContentClass.PDF_SCANNED.value,
            Evidence.deleted_at.is_(None),
        )
        .all()
    )
    failures = 0
    for (evidence_id,) in scanned:
        artifact = (
            db.query(EvidenceArtifact)
            .filter(
                EvidenceArtifact.evidence_id == evidence_id,
                EvidenceArtifact.kind == ArtifactKind.OCR_TEXT.value,
            )
            .order_by(EvidenceArtifact.created_at.desc())
            .first()
        )
        if not _ocr_ok(artifact, settings.ocr_min_confidence):
            failures += 1
    rate = failures / len(scanned) if scanned else 0.0
    return GateResult(
        "ocr_failure_rate",
        _rate_status(rate, settings.ocr_failure_warn_rate, settings.ocr_failure_fail_rate),
        round(rate, 4),
        settings.ocr_failure_warn_rate,
        settings.ocr_failure_fail_rate,
        f"{failures}/{len(scanned)} scanned documents without usable OCR text",
    )


def stuck_content_sync_gate(db: Session, settings: Settings, now: datetime) -> GateResult:
    cutoff = now - timedelta(minutes=settings.content_sync_stuck_minutes)
    stuck = (
        db.query(func.count(ContentSyncEvent.event_id))
        .filter(
            ContentSyncEvent.status == ContentSyncStatus.PROCESSING.value,
            ContentSyncEvent.last_attempt_at < cutoff,
        )
        .scalar()
        or 0
    )
    return GateResult(
        "content_sync_stuck",
        GateStatus.FAIL if stuck else GateStatus.PASS,
        stuck,
        fail_threshold=0,
        detail=f"PROCESSING for more than {settings.content_sync_stuck_minutes} minutes",
    )


def content_sync_backlog_gate(db: Session, settings: Settings) -> GateResult:
    backlog = (
        db.query(func.count(ContentSyncEvent.event_id))
        .filter(
            ContentSyncEvent.status.in_(
                [
                    ContentSyncStatus.PENDING.value,
                    ContentSyncStatus.ENQUEUED.value,
                    ContentSyncStatus.FAILED.value,
                ]
            )
        )
        .scalar()
        or 0
    )
    threshold = settings.content_sync_backlog_threshold
    return GateResult(
        "content_sync_backlog",
        _rate_status(backlog, threshold / 2, threshold),
        backlog,
        threshold / 2,
        threshold,
        "PENDING + ENQUEUED + FAILED events",
    )


def dead_letter_gate(db: Session, now: datetime) -> GateResult:
    recent = (
        db.query(func.count(ContentSyncEvent.event_id))
        .filter(
            ContentSyncEvent.status == ContentSyncStatus.DEAD_LETTERED.value,
            ContentSyncEvent.last_attempt_at >= now - DEAD_LETTER_WINDOW,
        )
        .scalar()
        or 0
    )
    return GateResult(
        "content_sync_dead_letters",
        GateStatus.WARN if recent else GateStatus.PASS,
        recent,
        warn_threshold=0,
        detail="dead-lettered in the last 24h",
    )


def stale_conflict_gate(db: Session, settings: Settings, now: datetime) -> GateResult:
    cutoff = now - timedelta(days=settings.open_conflict_stale_days)
    stale = (
        db.query(func.count(RegulatoryConflict.id))
        .filter(
            RegulatoryConflict.status == ConflictStatus.OPEN.value,
            RegulatoryConflict.created_at < cutoff,
        )
        .scalar()
        or 0
    )
    return GateResult(
        "stale_open_conflicts",
        GateStatus.WARN if stale else GateStatus.PASS,
        stale,
        warn_threshold=0,
        detail=f"OPEN for more than {settings.open_conflict_stale_days} days",
    )


def release_integrity_gate(db: Session) -> GateResult:
    latest = latest_release(db)
    if latest is None:
        return GateResult("release_integrity", GateStatus.PASS, 0, detail="no releases yet")
    ok = verify_release_integrity(latest)
    if not ok:
        logger.critical("Latest release %s fails its integrity check", latest.version)
    return GateResult(
        "release_integrity",
        GateStatus.PASS if ok else GateStatus.FAIL,
        0 if ok else 1,
        fail_threshold=0,
        detail=f"release {latest.version}",
    )


def low_coverage_parse_gate(db: Session) -> GateResult:
    count = (
        db.query(func.count(ParsedDocument.id))
        .filter(
            ParsedDocument.is_latest.is_(True),
            ParsedDocument.status.in_([ParseStatus.PARTIAL.value, ParseStatus.FAILED.value]),
        )
        .scalar()
        or 0
    )
    return GateResult(
        "low_coverage_parses",
        GateStatus.WARN if count else GateStatus.PASS,
        count,
        warn_threshold=0,
        detail="latest parses with PARTIAL or FAILED status",
    )


def run_health_gates(
    db: Session, settings: Settings | None = None, now: datetime | None = None
) -> list[GateResult]:
    """Evaluate every gate. Read-only."""
    settings = settings or get_settings()
    now = now or datetime.now(UTC)
    results = [
        grounding_failure_gate(db, settings),
        ocr_failure_gate(db, settings),
        stuck_content_sync_gate(db, settings, now),
        content_sync_backlog_gate(db, settings),
        dead_letter_gate(db, now),
        stale_conflict_gate(db, settings, now),
        release_integrity_gate(db),
        low_coverage_parse_gate(db),
    ]
    for result in results:
        level = logging.INFO if result.status == GateStatus.PASS else logging.WARNING
        logger.log(level, "Health gate %s: %s value=%s", result.name, result.status.value, result.value)
    return results


def summarize(results: list[GateResult]) -> dict[str, int]:
    counts = {status.value: 0 for status in GateStatus}
    for result in results:
        counts[result.status.value] += 1
    return counts
