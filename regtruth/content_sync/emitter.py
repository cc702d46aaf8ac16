"""Content-sync emitter: write the outbox row for a rule change.

enqueue_rule_change never commits. It runs inside the caller's transaction so the
rule status change and its event commit (or roll back) together.
"""

from __future__ import annotations

import logging
from datetime import UTC, date, datetime

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from regtruth.content_sync.event_id import compute_event_id
from regtruth.models.content_sync_event import ContentSyncEvent
from regtruth.models.enums import (
    ContentSyncEventType,
    ContentSyncStatus,
    RiskTier,
    RuleStatus,
)
from regtruth.models.regulatory_rule import RegulatoryRule
from regtruth.schemas.content_sync import ContentSyncPayloadV1

logger = logging.getLogger(__name__)

_TIER_SEVERITY = {
    RiskTier.T0.value: "breaking",
    RiskTier.T1.value: "major",
    RiskTier.T2.value: "minor",
    RiskTier.T3.value: "info",
}


def severity_for(risk_tier: str, change_type: str) -> str:
    """Repeals are always breaking; otherwise severity follows the risk tier."""
    if change_type == "repeal":
        return "breaking"
    return _TIER_SEVERITY.get(risk_tier, "minor")


def build_payload(
    rule: RegulatoryRule,
    event_type: ContentSyncEventType,
    event_id: str,
    change_type: str,
    previous_value: str | None = None,
) -> ContentSyncPayloadV1:
    return ContentSyncPayloadV1(
        event_id=event_id,
        type=event_type,
        rule_id=rule.id,
        concept_id=rule.concept_slug,
        domain=rule.domain,
        change_type=change_type,
        effective_from=rule.effective_from,
        previous_value=previous_value,
        new_value=rule.value,
        value_type=rule.value_type,
        source_pointer_ids=[p.id for p in rule.source_pointers],
        confidence_level=max(0, min(100, round(rule.confidence * 100))),
        severity=severity_for(rule.risk_tier, change_type),
    )


def enqueue_rule_change(
    db: Session,
    rule: RegulatoryRule,
    event_type: ContentSyncEventType,
    change_type: str = "update",
    previous_value: str | None = None,
    effective_from: date | None = None,
) -> str:
    """Insert a PENDING ContentSyncEvent for rule; return its deterministic event_id.

    A second call for the same (rule, type, effective_from) is a no-op whatever the
    existing row's status. A concurrent insert losing the primary-key race is also
    treated as a no-op (the savepoint absorbs the IntegrityError).
    """
    if rule.id is None:
        db.flush()
    event_date = effective_from or rule.effective_from
    event_id = compute_event_id(rule.id, event_type.value, event_date)

    existing = db.get(ContentSyncEvent, event_id)
    if existing is not None:
        logger.info(
            "Content sync enqueue skipped (exists): event_id=%s status=%s",
            event_id[:12],
            existing.status,
        )
        return event_id

    payload = build_payload(rule, event_type, event_id, change_type, previous_value)
    if effective_from is not None:
        payload.effective_from = effective_from
    row = ContentSyncEvent(
        event_id=event_id,
        type=event_type.value,
        rule_id=rule.id,
        concept_id=rule.concept_slug,
        status=ContentSyncStatus.PENDING.value,
        attempts=0,
        payload=payload.model_dump(mode="json"),
        created_at=datetime.now(UTC),
    )
    try:
        with db.begin_nested():
            db.add(row)
    except IntegrityError:
        logger.info("Content sync enqueue lost insert race: event_id=%s", event_id[:12])
        return event_id

    logger.info(
        "Content sync event enqueued: event_id=%s type=%s rule_id=%s",
        event_id[:12],
        event_type.value,
        rule.id,
    )
    return event_id


def emit_effective_rules(db: Session, as_of: date) -> int:
    """Emit RULE_EFFECTIVE for published rules whose effective_from has been reached. Commits.

    Safe to re-run: each (rule, RULE_EFFECTIVE, effective_from) maps to one event id.
    """
    rules = (
        db.query(RegulatoryRule)
        .filter(
            RegulatoryRule.status == RuleStatus.PUBLISHED.value,
            RegulatoryRule.superseded_by_id.is_(None),
            RegulatoryRule.effective_from <= as_of,
        )
        .order_by(RegulatoryRule.effective_from.asc(), RegulatoryRule.id.asc())
        .all()
    )
    for rule in rules:
        enqueue_rule_change(db, rule, ContentSyncEventType.RULE_EFFECTIVE, change_type="update")
    db.commit()
    return len(rules)
