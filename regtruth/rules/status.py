"""Rule status state machine.

All status writes go through transition_rule or reset_rule_to_draft; the transition
table below is the single place that decides what is legal. Neither function commits:
callers commit once so the status change and its content-sync event land together.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime

from sqlalchemy.orm import Session

from regtruth.content_sync.emitter import enqueue_rule_change
from regtruth.models.enums import ContentSyncEventType, RuleStatus
from regtruth.models.regulatory_rule import RegulatoryRule

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS: dict[RuleStatus, frozenset[RuleStatus]] = {
    RuleStatus.DRAFT: frozenset({RuleStatus.PENDING_REVIEW, RuleStatus.REJECTED}),
    RuleStatus.PENDING_REVIEW: frozenset({RuleStatus.APPROVED, RuleStatus.REJECTED}),
    RuleStatus.APPROVED: frozenset({RuleStatus.PUBLISHED, RuleStatus.REJECTED}),
    RuleStatus.PUBLISHED: frozenset(),
    RuleStatus.REJECTED: frozenset(),
}

# Only these may be forced back to DRAFT, and only via reset_rule_to_draft.
RESETTABLE = frozenset({RuleStatus.PENDING_REVIEW, RuleStatus.APPROVED, RuleStatus.PUBLISHED})


class InvalidTransitionError(Exception):
    """Raised when a status change is not in ALLOWED_TRANSITIONS."""

    def __init__(self, rule_id, current: str, target: str) -> None:
        super().__init__(f"Illegal rule status transition {current} -> {target} (rule {rule_id})")
        self.rule_id = rule_id
        self.current = current
        self.target = target


def can_transition(current: RuleStatus | str, target: RuleStatus | str) -> bool:
    return RuleStatus(target) in ALLOWED_TRANSITIONS[RuleStatus(current)]


def transition_rule(
    db: Session,
    rule: RegulatoryRule,
    target: RuleStatus,
    actor: str | None = None,
    reason: str | None = None,
    emit: ContentSyncEventType | None = None,
    change_type: str = "update",
    previous_value: str | None = None,
) -> None:
    """Move rule to target, optionally writing a content-sync event in the same transaction.

    Raises:
        InvalidTransitionError: If current -> target is not allowed.
    """
    current = RuleStatus(rule.status)
    if not can_transition(current, target):
        raise InvalidTransitionError(rule.id, current.value, target.value)

    now = datetime.now(UTC)
    rule.status = target.value
    rule.status_reason = reason
    if target == RuleStatus.APPROVED:
        rule.approved_by = actor
        rule.approved_at = now
    elif target == RuleStatus.PUBLISHED:
        rule.published_at = now
    db.flush()

    if emit is not None:
        enqueue_rule_change(db, rule, emit, change_type=change_type, previous_value=previous_value)

    logger.info(
        "Rule %s: %s -> %s actor=%s reason=%s",
        rule.id,
        current.value,
        target.value,
        actor,
        reason,
    )


def reset_rule_to_draft(
    db: Session,
    rule: RegulatoryRule,
    reason: str,
    emit: ContentSyncEventType = ContentSyncEventType.SOURCE_CHANGED,
) -> bool:
    """Force rule back to DRAFT after its evidence was invalidated.

    The only backward transition. A PUBLISHED rule also gets a content-sync event so
    downstream content stops presenting it as current. Returns False when the rule is
    already DRAFT or REJECTED.
    """
    current = RuleStatus(rule.status)
    if current not in RESETTABLE:
        return False

    rule.status = RuleStatus.DRAFT.value
    rule.status_reason = reason
    rule.approved_by = None
    rule.approved_at = None
    db.flush()

    if current == RuleStatus.PUBLISHED:
        enqueue_rule_change(db, rule, emit, change_type="update")

    logger.warning("Rule %s reset %s -> DRAFT: %s", rule.id, current.value, reason)
    return True
