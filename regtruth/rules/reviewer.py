"""Reviewer: move PENDING_REVIEW rules to APPROVED or back to DRAFT.

T2/T3 rules at or above the confidence floor are approved automatically. T0/T1 rules
always wait for a human decision through approve_rule / reject_rule. Rules involved
in an OPEN conflict are left alone until the conflict is resolved.
"""

from __future__ import annotations

import logging
import uuid

from sqlalchemy.orm import Session

from regtruth.config import get_settings
from regtruth.models.enums import RiskTier, RuleStatus
from regtruth.models.regulatory_rule import RegulatoryRule
from regtruth.rules.arbiter import close_moot_conflicts, has_open_conflict, open_conflict_rule_ids
from regtruth.rules.provenance import provenance_problems, require_provenance
from regtruth.rules.status import reset_rule_to_draft, transition_rule

logger = logging.getLogger(__name__)

AUTO_APPROVE_TIERS = frozenset({RiskTier.T2.value, RiskTier.T3.value})
AUTO_REVIEWER = "auto-reviewer"


class RuleInConflictError(Exception):
    """Raised when a decision is requested for a rule with an OPEN conflict."""

    def __init__(self, rule_id: uuid.UUID) -> None:
        super().__init__(f"Rule {rule_id} is part of an open conflict")
        self.rule_id = rule_id


def review_pending(db: Session, confidence_floor: float | None = None) -> dict:
    """Review every PENDING_REVIEW rule once. Commits."""
    if confidence_floor is None:
        confidence_floor = get_settings().auto_approve_confidence_floor

    rules = (
        db.query(RegulatoryRule)
        .filter(RegulatoryRule.status == RuleStatus.PENDING_REVIEW.value)
        .order_by(RegulatoryRule.created_at.asc(), RegulatoryRule.id.asc())
        .all()
    )
    in_conflict = open_conflict_rule_ids(db)
    counts = {
        "reviewed": len(rules),
        "approved": 0,
        "awaiting_human": 0,
        "returned_to_draft": 0,
        "skipped_conflict": 0,
    }

    for rule in rules:
        if rule.id in in_conflict:
            counts["skipped_conflict"] += 1
            continue
        problems = provenance_problems(db, rule)
        if problems:
            reset_rule_to_draft(db, rule, reason="provenance gate: " + "; ".join(problems))
            counts["returned_to_draft"] += 1
            continue
        if rule.risk_tier in AUTO_APPROVE_TIERS and rule.confidence >= confidence_floor:
            transition_rule(
                db,
                rule,
                RuleStatus.APPROVED,
                actor=AUTO_REVIEWER,
                reason=f"auto-approved {rule.risk_tier} at confidence {rule.confidence:.2f}",
            )
            counts["approved"] += 1
        else:
            counts["awaiting_human"] += 1
    db.commit()

    logger.info(
        "Review: reviewed=%d approved=%d awaiting_human=%d returned_to_draft=%d skipped_conflict=%d",
        counts["reviewed"],
        counts["approved"],
        counts["awaiting_human"],
        counts["returned_to_draft"],
        counts["skipped_conflict"],
    )
    return counts


def _get_rule(db: Session, rule_id: uuid.UUID) -> RegulatoryRule:
    rule = db.get(RegulatoryRule, rule_id)
    if rule is None:
        raise LookupError(f"Rule {rule_id} not found")
    return rule


def approve_rule(db: Session, rule_id: uuid.UUID, actor: str, note: str | None = None) -> RegulatoryRule:
    """Human approval. Commits.

    Raises:
        LookupError: Unknown rule.
        RuleInConflictError: The rule has an OPEN conflict.
        ProvenanceGateError: A pointer is not citable for the rule's tier.
        InvalidTransitionError: The rule is not PENDING_REVIEW.
    """
    rule = _get_rule(db, rule_id)
    if has_open_conflict(db, rule.id):
        raise RuleInConflictError(rule.id)
    require_provenance(db, rule)
    try:
        transition_rule(db, rule, RuleStatus.APPROVED, actor=actor, reason=note or "approved")
        db.commit()
    except Exception:
        db.rollback()
        raise
    return rule


def reject_rule(db: Session, rule_id: uuid.UUID, actor: str, reason: str) -> RegulatoryRule:
    """Human rejection; also closes OPEN conflicts the rule was part of. Commits."""
    rule = _get_rule(db, rule_id)
    try:
        transition_rule(db, rule, RuleStatus.REJECTED, actor=actor, reason=reason)
        closed = close_moot_conflicts(db, rule.id)
        db.commit()
    except Exception:
        db.rollback()
        raise
    if closed:
        logger.info("Rejecting rule %s closed %d open conflict(s)", rule.id, closed)
    return rule
