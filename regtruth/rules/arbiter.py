"""Conflict arbiter: detect and resolve contradictory rules for a concept.

Two active rules conflict when they cover the same concept for overlapping
[effective_from, effective_until) periods (open-ended until = forever) with different
normalized values. Resolution order: stronger source authority, then later
effective_from, then higher confidence. A full tie stays OPEN for a human.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import UTC, date, datetime

from sqlalchemy import or_
from sqlalchemy.orm import Session

from regtruth.models.enums import (
    ConflictStatus,
    ConflictType,
    ResolutionPolicy,
    RuleStatus,
    authority_rank,
)
from regtruth.models.regulatory_conflict import RegulatoryConflict
from regtruth.models.regulatory_rule import RegulatoryRule
from regtruth.rules.status import transition_rule

logger = logging.getLogger(__name__)

ACTIVE_STATUSES = (
    RuleStatus.DRAFT.value,
    RuleStatus.PENDING_REVIEW.value,
    RuleStatus.APPROVED.value,
    RuleStatus.PUBLISHED.value,
)
# Losers in these statuses are rejected at resolution; a PUBLISHED loser is
# superseded by the winner when the winner is released.
_REJECTABLE = (RuleStatus.DRAFT.value, RuleStatus.PENDING_REVIEW.value, RuleStatus.APPROVED.value)

CONFIDENCE_EPSILON = 1e-9
TIE_REASON = "authority, effective date and confidence are equal"


class ConflictResolutionError(ValueError):
    """Raised when a conflict cannot be resolved as requested."""


@dataclass(frozen=True)
class Decision:
    winner_id: uuid.UUID | None
    policy: ResolutionPolicy | None
    note: str


def periods_overlap(
    a_from: date, a_until: date | None, b_from: date, b_until: date | None
) -> bool:
    """Half-open interval overlap; None as until means open-ended."""
    a_before_b_ends = b_until is None or a_from < b_until
    b_before_a_ends = a_until is None or b_from < a_until
    return a_before_b_ends and b_before_a_ends


def rules_conflict(a: RegulatoryRule, b: RegulatoryRule) -> bool:
    return (
        a.concept_slug == b.concept_slug
        and a.normalized_value != b.normalized_value
        and periods_overlap(a.effective_from, a.effective_until, b.effective_from, b.effective_until)
    )


def _known_pairs(db: Session, concept_slug: str) -> set[frozenset]:
    rows = (
        db.query(RegulatoryConflict.rule_a_id, RegulatoryConflict.rule_b_id)
        .filter(RegulatoryConflict.concept_slug == concept_slug)
        .all()
    )
    return {frozenset((a, b)) for a, b in rows}


def active_rules(db: Session, concept_slug: str) -> list[RegulatoryRule]:
    return (
        db.query(RegulatoryRule)
        .filter(
            RegulatoryRule.concept_slug == concept_slug,
            RegulatoryRule.status.in_(ACTIVE_STATUSES),
            RegulatoryRule.superseded_by_id.is_(None),
        )
        .order_by(RegulatoryRule.created_at.asc(), RegulatoryRule.id.asc())
        .all()
    )


def detect_conflicts(db: Session, concept_slug: str) -> list[RegulatoryConflict]:
    """Create OPEN conflicts for newly contradicting rule pairs of concept_slug. Does not commit.

    A pair that already has a conflict (OPEN or RESOLVED, in either order) is not recreated.
    Returns only the conflicts created by this call.
    """
    rules = active_rules(db, concept_slug)
    known = _known_pairs(db, concept_slug)
    created: list[RegulatoryConflict] = []
    for i, a in enumerate(rules):
        for b in rules[i + 1 :]:
            if not rules_conflict(a, b):
                continue
            pair = frozenset((a.id, b.id))
            if pair in known:
                continue
            conflict_type = (
                ConflictType.SOURCE_CONFLICT
                if a.effective_from == b.effective_from
                else ConflictType.TEMPORAL_CONFLICT
            )
            conflict = RegulatoryConflict(
                concept_slug=concept_slug,
                conflict_type=conflict_type.value,
                rule_a_id=a.id,
                rule_b_id=b.id,
                status=ConflictStatus.OPEN.value,
            )
            db.add(conflict)
            known.add(pair)
            created.append(conflict)
            logger.warning(
                "Conflict detected: concept=%s type=%s rules=%s/%s values=%s/%s",
                concept_slug,
                conflict_type.value,
                a.id,
                b.id,
                a.normalized_value,
                b.normalized_value,
            )
    db.flush()
    return created


def decide(a: RegulatoryRule, b: RegulatoryRule) -> Decision:
    """Apply the automatic resolution policy to a rule pair."""
    rank_a, rank_b = authority_rank(a.authority_level), authority_rank(b.authority_level)
    if rank_a != rank_b:
        winner = a if rank_a < rank_b else b
        return Decision(
            winner.id,
            ResolutionPolicy.AUTHORITY,
            f"higher source authority ({winner.authority_level})",
        )
    if a.effective_from != b.effective_from:
        winner = a if a.effective_from > b.effective_from else b
        return Decision(
            winner.id,
            ResolutionPolicy.RECENCY,
            f"more recent effective_from ({winner.effective_from.isoformat()})",
        )
    if abs(a.confidence - b.confidence) > CONFIDENCE_EPSILON:
        winner = a if a.confidence > b.confidence else b
        return Decision(
            winner.id,
            ResolutionPolicy.CONFIDENCE,
            f"higher confidence ({winner.confidence:.2f})",
        )
    return Decision(None, None, TIE_REASON)


def _apply_resolution(
    db: Session,
    conflict: RegulatoryConflict,
    winner_id: uuid.UUID,
    policy: ResolutionPolicy,
    note: str,
    resolved_by: str | None,
) -> None:
    loser = conflict.rule_b if winner_id == conflict.rule_a_id else conflict.rule_a
    conflict.status = ConflictStatus.RESOLVED.value
    conflict.winning_rule_id = winner_id
    conflict.decided_by = policy.value
    conflict.resolved_by = resolved_by
    conflict.resolution_note = note
    conflict.resolved_at = datetime.now(UTC)
    conflict.requires_human_review = False

    if loser.status in _REJECTABLE:
        transition_rule(
            db,
            loser,
            RuleStatus.REJECTED,
            actor=resolved_by or "arbiter",
            reason=f"lost conflict {conflict.id}: {note}",
        )
    db.flush()
    logger.info(
        "Conflict %s resolved: winner=%s policy=%s loser=%s (%s)",
        conflict.id,
        winner_id,
        policy.value,
        loser.id,
        loser.status,
    )


def resolve_conflict(db: Session, conflict: RegulatoryConflict) -> Decision:
    """Resolve an OPEN conflict by policy, or escalate it to a human on a tie. Does not commit."""
    if conflict.status != ConflictStatus.OPEN.value:
        raise ConflictResolutionError(f"Conflict {conflict.id} is {conflict.status}, not OPEN")

    decision = decide(conflict.rule_a, conflict.rule_b)
    if decision.winner_id is None:
        if not conflict.requires_human_review:
            conflict.requires_human_review = True
            conflict.escalation_reason = decision.note
            db.flush()
            logger.warning("Conflict %s escalated to human review: %s", conflict.id, decision.note)
        return decision

    _apply_resolution(db, conflict, decision.winner_id, decision.policy, decision.note, resolved_by=None)
    return decision


def resolve_conflict_manually(
    db: Session,
    conflict_id: uuid.UUID,
    winning_rule_id: uuid.UUID,
    actor: str,
    note: str | None = None,
) -> RegulatoryConflict:
    """Record a human decision for an OPEN conflict. Commits.

    Raises:
        LookupError: If the conflict does not exist.
        ConflictResolutionError: If the conflict is not OPEN or the winner is not one of its rules.
    """
    conflict = db.get(RegulatoryConflict, conflict_id)
    if conflict is None:
        raise LookupError(f"Conflict {conflict_id} not found")
    if conflict.status != ConflictStatus.OPEN.value:
        raise ConflictResolutionError(f"Conflict {conflict_id} is {conflict.status}, not OPEN")
    if not conflict.involves(winning_rule_id):
        raise ConflictResolutionError(f"Rule {winning_rule_id} is not part of conflict {conflict_id}")

    try:
        _apply_resolution(
            db,
            conflict,
            winning_rule_id,
            ResolutionPolicy.HUMAN,
            note or "resolved by reviewer",
            resolved_by=actor,
        )
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(conflict)
    return conflict


def open_conflict_rule_ids(db: Session) -> set[uuid.UUID]:
    """Ids of every rule that is part of an OPEN conflict."""
    rows = (
        db.query(RegulatoryConflict.rule_a_id, RegulatoryConflict.rule_b_id)
        .filter(RegulatoryConflict.status == ConflictStatus.OPEN.value)
        .all()
    )
    return {rule_id for pair in rows for rule_id in pair}


def has_open_conflict(db: Session, rule_id: uuid.UUID) -> bool:
    return (
        db.query(RegulatoryConflict.id)
        .filter(
            RegulatoryConflict.status == ConflictStatus.OPEN.value,
            or_(RegulatoryConflict.rule_a_id == rule_id, RegulatoryConflict.rule_b_id == rule_id),
        )
        .first()
        is not None
    )


def arbitrate(db: Session, concept_slugs: list[str] | None = None) -> dict:
    """Detect and auto-resolve conflicts, one transaction per concept. Commits."""
    if concept_slugs is None:
        concept_slugs = [
            slug
            for (slug,) in db.query(RegulatoryRule.concept_slug)
            .filter(RegulatoryRule.status.in_(ACTIVE_STATUSES))
            .distinct()
            .order_by(RegulatoryRule.concept_slug)
            .all()
        ]

    counts = {"concepts": len(concept_slugs), "detected": 0, "resolved": 0, "escalated": 0}
    for slug in concept_slugs:
        try:
            counts["detected"] += len(detect_conflicts(db, slug))
            open_conflicts = (
                db.query(RegulatoryConflict)
                .filter(
                    RegulatoryConflict.concept_slug == slug,
                    RegulatoryConflict.status == ConflictStatus.OPEN.value,
                )
                .order_by(RegulatoryConflict.created_at.asc(), RegulatoryConflict.id.asc())
                .all()
            )
            for conflict in open_conflicts:
                # An earlier resolution may already have rejected one side.
                if conflict.rule_a.status == RuleStatus.REJECTED.value or (
                    conflict.rule_b.status == RuleStatus.REJECTED.value
                ):
                    _close_moot(db, conflict)
                    continue
                if conflict.requires_human_review:
                    continue
                decision = resolve_conflict(db, conflict)
                if decision.winner_id is None:
                    counts["escalated"] += 1
                else:
                    counts["resolved"] += 1
            db.commit()
        except Exception:
            db.rollback()
            logger.exception("Arbitration failed for concept %s", slug)
            raise

    logger.info(
        "Arbitration: concepts=%d detected=%d resolved=%d escalated=%d",
        counts["concepts"],
        counts["detected"],
        counts["resolved"],
        counts["escalated"],
    )
    return counts


def _close_moot(db: Session, conflict: RegulatoryConflict) -> None:
    survivor = conflict.rule_b if conflict.rule_a.status == RuleStatus.REJECTED.value else conflict.rule_a
    conflict.status = ConflictStatus.RESOLVED.value
    conflict.winning_rule_id = survivor.id if survivor.status != RuleStatus.REJECTED.value else None
    conflict.decided_by = None
    conflict.resolution_note = "moot: a rule in the pair was already rejected"
    conflict.resolved_at = datetime.now(UTC)
    db.flush()


def close_moot_conflicts(db: Session, rule_id: uuid.UUID) -> int:
    """Resolve OPEN conflicts involving a rule that was just rejected. Does not commit."""
    conflicts = (
        db.query(RegulatoryConflict)
        .filter(
            RegulatoryConflict.status == ConflictStatus.OPEN.value,
            or_(RegulatoryConflict.rule_a_id == rule_id, RegulatoryConflict.rule_b_id == rule_id),
        )
        .all()
    )
    for conflict in conflicts:
        _close_moot(db, conflict)
    return len(conflicts)
