"""Apply the grounding verifier to stored pointers and react when grounding is lost.

Match types are recomputed whenever an evidence's primary text changes and for
pointers whose evidence disappeared (merge without migration, soft delete). Any rule
citing a pointer that is no longer GROUNDED is reset to DRAFT in the same transaction.
"""

from __future__ import annotations

import logging
import uuid
from datetime import UTC, datetime

from sqlalchemy import or_
from sqlalchemy.orm import Session

from regtruth.evidence.refs import resolve_evidence_ref
from regtruth.evidence.store import get_primary_text
from regtruth.grounding.verifier import QuoteVerification, verify
from regtruth.models.enums import MatchType
from regtruth.models.evidence import Evidence
from regtruth.models.regulatory_rule import RegulatoryRule, rule_source_pointers
from regtruth.models.source_pointer import SourcePointer
from regtruth.rules.status import RESETTABLE, reset_rule_to_draft

logger = logging.getLogger(__name__)

DIAGNOSIS_ORPHANED = "ORPHANED"


def _apply(pointer: SourcePointer, result: QuoteVerification) -> None:
    pointer.match_type = result.match_type.value
    pointer.match_mode = result.match_mode.value if result.match_mode else None
    pointer.match_start = result.start
    pointer.match_end = result.end
    pointer.matched_prefix_length = result.matched_prefix_length
    pointer.divergence_index = result.divergence_index
    pointer.diagnosis = result.diagnosis
    pointer.verified_at = datetime.now(UTC)


def _mark_orphaned(pointer: SourcePointer) -> None:
    pointer.match_type = MatchType.NOT_FOUND.value
    pointer.match_mode = None
    pointer.match_start = None
    pointer.match_end = None
    pointer.matched_prefix_length = None
    pointer.divergence_index = None
    pointer.diagnosis = DIAGNOSIS_ORPHANED
    pointer.verified_at = datetime.now(UTC)


def verify_pointer(db: Session, pointer: SourcePointer, text: str | None = None) -> str:
    """Recompute pointer's match type from its evidence text; return the new match type.

    Does not commit. A pointer whose evidence cannot be resolved becomes NOT_FOUND (ORPHANED).
    """
    if text is None:
        evidence = resolve_evidence_ref(db, pointer.evidence_ref)
        if evidence is None:
            _mark_orphaned(pointer)
            logger.warning("Pointer %s orphaned: evidence %s missing", pointer.id, pointer.evidence_id)
            return pointer.match_type
        text = get_primary_text(db, evidence)

    result = verify(text, pointer.exact_quote)
    _apply(pointer, result)
    if not result.found:
        logger.warning(
            "Grounding failed: pointer=%s evidence=%s prefix=%s diagnosis=%s",
            pointer.id,
            pointer.evidence_id,
            result.matched_prefix_length,
            result.diagnosis,
        )
    return pointer.match_type


def _verify_group(db: Session, evidence_id: uuid.UUID, pointers: list[SourcePointer]) -> dict:
    counts = {"grounded": 0, "not_found": 0}
    evidence = resolve_evidence_ref(db, pointers[0].evidence_ref)
    text = get_primary_text(db, evidence) if evidence is not None else None
    for pointer in pointers:
        if text is None:
            _mark_orphaned(pointer)
        else:
            verify_pointer(db, pointer, text=text)
        if pointer.match_type == MatchType.GROUNDED.value:
            counts["grounded"] += 1
        else:
            counts["not_found"] += 1
    return counts


def _group_by_evidence(pointers: list[SourcePointer]) -> dict[uuid.UUID, list[SourcePointer]]:
    groups: dict[uuid.UUID, list[SourcePointer]] = {}
    for p in pointers:
        groups.setdefault(p.evidence_id, []).append(p)
    return groups


def verify_pending_pointers(db: Session, limit: int | None = None) -> dict:
    """Verify PENDING_VERIFICATION pointers, reading each evidence text once. Commits."""
    q = (
        db.query(SourcePointer)
        .filter(SourcePointer.match_type == MatchType.PENDING_VERIFICATION.value)
        .order_by(SourcePointer.created_at.asc(), SourcePointer.id.asc())
    )
    if limit:
        q = q.limit(limit)
    pointers = q.all()

    totals = {"verified": len(pointers), "grounded": 0, "not_found": 0}
    for evidence_id, group in _group_by_evidence(pointers).items():
        counts = _verify_group(db, evidence_id, group)
        totals["grounded"] += counts["grounded"]
        totals["not_found"] += counts["not_found"]
    db.commit()
    logger.info(
        "Pointer verification: verified=%d grounded=%d not_found=%d",
        totals["verified"],
        totals["grounded"],
        totals["not_found"],
    )
    return totals


def reset_rules_citing(db: Session, pointer_ids: list[uuid.UUID], reason: str) -> int:
    """Reset every resettable rule linked to any of pointer_ids. Does not commit."""
    if not pointer_ids:
        return 0
    rules = (
        db.query(RegulatoryRule)
        .join(rule_source_pointers, rule_source_pointers.c.rule_id == RegulatoryRule.id)
        .filter(
            rule_source_pointers.c.source_pointer_id.in_(pointer_ids),
            RegulatoryRule.status.in_([s.value for s in RESETTABLE]),
        )
        .distinct()
        .order_by(RegulatoryRule.id)
        .all()
    )
    reset = 0
    for rule in rules:
        if reset_rule_to_draft(db, rule, reason=reason):
            reset += 1
    return reset


def reverify_pointers(db: Session, evidence_id: uuid.UUID, pointers: list[SourcePointer], reason: str) -> dict:
    """Recompute match types of pointers on evidence_id and reset rules citing any that lost grounding.

    Does not commit.
    """
    counts = _verify_group(db, evidence_id, pointers)
    lost = [p.id for p in pointers if p.match_type != MatchType.GROUNDED.value]
    return {**counts, "rules_reset": reset_rules_citing(db, lost, reason=reason)}


def revalidate_evidence(db: Session, evidence_id: uuid.UUID) -> dict:
    """Recompute match types for all pointers of evidence_id; reset rules that lost grounding. Commits."""
    pointers = (
        db.query(SourcePointer)
        .filter(SourcePointer.evidence_id == evidence_id)
        .order_by(SourcePointer.created_at.asc(), SourcePointer.id.asc())
        .all()
    )
    if not pointers:
        return {"pointers": 0, "grounded": 0, "not_found": 0, "rules_reset": 0}

    counts = reverify_pointers(
        db, evidence_id, pointers, reason=f"evidence {evidence_id} text changed; pointer no longer grounded"
    )
    db.commit()
    logger.info(
        "Revalidated evidence %s: pointers=%d not_found=%d rules_reset=%d",
        evidence_id,
        len(pointers),
        counts["not_found"],
        counts["rules_reset"],
    )
    return {"pointers": len(pointers), **counts}


def revalidate_orphans(db: Session) -> dict:
    """Mark pointers whose evidence is missing or soft-deleted NOT_FOUND and reset their rules. Commits."""
    orphans = (
        db.query(SourcePointer)
        .outerjoin(Evidence, Evidence.id == SourcePointer.evidence_id)
        .filter(or_(Evidence.id.is_(None), Evidence.deleted_at.is_not(None)))
        .order_by(SourcePointer.created_at.asc(), SourcePointer.id.asc())
        .all()
    )
    newly = [p for p in orphans if p.diagnosis != DIAGNOSIS_ORPHANED]
    for pointer in newly:
        _mark_orphaned(pointer)
    db.flush()
    rules_reset = reset_rules_citing(
        db, [p.id for p in orphans], reason="source pointer orphaned: evidence missing"
    )
    db.commit()
    if orphans:
        logger.warning(
            "Orphaned pointers: total=%d newly_marked=%d rules_reset=%d",
            len(orphans),
            len(newly),
            rules_reset,
        )
    return {"orphans": len(orphans), "newly_marked": len(newly), "rules_reset": rules_reset}

