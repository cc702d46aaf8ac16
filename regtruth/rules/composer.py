"""Composer: turn grounded source pointers into draft regulatory rules.

Pointers are grouped by concept and, inside a concept, by (normalized value,
effective period). Each group becomes one rule whose confidence is the minimum of its
pointers' confidences and whose risk tier comes from the concept registry. New rules
are created DRAFT and moved straight to PENDING_REVIEW. Pointers matching a rule that
already exists are attached to it instead of creating a duplicate.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass
from datetime import date

from sqlalchemy.orm import Session

from regtruth.concepts.loader import get_concept, resolve_concept_slug, tier_for_concept
from regtruth.content_sync.emitter import enqueue_rule_change
from regtruth.evidence.refs import resolve_evidence_ref
from regtruth.models.enums import ContentSyncEventType, MatchType, RuleStatus, authority_rank
from regtruth.models.evidence import Evidence
from regtruth.models.regulatory_rule import RegulatoryRule, rule_source_pointers
from regtruth.models.source_pointer import SourcePointer
from regtruth.rules.status import transition_rule
from regtruth.rules.values import normalize_value

logger = logging.getLogger(__name__)

DEFAULT_VALUE_TYPE = "text"

_OPEN_STATUSES = (RuleStatus.DRAFT.value, RuleStatus.PENDING_REVIEW.value)
_ACCEPTED_STATUSES = (RuleStatus.APPROVED.value, RuleStatus.PUBLISHED.value)


@dataclass(frozen=True)
class RuleKey:
    concept_slug: str
    normalized_value: str
    effective_from: date
    effective_until: date | None


def _unassigned_grounded_pointers(db: Session) -> list[SourcePointer]:
    return (
        db.query(SourcePointer)
        .outerjoin(rule_source_pointers, rule_source_pointers.c.source_pointer_id == SourcePointer.id)
        .filter(
            SourcePointer.match_type == MatchType.GROUNDED.value,
            rule_source_pointers.c.rule_id.is_(None),
        )
        .order_by(SourcePointer.created_at.asc(), SourcePointer.id.asc())
        .all()
    )


def _value_type(pointer: SourcePointer, concept_slug: str) -> str:
    if pointer.value_type:
        return pointer.value_type
    concept = get_concept(concept_slug)
    if concept is not None and concept.value_type:
        return concept.value_type
    return DEFAULT_VALUE_TYPE


def _key_for(pointer: SourcePointer, concept_slug: str, evidence: Evidence) -> RuleKey:
    effective_from = pointer.effective_from or evidence.fetched_at.date()
    return RuleKey(
        concept_slug=concept_slug,
        normalized_value=normalize_value(pointer.extracted_value, _value_type(pointer, concept_slug)),
        effective_from=effective_from,
        effective_until=pointer.effective_until,
    )


def _best_authority(levels: list[str | None]) -> str | None:
    known = [lvl for lvl in levels if lvl]
    if not known:
        return None
    return min(known, key=authority_rank)


def _find_existing(db: Session, key: RuleKey) -> RegulatoryRule | None:
    q = db.query(RegulatoryRule).filter(
        RegulatoryRule.concept_slug == key.concept_slug,
        RegulatoryRule.normalized_value == key.normalized_value,
        RegulatoryRule.effective_from == key.effective_from,
        RegulatoryRule.status.in_(_OPEN_STATUSES + _ACCEPTED_STATUSES),
        RegulatoryRule.superseded_by_id.is_(None),
    )
    if key.effective_until is None:
        q = q.filter(RegulatoryRule.effective_until.is_(None))
    else:
        q = q.filter(RegulatoryRule.effective_until == key.effective_until)
    return q.order_by(RegulatoryRule.created_at.asc()).first()


def _attach(db: Session, rule: RegulatoryRule, pointers: list[SourcePointer], authorities: list[str | None]) -> None:
    previous_confidence = rule.confidence
    rule.source_pointers.extend(pointers)
    rule.confidence = min([previous_confidence] + [p.confidence for p in pointers])
    rule.authority_level = _best_authority([rule.authority_level] + authorities)
    db.flush()

    if rule.status == RuleStatus.PUBLISHED.value:
        event = (
            ContentSyncEventType.CONFIDENCE_DROPPED
            if rule.confidence < previous_confidence
            else ContentSyncEventType.POINTERS_CHANGED
        )
        enqueue_rule_change(db, rule, event, change_type="update")
    logger.info(
        "Attached %d pointer(s) to existing rule %s (%s, status=%s)",
        len(pointers),
        rule.id,
        rule.concept_slug,
        rule.status,
    )


def _create(db: Session, key: RuleKey, pointers: list[SourcePointer], authorities: list[str | None]) -> RegulatoryRule:
    strongest = max(pointers, key=lambda p: p.confidence)
    concept = get_concept(key.concept_slug)
    rule = RegulatoryRule(
        concept_slug=key.concept_slug,
        title=(concept.description if concept and concept.description else key.concept_slug),
        domain=strongest.domain,
        value=strongest.extracted_value,
        value_type=_value_type(strongest, key.concept_slug),
        normalized_value=key.normalized_value,
        risk_tier=tier_for_concept(key.concept_slug).value,
        authority_level=_best_authority(authorities),
        status=RuleStatus.DRAFT.value,
        effective_from=key.effective_from,
        effective_until=key.effective_until,
        confidence=min(p.confidence for p in pointers),
    )
    rule.source_pointers = list(pointers)
    db.add(rule)
    db.flush()
    transition_rule(db, rule, RuleStatus.PENDING_REVIEW, actor="composer", reason="composed")
    return rule


def compose_rules(db: Session) -> dict:
    """Compose rules from grounded pointers not yet linked to any rule. Commits once per concept."""
    pointers = _unassigned_grounded_pointers(db)
    counts = {"pointers": len(pointers), "rules_created": 0, "rules_extended": 0, "unmapped": 0, "orphaned": 0}

    by_concept: dict[str, dict[RuleKey, list[SourcePointer]]] = defaultdict(lambda: defaultdict(list))
    authorities: dict[RuleKey, list[str | None]] = defaultdict(list)
    for pointer in pointers:
        slug = resolve_concept_slug(pointer.concept_slug) or resolve_concept_slug(pointer.domain)
        if slug is None:
            counts["unmapped"] += 1
            logger.warning("Pointer %s has no registered concept (domain=%s)", pointer.id, pointer.domain)
            continue
        evidence = resolve_evidence_ref(db, pointer.evidence_ref)
        if evidence is None:
            counts["orphaned"] += 1
            continue
        if pointer.concept_slug != slug:
            pointer.concept_slug = slug
        key = _key_for(pointer, slug, evidence)
        by_concept[slug][key].append(pointer)
        authorities[key].append(evidence.authority_level)

    for slug in sorted(by_concept):
        for key, group in by_concept[slug].items():
            existing = _find_existing(db, key)
            if existing is not None:
                _attach(db, existing, group, authorities[key])
                counts["rules_extended"] += 1
            else:
                _create(db, key, group, authorities[key])
                counts["rules_created"] += 1
        db.commit()

    logger.info(
        "Composition: pointers=%d created=%d extended=%d unmapped=%d orphaned=%d",
        counts["pointers"],
        counts["rules_created"],
        counts["rules_extended"],
        counts["unmapped"],
        counts["orphaned"],
    )
    return counts


def resubmit_drafts(db: Session) -> int:
    """Move DRAFT rules whose pointers are all GROUNDED again back to PENDING_REVIEW. Commits."""
    drafts = (
        db.query(RegulatoryRule)
        .filter(RegulatoryRule.status == RuleStatus.DRAFT.value)
        .order_by(RegulatoryRule.created_at.asc(), RegulatoryRule.id.asc())
        .all()
    )
    moved = 0
    for rule in drafts:
        if rule.source_pointers and all(p.is_citable for p in rule.source_pointers):
            transition_rule(db, rule, RuleStatus.PENDING_REVIEW, actor="composer", reason="grounding restored")
            moved += 1
    db.commit()
    if moved:
        logger.info("Resubmitted %d draft rule(s) for review", moved)
    return moved
