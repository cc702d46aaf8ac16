"""Row builders shared by the database tests."""

from __future__ import annotations

from datetime import UTC, date, datetime

from sqlalchemy.orm import Session

from regtruth.evidence.store import store_evidence
from regtruth.models import Evidence, RegulatoryRule, SourcePointer
from regtruth.models.enums import ContentClass, MatchMode, MatchType, RuleStatus
from regtruth.rules.values import normalize_value

VAT_TEXT = "Članak 38.\n(1) Opća stopa PDV-a iznosi 25%.\n(2) Prag za upis u registar obveznika PDV-a iznosi 40.000,00 eura."


def make_evidence(
    db: Session,
    text: str = VAT_TEXT,
    url: str = "https://narodne-novine.nn.hr/clanci/sluzbeni/2024_12_152_2505.html",
    authority_level: str | None = "LAW",
    content_class: ContentClass = ContentClass.HTML,
    fetched_at: datetime | None = None,
) -> Evidence:
    evidence, _created = store_evidence(
        db,
        url=url,
        raw=text,
        content_class=content_class,
        authority_level=authority_level,
        fetched_at=fetched_at or datetime(2025, 1, 2, 8, 0, tzinfo=UTC),
    )
    db.commit()
    return evidence


def make_pointer(
    db: Session,
    evidence: Evidence,
    quote: str = "Opća stopa PDV-a iznosi 25%",
    value: str = "25",
    concept_slug: str | None = "pdv-standard-rate",
    confidence: float = 0.95,
    match_type: MatchType = MatchType.GROUNDED,
    match_mode: MatchMode | None = MatchMode.EXACT,
    effective_from: date | None = date(2025, 1, 1),
    effective_until: date | None = None,
    value_type: str | None = None,
) -> SourcePointer:
    pointer = SourcePointer(
        evidence_id=evidence.id,
        domain=concept_slug or "unknown",
        concept_slug=concept_slug,
        value_type=value_type,
        extracted_value=value,
        exact_quote=quote,
        confidence=confidence,
        effective_from=effective_from,
        effective_until=effective_until,
        match_type=match_type.value,
        match_mode=match_mode.value if match_mode else None,
    )
    db.add(pointer)
    db.commit()
    return pointer


def make_rule(
    db: Session,
    concept_slug: str = "pdv-standard-rate",
    value: str = "25",
    value_type: str = "percentage",
    risk_tier: str = "T0",
    status: RuleStatus = RuleStatus.PENDING_REVIEW,
    effective_from: date = date(2025, 1, 1),
    effective_until: date | None = None,
    confidence: float = 0.95,
    authority_level: str | None = "LAW",
    pointers: list[SourcePointer] | None = None,
) -> RegulatoryRule:
    """Insert a rule directly in the given status (bypasses the state machine)."""
    rule = RegulatoryRule(
        concept_slug=concept_slug,
        title=concept_slug,
        domain=concept_slug,
        value=value,
        value_type=value_type,
        normalized_value=normalize_value(value, value_type),
        risk_tier=risk_tier,
        authority_level=authority_level,
        status=status.value,
        effective_from=effective_from,
        effective_until=effective_until,
        confidence=confidence,
    )
    rule.source_pointers = list(pointers or [])
    db.add(rule)
    db.commit()
    return rule


def make_grounded_rule(db: Session, evidence: Evidence | None = None, **kwargs) -> RegulatoryRule:
    """Rule backed by one GROUNDED/EXACT pointer on real evidence."""
    evidence = evidence or make_evidence(db)
    pointer = make_pointer(
        db,
        evidence,
        concept_slug=kwargs.get("concept_slug", "pdv-standard-rate"),
        value=kwargs.get("value", "25"),
    )
    return make_rule(db, pointers=[pointer], **kwargs)
