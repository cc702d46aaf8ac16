"""Resolve the release bundle that is authoritative for a concept on a date."""

from __future__ import annotations

import logging
from datetime import date

from sqlalchemy import or_
from sqlalchemy.orm import Session

from regtruth.models.enums import RuleStatus
from regtruth.models.regulatory_rule import RegulatoryRule
from regtruth.models.rule_release import RuleRelease, release_rules
from regtruth.rules.canonical import canonical_entries, canonical_entry
from regtruth.rules.releaser import parse_version, require_release_integrity
from regtruth.schemas.rules import ResolvedRuleBundle

logger = logging.getLogger(__name__)


def _effective_on(rule: RegulatoryRule, on: date) -> bool:
    return rule.effective_from <= on and (rule.effective_until is None or on < rule.effective_until)


def resolve_rule_bundle(db: Session, concept_slug: str, on: date) -> ResolvedRuleBundle | None:
    """Latest release holding a PUBLISHED rule for concept_slug effective on `on`.

    Returns None when no release covers the concept on that date.

    Raises:
        ReleaseIntegrityError: If the release's content hash no longer matches its members.
    """
    releases = (
        db.query(RuleRelease)
        .join(release_rules, release_rules.c.release_id == RuleRelease.id)
        .join(RegulatoryRule, RegulatoryRule.id == release_rules.c.rule_id)
        .filter(
            RegulatoryRule.concept_slug == concept_slug,
            RegulatoryRule.status == RuleStatus.PUBLISHED.value,
            RegulatoryRule.effective_from <= on,
            or_(RegulatoryRule.effective_until.is_(None), RegulatoryRule.effective_until > on),
        )
        .distinct()
        .all()
    )
    if not releases:
        return None
    bundle = max(releases, key=lambda r: parse_version(r.version))
    require_release_integrity(bundle)

    candidates = [
        r
        for r in bundle.rules
        if r.concept_slug == concept_slug
        and r.status == RuleStatus.PUBLISHED.value
        and _effective_on(r, on)
    ]
    rule = max(candidates, key=lambda r: (r.effective_from, r.published_at or r.created_at))
    logger.debug("Resolved %s@%s -> release %s rule %s", concept_slug, on, bundle.version, rule.id)
    return ResolvedRuleBundle(
        concept_slug=concept_slug,
        effective_on=on,
        release_version=bundle.version,
        release_type=bundle.release_type,
        content_hash=bundle.content_hash,
        released_at=bundle.released_at,
        rule=canonical_entry(rule),
        rule_id=rule.id,
        risk_tier=rule.risk_tier,
        confidence=rule.confidence,
        source_pointer_ids=[p.id for p in rule.source_pointers],
        entries=canonical_entries(bundle.rules),
    )
