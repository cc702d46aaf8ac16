"""Releaser: bundle approved rules into an immutable, semantically versioned release.

Membership is cumulative: the previous release's members that are still PUBLISHED and
not superseded are carried forward, plus the newly approved rules. A new rule
supersedes any carried member for the same concept whose period overlaps its own.

The version bump is computed over the changes only (canonical entries added or removed
relative to the previous release): MAJOR when any changed rule is T0, MINOR when any is
T1, otherwise PATCH. The first release is 1.0.0.
"""

from __future__ import annotations

import logging
import uuid
from datetime import UTC, datetime

from sqlalchemy.orm import Session

from regtruth.content_sync.emitter import enqueue_rule_change
from regtruth.models.enums import ContentSyncEventType, ReleaseType, RiskTier, RuleStatus
from regtruth.models.regulatory_rule import RegulatoryRule
from regtruth.models.rule_release import RuleRelease
from regtruth.rules.arbiter import open_conflict_rule_ids, periods_overlap
from regtruth.rules.canonical import canonical_entry, compute_content_hash, entry_key
from regtruth.rules.provenance import provenance_problems
from regtruth.rules.status import transition_rule

logger = logging.getLogger(__name__)

FIRST_VERSION = "1.0.0"


class ReleaseBlockedError(Exception):
    """Raised when rules selected for release fail the provenance gate or are in open conflicts."""

    def __init__(self, problems: dict[uuid.UUID, list[str]]) -> None:
        super().__init__(f"Release blocked: {len(problems)} rule(s) not releasable")
        self.problems = problems


class ReleaseIntegrityError(Exception):
    """Raised when a release's recomputed content hash differs from the stored one."""

    def __init__(self, version: str, stored: str, computed: str) -> None:
        super().__init__(
            f"Release {version} integrity check failed: stored={stored[:12]} computed={computed[:12]}"
        )
        self.version = version
        self.stored = stored
        self.computed = computed


def parse_version(version: str) -> tuple[int, int, int]:
    major, minor, patch = (int(part) for part in version.split("."))
    return major, minor, patch


def bump_version(previous: str | None, release_type: ReleaseType) -> str:
    if previous is None:
        return FIRST_VERSION
    major, minor, patch = parse_version(previous)
    if release_type == ReleaseType.MAJOR:
        return f"{major + 1}.0.0"
    if release_type == ReleaseType.MINOR:
        return f"{major}.{minor + 1}.0"
    return f"{major}.{minor}.{patch + 1}"


def classify_release(changed_tiers: set[str]) -> ReleaseType:
    if RiskTier.T0.value in changed_tiers:
        return ReleaseType.MAJOR
    if RiskTier.T1.value in changed_tiers:
        return ReleaseType.MINOR
    return ReleaseType.PATCH


def latest_release(db: Session) -> RuleRelease | None:
    releases = db.query(RuleRelease).all()
    if not releases:
        return None
    return max(releases, key=lambda r: parse_version(r.version))


def get_release(db: Session, version: str) -> RuleRelease | None:
    return db.query(RuleRelease).filter(RuleRelease.version == version).first()


def _changelog(
    previous_members: list[RegulatoryRule], members: list[RegulatoryRule]
) -> tuple[list[dict], set[str]]:
    before = {entry_key(canonical_entry(r)): r for r in previous_members}
    after = {entry_key(canonical_entry(r)): r for r in members}
    changes: list[dict] = []
    tiers: set[str] = set()
    for action, keys, source in (
        ("removed", before.keys() - after.keys(), before),
        ("added", after.keys() - before.keys(), after),
    ):
        for key in keys:
            rule = source[key]
            tiers.add(rule.risk_tier)
            changes.append(
                {"action": action, "ruleId": str(rule.id), "riskTier": rule.risk_tier, **canonical_entry(rule)}
            )
    changes.sort(key=lambda c: (c["conceptSlug"], c["effectiveFrom"], c["action"], c["ruleId"]))
    return changes, tiers


def release(db: Session, rules: list[RegulatoryRule] | None = None, actor: str = "releaser") -> RuleRelease | None:
    """Publish approved rules as the next release. Commits; returns None when nothing is approved.

    Without explicit rules, approved rules that sit in an OPEN conflict are held back.

    Raises:
        ReleaseBlockedError: If any rule fails the provenance gate or a passed rule sits in an
            OPEN conflict (nothing is published).
        InvalidTransitionError: If a passed rule is not APPROVED.
    """
    conflicted = open_conflict_rule_ids(db)
    if rules is None:
        rules = (
            db.query(RegulatoryRule)
            .filter(RegulatoryRule.status == RuleStatus.APPROVED.value)
            .order_by(RegulatoryRule.concept_slug, RegulatoryRule.effective_from, RegulatoryRule.id)
            .all()
        )
        held = [r.id for r in rules if r.id in conflicted]
        if held:
            logger.warning("Release holding back rules with open conflicts: %s", [str(i) for i in held])
            rules = [r for r in rules if r.id not in conflicted]
    if not rules:
        logger.info("Release skipped: no approved rules")
        return None

    blocked = {r.id: p for r in rules if (p := provenance_problems(db, r))}
    for r in rules:
        if r.id in conflicted:
            blocked.setdefault(r.id, []).append("rule is part of an open conflict")
    if blocked:
        logger.error("Release blocked: rules=%s", [str(k) for k in blocked])
        raise ReleaseBlockedError(blocked)

    previous = latest_release(db)
    previous_members = list(previous.rules) if previous else []
    carried = [
        r
        for r in previous_members
        if r.status == RuleStatus.PUBLISHED.value and r.superseded_by_id is None
    ]

    replaced: dict[uuid.UUID, RegulatoryRule] = {}
    for new in rules:
        for old in carried:
            if old.id in replaced or old.concept_slug != new.concept_slug:
                continue
            if periods_overlap(old.effective_from, old.effective_until, new.effective_from, new.effective_until):
                replaced[old.id] = new
    members = [r for r in carried if r.id not in replaced] + list(rules)

    changes, tiers = _changelog(previous_members, members)
    release_type = classify_release(tiers)
    version = bump_version(previous.version if previous else None, release_type)

    carried_by_id = {r.id: r for r in carried}
    previous_value_by_new: dict[uuid.UUID, str] = {}
    try:
        for old_id, new in replaced.items():
            old = carried_by_id[old_id]
            previous_value_by_new[new.id] = old.value
            old.superseded_by_id = new.id
            db.flush()
            enqueue_rule_change(db, old, ContentSyncEventType.RULE_SUPERSEDED, change_type="update")
            logger.info("Rule %s superseded by %s (%s)", old.id, new.id, old.concept_slug)

        for rule in rules:
            prior = previous_value_by_new.get(rule.id)
            transition_rule(
                db,
                rule,
                RuleStatus.PUBLISHED,
                actor=actor,
                reason=f"released in {version}",
                emit=ContentSyncEventType.RULE_RELEASED,
                change_type="update" if prior is not None else "create",
                previous_value=prior,
            )

        bundle = RuleRelease(
            version=version,
            release_type=release_type.value,
            content_hash=compute_content_hash(members),
            changelog=changes,
            rule_count=len(members),
            previous_release_id=previous.id if previous else None,
            released_at=datetime.now(UTC),
        )
        bundle.rules = members
        db.add(bundle)
        db.commit()
    except Exception:
        db.rollback()
        logger.exception("Release %s failed; rolled back", version)
        raise

    logger.info(
        "Released %s (%s): members=%d new=%d superseded=%d changes=%d hash=%s",
        version,
        release_type.value,
        len(members),
        len(rules),
        len(replaced),
        len(changes),
        bundle.content_hash[:12],
    )
    return bundle


def verify_release_integrity(release_row: RuleRelease) -> bool:
    """True when the member rules still hash to the stored content hash."""
    return compute_content_hash(release_row.rules) == release_row.content_hash


def require_release_integrity(release_row: RuleRelease) -> None:
    computed = compute_content_hash(release_row.rules)
    if computed != release_row.content_hash:
        logger.critical(
            "Release integrity violation: version=%s stored=%s computed=%s",
            release_row.version,
            release_row.content_hash,
            computed,
        )
        raise ReleaseIntegrityError(release_row.version, release_row.content_hash, computed)
