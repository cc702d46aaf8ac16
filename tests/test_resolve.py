"""Resolve tests: which release is authoritative for a concept on a date."""

from __future__ import annotations

from datetime import date

import pytest

from regtruth.models.enums import RuleStatus
from regtruth.rules.releaser import ReleaseIntegrityError, release
from regtruth.rules.resolve import resolve_rule_bundle
from tests.factories import make_grounded_rule


def _approved(db, **kwargs):
    return make_grounded_rule(db, status=RuleStatus.APPROVED, **kwargs)


class TestResolveRuleBundle:
    def test_resolves_published_rule(self, db) -> None:
        rule = _approved(db)
        bundle = release(db)

        resolved = resolve_rule_bundle(db, "pdv-standard-rate", date(2025, 3, 1))

        assert resolved.release_version == bundle.version
        assert resolved.rule_id == rule.id
        assert resolved.rule.value == "25"
        assert resolved.content_hash == bundle.content_hash
        assert len(resolved.source_pointer_ids) == 1
        assert [e.conceptSlug for e in resolved.entries] == ["pdv-standard-rate"]

    def test_date_before_effective_from(self, db) -> None:
        _approved(db)
        release(db)
        assert resolve_rule_bundle(db, "pdv-standard-rate", date(2024, 12, 31)) is None

    def test_unknown_concept(self, db) -> None:
        _approved(db)
        release(db)
        assert resolve_rule_bundle(db, "pdv-prag", date(2025, 3, 1)) is None

    def test_unreleased_rule_is_not_resolved(self, db) -> None:
        _approved(db)
        assert resolve_rule_bundle(db, "pdv-standard-rate", date(2025, 3, 1)) is None

    def test_newer_release_wins_after_change(self, db) -> None:
        _approved(db, value="25")
        release(db)
        new = _approved(db, value="24", effective_from=date(2026, 1, 1))
        second = release(db)

        before = resolve_rule_bundle(db, "pdv-standard-rate", date(2025, 6, 1))
        after = resolve_rule_bundle(db, "pdv-standard-rate", date(2026, 6, 1))

        assert before.release_version == "1.0.0"
        assert before.rule.value == "25"
        assert after.release_version == second.version
        assert after.rule_id == new.id

    def test_integrity_failure_raises(self, db) -> None:
        rule = _approved(db)
        release(db)
        rule.value = "26"
        db.flush()
        with pytest.raises(ReleaseIntegrityError):
            resolve_rule_bundle(db, "pdv-standard-rate", date(2025, 3, 1))
