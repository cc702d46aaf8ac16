"""Conflict arbiter tests: detection, policy resolution, human escalation."""

from __future__ import annotations

import uuid
from datetime import date

import pytest

from regtruth.models import RegulatoryConflict, RegulatoryRule
from regtruth.models.enums import ConflictStatus, ConflictType, ResolutionPolicy, RuleStatus
from regtruth.rules.arbiter import (
    ConflictResolutionError,
    arbitrate,
    decide,
    detect_conflicts,
    has_open_conflict,
    periods_overlap,
    resolve_conflict_manually,
)
from tests.factories import make_rule
from tests.test_constants import TEST_REVIEWER


def _threshold(db, value: str, **kwargs) -> RegulatoryRule:
    kwargs.setdefault("value_type", "currency")
    return make_rule(db, concept_slug="pdv-prag", value=value, **kwargs)


def _transient(authority: str | None = "LAW", effective_from: date = date(2025, 1, 1), confidence: float = 0.9):
    return RegulatoryRule(
        id=uuid.uuid4(),
        concept_slug="pdv-prag",
        authority_level=authority,
        effective_from=effective_from,
        confidence=confidence,
    )


class TestPeriodsOverlap:
    def test_open_ended_periods_overlap(self) -> None:
        assert periods_overlap(date(2025, 1, 1), None, date(2026, 1, 1), None) is True

    def test_adjacent_half_open_periods_do_not_overlap(self) -> None:
        assert periods_overlap(date(2025, 1, 1), date(2026, 1, 1), date(2026, 1, 1), None) is False


class TestDecide:
    def test_authority_wins_first(self) -> None:
        law = _transient("LAW", effective_from=date(2024, 1, 1), confidence=0.5)
        guide = _transient("GUIDANCE", effective_from=date(2025, 1, 1), confidence=0.99)
        decision = decide(guide, law)
        assert decision.winner_id == law.id
        assert decision.policy == ResolutionPolicy.AUTHORITY

    def test_recency_when_authority_equal(self) -> None:
        old = _transient(effective_from=date(2024, 1, 1))
        new = _transient(effective_from=date(2025, 1, 1))
        decision = decide(old, new)
        assert decision.winner_id == new.id
        assert decision.policy == ResolutionPolicy.RECENCY

    def test_confidence_when_dates_equal(self) -> None:
        low = _transient(confidence=0.8)
        high = _transient(confidence=0.95)
        assert decide(low, high).policy == ResolutionPolicy.CONFIDENCE
        assert decide(low, high).winner_id == high.id

    def test_full_tie_has_no_winner(self) -> None:
        decision = decide(_transient(), _transient())
        assert decision.winner_id is None
        assert decision.policy is None

    def test_unknown_authority_loses(self) -> None:
        known = _transient("PRACTICE")
        unknown = _transient(None)
        assert decide(unknown, known).winner_id == known.id


class TestDetectConflicts:
    def test_different_thresholds_give_one_open_conflict(self, db) -> None:
        _threshold(db, "40000")
        _threshold(db, "60000")

        created = detect_conflicts(db, "pdv-prag")
        again = detect_conflicts(db, "pdv-prag")
        db.commit()

        assert len(created) == 1
        assert again == []
        conflict = created[0]
        assert conflict.status == ConflictStatus.OPEN.value
        assert conflict.conflict_type == ConflictType.SOURCE_CONFLICT.value

    def test_equal_normalized_values_do_not_conflict(self, db) -> None:
        _threshold(db, "40.000,00 EUR")
        _threshold(db, "40000")
        assert detect_conflicts(db, "pdv-prag") == []

    def test_non_overlapping_periods_do_not_conflict(self, db) -> None:
        _threshold(db, "40000", effective_until=date(2026, 1, 1))
        _threshold(db, "60000", effective_from=date(2026, 1, 1))
        assert detect_conflicts(db, "pdv-prag") == []

    def test_overlapping_different_starts_are_temporal(self, db) -> None:
        _threshold(db, "40000")
        _threshold(db, "60000", effective_from=date(2025, 6, 1))
        (conflict,) = detect_conflicts(db, "pdv-prag")
        assert conflict.conflict_type == ConflictType.TEMPORAL_CONFLICT.value

    def test_rejected_rules_are_ignored(self, db) -> None:
        _threshold(db, "40000")
        _threshold(db, "60000", status=RuleStatus.REJECTED)
        assert detect_conflicts(db, "pdv-prag") == []


class TestArbitrate:
    def test_tie_is_escalated_and_stays_open(self, db) -> None:
        a = _threshold(db, "40000")
        b = _threshold(db, "60000")

        counts = arbitrate(db, ["pdv-prag"])

        assert counts["detected"] == 1
        assert counts["escalated"] == 1
        conflict = db.query(RegulatoryConflict).one()
        assert conflict.status == ConflictStatus.OPEN.value
        assert conflict.requires_human_review is True
        assert has_open_conflict(db, a.id) and has_open_conflict(db, b.id)

    def test_authority_resolution_rejects_loser(self, db) -> None:
        law = _threshold(db, "40000", authority_level="LAW")
        guide = _threshold(db, "60000", authority_level="GUIDANCE")

        counts = arbitrate(db, ["pdv-prag"])

        assert counts["resolved"] == 1
        conflict = db.query(RegulatoryConflict).one()
        assert conflict.status == ConflictStatus.RESOLVED.value
        assert conflict.winning_rule_id == law.id
        assert conflict.decided_by == ResolutionPolicy.AUTHORITY.value
        assert guide.status == RuleStatus.REJECTED.value
        assert law.status == RuleStatus.PENDING_REVIEW.value

    def test_published_loser_is_not_rejected(self, db) -> None:
        _threshold(db, "40000", authority_level="LAW")
        published = _threshold(db, "60000", authority_level="GUIDANCE", status=RuleStatus.PUBLISHED)
        arbitrate(db, ["pdv-prag"])
        assert published.status == RuleStatus.PUBLISHED.value

    def test_rerun_does_not_duplicate(self, db) -> None:
        _threshold(db, "40000")
        _threshold(db, "60000")
        arbitrate(db, ["pdv-prag"])
        counts = arbitrate(db, ["pdv-prag"])
        assert counts["detected"] == 0
        assert db.query(RegulatoryConflict).count() == 1

    def test_all_concepts_by_default(self, db) -> None:
        _threshold(db, "40000")
        make_rule(db, concept_slug="pdv-standard-rate")
        assert arbitrate(db)["concepts"] == 2


class TestResolveConflictManually:
    def test_human_picks_winner(self, db) -> None:
        a = _threshold(db, "40000")
        b = _threshold(db, "60000")
        arbitrate(db, ["pdv-prag"])
        conflict = db.query(RegulatoryConflict).one()

        resolved = resolve_conflict_manually(db, conflict.id, b.id, actor=TEST_REVIEWER, note="NN 152/2024")

        assert resolved.status == ConflictStatus.RESOLVED.value
        assert resolved.decided_by == ResolutionPolicy.HUMAN.value
        assert resolved.resolved_by == TEST_REVIEWER
        assert db.get(RegulatoryRule, a.id).status == RuleStatus.REJECTED.value

    def test_winner_must_be_in_conflict(self, db) -> None:
        _threshold(db, "40000")
        _threshold(db, "60000")
        arbitrate(db, ["pdv-prag"])
        conflict = db.query(RegulatoryConflict).one()
        with pytest.raises(ConflictResolutionError):
            resolve_conflict_manually(db, conflict.id, uuid.uuid4(), actor=TEST_REVIEWER)

    def test_missing_conflict(self, db) -> None:
        with pytest.raises(LookupError):
            resolve_conflict_manually(db, uuid.uuid4(), uuid.uuid4(), actor=TEST_REVIEWER)

    def test_resolved_conflict_cannot_be_resolved_again(self, db) -> None:
        _threshold(db, "40000")
        b = _threshold(db, "60000")
        arbitrate(db, ["pdv-prag"])
        conflict = db.query(RegulatoryConflict).one()
        resolve_conflict_manually(db, conflict.id, b.id, actor=TEST_REVIEWER)
        with pytest.raises(ConflictResolutionError):
            resolve_conflict_manually(db, conflict.id, b.id, actor=TEST_REVIEWER)
