"""Grounding revalidation tests: pointer verification, lost grounding resets rules."""

from __future__ import annotations

from datetime import UTC, datetime

from regtruth.evidence.store import store_artifact
from regtruth.grounding.revalidation import (
    DIAGNOSIS_ORPHANED,
    revalidate_evidence,
    revalidate_orphans,
    verify_pending_pointers,
)
from regtruth.models import ContentSyncEvent, RegulatoryRule, SourcePointer
from regtruth.models.enums import (
    ArtifactKind,
    ContentSyncEventType,
    MatchMode,
    MatchType,
    RuleStatus,
)
from tests.factories import make_evidence, make_pointer, make_rule


class TestVerifyPendingPointers:
    def test_grounds_matching_quote_and_rejects_wrong_digit(self, db) -> None:
        evidence = make_evidence(db)
        good = make_pointer(db, evidence, match_type=MatchType.PENDING_VERIFICATION, match_mode=None)
        bad = make_pointer(
            db,
            evidence,
            quote="Opća stopa PDV-a iznosi 22%",
            value="22",
            match_type=MatchType.PENDING_VERIFICATION,
            match_mode=None,
        )

        counts = verify_pending_pointers(db)

        assert counts == {"verified": 2, "grounded": 1, "not_found": 1}
        assert good.match_type == MatchType.GROUNDED.value
        assert good.match_mode == MatchMode.EXACT.value
        assert good.match_start is not None
        assert bad.match_type == MatchType.NOT_FOUND.value
        assert bad.matched_prefix_length == len("Opća stopa PDV-a iznosi 2")

    def test_already_verified_pointers_are_left_alone(self, db) -> None:
        evidence = make_evidence(db)
        make_pointer(db, evidence)
        assert verify_pending_pointers(db)["verified"] == 0


class TestRevalidateEvidence:
    def test_text_change_resets_published_rule_and_emits_event(self, db) -> None:
        evidence = make_evidence(db)
        pointer = make_pointer(db, evidence)
        rule = make_rule(db, status=RuleStatus.PUBLISHED, pointers=[pointer])
        store_artifact(db, evidence.id, ArtifactKind.CLEAN_TEXT, "Opća stopa PDV-a iznosi 26%.")
        db.commit()

        counts = revalidate_evidence(db, evidence.id)

        assert counts["not_found"] == 1
        assert counts["rules_reset"] == 1
        assert pointer.match_type == MatchType.NOT_FOUND.value
        refreshed = db.get(RegulatoryRule, rule.id)
        assert refreshed.status == RuleStatus.DRAFT.value
        events = db.query(ContentSyncEvent).filter(ContentSyncEvent.rule_id == rule.id).all()
        assert [e.type for e in events] == [ContentSyncEventType.SOURCE_CHANGED.value]

    def test_pending_review_rule_reset_without_event(self, db) -> None:
        evidence = make_evidence(db)
        pointer = make_pointer(db, evidence)
        rule = make_rule(db, status=RuleStatus.PENDING_REVIEW, pointers=[pointer])
        store_artifact(db, evidence.id, ArtifactKind.CLEAN_TEXT, "Potpuno drugačiji tekst.")
        db.commit()

        revalidate_evidence(db, evidence.id)

        assert db.get(RegulatoryRule, rule.id).status == RuleStatus.DRAFT.value
        assert db.query(ContentSyncEvent).count() == 0

    def test_still_grounded_leaves_rule_untouched(self, db) -> None:
        evidence = make_evidence(db)
        pointer = make_pointer(db, evidence)
        rule = make_rule(db, status=RuleStatus.APPROVED, pointers=[pointer])
        store_artifact(
            db,
            evidence.id,
            ArtifactKind.CLEAN_TEXT,
            "Članak 38. (1) Opća stopa PDV-a iznosi 25%. (2) Ostalo.",
        )
        db.commit()

        counts = revalidate_evidence(db, evidence.id)

        assert counts["rules_reset"] == 0
        assert db.get(RegulatoryRule, rule.id).status == RuleStatus.APPROVED.value

    def test_evidence_without_pointers(self, db) -> None:
        evidence = make_evidence(db)
        assert revalidate_evidence(db, evidence.id)["pointers"] == 0


class TestRevalidateOrphans:
    def test_soft_deleted_evidence_orphans_pointer_and_resets_rule(self, db) -> None:
        evidence = make_evidence(db)
        pointer = make_pointer(db, evidence)
        rule = make_rule(db, status=RuleStatus.APPROVED, pointers=[pointer])
        evidence.deleted_at = datetime.now(UTC)
        db.commit()

        counts = revalidate_orphans(db)

        assert counts == {"orphans": 1, "newly_marked": 1, "rules_reset": 1}
        assert db.get(SourcePointer, pointer.id).diagnosis == DIAGNOSIS_ORPHANED
        assert db.get(RegulatoryRule, rule.id).status == RuleStatus.DRAFT.value

    def test_second_pass_marks_nothing_new(self, db) -> None:
        evidence = make_evidence(db)
        make_pointer(db, evidence)
        evidence.deleted_at = datetime.now(UTC)
        db.commit()
        revalidate_orphans(db)

        counts = revalidate_orphans(db)

        assert counts["orphans"] == 1
        assert counts["newly_marked"] == 0
