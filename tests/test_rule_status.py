"""Rule status state machine tests."""

from __future__ import annotations

import pytest

from regtruth.models import ContentSyncEvent
from regtruth.models.enums import ContentSyncEventType, RuleStatus
from regtruth.rules.status import (
    InvalidTransitionError,
    can_transition,
    reset_rule_to_draft,
    transition_rule,
)
from tests.factories import make_grounded_rule, make_rule
from tests.test_constants import TEST_REVIEWER


class TestCanTransition:
    @pytest.mark.parametrize(
        "current,target",
        [
            ("DRAFT", "PENDING_REVIEW"),
            ("PENDING_REVIEW", "APPROVED"),
            ("APPROVED", "PUBLISHED"),
            ("PENDING_REVIEW", "REJECTED"),
        ],
    )
    def test_forward_transitions_allowed(self, current, target) -> None:
        assert can_transition(current, target) is True

    @pytest.mark.parametrize(
        "current,target",
        [
            ("DRAFT", "APPROVED"),
            ("DRAFT", "PUBLISHED"),
            ("PENDING_REVIEW", "PUBLISHED"),
            ("PUBLISHED", "DRAFT"),
            ("REJECTED", "PENDING_REVIEW"),
            ("APPROVED", "PENDING_REVIEW"),
        ],
    )
    def test_skips_and_backward_moves_rejected(self, current, target) -> None:
        assert can_transition(current, target) is False


class TestTransitionRule:
    def test_approval_records_actor(self, db) -> None:
        rule = make_rule(db)
        transition_rule(db, rule, RuleStatus.APPROVED, actor=TEST_REVIEWER, reason="checked")
        assert rule.status == RuleStatus.APPROVED.value
        assert rule.approved_by == TEST_REVIEWER
        assert rule.approved_at is not None

    def test_illegal_transition_raises_and_keeps_status(self, db) -> None:
        rule = make_rule(db, status=RuleStatus.DRAFT)
        with pytest.raises(InvalidTransitionError) as exc_info:
            transition_rule(db, rule, RuleStatus.PUBLISHED)
        assert exc_info.value.current == "DRAFT"
        assert rule.status == RuleStatus.DRAFT.value

    def test_publish_with_event(self, db) -> None:
        rule = make_grounded_rule(db, status=RuleStatus.APPROVED)
        transition_rule(db, rule, RuleStatus.PUBLISHED, emit=ContentSyncEventType.RULE_RELEASED, change_type="create")
        db.commit()
        assert rule.published_at is not None
        event = db.query(ContentSyncEvent).filter(ContentSyncEvent.rule_id == rule.id).one()
        assert event.type == ContentSyncEventType.RULE_RELEASED.value
        assert event.payload["change_type"] == "create"


class TestResetRuleToDraft:
    def test_published_reset_emits_source_changed(self, db) -> None:
        rule = make_grounded_rule(db, status=RuleStatus.PUBLISHED)
        assert reset_rule_to_draft(db, rule, reason="evidence changed") is True
        db.commit()
        assert rule.status == RuleStatus.DRAFT.value
        assert rule.approved_by is None
        event = db.query(ContentSyncEvent).filter(ContentSyncEvent.rule_id == rule.id).one()
        assert event.type == ContentSyncEventType.SOURCE_CHANGED.value

    def test_rejected_rule_is_not_reset(self, db) -> None:
        rule = make_rule(db, status=RuleStatus.REJECTED)
        assert reset_rule_to_draft(db, rule, reason="x") is False
        assert rule.status == RuleStatus.REJECTED.value

    def test_draft_is_noop(self, db) -> None:
        rule = make_rule(db, status=RuleStatus.DRAFT)
        assert reset_rule_to_draft(db, rule, reason="x") is False
