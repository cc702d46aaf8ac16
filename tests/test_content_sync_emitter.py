"""Content-sync emitter tests: deterministic ids and idempotent enqueue."""

from __future__ import annotations

import uuid
from datetime import date

from regtruth.content_sync.emitter import emit_effective_rules, enqueue_rule_change, severity_for
from regtruth.content_sync.event_id import compute_event_id
from regtruth.models import ContentSyncEvent
from regtruth.models.enums import ContentSyncEventType, ContentSyncStatus, RuleStatus
from regtruth.schemas.content_sync import ContentSyncPayloadV1
from tests.factories import make_grounded_rule


class TestComputeEventId:
    def test_deterministic(self) -> None:
        rule_id = uuid.UUID("8d6f0c1e-8a57-4d0e-9a57-3f5b2c9d1e01")
        a = compute_event_id(rule_id, "RULE_RELEASED", date(2025, 1, 1))
        b = compute_event_id(str(rule_id), "RULE_RELEASED", "2025-01-01")
        assert a == b
        assert len(a) == 64

    def test_each_component_changes_id(self) -> None:
        rule_id = uuid.uuid4()
        base = compute_event_id(rule_id, "RULE_RELEASED", date(2025, 1, 1))
        assert compute_event_id(uuid.uuid4(), "RULE_RELEASED", date(2025, 1, 1)) != base
        assert compute_event_id(rule_id, "RULE_SUPERSEDED", date(2025, 1, 1)) != base
        assert compute_event_id(rule_id, "RULE_RELEASED", date(2025, 1, 2)) != base


class TestSeverity:
    def test_tier_mapping(self) -> None:
        assert severity_for("T0", "update") == "breaking"
        assert severity_for("T1", "update") == "major"
        assert severity_for("T2", "create") == "minor"
        assert severity_for("T3", "update") == "info"

    def test_repeal_is_always_breaking(self) -> None:
        assert severity_for("T3", "repeal") == "breaking"


class TestEnqueueRuleChange:
    def test_writes_pending_event_with_valid_payload(self, db) -> None:
        rule = make_grounded_rule(db, status=RuleStatus.PUBLISHED, confidence=0.934)

        event_id = enqueue_rule_change(db, rule, ContentSyncEventType.RULE_RELEASED, change_type="create")
        db.commit()

        event = db.get(ContentSyncEvent, event_id)
        assert event.status == ContentSyncStatus.PENDING.value
        assert event.attempts == 0
        assert event.concept_id == "pdv-standard-rate"
        payload = ContentSyncPayloadV1.model_validate(event.payload)
        assert payload.event_id == event_id
        assert payload.severity == "breaking"
        assert payload.confidence_level == 93
        assert payload.new_value == "25"
        assert len(payload.source_pointer_ids) == 1

    def test_second_enqueue_is_noop(self, db) -> None:
        rule = make_grounded_rule(db, status=RuleStatus.PUBLISHED)
        first = enqueue_rule_change(db, rule, ContentSyncEventType.RULE_RELEASED)
        db.commit()
        db.get(ContentSyncEvent, first).status = ContentSyncStatus.DONE.value
        db.commit()

        second = enqueue_rule_change(db, rule, ContentSyncEventType.RULE_RELEASED)
        db.commit()

        assert second == first
        assert db.query(ContentSyncEvent).count() == 1
        assert db.get(ContentSyncEvent, first).status == ContentSyncStatus.DONE.value

    def test_explicit_effective_from_overrides_rule_date(self, db) -> None:
        rule = make_grounded_rule(db, status=RuleStatus.PUBLISHED)
        event_id = enqueue_rule_change(
            db, rule, ContentSyncEventType.RULE_EFFECTIVE, effective_from=date(2025, 7, 1)
        )
        db.commit()
        assert event_id == compute_event_id(rule.id, "RULE_EFFECTIVE", date(2025, 7, 1))
        assert db.get(ContentSyncEvent, event_id).payload["effective_from"] == "2025-07-01"


class TestEmitEffectiveRules:
    def test_emits_once_for_rules_in_effect(self, db) -> None:
        make_grounded_rule(db, status=RuleStatus.PUBLISHED)
        make_grounded_rule(db, status=RuleStatus.PUBLISHED, value="24", effective_from=date(2026, 1, 1))

        assert emit_effective_rules(db, date(2025, 6, 1)) == 1
        emit_effective_rules(db, date(2025, 6, 1))

        events = db.query(ContentSyncEvent).all()
        assert len(events) == 1
        assert events[0].type == ContentSyncEventType.RULE_EFFECTIVE.value
