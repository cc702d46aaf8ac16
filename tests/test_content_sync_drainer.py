"""Drainer tests: PENDING events are handed to the queue backend exactly once."""

from __future__ import annotations

from regtruth.content_sync.drainer import drain_pending
from regtruth.content_sync.emitter import enqueue_rule_change
from regtruth.models import ContentSyncEvent
from regtruth.models.enums import ContentSyncEventType, ContentSyncStatus, RuleStatus
from tests.factories import make_grounded_rule


class RecordingBackend:
    def __init__(self, fail: bool = False) -> None:
        self.enqueued: list[str] = []
        self.fail = fail

    def enqueue(self, event_id: str) -> None:
        if self.fail:
            raise ConnectionError("broker unavailable")
        self.enqueued.append(event_id)


def _pending_event(db) -> str:
    rule = make_grounded_rule(db, status=RuleStatus.PUBLISHED)
    event_id = enqueue_rule_change(db, rule, ContentSyncEventType.RULE_RELEASED, change_type="create")
    db.commit()
    return event_id


class TestDrainPending:
    def test_enqueues_and_marks_enqueued(self, db) -> None:
        event_id = _pending_event(db)
        backend = RecordingBackend()

        counts = drain_pending(db, backend)
        db.expire_all()

        assert counts["enqueued"] == 1
        assert backend.enqueued == [event_id]
        event = db.get(ContentSyncEvent, event_id)
        assert event.status == ContentSyncStatus.ENQUEUED.value
        assert event.enqueued_at is not None
        assert event.version == 2

    def test_second_drain_enqueues_nothing(self, db) -> None:
        _pending_event(db)
        backend = RecordingBackend()
        drain_pending(db, backend)

        counts = drain_pending(db, backend)

        assert counts == {"pending": 0, "enqueued": 0, "skipped": 0, "errors": 0}
        assert len(backend.enqueued) == 1

    def test_backend_failure_leaves_event_pending(self, db) -> None:
        event_id = _pending_event(db)

        counts = drain_pending(db, RecordingBackend(fail=True))
        db.expire_all()

        assert counts["errors"] == 1
        assert counts["enqueued"] == 0
        assert db.get(ContentSyncEvent, event_id).status == ContentSyncStatus.PENDING.value

    def test_limit(self, db) -> None:
        _pending_event(db)
        rule = make_grounded_rule(db, status=RuleStatus.PUBLISHED, concept_slug="pdv-prag", value="40000", value_type="currency")
        enqueue_rule_change(db, rule, ContentSyncEventType.RULE_RELEASED)
        db.commit()

        assert drain_pending(db, RecordingBackend(), limit=1)["enqueued"] == 1
        assert drain_pending(db, RecordingBackend())["enqueued"] == 1
