"""Content-sync worker tests against a temporary content directory."""

from __future__ import annotations

import pytest

from regtruth.config import Settings
from regtruth.content_sync.emitter import enqueue_rule_change
from regtruth.content_sync.errors import RepoWriteFailedError
from regtruth.content_sync.patcher import split_frontmatter
from regtruth.content_sync.repo_adapter import FilesystemContentRepo
from regtruth.content_sync.worker import NOT_CLAIMED, process_event, requeue_dead_letter, retry_delay
from regtruth.models import ContentSyncEvent
from regtruth.models.enums import (
    ContentSyncEventType,
    ContentSyncStatus,
    DeadLetterReason,
    RuleStatus,
)
from tests.factories import make_grounded_rule, make_rule
from tests.test_constants import TEST_REVIEWER


class FailingRepo(FilesystemContentRepo):
    def __init__(self, root, error: Exception) -> None:
        super().__init__(root)
        self.error = error

    def write(self, relative_path: str, content: str) -> None:
        raise self.error


def _settings(max_attempts: int = 3, backoff: int = 30) -> Settings:
    settings = Settings()
    settings.content_sync_max_attempts = max_attempts
    settings.content_sync_backoff_seconds = backoff
    return settings


def _event_for(db, rule) -> str:
    event_id = enqueue_rule_change(db, rule, ContentSyncEventType.RULE_RELEASED, change_type="create")
    db.commit()
    return event_id


def _published_event(db) -> str:
    return _event_for(db, make_grounded_rule(db, status=RuleStatus.PUBLISHED))


class TestRetryDelay:
    def test_exponential(self) -> None:
        assert [retry_delay(n, 30) for n in (1, 2, 3, 4)] == [30, 60, 120, 240]

    def test_zero_attempts_uses_base(self) -> None:
        assert retry_delay(0, 30) == 30


class TestProcessEvent:
    def test_patches_every_mapped_file(self, db, content_root) -> None:
        event_id = _published_event(db)

        outcome = process_event(db, event_id, repo=FilesystemContentRepo(content_root), settings=_settings())

        assert outcome.status == ContentSyncStatus.DONE.value
        assert sorted(outcome.patched) == ["rjecnik/pdv.mdx", "vodici/doo.mdx"]
        data, body = split_frontmatter((content_root / "rjecnik/pdv.mdx").read_text(encoding="utf-8"))
        assert data["title"] == "pdv"
        assert data["lastUpdated"] == "2025-01-01"
        entry = data["changelog"][0]
        assert entry["eventId"] == event_id
        assert entry["severity"] == "breaking"
        assert entry["summary"] == "New rule created."
        assert "# pdv" in body
        event = db.get(ContentSyncEvent, event_id)
        assert event.status == ContentSyncStatus.DONE.value
        assert event.attempts == 1
        assert event.processed_at is not None

    def test_done_event_is_not_claimed_again(self, db, content_root) -> None:
        event_id = _published_event(db)
        repo = FilesystemContentRepo(content_root)
        process_event(db, event_id, repo=repo, settings=_settings())

        outcome = process_event(db, event_id, repo=repo, settings=_settings())

        assert outcome.status == NOT_CLAIMED

    def test_redelivery_after_crash_is_skipped(self, db, content_root) -> None:
        event_id = _published_event(db)
        repo = FilesystemContentRepo(content_root)
        process_event(db, event_id, repo=repo, settings=_settings())
        before = (content_root / "rjecnik/pdv.mdx").read_text(encoding="utf-8")
        event = db.get(ContentSyncEvent, event_id)
        event.status = ContentSyncStatus.ENQUEUED.value
        db.commit()

        outcome = process_event(db, event_id, repo=repo, settings=_settings())

        assert outcome.status == ContentSyncStatus.SKIPPED.value
        assert sorted(outcome.skipped) == ["rjecnik/pdv.mdx", "vodici/doo.mdx"]
        assert (content_root / "rjecnik/pdv.mdx").read_text(encoding="utf-8") == before

    def test_unknown_event(self, db, content_root) -> None:
        outcome = process_event(db, "0" * 64, repo=FilesystemContentRepo(content_root), settings=_settings())
        assert outcome.status == NOT_CLAIMED


class TestDeadLetters:
    def _assert_dead(self, db, event_id: str, reason: DeadLetterReason) -> ContentSyncEvent:
        event = db.get(ContentSyncEvent, event_id)
        assert event.status == ContentSyncStatus.DEAD_LETTERED.value
        assert event.dead_letter_reason == reason.value
        return event

    def test_unmapped_concept(self, db, content_root) -> None:
        rule = make_grounded_rule(db, status=RuleStatus.PUBLISHED, concept_slug="porez-na-psa", risk_tier="T1")
        event_id = _event_for(db, rule)
        process_event(db, event_id, repo=FilesystemContentRepo(content_root), settings=_settings())
        self._assert_dead(db, event_id, DeadLetterReason.UNMAPPED_CONCEPT)

    def test_missing_pointers(self, db, content_root) -> None:
        event_id = _event_for(db, make_rule(db, status=RuleStatus.PUBLISHED))
        process_event(db, event_id, repo=FilesystemContentRepo(content_root), settings=_settings())
        self._assert_dead(db, event_id, DeadLetterReason.MISSING_POINTERS)

    def test_invalid_payload(self, db, content_root) -> None:
        event_id = _published_event(db)
        event = db.get(ContentSyncEvent, event_id)
        event.payload = {"event_id": event_id, "type": "RULE_RELEASED"}
        db.commit()
        process_event(db, event_id, repo=FilesystemContentRepo(content_root), settings=_settings())
        self._assert_dead(db, event_id, DeadLetterReason.INVALID_PAYLOAD)

    def test_content_not_found(self, db, tmp_path) -> None:
        event_id = _published_event(db)
        outcome = process_event(db, event_id, repo=FilesystemContentRepo(tmp_path / "empty"), settings=_settings())
        assert outcome.retry_in is None
        self._assert_dead(db, event_id, DeadLetterReason.CONTENT_NOT_FOUND)

    def test_malformed_frontmatter_is_patch_conflict_and_writes_nothing(self, db, content_root) -> None:
        (content_root / "rjecnik/pdv.mdx").write_text("# PDV bez frontmattera\n", encoding="utf-8")
        doo_before = (content_root / "vodici/doo.mdx").read_text(encoding="utf-8")
        event_id = _published_event(db)

        process_event(db, event_id, repo=FilesystemContentRepo(content_root), settings=_settings())

        self._assert_dead(db, event_id, DeadLetterReason.PATCH_CONFLICT)
        assert (content_root / "vodici/doo.mdx").read_text(encoding="utf-8") == doo_before


class TestTransientFailures:
    def test_write_failure_is_retried_with_backoff(self, db, content_root) -> None:
        event_id = _published_event(db)
        repo = FailingRepo(content_root, RepoWriteFailedError("write", OSError("disk full")))

        first = process_event(db, event_id, repo=repo, settings=_settings(backoff=30))
        second = process_event(db, event_id, repo=repo, settings=_settings(backoff=30))

        assert first.status == ContentSyncStatus.FAILED.value
        assert first.retry_in == 30
        assert second.retry_in == 60
        event = db.get(ContentSyncEvent, event_id)
        assert event.attempts == 2
        assert event.next_attempt_at is not None
        assert "disk full" in event.last_error

    def test_exhausted_attempts_dead_letter(self, db, content_root) -> None:
        event_id = _published_event(db)
        repo = FailingRepo(content_root, RepoWriteFailedError("write", OSError("disk full")))
        settings = _settings(max_attempts=2)

        process_event(db, event_id, repo=repo, settings=settings)
        outcome = process_event(db, event_id, repo=repo, settings=settings)

        assert outcome.status == ContentSyncStatus.DEAD_LETTERED.value
        event = db.get(ContentSyncEvent, event_id)
        assert event.dead_letter_reason == DeadLetterReason.REPO_WRITE_FAILED.value

    def test_unknown_error_is_transient(self, db, content_root) -> None:
        event_id = _published_event(db)
        outcome = process_event(
            db, event_id, repo=FailingRepo(content_root, RuntimeError("boom")), settings=_settings()
        )
        assert outcome.status == ContentSyncStatus.FAILED.value
        assert outcome.retry_in == 30


class TestRequeueDeadLetter:
    def test_requeue_resets_attempts(self, db, tmp_path) -> None:
        event_id = _published_event(db)
        process_event(db, event_id, repo=FilesystemContentRepo(tmp_path / "empty"), settings=_settings())

        event = requeue_dead_letter(db, event_id, actor=TEST_REVIEWER)

        assert event.status == ContentSyncStatus.PENDING.value
        assert event.attempts == 0
        assert event.dead_letter_reason is None
        assert event.dead_letter_note == f"requeued by {TEST_REVIEWER} (was CONTENT_NOT_FOUND)"

    def test_only_dead_letters_can_be_requeued(self, db) -> None:
        event_id = _published_event(db)
        with pytest.raises(ValueError):
            requeue_dead_letter(db, event_id, actor=TEST_REVIEWER)

    def test_unknown_event(self, db) -> None:
        with pytest.raises(LookupError):
            requeue_dead_letter(db, "f" * 64, actor=TEST_REVIEWER)
