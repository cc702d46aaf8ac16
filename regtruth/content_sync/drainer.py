"""Hand PENDING content-sync events to the queue backend."""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import Protocol

from sqlalchemy import update
from sqlalchemy.orm import Session

from regtruth.models.content_sync_event import ContentSyncEvent
from regtruth.models.enums import ContentSyncStatus

logger = logging.getLogger(__name__)


class QueueBackend(Protocol):
    """Delivers one event id to a worker. Delivery is at-least-once, keyed by event id."""

    def enqueue(self, event_id: str) -> None: ...


def drain_pending(db: Session, backend: QueueBackend, limit: int | None = None) -> dict:
    """Move PENDING events to ENQUEUED (oldest first) and enqueue each one. Commits per event.

    The PENDING -> ENQUEUED update is guarded by the row version, so two concurrent
    drains cannot both enqueue the same event. If the backend raises, the status change
    is rolled back and the event stays PENDING for the next drain.
    """
    q = (
        db.query(ContentSyncEvent.event_id, ContentSyncEvent.version)
        .filter(ContentSyncEvent.status == ContentSyncStatus.PENDING.value)
        .order_by(ContentSyncEvent.created_at.asc(), ContentSyncEvent.event_id.asc())
    )
    if limit:
        q = q.limit(limit)
    rows = q.all()

    counts = {"pending": len(rows), "enqueued": 0, "skipped": 0, "errors": 0}
    for event_id, version in rows:
        result = db.execute(
            update(ContentSyncEvent)
            .where(
                ContentSyncEvent.event_id == event_id,
                ContentSyncEvent.version == version,
                ContentSyncEvent.status == ContentSyncStatus.PENDING.value,
            )
            .values(
                status=ContentSyncStatus.ENQUEUED.value,
                version=version + 1,
                enqueued_at=datetime.now(UTC),
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            db.rollback()
            counts["skipped"] += 1
            logger.info("Content sync drain skip (claimed elsewhere): event_id=%s", event_id[:12])
            continue
        try:
            backend.enqueue(event_id)
        except Exception:
            db.rollback()
            counts["errors"] += 1
            logger.exception("Content sync enqueue failed: event_id=%s", event_id[:12])
            continue
        db.commit()
        counts["enqueued"] += 1

    logger.info(
        "Content sync drain: pending=%d enqueued=%d skipped=%d errors=%d",
        counts["pending"],
        counts["enqueued"],
        counts["skipped"],
        counts["errors"],
    )
    return counts
