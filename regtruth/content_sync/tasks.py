"""Celery task for content-sync events and the queue backend that schedules it."""

from __future__ import annotations

import logging

from celery import shared_task

from regtruth.content_sync.worker import process_event
from regtruth.db.session import SessionLocal

logger = logging.getLogger(__name__)

TASK_NAME = "regtruth.content_sync.process_event"


@shared_task(bind=True, name=TASK_NAME, max_retries=None, acks_late=True)
def process_content_sync_event(self, event_id: str) -> dict:
    """Process one event; transient failures are retried after the event's backoff delay.

    The attempt budget lives on the event row, not in Celery: once it is spent the
    worker dead-letters the event and no retry is scheduled.
    """
    db = SessionLocal()
    try:
        outcome = process_event(db, event_id)
    finally:
        db.close()
    if outcome.retry_in is not None:
        logger.info("Retrying content sync event %s in %ds", event_id[:12], outcome.retry_in)
        raise self.retry(countdown=outcome.retry_in)
    return outcome.as_dict()


class CeleryQueueBackend:
    """QueueBackend that schedules process_content_sync_event with task_id = event_id."""

    def enqueue(self, event_id: str) -> None:
        process_content_sync_event.apply_async(args=[event_id], task_id=event_id)
