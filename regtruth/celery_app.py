"""
Celery application for background workers.

Run with: celery -A regtruth.celery_app worker --loglevel=info
"""

import logging

from celery import Celery

from regtruth.config import get_settings

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)

settings = get_settings()

celery_app = Celery(
    "regtruth",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
    include=["regtruth.content_sync.tasks"],
)
celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    worker_prefetch_multiplier=1,
)

app = celery_app
