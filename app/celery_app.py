"""Celery application instance and configuration."""
from __future__ import annotations

from celery import Celery

from app.config import settings


def _resolve_broker_url() -> str:
    if settings.CELERY_BROKER_URL is not None:
        return str(settings.CELERY_BROKER_URL)
    return str(settings.REDIS_URL)


def _resolve_result_backend() -> str:
    if settings.CELERY_RESULT_BACKEND is not None:
        return str(settings.CELERY_RESULT_BACKEND)
    return str(settings.REDIS_URL)


celery_app = Celery(
    "push_delivery",
    broker=_resolve_broker_url(),
    backend=_resolve_result_backend(),
    include=["app.tasks.notifications"],
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    task_time_limit=5 * 60,
    task_soft_time_limit=4 * 60,
    worker_prefetch_multiplier=1,
    worker_max_tasks_per_child=1000,
)

# Outbox rows are not locked: run this with a single worker process
# (``celery -A app.celery_app worker --concurrency=1``) and do not also run
# ``python -m app.workers.outbox_worker`` against the same database.
celery_app.conf.beat_schedule = {
    "process-notification-outbox": {
        "task": "app.tasks.notifications.process_notification_outbox",
        "schedule": settings.OUTBOX_POLL_INTERVAL_SECONDS,
        "options": {"expires": settings.OUTBOX_POLL_INTERVAL_SECONDS},
    },
}

__all__ = ["celery_app"]
