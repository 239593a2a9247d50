"""Celery tasks for notification delivery."""
from __future__ import annotations

from loguru import logger

from app.celery_app import celery_app
from app.db.session import SessionLocal
from app.workers.outbox_worker import OutboxWorker


@celery_app.task(name="app.tasks.notifications.process_notification_outbox")
def process_notification_outbox() -> dict[str, int]:
    """Run a single outbox worker tick; scheduled by Celery beat."""

    worker = OutboxWorker(session_factory=SessionLocal)
    stats = worker.run_once()
    if stats.selected:
        logger.info("Outbox task processed batch", **stats.as_dict())
    return stats.as_dict()
