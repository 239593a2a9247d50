"""Outbox store: durable notification events and their delivery state."""
from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Mapping, Optional

from loguru import logger
from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.orm import Session

from app.config import settings
from app.db.models.notification_outbox import NotificationOutboxEntry, OutboxStatus
from app.schemas.outbox import EventType, PushMessagePayload
from app.utils.exceptions import storage_guard

RETRYABLE_STATUSES = (OutboxStatus.PENDING.value, OutboxStatus.FAILED.value)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class OutboxStore:
    """Narrow set of reads and single-row writes over ``notification_outbox``."""

    def __init__(
        self,
        db: Session,
        max_attempts: Optional[int] = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.db = db
        self.max_attempts = max_attempts or settings.OUTBOX_MAX_ATTEMPTS
        self.clock = clock

    def fetch_ready(self, limit: int) -> list[NotificationOutboxEntry]:
        """Return up to ``limit`` rows still eligible for processing."""

        stmt = (
            select(NotificationOutboxEntry)
            .where(NotificationOutboxEntry.status.in_(RETRYABLE_STATUSES))
            .where(NotificationOutboxEntry.attempt_count < self.max_attempts)
            .limit(limit)
        )
        with storage_guard(self.db, "fetch_ready"):
            return list(self.db.scalars(stmt))

    def mark_sent(self, entry: NotificationOutboxEntry) -> None:
        with storage_guard(self.db, "mark_sent"):
            entry.status = OutboxStatus.SENT.value
            entry.updated_at = self.clock()
            self.db.commit()

    def mark_failed(self, entry: NotificationOutboxEntry, error: str) -> bool:
        """Record a failed attempt; returns whether the row is now dead-lettered."""

        with storage_guard(self.db, "mark_failed"):
            # Discard anything the failed attempt left half-written in the session
            self.db.rollback()
            entry.status = OutboxStatus.FAILED.value
            entry.attempt_count = (entry.attempt_count or 0) + 1
            entry.last_error = error
            entry.updated_at = self.clock()
            self.db.commit()

        exhausted = entry.attempt_count >= self.max_attempts
        if exhausted:
            logger.error(
                "Outbox entry dead-lettered",
                entry_id=str(entry.id),
                attempts=entry.attempt_count,
                last_error=error,
            )
        return exhausted

    def enqueue(self, event_type: EventType | str, payload: Mapping[str, Any] | BaseModel) -> NotificationOutboxEntry:
        """Insert a pending event; the producer side of the outbox."""

        if isinstance(payload, BaseModel):
            body: Dict[str, Any] = payload.model_dump(by_alias=True, exclude_none=True)
        else:
            body = dict(payload)

        entry = NotificationOutboxEntry(
            event_type=EventType(event_type).value,
            payload=json.dumps(body),
            status=OutboxStatus.PENDING.value,
            attempt_count=0,
        )
        with storage_guard(self.db, "enqueue"):
            self.db.add(entry)
            self.db.commit()
        logger.debug("Outbox entry queued", entry_id=str(entry.id), event_type=entry.event_type)
        return entry

    def enqueue_push_message(
        self,
        target_user_id: str,
        body: str,
        title: Optional[str] = None,
        url: Optional[str] = None,
        data: Optional[Dict[str, Any]] = None,
    ) -> NotificationOutboxEntry:
        payload = PushMessagePayload(
            target_user_id=target_user_id, title=title, body=body, url=url, data=data
        )
        return self.enqueue(EventType.PUSH_MESSAGE, payload)

    def list_recent(self, limit: int = 10) -> list[NotificationOutboxEntry]:
        stmt = (
            select(NotificationOutboxEntry)
            .order_by(NotificationOutboxEntry.created_at.desc())
            .limit(limit)
        )
        with storage_guard(self.db, "list_recent"):
            return list(self.db.scalars(stmt))

    def list_dead_lettered(self, limit: int = 50) -> list[NotificationOutboxEntry]:
        """Rows that exhausted their attempts and will never be picked up again."""

        stmt = (
            select(NotificationOutboxEntry)
            .where(NotificationOutboxEntry.status == OutboxStatus.FAILED.value)
            .where(NotificationOutboxEntry.attempt_count >= self.max_attempts)
            .order_by(NotificationOutboxEntry.updated_at.desc())
            .limit(limit)
        )
        with storage_guard(self.db, "list_dead_lettered"):
            return list(self.db.scalars(stmt))
