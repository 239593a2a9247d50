"""Notification outbox model."""
from enum import Enum
import uuid

from sqlalchemy import Column, DateTime, Index, Integer, String, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.sql import func

from app.db.base import Base


class OutboxStatus(str, Enum):
    """Delivery state of an outbox row."""

    PENDING = "pending"
    SENT = "sent"
    FAILED = "failed"


class NotificationOutboxEntry(Base):
    """A notification event waiting to be delivered by the outbox worker.

    Rows are written by producers, mutated only by the worker and never
    deleted. A row is retried while ``status`` is pending/failed and
    ``attempt_count`` is below the configured cap.
    """

    __tablename__ = "notification_outbox"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    event_type = Column(String(50), nullable=False)
    payload = Column(Text, nullable=False)  # Serialized JSON

    status = Column(String(20), nullable=False, default=OutboxStatus.PENDING.value)
    attempt_count = Column(Integer, nullable=False, default=0)
    last_error = Column(Text)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        Index("ix_notification_outbox_status_attempts", "status", "attempt_count"),
    )

    def __repr__(self) -> str:
        return (
            f"<NotificationOutboxEntry id={self.id} type={self.event_type} "
            f"status={self.status} attempts={self.attempt_count}>"
        )
