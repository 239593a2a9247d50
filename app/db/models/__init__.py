"""Database models package."""
from app.db.models.notification_outbox import NotificationOutboxEntry, OutboxStatus
from app.db.models.push_subscription import PushSubscription

__all__ = [
    "NotificationOutboxEntry",
    "OutboxStatus",
    "PushSubscription",
]
