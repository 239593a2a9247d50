"""Service layer package."""

from app.services.notification_service import NotificationService
from app.services.outbox import OutboxStore
from app.services.push_channels import OneSignalChannel, WebPushChannel
from app.services.subscriptions import SubscriptionRegistry

__all__ = [
    "NotificationService",
    "OneSignalChannel",
    "OutboxStore",
    "SubscriptionRegistry",
    "WebPushChannel",
]
