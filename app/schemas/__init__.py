"""Pydantic schemas package."""

from app.schemas.auth import TokenPayload
from app.schemas.outbox import EventType, OutboxEvent, PushMessagePayload, parse_outbox_event
from app.schemas.push import (
    NotificationPayload,
    PushSubscriptionCreate,
    PushSubscriptionRead,
    PushTestRequest,
    PushTestResponse,
    PushUnsubscribeRequest,
    SubscribeResponse,
    SubscriptionKeys,
    UnsubscribeResponse,
)

__all__ = [
    "TokenPayload",
    "EventType",
    "OutboxEvent",
    "PushMessagePayload",
    "parse_outbox_event",
    "NotificationPayload",
    "PushSubscriptionCreate",
    "PushSubscriptionRead",
    "PushTestRequest",
    "PushTestResponse",
    "PushUnsubscribeRequest",
    "SubscribeResponse",
    "SubscriptionKeys",
    "UnsubscribeResponse",
]
