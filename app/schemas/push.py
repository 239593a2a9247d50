"""Pydantic schemas for push subscription endpoints and notification content."""
from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field


class SubscriptionKeys(BaseModel):
    """Key material a browser hands out with its push subscription."""

    p256dh: str = Field(min_length=1)
    auth: str = Field(min_length=1)


class PushSubscriptionCreate(BaseModel):
    """Subscription object posted by a client after ``PushManager.subscribe()``."""

    endpoint: str = Field(min_length=1)
    keys: SubscriptionKeys
    user_agent: Optional[str] = Field(default=None, alias="userAgent", max_length=500)

    model_config = ConfigDict(populate_by_name=True)


class PushUnsubscribeRequest(BaseModel):
    """Endpoint the current user wants to stop receiving pushes on."""

    endpoint: str = Field(min_length=1)


class PushSubscriptionRead(BaseModel):
    """Representation of a stored subscription."""

    id: uuid.UUID
    user_id: str = Field(alias="userId")
    endpoint: str
    user_agent: Optional[str] = Field(default=None, alias="userAgent")
    created_at: Optional[datetime] = Field(default=None, alias="createdAt")

    model_config = ConfigDict(from_attributes=True, populate_by_name=True)


class SubscribeResponse(BaseModel):
    success: bool = True
    subscription_id: uuid.UUID = Field(alias="subscriptionId")

    model_config = ConfigDict(populate_by_name=True)


class UnsubscribeResponse(BaseModel):
    success: bool = True
    removed: bool


class PushTestRequest(BaseModel):
    """Optional overrides for a diagnostic push."""

    title: Optional[str] = Field(default=None, max_length=200)
    body: Optional[str] = Field(default=None, max_length=1000)


class PushTestResponse(BaseModel):
    success: bool


class NotificationPayload(BaseModel):
    """Logical notification handed to every channel."""

    title: str
    body: str
    url: Optional[str] = None
    data: Optional[Dict[str, Any]] = None
    icon: Optional[str] = None
    badge: Optional[str] = None
