"""Push subscription endpoints.

Thin translation layer: validation happens in the request schemas and all
state changes go through the subscription registry.
"""
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Header

from app.api import deps
from app.config import settings
from app.schemas import (
    PushSubscriptionCreate,
    PushSubscriptionRead,
    PushTestRequest,
    PushTestResponse,
    PushUnsubscribeRequest,
    SubscribeResponse,
    UnsubscribeResponse,
)
from app.services.notification_service import NotificationService
from app.services.subscriptions import SubscriptionRegistry
from app.utils.exceptions import (
    InvalidSubscriptionError,
    StorageUnavailableError,
    handle_invalid_subscription,
    handle_storage_error,
)

router = APIRouter(prefix="/push", tags=["push"])


@router.get("/vapid-public-key")
def get_vapid_public_key() -> dict[str, str]:
    return {"publicKey": settings.VAPID_PUBLIC_KEY or ""}


@router.post("/subscribe", response_model=SubscribeResponse)
def subscribe(
    subscription: PushSubscriptionCreate,
    user_agent: Optional[str] = Header(default=None),
    registry: SubscriptionRegistry = Depends(deps.get_subscription_registry),
    current_user_id: str = Depends(deps.get_current_user_id),
) -> SubscribeResponse:
    """Register the caller's browser endpoint, taking it over from any previous owner."""

    try:
        subscription_id = registry.subscribe(
            current_user_id,
            subscription.endpoint,
            subscription.keys.model_dump(),
            subscription.user_agent or user_agent,
        )
    except InvalidSubscriptionError as exc:
        raise handle_invalid_subscription(exc) from exc
    except StorageUnavailableError as exc:
        raise handle_storage_error(exc) from exc
    return SubscribeResponse(subscription_id=subscription_id)


@router.post("/unsubscribe", response_model=UnsubscribeResponse)
def unsubscribe(
    request: PushUnsubscribeRequest,
    registry: SubscriptionRegistry = Depends(deps.get_subscription_registry),
    current_user_id: str = Depends(deps.get_current_user_id),
) -> UnsubscribeResponse:
    try:
        removed = registry.unsubscribe(current_user_id, request.endpoint)
    except StorageUnavailableError as exc:
        raise handle_storage_error(exc) from exc
    return UnsubscribeResponse(removed=removed)


@router.get("/subscriptions", response_model=list[PushSubscriptionRead])
def list_subscriptions(
    registry: SubscriptionRegistry = Depends(deps.get_subscription_registry),
    current_user_id: str = Depends(deps.get_current_user_id),
) -> list[PushSubscriptionRead]:
    try:
        subscriptions = registry.list_subscriptions(current_user_id)
    except StorageUnavailableError as exc:
        raise handle_storage_error(exc) from exc
    return [PushSubscriptionRead.model_validate(sub) for sub in subscriptions]


@router.post("/test", response_model=PushTestResponse)
def send_test_push(
    request: Optional[PushTestRequest] = None,
    service: NotificationService = Depends(deps.get_notification_service),
    current_user_id: str = Depends(deps.get_current_user_id),
) -> PushTestResponse:
    """Send a diagnostic push to the caller through every channel."""

    request = request or PushTestRequest()
    try:
        success = service.send_test(current_user_id, request.title, request.body)
    except StorageUnavailableError as exc:
        raise handle_storage_error(exc) from exc
    return PushTestResponse(success=success)
