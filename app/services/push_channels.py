"""Push delivery channels: direct Web Push and the OneSignal aggregator."""
from __future__ import annotations

import json
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Protocol

import httpx
from loguru import logger
from pywebpush import WebPushException, webpush

from app.config import settings
from app.db.models.push_subscription import PushSubscription
from app.schemas.push import NotificationPayload
from app.services.subscriptions import SubscriptionRegistry
from app.utils.exceptions import StaleEndpointError, StorageUnavailableError, TransientTransportError

STALE_STATUS_CODES = frozenset({404, 410})

_missing_config_logged: set[str] = set()


def _log_missing_config_once(channel: str, detail: str) -> None:
    if channel in _missing_config_logged:
        return
    _missing_config_logged.add(channel)
    logger.warning("Push channel not configured, skipping", channel=channel, detail=detail)


@dataclass
class PushResult:
    """Outcome of a single send to one subscription."""

    subscription_id: uuid.UUID
    status: str  # "sent" | "failed" | "deleted"
    error: Optional[str] = None


@dataclass
class ChannelResult:
    """Outcome of one channel's attempt to reach a user."""

    channel: str
    success: bool
    results: List[PushResult] = field(default_factory=list)
    error: Optional[str] = None


class Channel(Protocol):
    """Interface shared by delivery channels."""

    name: str

    def send(self, user_id: str, notification: NotificationPayload) -> ChannelResult:  # pragma: no cover - interface definition
        """Deliver ``notification`` to every device of ``user_id`` this channel knows about."""


class WebPushChannel:
    """Direct transport: one VAPID-signed Web Push request per subscription.

    ``success`` means the send was attempted against at least one subscription;
    individual subscriptions may still have failed.
    """

    name = "web_push"

    def __init__(
        self,
        registry: SubscriptionRegistry,
        vapid_private_key: Optional[str] = None,
        vapid_subject: Optional[str] = None,
        request_timeout: Optional[float] = None,
        ttl: Optional[int] = None,
    ):
        self.registry = registry
        self.vapid_private_key = vapid_private_key if vapid_private_key is not None else settings.VAPID_PRIVATE_KEY
        self.vapid_subject = vapid_subject or settings.VAPID_SUBJECT
        self.request_timeout = request_timeout or settings.PUSH_REQUEST_TIMEOUT_SECONDS
        self.ttl = ttl if ttl is not None else settings.PUSH_TTL_SECONDS

    def _build_message(self, notification: NotificationPayload) -> str:
        return json.dumps(
            {
                "title": notification.title,
                "body": notification.body,
                "icon": notification.icon or settings.DEFAULT_NOTIFICATION_ICON,
                "badge": notification.badge or settings.DEFAULT_NOTIFICATION_ICON,
                "data": {"url": notification.url or "/", **(notification.data or {})},
            }
        )

    def send(self, user_id: str, notification: NotificationPayload) -> ChannelResult:
        if not self.vapid_private_key:
            _log_missing_config_once(self.name, "VAPID_PRIVATE_KEY is not set")
            return ChannelResult(channel=self.name, success=False, error="not configured")

        subscriptions = self.registry.list_subscriptions(user_id)
        if not subscriptions:
            logger.warning("No push subscriptions found", user_id=user_id)
            return ChannelResult(channel=self.name, success=False, error="no subscriptions")

        message = self._build_message(notification)
        results: List[PushResult] = []

        for sub in subscriptions:
            try:
                self._push(sub, message)
            except StaleEndpointError as ex:
                try:
                    self.registry.remove_expired(sub.id)
                except StorageUnavailableError as storage_exc:
                    results.append(
                        PushResult(subscription_id=sub.id, status="failed", error=storage_exc.message)
                    )
                    logger.error(
                        "Could not remove expired push subscription",
                        subscription_id=str(sub.id),
                        error=storage_exc.message,
                    )
                    continue
                results.append(PushResult(subscription_id=sub.id, status="deleted"))
                logger.info(
                    "Push endpoint gone, subscription removed",
                    subscription_id=str(sub.id),
                    status=ex.status_code,
                )
            except TransientTransportError as ex:
                results.append(PushResult(subscription_id=sub.id, status="failed", error=ex.message))
                logger.error(
                    "WebPush failed",
                    subscription_id=str(sub.id),
                    status=ex.details.get("status"),
                    error=ex.message,
                )
            else:
                results.append(PushResult(subscription_id=sub.id, status="sent"))
                logger.info("Push sent", user_id=user_id, subscription_id=str(sub.id))

        return ChannelResult(channel=self.name, success=True, results=results)

    def _push(self, sub: PushSubscription, message: str) -> None:
        """Send one request, raising ``StaleEndpointError`` or ``TransientTransportError``."""

        try:
            webpush(
                subscription_info=sub.to_subscription_info(),
                data=message,
                vapid_private_key=self.vapid_private_key,
                # pywebpush adds aud/exp to the claims dict, so pass a fresh one
                vapid_claims={"sub": self.vapid_subject},
                timeout=self.request_timeout,
                ttl=self.ttl,
                headers={"Urgency": "high"},
            )
        except WebPushException as ex:
            status_code = getattr(ex.response, "status_code", None)
            if status_code in STALE_STATUS_CODES:
                raise StaleEndpointError("Push endpoint gone", status_code=status_code) from ex
            raise TransientTransportError(str(ex), details={"status": status_code}) from ex
        except Exception as ex:
            # Network-level failures (DNS, timeouts) raised by the underlying HTTP call
            raise TransientTransportError(str(ex) or ex.__class__.__name__) from ex


class OneSignalChannel:
    """Aggregator transport addressed by the user's OneSignal external id.

    A single request fans out server-side to every device the aggregator has
    for the alias. Zero matched recipients and transport errors both count as
    failure; they differ only in what gets logged.
    """

    name = "onesignal"

    def __init__(
        self,
        app_id: Optional[str] = None,
        api_key: Optional[str] = None,
        api_url: Optional[str] = None,
        request_timeout: Optional[float] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.app_id = app_id if app_id is not None else settings.ONESIGNAL_APP_ID
        self.api_key = api_key if api_key is not None else settings.ONESIGNAL_API_KEY
        self.api_url = api_url or settings.ONESIGNAL_API_URL
        self.request_timeout = request_timeout or settings.PUSH_REQUEST_TIMEOUT_SECONDS
        self._transport = transport

    def _build_payload(self, user_id: str, notification: NotificationPayload) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "app_id": self.app_id,
            "target_channel": "push",
            "include_aliases": {"external_id": [user_id]},
            "headings": {"en": notification.title},
            "contents": {"en": notification.body},
        }
        if notification.url:
            payload["url"] = notification.url
        if notification.data:
            payload["data"] = notification.data
        return payload

    def send(self, user_id: str, notification: NotificationPayload) -> ChannelResult:
        if not self.app_id or not self.api_key:
            _log_missing_config_once(self.name, "ONESIGNAL_APP_ID/ONESIGNAL_API_KEY are not set")
            return ChannelResult(channel=self.name, success=False, error="not configured")

        if not user_id:
            logger.warning("No OneSignal alias provided")
            return ChannelResult(channel=self.name, success=False, error="no alias")

        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Basic {self.api_key}",
        }

        try:
            with httpx.Client(timeout=self.request_timeout, transport=self._transport) as client:
                response = client.post(
                    self.api_url, json=self._build_payload(user_id, notification), headers=headers
                )
        except httpx.HTTPError as exc:
            logger.error("OneSignal request failed", user_id=user_id, error=str(exc))
            return ChannelResult(channel=self.name, success=False, error=str(exc))

        if response.status_code >= 400:
            logger.error("OneSignal returned error", status=response.status_code, body=response.text)
            return ChannelResult(
                channel=self.name, success=False, error=f"HTTP {response.status_code}"
            )

        try:
            data = response.json()
        except ValueError:
            logger.error("OneSignal returned invalid JSON", body=response.text)
            return ChannelResult(channel=self.name, success=False, error="invalid response")

        if not isinstance(data, dict):
            logger.error("OneSignal returned unexpected body", body=response.text)
            return ChannelResult(channel=self.name, success=False, error="invalid response")

        if data.get("errors") or data.get("recipients") == 0:
            # 200 OK with zero recipients means the alias matched no device
            logger.warning("OneSignal matched no devices", user_id=user_id, response=data)
            return ChannelResult(channel=self.name, success=False, error="no recipients")

        logger.info(
            "OneSignal notification queued",
            user_id=user_id,
            notification_id=data.get("id"),
            recipients=data.get("recipients"),
        )
        return ChannelResult(channel=self.name, success=True)


def build_default_channels(registry: SubscriptionRegistry) -> list[Channel]:
    """Return the channels every notification fans out to, direct transport first."""

    return [WebPushChannel(registry), OneSignalChannel()]
