"""Dispatch facade: one call per logical notification, whatever the channels underneath."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Sequence

from loguru import logger
from sqlalchemy.orm import Session

from app.schemas.push import NotificationPayload
from app.services.push_channels import (
    Channel,
    ChannelResult,
    PushResult,
    WebPushChannel,
    build_default_channels,
)
from app.services.subscriptions import SubscriptionRegistry

TEST_TITLE = "Test Notification"
TEST_BODY = "This is a test push notification."
MESSAGE_PREVIEW_LENGTH = 100


@dataclass
class DispatchResult:
    """Result of :meth:`NotificationService.send_to_user`."""

    success: bool
    results: List[PushResult] = field(default_factory=list)

    @property
    def sent_count(self) -> int:
        return sum(1 for result in self.results if result.status == "sent")

    @property
    def failed_count(self) -> int:
        return sum(1 for result in self.results if result.status == "failed")


@dataclass
class DeliveryReport:
    """Per-channel outcomes of a fan-out; delivered if any channel got through."""

    channels: List[ChannelResult] = field(default_factory=list)

    @property
    def delivered(self) -> bool:
        return any(channel.success for channel in self.channels)

    @property
    def results(self) -> List[PushResult]:
        return [result for channel in self.channels for result in channel.results]

    def summary(self) -> Dict[str, bool]:
        return {channel.channel: channel.success for channel in self.channels}


@dataclass
class BroadcastSummary:
    total_sent: int = 0
    total_failed: int = 0


class NotificationService:
    """Entry point used by the rest of the application to notify a user.

    ``send_to_user`` targets the direct Web Push channel only and reports
    per-subscription results. ``deliver`` fans out through every configured
    channel; the channels are redundant, so one success is enough.
    """

    def __init__(
        self,
        db: Session,
        channels: Optional[Sequence[Channel]] = None,
        direct_channel: str = WebPushChannel.name,
    ):
        self.db = db
        self.registry = SubscriptionRegistry(db)
        self.channels: List[Channel] = (
            list(channels) if channels is not None else build_default_channels(self.registry)
        )
        self.direct_channel = direct_channel

    def _get_channel(self, name: str) -> Optional[Channel]:
        for channel in self.channels:
            if channel.name == name:
                return channel
        return None

    def send_to_user(self, user_id: str, notification: NotificationPayload) -> DispatchResult:
        """Send through the direct channel to every subscription of ``user_id``.

        ``success`` is true when the send was attempted against at least one
        subscription, even if some of them failed.
        """

        channel = self._get_channel(self.direct_channel)
        if channel is None:
            logger.warning("Direct push channel not registered", channel=self.direct_channel)
            return DispatchResult(success=False)

        result = channel.send(user_id, notification)
        return DispatchResult(success=result.success, results=list(result.results))

    def deliver(self, user_id: str, notification: NotificationPayload) -> DeliveryReport:
        """Send ``notification`` through every channel independently."""

        report = DeliveryReport()
        for channel in self.channels:
            report.channels.append(channel.send(user_id, notification))

        logger.info(
            "Notification dispatched",
            user_id=user_id,
            delivered=report.delivered,
            channels=report.summary(),
        )
        return report

    def send_test(self, user_id: str, title: Optional[str] = None, body: Optional[str] = None) -> bool:
        """Send a diagnostic push; true if at least one channel got through."""

        notification = NotificationPayload(title=title or TEST_TITLE, body=body or TEST_BODY, url="/")
        return self.deliver(user_id, notification).delivered

    def broadcast_to_users(
        self, user_ids: Iterable[str], notification: NotificationPayload
    ) -> BroadcastSummary:
        """Send to several users over the direct channel, tallying per-subscription outcomes."""

        summary = BroadcastSummary()
        for user_id in user_ids:
            try:
                result = self.send_to_user(user_id, notification)
            except Exception as exc:
                logger.error("Broadcast failed for user", user_id=user_id, error=str(exc))
                summary.total_failed += 1
                continue
            summary.total_sent += result.sent_count
            summary.total_failed += result.failed_count

        logger.info(
            "Broadcast complete",
            total_sent=summary.total_sent,
            total_failed=summary.total_failed,
        )
        return summary

    # Fixed-shape notifications

    def notify_new_message(
        self,
        recipient_user_id: str,
        sender_name: str,
        message_preview: str,
        conversation_id: Any,
    ) -> bool:
        return self.deliver(
            recipient_user_id,
            NotificationPayload(
                title=f"New message from {sender_name}",
                body=message_preview[:MESSAGE_PREVIEW_LENGTH],
                url=f"/chat/{conversation_id}",
                data={"type": "new_message", "conversationId": conversation_id},
            ),
        ).delivered

    def notify_appointment_confirmed(
        self,
        recipient_user_id: str,
        client_name: str,
        appointment_date: str,
        conversation_id: Any,
    ) -> bool:
        return self.deliver(
            recipient_user_id,
            NotificationPayload(
                title="Appointment Confirmed",
                body=f"{client_name} confirmed an appointment on {appointment_date}",
                url="/calendar",
                data={"type": "appointment_confirmed", "conversationId": conversation_id},
            ),
        ).delivered

    def notify_new_consultation(
        self,
        artist_user_id: str,
        client_name: str,
        consultation_id: Any,
    ) -> bool:
        return self.deliver(
            artist_user_id,
            NotificationPayload(
                title="New Consultation Request",
                body=f"{client_name} has requested a consultation",
                url="/conversations",
                data={"type": "new_consultation", "consultationId": consultation_id},
            ),
        ).delivered
