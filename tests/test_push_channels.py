"""Tests for the Web Push and OneSignal delivery channels."""
from __future__ import annotations

import json
from types import SimpleNamespace
from unittest.mock import patch

import httpx
import pytest
from pywebpush import WebPushException
from sqlalchemy.exc import OperationalError

from app.schemas.push import NotificationPayload
from app.services.push_channels import OneSignalChannel, WebPushChannel
from app.services.subscriptions import SubscriptionRegistry
from app.utils.exceptions import storage_guard


@pytest.fixture()
def notification() -> NotificationPayload:
    return NotificationPayload(
        title="New message from Ana",
        body="See you at 3pm",
        url="/chat/7",
        data={"type": "new_message", "conversationId": 7},
    )


@pytest.fixture()
def registry(db_session) -> SubscriptionRegistry:
    return SubscriptionRegistry(db_session)


class FakeWebPush:
    """Stand-in for ``pywebpush.webpush`` keyed on endpoint suffix."""

    def __init__(self, failures: dict[str, int] | None = None):
        self.failures = failures or {}
        self.calls: list[dict] = []

    def __call__(self, subscription_info, data, **kwargs):
        self.calls.append({"subscription_info": subscription_info, "data": data, **kwargs})
        for suffix, status_code in self.failures.items():
            if subscription_info["endpoint"].endswith(suffix):
                raise WebPushException(
                    f"Push failed: {status_code}",
                    response=SimpleNamespace(status_code=status_code),
                )
        return SimpleNamespace(status_code=201)


def test_web_push_sends_to_every_subscription(registry, subscription_keys, notification):
    registry.subscribe("user-a", "https://push.example/phone", subscription_keys)
    registry.subscribe("user-a", "https://push.example/laptop", subscription_keys)
    fake = FakeWebPush()

    with patch("app.services.push_channels.webpush", fake):
        result = WebPushChannel(registry, vapid_private_key="private-key").send("user-a", notification)

    assert result.success is True
    assert [r.status for r in result.results] == ["sent", "sent"]
    assert len(fake.calls) == 2
    message = json.loads(fake.calls[0]["data"])
    assert message["title"] == "New message from Ana"
    assert message["data"] == {"url": "/chat/7", "type": "new_message", "conversationId": 7}
    assert fake.calls[0]["vapid_private_key"] == "private-key"
    assert fake.calls[0]["headers"] == {"Urgency": "high"}
    assert fake.calls[0]["ttl"] == 2419200


def test_web_push_classifies_each_subscription_independently(registry, subscription_keys, notification):
    registry.subscribe("user-a", "https://push.example/gone", subscription_keys)
    registry.subscribe("user-a", "https://push.example/flaky", subscription_keys)
    registry.subscribe("user-a", "https://push.example/ok", subscription_keys)
    fake = FakeWebPush(failures={"/gone": 410, "/flaky": 503})

    with patch("app.services.push_channels.webpush", fake):
        result = WebPushChannel(registry, vapid_private_key="private-key").send("user-a", notification)

    statuses = {r.status for r in result.results}
    assert result.success is True
    assert len(result.results) == 3
    assert statuses == {"sent", "failed", "deleted"}
    failed = next(r for r in result.results if r.status == "failed")
    assert "503" in failed.error

    remaining = {sub.endpoint for sub in registry.list_subscriptions("user-a")}
    assert remaining == {"https://push.example/flaky", "https://push.example/ok"}


def test_web_push_treats_404_as_stale(registry, subscription_keys, notification):
    registry.subscribe("user-a", "https://push.example/unknown", subscription_keys)
    fake = FakeWebPush(failures={"/unknown": 404})

    with patch("app.services.push_channels.webpush", fake):
        result = WebPushChannel(registry, vapid_private_key="private-key").send("user-a", notification)

    assert [r.status for r in result.results] == ["deleted"]
    assert registry.has_active_subscription("user-a") is False


def test_web_push_cleanup_outage_does_not_block_other_devices(
    registry, subscription_keys, notification, monkeypatch
):
    registry.subscribe("user-a", "https://push.example/gone", subscription_keys)
    registry.subscribe("user-a", "https://push.example/ok", subscription_keys)
    fake = FakeWebPush(failures={"/gone": 410})

    def unavailable(subscription_id):
        with storage_guard(registry.db, "remove_expired"):
            raise OperationalError("DELETE FROM push_subscriptions", {}, Exception("connection refused"))

    monkeypatch.setattr(registry, "remove_expired", unavailable)

    with patch("app.services.push_channels.webpush", fake):
        result = WebPushChannel(registry, vapid_private_key="private-key").send("user-a", notification)

    assert result.success is True
    assert len(fake.calls) == 2
    by_status = {r.status: r for r in result.results}
    assert set(by_status) == {"failed", "sent"}
    assert "Storage unavailable" in by_status["failed"].error
    assert len(registry.list_subscriptions("user-a")) == 2


def test_web_push_network_error_keeps_subscription(registry, subscription_keys, notification):
    registry.subscribe("user-a", "https://push.example/phone", subscription_keys)

    with patch("app.services.push_channels.webpush", side_effect=ConnectionError("timed out")):
        result = WebPushChannel(registry, vapid_private_key="private-key").send("user-a", notification)

    assert result.success is True
    assert result.results[0].status == "failed"
    assert result.results[0].error == "timed out"
    assert registry.has_active_subscription("user-a") is True


def test_web_push_without_subscriptions_reports_failure(registry, notification):
    fake = FakeWebPush()

    with patch("app.services.push_channels.webpush", fake):
        result = WebPushChannel(registry, vapid_private_key="private-key").send("user-a", notification)

    assert result.success is False
    assert result.results == []
    assert fake.calls == []


def test_web_push_without_vapid_key_short_circuits(registry, subscription_keys, notification, log_messages):
    registry.subscribe("user-a", "https://push.example/phone", subscription_keys)
    fake = FakeWebPush()
    channel = WebPushChannel(registry, vapid_private_key="")

    with patch("app.services.push_channels.webpush", fake):
        first = channel.send("user-a", notification)
        second = channel.send("user-a", notification)

    assert first.success is False and second.success is False
    assert fake.calls == []
    assert sum("not configured" in message for message in log_messages) == 1


def onesignal_channel(handler, **overrides) -> OneSignalChannel:
    options = {"app_id": "app-123", "api_key": "rest-key", "api_url": "https://onesignal.test/api/v1/notifications"}
    options.update(overrides)
    return OneSignalChannel(transport=httpx.MockTransport(handler), **options)


def test_onesignal_targets_external_id(notification):
    captured: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        captured.append(request)
        return httpx.Response(200, json={"id": "notif-1", "recipients": 2})

    result = onesignal_channel(handler).send("user-a", notification)

    assert result.success is True
    body = json.loads(captured[0].content)
    assert body["app_id"] == "app-123"
    assert body["include_aliases"] == {"external_id": ["user-a"]}
    assert body["headings"] == {"en": "New message from Ana"}
    assert body["contents"] == {"en": "See you at 3pm"}
    assert body["url"] == "/chat/7"
    assert captured[0].headers["Authorization"] == "Basic rest-key"


@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(200, json={"id": "", "recipients": 0}),
        httpx.Response(200, json={"errors": ["All included players are not subscribed"]}),
        httpx.Response(400, json={"errors": ["app_id not found"]}),
        httpx.Response(503, text="upstream unavailable"),
        httpx.Response(200, json=["ok"]),
        httpx.Response(200, json="queued"),
    ],
)
def test_onesignal_failures_return_false(notification, response):
    result = onesignal_channel(lambda request: response).send("user-a", notification)

    assert result.success is False


def test_onesignal_network_error_returns_false(notification):
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    result = onesignal_channel(handler).send("user-a", notification)

    assert result.success is False
    assert "connection refused" in result.error


def test_onesignal_without_credentials_skips_network(notification, log_messages):
    calls: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(200, json={"recipients": 1})

    channel = onesignal_channel(handler, api_key="")
    results = [channel.send("user-a", notification) for _ in range(3)]

    assert all(result.success is False for result in results)
    assert calls == []
    assert sum("not configured" in message for message in log_messages) == 1
