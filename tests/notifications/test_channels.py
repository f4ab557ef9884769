"""Tests for courier/notifications/channels/"""
from __future__ import annotations

import pytest

from conftest import SUBSCRIPTION
from courier.core.errors import PushRegistrationError
from courier.notifications.base import Notification
from courier.notifications.channels.local import LocalChannel
from courier.notifications.channels.push import PushChannel
from courier.platform.base import Permission
from courier.platform.headless import HeadlessPlatform
from courier.ratelimit import RateLimiter
from courier.store.memory import MemoryCounterStore


class FakeManager:
    def __init__(self, subscription=SUBSCRIPTION):
        self.subscription = subscription

    def has_active_subscription(self):
        return self.subscription is not None


class BrokenPlatform(HeadlessPlatform):
    def show_notification(self, title, body, data=None):
        raise PushRegistrationError("display server gone")


NOTE = Notification(title="Delivery Update", body="On its way", data={"delivery_id": "d1"})


@pytest.mark.asyncio
class TestLocalChannel:
    async def test_always_active(self, toaster):
        channel = LocalChannel(HeadlessPlatform(), toaster)
        assert channel.is_active
        assert not channel.is_external

    async def test_toast_when_not_permitted(self, toaster):
        platform = HeadlessPlatform(permission=Permission.DENIED)
        assert await LocalChannel(platform, toaster).deliver(NOTE) is True
        assert toaster.history[0].title == "Delivery Update"
        assert platform.shown == []

    async def test_native_when_permitted(self, toaster):
        platform = HeadlessPlatform(permission=Permission.GRANTED)
        await LocalChannel(platform, toaster).deliver(NOTE)
        assert platform.shown == [("Delivery Update", "On its way", {"delivery_id": "d1"})]

    async def test_native_failure_falls_back_to_toast(self, toaster):
        platform = BrokenPlatform(permission=Permission.GRANTED)
        assert await LocalChannel(platform, toaster).deliver(NOTE) is True
        assert toaster.history[0].description == "On its way"


@pytest.mark.asyncio
class TestPushChannel:
    async def test_relays_through_edge_function(self, backend, recorder):
        recorder.respond("POST", "/functions/v1/send-push-notification", body={"success": True})
        channel = PushChannel(FakeManager(), backend)
        assert channel.is_external
        assert channel.is_active
        assert await channel.deliver(NOTE) is True

        request = recorder.calls("POST", "/functions/v1/send-push-notification")[0]
        body = recorder.body(request)
        assert body["subscription"]["endpoint"] == SUBSCRIPTION.endpoint
        assert body["subscription"]["keys"] == {"p256dh": "BNcR-key", "auth": "tBHI-auth"}
        assert body["notification"] == {
            "title": "Delivery Update",
            "body": "On its way",
            "data": {"delivery_id": "d1"},
        }

    async def test_inactive_without_subscription(self, backend, recorder):
        channel = PushChannel(FakeManager(subscription=None), backend)
        assert not channel.is_active
        assert await channel.deliver(NOTE) is False
        assert recorder.requests == []

    async def test_relay_http_error(self, backend, recorder):
        recorder.respond("POST", "/functions/v1/send-push-notification", status=500, body={"error": "boom"})
        assert await PushChannel(FakeManager(), backend).deliver(NOTE) is False

    async def test_relay_reported_error(self, backend, recorder):
        recorder.respond("POST", "/functions/v1/send-push-notification", body={"error": "gone"})
        assert await PushChannel(FakeManager(), backend).deliver(NOTE) is False

    async def test_custom_relay_name(self, backend, recorder):
        recorder.respond("POST", "/functions/v1/relay-v2", body={"success": True})
        assert await PushChannel(FakeManager(), backend, relay_function="relay-v2").deliver(NOTE)

    async def test_rate_limited(self, backend, recorder):
        recorder.respond("POST", "/functions/v1/send-push-notification", body={"success": True})
        limiter = RateLimiter("push-relay", MemoryCounterStore(), limit=2, window=60)
        channel = PushChannel(FakeManager(), backend, limiter=limiter)
        assert await channel.deliver(NOTE) is True
        assert await channel.deliver(NOTE) is True
        assert await channel.deliver(NOTE) is False
        assert len(recorder.calls("POST", "/functions/v1/send-push-notification")) == 2
