"""Tests for courier/notifications/dispatcher.py"""
from __future__ import annotations

import pytest

from courier.core.bus import EventBus
from courier.core.events import EventType
from courier.notifications.base import (
    Notification,
    NotificationChannel,
    ScheduledNotification,
    StatusUpdate,
)
from courier.notifications.channels.local import LocalChannel
from courier.notifications.dispatcher import Dispatcher
from courier.platform.base import Permission
from courier.platform.headless import HeadlessPlatform


class FakeChannel(NotificationChannel):
    def __init__(self, name, *, active=True, external=False, ok=True, raises=False):
        self._name = name
        self._active = active
        self._external = external
        self._ok = ok
        self._raises = raises
        self.delivered: list[Notification] = []

    @property
    def name(self):
        return self._name

    @property
    def is_active(self):
        return self._active

    @property
    def is_external(self):
        return self._external

    async def deliver(self, notification):
        if self._raises:
            raise RuntimeError(f"{self._name} down")
        self.delivered.append(notification)
        return self._ok


class FakeRealtime:
    def __init__(self, connected):
        self.is_connected = connected


def _item(status="picked_up"):
    return ScheduledNotification(payload=StatusUpdate("del-1", status), fire_at=0)


@pytest.mark.asyncio
class TestDispatcher:
    async def test_push_preferred_when_active(self):
        push = FakeChannel("push", external=True)
        local = FakeChannel("local")
        result = await Dispatcher([local, push]).dispatch(_item())
        assert result.channel == "push"
        assert local.delivered == []

    async def test_inactive_push_skipped(self):
        push = FakeChannel("push", external=True, active=False)
        local = FakeChannel("local")
        result = await Dispatcher([push, local]).dispatch(_item())
        assert result.channel == "local"
        assert push.delivered == []

    async def test_push_failure_falls_back_to_local(self):
        push = FakeChannel("push", external=True, ok=False)
        local = FakeChannel("local")
        result = await Dispatcher([push, local]).dispatch(_item())
        assert result.channel == "local"
        assert len(local.delivered) == 1

    async def test_channel_exception_falls_through(self):
        push = FakeChannel("push", external=True, raises=True)
        local = FakeChannel("local")
        result = await Dispatcher([push, local]).dispatch(_item())
        assert result.delivered
        assert result.channel == "local"

    async def test_nothing_delivered(self):
        result = await Dispatcher([FakeChannel("local", ok=False)]).dispatch(_item())
        assert not result.delivered
        assert result.channel is None

    async def test_rendered_content(self):
        local = FakeChannel("local")
        item = _item("picked_up")
        result = await Dispatcher([local]).dispatch(item)
        sent = local.delivered[0]
        assert sent.title == "Delivery Update"
        assert sent.body == "Your delivery status has been updated to: picked_up"
        assert sent.data == {"delivery_id": "del-1", "status": "picked_up"}
        assert result.notification_id == item.id

    async def test_realtime_badge(self):
        local = FakeChannel("local")
        up = await Dispatcher([local], realtime=FakeRealtime(True)).dispatch(_item())
        down = await Dispatcher([local], realtime=FakeRealtime(False)).dispatch(_item())
        assert up.realtime_connected is True
        assert down.realtime_connected is False
        # the socket state never changes which channel renders a reminder
        assert up.channel == down.channel == "local"

    async def test_register(self):
        dispatcher = Dispatcher()
        dispatcher.register(FakeChannel("local"))
        assert dispatcher.channel_names == ["local"]

    async def test_emits_outcome(self):
        bus = EventBus()
        seen = []

        async def record(event):
            seen.append((event.type, event.data["channel"]))

        bus.on("notification:*", record)
        dispatcher = Dispatcher([FakeChannel("local")], bus=bus)
        await dispatcher.dispatch(_item())
        failing = Dispatcher([FakeChannel("local", ok=False)], bus=bus)
        await failing.dispatch(_item())
        assert seen == [
            (EventType.NOTIFICATION_DISPATCHED, "local"),
            (EventType.NOTIFICATION_FAILED, None),
        ]


@pytest.mark.asyncio
class TestLocalFallback:
    async def test_toast_without_permission(self, toaster):
        platform = HeadlessPlatform(permission=Permission.DEFAULT)
        dispatcher = Dispatcher([LocalChannel(platform, toaster)])
        await dispatcher.dispatch(_item())
        assert platform.shown == []
        assert toaster.history[-1].title == "Delivery Update"
        assert toaster.history[-1].description == (
            "Your delivery status has been updated to: picked_up"
        )

    async def test_native_with_permission(self, toaster):
        platform = HeadlessPlatform(permission=Permission.GRANTED)
        dispatcher = Dispatcher([LocalChannel(platform, toaster)])
        await dispatcher.dispatch(_item())
        assert platform.shown[0][0] == "Delivery Update"
        assert toaster.history == []
