"""Tests for courier/core/bus.py"""
from __future__ import annotations

import asyncio

import pytest

from courier.core.bus import EventBus
from courier.core.events import Event, EventType


@pytest.mark.asyncio
class TestEventBus:
    async def test_exact_subscription(self, bus):
        received = []

        async def handler(event):
            received.append(event.type)

        bus.on(EventType.REALTIME_CONNECTED, handler)
        await bus.emit(Event(type=EventType.REALTIME_CONNECTED))
        await bus.emit(Event(type=EventType.REALTIME_DISCONNECTED))
        assert received == [EventType.REALTIME_CONNECTED]

    async def test_category_wildcard(self, bus):
        received = []

        async def handler(event):
            received.append(event.type)

        bus.on("realtime:*", handler)
        await bus.emit(Event(type=EventType.REALTIME_CONNECTING))
        await bus.emit(Event(type=EventType.TOAST_SHOWN))
        assert received == [EventType.REALTIME_CONNECTING]

    async def test_global_wildcard(self, bus):
        received = []

        async def handler(event):
            received.append(event.type)

        bus.on(EventType.ALL, handler)
        await bus.emit(Event(type="anything:here"))
        assert received == ["anything:here"]

    async def test_off(self, bus):
        received = []

        async def handler(event):
            received.append(event)

        bus.on("x:y", handler)
        bus.off("x:y", handler)
        bus.off("x:y", handler)
        await bus.emit(Event(type="x:y"))
        assert received == []
        assert bus.subscriber_count == 0

    async def test_off_bound_method(self, bus):
        class Listener:
            def __init__(self):
                self.count = 0

            async def handle(self, event):
                self.count += 1

        listener = Listener()
        bus.on("x:y", listener.handle)
        bus.off("x:y", listener.handle)
        await bus.emit(Event(type="x:y"))
        assert listener.count == 0
        assert bus.subscriber_count == 0

    async def test_subscriber_error_isolated(self, bus):
        received = []

        async def broken(event):
            raise RuntimeError("nope")

        async def healthy(event):
            received.append(event.type)

        bus.on("x:y", broken)
        bus.on("x:y", healthy)
        await bus.emit(Event(type="x:y"))
        assert received == ["x:y"]

    async def test_middleware_order(self, bus):
        order = []

        async def first(event, next_handler):
            order.append("first")
            event.metadata["seen"] = True
            return await next_handler(event)

        async def second(event, next_handler):
            order.append("second")
            return await next_handler(event)

        bus.use(first)
        bus.use(second)
        result = await bus.emit(Event(type="x:y"))
        assert order == ["first", "second"]
        assert result.metadata["seen"] is True

    async def test_emit_nowait(self, bus):
        received = []

        async def handler(event):
            received.append(event.type)

        bus.on("x:y", handler)
        bus.emit_nowait(Event(type="x:y"))
        for _ in range(5):
            await asyncio.sleep(0)
        assert received == ["x:y"]

    async def test_nowait_tasks_tracked_until_done(self, bus):
        received = []

        async def handler(event):
            await asyncio.sleep(0)
            received.append(event.type)

        bus.on("x:y", handler)
        bus.emit_nowait(Event(type="x:y"))
        bus.emit_nowait(Event(type="x:y"))
        assert bus.pending_count == 2

        await bus.drain()
        assert received == ["x:y", "x:y"]
        assert bus.pending_count == 0


class TestEmitNowaitWithoutLoop:
    def test_dropped_without_loop(self):
        bus = EventBus()
        bus.emit_nowait(Event(type="x:y"))
        assert bus.subscriber_count == 0


class TestEvent:
    def test_defaults(self):
        event = Event(type=EventType.TOAST_SHOWN)
        assert event.data == {}
        assert len(event.id) == 16
        assert event.timestamp > 0
