"""Tests for courier/notifications/tracking.py"""
from __future__ import annotations

import pytest

from courier.core.events import Event, EventType
from courier.notifications.tracking import (
    DELIVERY_TABLE,
    TRACKING_TOPIC,
    DeliveryStatus,
    DeliveryTracker,
)

PATH = f"/rest/v1/{DELIVERY_TABLE}"


class FakeRealtime:
    def __init__(self):
        self.joined = {}

    async def join(self, topic, payload=None):
        self.joined[topic] = payload


def _change(record, old=None, change_type="UPDATE", table=DELIVERY_TABLE):
    return Event(
        type=EventType.DELIVERY_CHANGE,
        data={
            "topic": TRACKING_TOPIC,
            "payload": {"data": {
                "type": change_type,
                "table": table,
                "record": record,
                "old_record": old or {},
            }},
        },
    )


@pytest.fixture
def tracker(bus, backend, toaster):
    return DeliveryTracker(bus, backend, toaster)


@pytest.mark.asyncio
class TestDeliveryTracker:
    async def test_attach_joins_feed(self, tracker, bus):
        realtime = FakeRealtime()
        await tracker.attach(realtime)
        config = realtime.joined[TRACKING_TOPIC]["config"]["postgres_changes"][0]
        assert config["table"] == DELIVERY_TABLE
        assert bus.subscriber_count == 1

        await tracker.attach(realtime)
        assert bus.subscriber_count == 1
        tracker.detach()
        assert bus.subscriber_count == 0

    async def test_status_change_toasts(self, tracker, bus, toaster):
        await tracker.attach(FakeRealtime())
        tracker.track(DeliveryStatus(id="del-1", status="assigned"))

        await bus.emit(_change({"id": "del-1", "status": "in_transit", "eta_minutes": 12}))

        delivery = tracker.get("del-1")
        assert delivery.status == "in_transit"
        assert delivery.eta_minutes == 12
        assert toaster.history[-1].description == "Delivery status changed to in_transit"

    async def test_location_only_update_is_silent(self, tracker, bus, toaster):
        await tracker.attach(FakeRealtime())
        tracker.track(DeliveryStatus(id="del-1", status="in_transit"))

        await bus.emit(_change(
            {"id": "del-1", "status": "in_transit", "current_location_lat": 51.5},
            old={"status": "in_transit"},
        ))
        assert tracker.get("del-1").current_location_lat == 51.5
        assert toaster.history == []

    async def test_ignores_other_tables_and_inserts(self, tracker, bus):
        await tracker.attach(FakeRealtime())
        await bus.emit(_change({"id": "x", "status": "new"}, table="donations"))
        await bus.emit(_change({"id": "y", "status": "new"}, change_type="INSERT"))
        assert tracker.deliveries == []

    async def test_unknown_delivery_is_tracked(self, tracker, bus):
        await tracker.attach(FakeRealtime())
        await bus.emit(_change({"id": "del-9", "status": "delivered"}))
        assert tracker.get("del-9").status == "delivered"

    async def test_update_location(self, tracker, backend, recorder):
        assert await tracker.update_location("del-1", 51.5, -0.12, eta_minutes=7) is True
        patch = recorder.calls("PATCH", PATH)[0]
        assert patch.url.params["id"] == "eq.del-1"
        body = recorder.body(patch)
        assert body["current_location_lat"] == 51.5
        assert body["eta_minutes"] == 7

    async def test_update_location_failure(self, tracker, recorder, toaster):
        recorder.respond("PATCH", PATH, status=400, body={"message": "bad row"})
        assert await tracker.update_location("del-1", 0.0, 0.0) is False
        assert toaster.history[-1].description == "Failed to update delivery location"

    async def test_reattach_toasts_once(self, tracker, bus, toaster):
        realtime = FakeRealtime()
        await tracker.attach(realtime)
        tracker.detach()
        await tracker.attach(realtime)
        tracker.track(DeliveryStatus(id="del-1", status="assigned"))

        await bus.emit(_change({"id": "del-1", "status": "picked_up"}))

        assert bus.subscriber_count == 1
        assert [t.description for t in toaster.history] == [
            "Delivery status changed to picked_up"
        ]
