"""
DeliveryTracker — live view of delivery assignments over the realtime socket.

Joins the `realtime:delivery-tracking` topic with a postgres_changes
subscription on `delivery_assignments`. UPDATE rows are merged into the
tracked deliveries; a status change also raises a toast.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field, fields
from typing import TYPE_CHECKING, Any

from courier.core.errors import BackendError
from courier.core.events import Event, EventType
from courier.remote.backend import BackendClient
from courier.ui.toast import Toaster

if TYPE_CHECKING:
    from courier.core.bus import EventBus
    from courier.notifications.realtime import RealtimeChannel

logger = logging.getLogger(__name__)

TRACKING_TOPIC = "realtime:delivery-tracking"
DELIVERY_TABLE = "delivery_assignments"


@dataclass
class DeliveryStatus:
    id: str
    status: str
    current_location_lat: float | None = None
    current_location_lng: float | None = None
    eta_minutes: int | None = None
    updated_at: str = ""

    def merge(self, record: dict[str, Any]) -> None:
        for f in fields(self):
            if f.name in record and f.name != "id":
                setattr(self, f.name, record[f.name])


class DeliveryTracker:
    def __init__(
        self,
        bus: "EventBus",
        backend: BackendClient,
        toaster: Toaster,
    ) -> None:
        self._bus = bus
        self._backend = backend
        self._toaster = toaster
        self._deliveries: dict[str, DeliveryStatus] = {}
        self._attached = False
        self._handler = self._on_change

    @property
    def deliveries(self) -> list[DeliveryStatus]:
        return list(self._deliveries.values())

    def get(self, delivery_id: str) -> DeliveryStatus | None:
        return self._deliveries.get(delivery_id)

    def track(self, delivery: DeliveryStatus) -> None:
        self._deliveries[delivery.id] = delivery

    async def attach(self, realtime: "RealtimeChannel") -> None:
        """Subscribe to delivery changes on the bus and join the feed topic."""
        if not self._attached:
            self._bus.on(EventType.DELIVERY_CHANGE, self._handler)
            self._attached = True
        await realtime.join(TRACKING_TOPIC, {
            "config": {
                "postgres_changes": [
                    {"event": "*", "schema": "public", "table": DELIVERY_TABLE},
                ],
            },
        })

    def detach(self) -> None:
        if self._attached:
            self._bus.off(EventType.DELIVERY_CHANGE, self._handler)
            self._attached = False

    async def _on_change(self, event: Event) -> None:
        payload = event.data.get("payload") or {}
        change = payload.get("data", payload)
        if change.get("table") != DELIVERY_TABLE or change.get("type") != "UPDATE":
            return

        record = change.get("record") or {}
        old = change.get("old_record") or {}
        delivery_id = record.get("id")
        if not delivery_id:
            return

        current = self._deliveries.get(delivery_id)
        previous_status = old.get("status", current.status if current else None)
        if current is None:
            current = DeliveryStatus(id=delivery_id, status=record.get("status", ""))
            self._deliveries[delivery_id] = current
        current.merge(record)

        if "status" in record and record["status"] != previous_status:
            self._toaster.show(
                "Delivery Update",
                f"Delivery status changed to {record['status']}",
            )
        await self._bus.emit(Event(
            type=EventType.DELIVERY_UPDATED,
            source="tracker",
            data={"id": delivery_id, "status": current.status},
        ))

    async def update_location(
        self,
        delivery_id: str,
        lat: float,
        lng: float,
        eta_minutes: int | None = None,
    ) -> bool:
        """Report the courier's position for a delivery."""
        changes = {
            "current_location_lat": lat,
            "current_location_lng": lng,
            "eta_minutes": eta_minutes,
            "updated_at": time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime()),
        }
        try:
            await self._backend.update(DELIVERY_TABLE, changes, id=delivery_id)
        except BackendError as e:
            logger.error(f"Error updating delivery location: {e}")
            self._toaster.show(
                "Error", "Failed to update delivery location", variant="destructive"
            )
            return False
        return True
