"""
NotificationScheduler — in-memory reminders fired by a polling task.

Design:
- Items live in an insertion-ordered dict owned by the scheduler; only
  the scheduler mutates them
- A background asyncio task ticks immediately on start, then every
  poll_interval seconds
- Each tick hands every due, undelivered item to the Dispatcher in
  insertion order
- Items are marked delivered before the dispatch is awaited and stay
  delivered whatever the outcome: at most one delivery attempt, not
  guaranteed delivery
- A fire time in the past means "fire on the next tick"
- Nothing is persisted; a restart drops pending reminders
"""

from __future__ import annotations

import asyncio
import logging
import time
from datetime import datetime
from typing import TYPE_CHECKING, Callable

from courier.core.events import Event, EventType
from courier.notifications.base import (
    DeliveryReminder,
    NotificationKind,
    NotificationPayload,
    PickupReminder,
    ScheduledNotification,
    StatusUpdate,
)

if TYPE_CHECKING:
    from courier.core.bus import EventBus
    from courier.notifications.dispatcher import Dispatcher

logger = logging.getLogger(__name__)

POLL_INTERVAL = 60.0  # seconds between due checks
DELIVERY_REMINDER_LEAD = 30 * 60  # remind 30 minutes before a delivery
PICKUP_REMINDER_DELAY = 60 * 60  # remind about a pickup in one hour


class NotificationScheduler:
    """
    Usage:
        scheduler = NotificationScheduler(dispatcher)
        async with scheduler:
            scheduler.schedule_pickup_reminder("don-1", "789 Food Bank Ave")
            ...
    """

    def __init__(
        self,
        dispatcher: "Dispatcher",
        *,
        poll_interval: float = POLL_INTERVAL,
        clock: Callable[[], float] = time.time,
        bus: "EventBus | None" = None,
    ) -> None:
        self._dispatcher = dispatcher
        self._poll_interval = poll_interval
        self._clock = clock
        self._bus = bus
        self._items: dict[str, ScheduledNotification] = {}
        self._task: asyncio.Task | None = None

    # ── Producer API ─────────────────────────────────────────────────────────

    def schedule(
        self,
        kind: NotificationKind | str,
        fire_at: float | datetime,
        payload: NotificationPayload,
    ) -> str:
        """Queue a notification; returns its id. No check on past fire times."""
        kind = NotificationKind(kind)
        if payload.kind != kind:
            raise ValueError(
                f"Payload {type(payload).__name__} does not match kind {kind.value!r}"
            )
        if isinstance(fire_at, datetime):
            fire_at = fire_at.timestamp()

        item = ScheduledNotification(payload=payload, fire_at=float(fire_at))
        self._items[item.id] = item
        logger.debug(f"Notification scheduled: {item.id} ({kind.value}) at {item.fire_at:.0f}")
        self._emit_nowait(EventType.NOTIFICATION_SCHEDULED, {
            "id": item.id,
            "kind": kind.value,
            "fire_at": item.fire_at,
        })
        return item.id

    def cancel(self, notification_id: str) -> bool:
        """Drop a pending item. Delivered or unknown ids are a no-op."""
        item = self._items.get(notification_id)
        if item is None or item.delivered:
            return False
        del self._items[notification_id]
        logger.debug(f"Notification cancelled: {notification_id}")
        self._emit_nowait(EventType.NOTIFICATION_CANCELLED, {"id": notification_id})
        return True

    def schedule_delivery_reminder(
        self, delivery_id: str, scheduled_time: datetime, address: str
    ) -> str:
        fire_at = scheduled_time.timestamp() - DELIVERY_REMINDER_LEAD
        return self.schedule(
            NotificationKind.DELIVERY_REMINDER,
            fire_at,
            DeliveryReminder(
                delivery_id=delivery_id,
                address=address,
                time=scheduled_time.strftime("%H:%M"),
            ),
        )

    def schedule_pickup_reminder(self, donation_id: str, address: str) -> str:
        return self.schedule(
            NotificationKind.PICKUP_REMINDER,
            self._clock() + PICKUP_REMINDER_DELAY,
            PickupReminder(donation_id=donation_id, address=address),
        )

    def schedule_status_update(self, delivery_id: str, status: str) -> str:
        return self.schedule(
            NotificationKind.STATUS_UPDATE,
            self._clock(),
            StatusUpdate(delivery_id=delivery_id, status=status),
        )

    # ── Views ────────────────────────────────────────────────────────────────

    @property
    def pending(self) -> list[ScheduledNotification]:
        """Items not yet delivered, in insertion order."""
        return [item for item in self._items.values() if not item.delivered]

    @property
    def history(self) -> list[ScheduledNotification]:
        """Every item still held, delivered ones included."""
        return list(self._items.values())

    def get(self, notification_id: str) -> ScheduledNotification | None:
        return self._items.get(notification_id)

    # ── Lifecycle ────────────────────────────────────────────────────────────

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._loop(), name="notification-scheduler")
        logger.info("NotificationScheduler started")

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        logger.info("NotificationScheduler stopped")

    async def __aenter__(self) -> "NotificationScheduler":
        await self.start()
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.stop()

    # ── Polling ──────────────────────────────────────────────────────────────

    async def _loop(self) -> None:
        while True:
            try:
                await self.tick()
            except Exception as e:
                logger.warning(f"Scheduler tick error (non-fatal): {e}")
            await asyncio.sleep(self._poll_interval)

    async def tick(self, now: float | None = None) -> list[str]:
        """Dispatch every due item. Returns the ids attempted this tick."""
        now = self._clock() if now is None else now
        due = [item for item in self._items.values() if item.is_due(now)]
        attempted: list[str] = []

        for item in due:
            # cancel() may have run while an earlier dispatch was awaited
            if self._items.get(item.id) is not item or item.delivered:
                continue
            item.mark_delivered()
            attempted.append(item.id)
            try:
                await self._dispatcher.dispatch(item)
            except Exception as e:
                logger.error(f"Failed to deliver notification {item.id}: {e}")

        return attempted

    def _emit_nowait(self, event_type: str, data: dict) -> None:
        if self._bus is not None:
            self._bus.emit_nowait(Event(type=event_type, source="scheduler", data=data))
