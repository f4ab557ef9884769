"""
Dispatcher — picks the delivery path for each due notification.

Precedence, stopping at the first path that delivers:

    1. Active external channels (push relay while a subscription exists).
    2. Local channels: native notification if permitted, else a toast.

Scheduled reminders exist only on this client, so the realtime socket
can never have carried them; its connection state is reported in the
result as a status badge and does not change how a reminder is shown.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from courier.core.events import Event, EventType
from courier.notifications.base import Notification, NotificationChannel, ScheduledNotification
from courier.notifications.templates import render

if TYPE_CHECKING:
    from courier.core.bus import EventBus
    from courier.notifications.realtime import RealtimeChannel

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class DispatchResult:
    notification_id: str
    channel: str | None  # name of the channel that delivered, None if none did
    realtime_connected: bool = False

    @property
    def delivered(self) -> bool:
        return self.channel is not None


class Dispatcher:
    """
    Usage:
        dispatcher = Dispatcher([push_channel, local_channel], realtime=rt, bus=bus)
        result = await dispatcher.dispatch(scheduled_item)
    """

    def __init__(
        self,
        channels: list[NotificationChannel] | None = None,
        *,
        realtime: "RealtimeChannel | None" = None,
        bus: "EventBus | None" = None,
    ) -> None:
        self._channels: list[NotificationChannel] = list(channels or [])
        self._realtime = realtime
        self._bus = bus

    def register(self, channel: NotificationChannel) -> None:
        self._channels.append(channel)
        logger.debug(f"Notification channel registered: {channel.name}")

    @property
    def channel_names(self) -> list[str]:
        return [c.name for c in self._channels]

    async def dispatch(self, item: ScheduledNotification) -> DispatchResult:
        """Render a scheduled item and deliver it."""
        return await self.notify(render(item))

    async def notify(self, notification: Notification) -> DispatchResult:
        """Deliver an already rendered notification. Never raises."""
        delivered_via: str | None = None

        for channel in self._ordered():
            if not channel.is_active:
                continue
            try:
                ok = await channel.deliver(notification)
            except Exception as e:
                logger.warning(f"Channel {channel.name} delivery failed: {e}")
                continue
            if ok:
                delivered_via = channel.name
                break

        result = DispatchResult(
            notification_id=notification.source_id,
            channel=delivered_via,
            realtime_connected=bool(self._realtime and self._realtime.is_connected),
        )
        if delivered_via is None:
            logger.warning(f"No channel delivered {notification.source_id or notification.title!r}")
        else:
            logger.debug(f"Notification {notification.source_id} delivered via {delivered_via}")

        if self._bus is not None:
            await self._bus.emit(Event(
                type=EventType.NOTIFICATION_DISPATCHED if result.delivered else EventType.NOTIFICATION_FAILED,
                source="dispatcher",
                data={
                    "id": result.notification_id,
                    "kind": notification.kind,
                    "channel": result.channel,
                    "realtime_connected": result.realtime_connected,
                },
            ))
        return result

    def _ordered(self) -> list[NotificationChannel]:
        external = [c for c in self._channels if c.is_external]
        local = [c for c in self._channels if not c.is_external]
        return external + local
