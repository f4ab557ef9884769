"""
PushSubscriptionManager — owns the user's push subscription.

The manager is the only component that creates or deletes the remote
`push_subscriptions` row, and it mirrors local (platform) state:

    subscribe():   platform registration → remote upsert (keyed by user)
    unsubscribe(): platform unregistration → remote delete

A subscription counts as active only once both halves succeeded, so a
failed remote write never leaves a half-subscribed state visible to the
dispatcher. Nothing here retries; the user re-invokes subscribe().
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from courier.core.errors import CourierError
from courier.core.events import Event, EventType
from courier.notifications.capabilities import CapabilityProber
from courier.platform.base import Permission, Platform, PushSubscriptionInfo
from courier.remote.backend import BackendClient
from courier.ui.toast import Toaster

if TYPE_CHECKING:
    from courier.core.bus import EventBus

logger = logging.getLogger(__name__)


class PushSubscriptionManager:
    """
    Usage:
        manager = PushSubscriptionManager(platform, backend, toaster,
                                          user_id=uid, application_server_key=vapid)
        await manager.refresh()
        if not manager.is_subscribed:
            await manager.subscribe()
    """

    def __init__(
        self,
        platform: Platform,
        backend: BackendClient,
        toaster: Toaster,
        *,
        user_id: str,
        application_server_key: str = "",
        bus: "EventBus | None" = None,
    ) -> None:
        self._platform = platform
        self._prober = CapabilityProber(platform)
        self._backend = backend
        self._toaster = toaster
        self._user_id = user_id
        self._application_server_key = application_server_key
        self._bus = bus
        self._subscription: PushSubscriptionInfo | None = None
        self._remote_confirmed = False

    @property
    def is_supported(self) -> bool:
        return self._prober.probe().has_push

    @property
    def is_subscribed(self) -> bool:
        return self.has_active_subscription()

    @property
    def subscription(self) -> PushSubscriptionInfo | None:
        """The subscription, only while it is active."""
        return self._subscription if self.has_active_subscription() else None

    def has_active_subscription(self) -> bool:
        return self._subscription is not None and self._remote_confirmed

    async def request_permission(self) -> bool:
        if not self.is_supported:
            self._not_supported()
            return False

        permission = await self._platform.request_permission()
        if permission == Permission.GRANTED:
            self._toaster.show(
                "Notifications Enabled",
                "You'll receive updates about your deliveries",
            )
            return True
        self._toaster.show(
            "Permission Denied",
            "Please enable notifications in your settings",
            variant="destructive",
        )
        return False

    async def subscribe(self) -> bool:
        caps = self._prober.probe()
        if not caps.has_push:
            self._not_supported()
            return False
        if not self._user_id:
            logger.warning("Push subscribe skipped: no signed-in user")
            return False
        if caps.notification_permission != Permission.GRANTED:
            if not await self.request_permission():
                return False

        sub: PushSubscriptionInfo | None = None
        try:
            sub = await self._platform.push_subscribe(self._application_server_key)
            await self._backend.upsert_push_subscription(self._user_id, sub.to_json())
        except Exception as e:
            logger.error(f"Error subscribing to push notifications: {e}")
            self._subscription = None
            self._remote_confirmed = False
            if sub is not None:
                await self._drop_local(sub)
            self._toaster.show(
                "Subscription Failed",
                "Failed to enable push notifications",
                variant="destructive",
            )
            return False

        self._subscription = sub
        self._remote_confirmed = True
        logger.info(f"Push subscription stored for user {self._user_id}")
        self._toaster.show(
            "Subscribed",
            "You'll receive push notifications for delivery updates",
        )
        await self._emit(EventType.PUSH_SUBSCRIBED, {"endpoint": sub.endpoint})
        return True

    async def unsubscribe(self) -> bool:
        """
        Drop the subscription locally, then remotely.

        A failure in either step is logged and does not undo the other;
        local state is cleared regardless. A remote row left behind by an
        earlier registration is removed even without a local half.
        """
        sub = self._subscription
        if not self._user_id or (sub is None and not self._remote_confirmed):
            return False

        local_ok = await self._drop_local(sub) if sub is not None else True
        self._subscription = None
        self._remote_confirmed = False

        remote_ok = True
        try:
            await self._backend.delete_push_subscription(self._user_id)
        except CourierError as e:
            remote_ok = False
            logger.error(f"Error removing remote push subscription: {e}")

        await self._emit(
            EventType.PUSH_UNSUBSCRIBED,
            {
                "endpoint": sub.endpoint if sub is not None else None,
                "local_ok": local_ok,
                "remote_ok": remote_ok,
            },
        )
        if local_ok and remote_ok:
            self._toaster.show("Unsubscribed", "Push notifications have been disabled")
            return True
        self._toaster.show(
            "Error", "Failed to disable push notifications", variant="destructive"
        )
        return False

    async def refresh(self) -> bool:
        """
        Reload state from the platform and the backend.

        Active only if the platform still holds a registration and the
        backend has a row for this user. Returns the resulting state.
        """
        self._subscription = None
        self._remote_confirmed = False
        if not self.is_supported or not self._user_id:
            return False
        try:
            local = await self._platform.get_push_subscription()
            remote = await self._backend.fetch_push_subscription(self._user_id)
        except Exception as e:
            logger.warning(f"Could not refresh push subscription state: {e}")
            return False
        self._subscription = local
        # Kept even without a local half so unsubscribe() can remove the row
        self._remote_confirmed = remote is not None
        return self.has_active_subscription()

    async def send_test_notification(self) -> bool:
        if not self.is_supported:
            return False
        self._platform.show_notification(
            "Test Notification",
            "This is a test notification from SustainConnect",
        )
        return True

    # ── Internals ────────────────────────────────────────────────────────────

    def _not_supported(self) -> None:
        self._toaster.show(
            "Not Supported",
            "Push notifications are not supported on this platform",
            variant="destructive",
        )

    async def _drop_local(self, sub: PushSubscriptionInfo) -> bool:
        try:
            await self._platform.push_unsubscribe(sub)
            return True
        except Exception as e:
            logger.error(f"Error dropping local push registration: {e}")
            return False

    async def _emit(self, event_type: str, data: dict) -> None:
        if self._bus is not None:
            await self._bus.emit(Event(type=event_type, source="push", data=data))
