"""
PushChannel — hands notifications to the push relay edge function.

The relay (send-push-notification) signs and forwards the message to the
push service. This channel's job ends when the relay acknowledges the
request; it is active only while the user holds a confirmed subscription.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from courier.core.errors import BackendError
from courier.notifications.base import Notification, NotificationChannel
from courier.remote.backend import BackendClient

if TYPE_CHECKING:
    from courier.notifications.push import PushSubscriptionManager
    from courier.ratelimit import RateLimiter

logger = logging.getLogger(__name__)


class PushChannel(NotificationChannel):
    """
    is_external = True  →  tried before the local channel.
    is_active   = True only with an active push subscription.
    """

    def __init__(
        self,
        manager: "PushSubscriptionManager",
        backend: BackendClient,
        relay_function: str = "send-push-notification",
        limiter: "RateLimiter | None" = None,
    ) -> None:
        self._manager = manager
        self._backend = backend
        self._relay_function = relay_function
        self._limiter = limiter

    @property
    def name(self) -> str:
        return "push"

    @property
    def is_external(self) -> bool:
        return True

    @property
    def is_active(self) -> bool:
        return self._manager.has_active_subscription()

    async def deliver(self, notification: Notification) -> bool:
        subscription = self._manager.subscription
        if subscription is None:
            return False
        if self._limiter is not None and not await self._limiter.consume():
            logger.warning("Push relay rate limit reached, falling back")
            return False

        body = {
            "subscription": subscription.to_json(),
            "notification": {
                "title": notification.title,
                "body": notification.body,
                "data": notification.data,
            },
        }
        try:
            result = await self._backend.invoke_function(self._relay_function, body)
        except BackendError as e:
            logger.warning(f"Push relay failed: {e}")
            return False

        if result.get("error"):
            logger.warning(f"Push relay rejected notification: {result['error']}")
            return False
        logger.debug(f"Push relayed: {result.get('messageId', '?')}")
        return True
