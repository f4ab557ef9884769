"""
HeadlessPlatform — a config-driven Platform for terminals and daemons.

There is no browser push service on a headless host, so the push
"registration" hands out a subscription provisioned ahead of time
(endpoint + keys in the [push] config section). Native notifications are
printed to the console with rich and kept in `shown` for inspection.
"""

from __future__ import annotations

import logging
from typing import Any

from rich.console import Console
from rich.panel import Panel

from courier.core.config import CourierConfig
from courier.core.errors import PushRegistrationError
from courier.platform.base import Permission, Platform, PushSubscriptionInfo

logger = logging.getLogger(__name__)


class HeadlessPlatform(Platform):
    """
    Usage:
        platform = HeadlessPlatform.from_config(config, console=Console())
        if platform.supports_push:
            sub = await platform.push_subscribe(config.push.vapid_public_key)
    """

    def __init__(
        self,
        *,
        provisioned: PushSubscriptionInfo | None = None,
        push_supported: bool = True,
        realtime_supported: bool = True,
        permission: Permission = Permission.DEFAULT,
        grant_on_request: bool = True,
        console: Console | None = None,
    ) -> None:
        self._provisioned = provisioned
        self._push_supported = push_supported
        self._realtime_supported = realtime_supported
        self._permission = permission
        self._grant_on_request = grant_on_request
        self._console = console
        # A provisioned registration outlives the process once permission
        # is granted, like a browser's PushManager registration
        self._current: PushSubscriptionInfo | None = (
            provisioned
            if push_supported and permission == Permission.GRANTED
            else None
        )
        self.shown: list[tuple[str, str, dict[str, Any]]] = []

    @classmethod
    def from_config(
        cls, config: CourierConfig, console: Console | None = None
    ) -> "HeadlessPlatform":
        push = config.push
        provisioned = None
        if push.endpoint:
            provisioned = PushSubscriptionInfo(
                endpoint=push.endpoint, p256dh=push.p256dh, auth=push.auth
            )
        return cls(
            provisioned=provisioned,
            push_supported=config.platform.push_supported,
            realtime_supported=config.platform.realtime_supported,
            permission=Permission(config.platform.notification_permission),
            grant_on_request=config.platform.grant_on_request,
            console=console,
        )

    @property
    def supports_push(self) -> bool:
        return self._push_supported and self._provisioned is not None

    @property
    def supports_realtime_socket(self) -> bool:
        return self._realtime_supported

    @property
    def notification_permission(self) -> Permission:
        return self._permission

    async def request_permission(self) -> Permission:
        # A denied permission sticks, like a browser's
        if self._permission == Permission.DEFAULT:
            self._permission = (
                Permission.GRANTED if self._grant_on_request else Permission.DENIED
            )
        return self._permission

    async def push_subscribe(self, application_server_key: str) -> PushSubscriptionInfo:
        if not self.supports_push or self._provisioned is None:
            raise PushRegistrationError("No push subscription provisioned for this host")
        if self._permission != Permission.GRANTED:
            raise PushRegistrationError(
                "Notification permission not granted",
                details={"permission": self._permission.value},
            )
        self._current = self._provisioned
        logger.debug(f"Push registration issued for {self._current.endpoint}")
        return self._current

    async def push_unsubscribe(self, subscription: PushSubscriptionInfo) -> bool:
        if self._current is None or self._current.endpoint != subscription.endpoint:
            return False
        self._current = None
        return True

    async def get_push_subscription(self) -> PushSubscriptionInfo | None:
        return self._current

    def show_notification(
        self, title: str, body: str, data: dict[str, Any] | None = None
    ) -> None:
        self.shown.append((title, body, dict(data or {})))
        logger.info(f"Local notification: {title} — {body}")
        if self._console is not None:
            self._console.print(Panel(body, title=f"🔔 {title}", border_style="cyan"))
