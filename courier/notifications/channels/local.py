"""
LocalChannel — renders a notification on this device.

Native platform notification when permission is granted, otherwise an
in-process toast. Always active and always the last resort, so it never
reports failure.
"""

from __future__ import annotations

import logging

from courier.notifications.base import Notification, NotificationChannel
from courier.platform.base import Permission, Platform
from courier.ui.toast import Toaster

logger = logging.getLogger(__name__)


class LocalChannel(NotificationChannel):
    def __init__(self, platform: Platform, toaster: Toaster) -> None:
        self._platform = platform
        self._toaster = toaster

    @property
    def name(self) -> str:
        return "local"

    @property
    def is_active(self) -> bool:
        return True

    async def deliver(self, notification: Notification) -> bool:
        self.render(notification.title, notification.body, notification.data)
        return True

    def render(self, title: str, body: str, data: dict | None = None) -> None:
        """Show title/body natively if allowed, else as a toast."""
        if self._platform.notification_permission == Permission.GRANTED:
            try:
                self._platform.show_notification(title, body, data)
                return
            except Exception as e:
                logger.warning(f"Native notification failed, using toast: {e}")
        self._toaster.show(title, body)
