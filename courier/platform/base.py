"""
Platform primitives — what the host runtime offers the pipeline.

A Platform bundles the three host capabilities the pipeline depends on:
the push registration API, the notification permission, and the local
notification primitive. Browsers, desktop shells and headless daemons
each provide their own implementation.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any


class Permission(str, Enum):
    """Local notification permission as reported by the platform."""

    GRANTED = "granted"
    DENIED = "denied"
    DEFAULT = "default"


@dataclass(frozen=True, slots=True)
class PushSubscriptionInfo:
    """
    Endpoint plus keys issued by a push service.

    Opaque to the pipeline: it is persisted and relayed verbatim.
    """

    endpoint: str
    p256dh: str
    auth: str
    expiration_time: int | None = None

    def to_json(self) -> dict[str, Any]:
        """Browser-shaped subscription JSON."""
        return {
            "endpoint": self.endpoint,
            "expirationTime": self.expiration_time,
            "keys": {"p256dh": self.p256dh, "auth": self.auth},
        }


class Platform(ABC):
    """
    Abstract host platform.

    Feature flags are plain properties so that capability probing never
    has side effects. Push and notification calls may raise PlatformError.
    """

    @property
    @abstractmethod
    def supports_push(self) -> bool:
        """Whether a push registration API is available."""
        ...

    @property
    @abstractmethod
    def supports_realtime_socket(self) -> bool:
        """Whether websockets can be opened from this host."""
        ...

    @property
    @abstractmethod
    def notification_permission(self) -> Permission:
        ...

    @abstractmethod
    async def request_permission(self) -> Permission:
        """Ask the user for notification permission; returns the outcome."""
        ...

    @abstractmethod
    async def push_subscribe(self, application_server_key: str) -> PushSubscriptionInfo:
        """Register with the push service and return the new subscription."""
        ...

    @abstractmethod
    async def push_unsubscribe(self, subscription: PushSubscriptionInfo) -> bool:
        """Drop a push registration. Returns True if one was removed."""
        ...

    @abstractmethod
    async def get_push_subscription(self) -> PushSubscriptionInfo | None:
        """The current push registration, if any."""
        ...

    @abstractmethod
    def show_notification(
        self, title: str, body: str, data: dict[str, Any] | None = None
    ) -> None:
        """Render a native local notification. No network round trip."""
        ...
