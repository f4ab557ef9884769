"""Capability probing — what the host can do right now."""

from __future__ import annotations

from dataclasses import dataclass

from courier.platform.base import Permission, Platform


@dataclass(frozen=True, slots=True)
class Capabilities:
    has_push: bool
    has_realtime_socket_support: bool
    notification_permission: Permission

    @property
    def can_notify_natively(self) -> bool:
        return self.notification_permission == Permission.GRANTED


class CapabilityProber:
    """
    Reads platform feature flags. Never raises: a missing capability is
    reported as False, not as an error.
    """

    def __init__(self, platform: Platform) -> None:
        self._platform = platform

    def probe(self) -> Capabilities:
        return Capabilities(
            has_push=bool(self._platform.supports_push),
            has_realtime_socket_support=bool(self._platform.supports_realtime_socket),
            notification_permission=self._platform.notification_permission,
        )
