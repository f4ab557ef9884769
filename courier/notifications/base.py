"""
Notification primitives.

- NotificationKind and one payload dataclass per kind (a tagged union:
  the payload type decides the kind, so there is nothing to shape-check)
- ScheduledNotification, the unit the scheduler owns
- Notification, a rendered title/body ready for a channel
- NotificationChannel, the ABC every delivery path implements
"""

from __future__ import annotations

import time
import uuid
from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass, field, fields
from enum import Enum
from typing import Any, ClassVar, Mapping, Union


class NotificationKind(str, Enum):
    DELIVERY_REMINDER = "delivery_reminder"
    PICKUP_REMINDER = "pickup_reminder"
    STATUS_UPDATE = "status_update"


@dataclass(frozen=True, slots=True)
class DeliveryReminder:
    kind: ClassVar[NotificationKind] = NotificationKind.DELIVERY_REMINDER

    delivery_id: str
    address: str
    time: str  # display string, e.g. "14:30"

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True, slots=True)
class PickupReminder:
    kind: ClassVar[NotificationKind] = NotificationKind.PICKUP_REMINDER

    donation_id: str
    address: str

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True, slots=True)
class StatusUpdate:
    kind: ClassVar[NotificationKind] = NotificationKind.STATUS_UPDATE

    delivery_id: str
    status: str

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


NotificationPayload = Union[DeliveryReminder, PickupReminder, StatusUpdate]

_PAYLOAD_TYPES: dict[NotificationKind, type] = {
    NotificationKind.DELIVERY_REMINDER: DeliveryReminder,
    NotificationKind.PICKUP_REMINDER: PickupReminder,
    NotificationKind.STATUS_UPDATE: StatusUpdate,
}


def payload_from_dict(kind: str | NotificationKind, data: Mapping[str, Any]) -> NotificationPayload:
    """
    Build the payload variant for `kind` from a plain mapping.

    Raises ValueError for an unknown kind or missing fields; extra keys
    are ignored.
    """
    payload_type = _PAYLOAD_TYPES[NotificationKind(kind)]
    try:
        return payload_type(**{f.name: str(data[f.name]) for f in fields(payload_type)})
    except KeyError as e:
        raise ValueError(f"{NotificationKind(kind).value} payload missing field {e}") from e


def _new_id() -> str:
    return f"notification_{uuid.uuid4().hex[:12]}"


@dataclass
class ScheduledNotification:
    """
    A notification waiting for its fire time.

    `delivered` only ever goes False → True, via mark_delivered(), and
    only the scheduler calls it.
    """

    payload: NotificationPayload
    fire_at: float  # unix timestamp; due once now >= fire_at

    id: str = field(default_factory=_new_id)
    delivered: bool = False
    created_at: float = field(default_factory=time.time)

    @property
    def kind(self) -> NotificationKind:
        return self.payload.kind

    def is_due(self, now: float) -> bool:
        return not self.delivered and now >= self.fire_at

    def mark_delivered(self) -> None:
        self.delivered = True


@dataclass
class Notification:
    """A rendered notification handed to channels."""

    title: str
    body: str
    data: dict[str, Any] = field(default_factory=dict)
    kind: str = ""
    source_id: str = ""
    fired_at: int = field(default_factory=lambda: int(time.time()))


class NotificationChannel(ABC):
    """
    Abstract delivery path.

    The dispatcher skips channels whose is_active is False. External
    channels (push relay) are tried before local ones, and deliver()
    returns True only when the notification actually went out.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Short identifier, e.g. 'push', 'local'."""
        ...

    @property
    @abstractmethod
    def is_active(self) -> bool:
        ...

    @property
    def is_external(self) -> bool:
        """True for channels that leave the process (push relay)."""
        return False

    @abstractmethod
    async def deliver(self, notification: Notification) -> bool:
        ...
