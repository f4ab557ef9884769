"""
Courier — notification delivery for SustainConnect.

Public API:
    from courier import NotificationPipeline, CourierConfig
"""

__version__ = "0.1.0"

from courier.core.config import CourierConfig
from courier.core.events import Event, EventType
from courier.notifications.base import (
    DeliveryReminder,
    NotificationKind,
    PickupReminder,
    ScheduledNotification,
    StatusUpdate,
)
from courier.notifications.dispatcher import DispatchResult, Dispatcher
from courier.notifications.scheduler import NotificationScheduler
from courier.pipeline import NotificationPipeline

__all__ = [
    "CourierConfig",
    "Event",
    "EventType",
    "NotificationKind",
    "DeliveryReminder",
    "PickupReminder",
    "StatusUpdate",
    "ScheduledNotification",
    "Dispatcher",
    "DispatchResult",
    "NotificationScheduler",
    "NotificationPipeline",
]
