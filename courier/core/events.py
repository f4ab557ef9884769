"""
Courier event types.

Components publish what happens to them on the EventBus so that the UI
layer, the delivery tracker and the event log can follow along without
reaching into component state.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any
import time
import uuid


class EventType:
    """
    Event type constants.

    Hierarchical naming: "category:action".
    Wildcards are supported by the bus: "realtime:*" matches "realtime:connected".
    """

    # Pipeline lifecycle
    PIPELINE_START = "pipeline:start"
    PIPELINE_STOP = "pipeline:stop"

    # Scheduled notifications
    NOTIFICATION_SCHEDULED = "notification:scheduled"
    NOTIFICATION_CANCELLED = "notification:cancelled"
    NOTIFICATION_DISPATCHED = "notification:dispatched"
    NOTIFICATION_FAILED = "notification:failed"

    # Realtime fallback channel
    REALTIME_CONNECTING = "realtime:connecting"
    REALTIME_CONNECTED = "realtime:connected"
    REALTIME_DISCONNECTED = "realtime:disconnected"
    REALTIME_MESSAGE = "realtime:message"
    REALTIME_FAILED = "realtime:failed"

    # Delivery tracking feed
    DELIVERY_CHANGE = "delivery:change"
    DELIVERY_UPDATED = "delivery:updated"

    # Push subscription
    PUSH_SUBSCRIBED = "push:subscribed"
    PUSH_UNSUBSCRIBED = "push:unsubscribed"

    # User-visible notices
    TOAST_SHOWN = "toast:shown"

    # Wildcard
    ALL = "*"


@dataclass(slots=True)
class Event:
    """
    A single event on the bus.

    `data` carries the event-specific payload, `metadata` is free for
    middleware annotations.
    """

    type: str
    data: dict[str, Any] = field(default_factory=dict)
    source: str = ""
    id: str = field(default_factory=lambda: uuid.uuid4().hex[:16])
    timestamp: float = field(default_factory=time.time)
    metadata: dict[str, Any] = field(default_factory=dict)
