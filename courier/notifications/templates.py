"""
Title/body lookup per notification kind.

Kinds outside the table (e.g. ones arriving from newer servers) get the
generic pair instead of an error.
"""

from __future__ import annotations

import logging
from typing import Any, Mapping

from courier.notifications.base import Notification, ScheduledNotification

logger = logging.getLogger(__name__)

APP_NAME = "SustainConnect"
GENERIC_BODY = "You have a new update"

TITLES: dict[str, str] = {
    "delivery_reminder": "Delivery Reminder",
    "pickup_reminder": "Pickup Reminder",
    "status_update": "Delivery Update",
}

BODIES: dict[str, str] = {
    "delivery_reminder": "Your delivery to {address} is scheduled for {time}",
    "pickup_reminder": "Don't forget to pickup your donation from {address}",
    "status_update": "Your delivery status has been updated to: {status}",
}


def title_for(kind: str) -> str:
    return TITLES.get(kind, APP_NAME)


def body_for(kind: str, data: Mapping[str, Any]) -> str:
    template = BODIES.get(kind)
    if template is None:
        return GENERIC_BODY
    try:
        return template.format_map(data)
    except KeyError as e:
        logger.debug(f"Missing {e} for {kind} body, using generic text")
        return GENERIC_BODY


def render(item: ScheduledNotification) -> Notification:
    """Turn a due scheduled item into a channel-ready Notification."""
    kind = item.kind.value
    data = item.payload.to_dict()
    return Notification(
        title=title_for(kind),
        body=body_for(kind, data),
        data=data,
        kind=kind,
        source_id=item.id,
    )
