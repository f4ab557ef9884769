"""
Toasts — the in-process, last-resort notice primitive.

Every user-visible outcome that is not a native notification goes
through a Toaster: fallback renders of reminders, "Subscription Failed",
"Connection Failed" and friends.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Literal

from rich.console import Console
from rich.panel import Panel

from courier.core.events import Event, EventType

if TYPE_CHECKING:
    from courier.core.bus import EventBus

logger = logging.getLogger(__name__)

Variant = Literal["default", "destructive"]


@dataclass(frozen=True, slots=True)
class Toast:
    title: str
    description: str
    variant: Variant = "default"
    shown_at: float = field(default_factory=time.time)

    @property
    def is_error(self) -> bool:
        return self.variant == "destructive"


class Toaster:
    """
    Shows toasts on a rich console and keeps a bounded history.

    Usage:
        toaster = Toaster(console=Console(), bus=bus)
        toaster.show("Subscribed", "You'll receive push notifications")
        toaster.show("Error", "Failed to disable push", variant="destructive")
    """

    def __init__(
        self,
        console: Console | None = None,
        bus: "EventBus | None" = None,
        history_limit: int = 100,
    ) -> None:
        self._console = console
        self._bus = bus
        self._history_limit = history_limit
        self._history: list[Toast] = []

    @property
    def history(self) -> list[Toast]:
        return list(self._history)

    def show(self, title: str, description: str, variant: Variant = "default") -> Toast:
        toast = Toast(title=title, description=description, variant=variant)
        self._history.append(toast)
        if len(self._history) > self._history_limit:
            del self._history[0]

        if toast.is_error:
            logger.warning(f"Toast: {title} — {description}")
        else:
            logger.debug(f"Toast: {title} — {description}")

        if self._console is not None:
            style = "red" if toast.is_error else "green"
            self._console.print(Panel(description, title=title, border_style=style))

        if self._bus is not None:
            self._bus.emit_nowait(Event(
                type=EventType.TOAST_SHOWN,
                source="toaster",
                data={"title": title, "description": description, "variant": variant},
            ))
        return toast
