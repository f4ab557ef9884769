"""
RealtimeChannel — best-effort websocket to the managed realtime endpoint.

Used as a notification substitute when native push is unavailable.

State machine:

    disconnected ──connect()──▶ connecting ──open──▶ connected
         ▲                          │                    │
         └───── close / error ◀─────┴────────────────────┘
                 (reconnect after backoff)

    disconnect() from any state → disconnected, no further retries.

Backoff: delay(n) = min(2**n * base_delay, max_delay). After
max_reconnect_attempts failed reconnects the channel shows a terminal
"Connection Failed" toast and waits for the next explicit connect().

Inbound frames are JSON `{topic, event, payload, ref}`. Malformed frames
are logged and dropped; only transport close/error triggers a reconnect.
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, AsyncContextManager, Awaitable, Callable

import websockets

from courier.core.events import Event, EventType
from courier.notifications.channels.local import LocalChannel
from courier.ui.toast import Toaster

if TYPE_CHECKING:
    from courier.core.bus import EventBus

logger = logging.getLogger(__name__)

Connector = Callable[[str], AsyncContextManager[Any]]
Sleeper = Callable[[float], Awaitable[Any]]

DELIVERY_UPDATE = "delivery_update"
POSTGRES_CHANGES = "postgres_changes"


class ConnectionStatus(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


@dataclass(frozen=True, slots=True)
class RealtimeMessage:
    """Last inbound frame, as surfaced to the UI."""

    type: str
    data: Any
    topic: str = ""
    timestamp: float = field(default_factory=time.time)


class RealtimeChannel:
    """
    Usage:
        channel = RealtimeChannel(url, local=local, toaster=toaster,
                                  bus=bus, user_id=uid)
        await channel.connect()
        ...
        await channel.disconnect()
    """

    def __init__(
        self,
        url: str,
        *,
        local: LocalChannel,
        toaster: Toaster,
        bus: "EventBus | None" = None,
        user_id: str = "",
        max_reconnect_attempts: int = 5,
        base_delay: float = 1.0,
        max_delay: float | None = None,
        heartbeat_interval: float | None = 30.0,
        connector: Connector | None = None,
        sleep: Sleeper = asyncio.sleep,
    ) -> None:
        self._url = url
        self._local = local
        self._toaster = toaster
        self._bus = bus
        self._max_attempts = max_reconnect_attempts
        self._base_delay = base_delay
        self._max_delay = max_delay
        self._heartbeat_interval = heartbeat_interval
        self._connector: Connector = connector or websockets.connect
        self._sleep = sleep

        self._status = ConnectionStatus.DISCONNECTED
        self.reconnect_attempt = 0
        self._failed = False
        self._task: asyncio.Task | None = None
        self._ws: Any = None
        self._last_message: RealtimeMessage | None = None
        self._ref = 0
        self._topics: dict[str, dict[str, Any]] = {}
        if user_id:
            self._topics[f"user:{user_id}"] = {}

    # ── Public state ─────────────────────────────────────────────────────────

    @property
    def status(self) -> ConnectionStatus:
        return self._status

    @property
    def is_connected(self) -> bool:
        return self._status == ConnectionStatus.CONNECTED

    @property
    def failed(self) -> bool:
        """True once retries are exhausted, until the next connect()."""
        return self._failed

    @property
    def last_message(self) -> RealtimeMessage | None:
        return self._last_message

    def backoff_delay(self, attempt: int) -> float:
        delay = (2 ** attempt) * self._base_delay
        if self._max_delay is not None:
            delay = min(delay, self._max_delay)
        return delay

    # ── Lifecycle ────────────────────────────────────────────────────────────

    async def connect(self) -> None:
        """Start (or restart after giving up) the connection loop."""
        if self._task is not None and not self._task.done():
            return
        self.reconnect_attempt = 0
        self._failed = False
        self._task = asyncio.create_task(self._run(), name="realtime")

    async def disconnect(self) -> None:
        """Close the socket and cancel any pending reconnect."""
        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._ws = None
        if self._status != ConnectionStatus.DISCONNECTED:
            await self._set_status(ConnectionStatus.DISCONNECTED)

    async def wait_closed(self) -> None:
        """Wait until the connection loop ends (gave up or disconnected)."""
        if self._task is not None:
            await asyncio.shield(self._task)

    # ── Outbound ─────────────────────────────────────────────────────────────

    async def join(self, topic: str, payload: dict[str, Any] | None = None) -> None:
        """Join `topic` now if connected, and again after every reconnect."""
        self._topics[topic] = payload or {}
        if self.is_connected:
            await self._send_join(topic, self._topics[topic])

    async def send_message(self, message: dict[str, Any]) -> bool:
        if self._ws is None or not self.is_connected:
            return False
        try:
            await self._ws.send(json.dumps(message))
            return True
        except Exception as e:
            logger.warning(f"Realtime send failed: {e}")
            return False

    # ── Connection loop ──────────────────────────────────────────────────────

    async def _run(self) -> None:
        while True:
            await self._set_status(ConnectionStatus.CONNECTING)
            try:
                async with self._connector(self._url) as ws:
                    self._ws = ws
                    self.reconnect_attempt = 0
                    await self._set_status(ConnectionStatus.CONNECTED)
                    logger.info("Realtime socket connected")
                    await self._session(ws)
                logger.info("Realtime socket closed")
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.warning(f"Realtime socket error: {e}")
            finally:
                self._ws = None

            await self._set_status(ConnectionStatus.DISCONNECTED)

            if self.reconnect_attempt >= self._max_attempts:
                await self._give_up()
                return

            delay = self.backoff_delay(self.reconnect_attempt)
            logger.info(
                f"Reconnecting in {delay:.1f}s "
                f"({self.reconnect_attempt + 1}/{self._max_attempts})"
            )
            await self._sleep(delay)
            self.reconnect_attempt += 1

    async def _session(self, ws: Any) -> None:
        for topic, payload in self._topics.items():
            await self._send_join(topic, payload)

        heartbeat: asyncio.Task | None = None
        if self._heartbeat_interval:
            heartbeat = asyncio.create_task(self._heartbeat(ws))
        try:
            async for raw in ws:
                await self._handle_frame(raw)
        finally:
            if heartbeat is not None:
                heartbeat.cancel()
                await asyncio.gather(heartbeat, return_exceptions=True)

    async def _heartbeat(self, ws: Any) -> None:
        while True:
            await asyncio.sleep(self._heartbeat_interval)
            try:
                await ws.send(json.dumps({
                    "topic": "phoenix",
                    "event": "heartbeat",
                    "payload": {},
                    "ref": self._next_ref(),
                }))
            except Exception as e:
                logger.debug(f"Heartbeat failed: {e}")
                return

    async def _give_up(self) -> None:
        self._failed = True
        logger.error(f"Realtime connection failed after {self._max_attempts} attempts")
        self._toaster.show(
            "Connection Failed",
            "Unable to maintain real-time connection. Some features may be limited.",
            variant="destructive",
        )
        await self._emit(EventType.REALTIME_FAILED, {"attempts": self._max_attempts})

    # ── Inbound ──────────────────────────────────────────────────────────────

    async def _handle_frame(self, raw: str | bytes) -> None:
        try:
            frame = json.loads(raw)
        except (TypeError, ValueError) as e:
            logger.error(f"Error parsing realtime frame: {e}")
            return
        if not isinstance(frame, dict):
            logger.error(f"Dropping non-object realtime frame: {frame!r}")
            return

        event = frame.get("event") or "unknown"
        payload = frame.get("payload")
        topic = frame.get("topic") or ""
        self._last_message = RealtimeMessage(
            type=event,
            data=payload if payload is not None else frame,
            topic=topic,
        )
        logger.debug(f"Realtime frame: {event} on {topic}")
        await self._emit(
            EventType.REALTIME_MESSAGE,
            {"topic": topic, "event": event, "payload": self._last_message.data},
        )

        if event == DELIVERY_UPDATE:
            self.show_fallback_notification(payload if isinstance(payload, dict) else {})
        elif event == POSTGRES_CHANGES:
            await self._emit(EventType.DELIVERY_CHANGE, {"topic": topic, "payload": payload})

    def show_fallback_notification(self, data: dict[str, Any]) -> None:
        self._local.render(
            data.get("title") or "Delivery Update",
            data.get("message") or "You have a new delivery update",
            data,
        )

    # ── Helpers ──────────────────────────────────────────────────────────────

    async def _send_join(self, topic: str, payload: dict[str, Any]) -> None:
        await self.send_message({
            "topic": topic,
            "event": "phx_join",
            "payload": payload,
            "ref": self._next_ref(),
        })

    def _next_ref(self) -> str:
        self._ref += 1
        return str(self._ref)

    async def _set_status(self, status: ConnectionStatus) -> None:
        self._status = status
        event_type = {
            ConnectionStatus.CONNECTING: EventType.REALTIME_CONNECTING,
            ConnectionStatus.CONNECTED: EventType.REALTIME_CONNECTED,
            ConnectionStatus.DISCONNECTED: EventType.REALTIME_DISCONNECTED,
        }[status]
        await self._emit(event_type, {"reconnect_attempt": self.reconnect_attempt})

    async def _emit(self, event_type: str, data: dict[str, Any]) -> None:
        if self._bus is not None:
            await self._bus.emit(Event(type=event_type, source="realtime", data=data))
