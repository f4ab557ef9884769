"""
NotificationPipeline — the composition root.

Builds every component once from a CourierConfig and hands out
references; nothing in Courier lives in module-level state.

    prober ─┐
            ├─▶ push manager ─▶ push channel ─┐
    backend ┘                                 ├─▶ dispatcher ◀── scheduler
    platform ─▶ local channel ────────────────┘
                     ▲
    realtime channel ┘ (fallback renders)   tracker ◀── bus

Lifecycle: start() refreshes push state, connects the realtime channel
when push is unavailable, and starts the scheduler; stop() tears all of
it down. Use it as an async context manager.
"""

from __future__ import annotations

import logging
from pathlib import Path

from rich.console import Console

from courier.core.bus import EventBus
from courier.core.config import CourierConfig
from courier.core.events import Event, EventType
from courier.middleware.logging import EventLogger
from courier.notifications.capabilities import Capabilities, CapabilityProber
from courier.notifications.channels.local import LocalChannel
from courier.notifications.channels.push import PushChannel
from courier.notifications.dispatcher import Dispatcher
from courier.notifications.preferences import PreferencesService
from courier.notifications.push import PushSubscriptionManager
from courier.notifications.realtime import Connector, RealtimeChannel
from courier.notifications.scheduler import NotificationScheduler
from courier.notifications.tracking import DeliveryTracker
from courier.platform.base import Platform
from courier.platform.headless import HeadlessPlatform
from courier.ratelimit import RateLimiter
from courier.remote.backend import BackendClient
from courier.store.base import CounterStore
from courier.store.memory import MemoryCounterStore
from courier.store.sqlite import SQLiteCounterStore
from courier.ui.toast import Toaster

logger = logging.getLogger(__name__)


class NotificationPipeline:
    """
    Usage:
        pipeline = NotificationPipeline.from_config(CourierConfig.load())
        async with pipeline:
            pipeline.scheduler.schedule_status_update("del-1", "picked_up")
    """

    def __init__(
        self,
        config: CourierConfig,
        *,
        platform: Platform,
        backend: BackendClient,
        store: CounterStore,
        console: Console | None = None,
        connector: Connector | None = None,
        event_log_dir: Path | None = None,
    ) -> None:
        self.config = config
        self.bus = EventBus()
        if event_log_dir is not None:
            self.bus.use(EventLogger(event_log_dir, config.logging.log_events).middleware)

        self.platform = platform
        self.backend = backend
        self.store = store
        self.toaster = Toaster(console=console, bus=self.bus)
        self.prober = CapabilityProber(platform)

        user_id = config.user.id
        self.push = PushSubscriptionManager(
            platform,
            backend,
            self.toaster,
            user_id=user_id,
            application_server_key=config.push.vapid_public_key,
            bus=self.bus,
        )
        self.local_channel = LocalChannel(platform, self.toaster)
        self.push_channel = PushChannel(
            self.push,
            backend,
            relay_function=config.push.relay_function,
            limiter=RateLimiter(
                "push-relay",
                store,
                limit=config.push.rate_limit,
                window=config.push.rate_window,
            ),
        )
        self.realtime = RealtimeChannel(
            config.realtime_url(),
            local=self.local_channel,
            toaster=self.toaster,
            bus=self.bus,
            user_id=user_id,
            max_reconnect_attempts=config.realtime.max_reconnect_attempts,
            base_delay=config.realtime.base_delay,
            max_delay=config.realtime.max_delay,
            connector=connector,
        )
        self.dispatcher = Dispatcher(
            [self.push_channel, self.local_channel],
            realtime=self.realtime,
            bus=self.bus,
        )
        self.scheduler = NotificationScheduler(
            self.dispatcher,
            poll_interval=config.scheduler.poll_interval,
            bus=self.bus,
        )
        self.tracker = DeliveryTracker(self.bus, backend, self.toaster)
        self.preferences = PreferencesService(backend, self.toaster, user_id=user_id)
        self._running = False

    @classmethod
    def from_config(
        cls,
        config: CourierConfig,
        *,
        console: Console | None = None,
        platform: Platform | None = None,
        connector: Connector | None = None,
        log_events: bool = False,
    ) -> "NotificationPipeline":
        backend = BackendClient(
            config.backend.url,
            anon_key=config.backend.anon_key,
            access_token=config.backend.access_token,
            timeout=config.backend.timeout,
        )
        store: CounterStore
        if config.store.backend == "sqlite":
            store = SQLiteCounterStore(config.store.path)
        else:
            store = MemoryCounterStore()
        return cls(
            config,
            platform=platform or HeadlessPlatform.from_config(config, console=console),
            backend=backend,
            store=store,
            console=console,
            connector=connector,
            event_log_dir=Path(config.logging.dir).expanduser() if log_events else None,
        )

    @property
    def running(self) -> bool:
        return self._running

    def capabilities(self) -> Capabilities:
        return self.prober.probe()

    async def start(self) -> None:
        if self._running:
            return
        self._running = True
        logger.info("Notification pipeline starting")

        await self.push.refresh()
        caps = self.capabilities()
        if self._wants_realtime(caps):
            await self.tracker.attach(self.realtime)
            await self.realtime.connect()
        await self.scheduler.start()
        await self.bus.emit(Event(
            type=EventType.PIPELINE_START,
            source="pipeline",
            data={
                "push": self.push.is_subscribed,
                "realtime": self._wants_realtime(caps),
            },
        ))

    async def stop(self) -> None:
        if not self._running:
            return
        self._running = False
        logger.info("Notification pipeline stopping")
        await self.scheduler.stop()
        await self.realtime.disconnect()
        self.tracker.detach()
        await self.backend.close()
        await self.store.close()
        await self.bus.emit(Event(type=EventType.PIPELINE_STOP, source="pipeline"))
        await self.bus.drain()

    async def __aenter__(self) -> "NotificationPipeline":
        await self.start()
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.stop()

    def _wants_realtime(self, caps: Capabilities) -> bool:
        # The socket is a substitute for push, not an addition to it
        return (
            self.config.realtime.enabled
            and caps.has_realtime_socket_support
            and not caps.has_push
        )
