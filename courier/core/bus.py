"""
Courier Event Bus.

Components announce state changes (realtime status, dispatches, inbound
frames) here; subscribers such as the delivery tracker and the CLI react
without holding references to the publishers.

Every event first passes through the middleware chain (event logging),
then fans out to matching subscribers concurrently.
"""

from __future__ import annotations

import asyncio
import fnmatch
import logging
from typing import Awaitable, Callable

from courier.core.events import Event

logger = logging.getLogger(__name__)

EventHandler = Callable[[Event], Awaitable[None]]
MiddlewareNext = Callable[[Event], Awaitable[Event]]
MiddlewareFunc = Callable[[Event, MiddlewareNext], Awaitable[Event]]


class EventBus:
    """
    Publish/subscribe bus with a middleware pipeline.

    Usage:
        bus = EventBus()
        bus.on("realtime:connected", on_connected)
        bus.on("delivery:*", on_delivery)
        bus.use(event_logger.middleware)

        await bus.emit(Event(type="realtime:connected"))
    """

    def __init__(self) -> None:
        self._subscribers: dict[str, list[EventHandler]] = {}
        self._middleware: list[MiddlewareFunc] = []
        self._pending: set[asyncio.Task] = set()

    def on(self, event_type: str, handler: EventHandler) -> None:
        """Subscribe to an event type. Supports 'category:*' and '*'."""
        self._subscribers.setdefault(event_type, []).append(handler)

    def off(self, event_type: str, handler: EventHandler) -> None:
        """Unsubscribe a handler. Unknown handlers are ignored."""
        handlers = self._subscribers.get(event_type)
        if not handlers:
            return
        # bound methods are equal, not identical, across lookups
        remaining = [h for h in handlers if h != handler]
        if remaining:
            self._subscribers[event_type] = remaining
        else:
            del self._subscribers[event_type]

    def use(self, middleware: MiddlewareFunc) -> None:
        """
        Append a middleware. Middleware runs in registration order:

            async def mw(event: Event, next: MiddlewareNext) -> Event:
                return await next(event)
        """
        self._middleware.append(middleware)

    async def emit(self, event: Event) -> Event:
        """Run the event through middleware, then deliver to subscribers."""
        chain = self._build_chain()
        return await chain(event)

    def emit_nowait(self, event: Event) -> None:
        """
        Schedule an emit on the running loop and return immediately.

        Used from synchronous code paths (toasts). Without a running loop
        the event is dropped with a debug log.
        """
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug(f"No event loop for nowait emit: {event.type}")
            return
        task = loop.create_task(self._emit_safe(event))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    @property
    def pending_count(self) -> int:
        """Nowait emits scheduled but not finished."""
        return len(self._pending)

    async def drain(self) -> None:
        """Wait for every outstanding nowait emit."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    @property
    def subscriber_count(self) -> int:
        return sum(len(subs) for subs in self._subscribers.values())

    # ━━━ Internals ━━━

    def _build_chain(self) -> MiddlewareNext:
        async def dispatch(event: Event) -> Event:
            handlers = self._find_handlers(event.type)
            if handlers:
                results = await asyncio.gather(
                    *(h(event) for h in handlers),
                    return_exceptions=True,
                )
                for result in results:
                    if isinstance(result, Exception):
                        logger.error(
                            f"Subscriber error for {event.type}: {result}",
                            exc_info=result,
                        )
            return event

        handler: MiddlewareNext = dispatch
        for mw in reversed(self._middleware):

            async def wrapped(
                event: Event,
                *,
                _mw: MiddlewareFunc = mw,
                _next: MiddlewareNext = handler,
            ) -> Event:
                return await _mw(event, _next)

            handler = wrapped

        return handler

    def _find_handlers(self, event_type: str) -> list[EventHandler]:
        handlers: list[EventHandler] = []
        for pattern, subs in self._subscribers.items():
            if pattern == event_type or pattern == "*":
                handlers.extend(subs)
            elif "*" in pattern and fnmatch.fnmatch(event_type, pattern):
                handlers.extend(subs)
        return handlers

    async def _emit_safe(self, event: Event) -> None:
        try:
            await self.emit(event)
        except Exception as e:
            logger.error(f"Error in nowait emit for {event.type}: {e}")
