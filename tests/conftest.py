"""Shared test fixtures for Courier."""

from __future__ import annotations

import asyncio
import json
from typing import Any

import httpx
import pytest

from courier.core.bus import EventBus
from courier.core.config import CourierConfig
from courier.platform.base import Permission, PushSubscriptionInfo
from courier.platform.headless import HeadlessPlatform
from courier.remote.backend import BackendClient
from courier.ui.toast import Toaster


# ── Fakes ────────────────────────────────────────────────────────────────────


class BackendRecorder:
    """Scripted responses for BackendClient via httpx.MockTransport."""

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self._responses: dict[tuple[str, str], tuple[int, Any]] = {}

    def respond(self, method: str, path: str, status: int = 200, body: Any = None) -> None:
        self._responses[(method, path)] = (status, body)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        status, body = self._responses.get(
            (request.method, request.url.path), (200, [])
        )
        return httpx.Response(status, json=body)

    def calls(self, method: str, path: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.method == method and r.url.path == path]

    @staticmethod
    def body(request: httpx.Request) -> Any:
        return json.loads(request.content)


class FakeSocket:
    """Websocket stand-in: yields queued frames, ends on close()."""

    def __init__(self, frames: list[Any] | None = None, close: bool = False) -> None:
        self.sent: list[dict] = []
        self._queue: asyncio.Queue = asyncio.Queue()
        for frame in frames or []:
            self._queue.put_nowait(frame)
        if close:
            self._queue.put_nowait(None)

    async def send(self, data: str) -> None:
        self.sent.append(json.loads(data))

    def feed(self, frame: Any) -> None:
        self._queue.put_nowait(frame)

    def close(self) -> None:
        self._queue.put_nowait(None)

    def __aiter__(self) -> "FakeSocket":
        return self

    async def __anext__(self) -> Any:
        frame = await self._queue.get()
        if frame is None:
            raise StopAsyncIteration
        return frame


class _Connection:
    def __init__(self, outcome: Any) -> None:
        self._outcome = outcome

    async def __aenter__(self) -> Any:
        if isinstance(self._outcome, BaseException):
            raise self._outcome
        return self._outcome

    async def __aexit__(self, *exc: object) -> bool:
        return False


class FakeConnector:
    """Plays back a script of sockets / exceptions, then refuses."""

    def __init__(self, script: list[Any] | None = None) -> None:
        self.script = list(script or [])
        self.urls: list[str] = []

    @property
    def calls(self) -> int:
        return len(self.urls)

    def __call__(self, url: str) -> _Connection:
        self.urls.append(url)
        outcome = self.script.pop(0) if self.script else ConnectionRefusedError("refused")
        return _Connection(outcome)


class SleepRecorder:
    """Instant replacement for asyncio.sleep that records delays."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)
        await asyncio.sleep(0)


class FakeClock:
    def __init__(self, now: float = 1_750_000_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


async def wait_until(predicate, timeout: float = 1.0) -> None:
    """Yield to the loop until predicate() holds."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not reached in time")
        await asyncio.sleep(0.001)


# ── Fixtures ─────────────────────────────────────────────────────────────────

SUBSCRIPTION = PushSubscriptionInfo(
    endpoint="https://push.example.com/send/abc",
    p256dh="BNcR-key",
    auth="tBHI-auth",
)


@pytest.fixture
def config():
    """Default config without loading from disk."""
    return CourierConfig()


@pytest.fixture
def bus():
    return EventBus()


@pytest.fixture
def toaster():
    return Toaster()


@pytest.fixture
def recorder():
    return BackendRecorder()


@pytest.fixture
def backend(recorder):
    return BackendClient(
        "http://backend.test",
        anon_key="anon-key",
        transport=httpx.MockTransport(recorder.handler),
    )


@pytest.fixture
def platform():
    """Push-capable platform that grants permission on request."""
    return HeadlessPlatform(provisioned=SUBSCRIPTION, permission=Permission.DEFAULT)


@pytest.fixture
def clock():
    return FakeClock()
