# Copyright 2026 Firefly Software Solutions Inc
# SPDX-License-Identifier: Apache-2.0

"""Shared fixtures for pagecast tests."""

import asyncio
import base64
from typing import Any, Callable, Dict, List, Optional, Tuple
from unittest.mock import AsyncMock, MagicMock

import pytest

from pagecast.core.config import RunConfig
from pagecast.core.run_state import RunContext


class FakeCDPSession:
    """In-memory stand-in for a Playwright CDPSession."""

    def __init__(self) -> None:
        self.handlers: Dict[str, List[Callable]] = {}
        self.sent: List[Tuple[str, Any]] = []
        self.fail_acks = False
        self.on_ack: Optional[Callable[[Dict[str, Any]], None]] = None
        self.frames_on_start: List[Dict[str, Any]] = []

    def on(self, event: str, handler: Callable) -> None:
        self.handlers.setdefault(event, []).append(handler)

    def remove_listener(self, event: str, handler: Callable) -> None:
        self.handlers.get(event, []).remove(handler)

    async def send(self, method: str, params: Any = None) -> Dict[str, Any]:
        self.sent.append((method, params))
        if method == "Page.screencastFrameAck":
            if self.on_ack is not None:
                self.on_ack(params)
            if self.fail_acks:
                raise RuntimeError("Target page, context or browser has been closed")
        elif method == "Page.startScreencast":
            loop = asyncio.get_running_loop()
            for frame in self.frames_on_start:
                loop.call_soon(self.emit, "Page.screencastFrame", frame)
        return {}

    def emit(self, event: str, params: Dict[str, Any]) -> None:
        for handler in list(self.handlers.get(event, [])):
            handler(params)

    def methods(self) -> List[str]:
        return [method for method, _ in self.sent]

    def acked_session_ids(self) -> List[Any]:
        return [
            params["sessionId"]
            for method, params in self.sent
            if method == "Page.screencastFrameAck"
        ]


class FakeClock:
    """Manual monotonic clock whose sleep advances time instantly."""

    def __init__(self, start: float = 0.0) -> None:
        self.now = start
        self.sleeps: List[float] = []
        self._timers: List[Tuple[float, Callable[[], None]]] = []

    def __call__(self) -> float:
        return self.now

    def at(self, when: float, callback: Callable[[], None]) -> None:
        """Run ``callback`` once the clock reaches ``when``."""
        self._timers.append((when, callback))

    def advance(self, delta: float) -> None:
        self.now += delta
        due = [timer for timer in self._timers if self.now >= timer[0] - 1e-9]
        for timer in due:
            self._timers.remove(timer)
            timer[1]()

    async def sleep(self, delay: float) -> None:
        self.sleeps.append(delay)
        self.advance(delay)


class FakeEncoder:
    """Records frames instead of piping them into ffmpeg."""

    def __init__(self) -> None:
        self.payloads: List[bytes] = []
        self.started = False
        self.close_calls = 0
        self.closed = False
        self.killed = False
        self.start_error: Optional[BaseException] = None
        self.exit_error: Optional[BaseException] = None
        self.exit_delay = 0.0
        self.exit_waits = 0
        self.start_delay = 0.0
        self.on_start: Optional[Callable[[], None]] = None
        self.on_write: Optional[Callable[[int], None]] = None

    async def start(self) -> None:
        if self.on_start is not None:
            self.on_start()
        if self.start_delay:
            await asyncio.sleep(self.start_delay)
        if self.start_error is not None:
            raise self.start_error
        self.started = True

    async def write(self, data: bytes) -> None:
        self.payloads.append(data)
        if self.on_write is not None:
            self.on_write(len(self.payloads))

    def close(self) -> None:
        self.close_calls += 1
        self.closed = True

    async def wait_for_exit(self) -> int:
        self.exit_waits += 1
        if self.exit_delay:
            await asyncio.sleep(self.exit_delay)
        if self.start_error is not None:
            raise self.start_error
        if self.exit_error is not None:
            raise self.exit_error
        return 0

    def kill(self) -> None:
        self.killed = True
        self.exit_delay = 0.0


def encode_frame(payload: bytes, session_id: int) -> Dict[str, Any]:
    """Build a ``Page.screencastFrame`` event body."""
    return {
        "data": base64.b64encode(payload).decode("ascii"),
        "sessionId": session_id,
        "metadata": {"timestamp": 0.0},
    }


async def settle(rounds: int = 10) -> None:
    """Let pending callbacks and tasks run."""
    for _ in range(rounds):
        await asyncio.sleep(0)


@pytest.fixture
def cdp_session():
    """Fake CDP session."""
    return FakeCDPSession()


@pytest.fixture
def fake_clock():
    """Fake monotonic clock starting at 0."""
    return FakeClock()


@pytest.fixture
def fake_encoder():
    """Fake encoder sink."""
    return FakeEncoder()


@pytest.fixture
def frame_event():
    """Factory for screencast frame events."""
    return encode_frame


@pytest.fixture
def settle_tasks():
    """Coroutine function that lets pending tasks run."""
    return settle


@pytest.fixture
def run_context():
    """Fresh run context."""
    return RunContext()


@pytest.fixture
def run_config(tmp_path):
    """Short recording configuration writing into a temp dir."""
    return RunConfig(
        target_url="http://localhost:3000",
        duration_seconds=0.3,
        fps=10,
        output_path=str(tmp_path / "out.mp4"),
        post_load_wait_seconds=0,
    )


@pytest.fixture
def mock_playwright():
    """Mock Playwright instance with a Chromium launcher."""
    playwright = MagicMock()
    browser = AsyncMock()
    context = AsyncMock()
    page = AsyncMock()
    browser.new_context = AsyncMock(return_value=context)
    context.new_page = AsyncMock(return_value=page)
    playwright.chromium.launch = AsyncMock(return_value=browser)
    playwright.stop = AsyncMock()
    return playwright
