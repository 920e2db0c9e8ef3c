# Copyright 2026 Firefly Software Solutions Inc
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""Website recorder: wires the capture pipeline together for one run.

Data flows screencast -> LatestFrameCache -> FrameScheduler -> EncoderSink
-> MP4 file. The ShutdownCoordinator can stop the pipeline from any point:
normal completion, a captured error, or SIGINT/SIGTERM.
"""

from __future__ import annotations

import asyncio
import os
import signal
import time
from dataclasses import dataclass
from typing import Optional

from pagecast.core.browser import BrowserManager
from pagecast.core.config import RunConfig
from pagecast.core.encoder import EncoderSink
from pagecast.core.frame_cache import LatestFrameCache
from pagecast.core.frame_source import ScreencastFrameSource
from pagecast.core.pacing import PacingClock
from pagecast.core.run_state import RunContext, RunState
from pagecast.core.scheduler import FrameScheduler
from pagecast.core.shutdown import ShutdownCoordinator
from pagecast.exceptions import NoFrameAvailableError, SignalInterrupt
from pagecast.utils.logger import logger

HANDLED_SIGNALS = (signal.SIGINT, signal.SIGTERM)


@dataclass
class RecordingSummary:
    """Outcome of a successful recording."""

    output_path: str
    total_frames: int = 0
    frames_written: int = 0
    frames_received: int = 0
    fresh_frames: int = 0
    repeated_frames: int = 0
    duration_seconds: float = 0.0
    file_size_bytes: int = 0


class WebsiteRecorder:
    """Records a web page to a constant-frame-rate MP4.

    Example:
        >>> recorder = WebsiteRecorder(RunConfig(target_url="example.com", duration_seconds=5))
        >>> summary = await recorder.run()
    """

    def __init__(self, config: RunConfig) -> None:
        self.config = config
        self.context = RunContext()
        self.cache = LatestFrameCache()
        self.coordinator = ShutdownCoordinator(
            self.context, encoder_exit_timeout=config.encoder_exit_timeout
        )
        self.browser: Optional[BrowserManager] = None
        self.frame_source: Optional[ScreencastFrameSource] = None
        self.encoder: Optional[EncoderSink] = None
        self.scheduler: Optional[FrameScheduler] = None
        self._signal_handlers_installed = False
        self._signal_stop_task: Optional[asyncio.Task] = None

    @property
    def state(self) -> RunState:
        return self.context.state

    async def run(self) -> RecordingSummary:
        """Record the page.

        Raises:
            PagecastError: The primary failure of the run; teardown has
                already completed when it is raised.
        """
        config = self.config
        logger.info(
            f"Recording {config.target_url} at {config.output_width}x{config.output_height}, "
            f"{config.fps:g}fps for {config.duration_seconds:g}s..."
        )
        started = time.monotonic()
        self._install_signal_handlers()
        try:
            await self._capture()
            await self.coordinator.stop()
            self.context.raise_if_failed()
            if self.coordinator.encoder_error is not None:
                raise self.coordinator.encoder_error
        except Exception as exc:
            primary = self.context.record_error(exc)
            await self.coordinator.stop()
            if primary is exc:
                raise
            raise primary from None
        finally:
            self._remove_signal_handlers()

        logger.info(f"Saved {config.output_path}")
        return self._summary(time.monotonic() - started)

    async def _capture(self) -> None:
        config = self.config
        context = self.context

        self.browser = BrowserManager(
            headless=config.headless,
            width=config.output_width,
            height=config.output_height,
        )
        await self.browser.start()
        await self.coordinator.attach("browser", self.browser)
        context.raise_if_failed()

        await self.browser.goto(config.target_url, timeout_ms=config.navigation_timeout_ms)
        context.raise_if_failed()

        if config.post_load_wait_seconds > 0:
            logger.info(f"Waiting {config.post_load_wait_seconds:g}s before capture...")
            await context.wait_stopped(timeout=config.post_load_wait_seconds)
            context.raise_if_failed()

        session = await self.browser.new_cdp_session()
        self.frame_source = ScreencastFrameSource(
            session, self.cache, context, quality=config.jpeg_quality
        )
        await self.frame_source.start(config.output_width, config.output_height)
        await self.coordinator.attach("frame_source", self.frame_source)
        context.raise_if_failed()

        self.encoder = EncoderSink(config, context)
        await self.encoder.start()
        await self.coordinator.attach("encoder", self.encoder)
        context.raise_if_failed()

        if not await self.frame_source.wait_for_first_frame():
            context.raise_if_failed()
            raise NoFrameAvailableError("Failed to receive the first frame.")
        context.raise_if_failed()
        context.transition(RunState.CAPTURING)

        clock = PacingClock(config.fps, context=context)
        self.scheduler = FrameScheduler(
            self.cache, self.encoder, clock, context, config.total_frames
        )
        await self.scheduler.run()

    def _summary(self, elapsed: float) -> RecordingSummary:
        path = self.config.output_path
        return RecordingSummary(
            output_path=path,
            total_frames=self.config.total_frames,
            frames_written=self.scheduler.frames_written if self.scheduler else 0,
            frames_received=self.frame_source.frames_received if self.frame_source else 0,
            fresh_frames=self.cache.fresh_writes,
            repeated_frames=self.cache.repeated_writes,
            duration_seconds=elapsed,
            file_size_bytes=os.path.getsize(path) if os.path.exists(path) else 0,
        )

    def _on_signal(self, sig: signal.Signals) -> None:
        # Later signals are ignored while shutdown runs
        self._remove_signal_handlers()
        logger.error(f"Received {sig.name}, shutting down...")
        self.context.signal_name = sig.name
        self.context.record_error(SignalInterrupt(sig.name))
        self._signal_stop_task = asyncio.ensure_future(self.coordinator.stop())

    def _install_signal_handlers(self) -> None:
        loop = asyncio.get_running_loop()
        for sig in HANDLED_SIGNALS:
            try:
                loop.add_signal_handler(sig, self._on_signal, sig)
            except (NotImplementedError, RuntimeError, ValueError):
                logger.debug(f"Signal handler for {sig.name} not supported here")
                continue
            self._signal_handlers_installed = True

    def _remove_signal_handlers(self) -> None:
        if not self._signal_handlers_installed:
            return
        self._signal_handlers_installed = False
        loop = asyncio.get_running_loop()
        for sig in HANDLED_SIGNALS:
            try:
                loop.remove_signal_handler(sig)
            except (NotImplementedError, RuntimeError, ValueError):
                continue


async def record(config: RunConfig) -> RecordingSummary:
    """Record ``config.target_url`` to ``config.output_path``."""
    return await WebsiteRecorder(config).run()
