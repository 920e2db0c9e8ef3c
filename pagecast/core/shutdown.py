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

"""Idempotent teardown of a recording run."""

from __future__ import annotations

import asyncio
from typing import Any, Optional

from pagecast.core.run_state import RunContext, RunState
from pagecast.exceptions import EncoderExitError
from pagecast.utils.logger import logger

# Bound on reaping the encoder after it has been killed
KILL_WAIT_SECONDS = 5.0


class ShutdownCoordinator:
    """Stops the frame source, the encoder and the browser, in that order.

    ``stop()`` may be called any number of times, concurrently, from normal
    completion, an error path or a signal handler. The first call starts a
    single teardown task and every caller awaits that same task. Each step
    runs even if an earlier one failed; secondary failures are logged, and
    the encoder's exit failure is kept in ``encoder_error``.

    Components are registered with ``attach()`` once they have started. A
    component that finishes starting after teardown began is torn down by
    ``attach()`` itself, so a stop during startup leaves nothing running.
    """

    def __init__(
        self,
        context: RunContext,
        encoder_exit_timeout: float = 30.0,
    ) -> None:
        self._context = context
        self.encoder_exit_timeout = encoder_exit_timeout
        self.frame_source: Optional[Any] = None
        self.encoder: Optional[Any] = None
        self.browser: Optional[Any] = None
        self.encoder_error: Optional[BaseException] = None
        self._stop_task: Optional[asyncio.Task] = None

    @property
    def started(self) -> bool:
        return self._stop_task is not None

    async def attach(self, name: str, component: Any) -> None:
        """Register a started ``frame_source``, ``encoder`` or ``browser``.

        If teardown has already begun, waits for it and then tears the
        component down on the spot.
        """
        steps = {
            "frame_source": self._stop_frame_source,
            "encoder": self._stop_encoder,
            "browser": self._stop_browser,
        }
        if name not in steps:
            raise ValueError(f"Unknown component: {name}")
        if self._stop_task is None:
            setattr(self, name, component)
            return
        await asyncio.shield(self._stop_task)
        logger.debug(f"[SHUTDOWN] Tearing down {name} started after stop")
        await steps[name](component)

    async def stop(self) -> None:
        """Run the teardown sequence once; later calls await the same run."""
        if self._stop_task is None:
            self._stop_task = asyncio.ensure_future(self._teardown())
        await asyncio.shield(self._stop_task)

    async def _teardown(self) -> None:
        context = self._context
        context.request_stop()
        context.transition(RunState.DRAINING)
        logger.debug("[SHUTDOWN] Stopping recording...")

        if self.frame_source is not None:
            await self._stop_frame_source(self.frame_source)
        if self.encoder is not None:
            await self._stop_encoder(self.encoder)
        if self.browser is not None:
            await self._stop_browser(self.browser)

        context.transition(RunState.STOPPED)
        logger.debug("[SHUTDOWN] Stopped")

    async def _stop_frame_source(self, frame_source: Any) -> None:
        try:
            await frame_source.stop()
        except Exception as e:
            logger.debug(f"[SHUTDOWN] Error stopping screencast: {e}")

    async def _stop_encoder(self, encoder: Any) -> None:
        try:
            encoder.close()
        except Exception as e:
            logger.debug(f"[SHUTDOWN] Error closing encoder input: {e}")

        try:
            await asyncio.wait_for(encoder.wait_for_exit(), timeout=self.encoder_exit_timeout)
        except asyncio.TimeoutError:
            self.encoder_error = EncoderExitError(
                f"ffmpeg did not exit within {self.encoder_exit_timeout:.0f}s"
            )
            await self._kill_encoder(encoder)
        except Exception as e:
            self.encoder_error = e
            logger.debug(f"[SHUTDOWN] Encoder failed: {e}")

    async def _kill_encoder(self, encoder: Any) -> None:
        try:
            encoder.kill()
        except Exception as e:
            logger.debug(f"[SHUTDOWN] Error killing encoder: {e}")
            return
        # Reap the killed process; its exit status is already reported
        try:
            await asyncio.wait_for(encoder.wait_for_exit(), timeout=KILL_WAIT_SECONDS)
        except Exception as e:
            logger.debug(f"[SHUTDOWN] Killed encoder exited: {e or type(e).__name__}")

    async def _stop_browser(self, browser: Any) -> None:
        try:
            await browser.stop()
        except Exception as e:
            logger.debug(f"[SHUTDOWN] Error closing browser: {e}")
