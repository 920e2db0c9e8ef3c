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

"""Constant-frame-rate driver loop."""

from __future__ import annotations

from typing import Optional

from pagecast.core.encoder import EncoderSink
from pagecast.core.frame_cache import LatestFrameCache
from pagecast.core.pacing import PacingClock
from pagecast.core.run_state import RunContext
from pagecast.utils.logger import logger


class FrameScheduler:
    """Writes exactly one frame per output slot.

    Each slot takes the freshest cached frame, or repeats the last written
    one when nothing new arrived. The loop never waits for a fresh frame,
    so the output keeps its cadence and duration even when the page renders
    slower than the target fps. Slots are written strictly in order.
    """

    def __init__(
        self,
        cache: LatestFrameCache,
        encoder: EncoderSink,
        clock: PacingClock,
        context: RunContext,
        total_frames: int,
        log_every: Optional[int] = None,
    ) -> None:
        self._cache = cache
        self._encoder = encoder
        self._clock = clock
        self._context = context
        self.total_frames = total_frames
        # Roughly once per nominal second
        self.log_every = log_every or max(1, int(clock.fps + 0.5))
        self.frames_written = 0

    async def run(self) -> int:
        """Drive all slots.

        Returns:
            Number of frames written; less than ``total_frames`` only when
            the run was stopped without an error.

        Raises:
            The error captured on the RunContext, NoFrameAvailableError, or
            whatever the encoder write raised.
        """
        self._clock.start()
        logger.debug(f"[SCHEDULER] Writing {self.total_frames} frames at {self._clock.fps} fps")

        for index in range(self.total_frames):
            self._context.raise_if_failed()
            if self._context.stopped:
                logger.info(f"[SCHEDULER] Stopped after {self.frames_written}/{self.total_frames} frames")
                break

            frame = self._cache.select_for_write()
            await self._encoder.write(frame.payload)
            self.frames_written += 1

            await self._clock.wait(index)

            written = index + 1
            if written % self.log_every == 0 or written == self.total_frames:
                seconds = written / self._clock.fps
                logger.info(f"Captured {written}/{self.total_frames} frames ({seconds:.1f}s)")

        return self.frames_written
