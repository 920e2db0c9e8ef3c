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

"""Wall-clock pacing for constant-frame-rate output."""

from __future__ import annotations

import asyncio
import time
from typing import Awaitable, Callable, Optional

from pagecast.core.run_state import RunContext


class PacingClock:
    """Computes slot deadlines from a fixed origin and sleeps until them.

    ``deadline(i) = origin + (i + 1) / fps``. Every deadline is derived from
    the origin rather than from the previous wake-up, so oversleeping one
    slot never shifts the ones after it.

    Args:
        fps: Output frame rate
        context: When given, a stop request cuts a pending sleep short
        clock: Monotonic time source in seconds
        sleep: Coroutine function used to sleep; overrides the default
            stop-aware sleep
    """

    def __init__(
        self,
        fps: float,
        context: Optional[RunContext] = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Optional[Callable[[float], Awaitable[object]]] = None,
    ) -> None:
        self.fps = fps
        self.interval = 1.0 / fps
        self._context = context
        self._clock = clock
        self._sleep = sleep or self._sleep_until_stopped
        self._origin: Optional[float] = None

    @property
    def origin(self) -> Optional[float]:
        return self._origin

    def start(self) -> float:
        """Fix the schedule origin at the current instant."""
        self._origin = self._clock()
        return self._origin

    def elapsed(self) -> float:
        """Seconds since ``start()``."""
        if self._origin is None:
            return 0.0
        return self._clock() - self._origin

    def deadline(self, index: int) -> float:
        """Deadline of slot ``index`` on the monotonic clock."""
        if self._origin is None:
            raise RuntimeError("PacingClock.start() must be called first")
        return self._origin + (index + 1) * self.interval

    async def wait(self, index: int) -> None:
        """Suspend until slot ``index``'s deadline; return at once if passed."""
        remaining = self.deadline(index) - self._clock()
        if remaining > 0:
            await self._sleep(remaining)

    async def _sleep_until_stopped(self, delay: float) -> None:
        if self._context is None:
            await asyncio.sleep(delay)
        else:
            await self._context.wait_stopped(timeout=delay)
