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

"""Shared run state passed to every pipeline component.

The RunContext is the explicit shutdown token of a recording: the frame
source, scheduler, pacing clock, encoder sink and shutdown coordinator all
receive the same instance instead of closing over module-level flags.
"""

from __future__ import annotations

import asyncio
from enum import Enum
from typing import Optional

from pagecast.utils.logger import logger


class RunState(str, Enum):
    """Lifecycle phase of a recording run."""
    STARTING = "starting"    # Browser launching, waiting for first frame
    CAPTURING = "capturing"  # Scheduler writing slots
    DRAINING = "draining"    # Teardown in progress
    STOPPED = "stopped"      # Encoder exited and browser closed


_ORDER = {
    RunState.STARTING: 0,
    RunState.CAPTURING: 1,
    RunState.DRAINING: 2,
    RunState.STOPPED: 3,
}


class RunContext:
    """Mutable state of one run: phase, stop flag and first captured error.

    Only the first recorded error is kept; it is the primary cause that gets
    reported. Setting the stop flag also sets ``stop_event`` so suspended
    waits (first frame, settle delay, slot pacing) wake up promptly.
    """

    def __init__(self) -> None:
        self._state = RunState.STARTING
        self._stopped = False
        self._error: Optional[BaseException] = None
        self._stop_event: Optional[asyncio.Event] = None
        self.signal_name: Optional[str] = None

    @property
    def state(self) -> RunState:
        return self._state

    @property
    def stopped(self) -> bool:
        """True once the stop flag has been set."""
        return self._stopped

    @property
    def error(self) -> Optional[BaseException]:
        """The primary error captured during the run, if any."""
        return self._error

    @property
    def stop_event(self) -> asyncio.Event:
        # Created lazily so the event binds to the running loop
        if self._stop_event is None:
            self._stop_event = asyncio.Event()
            if self._stopped:
                self._stop_event.set()
        return self._stop_event

    def transition(self, new_state: RunState) -> bool:
        """Move forward to ``new_state``.

        Returns:
            True if the phase changed; repeated or backward moves are no-ops.
        """
        if _ORDER[new_state] <= _ORDER[self._state]:
            return False
        logger.debug(f"[RUN] {self._state.value} -> {new_state.value}")
        self._state = new_state
        return True

    def request_stop(self) -> None:
        """Set the stop flag. Idempotent."""
        if self._stopped:
            return
        self._stopped = True
        if self._stop_event is not None:
            self._stop_event.set()

    def record_error(self, error: BaseException) -> BaseException:
        """Capture a fatal error and set the stop flag.

        Returns:
            The primary error, which is ``error`` unless one was recorded
            earlier.
        """
        if self._error is None:
            self._error = error
        else:
            logger.debug(f"[RUN] Secondary error ignored: {error}")
        self.request_stop()
        return self._error

    def raise_if_failed(self) -> None:
        """Raise the captured error, if any."""
        if self._error is not None:
            raise self._error

    async def wait_stopped(self, timeout: Optional[float] = None) -> bool:
        """Wait until the stop flag is set or ``timeout`` elapses.

        Returns:
            True if the run was stopped.
        """
        if self._stopped:
            return True
        try:
            await asyncio.wait_for(self.stop_event.wait(), timeout=timeout)
        except asyncio.TimeoutError:
            return False
        return True
