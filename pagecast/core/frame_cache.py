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

"""Single-slot frame cache between the screencast and the scheduler.

The screencast pushes frames at its own pace; the scheduler pulls one frame
per output slot. Only the freshest frame is kept. There is no queue, so a
burst of frames never turns into a backlog that would stretch the output
past its configured duration.

All access happens on the asyncio event loop, so no lock is taken. A port
to real threads would need a lock around ``publish`` and
``select_for_write``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from pagecast.exceptions import NoFrameAvailableError


@dataclass(frozen=True)
class Frame:
    """A decoded screencast frame."""

    sequence_id: int
    payload: bytes


class LatestFrameCache:
    """Holds the latest received frame and the last frame written out."""

    def __init__(self) -> None:
        self._latest: Optional[Frame] = None
        self._last_written: Optional[Frame] = None
        self.published = 0
        self.discarded = 0
        self.fresh_writes = 0
        self.repeated_writes = 0

    @property
    def latest(self) -> Optional[Frame]:
        return self._latest

    @property
    def latest_sequence_id(self) -> int:
        return self._latest.sequence_id if self._latest else 0

    @property
    def last_written_sequence_id(self) -> int:
        return self._last_written.sequence_id if self._last_written else 0

    @property
    def has_frame(self) -> bool:
        return self._latest is not None

    def publish(self, frame: Frame) -> bool:
        """Replace the latest frame if ``frame`` is newer.

        Returns:
            False if the frame was discarded as out of order.
        """
        if frame.sequence_id <= self.latest_sequence_id:
            self.discarded += 1
            return False
        self._latest = frame
        self.published += 1
        return True

    def select_for_write(self) -> Frame:
        """Pick the frame for the next output slot.

        The latest frame is chosen when it is newer than the last written
        one; otherwise the last written frame is repeated.

        Raises:
            NoFrameAvailableError: If no frame has ever been available.
        """
        latest = self._latest
        if latest is not None and latest.sequence_id > self.last_written_sequence_id:
            self._last_written = latest
            self.fresh_writes += 1
            return latest
        if self._last_written is None:
            raise NoFrameAvailableError("No frame available to write.")
        self.repeated_writes += 1
        return self._last_written
