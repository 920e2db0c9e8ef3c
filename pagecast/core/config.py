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

"""Run configuration for a single recording.

A RunConfig is built once per process run, validated on construction and
never mutated afterwards. The schedule (number of output slots and their
spacing) is derived from it.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Optional
from urllib.parse import urlsplit

from pagecast.exceptions import OptionValidationError

OUTPUT_WIDTH = 1080
OUTPUT_HEIGHT = 1920
DEFAULT_URL = "http://localhost:3000"
DEFAULT_DURATION = 10.0
DEFAULT_FPS = 60.0
DEFAULT_OUTPUT = f"recording_{OUTPUT_WIDTH}x{OUTPUT_HEIGHT}.mp4"
DEFAULT_WAIT = 0.01
DEFAULT_JPEG_QUALITY = 80
DEFAULT_NAVIGATION_TIMEOUT_MS = 60000
DEFAULT_ENCODER_EXIT_TIMEOUT = 30.0

# Schemes that are complete without a network location
_OPAQUE_SCHEMES = ("about", "data", "file", "chrome")


def normalize_url(raw_url: Optional[str]) -> str:
    """Return a navigable URL, prefixing ``http://`` when no scheme is given.

    >>> normalize_url("example.com")
    'http://example.com'
    >>> normalize_url("localhost:3000")
    'http://localhost:3000'
    """
    if not raw_url:
        return DEFAULT_URL
    parts = urlsplit(raw_url)
    if parts.scheme and (parts.netloc or parts.scheme in _OPAQUE_SCHEMES):
        return raw_url
    return f"http://{raw_url}"


def compute_total_frames(duration_seconds: float, fps: float) -> int:
    """Number of output slots for a run: ``ceil(duration * fps)``.

    The product is rounded to 9 decimals first so that binary floating
    point noise (``0.1 * 30 == 3.0000000000000004``) does not add a slot.
    """
    return math.ceil(round(duration_seconds * fps, 9))


def _is_positive_number(value: float) -> bool:
    return isinstance(value, (int, float)) and math.isfinite(value) and value > 0


@dataclass(frozen=True)
class RunConfig:
    """Validated settings for one recording run.

    Attributes:
        target_url: Page to record
        duration_seconds: Length of the output video (> 0)
        fps: Constant output frame rate (> 0)
        output_path: Destination MP4 file
        post_load_wait_seconds: Settle delay after navigation (>= 0)
        headless: Run Chromium without a window
        ffmpeg_path: Encoder binary name or path
        output_width: Output video width in pixels
        output_height: Output video height in pixels
        jpeg_quality: Screencast JPEG quality (0-100)
        navigation_timeout_ms: Page load timeout
        encoder_exit_timeout: Bound on waiting for ffmpeg during shutdown
    """

    target_url: str = DEFAULT_URL
    duration_seconds: float = DEFAULT_DURATION
    fps: float = DEFAULT_FPS
    output_path: str = DEFAULT_OUTPUT
    post_load_wait_seconds: float = DEFAULT_WAIT
    headless: bool = True
    ffmpeg_path: str = "ffmpeg"
    output_width: int = OUTPUT_WIDTH
    output_height: int = OUTPUT_HEIGHT
    jpeg_quality: int = DEFAULT_JPEG_QUALITY
    navigation_timeout_ms: int = DEFAULT_NAVIGATION_TIMEOUT_MS
    encoder_exit_timeout: float = DEFAULT_ENCODER_EXIT_TIMEOUT

    def __post_init__(self) -> None:
        if not _is_positive_number(self.duration_seconds):
            raise OptionValidationError("Duration must be a number > 0.")
        if not _is_positive_number(self.fps):
            raise OptionValidationError("FPS must be a number > 0.")
        wait = self.post_load_wait_seconds
        if not isinstance(wait, (int, float)) or not math.isfinite(wait) or wait < 0:
            raise OptionValidationError("Wait must be a number >= 0.")
        if not self.output_path:
            raise OptionValidationError("Output file path is required.")
        if not self.ffmpeg_path:
            raise OptionValidationError("ffmpeg path must not be empty.")
        if self.output_width <= 0 or self.output_height <= 0:
            raise OptionValidationError("Output dimensions must be > 0.")
        if not 0 <= self.jpeg_quality <= 100:
            raise OptionValidationError("JPEG quality must be between 0 and 100.")
        if self.encoder_exit_timeout <= 0:
            raise OptionValidationError("Encoder exit timeout must be > 0.")
        # Frozen dataclass: normalize through object.__setattr__
        object.__setattr__(self, "target_url", normalize_url(self.target_url))

    @property
    def total_frames(self) -> int:
        """Number of output slots in the schedule."""
        return compute_total_frames(self.duration_seconds, self.fps)

    @property
    def frame_interval(self) -> float:
        """Seconds between consecutive slot deadlines."""
        return 1.0 / self.fps
