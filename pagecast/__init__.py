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

"""
pagecast - record a live browser page as a constant-frame-rate video.

A Playwright-driven Chromium screencast is paced onto a fixed frame
schedule and piped into ffmpeg, producing an MP4 of exactly the requested
duration regardless of how fast the page renders.
"""

__version__ = "0.3.0"
__author__ = "Firefly Software Solutions Inc"
__license__ = "Apache-2.0"

from pagecast.core.config import RunConfig
from pagecast.core.recorder import RecordingSummary, WebsiteRecorder, record
from pagecast.exceptions import PagecastError

__all__ = [
    "PagecastError",
    "RecordingSummary",
    "RunConfig",
    "WebsiteRecorder",
    "record",
]
