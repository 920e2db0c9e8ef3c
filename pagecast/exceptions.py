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

"""Custom exceptions for pagecast.

This module defines the exception hierarchy used throughout pagecast.
All exceptions inherit from PagecastError for easy catching and handling.

Exception Hierarchy:
    PagecastError (base)
    ├── ConfigurationError - Configuration errors
    │   └── OptionValidationError - Bad command-line input
    ├── BrowserError - Browser session errors
    ├── NavigationError - Page navigation failures
    ├── CaptureError - Screencast capture failures
    │   ├── StreamAcknowledgmentError - Frame ack could not be sent
    │   └── NoFrameAvailableError - Nothing to write for a slot
    ├── EncoderError - Encoder subprocess errors
    │   ├── EncoderSpawnError - ffmpeg could not be started
    │   └── EncoderExitError - ffmpeg exited unsuccessfully
    └── SignalInterrupt - Run interrupted by SIGINT/SIGTERM

Example:
    try:
        await record(config)
    except EncoderSpawnError:
        # ffmpeg is missing
        pass
    except PagecastError:
        # Catch all pagecast errors
        pass
"""

from __future__ import annotations

from typing import Optional


class PagecastError(Exception):
    """Base exception for all pagecast errors.

    All custom exceptions in pagecast inherit from this class,
    allowing callers to catch every pagecast-specific error with
    a single except clause.
    """
    pass


class ConfigurationError(PagecastError):
    """Exception raised for configuration errors.

    Examples:
        - Invalid configuration values
        - Unusable environment variable overrides
    """
    pass


class OptionValidationError(ConfigurationError):
    """Exception raised for invalid command-line options.

    Raised before any resource (browser, encoder) is acquired.

    Examples:
        - Unknown flag
        - Flag given without a value
        - Duration or fps not a number > 0
    """
    pass


class BrowserError(PagecastError):
    """Exception raised for browser-related errors.

    Raised when the Playwright browser fails to launch, to open a
    page, or to create a CDP session.
    """
    pass


class NavigationError(PagecastError):
    """Exception raised when navigation to the target URL fails.

    Examples:
        - URL is unreachable
        - Navigation timeout
    """
    pass


class CaptureError(PagecastError):
    """Base exception for screencast capture failures."""
    pass


class StreamAcknowledgmentError(CaptureError):
    """Exception raised when a screencast frame cannot be acknowledged.

    Chrome stops producing frames until the previous one is acked, so
    this is fatal for the run. The underlying cause is chained.
    """
    pass


class NoFrameAvailableError(CaptureError):
    """Exception raised when a slot must be written before any frame exists."""
    pass


class EncoderError(PagecastError):
    """Base exception for encoder subprocess errors."""
    pass


class EncoderSpawnError(EncoderError):
    """Exception raised when the encoder binary cannot be started.

    Usually means ffmpeg is not installed or not on PATH.
    """

    def __init__(self, message: str, binary: Optional[str] = None) -> None:
        super().__init__(message)
        self.binary = binary


class EncoderExitError(EncoderError):
    """Exception raised when the encoder exits unsuccessfully.

    Attributes:
        returncode: Exit code, or None when killed by a signal
        signal_name: Name of the terminating signal, if any
    """

    def __init__(
        self,
        message: str,
        returncode: Optional[int] = None,
        signal_name: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.returncode = returncode
        self.signal_name = signal_name


class SignalInterrupt(PagecastError):
    """Exception recorded when the run is interrupted by a signal.

    A signal-triggered shutdown always reports failure, even when the
    partial recording is playable.
    """

    def __init__(self, signal_name: str) -> None:
        super().__init__(f"Received {signal_name}, recording interrupted")
        self.signal_name = signal_name
