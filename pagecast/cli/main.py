#!/usr/bin/env python3
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
pagecast CLI.

Record a website as a 1080x1920 mp4 using Playwright + ffmpeg.

Usage:
    pagecast --url <url> --duration <seconds> [options]

    Or with Python:
    python -m pagecast --url <url>

Environment Variables:
    PAGECAST_URL, PAGECAST_DURATION, PAGECAST_OUT, PAGECAST_FPS,
    PAGECAST_WAIT       Override the option defaults
    PAGECAST_FFMPEG_PATH  ffmpeg binary to run (default: ffmpeg)
    PAGECAST_LOG_LEVEL    Log level (default: INFO)
"""

from __future__ import annotations

import argparse
import asyncio
import os
import sys
from typing import List, NoReturn, Optional

from pagecast.core.config import (
    DEFAULT_DURATION,
    DEFAULT_FPS,
    DEFAULT_OUTPUT,
    DEFAULT_URL,
    DEFAULT_WAIT,
    OUTPUT_HEIGHT,
    OUTPUT_WIDTH,
    RunConfig,
)
from pagecast.core.recorder import record
from pagecast.exceptions import EncoderSpawnError, OptionValidationError
from pagecast.utils.logger import logger, setup_logger

FFMPEG_HINT = "ffmpeg was not found on your PATH. Please install ffmpeg and try again."


class OptionParser(argparse.ArgumentParser):
    """ArgumentParser that raises OptionValidationError instead of exiting."""

    def error(self, message: str) -> NoReturn:
        raise OptionValidationError(message)


def build_parser() -> OptionParser:
    """Build the argument parser; defaults honour PAGECAST_* variables."""
    parser = OptionParser(
        prog="pagecast",
        description=(
            f"Record a website as a {OUTPUT_WIDTH}x{OUTPUT_HEIGHT} mp4 "
            f"using Playwright + ffmpeg."
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
        allow_abbrev=False,
        epilog="""
Examples:
  pagecast --url localhost:3000 --duration 10
  pagecast -u https://example.com -d 5 -f 30 -o example.mp4
  pagecast --url=https://example.com --headful --wait 2
        """,
    )
    parser.add_argument(
        "-u", "--url",
        default=os.environ.get("PAGECAST_URL", DEFAULT_URL),
        help=f"Target URL (default: {DEFAULT_URL})",
    )
    parser.add_argument(
        "-d", "--duration",
        type=float,
        default=os.environ.get("PAGECAST_DURATION", str(DEFAULT_DURATION)),
        help=f"Duration in seconds (default: {DEFAULT_DURATION:g})",
    )
    parser.add_argument(
        "-o", "--out",
        default=os.environ.get("PAGECAST_OUT", DEFAULT_OUTPUT),
        help=f"Output file (default: {DEFAULT_OUTPUT})",
    )
    parser.add_argument(
        "-f", "--fps",
        type=float,
        default=os.environ.get("PAGECAST_FPS", str(DEFAULT_FPS)),
        help=f"Frames per second (default: {DEFAULT_FPS:g})",
    )
    parser.add_argument(
        "-w", "--wait",
        type=float,
        default=os.environ.get("PAGECAST_WAIT", str(DEFAULT_WAIT)),
        help=f"Seconds to wait after load (default: {DEFAULT_WAIT:g})",
    )
    parser.add_argument(
        "--headful",
        action="store_true",
        help="Run Chromium with a visible window",
    )
    return parser


def parse_config(argv: Optional[List[str]] = None) -> RunConfig:
    """Parse and validate command-line arguments.

    Raises:
        OptionValidationError: On unknown flags, missing values or
            out-of-range numbers
    """
    args = build_parser().parse_args(argv)
    return RunConfig(
        target_url=args.url,
        duration_seconds=args.duration,
        fps=args.fps,
        output_path=args.out,
        post_load_wait_seconds=args.wait,
        headless=not args.headful,
        ffmpeg_path=os.environ.get("PAGECAST_FFMPEG_PATH", "ffmpeg"),
    )


def main(argv: Optional[List[str]] = None) -> int:
    """Run the recorder and return the process exit code."""
    try:
        config = parse_config(argv)
    except OptionValidationError as e:
        print(f"Error: {e}", file=sys.stderr)
        build_parser().print_usage(sys.stderr)
        print("Run with --help for the full list of options.", file=sys.stderr)
        return 1

    setup_logger()

    try:
        asyncio.run(record(config))
    except EncoderSpawnError:
        logger.error(FFMPEG_HINT)
        return 1
    except Exception as e:
        logger.error(str(e) or type(e).__name__)
        return 1
    return 0


def run() -> None:
    """Console script entry point."""
    sys.exit(main())


if __name__ == "__main__":
    run()
