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

"""ffmpeg encoder sink.

Screencast frames arrive as complete JPEG images. They are piped unchanged
into ffmpeg's ``image2pipe``/``mjpeg`` demuxer, which re-times them at the
configured rate and encodes a fast-start H.264 MP4 at a fixed output size.
"""

from __future__ import annotations

import asyncio
import collections
import signal
from typing import Deque, List, Optional

from pagecast.core.config import RunConfig
from pagecast.core.run_state import RunContext
from pagecast.exceptions import EncoderError, EncoderExitError, EncoderSpawnError
from pagecast.utils.logger import logger

STDERR_TAIL_LINES = 20


def format_rate(fps: float) -> str:
    """Render a frame rate for the ffmpeg command line (60.0 -> "60")."""
    fps = float(fps)
    return str(int(fps)) if fps.is_integer() else repr(fps)


def build_ffmpeg_args(fps: float, output: str, width: int, height: int) -> List[str]:
    """Build the ffmpeg arguments (without the binary) for one recording.

    Input is an MJPEG image stream on stdin at ``fps``; output is scaled to
    fit ``width``x``height``, letterboxed to the exact size, yuv420p H.264
    High@4.1 at ``fps`` with the moov atom moved to the front.
    """
    rate = format_rate(fps)
    video_filter = (
        f"scale={width}:{height}:force_original_aspect_ratio=decrease,"
        f"pad={width}:{height}:(ow-iw)/2:(oh-ih)/2,"
        f"format=yuv420p"
    )
    return [
        "-y",
        "-loglevel", "error",
        "-f", "image2pipe",
        "-vcodec", "mjpeg",
        "-r", rate,
        "-i", "-",
        "-vf", video_filter,
        "-c:v", "libx264",
        "-profile:v", "high",
        "-level", "4.1",
        "-pix_fmt", "yuv420p",
        "-r", rate,
        "-movflags", "+faststart",
        output,
    ]


def describe_exit(returncode: int) -> str:
    """Human readable exit status, e.g. ``code 1`` or ``signal SIGKILL``."""
    if returncode < 0:
        try:
            return f"signal {signal.Signals(-returncode).name}"
        except ValueError:
            return f"signal {-returncode}"
    return f"code {returncode}"


class EncoderSink:
    """Owns the ffmpeg subprocess for one recording.

    ``write()`` applies backpressure: it returns once the pipe buffer is
    below its high-water mark. ``close()`` signals end of input exactly
    once. ``wait_for_exit()`` succeeds only on exit code 0.

    Example:
        >>> sink = EncoderSink(config, context)
        >>> await sink.start()
        >>> await sink.write(jpeg_bytes)
        >>> sink.close()
        >>> await sink.wait_for_exit()
    """

    def __init__(self, config: RunConfig, context: Optional[RunContext] = None) -> None:
        self.config = config
        self._context = context
        self._process: Optional[asyncio.subprocess.Process] = None
        self._spawn_error: Optional[EncoderError] = None
        self._watch_task: Optional[asyncio.Task] = None
        self._closed = False
        self._stderr_lines: Deque[str] = collections.deque(maxlen=STDERR_TAIL_LINES)
        self.bytes_written = 0
        self.frames_written = 0

    @property
    def command(self) -> List[str]:
        return [self.config.ffmpeg_path] + build_ffmpeg_args(
            self.config.fps,
            self.config.output_path,
            self.config.output_width,
            self.config.output_height,
        )

    @property
    def is_running(self) -> bool:
        return self._process is not None and self._process.returncode is None

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def returncode(self) -> Optional[int]:
        return self._process.returncode if self._process else None

    @property
    def stderr_tail(self) -> List[str]:
        return list(self._stderr_lines)

    async def start(self) -> None:
        """Spawn ffmpeg.

        Raises:
            EncoderSpawnError: If the ffmpeg binary cannot be found
            EncoderError: If the process cannot be started for another reason
        """
        if self._process is not None:
            raise EncoderError("Encoder already started")

        cmd = self.command
        logger.info(f"[ENCODER] FFmpeg command: {' '.join(cmd)}")
        try:
            self._process = await asyncio.create_subprocess_exec(
                *cmd,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError as e:
            self._spawn_error = EncoderSpawnError(
                f"{self.config.ffmpeg_path} was not found on your PATH.",
                binary=self.config.ffmpeg_path,
            )
            raise self._spawn_error from e
        except OSError as e:
            self._spawn_error = EncoderError(f"Failed to start ffmpeg: {e}")
            raise self._spawn_error from e

        self._watch_task = asyncio.ensure_future(self._watch())
        logger.debug(f"[ENCODER] FFmpeg started (pid {self._process.pid})")

    async def write(self, data: bytes) -> None:
        """Send one frame to ffmpeg, waiting while the pipe is saturated."""
        if self._closed:
            raise EncoderError("Encoder input is already closed")
        if self._process is None or self._process.stdin is None:
            raise EncoderError("Encoder is not running")

        stdin = self._process.stdin
        try:
            stdin.write(data)
            await stdin.drain()
        except (BrokenPipeError, ConnectionResetError) as e:
            raise EncoderExitError(
                f"ffmpeg stopped accepting input: {e}",
                returncode=self._process.returncode,
            ) from e
        self.bytes_written += len(data)
        self.frames_written += 1

    def close(self) -> None:
        """Signal end of input to ffmpeg. Idempotent."""
        if self._closed:
            return
        self._closed = True
        if self._process is None or self._process.stdin is None:
            return
        try:
            self._process.stdin.close()
        except (BrokenPipeError, ConnectionResetError) as e:
            logger.debug(f"[ENCODER] Error closing ffmpeg input: {e}")
        logger.debug("[ENCODER] Input closed")

    async def wait_for_exit(self) -> int:
        """Wait for ffmpeg to exit.

        Returns:
            The exit code (always 0)

        Raises:
            EncoderSpawnError: If the process never started
            EncoderExitError: On a non-zero exit code or signal termination
        """
        if self._spawn_error is not None:
            raise self._spawn_error
        if self._process is None:
            raise EncoderError("Encoder was never started")

        returncode = await self._process.wait()
        if self._watch_task is not None:
            await asyncio.shield(self._watch_task)
        if returncode == 0:
            return returncode
        raise self._exit_error(returncode)

    def kill(self) -> None:
        """Forcefully terminate ffmpeg if it is still running."""
        if not self.is_running:
            return
        logger.warning("[ENCODER] FFmpeg did not exit gracefully, killing...")
        try:
            self._process.kill()
        except ProcessLookupError:
            pass

    def _exit_error(self, returncode: int) -> EncoderExitError:
        signal_name = None
        if returncode < 0:
            signal_name = describe_exit(returncode).split(" ", 1)[1]
        message = f"ffmpeg exited with {describe_exit(returncode)}"
        if self._stderr_lines:
            message += f": {self._stderr_lines[-1]}"
        return EncoderExitError(
            message,
            returncode=None if returncode < 0 else returncode,
            signal_name=signal_name,
        )

    async def _watch(self) -> None:
        """Collect stderr and report ffmpeg exiting before end of input."""
        process = self._process
        if process.stderr is not None:
            while True:
                try:
                    line = await process.stderr.readline()
                except ValueError as e:
                    # Line over the stream limit; the reader has dropped it
                    logger.warning(f"[ENCODER] Skipping oversized stderr output: {e}")
                    continue
                if not line:
                    break
                text = line.decode("utf-8", errors="ignore").rstrip()
                if text:
                    self._stderr_lines.append(text)
                    logger.warning(f"[ENCODER] {text}")

        returncode = await process.wait()
        if self._closed:
            logger.debug(f"[ENCODER] FFmpeg exited with {describe_exit(returncode)}")
            return

        logger.error(
            f"[ENCODER] FFmpeg process terminated unexpectedly "
            f"({describe_exit(returncode)})"
        )
        if self._context is not None:
            if returncode == 0:
                error = EncoderExitError("ffmpeg exited before the end of input", returncode=0)
            else:
                error = self._exit_error(returncode)
            self._context.record_error(error)
