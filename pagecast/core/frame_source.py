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

"""Chromium screencast frame source.

CDP ``Page.startScreencast`` delivers frames directly from Chrome's
rendering engine as ``Page.screencastFrame`` events. Chrome holds back the
next frame until the previous one is acknowledged with
``Page.screencastFrameAck``, so the ack is sent before anything else is done
with an event.
"""

from __future__ import annotations

import asyncio
import base64
import binascii
import time
from typing import Any, Dict, Optional, Set

from pagecast.core.frame_cache import Frame, LatestFrameCache
from pagecast.core.run_state import RunContext
from pagecast.exceptions import StreamAcknowledgmentError
from pagecast.utils.logger import logger

FRAME_EVENT = "Page.screencastFrame"
HEALTH_LOG_INTERVAL = 30.0


class ScreencastFrameSource:
    """Feeds screencast frames from a CDP session into a LatestFrameCache.

    Sequence ids are assigned synchronously in the event callback, so ids
    and acks follow the order Chrome delivered the events in.

    Example:
        >>> source = ScreencastFrameSource(cdp_session, cache, context)
        >>> await source.start(max_width=1080, max_height=1920)
        >>> await source.wait_for_first_frame()
        >>> await source.stop()
    """

    def __init__(
        self,
        session: Any,
        cache: LatestFrameCache,
        context: RunContext,
        quality: int = 80,
    ) -> None:
        self._session = session
        self._cache = cache
        self._context = context
        self.quality = quality
        self._next_sequence_id = 0
        self._pending: Set[asyncio.Task] = set()
        self._first_frame: Optional[asyncio.Event] = None
        self._listening = False
        self._stopped = False
        self._ack_failed = False
        self.frames_received = 0
        self.frames_discarded = 0
        self._window_frames = 0
        self._window_started = time.monotonic()

    @property
    def first_frame_event(self) -> asyncio.Event:
        if self._first_frame is None:
            self._first_frame = asyncio.Event()
        return self._first_frame

    async def start(self, max_width: int, max_height: int) -> None:
        """Subscribe to frame events and start the screencast."""
        self._session.on(FRAME_EVENT, self._on_frame)
        self._listening = True
        logger.info(
            f"[CAPTURE] Starting CDP screencast "
            f"({max_width}x{max_height}, jpeg q={self.quality})"
        )
        await self._session.send("Page.startScreencast", {
            "format": "jpeg",
            "quality": self.quality,
            "maxWidth": max_width,
            "maxHeight": max_height,
        })

    async def wait_for_first_frame(self) -> bool:
        """Wait until a frame is published or the run is stopped.

        Returns:
            True if a frame has been published to the cache.
        """
        first_frame = asyncio.ensure_future(self.first_frame_event.wait())
        stopped = asyncio.ensure_future(self._context.stop_event.wait())
        try:
            await asyncio.wait(
                {first_frame, stopped}, return_when=asyncio.FIRST_COMPLETED
            )
        finally:
            first_frame.cancel()
            stopped.cancel()
        return self._cache.has_frame

    def _on_frame(self, params: Dict[str, Any]) -> None:
        """Handle a ``Page.screencastFrame`` event."""
        self._next_sequence_id += 1
        sequence_id = self._next_sequence_id
        self.frames_received += 1
        self._log_health()

        task = asyncio.ensure_future(self._process(sequence_id, params))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _process(self, sequence_id: int, params: Dict[str, Any]) -> None:
        # Ack first: Chrome stops sending frames until it sees the ack
        try:
            await self._session.send(
                "Page.screencastFrameAck", {"sessionId": params.get("sessionId")}
            )
        except Exception as e:
            if self._context.stopped:
                logger.debug(f"[CAPTURE] Frame ack failed during shutdown: {e}")
                return
            self._ack_failed = True
            error = StreamAcknowledgmentError(f"Failed to acknowledge screencast frame: {e}")
            error.__cause__ = e
            logger.error(f"[CAPTURE] {error}")
            self._context.record_error(error)
            return

        if self._context.stopped or self._ack_failed:
            self.frames_discarded += 1
            return

        try:
            payload = base64.b64decode(params["data"], validate=True)
        except (KeyError, TypeError, binascii.Error) as e:
            self.frames_discarded += 1
            logger.warning(f"[CAPTURE] Dropping undecodable frame {sequence_id}: {e}")
            return

        if not self._cache.publish(Frame(sequence_id, payload)):
            self.frames_discarded += 1
            logger.debug(f"[CAPTURE] Dropping out-of-order frame {sequence_id}")
            return

        if not self.first_frame_event.is_set():
            logger.info("[CAPTURE] First frame received")
            self.first_frame_event.set()

    def _log_health(self) -> None:
        self._window_frames += 1
        now = time.monotonic()
        elapsed = now - self._window_started
        if elapsed >= HEALTH_LOG_INTERVAL:
            logger.debug(
                f"[CAPTURE] Stream health: {self._window_frames} frames in "
                f"{elapsed:.0f}s ({self._window_frames / elapsed:.1f} fps)"
            )
            self._window_frames = 0
            self._window_started = now

    async def stop(self) -> None:
        """Stop the screencast and stop listening for frames. Idempotent."""
        if self._stopped:
            return
        self._stopped = True

        if self._listening:
            try:
                self._session.remove_listener(FRAME_EVENT, self._on_frame)
            except Exception as e:
                logger.debug(f"[CAPTURE] Error removing frame listener: {e}")
            self._listening = False

        try:
            await self._session.send("Page.stopScreencast")
        finally:
            pending = list(self._pending)
            for task in pending:
                task.cancel()
            if pending:
                await asyncio.gather(*pending, return_exceptions=True)
            logger.debug(
                f"[CAPTURE] Screencast stopped ({self.frames_received} received, "
                f"{self.frames_discarded} discarded)"
            )
