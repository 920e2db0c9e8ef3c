# Copyright 2026 Firefly Software Solutions Inc
# SPDX-License-Identifier: Apache-2.0

"""Unit tests for ShutdownCoordinator."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from pagecast.core.run_state import RunState
from pagecast.core.shutdown import ShutdownCoordinator
from pagecast.exceptions import EncoderExitError


@pytest.fixture
def frame_source():
    source = MagicMock()
    source.stop = AsyncMock()
    return source


@pytest.fixture
def browser():
    manager = MagicMock()
    manager.stop = AsyncMock()
    return manager


@pytest.fixture
def coordinator(run_context, frame_source, fake_encoder, browser):
    coordinator = ShutdownCoordinator(run_context, encoder_exit_timeout=1.0)
    coordinator.frame_source = frame_source
    coordinator.encoder = fake_encoder
    coordinator.browser = browser
    return coordinator


class TestTeardown:
    """Tests for the teardown sequence."""

    @pytest.mark.asyncio
    async def test_stop_runs_every_step(
        self, coordinator, run_context, frame_source, fake_encoder, browser
    ):
        """Test stop tears everything down and reaches STOPPED."""
        await coordinator.stop()

        frame_source.stop.assert_awaited_once()
        assert fake_encoder.close_calls == 1
        browser.stop.assert_awaited_once()
        assert run_context.stopped is True
        assert run_context.state == RunState.STOPPED
        assert coordinator.encoder_error is None

    @pytest.mark.asyncio
    async def test_order_of_steps(self, coordinator, frame_source, fake_encoder, browser):
        """Test the screencast stops before the encoder, and the browser closes last."""
        calls = []
        frame_source.stop.side_effect = lambda: calls.append("frame_source")
        original_close = fake_encoder.close

        def close():
            calls.append("encoder")
            original_close()

        fake_encoder.close = close
        browser.stop.side_effect = lambda: calls.append("browser")

        await coordinator.stop()

        assert calls == ["frame_source", "encoder", "browser"]

    @pytest.mark.asyncio
    async def test_concurrent_stops_tear_down_once(
        self, coordinator, frame_source, fake_encoder, browser
    ):
        """Test concurrent callers share a single teardown."""
        fake_encoder.exit_delay = 0.05

        await asyncio.gather(coordinator.stop(), coordinator.stop(), coordinator.stop())
        await coordinator.stop()

        frame_source.stop.assert_awaited_once()
        assert fake_encoder.close_calls == 1
        browser.stop.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_failing_step_does_not_block_later_steps(
        self, coordinator, frame_source, fake_encoder, browser, run_context
    ):
        """Test a failure in one step still lets the rest run."""
        frame_source.stop.side_effect = RuntimeError("Target closed")

        await coordinator.stop()

        assert fake_encoder.close_calls == 1
        browser.stop.assert_awaited_once()
        assert run_context.state == RunState.STOPPED

    @pytest.mark.asyncio
    async def test_encoder_failure_is_kept(self, coordinator, fake_encoder, browser):
        """Test the encoder's exit failure is exposed after teardown."""
        fake_encoder.exit_error = EncoderExitError("ffmpeg exited with code 1", returncode=1)

        await coordinator.stop()

        assert coordinator.encoder_error is fake_encoder.exit_error
        browser.stop.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_encoder_timeout_kills(self, run_context, fake_encoder):
        """Test an encoder that does not exit in time is killed."""
        fake_encoder.exit_delay = 5.0
        coordinator = ShutdownCoordinator(run_context, encoder_exit_timeout=0.05)
        coordinator.encoder = fake_encoder

        await coordinator.stop()

        assert fake_encoder.killed is True
        # The killed process is reaped
        assert fake_encoder.exit_waits == 2
        assert isinstance(coordinator.encoder_error, EncoderExitError)
        assert "did not exit" in str(coordinator.encoder_error)

    @pytest.mark.asyncio
    async def test_stop_with_nothing_attached(self, run_context):
        """Test stop during early startup only touches what exists."""
        coordinator = ShutdownCoordinator(run_context)

        await coordinator.stop()

        assert coordinator.started is True
        assert run_context.state == RunState.STOPPED

    @pytest.mark.asyncio
    async def test_stop_wakes_waiters(self, coordinator, run_context):
        """Test stop sets the stop event that pending waits listen on."""
        waiter = asyncio.ensure_future(run_context.wait_stopped())
        await asyncio.sleep(0)

        await coordinator.stop()

        assert await asyncio.wait_for(waiter, timeout=1.0) is True


class TestAttach:
    """Tests for registering components as they start."""

    @pytest.mark.asyncio
    async def test_attach_before_stop_registers(self, run_context, fake_encoder, browser):
        """Test components attached before stop are torn down by stop."""
        coordinator = ShutdownCoordinator(run_context)

        await coordinator.attach("browser", browser)
        await coordinator.attach("encoder", fake_encoder)

        assert coordinator.browser is browser
        assert coordinator.encoder is fake_encoder
        browser.stop.assert_not_awaited()

        await coordinator.stop()

        assert fake_encoder.close_calls == 1
        browser.stop.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_encoder_started_after_stop_is_torn_down(self, run_context, fake_encoder):
        """Test an encoder that finished starting after teardown is closed and reaped."""
        coordinator = ShutdownCoordinator(run_context)
        await coordinator.stop()

        await coordinator.attach("encoder", fake_encoder)

        assert fake_encoder.close_calls == 1
        assert fake_encoder.exit_waits == 1
        assert coordinator.encoder is None

    @pytest.mark.asyncio
    async def test_attach_during_teardown_waits_for_it(
        self, run_context, frame_source, browser
    ):
        """Test a late browser is stopped after the running teardown completes."""
        coordinator = ShutdownCoordinator(run_context)
        calls = []
        frame_source.stop.side_effect = lambda: calls.append("frame_source")
        browser.stop.side_effect = lambda: calls.append("browser")
        await coordinator.attach("frame_source", frame_source)

        await asyncio.gather(coordinator.stop(), coordinator.attach("browser", browser))

        assert calls == ["frame_source", "browser"]
        browser.stop.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_unknown_component(self, run_context):
        """Test only known component names can be attached."""
        with pytest.raises(ValueError, match="Unknown component"):
            await ShutdownCoordinator(run_context).attach("scheduler", object())
