"""Tests for cancellation tokens and cancellable waits."""

from __future__ import annotations

import asyncio

import pytest
from cloud_mock import MockClock

from provisioner.cancellation import CancelToken, SystemClock, pause
from provisioner.errors import ReconcileCancelled


class TestCancelToken:
    """Tests for CancelToken."""

    def test_explicit_cancel(self) -> None:
        token = CancelToken()
        assert not token.cancelled

        token.cancel("shutdown")

        assert token.cancelled
        assert token.reason == "shutdown"

    def test_deadline(self) -> None:
        clock = MockClock()
        token = CancelToken.with_timeout(30, clock)

        assert token.remaining() == 30
        clock.advance(30)

        assert token.deadline_passed
        assert token.cancelled
        assert token.reason == "deadline exceeded"
        assert token.remaining() == 0

    def test_no_deadline(self) -> None:
        assert CancelToken().remaining() is None

    def test_raise_if_cancelled(self) -> None:
        token = CancelToken()
        token.raise_if_cancelled()
        token.cancel()

        with pytest.raises(ReconcileCancelled):
            token.raise_if_cancelled()


class TestPause:
    """Tests for pause()."""

    @pytest.mark.asyncio
    async def test_plain_pause(self) -> None:
        clock = MockClock()

        await pause(clock, 10)

        assert clock.sleeps == [10]

    @pytest.mark.asyncio
    async def test_zero_pause_does_not_sleep(self) -> None:
        clock = MockClock()

        await pause(clock, 0)

        assert clock.sleeps == []

    @pytest.mark.asyncio
    async def test_pause_sleeps_only_until_deadline(self) -> None:
        """A deadline inside the pause ends the wait at the deadline."""
        clock = MockClock()
        token = CancelToken.with_timeout(4, clock)

        with pytest.raises(ReconcileCancelled):
            await pause(clock, 10, token)

        assert clock.sleeps == [4]

    @pytest.mark.asyncio
    async def test_system_clock_wakes_on_cancel(self) -> None:
        """A real sleep returns as soon as the token fires."""
        token = CancelToken()
        loop = asyncio.get_running_loop()
        loop.call_later(0.01, token.cancel, "stop")

        with pytest.raises(ReconcileCancelled):
            await asyncio.wait_for(pause(SystemClock(), 30, token), timeout=5)
