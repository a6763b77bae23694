"""Tests for bounded polling with backoff."""

import pytest
from unittest.mock import AsyncMock, patch

from src.utils.polling import PollConfig, PollExhausted, PollResult, poll_until

FAST = PollConfig(interval_s=0.001, backoff_factor=2.0, max_interval_s=0.004, max_attempts=10, timeout_s=None)


class TestPollConfig:
    def test_defaults(self):
        """Test default configuration values."""
        config = PollConfig()
        assert config.interval_s == 1.0
        assert config.backoff_factor == 1.5
        assert config.max_interval_s == 8.0
        assert config.max_attempts == 60
        assert config.timeout_s == 120.0


class TestPollUntil:
    @pytest.mark.asyncio
    async def test_done_on_first_check(self):
        fetch = AsyncMock(return_value="completed")

        result = await poll_until(fetch, lambda s: s == "in_progress", config=FAST)

        assert isinstance(result, PollResult)
        assert result.value == "completed"
        assert result.attempts == 1
        assert fetch.call_count == 1

    @pytest.mark.asyncio
    async def test_two_pending_then_done_is_three_checks(self):
        fetch = AsyncMock(side_effect=["in_progress", "in_progress", "completed"])

        result = await poll_until(fetch, lambda s: s == "in_progress", config=FAST)

        assert result.value == "completed"
        assert result.attempts == 3
        assert fetch.call_count == 3

    @pytest.mark.asyncio
    async def test_backoff_delays_grow_and_cap(self):
        """Delays multiply by the backoff factor and stop at the cap."""
        fetch = AsyncMock(side_effect=["p", "p", "p", "p", "done"])
        config = PollConfig(interval_s=1.0, backoff_factor=2.0, max_interval_s=3.0, max_attempts=10, timeout_s=None)

        with patch("src.utils.polling.asyncio.sleep", new=AsyncMock()) as sleep:
            await poll_until(fetch, lambda s: s == "p", config=config)

        delays = [call.args[0] for call in sleep.call_args_list]
        assert delays == [1.0, 2.0, 3.0, 3.0]

    @pytest.mark.asyncio
    async def test_attempts_exhausted(self):
        fetch = AsyncMock(return_value="in_progress")
        config = PollConfig(interval_s=0.001, max_interval_s=0.001, max_attempts=4, timeout_s=None)

        with pytest.raises(PollExhausted) as exc_info:
            await poll_until(fetch, lambda s: s == "in_progress", config=config)

        assert exc_info.value.attempts == 4
        assert exc_info.value.last_value == "in_progress"
        assert fetch.call_count == 4

    @pytest.mark.asyncio
    async def test_deadline_reached(self):
        """Gives up before sleeping past the deadline."""
        fetch = AsyncMock(return_value="in_progress")
        config = PollConfig(interval_s=0.05, backoff_factor=1.0, max_interval_s=0.05, max_attempts=100, timeout_s=0.01)

        with pytest.raises(PollExhausted) as exc_info:
            await poll_until(fetch, lambda s: s == "in_progress", config=config)

        assert exc_info.value.attempts == 1
        assert fetch.call_count == 1

    @pytest.mark.asyncio
    async def test_fetch_error_propagates(self):
        fetch = AsyncMock(side_effect=["in_progress", RuntimeError("network down")])

        with pytest.raises(RuntimeError, match="network down"):
            await poll_until(fetch, lambda s: s == "in_progress", config=FAST)
