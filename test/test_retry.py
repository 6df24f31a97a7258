#!/usr/bin/env python3
"""Tests for RetryPolicy."""

import asyncio
from unittest.mock import AsyncMock, call

import pytest

from pfl_solver.errors import ContractNotFound, RelayRejected, SubmissionExhausted
from pfl_solver.retry import RetryPolicy, is_retryable


class TestIsRetryable:

    def test_flags(self):
        assert is_retryable(RelayRejected("busy"))
        assert not is_retryable(ContractNotFound("0x" + "00" * 20))
        # Transport errors carry no flag and are retried
        assert is_retryable(ConnectionError("reset"))


class TestRetryPolicy:
    """Test suite for RetryPolicy.run."""

    @pytest.mark.parametrize("kwargs", [{"max_attempts": 0}, {"delay": -1}])
    def test_invalid_policy(self, kwargs):
        with pytest.raises(ValueError):
            RetryPolicy(**kwargs)

    @pytest.mark.asyncio
    async def test_succeeds_first_time(self):
        sleep = AsyncMock()
        operation = AsyncMock(return_value="ok")

        result = await RetryPolicy(sleep=sleep).run(operation)

        assert result == "ok"
        operation.assert_awaited_once_with(1)
        sleep.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_error_error_success(self):
        """Two failures then success: three calls, two fixed delays."""
        sleep = AsyncMock()
        operation = AsyncMock(side_effect=[RelayRejected("busy"), ConnectionError("reset"), "ok"])

        result = await RetryPolicy(max_attempts=3, delay=5.0, sleep=sleep).run(operation)

        assert result == "ok"
        assert operation.await_args_list == [call(1), call(2), call(3)]
        assert sleep.await_args_list == [call(5.0), call(5.0)]

    @pytest.mark.asyncio
    async def test_exhausted_after_budget(self):
        sleep = AsyncMock()
        last = RelayRejected("still busy")
        operation = AsyncMock(side_effect=[RelayRejected("busy"), RelayRejected("busy"), last])

        with pytest.raises(SubmissionExhausted) as exc_info:
            await RetryPolicy(sleep=sleep).run(operation, description="submit bundle")

        assert operation.await_count == 3
        assert sleep.await_count == 2
        assert exc_info.value.attempts == 3
        assert exc_info.value.last_error is last
        assert exc_info.value.__cause__ is last
        assert "Failed after 3 attempts: FastLane error: still busy" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_structural_error_not_retried(self):
        sleep = AsyncMock()
        operation = AsyncMock(side_effect=ContractNotFound("0x" + "00" * 20))

        with pytest.raises(ContractNotFound):
            await RetryPolicy(sleep=sleep).run(operation)

        assert operation.await_count == 1
        sleep.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_cancellation_propagates(self):
        sleep = AsyncMock()
        operation = AsyncMock(side_effect=asyncio.CancelledError())

        with pytest.raises(asyncio.CancelledError):
            await RetryPolicy(sleep=sleep).run(operation)

        assert operation.await_count == 1
        sleep.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_custom_predicate(self):
        operation = AsyncMock(side_effect=RelayRejected("busy"))
        policy = RetryPolicy(retry_if=lambda error: False, sleep=AsyncMock())

        with pytest.raises(RelayRejected):
            await policy.run(operation)

        assert operation.await_count == 1

    @pytest.mark.asyncio
    async def test_single_attempt_never_sleeps(self):
        sleep = AsyncMock()
        operation = AsyncMock(side_effect=RelayRejected("busy"))

        with pytest.raises(SubmissionExhausted):
            await RetryPolicy(max_attempts=1, sleep=sleep).run(operation)

        sleep.assert_not_awaited()
