"""Tests for bounded retry with linear backoff."""

import pytest

from chainsync_app.config.defaults import RetryParams
from chainsync_app.errors import ContractRevertError, ErrorKind, NetworkTransientError
from chainsync_app.gateway.retry import RetryContext, RetryPolicy


class FlakyOperation:
    """Fails with the queued errors, then returns ``result``."""

    def __init__(self, *errors, result="ok"):
        self.errors = list(errors)
        self.result = result
        self.calls = 0

    async def __call__(self):
        self.calls += 1
        if self.errors:
            raise self.errors.pop(0)
        return self.result


class TestRetryContext:
    """Test retry bookkeeping."""

    def test_backoff_schedule(self):
        """Test backoff grows linearly with the attempt."""
        ctx = RetryContext()
        assert [ctx.backoff_ms(n) for n in range(3)] == [1000, 2000, 3000]

    def test_can_retry(self):
        """Test the budget allows two retries."""
        ctx = RetryContext()
        assert ctx.can_retry
        ctx.attempt = 2
        assert not ctx.can_retry


class TestRetryPolicy:
    """Test the retry policy."""

    @pytest.mark.asyncio
    async def test_success_first_try_never_sleeps(self, recording_sleep):
        """Test no wait happens before the first attempt."""
        policy = RetryPolicy(sleep=recording_sleep)
        operation = FlakyOperation()
        assert await policy.execute(operation) == "ok"
        assert operation.calls == 1
        assert recording_sleep.delays == []

    @pytest.mark.asyncio
    async def test_recovers_from_transient_failure(self, recording_sleep):
        """Test a transient failure is retried after 1000 ms."""
        policy = RetryPolicy(sleep=recording_sleep)
        operation = FlakyOperation(RuntimeError("network error"))
        assert await policy.execute(operation) == "ok"
        assert operation.calls == 2
        assert recording_sleep.delays == [1.0]

    @pytest.mark.asyncio
    async def test_at_most_three_attempts(self, recording_sleep):
        """Test exhaustion after three attempts with 1000, 2000 ms waits."""
        policy = RetryPolicy(sleep=recording_sleep)
        errors = [RuntimeError(f"network error {n}") for n in range(5)]
        operation = FlakyOperation(*errors)

        with pytest.raises(RuntimeError) as exc_info:
            await policy.execute(operation)

        assert operation.calls == 3
        assert recording_sleep.delays == [1.0, 2.0]
        # The last error propagates unchanged
        assert exc_info.value is errors[2]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("error", [
        RuntimeError("User denied transaction signature"),
        ValueError("execution reverted: paused"),
        ContractRevertError("cap exceeded"),
        RuntimeError("something odd"),
    ])
    async def test_non_transient_fails_fast(self, recording_sleep, error):
        """Test non-transient failures make exactly one attempt."""
        policy = RetryPolicy(sleep=recording_sleep)
        operation = FlakyOperation(error)

        with pytest.raises(type(error)) as exc_info:
            await policy.execute(operation)

        assert exc_info.value is error
        assert operation.calls == 1
        assert recording_sleep.delays == []

    @pytest.mark.asyncio
    async def test_typed_transient_error(self, recording_sleep):
        """Test NetworkTransientError is retried like matching text."""
        policy = RetryPolicy(sleep=recording_sleep)
        operation = FlakyOperation(NetworkTransientError("gateway unavailable"))
        assert await policy.execute(operation) == "ok"
        assert operation.calls == 2

    @pytest.mark.asyncio
    async def test_shared_context_shares_budget(self, recording_sleep):
        """Test two phases on one context spend one budget."""
        policy = RetryPolicy(sleep=recording_sleep)
        ctx = policy.new_context()

        first = FlakyOperation(RuntimeError("timeout"))
        await policy.execute(first, context=ctx)

        second = FlakyOperation(RuntimeError("timeout"), RuntimeError("timeout"))
        with pytest.raises(RuntimeError):
            await policy.execute(second, context=ctx)

        assert first.calls + second.calls == 4
        assert second.calls == 2
        assert ctx.total_backoff_ms == 3000
        assert recording_sleep.delays == [1.0, 2.0]

    @pytest.mark.asyncio
    async def test_custom_classifier(self, recording_sleep):
        """Test the classifier is pluggable."""
        policy = RetryPolicy(sleep=recording_sleep)
        operation = FlakyOperation(RuntimeError("anything"))
        result = await policy.execute(operation, classifier=lambda e: ErrorKind.NETWORK_TRANSIENT)
        assert result == "ok"
        assert operation.calls == 2

    @pytest.mark.asyncio
    async def test_configured_params(self, recording_sleep):
        """Test max attempts and backoff come from RetryParams."""
        policy = RetryPolicy(RetryParams(max_attempts=2, base_backoff_ms=10), sleep=recording_sleep)
        operation = FlakyOperation(*[RuntimeError("network") for _ in range(3)])
        with pytest.raises(RuntimeError):
            await policy.execute(operation)
        assert operation.calls == 2
        assert recording_sleep.delays == [0.01]
