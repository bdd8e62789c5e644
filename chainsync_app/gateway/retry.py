"""
Bounded retry with linear backoff around one asynchronous call.

Only failures classified as ``NETWORK_TRANSIENT`` are retried. Everything
else propagates unchanged on the first attempt. The backoff before attempt
``n + 1`` is ``base_backoff_ms * (n + 1)``: 1000 ms, then 2000 ms.
"""

import asyncio
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional

import structlog

from ..config.defaults import RetryParams
from ..errors import ErrorKind, classify
from ..logging.config import log_retry_attempt

logger = structlog.get_logger(__name__)

Classifier = Callable[[BaseException], ErrorKind]
SleepFunc = Callable[[float], Awaitable[Any]]


@dataclass
class RetryContext:
    """
    Retry bookkeeping for one gateway call.

    The same context is passed to every retried phase of an operation (gas
    estimation, then submission), so the phases share one budget.
    """
    max_attempts: int = 3
    base_backoff_ms: int = 1000
    attempt: int = 0
    total_calls: int = 0
    total_backoff_ms: int = 0

    def backoff_ms(self, attempt: Optional[int] = None) -> int:
        """Delay before the attempt following ``attempt``."""
        current = self.attempt if attempt is None else attempt
        return self.base_backoff_ms * (current + 1)

    @property
    def can_retry(self) -> bool:
        return self.attempt < self.max_attempts - 1


class RetryPolicy:
    """Runs an operation, retrying transient network failures with backoff."""

    def __init__(self, params: Optional[RetryParams] = None,
                 sleep: Optional[SleepFunc] = None):
        self.params = params or RetryParams()
        self._sleep = sleep or asyncio.sleep
        self.logger = logger

    def new_context(self) -> RetryContext:
        return RetryContext(
            max_attempts=self.params.max_attempts,
            base_backoff_ms=self.params.base_backoff_ms,
        )

    async def execute(
        self,
        operation: Callable[[], Awaitable[Any]],
        classifier: Classifier = classify,
        context: Optional[RetryContext] = None,
        label: str = "operation",
    ) -> Any:
        """
        Invoke ``operation`` until it succeeds or a retry is not allowed.

        Args:
            operation: Zero-argument coroutine factory, called once per attempt
            classifier: Maps a raised error to its ``ErrorKind``
            context: Shared retry budget; a fresh one is used when omitted
            label: Name used in log entries

        Returns:
            Whatever ``operation`` returns on its successful attempt

        Raises:
            The last error raised by ``operation``, unchanged
        """
        ctx = context or self.new_context()

        while True:
            ctx.total_calls += 1
            try:
                return await operation()
            except Exception as e:
                kind = classifier(e)
                if kind != ErrorKind.NETWORK_TRANSIENT or not ctx.can_retry:
                    self.logger.debug(
                        "Giving up on operation",
                        operation=label,
                        attempt=ctx.attempt,
                        error_kind=kind.value,
                        error=str(e),
                    )
                    raise

                delay_ms = ctx.backoff_ms()
                log_retry_attempt(self.logger, label, ctx.attempt, delay_ms, kind.value, str(e))
                await self._sleep(delay_ms / 1000)
                ctx.total_backoff_ms += delay_ms
                ctx.attempt += 1
