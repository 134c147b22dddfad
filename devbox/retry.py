"""Bounded retry for calls that race EC2's eventual consistency.

After a spot instance is stopped, its persistent spot request lags behind
for a few seconds and StartInstances is rejected with
``IncorrectSpotRequestState``. That signature, and only that one, is
retried with a fixed delay. Anything else propagates on the first failure.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass

from botocore.exceptions import ClientError
from loguru import logger
from tenacity import (
    RetryCallState,
    retry,
    retry_if_exception,
    stop_after_attempt,
    wait_fixed,
)

from devbox.aws.errors import error_code, is_consistency_lag
from devbox.config import Timings
from devbox.exceptions import TransientError

log = logger.bind(component="retry")


@dataclass(frozen=True, slots=True)
class ConsistencyRetrier:
    """Retries a single control-plane mutation on consistency lag.

    Attributes:
        attempts: Total attempts, including the first.
        delay: Fixed delay between attempts in seconds.
    """

    attempts: int
    delay: float

    @classmethod
    def from_timings(cls, timings: Timings) -> ConsistencyRetrier:
        return cls(attempts=timings.retry_attempts, delay=timings.retry_delay)

    def call[T](self, fn: Callable[[], T], *, operation: str) -> T:
        """Run fn, retrying while it fails with a consistency-lag error.

        Raises:
            TransientError: If every attempt hit consistency lag.
            ClientError: Any other provider error, unretried.
        """

        def _before_sleep(state: RetryCallState) -> None:
            exc = state.outcome.exception() if state.outcome else None
            log.info(
                "{op} rejected ({code}), retrying in {delay}s ({n}/{total})",
                op=operation,
                code=error_code(exc) if exc else "",
                delay=self.delay,
                n=state.attempt_number,
                total=self.attempts,
            )

        @retry(
            stop=stop_after_attempt(self.attempts),
            wait=wait_fixed(self.delay),
            retry=retry_if_exception(is_consistency_lag),
            before_sleep=_before_sleep,
            reraise=True,
        )
        def _call() -> T:
            return fn()

        try:
            return _call()
        except ClientError as e:
            if is_consistency_lag(e):
                raise TransientError(operation, self.attempts) from e
            raise
