"""
Retry Executor

Runs a request attempt with classified retries and exponential backoff.
"""

import asyncio
import random
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, TypeVar

import structlog

from .errors import RateLimitError, ServiceError

logger = structlog.get_logger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryConfig:
    """Retry behaviour for one service."""
    max_retries: int = 3
    base_delay: float = 1.0  # seconds
    backoff_factor: float = 2.0
    max_delay: float = 10.0  # seconds
    jitter: float = 0.0  # fraction of the delay added at random

    def backoff_delay(self, step: int) -> float:
        """Delay before the retry following the ``step``-th counted failure."""
        delay = min(self.base_delay * (self.backoff_factor ** step), self.max_delay)
        if self.jitter > 0:
            delay = min(delay + random.uniform(0, self.jitter) * delay, self.max_delay)
        return delay


class RetryExecutor:
    """
    Executes an attempt function with retries.

    Two kinds of retry are kept apart:

    - ``RateLimitError`` waits for the server's ``retry_after`` hint (or the
      base delay) and tries again without advancing the backoff sequence.
    - Other retryable failures back off exponentially, one step per failure.

    Non-retryable ``ServiceError`` instances are raised immediately.
    Exceptions outside the taxonomy are treated as retryable.
    """

    def __init__(
        self,
        config: Optional[RetryConfig] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        service_name: str = "api"
    ):
        self.config = config or RetryConfig()
        self._sleep = sleep
        self.logger = logger.bind(service=service_name, component="RetryExecutor")

    async def execute_with_retry(self, attempt_fn: Callable[[], Awaitable[T]]) -> T:
        """
        Run ``attempt_fn`` until it succeeds or attempts run out.

        Args:
            attempt_fn: Zero-argument coroutine function performing one attempt

        Returns:
            The first successful result

        Raises:
            Exception: The last error once attempts are exhausted, or a
                non-retryable ServiceError straight away
        """
        max_retries = self.config.max_retries
        backoff_step = 0
        last_error: Optional[BaseException] = None

        for attempt in range(max_retries + 1):
            try:
                return await attempt_fn()

            except RateLimitError as e:
                last_error = e
                if attempt >= max_retries:
                    break
                wait_time = e.retry_after if e.retry_after is not None else self.config.base_delay
                self.logger.warning(
                    "Rate limited - waiting before retry",
                    attempt=attempt + 1,
                    max_attempts=max_retries + 1,
                    wait_time=wait_time
                )
                await self._sleep(wait_time)

            except ServiceError as e:
                last_error = e
                if not e.is_retryable:
                    self.logger.debug(
                        "Non-retryable error - giving up",
                        error_code=e.code.value,
                        status_code=e.status_code
                    )
                    raise
                if attempt >= max_retries:
                    break
                await self._backoff(attempt, backoff_step, e)
                backoff_step += 1

            except Exception as e:
                last_error = e
                if attempt >= max_retries:
                    break
                await self._backoff(attempt, backoff_step, e)
                backoff_step += 1

        self.logger.error(
            "Request failed after all retries",
            total_attempts=max_retries + 1,
            error=str(last_error)
        )
        raise last_error

    async def _backoff(self, attempt: int, step: int, error: BaseException) -> None:
        delay = self.config.backoff_delay(step)
        self.logger.warning(
            "Retryable error - backing off",
            attempt=attempt + 1,
            max_attempts=self.config.max_retries + 1,
            delay=delay,
            error=str(error),
            error_type=type(error).__name__
        )
        await self._sleep(delay)
