"""Rate-limit aware retry for remote calls.

Wraps a single remote operation with bounded exponential backoff. Only
rate-limit failures (HTTP 403 or 429) are retried; every other error, and
a rate-limit error once the retry budget is spent, is re-raised unchanged.
"""

import random
from collections.abc import Awaitable, Callable
from typing import TypeVar

import httpx
import structlog
from pydantic import BaseModel, ConfigDict, Field

from .cancellation import CancellationToken, cancellable_sleep
from .errors import RemoteAPIError

logger = structlog.get_logger(__name__)

T = TypeVar("T")

RATE_LIMIT_STATUS_CODES = frozenset({403, 429})

MAX_BACKOFF_DELAY_MS = 60_000

JITTER_RATIO = 0.3


class RetryOptions(BaseModel):
    """Options for the retry layer.

    Attributes:
        max_retries: Retries after the first attempt.
        base_delay_ms: Delay before the first retry, before jitter.
        max_delay_ms: Upper bound for any single delay.
    """

    model_config = ConfigDict(frozen=True)

    max_retries: int = Field(default=3, ge=0, description="Maximum retry attempts")
    base_delay_ms: float = Field(default=1000, ge=0, description="Base backoff delay in ms")
    max_delay_ms: float = Field(
        default=MAX_BACKOFF_DELAY_MS, ge=0, description="Backoff delay cap in ms"
    )


def compute_backoff_delay(
    attempt: int,
    base_delay_ms: float,
    max_delay_ms: float = MAX_BACKOFF_DELAY_MS,
    rng: Callable[[], float] = random.random,
) -> float:
    """Compute the backoff delay for an attempt.

    ``min(base * 2**attempt + jitter, max_delay_ms)`` where jitter is drawn
    uniformly from ``[0, 0.3 * base * 2**attempt)``.

    Args:
        attempt: Zero-based attempt number that just failed.
        base_delay_ms: Base delay in milliseconds.
        max_delay_ms: Cap in milliseconds.
        rng: Source of uniform floats in ``[0, 1)``.

    Returns:
        Delay in milliseconds.
    """
    exponential = base_delay_ms * (2**attempt)
    jitter = rng() * JITTER_RATIO * exponential
    return min(exponential + jitter, max_delay_ms)


def _status_code_of(error: BaseException) -> int | None:
    if isinstance(error, httpx.HTTPStatusError):
        return error.response.status_code
    if isinstance(error, RemoteAPIError):
        return error.status_code
    status = getattr(error, "status_code", None)
    return status if isinstance(status, int) else None


def is_rate_limit_error(error: BaseException) -> bool:
    """Check whether an error is a remote rate-limit signal (403/429)."""
    return _status_code_of(error) in RATE_LIMIT_STATUS_CODES


class RateLimitedFetcher:
    """Runs remote operations with rate-limit backoff and cancellation.

    Attributes:
        options: Retry options.
    """

    def __init__(
        self,
        options: RetryOptions | None = None,
        rng: Callable[[], float] = random.random,
    ) -> None:
        """Initialize the fetcher.

        Args:
            options: Retry options. Uses defaults if not provided.
            rng: Jitter source, injectable for tests.
        """
        self.options = options or RetryOptions()
        self._rng = rng
        self._logger = logger.bind(component="rate_limited_fetcher")

    def backoff_delay(self, attempt: int) -> float:
        """Delay in milliseconds before retrying after ``attempt`` failed."""
        return compute_backoff_delay(
            attempt,
            self.options.base_delay_ms,
            self.options.max_delay_ms,
            self._rng,
        )

    async def run(
        self,
        operation: Callable[[], Awaitable[T]],
        cancel: CancellationToken | None = None,
    ) -> T:
        """Invoke an operation, retrying on rate-limit failures.

        Args:
            operation: Zero-argument coroutine factory for one attempt.
            cancel: Optional cancellation token.

        Returns:
            The operation's result.

        Raises:
            OperationCancelledError: If the token fires before an attempt
                or during a backoff sleep.
            Exception: The operation's original error when it is not a
                rate-limit signal or retries are exhausted.
        """
        attempt = 0
        while True:
            if cancel is not None:
                cancel.raise_if_cancelled()

            try:
                return await operation()
            except Exception as e:
                if not is_rate_limit_error(e) or attempt >= self.options.max_retries:
                    raise

                delay_ms = self.backoff_delay(attempt)
                self._logger.warning(
                    "rate_limited",
                    attempt=attempt + 1,
                    max_retries=self.options.max_retries,
                    delay_ms=round(delay_ms),
                    status=_status_code_of(e),
                )
                await cancellable_sleep(delay_ms / 1000, cancel)
                attempt += 1


async def with_retry(
    operation: Callable[[], Awaitable[T]],
    options: RetryOptions | None = None,
    cancel: CancellationToken | None = None,
) -> T:
    """Run an operation through a RateLimitedFetcher with the given options."""
    return await RateLimitedFetcher(options).run(operation, cancel)
