"""Concurrent batch fetching of file contents.

Paths are processed in fixed windows of ``concurrency``. Within a window
every fetch runs concurrently through the retry layer and is awaited
independently, so one failure is recorded for its path without disturbing
its siblings. The result dict is keyed by path so callers can restore
listing order regardless of completion order.
"""

import asyncio
from collections.abc import Awaitable, Callable, Sequence

import structlog

from .cancellation import CancellationToken
from .errors import BatchCancelledError
from .models import FetchedFileContent
from .retry import RateLimitedFetcher, RetryOptions

logger = structlog.get_logger(__name__)


FetchOne = Callable[[str], Awaitable[FetchedFileContent]]

# Called with (completed, total) after each window.
BatchProgressCallback = Callable[[int, int], None]

DEFAULT_CONCURRENCY = 5


class BatchFetcher:
    """Fetches many files under a concurrency cap.

    Attributes:
        concurrency: Number of fetches per window.
        retry: Retry options applied to each fetch.
    """

    def __init__(
        self,
        concurrency: int = DEFAULT_CONCURRENCY,
        retry: RetryOptions | None = None,
        fetcher: RateLimitedFetcher | None = None,
    ) -> None:
        """Initialize the BatchFetcher.

        Args:
            concurrency: Window size. Must be at least 1.
            retry: Retry options for each fetch.
            fetcher: Pre-built retry wrapper, overrides ``retry``.

        Raises:
            ValueError: If concurrency is less than 1.
        """
        if concurrency < 1:
            raise ValueError(f"concurrency must be at least 1, got {concurrency}")
        self.concurrency = concurrency
        self.retry = retry or RetryOptions()
        self._fetcher = fetcher or RateLimitedFetcher(self.retry)
        self._logger = logger.bind(component="batch_fetcher")

    async def fetch_all(
        self,
        paths: Sequence[str],
        fetch_one: FetchOne,
        cancel: CancellationToken | None = None,
        progress: BatchProgressCallback | None = None,
    ) -> dict[str, FetchedFileContent | Exception]:
        """Fetch every path, recording a result or an error per path.

        Args:
            paths: Paths to fetch, in the order results should be keyed.
            fetch_one: Coroutine function fetching a single path.
            cancel: Optional cancellation token, checked between windows
                and inside each fetch's retry loop.
            progress: Optional callback invoked after each window.

        Returns:
            Dict mapping each path to its content or the exception raised.

        Raises:
            BatchCancelledError: If the token fires between windows. The
                error carries the results recorded so far.
        """
        results: dict[str, FetchedFileContent | Exception] = {}
        total = len(paths)

        for start in range(0, total, self.concurrency):
            if cancel is not None and cancel.cancelled:
                self._logger.warning("batch_cancelled", completed=len(results), total=total)
                raise BatchCancelledError(results)

            window = paths[start : start + self.concurrency]
            outcomes = await asyncio.gather(
                *(self._fetch(path, fetch_one, cancel) for path in window),
                return_exceptions=True,
            )

            for path, outcome in zip(window, outcomes, strict=True):
                if isinstance(outcome, Exception):
                    self._logger.warning(
                        "file_fetch_failed",
                        path=path,
                        error_type=type(outcome).__name__,
                        error=str(outcome),
                    )
                    results[path] = outcome
                elif isinstance(outcome, BaseException):
                    raise outcome
                else:
                    results[path] = outcome

            if progress:
                progress(len(results), total)

        # Fired during the final window: some fetches never ran to completion.
        if cancel is not None and cancel.cancelled:
            self._logger.warning("batch_cancelled", completed=len(results), total=total)
            raise BatchCancelledError(results)

        failures = sum(1 for value in results.values() if isinstance(value, Exception))
        self._logger.info("batch_fetch_complete", total=total, failed=failures)
        return results

    async def _fetch(
        self,
        path: str,
        fetch_one: FetchOne,
        cancel: CancellationToken | None,
    ) -> FetchedFileContent:
        return await self._fetcher.run(lambda: fetch_one(path), cancel)
