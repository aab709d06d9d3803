"""Cooperative cancellation for ingestion runs.

A single CancellationToken is threaded through every suspension point of a
run: the retry layer's backoff sleep, the remote call wrappers, and the
batch loop. Firing the token never kills in-flight work; it stops new
attempts and wakes sleepers with OperationCancelledError.
"""

import asyncio

import structlog

from .errors import OperationCancelledError

logger = structlog.get_logger(__name__)


class CancellationToken:
    """One-shot cancellation signal backed by an asyncio.Event."""

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self._reason: str | None = None

    @property
    def cancelled(self) -> bool:
        """Whether the token has fired."""
        return self._event.is_set()

    @property
    def reason(self) -> str | None:
        """Reason given when the token was fired."""
        return self._reason

    def cancel(self, reason: str = "Operation aborted") -> None:
        """Fire the token. Later calls are ignored."""
        if self._event.is_set():
            return
        self._reason = reason
        self._event.set()
        logger.debug("cancellation_requested", reason=reason)

    def raise_if_cancelled(self) -> None:
        """Raise OperationCancelledError if the token has fired."""
        if self._event.is_set():
            raise OperationCancelledError(self._reason or "Operation aborted")

    async def sleep(self, seconds: float) -> None:
        """Sleep for the given duration unless the token fires first.

        Args:
            seconds: Delay in seconds.

        Raises:
            OperationCancelledError: If the token fires before or during
                the sleep.
        """
        self.raise_if_cancelled()
        try:
            await asyncio.wait_for(self._event.wait(), timeout=seconds)
        except TimeoutError:
            return
        self.raise_if_cancelled()


async def cancellable_sleep(seconds: float, cancel: CancellationToken | None = None) -> None:
    """Sleep, observing the token when one is given."""
    if cancel is None:
        await asyncio.sleep(seconds)
        return
    await cancel.sleep(seconds)
