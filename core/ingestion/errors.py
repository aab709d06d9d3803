"""Exception types for the ingestion pipeline.

Only conditions the caller must act on are raised. Recoverable outcomes
(budget overflow, per-file fetch failures, oversized files) are reported as
data on the result models instead.
"""

from typing import Any


class IngestionPipelineError(Exception):
    """Base exception for ingestion pipeline errors."""

    pass


class RemoteAPIError(IngestionPipelineError):
    """A remote content API call failed.

    Attributes:
        status_code: HTTP status code returned by the remote API, if any.
    """

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class PathTypeMismatchError(IngestionPipelineError):
    """Requested a file where a directory lives, or the other way round."""

    def __init__(self, path: str, expected: str) -> None:
        super().__init__(f'Path "{path}" is not a {expected}')
        self.path = path
        self.expected = expected


class OperationCancelledError(IngestionPipelineError):
    """The cancellation token fired before the operation could finish."""

    def __init__(self, message: str = "Operation aborted") -> None:
        super().__init__(message)


class BatchCancelledError(OperationCancelledError):
    """A batch fetch was cancelled between windows.

    Attributes:
        partial_results: Per-path results recorded before cancellation.
            The batch as a whole must be treated as incomplete.
    """

    def __init__(self, partial_results: dict[str, Any]) -> None:
        super().__init__(
            f"Batch fetch aborted after {len(partial_results)} results"
        )
        self.partial_results = partial_results
