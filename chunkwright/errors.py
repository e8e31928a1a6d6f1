"""Domain exceptions for chunked rewrite runs and CLI diagnostics.

Key types:
- `ValidationError`: request rejected before any backend call.
- `BackendError`: completion backend failed for one request.
- `StreamProtocolError`: streaming response violated the frame protocol.
- `PipelineStageError`: CLI-facing error carrying a stage and optional hint.
"""

from __future__ import annotations


class ChunkwrightError(RuntimeError):
    """Base class for all chunkwright domain errors."""


class ValidationError(ChunkwrightError, ValueError):
    """Raised when a run or request is missing required fields."""


class BackendError(ChunkwrightError):
    """Raised when the completion backend returns a failure or cannot be reached."""

    def __init__(
        self,
        message: str,
        *,
        failure_kind: str = "unknown",
        status_code: int | None = None,
        chunk_id: str | None = None,
    ) -> None:
        """Initialize backend error metadata for run-level reporting."""

        super().__init__(message)
        self.message = message
        self.failure_kind = failure_kind
        self.status_code = status_code
        self.chunk_id = chunk_id


class StreamProtocolError(BackendError):
    """Raised when a stream ends without `complete` or carries an `error` frame."""

    def __init__(self, message: str, *, chunk_id: str | None = None) -> None:
        """Initialize a stream protocol failure."""

        super().__init__(message, failure_kind="stream_protocol", chunk_id=chunk_id)


class PipelineStageError(ChunkwrightError):
    """Raised when a specific pipeline or CLI stage fails."""

    def __init__(
        self,
        *,
        stage: str,
        detail: str,
        hint: str | None = None,
    ) -> None:
        """Initialize a stage-scoped pipeline error."""

        super().__init__(detail)
        self.stage = stage
        self.detail = detail
        self.hint = hint
