"""Single-retry truncation fallback for oversized completion requests.

Responsibilities:
- Represent one completion outcome as an explicit value-or-error result.
- Retry a failed oversized request exactly once with truncated content.
"""

from __future__ import annotations

from dataclasses import dataclass, replace

from loguru import logger

from ..errors import BackendError
from ..models import RewriteRequest, RewriteResult
from .completion_client import CompletionClient
from .streaming import SnapshotObserver

MAX_REQUEST_CHARS = 40_000
TRUNCATION_MARKER = "\n\n[Content truncated for processing]"


@dataclass(frozen=True, slots=True)
class CompletionAttempt:
    """Outcome of a completion call, including any truncation retry.

    Attributes:
        result: Backend result when one of the attempts succeeded.
        error: Last backend error when every attempt failed.
        truncated: Whether the successful or final attempt used truncated content.
        attempts: Number of backend calls made (1 or 2).
    """

    result: RewriteResult | None = None
    error: BackendError | None = None
    truncated: bool = False
    attempts: int = 1

    @property
    def succeeded(self) -> bool:
        """Return whether a result is available."""

        return self.result is not None

    def unwrap(self) -> RewriteResult:
        """Return the result or raise the recorded backend error."""

        if self.result is not None:
            return self.result
        if self.error is not None:
            raise self.error
        raise BackendError("Completion attempt produced neither result nor error.")


def truncate_for_request(content: str, max_chars: int = MAX_REQUEST_CHARS) -> str:
    """Cut `content` to `max_chars` characters and append the truncation marker."""

    return f"{content[:max_chars]}{TRUNCATION_MARKER}"


def complete_with_truncation_fallback(
    client: CompletionClient,
    request: RewriteRequest,
    on_snapshot: SnapshotObserver | None = None,
    max_chars: int = MAX_REQUEST_CHARS,
) -> CompletionAttempt:
    """Run one completion and retry once with truncated content when oversized.

    The retry only happens when the first call failed and the request content
    exceeds `max_chars`; smaller requests fail immediately.
    """

    try:
        return CompletionAttempt(result=client.rewrite(request, on_snapshot))
    except BackendError as exc:
        if len(request.content) <= max_chars:
            return CompletionAttempt(error=exc)
        first_error = exc

    logger.warning(
        "Retrying oversized request with truncated content ({} > {} chars): {}",
        len(request.content),
        max_chars,
        first_error.message,
    )
    truncated_request = replace(request, content=truncate_for_request(request.content, max_chars))
    try:
        result = client.rewrite(truncated_request, on_snapshot)
    except BackendError as exc:
        return CompletionAttempt(error=exc, truncated=True, attempts=2)
    return CompletionAttempt(result=result, truncated=True, attempts=2)
