"""Streaming response frame protocol for the completion backend.

Responsibilities:
- Parse `data: {json}` response lines into typed frames.
- Consume frames in a single reader loop that feeds a live buffer to observers.
- Treat the `complete` frame as the authoritative final content.

Frame shapes:
- `{"type": "chunk", "content": str}`: incremental delta.
- `{"type": "complete", "rewrittenContent": str, "explanation"?: str}`.
- `{"type": "error", "error": str}`.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Iterator
from dataclasses import dataclass
import json
from typing import Union

from loguru import logger

from ..errors import StreamProtocolError
from ..models import RewriteResult

DATA_PREFIX = "data: "

SnapshotObserver = Callable[[str], None]


@dataclass(frozen=True, slots=True)
class DeltaFrame:
    """Incremental text delta."""

    content: str


@dataclass(frozen=True, slots=True)
class CompleteFrame:
    """Terminal frame carrying the authoritative final content."""

    content: str
    explanation: str | None = None


@dataclass(frozen=True, slots=True)
class ErrorFrame:
    """Terminal frame reporting a backend failure."""

    message: str


StreamFrame = Union[DeltaFrame, CompleteFrame, ErrorFrame]


def parse_frame(line: str | bytes) -> StreamFrame | None:
    """Parse one response line into a frame.

    Returns:
        Parsed frame, or `None` for non-data lines and malformed payloads.
    """

    if isinstance(line, bytes):
        line = line.decode("utf-8", errors="replace")
    line = line.rstrip("\r\n")
    if not line.startswith(DATA_PREFIX):
        return None

    raw_payload = line[len(DATA_PREFIX) :]
    try:
        payload = json.loads(raw_payload)
    except json.JSONDecodeError:
        logger.debug("Skipping malformed stream frame: {}", raw_payload[:80])
        return None
    if not isinstance(payload, dict):
        logger.debug("Skipping non-object stream frame: {}", raw_payload[:80])
        return None

    frame_type = payload.get("type")
    if frame_type == "chunk":
        content = payload.get("content")
        if isinstance(content, str):
            return DeltaFrame(content=content)
    elif frame_type == "complete":
        content = payload.get("rewrittenContent")
        if isinstance(content, str):
            explanation = payload.get("explanation")
            return CompleteFrame(
                content=content,
                explanation=explanation if isinstance(explanation, str) else None,
            )
    elif frame_type == "error":
        message = payload.get("error")
        if isinstance(message, dict):
            message = message.get("message")
        if not isinstance(message, str) or not message.strip():
            message = "Backend reported a streaming error."
        return ErrorFrame(message=message)

    logger.debug("Skipping unrecognized stream frame of type `{}`.", frame_type)
    return None


def iter_frames(lines: Iterable[str | bytes]) -> Iterator[StreamFrame]:
    """Yield parsed frames from raw response lines, skipping non-frames."""

    for line in lines:
        if not line:
            continue
        frame = parse_frame(line)
        if frame is not None:
            yield frame


class StreamReader:
    """Single reader loop for one streaming completion."""

    def __init__(
        self,
        on_snapshot: SnapshotObserver | None = None,
        chunk_id: str | None = None,
    ) -> None:
        """Initialize the reader with an optional live-buffer observer."""

        self._on_snapshot = on_snapshot
        self._chunk_id = chunk_id
        self.live_buffer = ""

    def consume(self, frames: Iterable[StreamFrame]) -> RewriteResult:
        """Read frames until a terminal frame arrives.

        Returns:
            Result built from the `complete` frame, not from accumulated deltas.

        Raises:
            StreamProtocolError: On an `error` frame or when frames run out first.
        """

        for frame in frames:
            if isinstance(frame, DeltaFrame):
                self.live_buffer += frame.content
                self._notify()
                continue
            if isinstance(frame, CompleteFrame):
                return RewriteResult(content=frame.content, explanation=frame.explanation)
            raise StreamProtocolError(frame.message, chunk_id=self._chunk_id)

        raise StreamProtocolError(
            "Stream ended without a `complete` frame.", chunk_id=self._chunk_id
        )

    def _notify(self) -> None:
        """Push the live buffer to the observer; observer failures never abort the stream."""

        if self._on_snapshot is None:
            return
        try:
            self._on_snapshot(self.live_buffer)
        except Exception as exc:
            logger.warning("Ignoring streaming observer failure: {}", exc)
