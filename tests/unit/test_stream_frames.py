"""Unit tests for the streaming frame parser and reader loop."""

from __future__ import annotations

import json

import pytest

from chunkwright.errors import StreamProtocolError
from chunkwright.llm.streaming import (
    CompleteFrame,
    DeltaFrame,
    ErrorFrame,
    StreamReader,
    iter_frames,
    parse_frame,
)


def _line(payload: object) -> str:
    """Encode one payload as a `data:` line."""

    return f"data: {json.dumps(payload)}"


def test_parse_frame_recognizes_all_frame_types() -> None:
    """Delta, complete, and error payloads should map to typed frames."""

    assert parse_frame(_line({"type": "chunk", "content": "Hel"})) == DeltaFrame("Hel")
    assert parse_frame(
        _line({"type": "complete", "rewrittenContent": "Done.", "explanation": "why"})
    ) == CompleteFrame("Done.", "why")
    assert parse_frame(_line({"type": "error", "error": "quota"})) == ErrorFrame("quota")
    assert parse_frame(_line({"type": "error", "error": {"message": "nested"}})) == ErrorFrame(
        "nested"
    )
    assert parse_frame(_line({"type": "error"})) == ErrorFrame(
        "Backend reported a streaming error."
    )


@pytest.mark.parametrize(
    "line",
    [
        "event: ping",
        ": keep-alive",
        "data: not-json",
        "data: [1, 2]",
        _line({"type": "unknown", "content": "x"}),
        _line({"type": "complete"}),
    ],
)
def test_parse_frame_skips_non_frames(line: str) -> None:
    """Non-data lines, malformed JSON, and unknown frame types should be skipped."""

    assert parse_frame(line) is None


def test_parse_frame_accepts_bytes_lines() -> None:
    """Byte lines should be decoded before parsing."""

    raw = (_line({"type": "chunk", "content": "é"}) + "\r\n").encode("utf-8")

    assert parse_frame(raw) == DeltaFrame("é")


def test_reader_uses_complete_frame_as_final_content() -> None:
    """The `complete` frame should win over accumulated deltas."""

    snapshots: list[str] = []
    reader = StreamReader(on_snapshot=snapshots.append)
    lines = [
        _line({"type": "chunk", "content": "Hel"}),
        "",
        "garbage",
        _line({"type": "chunk", "content": "lo"}),
        _line({"type": "complete", "rewrittenContent": "Hello, world."}),
        _line({"type": "chunk", "content": "ignored"}),
    ]

    result = reader.consume(iter_frames(lines))

    assert result.content == "Hello, world."
    assert snapshots == ["Hel", "Hello"]
    assert reader.live_buffer == "Hello"


def test_reader_raises_on_error_frame() -> None:
    """An `error` frame should surface as a stream protocol failure."""

    reader = StreamReader(chunk_id="chunk-2")
    frames = [DeltaFrame("partial"), ErrorFrame("backend exploded")]

    with pytest.raises(StreamProtocolError, match="backend exploded") as exc_info:
        reader.consume(frames)

    assert exc_info.value.failure_kind == "stream_protocol"
    assert exc_info.value.chunk_id == "chunk-2"


def test_reader_raises_when_stream_ends_without_complete() -> None:
    """Deltas alone should never be treated as a successful completion."""

    reader = StreamReader()

    with pytest.raises(StreamProtocolError, match="without a `complete` frame"):
        reader.consume([DeltaFrame("only"), DeltaFrame(" deltas")])


def test_reader_ignores_observer_failures() -> None:
    """A failing observer should not abort the stream."""

    def _broken_observer(_snapshot: str) -> None:
        """Raise on every live update."""

        raise RuntimeError("render failed")

    reader = StreamReader(on_snapshot=_broken_observer)

    result = reader.consume([DeltaFrame("a"), CompleteFrame("final")])

    assert result.content == "final"
