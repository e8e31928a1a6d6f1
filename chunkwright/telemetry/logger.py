"""Structured run logging utilities.

Responsibilities:
- Emit concise, deterministic phase-level and chunk-level runtime logs.
- Route every line through `loguru` so library modules share one sink.
"""

from __future__ import annotations

import sys
from typing import TextIO

from loguru import logger as _loguru_logger


def _sanitize_context_value(value: object) -> str:
    """Convert context values into stable, shell-safe tokens."""

    raw = str(value).strip()
    if not raw:
        return "none"
    return "".join(
        character if character.isalnum() or character in {"-", "_", ".", ":", "/"} else "_"
        for character in raw
    )


def _format_context(context: dict[str, object]) -> str:
    """Serialize context key/value pairs in deterministic key order."""

    if not context:
        return ""
    tokens = [
        f"{key}={_sanitize_context_value(context[key])}"
        for key in sorted(context.keys())
    ]
    return " " + " ".join(tokens)


class RunLogger:
    """Emit deterministic phase logs for CLI-observable run activity."""

    def __init__(self, sink: TextIO | None = None, level: str = "INFO") -> None:
        """Initialize logger sink and configure deterministic formatting."""

        self._sink = sink or sys.stdout
        _loguru_logger.remove()
        _loguru_logger.add(self._sink, format="{message}", level=level, colorize=False)

    def _emit(self, level: str, event: str, stage: str, **context: object) -> None:
        """Emit one structured runtime log line."""

        line = f"[phase] level={level} stage={stage} event={event}{_format_context(context)}"
        _loguru_logger.log(level, line)

    def log_stage_start(self, stage: str) -> None:
        """Emit a stage-start runtime event."""

        self._emit("INFO", "start", stage)

    def log_stage_complete(self, stage: str) -> None:
        """Emit a stage-complete runtime event."""

        self._emit("INFO", "complete", stage)

    def log_stage_failure(self, stage: str, error_type: str) -> None:
        """Emit a stage-failure runtime event without sensitive payload details."""

        self._emit("ERROR", "failure", stage, error_type=error_type)

    def log_chunk_dispatch(self, chunk_id: str, position: int, total: int) -> None:
        """Emit a chunk-dispatch event with 1-based run position."""

        self._emit("INFO", "dispatch", "rewrite", chunk=chunk_id, position=f"{position}/{total}")

    def log_chunk_complete(self, chunk_id: str, original_words: int, final_words: int) -> None:
        """Emit a chunk-complete event with word-count totals."""

        self._emit(
            "INFO",
            "chunk_complete",
            "rewrite",
            chunk=chunk_id,
            original_words=original_words,
            final_words=final_words,
        )

    def log_chunk_failure(self, chunk_id: str, failure_kind: str) -> None:
        """Emit a chunk-failure event with the backend failure kind only."""

        self._emit("ERROR", "chunk_failure", "rewrite", chunk=chunk_id, failure_kind=failure_kind)

    def log_length_retry(self, chunk_id: str | None, required_words: int, actual_words: int) -> None:
        """Emit an expansion-retry event for a short rewrite."""

        self._emit(
            "WARNING",
            "length_retry",
            "length",
            chunk=chunk_id or "none",
            required_words=required_words,
            actual_words=actual_words,
        )

    def log_run_cancelled(self, completed: int, total: int) -> None:
        """Emit a run-cancelled event with completed operation counts."""

        self._emit("WARNING", "cancelled", "run", completed=completed, total=total)
