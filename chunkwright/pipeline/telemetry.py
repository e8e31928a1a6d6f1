"""Stage telemetry helper methods for chunk runs.

Responsibilities:
- Provide stage index/total metadata for progress reporting.
- Emit stage start/complete/failure events.
- Wrap stage actions with consistent telemetry hooks.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import TypeVar

from ..telemetry.logger import RunLogger

_StageResult = TypeVar("_StageResult")


class RunTelemetryMixin:
    """Provide stage-telemetry helper methods."""

    _PHASE_SEQUENCE = (
        "rewrite",
        "generate",
        "assemble",
    )

    _run_logger: RunLogger | None
    _stage_progress_callback: Callable[[str, int, int], None] | None

    def _reset_backend_call_telemetry(self) -> None:
        """Reset backend call counters for a new run."""

        self._backend_calls = 0
        self._truncation_retries = 0
        self._expansion_retries = 0
        self._length_shortfalls = 0

    def _record_backend_calls(
        self, *, calls: int, truncation_retry: bool = False, expansion_retry: bool = False
    ) -> None:
        """Accumulate backend call telemetry for one operation."""

        self._backend_calls += max(0, int(calls))
        self._truncation_retries += int(truncation_retry)
        self._expansion_retries += int(expansion_retry)

    def _record_length_shortfall(self) -> None:
        """Count one tolerated length shortfall."""

        self._length_shortfalls += 1

    def _backend_call_metadata(self) -> dict[str, str]:
        """Serialize backend call telemetry for run report metadata."""

        return {
            "backend_calls": str(self._backend_calls),
            "truncation_retries": str(self._truncation_retries),
            "expansion_retries": str(self._expansion_retries),
            "length_shortfalls": str(self._length_shortfalls),
        }

    def _stage_position(self, stage_name: str) -> tuple[int, int] | None:
        """Return 1-based stage index and total stage count for known stages."""

        try:
            index = self._PHASE_SEQUENCE.index(stage_name) + 1
        except ValueError:
            return None
        return index, len(self._PHASE_SEQUENCE)

    def _on_stage_start(self, stage_name: str) -> None:
        """Emit start events to stage progress callback and structured logger."""

        stage_position = self._stage_position(stage_name)
        if stage_position and self._stage_progress_callback is not None:
            self._stage_progress_callback(stage_name, stage_position[0], stage_position[1])
        if self._run_logger is not None:
            self._run_logger.log_stage_start(stage_name)

    def _on_stage_complete(self, stage_name: str) -> None:
        """Emit stage-complete event to the structured logger."""

        if self._run_logger is not None:
            self._run_logger.log_stage_complete(stage_name)

    def _on_stage_failure(self, stage_name: str, exc: Exception) -> None:
        """Emit stage-failure event with sanitized exception metadata."""

        if self._run_logger is not None:
            self._run_logger.log_stage_failure(stage_name, type(exc).__name__)

    def _run_stage(
        self,
        stage_name: str,
        action: Callable[[], _StageResult],
    ) -> _StageResult:
        """Run one named stage and emit start/complete/failure telemetry events."""

        self._on_stage_start(stage_name)
        try:
            result = action()
        except Exception as exc:
            self._on_stage_failure(stage_name, exc)
            raise
        self._on_stage_complete(stage_name)
        return result
