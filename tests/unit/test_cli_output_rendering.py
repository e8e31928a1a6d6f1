"""Unit tests for CLI diagnostics and run summary rendering."""

from __future__ import annotations

import pytest
import typer

from chunkwright.cli_rendering import echo_run_summary, exit_with_command_error, progress_line
from chunkwright.errors import BackendError, PipelineStageError, ValidationError
from chunkwright.models import ProgressEntry, RunOutcome, RunReport, RunStatus, WordCountDelta
from chunkwright.pipeline.progress import ProgressSnapshot


@pytest.mark.parametrize(
    ("error", "expected"),
    [
        (
            PipelineStageError(stage="config", detail="Bad file.", hint="Fix it."),
            ["rewrite failed at stage `config`: Bad file.", "Hint: Fix it."],
        ),
        (ValidationError("No chunks."), ["rewrite rejected input: No chunks."]),
        (
            BackendError("Backend request timed out.", failure_kind="timeout"),
            ["rewrite failed at stage `backend` (timeout): Backend request timed out."],
        ),
        (RuntimeError("unexpected"), ["rewrite failed: unexpected"]),
    ],
)
def test_exit_with_command_error_formats_diagnostics(
    capsys: pytest.CaptureFixture[str], error: Exception, expected: list[str]
) -> None:
    """Each error family should render its diagnostic and exit with code 1."""

    with pytest.raises(typer.Exit) as exc_info:
        exit_with_command_error("rewrite", error)

    assert exc_info.value.exit_code == 1
    assert capsys.readouterr().err.splitlines() == expected


def test_progress_line_includes_current_title() -> None:
    """Progress lines should show counts, percent, status, and the current entry."""

    snapshot = ProgressSnapshot(
        status=RunStatus.RUNNING,
        current_index=1,
        completed_operations=1,
        total_operations=4,
        progress_percent=25.0,
        entries=(
            ProgressEntry(title="Introduction", kind="rewrite", completed=True),
            ProgressEntry(title="Section 2", kind="rewrite"),
        ),
        chunks=(),
    )

    assert progress_line(snapshot) == "[1/4] 25% running - Section 2"


def test_echo_run_summary_lists_deltas(capsys: pytest.CaptureFixture[str]) -> None:
    """Run summaries should print the outcome and signed word-count deltas."""

    report = RunReport(
        outcome=RunOutcome.COMPLETED,
        assembled_text="text",
        word_count_deltas=(
            WordCountDelta(chunk_id="chunk-1", title="Introduction", original_words=10, final_words=8),
        ),
        generated_chunks=("new",),
    )

    echo_run_summary(report)

    output = capsys.readouterr().out
    assert "Run outcome: completed" in output
    assert "chunk-1 Introduction: 10 -> 8 words (-2)" in output
    assert "Generated chunks: 1" in output
