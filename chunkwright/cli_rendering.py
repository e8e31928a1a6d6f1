"""CLI output and error rendering helpers.

This module centralizes user-facing CLI presentation for command diagnostics,
chunk tables, live progress lines, and run summaries.
"""

from __future__ import annotations

from typing import NoReturn, Sequence

import typer

from .errors import BackendError, PipelineStageError, ValidationError
from .models import Chunk, RunOutcome, RunReport
from .pipeline.progress import ProgressSnapshot
from .text.chunking import describe_chunk


def exit_with_command_error(command_name: str, exc: Exception) -> NoReturn:
    """Print concise diagnostics for command failures and exit with code 1."""

    if isinstance(exc, PipelineStageError):
        typer.secho(
            f"{command_name} failed at stage `{exc.stage}`: {exc.detail}",
            fg=typer.colors.RED,
            err=True,
        )
        if exc.hint:
            typer.secho(f"Hint: {exc.hint}", fg=typer.colors.YELLOW, err=True)
    elif isinstance(exc, ValidationError):
        typer.secho(f"{command_name} rejected input: {exc}", fg=typer.colors.RED, err=True)
    elif isinstance(exc, BackendError):
        typer.secho(
            f"{command_name} failed at stage `backend` ({exc.failure_kind}): {exc.message}",
            fg=typer.colors.RED,
            err=True,
        )
    else:
        typer.secho(f"{command_name} failed: {exc}", fg=typer.colors.RED, err=True)
    raise typer.Exit(code=1) from exc


def echo_chunk_table(chunks: Sequence[Chunk]) -> None:
    """Print one summary row per chunk with its 1-based index and offsets."""

    for chunk in chunks:
        typer.echo(
            f"{chunk.index + 1}. {describe_chunk(chunk)} "
            f"[{chunk.start_position}:{chunk.end_position}]"
        )


def progress_line(snapshot: ProgressSnapshot) -> str:
    """Return a compact progress line for the current snapshot."""

    current = ""
    if 0 <= snapshot.current_index < len(snapshot.entries):
        current = f" - {snapshot.entries[snapshot.current_index].title}"
    return (
        f"[{snapshot.completed_operations}/{snapshot.total_operations}] "
        f"{snapshot.progress_percent:.0f}% {snapshot.status.value}{current}"
    )


def echo_run_summary(report: RunReport) -> None:
    """Print the run outcome, word-count deltas, and any failure details."""

    color = {
        RunOutcome.COMPLETED: typer.colors.GREEN,
        RunOutcome.CANCELLED: typer.colors.YELLOW,
        RunOutcome.FAILED: typer.colors.RED,
    }[report.outcome]
    typer.secho(f"Run outcome: {report.outcome.value}", fg=color)
    for delta in report.word_count_deltas:
        retry = " (expanded)" if delta.expansion_attempted else ""
        typer.echo(
            f"  {delta.chunk_id} {delta.title}: {delta.original_words} -> "
            f"{delta.final_words} words ({delta.delta:+d}){retry}"
        )
    if report.generated_chunks:
        typer.echo(f"  Generated chunks: {len(report.generated_chunks)}")
    for shortfall in report.shortfalls:
        typer.secho(
            f"  Length shortfall in {shortfall.chunk_id}: "
            f"{shortfall.actual_words}/{shortfall.required_words} words",
            fg=typer.colors.YELLOW,
        )
    if report.outcome is RunOutcome.FAILED:
        typer.secho(
            f"Failed chunk: {report.failed_chunk_id} ({report.failed_chunk_title}): "
            f"{report.error_message}",
            fg=typer.colors.RED,
            err=True,
        )
