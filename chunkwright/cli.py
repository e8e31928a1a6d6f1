"""Command-line interface for chunkwright.

Responsibilities:
- Expose user-facing commands for chunking, normalization, and rewrite runs.
- Convert CLI arguments into `ChunkwrightConfig` and run options.
- Translate Ctrl-C into cooperative run cancellation.

Key public functions:
- `app`: Typer application instance.
- `main`: invoke the Typer application.
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import replace
import json
import os
from pathlib import Path
import signal
import threading
from typing import Annotated

import typer

from .cli_rendering import echo_chunk_table, echo_run_summary, exit_with_command_error, progress_line
from .cli_runtime import resolve_backend_runtime_sources
from .config import BackendRuntimeConfig, ChunkwrightConfig, ConfigLoader, RuntimeConfigSources
from .credentials import create_credential_store
from .errors import PipelineStageError
from .io.document_store import FileDocumentStore, read_document
from .io.storage import ArtifactStore, chunks_payload
from .llm.completion_client import CompletionClient, HttpCompletionClient, PassThroughCompletionClient
from .models import Document, RunOutcome, RunReport
from .parsing import normalize_optional_string
from .pipeline.orchestrator import ChunkOrchestrator, RunMode, RunOptions
from .pipeline.progress import ProgressSnapshot
from .pipeline.session import Session
from .telemetry.logger import RunLogger
from .text.chunking import Chunker, ChunkingPolicy
from .text.normalizer import TextNormalizer

app = typer.Typer(
    name="chunkwright",
    no_args_is_help=True,
    help="Chunked document rewriting CLI.",
)


class RunProgressIndicator:
    """Print one progress line per dispatch or completion, ignoring live deltas."""

    def __init__(self, command_name: str) -> None:
        """Initialize indicator state for a command invocation."""

        self._command_name = command_name
        self._last_position: tuple[int, int] | None = None

    def on_snapshot(self, snapshot: ProgressSnapshot) -> None:
        """Print a progress line when the dispatched or completed count changes."""

        if snapshot.total_operations == 0:
            return
        position = (snapshot.current_index, snapshot.completed_operations)
        if position == self._last_position:
            return
        self._last_position = position
        typer.echo(f"[progress] command={self._command_name} {progress_line(snapshot)}")

    def on_stage_start(self, stage_name: str, stage_index: int, stage_total: int) -> None:
        """Print one line for a stage start transition."""

        typer.echo(
            f"[progress] command={self._command_name} "
            f"{stage_index}/{stage_total} stage={stage_name}"
        )


@contextmanager
def _cancel_on_interrupt(orchestrator: ChunkOrchestrator) -> Iterator[None]:
    """Route SIGINT to `orchestrator.request_cancel()` for the duration of a run."""

    if threading.current_thread() is not threading.main_thread():
        yield
        return

    def handle_interrupt(signum: int, frame: object) -> None:
        if orchestrator.request_cancel():
            typer.echo("Cancellation requested; stopping before the next chunk.", err=True)

    previous = signal.signal(signal.SIGINT, handle_interrupt)
    try:
        yield
    finally:
        signal.signal(signal.SIGINT, previous)


def _load_yaml_config(config_path: Path | None) -> ChunkwrightConfig | None:
    """Load a YAML config file when requested and map failures to stage errors."""

    if config_path is None:
        return None

    try:
        return ConfigLoader.from_yaml(config_path)
    except FileNotFoundError as exc:
        raise PipelineStageError(
            stage="config",
            detail=f"Config file not found: `{config_path}`.",
            hint="Provide an existing path via `--config <path.yaml>`.",
        ) from exc
    except ValueError as exc:
        raise PipelineStageError(
            stage="config",
            detail=f"Invalid config file `{config_path}`: {exc}",
            hint="Fix config schema/values and rerun.",
        ) from exc


def _chunking_policy(
    base: ChunkingPolicy, target: int | None, minimum: int | None, maximum: int | None
) -> ChunkingPolicy:
    """Apply CLI chunk-size overrides to a base policy."""

    policy = ChunkingPolicy(
        target_words=target if target is not None else base.target_words,
        min_words=minimum if minimum is not None else base.min_words,
        max_words=maximum if maximum is not None else base.max_words,
    )
    try:
        policy.validate()
    except ValueError as exc:
        raise PipelineStageError(
            stage="config",
            detail=str(exc),
            hint="Use `--min` <= `--target` <= `--max` with positive values.",
        ) from exc
    return policy


def _load_document(
    input_path: Path | None, document_id: str | None, store_dir: Path | None
) -> Document:
    """Resolve the command input to a document from a path or a document store."""

    if document_id is not None:
        store = FileDocumentStore(store_dir if store_dir is not None else Path("."))
        return store.fetch(document_id)
    if input_path is None:
        raise PipelineStageError(
            stage="input",
            detail="An input file or `--document-id` is required.",
            hint="Pass `<input.txt>` or `--document-id <id> --store-dir <dir>`.",
        )
    return read_document(input_path)


def _create_client(runtime: BackendRuntimeConfig, config: ChunkwrightConfig) -> CompletionClient:
    """Create the completion client for resolved runtime settings."""

    if runtime.dry_run:
        return PassThroughCompletionClient()
    return HttpCompletionClient(
        endpoint_url=runtime.endpoint_url,
        api_key=runtime.api_key,
        timeout_seconds=config.timeout_seconds,
    )


@app.command("chunk")
def chunk_command(
    input_path: Annotated[
        Path | None,
        typer.Argument(help="Path to a `.txt`, `.md`, or text-based `.pdf` document."),
    ] = None,
    document_id: Annotated[
        str | None,
        typer.Option("--document-id", help="Document identifier resolved in `--store-dir`."),
    ] = None,
    store_dir: Annotated[
        Path | None,
        typer.Option("--store-dir", help="Directory used to resolve `--document-id`."),
    ] = None,
    as_json: Annotated[
        bool,
        typer.Option("--json", help="Print the chunk list as JSON."),
    ] = False,
    target: Annotated[
        int | None, typer.Option("--target", help="Target chunk size in words.")
    ] = None,
    minimum: Annotated[
        int | None, typer.Option("--min", help="Minimum chunk size in words.")
    ] = None,
    maximum: Annotated[
        int | None, typer.Option("--max", help="Maximum chunk size in words.")
    ] = None,
) -> None:
    """Split a document into chunks and print them."""

    try:
        policy = _chunking_policy(ChunkingPolicy(), target, minimum, maximum)
        document = _load_document(input_path, document_id, store_dir)
        session = Session(chunker=Chunker(policy))
        chunks = session.load_document(document)
    except Exception as exc:
        exit_with_command_error("chunk", exc)

    if as_json:
        typer.echo(json.dumps(chunks_payload(chunks), ensure_ascii=False, indent=2))
        return
    typer.echo(f"Chunks: {len(chunks)}")
    echo_chunk_table(chunks)


@app.command("normalize")
def normalize_command(
    input_path: Annotated[Path, typer.Argument(help="Path to text to normalize.")],
    out: Annotated[
        Path | None,
        typer.Option("--out", help="Write normalized text to this file instead of stdout."),
    ] = None,
) -> None:
    """Run the text normalizer on a file."""

    try:
        text = input_path.read_text(encoding="utf-8")
        normalized = TextNormalizer().normalize(text)
        if out is not None:
            out.parent.mkdir(parents=True, exist_ok=True)
            out.write_text(normalized, encoding="utf-8")
    except Exception as exc:
        exit_with_command_error("normalize", exc)

    if out is None:
        typer.echo(normalized)
    else:
        typer.echo(f"Normalized text: {out}")


@app.command("rewrite")
def rewrite_command(
    input_path: Annotated[
        Path | None,
        typer.Argument(help="Path to a `.txt`, `.md`, or text-based `.pdf` document."),
    ] = None,
    instructions: Annotated[
        str | None,
        typer.Option("--instructions", help="Rewrite instructions sent with every chunk."),
    ] = None,
    model: Annotated[
        str | None,
        typer.Option("--model", help="Backend model: `claude`, `gpt4`, `perplexity`, `deepseek`."),
    ] = None,
    select: Annotated[
        str | None,
        typer.Option("--select", help="1-based chunk selection: `2`, `1,3`, `2-4`, `1,3-5`."),
    ] = None,
    stream: Annotated[
        bool | None,
        typer.Option("--stream/--no-stream", help="Use the streaming response protocol."),
    ] = None,
    delay: Annotated[
        float | None,
        typer.Option("--delay", help="Seconds to wait between chunk dispatches."),
    ] = None,
    min_ratio: Annotated[
        float | None,
        typer.Option("--min-ratio", help="Minimum rewrite/original word ratio."),
    ] = None,
    new_chunks: Annotated[
        int,
        typer.Option("--new-chunks", help="Number of new chunks to append after rewriting."),
    ] = 0,
    new_chunk_instructions: Annotated[
        str | None,
        typer.Option("--new-chunk-instructions", help="Instructions for appended chunks."),
    ] = None,
    append_only: Annotated[
        bool,
        typer.Option("--append-only", help="Only append new chunks; keep original text."),
    ] = False,
    chat_context: Annotated[
        str | None,
        typer.Option("--chat-context", help="Conversation context forwarded to the backend."),
    ] = None,
    endpoint: Annotated[
        str | None,
        typer.Option("--endpoint", help="Rewrite endpoint URL override."),
    ] = None,
    api_key: Annotated[
        str | None,
        typer.Option(
            "--api-key",
            help="Backend API key override. Prefer `--prompt-api-key` to avoid shell history.",
        ),
    ] = None,
    prompt_api_key: Annotated[
        bool,
        typer.Option("--prompt-api-key", help="Prompt for API key with hidden input."),
    ] = False,
    store_api_key: Annotated[
        bool,
        typer.Option(
            "--store-api-key/--no-store-api-key",
            help="Persist CLI-entered API key to secure credential storage.",
        ),
    ] = True,
    dry_run: Annotated[
        bool | None,
        typer.Option("--dry-run/--no-dry-run", help="Echo chunks back instead of calling the backend."),
    ] = None,
    config_file: Annotated[
        Path | None,
        typer.Option("--config", help="Path to YAML config file with command defaults."),
    ] = None,
    out: Annotated[
        Path | None,
        typer.Option("--out", help="Output directory (overrides config file value)."),
    ] = None,
    document_id: Annotated[
        str | None,
        typer.Option("--document-id", help="Document identifier resolved in `--store-dir`."),
    ] = None,
    store_dir: Annotated[
        Path | None,
        typer.Option("--store-dir", help="Directory used to resolve `--document-id`."),
    ] = None,
) -> None:
    """Rewrite selected chunks of a document through the completion backend."""

    try:
        runtime_cli_values, runtime_secure_values = resolve_backend_runtime_sources(
            endpoint_url=endpoint,
            model=model,
            api_key=api_key,
            dry_run=dry_run,
            prompt_api_key=prompt_api_key,
            store_api_key=store_api_key,
            credential_store_factory=create_credential_store,
        )
        config = _load_yaml_config(config_file) or ChunkwrightConfig()
        config.runtime_sources = RuntimeConfigSources(
            cli=runtime_cli_values,
            secure=runtime_secure_values,
            env=os.environ,
        )
        runtime = config.resolved_backend_runtime()

        mode = RunMode.REWRITE
        if new_chunks > 0:
            mode = RunMode.ADD if append_only else RunMode.BOTH
        options = RunOptions(
            mode=mode,
            stream=stream if stream is not None else config.stream,
            chat_context=normalize_optional_string(chat_context),
            inter_chunk_delay_seconds=(
                delay if delay is not None else config.inter_chunk_delay_seconds
            ),
            min_ratio=min_ratio if min_ratio is not None else config.min_ratio,
            new_chunk_instructions=normalize_optional_string(new_chunk_instructions),
            new_chunk_count=new_chunks,
        )
        resolved_instructions = normalize_optional_string(instructions) or config.instructions or ""

        document = _load_document(input_path, document_id, store_dir)
        run_logger = RunLogger()
        progress = RunProgressIndicator(command_name="rewrite")
        orchestrator = ChunkOrchestrator(
            _create_client(runtime, config),
            run_logger=run_logger,
            stage_progress_callback=progress.on_stage_start,
        )
        orchestrator.tracker.subscribe(progress.on_snapshot)
        session = Session(chunker=Chunker(config.chunking_policy()), orchestrator=orchestrator)
        session.load_document(document)
        session.select(select if select is not None else config.chunk_selection)

        with _cancel_on_interrupt(orchestrator):
            report = orchestrator.start_run(
                session.chunks, resolved_instructions, runtime.model, options
            )
        report = replace(
            report,
            metadata={
                **report.metadata,
                **runtime.as_report_metadata(),
                **config.extra,
                "document_id": document.document_id,
            },
        )
        text_path, report_path = ArtifactStore(
            out if out is not None else config.output_dir
        ).save_run(report)
    except Exception as exc:
        exit_with_command_error("rewrite", exc)

    echo_run_summary(report)
    typer.echo(f"Rewritten text: {text_path}")
    typer.echo(f"Run report: {report_path}")
    if report.outcome is RunOutcome.FAILED:
        exit_with_command_error("rewrite", _failed_run_error(report))


def _failed_run_error(report: RunReport) -> PipelineStageError:
    """Describe a failed run as a stage error for CLI diagnostics."""

    return PipelineStageError(
        stage="rewrite",
        detail=(
            f"Chunk `{report.failed_chunk_id}` ({report.failed_chunk_title}) failed: "
            f"{report.error_message}"
        ),
        hint="Completed chunks were kept in the written outputs; rerun with `--select`.",
    )


@app.command("credentials")
def credentials_command(
    set_api_key: Annotated[
        bool,
        typer.Option(
            "--set-api-key",
            help="Prompt for API key with hidden input and store it securely.",
        ),
    ] = False,
    clear_api_key: Annotated[
        bool,
        typer.Option(
            "--clear-api-key",
            help="Clear stored API key from secure credential storage.",
        ),
    ] = False,
) -> None:
    """Manage the securely stored backend API key."""

    if set_api_key and clear_api_key:
        exit_with_command_error(
            "credentials",
            PipelineStageError(
                stage="credentials",
                detail="`--set-api-key` and `--clear-api-key` cannot be used together.",
                hint="Run one credentials action per command invocation.",
            ),
        )

    credential_store = create_credential_store()
    if set_api_key:
        prompted_api_key = normalize_optional_string(
            typer.prompt(
                "Backend API key (hidden input)",
                default="",
                hide_input=True,
                show_default=False,
            )
        )
        if prompted_api_key is None:
            exit_with_command_error(
                "credentials",
                PipelineStageError(
                    stage="credentials",
                    detail="No API key entered.",
                    hint="Provide a non-empty API key when using `--set-api-key`.",
                ),
            )
        try:
            credential_store.set_api_key(prompted_api_key)
        except Exception as exc:
            exit_with_command_error(
                "credentials",
                PipelineStageError(
                    stage="credentials",
                    detail=f"Failed to store API key securely: {exc}",
                    hint="Install and configure a keyring backend and retry.",
                ),
            )
        typer.echo("API key stored in secure credential storage.")
        return

    if clear_api_key:
        if credential_store.clear_api_key():
            typer.echo("Stored API key cleared from secure credential storage.")
        else:
            typer.echo("No stored API key found in secure credential storage.")
        return

    status = "present" if credential_store.get_api_key() is not None else "not set"
    typer.echo(f"Stored backend API key: {status}")


def main() -> None:
    """CLI entrypoint for console scripts."""
    app()


if __name__ == "__main__":
    main()
