"""Sequential chunk rewrite orchestration.

Responsibilities:
- Drive selected chunks through the completion backend one at a time.
- Own per-chunk state transitions and the global run status.
- Honour cooperative cancellation before each dispatch and during delays.
- Assemble completed results into a `RunReport`.

Key types:
- `ChunkOrchestrator`: run facade.
- `RunOptions`: per-run behaviour switches.
- `RunMode`: rewrite selected chunks, append new chunks, or both.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass
from enum import Enum
import threading

from ..errors import BackendError, ValidationError
from ..llm.completion_client import CompletionClient
from ..llm.fallback import complete_with_truncation_fallback
from ..llm.length_enforcer import DEFAULT_MIN_RATIO, LengthEnforcer
from ..llm.prompts import PromptLibrary
from ..models import (
    Chunk,
    ChunkState,
    LengthPolicyShortfall,
    ModelVariant,
    ProgressEntry,
    RewriteRequest,
    RunOutcome,
    RunReport,
    RunStatus,
    WordCountDelta,
)
from ..telemetry.logger import RunLogger
from ..text.chunk_selection import format_chunk_selection
from ..text.normalizer import TextNormalizer
from .progress import ProgressTracker
from .telemetry import RunTelemetryMixin

OUTPUT_SEPARATOR = "\n\n"


class RunMode(str, Enum):
    """Which operations a run performs."""

    REWRITE = "rewrite"
    ADD = "add"
    BOTH = "both"

    @property
    def rewrites(self) -> bool:
        """Return whether selected chunks are rewritten."""

        return self in {RunMode.REWRITE, RunMode.BOTH}

    @property
    def appends(self) -> bool:
        """Return whether new chunks are generated."""

        return self in {RunMode.ADD, RunMode.BOTH}


@dataclass(frozen=True, slots=True)
class RunOptions:
    """Per-run behaviour switches.

    Attributes:
        mode: Rewrite selected chunks, append new chunks, or both.
        stream: Request streamed responses for rewrites.
        chat_context: Optional conversation context forwarded to the backend.
        inter_chunk_delay_seconds: Fixed pause between successive dispatches.
        min_ratio: Minimum rewrite/original word ratio before one expansion retry.
        new_chunk_instructions: Instructions for appended chunks.
        new_chunk_count: Number of chunks to append.
    """

    mode: RunMode = RunMode.REWRITE
    stream: bool = True
    chat_context: str | None = None
    inter_chunk_delay_seconds: float = 0.0
    min_ratio: float = DEFAULT_MIN_RATIO
    new_chunk_instructions: str | None = None
    new_chunk_count: int = 0


@dataclass(frozen=True, slots=True)
class _Operation:
    """One dispatch unit of a run."""

    kind: str
    title: str
    chunk: Chunk | None = None
    number: int = 0


class ChunkOrchestrator(RunTelemetryMixin):
    """Coordinate one sequential rewrite run over a chunk sequence."""

    def __init__(
        self,
        client: CompletionClient,
        *,
        normalizer: TextNormalizer | None = None,
        prompts: PromptLibrary | None = None,
        tracker: ProgressTracker | None = None,
        run_logger: RunLogger | None = None,
        stage_progress_callback: Callable[[str, int, int], None] | None = None,
        sleeper: Callable[[float], object] | None = None,
    ) -> None:
        """Initialize collaborators and optional runtime hooks.

        Args:
            client: Completion backend used for every request.
            normalizer: Cleanup applied to every backend result.
            prompts: Instruction templates for expansions and appended chunks.
            tracker: Progress tracker shared with observers.
            run_logger: Structured logger for run events.
            stage_progress_callback: Called with `(stage, index, total)` per phase.
            sleeper: Inter-chunk wait; defaults to a wait that cancellation interrupts.
        """

        self.client = client
        self.normalizer = normalizer or TextNormalizer()
        self.prompts = prompts or PromptLibrary()
        self.tracker = tracker or ProgressTracker()
        self._run_logger = run_logger
        self._stage_progress_callback = stage_progress_callback
        self._cancel_event = threading.Event()
        self._sleeper = sleeper or self._cancel_event.wait
        self._reset_backend_call_telemetry()

    @property
    def status(self) -> RunStatus:
        """Return the global run status."""

        return self.tracker.status

    def request_cancel(self) -> bool:
        """Ask the active run to stop before its next dispatch.

        Returns:
            Whether a running run received the request.
        """

        with self.tracker.lock:
            if not self.tracker.request_cancel():
                return False
            self._cancel_event.set()
        return True

    def clear(self) -> bool:
        """Reset progress to `IDLE` when no run is active."""

        return self.tracker.clear()

    def start_run(
        self,
        chunks: Sequence[Chunk],
        instructions: str,
        model: ModelVariant | str,
        options: RunOptions | None = None,
    ) -> RunReport:
        """Run all requested operations sequentially and return the report.

        Raises:
            ValidationError: If the run request is incomplete or a run is active.
        """

        options = options or RunOptions()
        variant = ModelVariant.parse(model)
        selected = self._validate_run(chunks, instructions, options)
        operations = self._plan_operations(selected, options)

        with self.tracker.lock:
            if self.tracker.status is not RunStatus.IDLE:
                raise ValidationError("A run is already in progress.")
            self._cancel_event.clear()
            for chunk in selected:
                chunk.state = ChunkState.PENDING
                chunk.rewritten = None
                chunk.explanation = None
                chunk.live_content = ""
                chunk.error = None
            entries = [
                ProgressEntry(
                    title=operation.title,
                    kind=operation.kind,
                    chunk_id=operation.chunk.chunk_id if operation.chunk else None,
                )
                for operation in operations
            ]
            self.tracker.begin(chunks, entries)

        self._reset_backend_call_telemetry()
        try:
            return self._execute(list(chunks), selected, operations, instructions, variant, options)
        finally:
            with self.tracker.lock:
                # Only unexpected client errors leave a chunk in flight here.
                for chunk in selected:
                    if chunk.state is ChunkState.STREAMING:
                        chunk.state = ChunkState.FAILED
                        chunk.error = chunk.error or "Run aborted by an unexpected error."
                        chunk.live_content = ""
                self._cancel_event.clear()
                self.tracker.finish()

    def _validate_run(
        self, chunks: Sequence[Chunk], instructions: str, options: RunOptions
    ) -> list[Chunk]:
        """Validate run inputs and return selected chunks in document order."""

        if not chunks:
            raise ValidationError("No chunks to process. Chunk a document first.")
        if options.inter_chunk_delay_seconds < 0:
            raise ValidationError("`inter_chunk_delay_seconds` must be non-negative.")
        if options.min_ratio <= 0:
            raise ValidationError("`min_ratio` must be greater than zero.")

        selected = sorted((chunk for chunk in chunks if chunk.selected), key=lambda c: c.index)
        if options.mode.rewrites:
            if not selected:
                raise ValidationError("Select at least one chunk to rewrite.")
            if not instructions or not instructions.strip():
                raise ValidationError("Rewrite instructions are required.")
        if options.mode.appends:
            if not options.new_chunk_instructions or not options.new_chunk_instructions.strip():
                raise ValidationError("New chunk instructions are required to append content.")
            if options.new_chunk_count < 1:
                raise ValidationError("`new_chunk_count` must be a positive integer.")
        return selected if options.mode.rewrites else []

    @staticmethod
    def _plan_operations(selected: Sequence[Chunk], options: RunOptions) -> list[_Operation]:
        """Build the ordered operation list for a run."""

        operations = [
            _Operation(kind="rewrite", title=chunk.title, chunk=chunk) for chunk in selected
        ]
        if options.mode.appends:
            operations.extend(
                _Operation(kind="generate", title=f"New Content {number}", number=number)
                for number in range(1, options.new_chunk_count + 1)
            )
        return operations

    def _execute(
        self,
        chunks: list[Chunk],
        selected: list[Chunk],
        operations: list[_Operation],
        instructions: str,
        model: ModelVariant,
        options: RunOptions,
    ) -> RunReport:
        """Dispatch operations one at a time until done, cancelled, or failed."""

        enforcer = LengthEnforcer(
            self.client,
            normalizer=self.normalizer,
            min_ratio=options.min_ratio,
            prompts=self.prompts,
            run_logger=self._run_logger,
        )
        rewritten: list[str] = []
        generated: list[str] = []
        deltas: list[WordCountDelta] = []
        shortfalls: list[LengthPolicyShortfall] = []

        def report(outcome: RunOutcome, **failure: str | None) -> RunReport:
            return self._build_report(
                outcome,
                chunks=chunks,
                selected=selected,
                instructions=instructions,
                model=model,
                options=options,
                rewritten=rewritten,
                generated=generated,
                deltas=deltas,
                shortfalls=shortfalls,
                **failure,
            )

        current_stage: str | None = None
        for position, operation in enumerate(operations):
            if position > 0 and options.inter_chunk_delay_seconds > 0:
                self._sleeper(options.inter_chunk_delay_seconds)
            if self._cancel_event.is_set():
                self._mark_cancelled(operations[position:])
                if self._run_logger is not None:
                    self._run_logger.log_run_cancelled(position, len(operations))
                return report(RunOutcome.CANCELLED)

            if operation.kind != current_stage:
                if current_stage is not None:
                    self._on_stage_complete(current_stage)
                current_stage = operation.kind
                self._on_stage_start(current_stage)

            self.tracker.set_current(position)
            try:
                if operation.chunk is not None:
                    content = self._rewrite_chunk(
                        operation.chunk, len(chunks), instructions, model, options, enforcer,
                        deltas, shortfalls,
                    )
                    rewritten.append(content)
                else:
                    base_text = self._base_text(chunks, rewritten, options)
                    content = self._generate_chunk(
                        operation.number, chunks, base_text, generated, model, options
                    )
                    generated.append(content)
            except BackendError as exc:
                self._on_stage_failure(current_stage, exc)
                failed_id = self._mark_failed(operation, exc)
                return report(
                    RunOutcome.FAILED,
                    failed_chunk_id=failed_id,
                    failed_chunk_title=operation.title,
                    error_message=exc.message,
                )
            self.tracker.complete_operation(position, content)

        if current_stage is not None:
            self._on_stage_complete(current_stage)
        return self._run_stage("assemble", lambda: report(RunOutcome.COMPLETED))

    def _rewrite_chunk(
        self,
        chunk: Chunk,
        total_chunks: int,
        instructions: str,
        model: ModelVariant,
        options: RunOptions,
        enforcer: LengthEnforcer,
        deltas: list[WordCountDelta],
        shortfalls: list[LengthPolicyShortfall],
    ) -> str:
        """Rewrite one chunk, normalize it, and apply the length policy."""

        with self.tracker.lock:
            chunk.state = ChunkState.STREAMING
        if self._run_logger is not None:
            self._run_logger.log_chunk_dispatch(chunk.chunk_id, chunk.index + 1, total_chunks)

        request = RewriteRequest(
            content=chunk.content,
            instructions=instructions,
            model=model,
            chat_context=options.chat_context,
            chunk_index=chunk.index,
            total_chunks=total_chunks,
            stream=options.stream,
            chunk_id=chunk.chunk_id,
        )
        attempt = complete_with_truncation_fallback(
            self.client, request, on_snapshot=self._live_observer(chunk)
        )
        self._record_backend_calls(calls=attempt.attempts, truncation_retry=attempt.truncated)
        result = attempt.unwrap()

        outcome = enforcer.enforce(chunk.content, self.normalizer.normalize(result.content), request)
        if outcome.expansion_attempted:
            self._record_backend_calls(calls=1, expansion_retry=True)
        if outcome.shortfall is not None:
            self._record_length_shortfall()
            shortfalls.append(outcome.shortfall)
        deltas.append(
            WordCountDelta(
                chunk_id=chunk.chunk_id,
                title=chunk.title,
                original_words=outcome.original_words,
                final_words=outcome.final_words,
                expansion_attempted=outcome.expansion_attempted,
            )
        )

        with self.tracker.lock:
            chunk.rewritten = outcome.content
            chunk.explanation = result.explanation
            chunk.live_content = ""
            chunk.state = ChunkState.COMPLETE
        if self._run_logger is not None:
            self._run_logger.log_chunk_complete(
                chunk.chunk_id, outcome.original_words, outcome.final_words
            )
        return outcome.content

    def _generate_chunk(
        self,
        number: int,
        chunks: Sequence[Chunk],
        base_text: str,
        generated: Sequence[str],
        model: ModelVariant,
        options: RunOptions,
    ) -> str:
        """Generate one appended chunk from document and existing-content context."""

        original_text = OUTPUT_SEPARATOR.join(chunk.content for chunk in chunks)
        existing_text = OUTPUT_SEPARATOR.join(part for part in (base_text, *generated) if part)
        request = RewriteRequest(
            content=self.prompts.new_chunk_context(original_text, existing_text),
            instructions=self.prompts.new_chunk_instructions(
                options.new_chunk_instructions or "", number, options.new_chunk_count
            ),
            model=model,
            chat_context=options.chat_context,
            chunk_index=len(chunks) + number - 1,
            total_chunks=len(chunks) + options.new_chunk_count,
            stream=False,
            chunk_id=f"new-{number}",
        )
        if self._run_logger is not None:
            self._run_logger.log_chunk_dispatch(
                request.chunk_id or "", number, options.new_chunk_count
            )
        attempt = complete_with_truncation_fallback(self.client, request)
        self._record_backend_calls(calls=attempt.attempts, truncation_retry=attempt.truncated)
        return self.normalizer.normalize(attempt.unwrap().content)

    def _live_observer(self, chunk: Chunk) -> Callable[[str], None]:
        """Return a streaming observer that mirrors deltas into `chunk.live_content`."""

        def observe(live_buffer: str) -> None:
            with self.tracker.lock:
                chunk.live_content = live_buffer
            self.tracker.publish()

        return observe

    def _mark_cancelled(self, remaining: Sequence[_Operation]) -> None:
        """Mark not-yet-dispatched chunks cancelled."""

        with self.tracker.lock:
            for operation in remaining:
                if operation.chunk is None:
                    continue
                operation.chunk.state = ChunkState.CANCELLED
                operation.chunk.rewritten = None
                operation.chunk.live_content = ""

    def _mark_failed(self, operation: _Operation, exc: BackendError) -> str:
        """Mark the failing operation's chunk and return its identifier."""

        failed_id = exc.chunk_id or (
            operation.chunk.chunk_id if operation.chunk else f"new-{operation.number}"
        )
        if operation.chunk is not None:
            with self.tracker.lock:
                operation.chunk.state = ChunkState.FAILED
                operation.chunk.error = exc.message
                operation.chunk.live_content = ""
        if self._run_logger is not None:
            self._run_logger.log_chunk_failure(failed_id, exc.failure_kind)
        return failed_id

    @staticmethod
    def _base_text(chunks: Sequence[Chunk], rewritten: Sequence[str], options: RunOptions) -> str:
        """Return the content that appended chunks follow."""

        if options.mode.rewrites:
            return OUTPUT_SEPARATOR.join(rewritten)
        return OUTPUT_SEPARATOR.join(chunk.content for chunk in chunks)

    def _build_report(
        self,
        outcome: RunOutcome,
        *,
        chunks: Sequence[Chunk],
        selected: Sequence[Chunk],
        instructions: str,
        model: ModelVariant,
        options: RunOptions,
        rewritten: Sequence[str],
        generated: Sequence[str],
        deltas: Sequence[WordCountDelta],
        shortfalls: Sequence[LengthPolicyShortfall],
        failed_chunk_id: str | None = None,
        failed_chunk_title: str | None = None,
        error_message: str | None = None,
    ) -> RunReport:
        """Assemble completed results and run metadata into a report."""

        parts = [self._base_text(chunks, rewritten, options), *generated]
        assembled = OUTPUT_SEPARATOR.join(part for part in parts if part)
        snapshot = self.tracker.snapshot()
        metadata: dict[str, object] = {
            "model": model.value,
            "instructions": instructions,
            "mode": options.mode.value,
            "stream": options.stream,
            "selected_chunks": format_chunk_selection(chunk.index + 1 for chunk in selected),
            "total_chunks": len(chunks),
            "completed_operations": snapshot.completed_operations,
            "total_operations": snapshot.total_operations,
            "original_words": sum(delta.original_words for delta in deltas),
            "final_words": sum(delta.final_words for delta in deltas),
            "min_ratio": options.min_ratio,
        }
        if options.mode.appends:
            metadata["new_chunk_instructions"] = options.new_chunk_instructions
            metadata["new_chunk_count"] = options.new_chunk_count
        metadata.update(self._backend_call_metadata())

        return RunReport(
            outcome=outcome,
            assembled_text=assembled,
            metadata=metadata,
            word_count_deltas=tuple(deltas),
            generated_chunks=tuple(generated),
            failed_chunk_id=failed_chunk_id,
            failed_chunk_title=failed_chunk_title,
            error_message=error_message,
            shortfalls=tuple(shortfalls),
        )
