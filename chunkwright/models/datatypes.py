"""Core datatypes shared across chunkwright modules.

Responsibilities:
- Represent documents, chunks, and the records exchanged between run stages.
- Provide explicit typing for serialization of chunk lists and run reports.

Key types:
- `Document`, `Chunk`, `ChunkState`, `ModelVariant`, `RewriteRequest`,
  `RewriteResult`, `ProgressEntry`, `RunState`, `RunOutcome`, `RunReport`.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping

from ..errors import ValidationError


class ModelVariant(str, Enum):
    """Closed set of completion backend variants."""

    CLAUDE = "claude"
    GPT4 = "gpt4"
    PERPLEXITY = "perplexity"
    DEEPSEEK = "deepseek"

    @classmethod
    def parse(cls, value: str | ModelVariant) -> ModelVariant:
        """Resolve a user-facing tag into a model variant.

        Raises:
            ValidationError: If the tag is not one of the supported variants.
        """

        if isinstance(value, ModelVariant):
            return value
        normalized = str(value).strip().lower()
        for variant in cls:
            if variant.value == normalized:
                return variant
        supported = ", ".join(variant.value for variant in cls)
        raise ValidationError(f"Unsupported model `{value}`. Use one of: {supported}.")


class ChunkState(str, Enum):
    """Processing state of one chunk within a run."""

    PENDING = "pending"
    STREAMING = "streaming"
    COMPLETE = "complete"
    FAILED = "failed"
    CANCELLED = "cancelled"


class RunStatus(str, Enum):
    """Global run status owned by the orchestrator."""

    IDLE = "idle"
    RUNNING = "running"
    CANCEL_REQUESTED = "cancel_requested"


class RunOutcome(str, Enum):
    """Terminal outcome of a run."""

    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FAILED = "failed"


@dataclass(frozen=True, slots=True)
class Document:
    """Source document submitted for chunking.

    Attributes:
        document_id: Stable document identifier.
        text: Raw document text.
        title: Optional human-readable title.
    """

    document_id: str
    text: str
    title: str | None = None


@dataclass(slots=True)
class Chunk:
    """A bounded, paragraph-aligned contiguous slice of a source document.

    Attributes:
        chunk_id: Stable identifier unique within one chunking result.
        index: 0-based position in document order.
        title: Detected heading or positional fallback (`Section N`).
        content: Exact source substring `text[start_position:end_position]`.
        preview: Truncated content preview for display.
        start_position: Inclusive character offset in the source document.
        end_position: Exclusive character offset in the source document.
        word_count: Whitespace-delimited word count of `content`.
        selected: Whether the chunk takes part in the next run.
        state: Processing state within the current run.
        rewritten: Final content once the chunk is complete.
        explanation: Optional backend explanation for the rewrite.
        live_content: Best-effort streaming buffer, never used as the final result.
        error: Failure message when the chunk failed.
    """

    chunk_id: str
    index: int
    title: str
    content: str
    preview: str
    start_position: int
    end_position: int
    word_count: int
    selected: bool = True
    state: ChunkState = ChunkState.PENDING
    rewritten: str | None = None
    explanation: str | None = None
    live_content: str = ""
    error: str | None = None

    @property
    def is_processing(self) -> bool:
        """Return whether the chunk is currently in flight."""

        return self.state is ChunkState.STREAMING

    @property
    def is_complete(self) -> bool:
        """Return whether the chunk holds a finalized rewrite."""

        return self.state is ChunkState.COMPLETE


@dataclass(frozen=True, slots=True)
class RewriteRequest:
    """One request sent to the completion backend."""

    content: str
    instructions: str
    model: ModelVariant
    chat_context: str | None = None
    chunk_index: int = 0
    total_chunks: int = 1
    stream: bool = False
    chunk_id: str | None = None

    def as_payload(self) -> dict[str, Any]:
        """Return the wire payload for the rewrite endpoint."""

        payload: dict[str, Any] = {
            "content": self.content,
            "instructions": self.instructions,
            "model": self.model.value,
            "chunkIndex": self.chunk_index,
            "totalChunks": self.total_chunks,
            "stream": self.stream,
        }
        if self.chat_context:
            payload["chatContext"] = self.chat_context
        return payload


@dataclass(frozen=True, slots=True)
class RewriteResult:
    """Final output of one completion request."""

    content: str
    explanation: str | None = None


@dataclass(slots=True)
class ProgressEntry:
    """Display entry for one requested operation, mutated as results arrive."""

    title: str
    kind: str
    chunk_id: str | None = None
    content: str = ""
    completed: bool = False


@dataclass(slots=True)
class RunState:
    """Global run state.

    Attributes:
        status: Current run status.
        current_index: 0-based operation index currently dispatched, or `-1`.
        completed_operations: Number of finished operations.
        total_operations: Number of operations requested for the run.
    """

    status: RunStatus = RunStatus.IDLE
    current_index: int = -1
    completed_operations: int = 0
    total_operations: int = 0

    @property
    def progress_percent(self) -> float:
        """Return completed/total progress in the range 0-100."""

        if self.total_operations <= 0:
            return 0.0
        return 100.0 * self.completed_operations / float(self.total_operations)


@dataclass(frozen=True, slots=True)
class LengthPolicyShortfall:
    """Tolerated length-policy shortfall after the single expansion attempt."""

    chunk_id: str | None
    required_words: int
    actual_words: int


@dataclass(frozen=True, slots=True)
class WordCountDelta:
    """Per-chunk word-count change recorded in run metadata."""

    chunk_id: str
    title: str
    original_words: int
    final_words: int
    expansion_attempted: bool = False

    @property
    def delta(self) -> int:
        """Return the signed word-count change."""

        return self.final_words - self.original_words


@dataclass(frozen=True, slots=True)
class RunReport:
    """Result of one orchestrator run.

    Attributes:
        outcome: Terminal run outcome.
        assembled_text: Final contents of completed operations in document order.
        metadata: Run metadata (model, instructions, mode, counts).
        word_count_deltas: Per-chunk word-count deltas for completed rewrites.
        generated_chunks: Newly generated content in append mode.
        failed_chunk_id: Identifier of the chunk that failed, if any.
        failed_chunk_title: Title of the chunk that failed, if any.
        error_message: Backend failure message for failed runs.
        shortfalls: Tolerated length-policy shortfalls.
    """

    outcome: RunOutcome
    assembled_text: str
    metadata: Mapping[str, Any] = field(default_factory=dict)
    word_count_deltas: tuple[WordCountDelta, ...] = field(default_factory=tuple)
    generated_chunks: tuple[str, ...] = field(default_factory=tuple)
    failed_chunk_id: str | None = None
    failed_chunk_title: str | None = None
    error_message: str | None = None
    shortfalls: tuple[LengthPolicyShortfall, ...] = field(default_factory=tuple)
