"""Shared test doubles and document builders for the chunkwright test suite."""

from __future__ import annotations

from collections.abc import Callable

from chunkwright.llm.streaming import SnapshotObserver
from chunkwright.models import Chunk, RewriteRequest, RewriteResult
from chunkwright.text.metrics import preview, word_count

Responder = Callable[[RewriteRequest], "str | Exception"]


def paragraph(words: int, tag: str = "word") -> str:
    """Return one lowercase paragraph of `words` words ending with a period."""

    return " ".join(f"{tag}{index}" for index in range(words)) + "."


def document_of(paragraph_sizes: list[int]) -> str:
    """Return a blank-line separated document with the given paragraph word counts."""

    return "\n\n".join(
        paragraph(size, tag=f"p{position}w") for position, size in enumerate(paragraph_sizes)
    )


def make_chunks(count: int, words: int = 20) -> list[Chunk]:
    """Build `count` contiguous chunks without running the chunker."""

    chunks: list[Chunk] = []
    cursor = 0
    for index in range(count):
        content = paragraph(words, tag=f"c{index}w")
        chunks.append(
            Chunk(
                chunk_id=f"chunk-{index + 1}",
                index=index,
                title=f"Section {index + 1}",
                content=content,
                preview=preview(content),
                start_position=cursor,
                end_position=cursor + len(content),
                word_count=word_count(content),
            )
        )
        cursor += len(content) + 2
    return chunks


def doubled(request: RewriteRequest) -> str:
    """Default responder: repeat the content so the length policy is satisfied."""

    return f"{request.content} {request.content}"


class FakeCompletionClient:
    """Scripted completion client recording every request."""

    def __init__(self, responder: Responder = doubled, deltas: int = 2) -> None:
        """Initialize with a responder returning content or an exception to raise."""

        self.responder = responder
        self.deltas = deltas
        self.requests: list[RewriteRequest] = []

    @property
    def chunk_ids(self) -> list[str | None]:
        """Return chunk identifiers of recorded requests in call order."""

        return [request.chunk_id for request in self.requests]

    def rewrite(
        self,
        request: RewriteRequest,
        on_snapshot: SnapshotObserver | None = None,
    ) -> RewriteResult:
        """Return the scripted response, emitting live snapshots for streamed requests."""

        self.requests.append(request)
        outcome = self.responder(request)
        if isinstance(outcome, Exception):
            raise outcome
        if request.stream and on_snapshot is not None:
            step = max(1, len(outcome) // max(1, self.deltas))
            for end in range(step, len(outcome) + step, step):
                on_snapshot(outcome[:end])
        return RewriteResult(content=outcome)
