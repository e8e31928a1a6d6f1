"""Working session holding one document and its chunks.

Responsibilities:
- Chunk inline text or stored documents into the current chunk sequence.
- Apply chunk selections for the next run.
- Reset all session state in one call.
"""

from __future__ import annotations

from ..errors import ValidationError
from ..io.document_store import DocumentStore
from ..models import Chunk, Document
from ..text.chunk_selection import apply_chunk_selection
from ..text.chunking import Chunker, describe_chunk
from .orchestrator import ChunkOrchestrator


class Session:
    """Explicit replacement for process-wide document and chunk state."""

    def __init__(
        self,
        *,
        chunker: Chunker | None = None,
        store: DocumentStore | None = None,
        orchestrator: ChunkOrchestrator | None = None,
    ) -> None:
        """Initialize an empty session."""

        self.chunker = chunker or Chunker()
        self.store = store
        self.orchestrator = orchestrator
        self.document: Document | None = None
        self.chunks: list[Chunk] = []

    def load_text(self, text: str, document_id: str = "inline", title: str | None = None) -> list[Chunk]:
        """Chunk inline text, replacing any previous document and chunks."""

        return self.load_document(Document(document_id=document_id, text=text, title=title))

    def load_from_store(self, document_id: str) -> list[Chunk]:
        """Fetch a document from the configured store and chunk it."""

        if self.store is None:
            raise ValidationError("No document store is configured for this session.")
        return self.load_document(self.store.fetch(document_id))

    def load_document(self, document: Document) -> list[Chunk]:
        """Chunk `document`, discarding chunks from any previous request."""

        if not document.text or not document.text.strip():
            raise ValidationError("Document content is required.")
        self._require_idle()
        self.document = document
        self.chunks = self.chunker.split(document.text)
        return self.chunks

    def select(self, selection: str | None) -> list[Chunk]:
        """Apply a 1-based selection expression and return the selected chunks."""

        if not self.chunks:
            raise ValidationError("No chunks to select. Chunk a document first.")
        return apply_chunk_selection(self.chunks, selection)

    def selected_chunks(self) -> list[Chunk]:
        """Return chunks currently selected for the next run."""

        return [chunk for chunk in self.chunks if chunk.selected]

    def describe_chunks(self) -> list[str]:
        """Return one summary line per chunk."""

        return [describe_chunk(chunk) for chunk in self.chunks]

    def reset(self) -> None:
        """Drop the document, its chunks, and idle run progress.

        An active run is asked to cancel first; its progress is cleared once it
        has stopped.
        """

        if self.orchestrator is not None:
            self.orchestrator.request_cancel()
            self.orchestrator.clear()
        self.document = None
        self.chunks = []

    def _require_idle(self) -> None:
        """Reject re-chunking while a run is using the current chunks."""

        if self.orchestrator is not None and not self.orchestrator.tracker.clear():
            raise ValidationError("Cannot re-chunk while a run is in progress.")
