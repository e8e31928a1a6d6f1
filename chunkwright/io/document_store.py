"""Source document lookup.

Responsibilities:
- Resolve document identifiers into `Document` records.
- Read plain-text, markdown, and text-based PDF files from disk.
"""

from __future__ import annotations

from collections.abc import Mapping
from pathlib import Path
from typing import Protocol

from pypdf import PdfReader
from pypdf.errors import PdfReadError

from ..errors import ValidationError
from ..models import Document

SUPPORTED_SUFFIXES = (".txt", ".md", ".pdf")


class DocumentStore(Protocol):
    """Protocol for collaborators that resolve documents by identifier."""

    def fetch(self, document_id: str) -> Document:
        """Return the document stored under `document_id`."""


def read_document(path: Path, document_id: str | None = None) -> Document:
    """Read one supported file into a document.

    Raises:
        ValidationError: If the file is missing, unsupported, or has no text.
    """

    if not path.exists() or not path.is_file():
        raise ValidationError(f"Input document not found: {path}")
    suffix = path.suffix.lower()
    if suffix not in SUPPORTED_SUFFIXES:
        raise ValidationError(
            f"Unsupported document type `{suffix or path.name}`. "
            f"Use one of: {', '.join(SUPPORTED_SUFFIXES)}."
        )

    if suffix == ".pdf":
        text = _extract_pdf_text(path)
    else:
        text = path.read_text(encoding="utf-8")
    if not text.strip():
        raise ValidationError(f"No extractable text found in document: {path}")
    return Document(document_id=document_id or path.stem, text=text, title=path.stem)


def _extract_pdf_text(path: Path) -> str:
    """Extract page texts with `pypdf`, separated by blank lines."""

    try:
        reader = PdfReader(str(path))
        pages = [(page.extract_text() or "").replace("\f", "\n").strip() for page in reader.pages]
    except PdfReadError as exc:
        raise ValidationError(f"Could not read PDF document {path}: {exc}") from exc
    return "\n\n".join(page for page in pages if page)


class FileDocumentStore:
    """Resolve document identifiers to files under a root directory."""

    def __init__(self, root: Path) -> None:
        """Initialize the store with its root directory."""

        self.root = root

    def fetch(self, document_id: str) -> Document:
        """Return the document whose file name or stem matches `document_id`."""

        if not document_id or Path(document_id).name != document_id:
            raise ValidationError(f"Invalid document identifier `{document_id}`.")
        direct = self.root / document_id
        if direct.is_file():
            return read_document(direct, document_id=document_id)
        for suffix in SUPPORTED_SUFFIXES:
            candidate = self.root / f"{document_id}{suffix}"
            if candidate.is_file():
                return read_document(candidate, document_id=document_id)
        raise ValidationError(f"Document `{document_id}` not found in {self.root}.")

    def list_ids(self) -> list[str]:
        """Return sorted identifiers of supported documents in the store."""

        if not self.root.is_dir():
            return []
        return sorted(
            path.stem
            for path in self.root.iterdir()
            if path.is_file() and path.suffix.lower() in SUPPORTED_SUFFIXES
        )


class InMemoryDocumentStore:
    """Dictionary-backed document store for embedding and tests."""

    def __init__(self, documents: Mapping[str, str] | None = None) -> None:
        """Initialize with `document_id -> text` entries."""

        self._documents = dict(documents or {})

    def add(self, document_id: str, text: str) -> None:
        """Store or replace one document text."""

        self._documents[document_id] = text

    def fetch(self, document_id: str) -> Document:
        """Return the stored document or raise `ValidationError`."""

        try:
            text = self._documents[document_id]
        except KeyError as exc:
            raise ValidationError(f"Document `{document_id}` not found.") from exc
        return Document(document_id=document_id, text=text)
