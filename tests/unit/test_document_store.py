"""Unit tests for document lookup and file reading."""

from __future__ import annotations

from pathlib import Path

import pytest

from chunkwright.errors import ValidationError
from chunkwright.io.document_store import FileDocumentStore, InMemoryDocumentStore, read_document


def test_read_document_reads_text_files(tmp_path: Path) -> None:
    """Plain-text documents should use the file stem as id and title."""

    path = tmp_path / "handbook.md"
    path.write_text("# Handbook\n\nBody.", encoding="utf-8")

    document = read_document(path)

    assert document.document_id == "handbook"
    assert document.title == "handbook"
    assert document.text == "# Handbook\n\nBody."


@pytest.mark.parametrize(
    ("name", "content", "message"),
    [
        ("notes.docx", "text", "Unsupported document type `.docx`"),
        ("blank.txt", "  \n ", "No extractable text"),
    ],
)
def test_read_document_rejects_bad_inputs(
    tmp_path: Path, name: str, content: str, message: str
) -> None:
    """Unsupported or empty files should be rejected."""

    path = tmp_path / name
    path.write_text(content, encoding="utf-8")

    with pytest.raises(ValidationError, match=message):
        read_document(path)


def test_read_document_rejects_missing_file(tmp_path: Path) -> None:
    """Missing files should raise a validation error."""

    with pytest.raises(ValidationError, match="not found"):
        read_document(tmp_path / "missing.txt")


def test_file_store_resolves_ids_by_name_or_stem(tmp_path: Path) -> None:
    """The file store should resolve exact names and supported-suffix stems."""

    (tmp_path / "alpha.txt").write_text("Alpha text.", encoding="utf-8")
    (tmp_path / "beta.md").write_text("Beta text.", encoding="utf-8")
    (tmp_path / "ignored.csv").write_text("a,b", encoding="utf-8")
    store = FileDocumentStore(tmp_path)

    assert store.fetch("alpha").text == "Alpha text."
    assert store.fetch("beta.md").document_id == "beta.md"
    assert store.list_ids() == ["alpha", "beta"]


@pytest.mark.parametrize("document_id", ["", "../alpha", "nested/alpha", "unknown"])
def test_file_store_rejects_invalid_or_unknown_ids(tmp_path: Path, document_id: str) -> None:
    """Path-like, empty, and unknown identifiers should be rejected."""

    (tmp_path / "alpha.txt").write_text("Alpha text.", encoding="utf-8")

    with pytest.raises(ValidationError):
        FileDocumentStore(tmp_path).fetch(document_id)


def test_in_memory_store_add_and_fetch() -> None:
    """The in-memory store should serve added documents and reject unknown ids."""

    store = InMemoryDocumentStore({"one": "First."})
    store.add("two", "Second.")

    assert store.fetch("two").text == "Second."
    with pytest.raises(ValidationError, match="`three` not found"):
        store.fetch("three")
