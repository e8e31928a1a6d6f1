"""Input/output components for chunkwright.

This package contains document lookup and run output storage used by the
session and the CLI.
"""

from .document_store import DocumentStore, FileDocumentStore, InMemoryDocumentStore, read_document
from .storage import ArtifactStore, chunks_payload, run_report_payload

__all__ = [
    "ArtifactStore",
    "DocumentStore",
    "FileDocumentStore",
    "InMemoryDocumentStore",
    "chunks_payload",
    "read_document",
    "run_report_payload",
]
