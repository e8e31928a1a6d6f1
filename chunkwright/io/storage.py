"""Run output storage.

Responsibilities:
- Persist assembled run output and JSON run reports on the filesystem.
- Serialize chunk lists and reports into stable JSON payloads.
"""

from __future__ import annotations

from dataclasses import asdict
import json
from pathlib import Path
from typing import Any, Sequence

from ..models import Chunk, RunReport
from ..text.chunking import chunk_to_payload

REWRITTEN_TEXT_NAME = "rewritten.txt"
RUN_REPORT_NAME = "run_report.json"
CHUNKS_NAME = "chunks.json"


def run_report_payload(report: RunReport) -> dict[str, Any]:
    """Serialize a run report into a JSON-compatible payload."""

    return {
        "outcome": report.outcome.value,
        "metadata": dict(report.metadata),
        "word_count_deltas": [
            {**asdict(delta), "delta": delta.delta} for delta in report.word_count_deltas
        ],
        "generated_chunks": list(report.generated_chunks),
        "failed_chunk_id": report.failed_chunk_id,
        "failed_chunk_title": report.failed_chunk_title,
        "error_message": report.error_message,
        "shortfalls": [asdict(shortfall) for shortfall in report.shortfalls],
    }


def chunks_payload(chunks: Sequence[Chunk]) -> list[dict[str, object]]:
    """Serialize chunks into the chunking-response list shape."""

    return [chunk_to_payload(chunk) for chunk in chunks]


class ArtifactStore:
    """Filesystem-backed store for run outputs."""

    def __init__(self, root: Path) -> None:
        """Initialize the store with a root output directory."""

        self.root = root

    def save_text(self, relative_path: Path, content: str) -> Path:
        """Save text content and return final path."""

        path = self.root / relative_path
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
        return path

    def save_json(self, relative_path: Path, payload: object) -> Path:
        """Save JSON-serializable payload and return final path."""

        path = self.root / relative_path
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(
            json.dumps(payload, ensure_ascii=False, indent=2, sort_keys=True),
            encoding="utf-8",
        )
        return path

    def save_run(self, report: RunReport) -> tuple[Path, Path]:
        """Write assembled text and the JSON report; return both paths."""

        text_path = self.save_text(Path(REWRITTEN_TEXT_NAME), report.assembled_text)
        report_path = self.save_json(Path(RUN_REPORT_NAME), run_report_payload(report))
        return text_path, report_path

    def save_chunks(self, chunks: Sequence[Chunk]) -> Path:
        """Write the chunk list payload and return its path."""

        return self.save_json(Path(CHUNKS_NAME), chunks_payload(chunks))

    def load_text(self, relative_path: Path) -> str:
        """Load text content from the store."""

        return (self.root / relative_path).read_text(encoding="utf-8")

    def exists(self, relative_path: Path) -> bool:
        """Return whether the given output exists."""

        return (self.root / relative_path).exists()
