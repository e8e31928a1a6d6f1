"""Unit tests for run output payloads and filesystem artifacts."""

from __future__ import annotations

import json
from pathlib import Path

from chunkwright.io.storage import ArtifactStore, chunks_payload, run_report_payload
from chunkwright.models import LengthPolicyShortfall, RunOutcome, RunReport, WordCountDelta
from tests.fakes import make_chunks


def _report() -> RunReport:
    """Build a failed report carrying every optional field."""

    return RunReport(
        outcome=RunOutcome.FAILED,
        assembled_text="First rewrite.",
        metadata={"model": "claude", "backend_calls": "2"},
        word_count_deltas=(
            WordCountDelta(
                chunk_id="chunk-1",
                title="Introduction",
                original_words=20,
                final_words=25,
                expansion_attempted=True,
            ),
        ),
        failed_chunk_id="chunk-2",
        failed_chunk_title="Section 2",
        error_message="Backend request failed (HTTP 500): boom",
        shortfalls=(LengthPolicyShortfall(chunk_id="chunk-1", required_words=22, actual_words=21),),
    )


def test_run_report_payload_is_json_compatible() -> None:
    """Report payloads should flatten enums and nested records."""

    payload = run_report_payload(_report())

    assert payload["outcome"] == "failed"
    assert payload["word_count_deltas"] == [
        {
            "chunk_id": "chunk-1",
            "title": "Introduction",
            "original_words": 20,
            "final_words": 25,
            "expansion_attempted": True,
            "delta": 5,
        }
    ]
    assert payload["shortfalls"] == [
        {"chunk_id": "chunk-1", "required_words": 22, "actual_words": 21}
    ]
    assert payload["failed_chunk_id"] == "chunk-2"
    assert json.loads(json.dumps(payload)) == payload


def test_save_run_writes_text_and_report(tmp_path: Path) -> None:
    """Saving a run should write the assembled text and a sorted JSON report."""

    store = ArtifactStore(tmp_path / "out")

    text_path, report_path = store.save_run(_report())

    assert text_path == tmp_path / "out" / "rewritten.txt"
    assert text_path.read_text(encoding="utf-8") == "First rewrite."
    report = json.loads(report_path.read_text(encoding="utf-8"))
    assert report["metadata"] == {"backend_calls": "2", "model": "claude"}
    assert store.exists(Path("run_report.json")) is True
    assert store.load_text(Path("rewritten.txt")) == "First rewrite."


def test_save_chunks_uses_wire_shape(tmp_path: Path) -> None:
    """Chunk lists should be saved with camelCase offsets."""

    chunks = make_chunks(2)
    store = ArtifactStore(tmp_path)

    path = store.save_chunks(chunks)

    saved = json.loads(path.read_text(encoding="utf-8"))
    assert saved == chunks_payload(chunks)
    assert saved[1]["startPosition"] == chunks[1].start_position
    assert set(saved[0]) == {"title", "content", "startPosition", "endPosition"}
