"""Unit tests for run progress snapshots and status transitions."""

from __future__ import annotations

from chunkwright.models import ChunkState, ProgressEntry, RunStatus
from chunkwright.pipeline.progress import ProgressSnapshot, ProgressTracker
from tests.fakes import make_chunks


def _entries(count: int) -> list[ProgressEntry]:
    """Build one rewrite entry per operation."""

    return [ProgressEntry(title=f"Section {index + 1}", kind="rewrite") for index in range(count)]


def test_tracker_starts_idle_and_empty() -> None:
    """A fresh tracker should report idle status and zero progress."""

    snapshot = ProgressTracker().snapshot()

    assert snapshot.status is RunStatus.IDLE
    assert snapshot.current_index == -1
    assert snapshot.total_operations == 0
    assert snapshot.progress_percent == 0.0
    assert snapshot.entries == ()


def test_operation_completion_updates_counts_and_entries() -> None:
    """Completing operations should advance counts and store final content."""

    tracker = ProgressTracker()
    tracker.begin(make_chunks(2), _entries(2))
    tracker.set_current(0)
    tracker.complete_operation(0, "Final text.")

    snapshot = tracker.snapshot()

    assert snapshot.status is RunStatus.RUNNING
    assert snapshot.current_index == 0
    assert snapshot.completed_operations == 1
    assert snapshot.total_operations == 2
    assert snapshot.progress_percent == 50.0
    assert snapshot.entries[0].completed is True
    assert snapshot.entries[0].content == "Final text."
    assert snapshot.entries[1].completed is False


def test_snapshots_are_isolated_from_later_changes() -> None:
    """Snapshots should be copies that do not change after the tracker moves on."""

    chunks = make_chunks(1)
    tracker = ProgressTracker()
    tracker.begin(chunks, _entries(1))
    before = tracker.snapshot()

    chunks[0].state = ChunkState.STREAMING
    chunks[0].live_content = "partial"
    tracker.complete_operation(0, "done")

    assert before.entries[0].completed is False
    assert before.chunks[0].state is ChunkState.PENDING
    assert before.chunks[0].live_content == ""
    assert tracker.snapshot().chunks[0].live_content == "partial"


def test_cancel_only_applies_to_running_runs() -> None:
    """Cancellation should move a running run to `CANCEL_REQUESTED` exactly once."""

    tracker = ProgressTracker()
    assert tracker.request_cancel() is False

    tracker.begin(make_chunks(1), _entries(1))

    assert tracker.request_cancel() is True
    assert tracker.status is RunStatus.CANCEL_REQUESTED
    assert tracker.request_cancel() is False


def test_finish_keeps_counts_and_clear_resets_when_idle() -> None:
    """Finishing should keep counts visible; clearing is only allowed when idle."""

    tracker = ProgressTracker()
    tracker.begin(make_chunks(2), _entries(2))
    tracker.complete_operation(0, "one")

    assert tracker.clear() is False

    tracker.finish()
    finished = tracker.snapshot()
    assert finished.status is RunStatus.IDLE
    assert finished.current_index == -1
    assert finished.completed_operations == 1

    assert tracker.clear() is True
    cleared = tracker.snapshot()
    assert cleared.total_operations == 0
    assert cleared.entries == ()
    assert cleared.chunks == ()


def test_observers_receive_snapshots_and_failures_are_ignored() -> None:
    """Observers should be notified on changes even when another observer fails."""

    seen: list[ProgressSnapshot] = []

    def _broken_observer(_snapshot: ProgressSnapshot) -> None:
        """Raise on every notification."""

        raise RuntimeError("ui crashed")

    tracker = ProgressTracker()
    tracker.subscribe(_broken_observer)
    tracker.subscribe(seen.append)

    tracker.begin(make_chunks(1), _entries(1))
    tracker.set_current(0)
    tracker.complete_operation(0, "done")
    tracker.finish()

    assert [snapshot.status for snapshot in seen] == [
        RunStatus.RUNNING,
        RunStatus.RUNNING,
        RunStatus.RUNNING,
        RunStatus.IDLE,
    ]
    assert seen[-1].progress_percent == 100.0
