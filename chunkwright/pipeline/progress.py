"""Run progress tracking with consistent snapshots.

Responsibilities:
- Own the global `RunState` and the per-operation progress entries.
- Hand out immutable snapshots taken under the run lock.
- Notify observers (CLI rendering, UIs) after every state change.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass, replace
import threading

from loguru import logger

from ..models import Chunk, ChunkState, ProgressEntry, RunState, RunStatus


@dataclass(frozen=True, slots=True)
class ChunkView:
    """Read-only copy of the display-relevant fields of one chunk."""

    chunk_id: str
    title: str
    state: ChunkState
    live_content: str
    rewritten: str | None
    error: str | None


@dataclass(frozen=True, slots=True)
class ProgressSnapshot:
    """Point-in-time copy of run progress."""

    status: RunStatus
    current_index: int
    completed_operations: int
    total_operations: int
    progress_percent: float
    entries: tuple[ProgressEntry, ...]
    chunks: tuple[ChunkView, ...]


ProgressObserver = Callable[[ProgressSnapshot], None]


class ProgressTracker:
    """Track run status and per-operation progress for observers on any thread."""

    def __init__(self) -> None:
        """Initialize an idle tracker."""

        # Reentrant so a signal handler on the running thread can request cancellation.
        self.lock = threading.RLock()
        self._state = RunState()
        self._entries: list[ProgressEntry] = []
        self._chunks: list[Chunk] = []
        self._observers: list[ProgressObserver] = []

    @property
    def status(self) -> RunStatus:
        """Return the current run status."""

        with self.lock:
            return self._state.status

    def subscribe(self, observer: ProgressObserver) -> None:
        """Register an observer called with a snapshot after each change."""

        with self.lock:
            self._observers.append(observer)

    def begin(self, chunks: Sequence[Chunk], entries: Sequence[ProgressEntry]) -> None:
        """Start tracking a run over `chunks` with one entry per operation."""

        with self.lock:
            self._chunks = list(chunks)
            self._entries = list(entries)
            self._state = RunState(
                status=RunStatus.RUNNING,
                current_index=-1,
                completed_operations=0,
                total_operations=len(self._entries),
            )
        self.publish()

    def set_current(self, index: int) -> None:
        """Record the operation index currently dispatched."""

        with self.lock:
            self._state.current_index = index
        self.publish()

    def complete_operation(self, index: int, content: str) -> None:
        """Mark one operation entry complete with its final content."""

        with self.lock:
            entry = self._entries[index]
            entry.content = content
            entry.completed = True
            self._state.completed_operations += 1
        self.publish()

    def request_cancel(self) -> bool:
        """Move a running run to `CANCEL_REQUESTED`; return whether it applied."""

        with self.lock:
            if self._state.status is not RunStatus.RUNNING:
                return False
            self._state.status = RunStatus.CANCEL_REQUESTED
        self.publish()
        return True

    def finish(self) -> None:
        """Return the run status to `IDLE`, keeping completed counts visible."""

        with self.lock:
            self._state.status = RunStatus.IDLE
            self._state.current_index = -1
        self.publish()

    def clear(self) -> bool:
        """Drop all progress when idle; return whether anything was cleared."""

        with self.lock:
            if self._state.status is not RunStatus.IDLE:
                return False
            self._state = RunState()
            self._entries = []
            self._chunks = []
        self.publish()
        return True

    def snapshot(self) -> ProgressSnapshot:
        """Return an immutable copy of the current progress."""

        with self.lock:
            return ProgressSnapshot(
                status=self._state.status,
                current_index=self._state.current_index,
                completed_operations=self._state.completed_operations,
                total_operations=self._state.total_operations,
                progress_percent=self._state.progress_percent,
                entries=tuple(replace(entry) for entry in self._entries),
                chunks=tuple(
                    ChunkView(
                        chunk_id=chunk.chunk_id,
                        title=chunk.title,
                        state=chunk.state,
                        live_content=chunk.live_content,
                        rewritten=chunk.rewritten,
                        error=chunk.error,
                    )
                    for chunk in self._chunks
                ),
            )

    def publish(self) -> None:
        """Send a fresh snapshot to every observer; observer failures are logged."""

        with self.lock:
            observers = list(self._observers)
        if not observers:
            return
        snapshot = self.snapshot()
        for observer in observers:
            try:
                observer(snapshot)
            except Exception as exc:
                logger.warning("Ignoring progress observer failure: {}", exc)
