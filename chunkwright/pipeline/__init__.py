"""Chunk run pipeline package.

This package contains the sequential orchestrator, progress tracking, the
working session, and stage telemetry helpers.
"""

from .orchestrator import ChunkOrchestrator, RunMode, RunOptions
from .progress import ChunkView, ProgressSnapshot, ProgressTracker
from .session import Session

__all__ = [
    "ChunkOrchestrator",
    "ChunkView",
    "ProgressSnapshot",
    "ProgressTracker",
    "RunMode",
    "RunOptions",
    "Session",
]
