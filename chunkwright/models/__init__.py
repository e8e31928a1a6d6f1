"""Shared typed data models for chunkwright.

This package contains dataclasses used across pipeline modules to avoid
cross-module coupling and circular imports.
"""

from .datatypes import (
    Chunk,
    ChunkState,
    Document,
    LengthPolicyShortfall,
    ModelVariant,
    ProgressEntry,
    RewriteRequest,
    RewriteResult,
    RunOutcome,
    RunReport,
    RunState,
    RunStatus,
    WordCountDelta,
)

__all__ = [
    "Chunk",
    "ChunkState",
    "Document",
    "LengthPolicyShortfall",
    "ModelVariant",
    "ProgressEntry",
    "RewriteRequest",
    "RewriteResult",
    "RunOutcome",
    "RunReport",
    "RunState",
    "RunStatus",
    "WordCountDelta",
]
