"""Top-level package for chunkwright.

This package splits long documents into bounded chunks, rewrites selected
chunks through a completion backend, and reassembles the cleaned results.
The main orchestration entry point is `ChunkOrchestrator`.
"""

from .pipeline import ChunkOrchestrator, RunOptions, Session
from .text import Chunker, TextNormalizer

__all__ = ["ChunkOrchestrator", "Chunker", "RunOptions", "Session", "TextNormalizer", "__version__"]

__version__ = "0.1.0"
