"""Text segmentation and cleanup components.

This package provides deterministic chunking, normalization, and word-count
building blocks used before and after completion backend calls.
"""

from .chunk_selection import apply_chunk_selection, format_chunk_selection, parse_chunk_selection
from .chunking import Chunker, ChunkingPolicy, chunk_to_payload, describe_chunk
from .cleaners import MarkupStripper, MetaTextStripper, ParagraphReflow
from .metrics import first_sentence, preview, word_count
from .normalizer import TextNormalizer

__all__ = [
    "Chunker",
    "ChunkingPolicy",
    "TextNormalizer",
    "MetaTextStripper",
    "MarkupStripper",
    "ParagraphReflow",
    "chunk_to_payload",
    "describe_chunk",
    "apply_chunk_selection",
    "format_chunk_selection",
    "parse_chunk_selection",
    "first_sentence",
    "preview",
    "word_count",
]
