"""Chunk selection parsing utilities for CLI and run flows.

Responsibilities:
- Parse 1-based chunk selection expressions (`1`, `1,3`, `2-5`, mixed).
- Validate indices against the chunks of the current session.
- Produce deterministic normalized selection labels for run metadata.
"""

from __future__ import annotations

from typing import Iterable, Sequence

from ..errors import ValidationError
from ..models import Chunk


def parse_chunk_selection(selection: str | None, chunk_count: int) -> list[int]:
    """Parse a chunk selection expression into sorted unique 1-based indices.

    Args:
        selection: User selection string. `None` or blank selects all chunks.
        chunk_count: Number of chunks available for selection.

    Returns:
        Sorted selected chunk indices.

    Raises:
        ValidationError: If the selection syntax or bounds are invalid.
    """

    if chunk_count < 1:
        raise ValidationError("No chunks are available for selection.")

    available = list(range(1, chunk_count + 1))
    if selection is None or not selection.strip():
        return available

    tokens = [part.strip() for part in selection.split(",")]
    if any(not token for token in tokens):
        raise ValidationError(
            "Malformed chunk selection: empty item in list. "
            "Use syntax like `1`, `1,3`, `2-4`, or `1,3-5`."
        )

    selected: set[int] = set()
    for token in tokens:
        for index in _expand_token(token, chunk_count):
            if index in selected:
                raise ValidationError(
                    f"Overlapping chunk selection contains duplicate index `{index}`."
                )
            selected.add(index)
    return sorted(selected)


def apply_chunk_selection(chunks: Sequence[Chunk], selection: str | None) -> list[Chunk]:
    """Mark chunks selected according to `selection` and return the selected ones."""

    indices = set(parse_chunk_selection(selection, len(chunks)))
    for chunk in chunks:
        chunk.selected = chunk.index + 1 in indices
    return [chunk for chunk in chunks if chunk.selected]


def format_chunk_selection(indices: Iterable[int]) -> str:
    """Format selected chunk indices into compact range syntax (`1,3-5`)."""

    ordered = sorted(set(int(index) for index in indices))
    if not ordered:
        return ""

    parts: list[str] = []
    start = end = ordered[0]
    for index in ordered[1:]:
        if index == end + 1:
            end = index
            continue
        parts.append(str(start) if start == end else f"{start}-{end}")
        start = end = index
    parts.append(str(start) if start == end else f"{start}-{end}")
    return ",".join(parts)


def _expand_token(token: str, chunk_count: int) -> list[int]:
    """Expand one token (`N` or `N-M`) to concrete chunk indices."""

    if "-" not in token:
        index = _parse_positive_index(token)
        _validate_bounds(index, chunk_count)
        return [index]

    start_text, _, end_text = token.partition("-")
    if not start_text.strip() or not end_text.strip() or "-" in end_text:
        raise ValidationError(
            f"Malformed chunk range `{token}`. Use closed range syntax like `2-4`."
        )

    start = _parse_positive_index(start_text.strip())
    end = _parse_positive_index(end_text.strip())
    if start > end:
        raise ValidationError(
            f"Malformed chunk range `{token}`: range start must be less than or equal to end."
        )
    for index in (start, end):
        _validate_bounds(index, chunk_count)
    return list(range(start, end + 1))


def _parse_positive_index(token: str) -> int:
    """Parse one 1-based positive chunk index token."""

    try:
        value = int(token, 10)
    except ValueError as exc:
        raise ValidationError(
            f"Invalid chunk index `{token}`. Indices must be integers."
        ) from exc
    if value < 1:
        raise ValidationError(
            f"Invalid chunk index `{token}`. Indices must be positive and 1-based."
        )
    return value


def _validate_bounds(index: int, chunk_count: int) -> None:
    """Validate one chunk index against the available range."""

    if 1 <= index <= chunk_count:
        return
    raise ValidationError(
        f"Chunk index `{index}` is out of available bounds `1-{chunk_count}`."
    )
