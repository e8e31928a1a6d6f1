"""Unit tests for 1-based chunk selection expressions."""

from __future__ import annotations

import pytest

from chunkwright.errors import ValidationError
from chunkwright.text.chunk_selection import (
    apply_chunk_selection,
    format_chunk_selection,
    parse_chunk_selection,
)
from tests.fakes import make_chunks


def test_blank_selection_selects_every_chunk() -> None:
    """`None` and whitespace-only selections should select all chunks."""

    assert parse_chunk_selection(None, 3) == [1, 2, 3]
    assert parse_chunk_selection("   ", 3) == [1, 2, 3]


def test_mixed_selection_is_sorted_and_expanded() -> None:
    """Single indices and closed ranges should combine into sorted indices."""

    assert parse_chunk_selection("4, 1,2-3", 5) == [1, 2, 3, 4]
    assert parse_chunk_selection("5", 5) == [5]


@pytest.mark.parametrize(
    ("selection", "message"),
    [
        ("1,,2", "empty item"),
        ("0", "positive and 1-based"),
        ("x", "must be integers"),
        ("3-1", "range start must be less than or equal to end"),
        ("1-", "closed range syntax"),
        ("6", "out of available bounds `1-5`"),
        ("1-2,2", "duplicate index `2`"),
    ],
)
def test_invalid_selections_are_rejected(selection: str, message: str) -> None:
    """Malformed, overlapping, and out-of-range selections should raise actionable errors."""

    with pytest.raises(ValidationError, match=message):
        parse_chunk_selection(selection, 5)


def test_selection_requires_available_chunks() -> None:
    """Parsing against an empty chunk list should fail."""

    with pytest.raises(ValidationError, match="No chunks"):
        parse_chunk_selection("1", 0)


def test_apply_selection_marks_chunks() -> None:
    """Applying a selection should flip `selected` flags and return chosen chunks."""

    chunks = make_chunks(4)

    selected = apply_chunk_selection(chunks, "2,4")

    assert [chunk.chunk_id for chunk in selected] == ["chunk-2", "chunk-4"]
    assert [chunk.selected for chunk in chunks] == [False, True, False, True]


def test_format_selection_compacts_ranges() -> None:
    """Formatting should collapse consecutive indices into ranges."""

    assert format_chunk_selection([5, 1, 2, 3, 3]) == "1-3,5"
    assert format_chunk_selection([]) == ""
