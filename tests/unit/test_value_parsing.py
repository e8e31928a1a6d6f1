"""Unit tests for shared value parsing helpers."""

from __future__ import annotations

import pytest

from chunkwright.parsing import (
    normalize_optional_string,
    parse_number,
    parse_permissive_boolean,
    parse_positive_int,
    parse_required_boolean,
)


def test_normalize_optional_string() -> None:
    """Blank values should normalize to `None` and others should be stripped."""

    assert normalize_optional_string(None) is None
    assert normalize_optional_string("   ") is None
    assert normalize_optional_string("  value ") == "value"
    assert normalize_optional_string(12) == "12"


@pytest.mark.parametrize(
    ("raw", "expected"),
    [(True, True), ("YES", True), ("on", True), ("0", False), ("off", False), ("maybe", None)],
)
def test_parse_permissive_boolean(raw: object, expected: bool | None) -> None:
    """Boolean tokens should parse case-insensitively and unknown tokens yield `None`."""

    assert parse_permissive_boolean(raw) is expected


def test_parse_required_boolean_raises_for_unknown_tokens() -> None:
    """Required booleans should name the field on failure."""

    with pytest.raises(ValueError, match="`stream` must be a boolean"):
        parse_required_boolean("sometimes", "stream")


def test_parse_number_ranges() -> None:
    """Numbers should be positive unless zero is explicitly allowed."""

    assert parse_number("1.5", "min_ratio") == 1.5
    assert parse_number(0, "delay", allow_zero=True) == 0.0
    with pytest.raises(ValueError, match="positive number"):
        parse_number(0, "min_ratio")
    with pytest.raises(ValueError, match="non-negative number"):
        parse_number("-2", "delay", allow_zero=True)
    with pytest.raises(ValueError):
        parse_number(True, "min_ratio")
    with pytest.raises(ValueError):
        parse_number("nan", "min_ratio")


def test_parse_positive_int() -> None:
    """Positive integers should parse from ints and strings only."""

    assert parse_positive_int("800", "target_words") == 800
    assert parse_positive_int(5, "target_words") == 5
    for invalid in ("0", "-3", "1.5", "", False):
        with pytest.raises(ValueError, match="positive integer"):
            parse_positive_int(invalid, "target_words")
