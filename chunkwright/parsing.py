"""Shared parsing helpers for config, environment, and CLI value normalization."""

from __future__ import annotations


_TRUE_BOOLEAN_TOKENS = frozenset({"1", "true", "yes", "on"})
_FALSE_BOOLEAN_TOKENS = frozenset({"0", "false", "no", "off"})


def normalize_optional_string(value: object) -> str | None:
    """Return `value` as a stripped string, or `None` when it is empty."""

    if value is None:
        return None
    text = str(value).strip()
    if not text:
        return None
    return text


def parse_permissive_boolean(value: object) -> bool | None:
    """Parse a permissive boolean token and return `None` for invalid values."""

    if isinstance(value, bool):
        return value

    normalized = normalize_optional_string(value)
    if normalized is None:
        return None

    token = normalized.lower()
    if token in _TRUE_BOOLEAN_TOKENS:
        return True
    if token in _FALSE_BOOLEAN_TOKENS:
        return False
    return None


def parse_required_boolean(value: object, field_name: str) -> bool:
    """Parse a boolean token or raise an actionable `ValueError`."""

    parsed = parse_permissive_boolean(value)
    if parsed is not None:
        return parsed

    raise ValueError(
        f"`{field_name}` must be a boolean value (`true`/`false`, `1`/`0`, `yes`/`no`)."
    )


def parse_number(value: object, field_name: str, *, allow_zero: bool = False) -> float:
    """Parse a positive (or non-negative) number from numeric or textual input.

    Raises:
        ValueError: If the value is not a number in the accepted range.
    """

    qualifier = "non-negative" if allow_zero else "positive"
    if isinstance(value, bool):
        raise ValueError(f"`{field_name}` must be a {qualifier} number.")
    if isinstance(value, (int, float)):
        parsed = float(value)
    else:
        normalized = normalize_optional_string(value)
        if normalized is None:
            raise ValueError(f"`{field_name}` must be a {qualifier} number.")
        try:
            parsed = float(normalized)
        except ValueError as exc:
            raise ValueError(f"`{field_name}` must be a {qualifier} number.") from exc

    if parsed < 0 or (parsed == 0 and not allow_zero) or parsed != parsed:
        raise ValueError(f"`{field_name}` must be a {qualifier} number.")
    return parsed


def parse_positive_int(value: object, field_name: str) -> int:
    """Parse a positive integer from numeric or textual input."""

    if isinstance(value, bool):
        raise ValueError(f"`{field_name}` must be a positive integer.")
    if isinstance(value, int):
        parsed = value
    else:
        normalized = normalize_optional_string(value)
        try:
            parsed = int(normalized or "")
        except ValueError as exc:
            raise ValueError(f"`{field_name}` must be a positive integer.") from exc
    if parsed <= 0:
        raise ValueError(f"`{field_name}` must be a positive integer.")
    return parsed
