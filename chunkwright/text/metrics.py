"""Word counting and preview helpers shared by chunking and length policy."""

from __future__ import annotations

import re

_FIRST_SENTENCE_RE = re.compile(r"^.+?[.!?](?:\s|$)", re.DOTALL)


def word_count(text: str) -> int:
    """Return the number of whitespace-delimited words in `text`."""

    if not text:
        return 0
    return len(text.split())


def preview(text: str, max_length: int = 150) -> str:
    """Return `text` truncated to `max_length` characters with a `...` suffix."""

    if len(text) <= max_length:
        return text
    return f"{text[:max_length]}..."


def first_sentence(text: str, max_length: int = 150) -> str:
    """Return the first sentence of `text`, capped at `max_length` characters."""

    stripped = text.strip()
    match = _FIRST_SENTENCE_RE.match(stripped)
    sentence = match.group(0).strip() if match else stripped
    return sentence[:max_length]
