"""Deterministic text-cleaning passes applied to backend output.

Responsibilities:
- Provide composable, table-driven cleanup passes for rewritten text.
- Keep every pass pure and idempotent so passes can run standalone.
"""

from __future__ import annotations

import re
from typing import Protocol


class CleanerRule(Protocol):
    """Protocol for text cleaning passes."""

    def apply(self, text: str) -> str:
        """Apply a single cleaning transformation."""


_Rule = tuple[re.Pattern[str], str]


def _apply_until_stable(text: str, rules: tuple[_Rule, ...]) -> str:
    """Apply substitution rules in order, repeating until no rule matches."""

    current = text
    while True:
        total_replacements = 0
        for pattern, replacement in rules:
            current, replacements = pattern.subn(replacement, current)
            total_replacements += replacements
        if total_replacements == 0:
            return current


class MetaTextStripper:
    """Remove bracketed continuation, truncation, and editorial annotations.

    Only the matched annotation (plus the horizontal whitespace directly before
    it) is removed; surrounding text is left untouched.
    """

    _ANNOTATION_KEYWORDS = (
        r"continued",
        r"continues",
        r"continuing",
        r"content continues",
        r"text continues",
        r"remaining",
        r"rest of",
        r"truncated",
        r"text truncated",
        r"content truncated",
        r"note\s*:",
        r"editor'?s note",
        r"end of",
        r"\.{3}",
        r"…",
    )
    _KEYWORD_GROUP = "|".join(_ANNOTATION_KEYWORDS)
    _RULES: tuple[_Rule, ...] = (
        (
            re.compile(rf"[ \t]*\[\s*(?:{_KEYWORD_GROUP})[^\[\]]*\]", re.IGNORECASE),
            "",
        ),
        (
            re.compile(
                r"[ \t]*\((?:(?:the\s+)?rest of (?:the )?(?:text|content|document)|"
                r"(?:text|content|document) continues)[^()]*\)",
                re.IGNORECASE,
            ),
            "",
        ),
        (
            re.compile(
                r"[ \t]*\(no mathematical expressions[^()]*\)\.?",
                re.IGNORECASE,
            ),
            "",
        ),
        (re.compile(r"\s+(?:\.{3,}|…)\s*\Z"), ""),
    )

    def apply(self, text: str) -> str:
        """Strip meta-text annotations."""

        return _apply_until_stable(text, self._RULES)


class MarkupStripper:
    """Remove markdown-style markup while keeping the visible text."""

    _RULES: tuple[_Rule, ...] = (
        (re.compile(r"\\\$"), "$"),
        (re.compile(r"```[^\n`]*\n?(.*?)```", re.DOTALL), r"\1"),
        (re.compile(r"^[ \t]*#{1,6}[ \t]+", re.MULTILINE), ""),
        (re.compile(r"^[ \t]*(?:[-*_][ \t]*){3,}$", re.MULTILINE), ""),
        (re.compile(r"^[ \t]*>[ \t]?", re.MULTILINE), ""),
        (re.compile(r"^[ \t]*[-*+][ \t]+", re.MULTILINE), ""),
        (re.compile(r"^[ \t]*\d+[.)][ \t]+", re.MULTILINE), ""),
        (re.compile(r"\*\*(?=\S)(.+?)(?<=\S)\*\*"), r"\1"),
        (re.compile(r"__(?=\S)(.+?)(?<=\S)__"), r"\1"),
        (re.compile(r"~~(?=\S)(.+?)(?<=\S)~~"), r"\1"),
        (re.compile(r"(?<![*\w])\*(?=\S)(.+?)(?<=\S)\*(?![*\w])"), r"\1"),
        (re.compile(r"(?<!\w)_(?=\S)(.+?)(?<=\S)_(?!\w)"), r"\1"),
        (re.compile(r"`([^`\n]+)`"), r"\1"),
        (re.compile(r"!?\[([^\[\]]+)\]\([^()\s]*\)"), r"\1"),
        (re.compile(r"\[([^\[\]]+)\]\[[^\[\]]*\]"), r"\1"),
        (re.compile(r"(?:[ \t]*\n){3,}"), "\n\n"),
    )

    def apply(self, text: str) -> str:
        """Strip markup and collapse excess blank lines."""

        return _apply_until_stable(text, self._RULES).strip()


class ParagraphReflow:
    """Re-segment text into sentences and regroup them into short paragraphs."""

    _BLANK_RUN_RE = re.compile(r"(?:[ \t]*\n){3,}")
    _SENTENCE_SPACING_RE = re.compile(r"([.!?])\s+")
    _SENTENCE_SPLIT_RE = re.compile(r"(?<=[.!?]) (?=[A-Z])")

    def __init__(self, sentences_per_paragraph: int = 3, max_paragraph_chars: int = 400) -> None:
        """Initialize paragraph grouping limits."""

        self.sentences_per_paragraph = max(1, sentences_per_paragraph)
        self.max_paragraph_chars = max_paragraph_chars

    def apply(self, text: str) -> str:
        """Normalize sentence spacing and regroup sentences into paragraphs."""

        cleaned = self._BLANK_RUN_RE.sub("\n\n", text.strip())
        cleaned = self._SENTENCE_SPACING_RE.sub(r"\1 ", cleaned).strip()
        if not cleaned:
            return ""

        sentences = self._SENTENCE_SPLIT_RE.split(cleaned)
        paragraphs: list[str] = []
        current: list[str] = []
        for sentence in sentences:
            current.append(sentence)
            paragraph = " ".join(current)
            if (
                len(current) >= self.sentences_per_paragraph
                or len(paragraph) > self.max_paragraph_chars
            ):
                paragraphs.append(paragraph)
                current = []
        if current:
            paragraphs.append(" ".join(current))
        return "\n\n".join(paragraphs)
