"""Document-to-chunk segmentation logic.

Responsibilities:
- Split document text into bounded, paragraph-coherent chunks for backend calls.
- Preserve absolute character offsets required for deterministic reassembly.

Every emitted chunk is an exact substring of the source text and the gaps
between consecutive chunks contain only whitespace.
"""

from __future__ import annotations

from dataclasses import dataclass
import math
import re

from ..models.datatypes import Chunk
from .metrics import first_sentence, preview, word_count

_DEFAULT_TITLE = "Introduction"


@dataclass(frozen=True, slots=True)
class ChunkingPolicy:
    """Word-count tunables for the chunker.

    Attributes:
        target_words: Preferred chunk size.
        min_words: Chunks below this size are merged with a neighbour when possible.
        max_words: Chunks are closed before exceeding this size.
        substantial_chars: Minimum paragraph length that may open a new chunk
            once the target size is exceeded.
    """

    target_words: int = 800
    min_words: int = 400
    max_words: int = 1200
    substantial_chars: int = 100

    def validate(self) -> None:
        """Validate policy ordering `0 < min <= target <= max`."""

        if self.min_words <= 0:
            raise ValueError("`min_words` must be a positive integer.")
        if not self.min_words <= self.target_words <= self.max_words:
            raise ValueError(
                "Chunking policy requires `min_words <= target_words <= max_words`."
            )


@dataclass(frozen=True, slots=True)
class _TextUnit:
    """One paragraph (or sentence) span of the source text."""

    start: int
    end: int
    text: str
    words: int
    heading: str | None


@dataclass(slots=True)
class _Draft:
    """Chunk under construction before ids and previews are assigned."""

    title: str
    title_from_heading: bool
    start: int
    end: int
    words: int


class Chunker:
    """Create paragraph-aligned chunks with heading-aware titles."""

    _PARAGRAPH_BREAK_RE = re.compile(r"\n[ \t\r\f\v]*\n")
    _SENTENCE_BREAK_RE = re.compile(r"(?<=[.!?])\s+")
    _HEADING_PATTERNS = (
        re.compile(r"^#{1,6}\s+(?P<title>.+)"),
        re.compile(r"^(?P<title>\d+(?:\.\d+)*\.?\s+[A-Z][^.\n]*?)(?:\n|$)"),
        re.compile(r"^(?P<title>[A-Z][A-Z \t]{3,30})(?:\n|$)"),
    )
    _HEADING_PREFIX_RE = re.compile(r"^(?:#+\s*|\d+(?:\.\d+)*\.?\s*)")
    _MAX_TITLE_CHARS = 100

    def __init__(self, policy: ChunkingPolicy | None = None) -> None:
        """Initialize with a validated chunking policy."""

        self.policy = policy if policy is not None else ChunkingPolicy()
        self.policy.validate()

    def split(self, text: str) -> list[Chunk]:
        """Split document text into ordered chunks.

        Args:
            text: Full document text.

        Returns:
            Chunks in source order; empty for blank input.
        """

        if not text or not text.strip():
            return []

        units = self._text_units(text)
        drafts = self._first_pass(units)
        drafts = self._rebalance(drafts)
        return [self._build_chunk(text, index, draft) for index, draft in enumerate(drafts)]

    def _text_units(self, text: str) -> list[_TextUnit]:
        """Return paragraph units, falling back to sentences where paragraphs are too coarse."""

        paragraphs = self._spans(text, self._PARAGRAPH_BREAK_RE, 0, len(text))
        total_words = word_count(text)
        target_chunks = math.ceil(total_words / self.policy.target_words)
        split_everything = len(paragraphs) < target_chunks / 2

        units: list[_TextUnit] = []
        for start, end in paragraphs:
            paragraph = text[start:end]
            paragraph_words = word_count(paragraph)
            if split_everything or paragraph_words > self.policy.max_words:
                for sentence_start, sentence_end in self._spans(
                    text, self._SENTENCE_BREAK_RE, start, end
                ):
                    units.append(self._unit(text, sentence_start, sentence_end))
                continue
            units.append(self._unit(text, start, end))
        return units

    @staticmethod
    def _spans(text: str, separator: re.Pattern[str], start: int, end: int) -> list[tuple[int, int]]:
        """Return whitespace-trimmed spans of `text[start:end]` between separator matches."""

        spans: list[tuple[int, int]] = []
        cursor = start
        boundaries = [(match.start(), match.end()) for match in separator.finditer(text, start, end)]
        boundaries.append((end, end))
        for boundary_start, boundary_end in boundaries:
            span_start, span_end = cursor, boundary_start
            while span_start < span_end and text[span_start].isspace():
                span_start += 1
            while span_end > span_start and text[span_end - 1].isspace():
                span_end -= 1
            if span_end > span_start:
                spans.append((span_start, span_end))
            cursor = boundary_end
        return spans

    def _unit(self, text: str, start: int, end: int) -> _TextUnit:
        """Build a text unit and detect whether it opens with a heading."""

        unit_text = text[start:end]
        return _TextUnit(
            start=start,
            end=end,
            text=unit_text,
            words=word_count(unit_text),
            heading=self.detect_heading(unit_text),
        )

    def detect_heading(self, paragraph: str) -> str | None:
        """Return a cleaned heading title when `paragraph` opens with a heading line."""

        for pattern in self._HEADING_PATTERNS:
            match = pattern.match(paragraph)
            if match is None:
                continue
            title = self._HEADING_PREFIX_RE.sub("", match.group("title")).strip()
            if title and len(title) < self._MAX_TITLE_CHARS:
                return title
            return None
        return None

    def _first_pass(self, units: list[_TextUnit]) -> list[_Draft]:
        """Accumulate units into drafts, closing on headings and size limits."""

        policy = self.policy
        drafts: list[_Draft] = []
        current: _Draft | None = None

        for unit in units:
            if current is not None:
                heading_boundary = unit.heading is not None and current.words > policy.min_words
                exceeds_max = current.words + unit.words > policy.max_words
                target_reached = (
                    current.words > policy.target_words
                    and len(unit.text) > policy.substantial_chars
                )
                if heading_boundary or exceeds_max or target_reached:
                    drafts.append(current)
                    current = None

            if current is None:
                if unit.heading is not None:
                    title, from_heading = unit.heading, True
                else:
                    title, from_heading = "", False
                current = _Draft(
                    title=title,
                    title_from_heading=from_heading,
                    start=unit.start,
                    end=unit.end,
                    words=unit.words,
                )
                continue

            if unit.heading is not None and not current.title_from_heading:
                current.title = unit.heading
                current.title_from_heading = True
            current.end = unit.end
            current.words += unit.words

        if current is not None:
            drafts.append(current)
        return drafts

    def _rebalance(self, drafts: list[_Draft]) -> list[_Draft]:
        """Merge undersized drafts into their successor, else into their predecessor.

        A draft left below the minimum has no neighbour it fits with under the maximum.
        """

        policy = self.policy
        balanced = list(drafts)
        index = 0
        while index < len(balanced):
            current = balanced[index]
            if current.words >= policy.min_words:
                index += 1
                continue
            if (
                index + 1 < len(balanced)
                and current.words + balanced[index + 1].words <= policy.max_words
            ):
                balanced[index : index + 2] = [self._merge(current, balanced[index + 1])]
                continue
            if index > 0 and balanced[index - 1].words + current.words <= policy.max_words:
                balanced[index - 1 : index + 1] = [self._merge(balanced[index - 1], current)]
                continue
            index += 1
        return balanced

    @staticmethod
    def _merge(first: _Draft, second: _Draft) -> _Draft:
        """Merge two adjacent drafts, keeping the first title."""

        return _Draft(
            title=first.title,
            title_from_heading=first.title_from_heading,
            start=first.start,
            end=second.end,
            words=first.words + second.words,
        )

    @staticmethod
    def _build_chunk(text: str, index: int, draft: _Draft) -> Chunk:
        """Materialize a draft into a chunk record."""

        content = text[draft.start : draft.end]
        if draft.title_from_heading:
            title = draft.title
        else:
            title = _DEFAULT_TITLE if index == 0 else f"Section {index + 1}"
        return Chunk(
            chunk_id=f"chunk-{index + 1}",
            index=index,
            title=title,
            content=content,
            preview=preview(content),
            start_position=draft.start,
            end_position=draft.end,
            word_count=draft.words,
        )


def chunk_to_payload(chunk: Chunk) -> dict[str, object]:
    """Serialize one chunk into the chunking-response wire shape."""

    return {
        "title": chunk.title,
        "content": chunk.content,
        "startPosition": chunk.start_position,
        "endPosition": chunk.end_position,
    }


def describe_chunk(chunk: Chunk) -> str:
    """Return a compact `title (N words) - first sentence...` summary."""

    return f"{chunk.title} ({chunk.word_count} words) - {first_sentence(chunk.content)}..."
