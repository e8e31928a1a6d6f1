"""Text normalization stage for backend output.

Responsibilities:
- Run the cleaning passes in a fixed order over rewritten chunk text.
- Guarantee `normalize(normalize(x)) == normalize(x)` for every input.
"""

from __future__ import annotations

from typing import Sequence

from .cleaners import CleanerRule, MarkupStripper, MetaTextStripper, ParagraphReflow


def default_passes() -> tuple[CleanerRule, ...]:
    """Return the default ordered cleaning passes."""

    return (MetaTextStripper(), MarkupStripper(), ParagraphReflow())


class TextNormalizer:
    """Normalize backend output into clean, evenly paragraphed prose."""

    def __init__(
        self, passes: Sequence[CleanerRule] | None = None, max_rounds: int = 32
    ) -> None:
        """Initialize with ordered cleaning passes and a fixed-point round limit."""

        self.passes: tuple[CleanerRule, ...] = (
            tuple(passes) if passes is not None else default_passes()
        )
        self.max_rounds = max(1, max_rounds)

    def normalize(self, text: str) -> str:
        """Apply all passes in order until the output no longer changes."""

        current = text
        for _ in range(self.max_rounds):
            updated = self.apply_once(current)
            if updated == current:
                return updated
            current = updated
        return current

    def apply_once(self, text: str) -> str:
        """Apply every pass exactly once, in order."""

        for cleaning_pass in self.passes:
            text = cleaning_pass.apply(text)
        return text
