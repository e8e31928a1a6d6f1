"""Instruction templates for backend requests.

Responsibilities:
- Centralize instruction text for expansion retries and appended content.
- Keep request content deterministic for identical inputs.
"""

from __future__ import annotations

ORIGINAL_CONTEXT_CHARS = 2000
EXISTING_CONTEXT_CHARS = 1000


class PromptLibrary:
    """Build instruction strings for supported backend tasks."""

    def expansion_instructions(
        self, instructions: str, required_words: int, current_words: int, original: str
    ) -> str:
        """Return instructions asking to expand a short rewrite sent as content.

        The original passage is quoted so added material stays faithful to it.
        """

        return (
            f"{instructions.strip()}\n\n"
            f"The content is a rewrite with only {current_words} words. Expand it to "
            f"at least {required_words} words, keeping everything it already says. "
            "Preserve the style, tone, and meaning of the original passage below. "
            "Return only the expanded text.\n\n"
            f"Original passage:\n{original}"
        )

    def new_chunk_instructions(
        self, instructions: str, chunk_number: int, total_new_chunks: int
    ) -> str:
        """Return instructions for generating one appended content chunk."""

        return (
            "Based on the original document content and the existing rewritten content, "
            f"generate new content chunk {chunk_number} of {total_new_chunks} according "
            f"to these instructions: {instructions.strip()}\n"
            "Keep consistency with the existing content and use the same writing style "
            "and tone as the original document. Return only the new content without "
            "comments, explanations, or headers."
        )

    def new_chunk_context(self, original_text: str, existing_text: str) -> str:
        """Return the bounded context block sent as content for appended chunks."""

        context = f"Original document context:\n{original_text[:ORIGINAL_CONTEXT_CHARS]}"
        if existing_text.strip():
            context += (
                "\n\nExisting content (to maintain consistency):\n"
                f"{existing_text[:EXISTING_CONTEXT_CHARS]}"
            )
        return context
