"""Minimum-length policy for rewritten chunks.

Responsibilities:
- Compare rewrite length against a ratio of the original word count.
- Issue exactly one non-streaming expansion request for short rewrites.
- Record tolerated shortfalls instead of failing the run.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
import math

from loguru import logger

from ..errors import BackendError
from ..models import LengthPolicyShortfall, RewriteRequest
from ..telemetry.logger import RunLogger
from ..text.metrics import word_count
from ..text.normalizer import TextNormalizer
from .completion_client import CompletionClient
from .prompts import PromptLibrary

DEFAULT_MIN_RATIO = 1.1


@dataclass(frozen=True, slots=True)
class EnforcementOutcome:
    """Final content and word-count bookkeeping for one chunk."""

    content: str
    original_words: int
    required_words: int
    final_words: int
    expansion_attempted: bool = False
    shortfall: LengthPolicyShortfall | None = None


class LengthEnforcer:
    """Enforce `words(final) >= ceil(min_ratio * words(original))` with one retry."""

    def __init__(
        self,
        client: CompletionClient,
        *,
        normalizer: TextNormalizer | None = None,
        min_ratio: float = DEFAULT_MIN_RATIO,
        prompts: PromptLibrary | None = None,
        run_logger: RunLogger | None = None,
    ) -> None:
        """Initialize enforcer collaborators and the minimum length ratio."""

        if min_ratio <= 0:
            raise ValueError("`min_ratio` must be greater than zero.")
        self.client = client
        self.normalizer = normalizer or TextNormalizer()
        self.min_ratio = min_ratio
        self.prompts = prompts or PromptLibrary()
        self.run_logger = run_logger

    def required_words(self, original: str) -> int:
        """Return the minimum acceptable word count for a rewrite of `original`."""

        # Rounding first keeps float noise (1.1 * 100 = 110.00000000000001) out of ceil.
        return math.ceil(round(self.min_ratio * word_count(original), 6))

    def enforce(self, original: str, candidate: str, request: RewriteRequest) -> EnforcementOutcome:
        """Return the candidate, or a single expansion of it when it is too short.

        The expansion result is accepted whatever its length; a remaining gap is
        reported as a shortfall. Backend failures during expansion keep the
        candidate.
        """

        original_words = word_count(original)
        required = self.required_words(original)
        candidate_words = word_count(candidate)
        if candidate_words >= required:
            return EnforcementOutcome(
                content=candidate,
                original_words=original_words,
                required_words=required,
                final_words=candidate_words,
            )

        if self.run_logger is not None:
            self.run_logger.log_length_retry(request.chunk_id, required, candidate_words)

        expansion_request = replace(
            request,
            content=candidate,
            instructions=self.prompts.expansion_instructions(
                request.instructions, required, candidate_words, original
            ),
            stream=False,
        )
        final = candidate
        try:
            expanded = self.client.rewrite(expansion_request)
        except BackendError as exc:
            logger.warning(
                "Expansion request failed for chunk {}; keeping short rewrite: {}",
                request.chunk_id,
                exc.message,
            )
        else:
            final = self.normalizer.normalize(expanded.content)

        final_words = word_count(final)
        shortfall = None
        if final_words < required:
            shortfall = LengthPolicyShortfall(
                chunk_id=request.chunk_id,
                required_words=required,
                actual_words=final_words,
            )
            logger.info(
                "Tolerating length shortfall for chunk {}: {} of {} words.",
                request.chunk_id,
                final_words,
                required,
            )
        return EnforcementOutcome(
            content=final,
            original_words=original_words,
            required_words=required,
            final_words=final_words,
            expansion_attempted=True,
            shortfall=shortfall,
        )
