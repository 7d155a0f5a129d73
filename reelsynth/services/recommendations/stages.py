"""The two LLM stages of recommendation synthesis.

Retrieval asks a search-augmented model for live facts about candidate
titles. Refinement turns that free text into schema-conformant records.
Neither stage retries.
"""

import logging
import time

from pydantic import ValidationError

from reelsynth.exceptions import LLMServiceError, ParseFailure, RefinementFailure, RetrievalFailure
from reelsynth.models.schemas import CandidateRecord, RecommendationFilters
from reelsynth.services.llm.clients import SearchCompletionClient, StructuredCompletionClient
from reelsynth.services.recommendations.prompts import build_refinement_prompt, build_retrieval_prompt
from reelsynth.services.recommendations.taste_profile import TasteProfile

logger = logging.getLogger(__name__)


class RetrievalStage:
    """Search-augmented candidate retrieval."""

    def __init__(self, client: SearchCompletionClient) -> None:
        self.client = client

    async def run(self, profile: TasteProfile, filters: RecommendationFilters) -> str:
        """Return the model's raw text, unmodified."""
        system_prompt, user_prompt = build_retrieval_prompt(profile, filters)
        logger.debug(f"Retrieval prompt:\n{user_prompt}")

        started = time.monotonic()
        try:
            raw_text = await self.client.complete(system_prompt, user_prompt)
        except (LLMServiceError, TimeoutError) as e:
            logger.error(f"Retrieval failed after {time.monotonic() - started:.1f}s: {e}")
            raise RetrievalFailure(f"Search service unavailable: {e}") from e

        logger.info(
            f"Retrieval returned {len(raw_text)} chars in {time.monotonic() - started:.1f}s"
        )
        logger.debug(f"Retrieval response:\n{raw_text}")
        return raw_text


class RefinementStage:
    """Structured refinement of retrieved text into candidate records."""

    def __init__(self, client: StructuredCompletionClient, max_tokens: int = 50000) -> None:
        self.client = client
        self.max_tokens = max_tokens

    async def run(
        self,
        raw_text: str,
        profile: TasteProfile,
        filters: RecommendationFilters,
    ) -> list[CandidateRecord]:
        """Return at most ``filters.count`` validated candidates.

        Raises:
            RefinementFailure: Provider error or no candidates at all
            ParseFailure: The response broke the JSON contract
        """
        system_prompt, user_prompt = build_refinement_prompt(raw_text, profile, filters)

        started = time.monotonic()
        try:
            data = await self.client.complete_json(system_prompt, user_prompt, self.max_tokens)
        except (LLMServiceError, TimeoutError) as e:
            logger.error(f"Refinement failed after {time.monotonic() - started:.1f}s: {e}")
            raise RefinementFailure(f"Structuring service unavailable: {e}") from e

        candidates = self.parse(data)
        if not candidates:
            raise RefinementFailure("Refinement produced no recommendations")

        if len(candidates) > filters.count:
            logger.warning(
                f"Refinement returned {len(candidates)} items for {filters.count} requested, truncating"
            )
            candidates = candidates[: filters.count]
        elif len(candidates) < filters.count:
            logger.warning(f"Refinement returned {len(candidates)} of {filters.count} requested items")

        logger.info(f"Refinement produced {len(candidates)} candidates in {time.monotonic() - started:.1f}s")
        return candidates

    @staticmethod
    def parse(data: dict) -> list[CandidateRecord]:
        """Validate a ``{"recommendations": [...]}`` payload; all or nothing."""
        entries = data.get("recommendations")
        if not isinstance(entries, list):
            raise ParseFailure("Response has no 'recommendations' array")

        candidates = []
        for index, entry in enumerate(entries):
            if not isinstance(entry, dict):
                raise ParseFailure(f"Recommendation {index + 1} is not an object")
            try:
                candidates.append(CandidateRecord.model_validate(entry))
            except ValidationError as e:
                raise ParseFailure(f"Recommendation {index + 1} is invalid: {e}") from e
        return candidates
