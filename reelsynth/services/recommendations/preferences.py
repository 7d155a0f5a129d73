"""Preference vector store.

Typed user preferences ("director: Denis Villeneuve") are embedded and kept
in pgvector. The closest preferences to a query are pulled back into the
synthesis prompts to bias later generations.
"""

import logging
from typing import Any

from pydantic import ValidationError
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from reelsynth.constants import (
    ANALYZE_MAX_TOKENS,
    ANALYZE_RATINGS_LIMIT,
    MAX_CONTEXT_PREFERENCES,
    NEUTRAL_SIMILARITY,
    PREFERENCE_QUERY,
    PREFERENCE_TYPES,
)
from reelsynth.db.crud.ratings import get_positive_ratings
from reelsynth.exceptions import LLMServiceError, NoDataError, ParseFailure
from reelsynth.models.preference import PreferenceVector
from reelsynth.models.schemas import ExtractedPreference, PreferenceAnalysis, PreferenceMatch
from reelsynth.services.llm.clients import StructuredCompletionClient
from reelsynth.services.recommendations.embeddings import EmbeddingService

logger = logging.getLogger(__name__)

ANALYZE_SYSTEM_PROMPT = """You are a movie and TV preference analyzer. Analyze the user's ratings and extract detailed preferences.

Extract preferences in these categories:
- genre: specific genres they like (e.g., "sci-fi", "thriller")
- actor: actors they prefer
- director: directors they like
- theme: themes/subjects (e.g., "time travel", "heist", "redemption")
- style: cinematography/style preferences (e.g., "dark", "colorful", "minimal dialogue")
- era: time periods (e.g., "1990s cinema", "modern films")

For each preference, assign a strength score (0.0 to 1.0) based on how confident you are.

Return ONLY a valid JSON object with this exact structure:
{
  "preferences": [
    {"type": "genre", "value": "sci-fi", "strength": 0.9},
    {"type": "theme", "value": "time travel", "strength": 0.8}
  ]
}"""


def match_from_row(row: Any, similarity: float | None = None) -> PreferenceMatch:
    """Build a match from a result row.

    Without an explicit ``similarity`` the row must carry a cosine
    ``distance``; similarity is then ``1 - distance``.
    """
    if similarity is None:
        similarity = 1.0 - float(row.distance)
    return PreferenceMatch(
        id=row.id,
        preference_type=row.preference_type,
        value=row.value,
        strength=row.strength,
        similarity=similarity,
    )


class PreferenceVectorStore:
    """Store, retrieve and extract embedded user preferences."""

    def __init__(
        self,
        db: AsyncSession,
        embeddings: EmbeddingService,
        analyzer: StructuredCompletionClient | None = None,
    ) -> None:
        self.db = db
        self.embeddings = embeddings
        self.analyzer = analyzer

    async def store(
        self,
        user_id: int,
        preference_type: str,
        value: str,
        strength: float = 1.0,
    ) -> PreferenceVector:
        """Insert or update a preference.

        The embedding is generated for new preferences only; an existing
        preference just takes the new strength.
        """
        if not 0.0 <= strength <= 1.0:
            raise ValueError("strength must be between 0.0 and 1.0")
        preference_type = preference_type.strip().lower()
        value = value.strip()

        result = await self.db.execute(
            select(PreferenceVector).where(
                PreferenceVector.user_id == user_id,
                PreferenceVector.preference_type == preference_type,
                PreferenceVector.value == value,
            )
        )
        preference = result.scalar_one_or_none()

        if preference is None:
            embedding = await self.embeddings.embed(
                EmbeddingService.create_preference_text(preference_type, value)
            )
            preference = PreferenceVector(
                user_id=user_id,
                preference_type=preference_type,
                value=value,
                strength=strength,
                embedding=embedding,
            )
            self.db.add(preference)
            logger.info(f"Stored preference for user {user_id}: {preference_type}: {value}")
        elif preference.strength != strength:
            preference.strength = strength
            logger.info(f"Updated preference strength for user {user_id}: {preference_type}: {value}")

        await self.db.commit()
        return preference

    async def count(self, user_id: int) -> int:
        result = await self.db.execute(
            select(func.count(PreferenceVector.id)).where(PreferenceVector.user_id == user_id)
        )
        return result.scalar_one()

    async def retrieve(
        self,
        user_id: int,
        query_vector: list[float],
        k: int = MAX_CONTEXT_PREFERENCES,
    ) -> list[PreferenceMatch]:
        """Top-k preferences by cosine similarity to ``query_vector``.

        Falls back to an unordered scan with neutral similarity when the
        vector operator is unavailable.
        """
        if k < 1:
            return []

        dialect = self.db.get_bind().dialect.name
        if dialect != "postgresql":
            logger.warning(f"Vector search unavailable on {dialect}, using unordered fallback")
            return await self._retrieve_unordered(user_id, k)

        distance = PreferenceVector.embedding.cosine_distance(query_vector).label("distance")
        try:
            async with self.db.begin_nested():
                result = await self.db.execute(
                    select(
                        PreferenceVector.id,
                        PreferenceVector.preference_type,
                        PreferenceVector.value,
                        PreferenceVector.strength,
                        distance,
                    )
                    .where(PreferenceVector.user_id == user_id)
                    .order_by(distance)
                    .limit(k)
                )
                rows = result.all()
        except SQLAlchemyError as e:
            logger.warning(f"Vector search failed, using unordered fallback: {e}")
            return await self._retrieve_unordered(user_id, k)

        return [match_from_row(row) for row in rows]

    async def _retrieve_unordered(self, user_id: int, k: int) -> list[PreferenceMatch]:
        result = await self.db.execute(
            select(
                PreferenceVector.id,
                PreferenceVector.preference_type,
                PreferenceVector.value,
                PreferenceVector.strength,
            )
            .where(PreferenceVector.user_id == user_id)
            .limit(k)
        )
        return [match_from_row(row, similarity=NEUTRAL_SIMILARITY) for row in result.all()]

    async def retrieve_for_text(
        self,
        user_id: int,
        query_text: str,
        k: int = MAX_CONTEXT_PREFERENCES,
    ) -> list[PreferenceMatch]:
        """Embed ``query_text`` and retrieve the closest preferences."""
        query_vector = await self.embeddings.embed(query_text)
        return await self.retrieve(user_id, query_vector, k)

    async def context_lines(
        self,
        user_id: int,
        query_text: str = PREFERENCE_QUERY,
        k: int = MAX_CONTEXT_PREFERENCES,
    ) -> list[str]:
        """Preference lines for prompt context; empty when nothing is stored."""
        if await self.count(user_id) == 0:
            return []
        matches = await self.retrieve_for_text(user_id, query_text, k)
        return [
            f"- {m.preference_type}: {m.value} (strength {m.strength:.1f}, relevance {m.similarity:.2f})"
            for m in matches
        ]

    async def analyze(self, user_id: int) -> PreferenceAnalysis:
        """Extract typed preferences from recent positive ratings and store them.

        Raises:
            NoDataError: The user has no amazing/good ratings
            ParseFailure: The model response has no preferences array
        """
        ratings = await get_positive_ratings(self.db, user_id, ANALYZE_RATINGS_LIMIT)
        if not ratings:
            raise NoDataError("No ratings to analyze yet")
        if self.analyzer is None:
            raise LLMServiceError("No analysis client configured")

        rated = "\n".join(f"{r.label}: {r.value.value}" for r in ratings)
        logger.info(f"Analyzing {len(ratings)} positive ratings for user {user_id}")
        data = await self.analyzer.complete_json(
            ANALYZE_SYSTEM_PROMPT,
            f"Analyze these ratings:\n\n{rated}",
            ANALYZE_MAX_TOKENS,
        )

        entries = data.get("preferences")
        if not isinstance(entries, list):
            raise ParseFailure("Response has no 'preferences' array")

        stored: list[ExtractedPreference] = []
        failed = 0
        for entry in entries:
            try:
                preference = ExtractedPreference.model_validate(entry)
            except ValidationError as e:
                logger.warning(f"Skipping invalid preference {entry!r}: {e}")
                failed += 1
                continue
            if preference.type not in PREFERENCE_TYPES:
                logger.warning(f"Skipping preference with unknown type {preference.type!r}")
                failed += 1
                continue

            try:
                await self.store(user_id, preference.type, preference.value, preference.strength)
            except (LLMServiceError, SQLAlchemyError, ValueError) as e:
                logger.error(f"Failed to store preference {preference.type}: {preference.value}: {e}")
                await self.db.rollback()
                failed += 1
                continue
            stored.append(preference)

        logger.info(
            f"Preference analysis for user {user_id}: {len(entries)} extracted, "
            f"{len(stored)} stored, {failed} failed"
        )
        return PreferenceAnalysis(
            analyzed_ratings=len(ratings),
            extracted=len(entries),
            stored=len(stored),
            failed=failed,
            preferences=stored,
        )
