"""Recommendation synthesis: taste profile -> retrieval -> refinement -> delivery queue."""

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable

from sqlalchemy.ext.asyncio import AsyncSession

from reelsynth.db.crud.catalog import upsert_catalog_item
from reelsynth.exceptions import LLMServiceError, PerCandidateStorageFailure
from reelsynth.models.catalog import IdSource, MediaKind
from reelsynth.models.recommendation import RecommendationBatch, RecommendationRecord
from reelsynth.models.schemas import (
    BatchResult,
    CandidateRecord,
    RecommendationFilters,
    StoredRecommendation,
)
from reelsynth.services.recommendations.identity import HashIdentityAssigner, IdentityAssigner, assign_id
from reelsynth.services.recommendations.preferences import PreferenceVectorStore
from reelsynth.services.recommendations.stages import RefinementStage, RetrievalStage
from reelsynth.services.recommendations.taste_profile import (
    TasteProfile,
    build_taste_profile,
    normalize_title,
    title_label,
)
from reelsynth.utils.logging import LogContext

logger = logging.getLogger(__name__)


class RecommendationSynthesizer:
    """Generate a batch of recommendations and queue it for delivery.

    Pipeline:
    1. Build the taste profile (fails fast below the rating minimum)
    2. Add stored preferences as prompt context, when a store is given
    3. Retrieval, then refinement
    4. Drop candidates the user already knows or that repeat within the batch
    5. Store each remaining candidate in its own transaction

    A candidate that fails to store is rolled back alone and reported in
    ``BatchResult.failures``; the rest of the batch is unaffected.
    """

    def __init__(
        self,
        db: AsyncSession,
        retrieval: RetrievalStage,
        refinement: RefinementStage,
        identity: IdentityAssigner | None = None,
        preferences: PreferenceVectorStore | None = None,
        *,
        min_ratings: int = 3,
        rating_limit: int = 100,
        catalog_delay: float = 0.25,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.db = db
        self.retrieval = retrieval
        self.refinement = refinement
        self.identity = identity or HashIdentityAssigner(db)
        self.preferences = preferences
        self.min_ratings = min_ratings
        self.rating_limit = rating_limit
        self.catalog_delay = catalog_delay
        self._sleep = sleep

    async def synthesize(
        self,
        user_id: int,
        filters: RecommendationFilters | None = None,
    ) -> BatchResult:
        """Run the full pipeline for one user.

        Raises:
            UserNotFoundError: Unknown user
            InsufficientDataError: Too few ratings; no LLM call is made
            RetrievalFailure, RefinementFailure: Upstream model unavailable
            ParseFailure: Refinement output broke the JSON contract
        """
        filters = filters or RecommendationFilters()
        log = LogContext(logger, user=user_id, kind=filters.kind.value)
        started = time.monotonic()
        log.info(f"Starting synthesis for {filters.count} {filters.kind.plural}")

        profile = await build_taste_profile(
            self.db,
            user_id,
            filters.kind,
            rating_limit=self.rating_limit,
            min_ratings=self.min_ratings,
        )
        await self._add_preference_context(profile, log)

        raw_text = await self.retrieval.run(profile, filters)
        candidates = await self.refinement.run(raw_text, profile, filters)
        accepted, excluded = self.filter_candidates(candidates, profile)
        if excluded:
            log.warning(f"Rejected {len(excluded)} excluded or repeated candidates: {', '.join(excluded)}")

        batch = RecommendationBatch(
            user_id=user_id,
            kind=filters.kind,
            requested_count=filters.count,
        )
        self.db.add(batch)
        await self.db.commit()
        # Plain values only from here on: a rollback expires ORM instances
        batch_id = batch.id
        log.bind(batch=batch_id)

        stored, failures = await self._store_all(user_id, batch_id, filters.kind, accepted, log)

        log.info(
            f"Synthesis finished in {time.monotonic() - started:.1f}s: "
            f"{len(stored)} stored, {len(failures)} failed, {len(excluded)} excluded"
        )
        return BatchResult(
            batch_id=batch_id,
            kind=filters.kind,
            total_requested=len(accepted),
            successfully_stored=len(stored),
            failed=len(failures),
            records=stored,
            failures=failures,
            excluded=excluded,
        )

    @staticmethod
    def filter_candidates(
        candidates: list[CandidateRecord],
        profile: TasteProfile,
    ) -> tuple[list[CandidateRecord], list[str]]:
        """Split candidates into (accepted, rejected labels)."""
        accepted: list[CandidateRecord] = []
        excluded: list[str] = []
        seen: set[tuple[str, int | None]] = set()

        for candidate in candidates:
            key = (normalize_title(candidate.title), candidate.year)
            if profile.excludes(candidate.title, candidate.year) or key in seen:
                excluded.append(title_label(candidate.title, candidate.year))
                continue
            seen.add(key)
            accepted.append(candidate)
        return accepted, excluded

    async def _add_preference_context(self, profile: TasteProfile, log: LogContext) -> None:
        if self.preferences is None:
            return
        try:
            profile.preference_context = await self.preferences.context_lines(profile.user_id)
        except LLMServiceError as e:
            log.warning(f"Preference context unavailable, continuing without it: {e}")
            return
        if profile.preference_context:
            log.info(f"Using {len(profile.preference_context)} stored preferences as context")

    async def _store_all(
        self,
        user_id: int,
        batch_id: str,
        kind: MediaKind,
        candidates: list[CandidateRecord],
        log: LogContext,
    ) -> tuple[list[StoredRecommendation], list[PerCandidateStorageFailure]]:
        """Fold over candidates, one unit of work each."""
        stored: list[StoredRecommendation] = []
        failures: list[PerCandidateStorageFailure] = []
        used_ids: set[int] = set()

        for index, candidate in enumerate(candidates):
            position = index + 1
            if index and self.identity.uses_external_catalog:
                await self._sleep(self.catalog_delay)

            try:
                record = await self._store_one(user_id, batch_id, kind, candidate, position, used_ids)
                stored.append(record)
                used_ids.add(record.item_id)
            except Exception as e:
                await self.db.rollback()
                log.error(f"Failed to store #{position} {candidate.title}: {e}", exc_info=True)
                failures.append(PerCandidateStorageFailure(position, candidate.title, str(e)))

        return stored, failures

    async def _store_one(
        self,
        user_id: int,
        batch_id: str,
        kind: MediaKind,
        candidate: CandidateRecord,
        position: int,
        used_ids: set[int],
    ) -> StoredRecommendation:
        item_id, id_source = await self.identity.assign(candidate, kind)
        if item_id in used_ids and id_source is IdSource.LLM:
            item_id, id_source = assign_id(candidate.title, candidate.year), IdSource.HASH
        if item_id in used_ids:
            raise ValueError(f"Item {item_id} is already part of this batch")
        await upsert_catalog_item(self.db, item_id, candidate, kind, id_source)

        self.db.add(
            RecommendationRecord(
                user_id=user_id,
                item_id=item_id,
                batch_id=batch_id,
                position=position,
                reason=candidate.reason,
                match_percentage=candidate.match_percentage,
            )
        )
        await self.db.commit()

        return StoredRecommendation(
            position=position,
            item_id=item_id,
            id_source=id_source,
            title=candidate.title,
            year=candidate.year,
            match_percentage=candidate.match_percentage,
            reason=candidate.reason,
        )
