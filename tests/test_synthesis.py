"""Tests for the recommendation synthesis pipeline."""

import pytest
import pytest_asyncio
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from reelsynth.exceptions import InsufficientDataError, LLMServiceError, ParseFailure, RetrievalFailure
from reelsynth.models.catalog import CatalogItem, IdSource, MediaKind
from reelsynth.models.rating import RatingValue
from reelsynth.models.recommendation import RecommendationBatch, RecommendationRecord
from reelsynth.models.schemas import RecommendationFilters
from reelsynth.models.user import User
from reelsynth.services.recommendations.embeddings import EmbeddingService
from reelsynth.services.recommendations.identity import HashIdentityAssigner, assign_id
from reelsynth.services.recommendations.preferences import PreferenceVectorStore
from reelsynth.services.recommendations.stages import RefinementStage, RetrievalStage
from reelsynth.services.recommendations.synthesis import RecommendationSynthesizer

RATED = [("Parasite", 2019), ("Oldboy", 2003), ("Memories of Murder", 2003)]


class FlakyIdentity(HashIdentityAssigner):
    """Hash identity that fails for one title."""

    def __init__(self, failing_title: str) -> None:
        super().__init__()
        self.failing_title = failing_title

    async def assign(self, candidate, kind):
        if candidate.title == self.failing_title:
            raise RuntimeError("catalog exploded")
        return await super().assign(candidate, kind)


class CatalogBackedIdentity(HashIdentityAssigner):
    """Pretends to use the external catalog so the inter-call delay applies."""

    uses_external_catalog = True


@pytest.fixture
def make_synthesizer(db_session: AsyncSession, search_client, structured_client):
    def _make(**kwargs) -> RecommendationSynthesizer:
        return RecommendationSynthesizer(
            db_session,
            RetrievalStage(search_client),
            RefinementStage(structured_client),
            **kwargs,
        )

    return _make


@pytest_asyncio.fixture
async def rated_user(test_user: User, rate) -> int:
    """Test user with three movie ratings; returns the user id."""
    user_id = test_user.id
    for title, year in RATED:
        await rate(user_id, title, year, RatingValue.AMAZING)
    return user_id


class TestSynthesize:
    """Tests for RecommendationSynthesizer.synthesize."""

    @pytest.mark.asyncio
    async def test_insufficient_ratings_makes_no_llm_call(
        self, test_user: User, rate, make_synthesizer, search_client, structured_client
    ):
        user_id = test_user.id
        await rate(user_id, "Parasite", 2019)
        await rate(user_id, "Oldboy", 2003)

        with pytest.raises(InsufficientDataError):
            await make_synthesizer().synthesize(user_id, RecommendationFilters(count=5))

        assert search_client.calls == []
        assert structured_client.calls == []

    @pytest.mark.asyncio
    async def test_stores_batch_and_rejects_known_titles(
        self, db_session: AsyncSession, rated_user: int, make_synthesizer, structured_client, make_candidates
    ):
        fresh = [(f"New Film {i}", 2024) for i in range(8)]
        structured_client.payload = make_candidates(fresh[:4] + [("parasite", 2019)] + fresh[4:] + [("OLDBOY", None)])

        result = await make_synthesizer().synthesize(rated_user, RecommendationFilters(count=10))

        assert result.total_requested == 8
        assert result.successfully_stored == 8
        assert result.failed == 0
        assert result.excluded == ["parasite (2019)", "OLDBOY ()"]
        assert [r.position for r in result.records] == list(range(1, 9))
        assert [r.title for r in result.records] == [title for title, _ in fresh]

        records = (
            await db_session.execute(
                select(RecommendationRecord).where(RecommendationRecord.batch_id == result.batch_id)
            )
        ).scalars().all()
        assert len(records) == 8
        assert all(not r.shown and not r.rated for r in records)

        stored_titles = {
            item.title.lower() for item in (await db_session.execute(select(CatalogItem))).scalars().all()
        }
        assert "parasite" not in stored_titles and "oldboy" not in stored_titles

        batch = await db_session.get(RecommendationBatch, result.batch_id)
        assert batch.user_id == rated_user
        assert batch.requested_count == 10

    @pytest.mark.asyncio
    async def test_repeated_titles_within_batch_rejected(
        self, rated_user: int, make_synthesizer, structured_client, make_candidates
    ):
        structured_client.payload = make_candidates([("Burning", 2018), ("burning ", 2018), ("Burning", 2019)])

        result = await make_synthesizer().synthesize(rated_user, RecommendationFilters(count=3))

        assert result.successfully_stored == 2
        assert result.excluded == ["burning (2018)"]

    @pytest.mark.asyncio
    async def test_failed_candidate_does_not_abort_batch(
        self, db_session: AsyncSession, rated_user: int, make_synthesizer, structured_client, make_candidates
    ):
        structured_client.payload = make_candidates([("Burning", 2018), ("Bad Apple", 2020), ("Mother", 2009)])

        result = await make_synthesizer(identity=FlakyIdentity("Bad Apple")).synthesize(
            rated_user, RecommendationFilters(count=3)
        )

        assert result.successfully_stored + result.failed == result.total_requested == 3
        assert result.failed == 1
        assert result.failures[0].position == 2
        assert result.failures[0].title == "Bad Apple"
        assert "catalog exploded" in result.failures[0].error
        assert [r.position for r in result.records] == [1, 3]

        stored = (
            await db_session.execute(
                select(RecommendationRecord.position).where(RecommendationRecord.batch_id == result.batch_id)
            )
        ).scalars().all()
        assert sorted(stored) == [1, 3]

    @pytest.mark.asyncio
    async def test_same_title_reuses_catalog_item(
        self, db_session: AsyncSession, rated_user: int, make_synthesizer, structured_client, make_candidates
    ):
        structured_client.payload = make_candidates([("Burning", 2018)])

        first = await make_synthesizer().synthesize(rated_user, RecommendationFilters(count=1))
        second = await make_synthesizer().synthesize(rated_user, RecommendationFilters(count=1))

        assert first.records[0].item_id == second.records[0].item_id == assign_id("Burning", 2018)
        assert first.records[0].id_source == IdSource.HASH
        items = (await db_session.execute(select(CatalogItem))).scalars().all()
        assert len(items) == 1
        assert items[0].critic_rating == 7.5

    @pytest.mark.asyncio
    async def test_reused_model_id_does_not_overwrite_other_title(
        self, db_session: AsyncSession, rated_user: int, make_synthesizer, structured_client, make_candidates
    ):
        payload = make_candidates([("Burning", 2018), ("Decision to Leave", 2022)])
        for entry in payload["recommendations"]:
            entry["id"] = 123456789
        structured_client.payload = payload

        result = await make_synthesizer().synthesize(rated_user, RecommendationFilters(count=2))

        assert result.successfully_stored == 2
        first, second = result.records
        assert (first.item_id, first.id_source) == (123456789, IdSource.LLM)
        assert (second.item_id, second.id_source) == (assign_id("Decision to Leave", 2022), IdSource.HASH)

        items = (await db_session.execute(select(CatalogItem).order_by(CatalogItem.title))).scalars().all()
        assert [(item.id, item.title) for item in items] == [
            (123456789, "Burning"),
            (assign_id("Decision to Leave", 2022), "Decision to Leave"),
        ]

    @pytest.mark.asyncio
    async def test_model_id_repeated_in_batch_is_rehashed_without_session_check(
        self, rated_user: int, make_synthesizer, structured_client, make_candidates
    ):
        payload = make_candidates([("Burning", 2018), ("Decision to Leave", 2022)])
        for entry in payload["recommendations"]:
            entry["id"] = 123456789
        structured_client.payload = payload

        result = await make_synthesizer(identity=HashIdentityAssigner()).synthesize(
            rated_user, RecommendationFilters(count=2)
        )

        assert result.failed == 0
        assert [r.item_id for r in result.records] == [123456789, assign_id("Decision to Leave", 2022)]
        assert result.records[1].id_source == IdSource.HASH

    @pytest.mark.asyncio
    async def test_catalog_delay_between_candidates(
        self, rated_user: int, make_synthesizer, structured_client, make_candidates
    ):
        structured_client.payload = make_candidates([("A", 2020), ("B", 2021), ("C", 2022)])
        sleeps: list[float] = []

        async def fake_sleep(seconds: float) -> None:
            sleeps.append(seconds)

        await make_synthesizer(identity=CatalogBackedIdentity(), catalog_delay=0.3, sleep=fake_sleep).synthesize(
            rated_user, RecommendationFilters(count=3)
        )

        assert sleeps == [0.3, 0.3]

    @pytest.mark.asyncio
    async def test_no_delay_without_catalog(
        self, rated_user: int, make_synthesizer, structured_client, make_candidates
    ):
        structured_client.payload = make_candidates([("A", 2020), ("B", 2021)])
        sleeps: list[float] = []

        async def fake_sleep(seconds: float) -> None:
            sleeps.append(seconds)

        await make_synthesizer(sleep=fake_sleep).synthesize(rated_user, RecommendationFilters(count=2))

        assert sleeps == []

    @pytest.mark.asyncio
    async def test_retrieval_failure_stores_nothing(
        self, db_session: AsyncSession, rated_user: int, make_synthesizer, search_client, structured_client
    ):
        search_client.error = LLMServiceError("search down")

        with pytest.raises(RetrievalFailure):
            await make_synthesizer().synthesize(rated_user)

        assert structured_client.calls == []
        assert (await db_session.execute(select(RecommendationBatch))).scalars().all() == []

    @pytest.mark.asyncio
    async def test_parse_failure_stores_nothing(
        self, db_session: AsyncSession, rated_user: int, make_synthesizer, structured_client
    ):
        structured_client.payload = {"movies": []}

        with pytest.raises(ParseFailure):
            await make_synthesizer().synthesize(rated_user)

        assert (await db_session.execute(select(RecommendationRecord))).scalars().all() == []

    @pytest.mark.asyncio
    async def test_stored_preferences_reach_the_prompt(
        self,
        db_session: AsyncSession,
        rated_user: int,
        make_synthesizer,
        search_client,
        structured_client,
        embedding_client,
        make_candidates,
    ):
        store = PreferenceVectorStore(db_session, EmbeddingService(embedding_client))
        await store.store(rated_user, "director", "Bong Joon-ho", 0.9)
        structured_client.payload = make_candidates([("Burning", 2018)])

        await make_synthesizer(preferences=store).synthesize(rated_user, RecommendationFilters(count=1))

        _, retrieval_prompt = search_client.calls[0]
        assert "director: Bong Joon-ho" in retrieval_prompt

    @pytest.mark.asyncio
    async def test_tv_kind_uses_tv_ratings(
        self, db_session: AsyncSession, test_user: User, rate, make_synthesizer, structured_client, make_candidates
    ):
        user_id = test_user.id
        for title in ("Dark", "Severance", "Succession"):
            await rate(user_id, title, 2019, RatingValue.GOOD, kind=MediaKind.TV)
        structured_client.payload = make_candidates([("Dark", 2019), ("Andor", 2022)])

        result = await make_synthesizer().synthesize(user_id, RecommendationFilters(kind=MediaKind.TV, count=2))

        assert result.kind == MediaKind.TV
        assert [r.title for r in result.records] == ["Andor"]
        item = await db_session.get(CatalogItem, result.records[0].item_id)
        assert item.kind == MediaKind.TV
