"""Tests for embeddings and the preference vector store."""

import logging
from contextlib import nullcontext
from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest
from sqlalchemy import select
from sqlalchemy.dialects import postgresql
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from reelsynth.constants import EMBEDDING_DIMENSION, NEUTRAL_SIMILARITY
from reelsynth.exceptions import LLMServiceError, NoDataError, ParseFailure
from reelsynth.models.preference import PreferenceVector
from reelsynth.models.rating import RatingValue
from reelsynth.models.user import User
from reelsynth.services.recommendations.embeddings import EmbeddingService
from reelsynth.services.recommendations.preferences import PreferenceVectorStore, match_from_row


def postgres_bind() -> SimpleNamespace:
    """Stand-in bind that reports the PostgreSQL dialect."""
    return SimpleNamespace(dialect=SimpleNamespace(name="postgresql"))


@pytest.fixture
def store(db_session: AsyncSession, embedding_client, structured_client) -> PreferenceVectorStore:
    return PreferenceVectorStore(db_session, EmbeddingService(embedding_client), analyzer=structured_client)


class TestEmbeddingService:
    """Tests for EmbeddingService."""

    @pytest.mark.asyncio
    async def test_embed_dimension(self, embedding_client):
        vector = await EmbeddingService(embedding_client).embed("genre: sci-fi")

        assert len(vector) == EMBEDDING_DIMENSION
        assert embedding_client.calls == ["genre: sci-fi"]

    @pytest.mark.asyncio
    async def test_blank_text_rejected(self, embedding_client):
        with pytest.raises(ValueError):
            await EmbeddingService(embedding_client).embed("   ")
        assert embedding_client.calls == []

    @pytest.mark.asyncio
    async def test_wrong_dimension_rejected(self, embedding_client):
        embedding_client.dimension = 3

        with pytest.raises(LLMServiceError):
            await EmbeddingService(embedding_client).embed("genre: sci-fi")

    def test_preference_text(self):
        assert EmbeddingService.create_preference_text(" Director ", " Bong Joon-ho ") == "director: Bong Joon-ho"

    @pytest.mark.asyncio
    async def test_non_finite_values_rejected(self):
        client = SimpleNamespace(embed=AsyncMock(return_value=[float("nan")] + [0.0] * (EMBEDDING_DIMENSION - 1)))

        with pytest.raises(LLMServiceError):
            await EmbeddingService(client).embed("genre: sci-fi")

    @pytest.mark.asyncio
    async def test_returns_plain_floats(self, embedding_client):
        vector = await EmbeddingService(embedding_client).embed("genre: sci-fi")

        assert isinstance(vector, list)
        assert all(type(value) is float for value in vector)


class TestStore:
    """Tests for PreferenceVectorStore.store."""

    @pytest.mark.asyncio
    async def test_creates_with_embedding(self, store: PreferenceVectorStore, test_user: User, embedding_client):
        preference = await store.store(test_user.id, "Genre", " sci-fi ", 0.8)

        assert preference.id is not None
        assert preference.preference_type == "genre"
        assert preference.value == "sci-fi"
        assert len(preference.embedding) == EMBEDDING_DIMENSION
        assert embedding_client.calls == ["genre: sci-fi"]

    @pytest.mark.asyncio
    async def test_existing_preference_updates_strength_only(
        self, db_session: AsyncSession, store: PreferenceVectorStore, test_user: User, embedding_client
    ):
        user_id = test_user.id
        await store.store(user_id, "genre", "sci-fi", 0.8)
        updated = await store.store(user_id, "genre", "sci-fi", 0.3)

        assert updated.strength == 0.3
        assert len(embedding_client.calls) == 1
        rows = (await db_session.execute(select(PreferenceVector))).scalars().all()
        assert len(rows) == 1

    @pytest.mark.asyncio
    async def test_strength_out_of_range(self, store: PreferenceVectorStore, test_user: User, embedding_client):
        with pytest.raises(ValueError):
            await store.store(test_user.id, "genre", "sci-fi", 1.5)
        assert embedding_client.calls == []


class TestRetrieve:
    """Tests for PreferenceVectorStore.retrieve on a database without vector search."""

    @pytest.mark.asyncio
    async def test_fallback_returns_neutral_similarity(
        self, store: PreferenceVectorStore, test_user: User, caplog
    ):
        user_id = test_user.id
        for value in ("sci-fi", "horror", "noir"):
            await store.store(user_id, "genre", value)

        with caplog.at_level(logging.WARNING, logger="reelsynth.services.recommendations.preferences"):
            matches = await store.retrieve_for_text(user_id, "dark thrillers", k=2)

        assert len(matches) == 2
        assert all(m.similarity == NEUTRAL_SIMILARITY for m in matches)
        similarities = [m.similarity for m in matches]
        assert similarities == sorted(similarities, reverse=True)
        assert "unordered fallback" in caplog.text

    @pytest.mark.asyncio
    async def test_savepoint_error_falls_back(
        self, db_session: AsyncSession, store: PreferenceVectorStore, test_user: User, monkeypatch, caplog
    ):
        user_id = test_user.id
        await store.store(user_id, "genre", "noir")

        def failing_savepoint():
            raise OperationalError("SAVEPOINT sa_savepoint_1", {}, Exception("operator does not exist: <=>"))

        monkeypatch.setattr(db_session, "get_bind", lambda *args, **kwargs: postgres_bind())
        monkeypatch.setattr(db_session, "begin_nested", failing_savepoint)

        with caplog.at_level(logging.WARNING, logger="reelsynth.services.recommendations.preferences"):
            matches = await store.retrieve(user_id, [0.0] * EMBEDDING_DIMENSION, k=5)

        assert [(m.value, m.similarity) for m in matches] == [("noir", NEUTRAL_SIMILARITY)]
        assert "Vector search failed" in caplog.text

    @pytest.mark.asyncio
    async def test_vector_path_orders_by_cosine_distance(
        self, db_session: AsyncSession, store: PreferenceVectorStore, monkeypatch
    ):
        rows = [
            SimpleNamespace(id=3, preference_type="director", value="Bong Joon-ho", strength=0.9, distance=0.1),
            SimpleNamespace(id=1, preference_type="genre", value="noir", strength=1.0, distance=0.35),
            SimpleNamespace(id=2, preference_type="mood", value="cheerful", strength=0.4, distance=1.2),
        ]
        execute = AsyncMock(return_value=SimpleNamespace(all=lambda: rows))
        monkeypatch.setattr(db_session, "get_bind", lambda *args, **kwargs: postgres_bind())
        monkeypatch.setattr(db_session, "begin_nested", nullcontext)
        monkeypatch.setattr(db_session, "execute", execute)

        matches = await store.retrieve(7, [0.1] * EMBEDDING_DIMENSION, k=3)

        assert [m.id for m in matches] == [3, 1, 2]
        assert [m.similarity for m in matches] == pytest.approx([0.9, 0.65, -0.2])
        sql = str(execute.await_args.args[0].compile(dialect=postgresql.dialect()))
        assert "<=>" in sql
        assert "ORDER BY distance" in sql
        assert "LIMIT" in sql

    @pytest.mark.asyncio
    async def test_k_below_one(self, store: PreferenceVectorStore, test_user: User):
        await store.store(test_user.id, "genre", "sci-fi")

        assert await store.retrieve(test_user.id, [0.0] * EMBEDDING_DIMENSION, k=0) == []

    @pytest.mark.asyncio
    async def test_only_own_preferences(self, store: PreferenceVectorStore, test_user: User, other_user: User):
        user_id, other_id = test_user.id, other_user.id
        await store.store(other_id, "actor", "Song Kang-ho")

        assert await store.retrieve_for_text(user_id, "anything") == []

    @pytest.mark.asyncio
    async def test_context_lines_empty_without_preferences(
        self, store: PreferenceVectorStore, test_user: User, embedding_client
    ):
        assert await store.context_lines(test_user.id) == []
        assert embedding_client.calls == []

    @pytest.mark.asyncio
    async def test_context_lines(self, store: PreferenceVectorStore, test_user: User):
        await store.store(test_user.id, "director", "Park Chan-wook", 0.9)

        lines = await store.context_lines(test_user.id)

        assert lines == ["- director: Park Chan-wook (strength 0.9, relevance 0.50)"]


class TestMatchFromRow:
    """Tests for match_from_row."""

    def test_similarity_from_distance(self):
        row = SimpleNamespace(id=1, preference_type="genre", value="noir", strength=0.7, distance=0.25)

        match = match_from_row(row)

        assert match.similarity == pytest.approx(0.75)
        assert (match.id, match.preference_type, match.value, match.strength) == (1, "genre", "noir", 0.7)

    def test_explicit_similarity(self):
        row = SimpleNamespace(id=1, preference_type="genre", value="noir", strength=0.7)

        assert match_from_row(row, similarity=NEUTRAL_SIMILARITY).similarity == 0.5


class TestAnalyze:
    """Tests for PreferenceVectorStore.analyze."""

    @pytest.mark.asyncio
    async def test_no_positive_ratings(self, store: PreferenceVectorStore, test_user: User, rate, structured_client):
        user_id = test_user.id
        await rate(user_id, "Cats", 2019, RatingValue.AWFUL)

        with pytest.raises(NoDataError):
            await store.analyze(user_id)
        assert structured_client.calls == []

    @pytest.mark.asyncio
    async def test_extracts_and_stores(self, store: PreferenceVectorStore, test_user: User, rate, structured_client):
        user_id = test_user.id
        await rate(user_id, "Parasite", 2019, RatingValue.AMAZING)
        await rate(user_id, "Cats", 2019, RatingValue.AWFUL)
        structured_client.payload = {
            "preferences": [
                {"type": "Director", "value": "Bong Joon-ho", "strength": 0.9},
                {"type": "theme", "value": "class struggle"},
                {"type": "mood", "value": "tense", "strength": 0.5},
                {"type": "genre", "value": "", "strength": 0.5},
            ]
        }

        analysis = await store.analyze(user_id)

        assert analysis.analyzed_ratings == 1
        assert analysis.extracted == 4
        assert analysis.stored == 2
        assert analysis.failed == 2
        assert [(p.type, p.value, p.strength) for p in analysis.preferences] == [
            ("director", "Bong Joon-ho", 0.9),
            ("theme", "class struggle", 0.5),
        ]
        assert await store.count(user_id) == 2
        assert "Parasite (2019): amazing" in structured_client.calls[0][1]

    @pytest.mark.asyncio
    async def test_missing_preferences_array(
        self, store: PreferenceVectorStore, test_user: User, rate, structured_client
    ):
        await rate(test_user.id, "Parasite", 2019, RatingValue.GOOD)
        structured_client.payload = {"likes": []}

        with pytest.raises(ParseFailure):
            await store.analyze(test_user.id)
