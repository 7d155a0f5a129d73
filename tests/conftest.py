"""Pytest configuration and fixtures."""

import hashlib
import os
from collections.abc import AsyncGenerator, Awaitable, Callable
from typing import Any

os.environ.setdefault("APP_ENV", "test")

import numpy as np
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from reelsynth.api.deps import (
    get_catalog_client,
    get_embedding_client,
    get_search_client,
    get_structured_client,
)
from reelsynth.constants import EMBEDDING_DIMENSION
from reelsynth.db import get_db
from reelsynth.db.crud.ratings import upsert_rating
from reelsynth.main import app
from reelsynth.models import Base, MediaKind, Rating, RatingValue, User
from reelsynth.models.schemas import RatingCreate
from reelsynth.services.metadata.tmdb import TMDBCatalogClient
from reelsynth.services.recommendations.identity import assign_id

# Test database URL (uses SQLite for testing)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


class FakeSearchClient:
    """Search-augmented model stand-in; records every call."""

    def __init__(self, response: str = "Search results for the requested titles") -> None:
        self.response = response
        self.error: Exception | None = None
        self.calls: list[tuple[str, str]] = []

    async def complete(self, system_prompt: str, user_prompt: str) -> str:
        self.calls.append((system_prompt, user_prompt))
        if self.error is not None:
            raise self.error
        return self.response


class FakeStructuredClient:
    """JSON-mode model stand-in returning ``payload``."""

    def __init__(self, payload: dict[str, Any] | None = None) -> None:
        self.payload = payload if payload is not None else {"recommendations": []}
        self.error: Exception | None = None
        self.calls: list[tuple[str, str, int]] = []

    async def complete_json(self, system_prompt: str, user_prompt: str, max_tokens: int) -> dict[str, Any]:
        self.calls.append((system_prompt, user_prompt, max_tokens))
        if self.error is not None:
            raise self.error
        return self.payload


class FakeEmbeddingClient:
    """Deterministic unit vectors seeded from the text."""

    def __init__(self, dimension: int = EMBEDDING_DIMENSION) -> None:
        self.dimension = dimension
        self.calls: list[str] = []

    async def embed(self, text: str) -> list[float]:
        self.calls.append(text)
        seed = int.from_bytes(hashlib.sha256(text.encode()).digest()[:4], "big")
        vector = np.random.default_rng(seed).standard_normal(self.dimension)
        return (vector / np.linalg.norm(vector)).tolist()


def _candidates_payload(titles: list[tuple[str, int | None]]) -> dict[str, Any]:
    return {
        "recommendations": [
            {
                "title": title,
                "year": year,
                "overview": f"About {title}",
                "genres": ["Drama"],
                "imdbRating": 7.5,
                "reason": f"Because you liked similar titles to {title}",
                "matchPercentage": 90 - i,
            }
            for i, (title, year) in enumerate(titles)
        ]
    }


@pytest_asyncio.fixture
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Fresh in-memory database per test."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_maker = async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False,
    )
    async with session_maker() as session:
        yield session

    await engine.dispose()


@pytest_asyncio.fixture
async def test_user(db_session: AsyncSession) -> User:
    """Create a test user."""
    user = User(
        username="testuser",
        email="test@example.com",
        languages=["English", "Korean"],
    )
    db_session.add(user)
    await db_session.commit()
    await db_session.refresh(user)
    return user


@pytest_asyncio.fixture
async def other_user(db_session: AsyncSession) -> User:
    """Create another test user for isolation tests."""
    user = User(username="otheruser", email="other@example.com")
    db_session.add(user)
    await db_session.commit()
    await db_session.refresh(user)
    return user


@pytest.fixture
def rate(db_session: AsyncSession) -> Callable[..., Awaitable[Rating]]:
    """Factory: ``await rate(user_id, "Parasite", 2019, RatingValue.AMAZING)``."""

    async def _rate(
        user_id: int,
        title: str,
        year: int | None,
        value: RatingValue = RatingValue.GOOD,
        kind: MediaKind = MediaKind.MOVIE,
    ) -> Rating:
        data = RatingCreate(item_id=assign_id(title, year), kind=kind, title=title, year=year, value=value)
        return await upsert_rating(db_session, user_id, data)

    return _rate


@pytest.fixture
def make_candidates() -> Callable[[list[tuple[str, int | None]]], dict[str, Any]]:
    """Refinement payload builder for (title, year) pairs."""
    return _candidates_payload


@pytest.fixture
def search_client() -> FakeSearchClient:
    return FakeSearchClient()


@pytest.fixture
def structured_client() -> FakeStructuredClient:
    return FakeStructuredClient()


@pytest.fixture
def embedding_client() -> FakeEmbeddingClient:
    return FakeEmbeddingClient()


@pytest_asyncio.fixture
async def client(
    db_session: AsyncSession,
    search_client: FakeSearchClient,
    structured_client: FakeStructuredClient,
    embedding_client: FakeEmbeddingClient,
) -> AsyncGenerator[AsyncClient, None]:
    """API test client wired to the test database and fake model clients."""

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_search_client] = lambda: search_client
    app.dependency_overrides[get_structured_client] = lambda: structured_client
    app.dependency_overrides[get_embedding_client] = lambda: embedding_client
    # No API key: identity falls back to hashed ids, no network
    catalog = TMDBCatalogClient(api_key="", http_client=AsyncClient())
    app.dependency_overrides[get_catalog_client] = lambda: catalog

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac

    app.dependency_overrides.clear()
    await catalog.aclose()
