"""FastAPI dependencies that build pipeline services from settings.

Tests override the client factories with fakes via ``app.dependency_overrides``.
"""

from functools import lru_cache

import httpx
from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from reelsynth.config import get_settings
from reelsynth.constants import HTTPX_TIMEOUT
from reelsynth.db import get_db
from reelsynth.services.llm.clients import (
    EmbeddingClient,
    OpenAIEmbeddingClient,
    OpenAIStructuredClient,
    PerplexitySearchClient,
    SearchCompletionClient,
    StructuredCompletionClient,
)
from reelsynth.services.metadata.enrichment import MetadataEnricher
from reelsynth.services.metadata.tmdb import TMDBCatalogClient
from reelsynth.services.recommendations.delivery import DeliveryQueue
from reelsynth.services.recommendations.embeddings import EmbeddingService
from reelsynth.services.recommendations.identity import (
    CatalogIdentityAssigner,
    HashIdentityAssigner,
    IdentityAssigner,
)
from reelsynth.services.recommendations.preferences import PreferenceVectorStore
from reelsynth.services.recommendations.stages import RefinementStage, RetrievalStage
from reelsynth.services.recommendations.synthesis import RecommendationSynthesizer


@lru_cache
def get_search_client() -> SearchCompletionClient:
    return PerplexitySearchClient.from_settings(get_settings())


@lru_cache
def get_structured_client() -> StructuredCompletionClient:
    return OpenAIStructuredClient.from_settings(get_settings())


@lru_cache
def get_embedding_client() -> EmbeddingClient:
    return OpenAIEmbeddingClient.from_settings(get_settings())


@lru_cache
def get_catalog_client() -> TMDBCatalogClient:
    """Single catalog client so every request shares one rate limiter and pool."""
    http_client = httpx.AsyncClient(
        timeout=HTTPX_TIMEOUT,
        limits=httpx.Limits(max_connections=20, max_keepalive_connections=10, keepalive_expiry=30),
    )
    return TMDBCatalogClient.from_settings(http_client, get_settings())


async def close_catalog_client() -> None:
    """Close the catalog client's connection pool if one was opened."""
    if get_catalog_client.cache_info().currsize:
        await get_catalog_client().aclose()
        get_catalog_client.cache_clear()


def get_identity_assigner(
    db: AsyncSession = Depends(get_db),
    catalog: TMDBCatalogClient = Depends(get_catalog_client),
) -> IdentityAssigner:
    return CatalogIdentityAssigner(catalog, HashIdentityAssigner(db))


def get_preference_store(
    db: AsyncSession = Depends(get_db),
    embedding_client: EmbeddingClient = Depends(get_embedding_client),
    structured_client: StructuredCompletionClient = Depends(get_structured_client),
) -> PreferenceVectorStore:
    return PreferenceVectorStore(db, EmbeddingService(embedding_client), analyzer=structured_client)


def get_synthesizer(
    db: AsyncSession = Depends(get_db),
    search_client: SearchCompletionClient = Depends(get_search_client),
    structured_client: StructuredCompletionClient = Depends(get_structured_client),
    identity: IdentityAssigner = Depends(get_identity_assigner),
    preferences: PreferenceVectorStore = Depends(get_preference_store),
) -> RecommendationSynthesizer:
    settings = get_settings()
    return RecommendationSynthesizer(
        db,
        RetrievalStage(search_client),
        RefinementStage(structured_client, max_tokens=settings.refinement_max_tokens),
        identity=identity,
        preferences=preferences,
        min_ratings=settings.min_ratings_for_synthesis,
        rating_limit=settings.taste_profile_rating_limit,
        catalog_delay=settings.catalog_call_delay,
    )


def get_delivery_queue(db: AsyncSession = Depends(get_db)) -> DeliveryQueue:
    return DeliveryQueue(db)


def get_enricher(
    db: AsyncSession = Depends(get_db),
    search_client: SearchCompletionClient = Depends(get_search_client),
    catalog: TMDBCatalogClient = Depends(get_catalog_client),
) -> MetadataEnricher:
    return MetadataEnricher(search_client, db, catalog=catalog)
