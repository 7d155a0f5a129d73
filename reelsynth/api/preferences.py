"""Preference vector store endpoints."""

from fastapi import APIRouter, Depends, Query

from reelsynth.api.deps import get_preference_store
from reelsynth.constants import MAX_CONTEXT_PREFERENCES, PREFERENCE_QUERY
from reelsynth.models.schemas import (
    PreferenceAnalysis,
    PreferenceCreate,
    PreferenceMatch,
    PreferenceRead,
)
from reelsynth.services.recommendations.preferences import PreferenceVectorStore

router = APIRouter(prefix="/users/{user_id}/preferences", tags=["preferences"])


@router.post("", response_model=PreferenceRead)
async def store_preference(
    user_id: int,
    body: PreferenceCreate,
    store: PreferenceVectorStore = Depends(get_preference_store),
) -> PreferenceRead:
    preference = await store.store(user_id, body.preference_type, body.value, body.strength)
    return PreferenceRead.model_validate(preference)


@router.get("/search", response_model=list[PreferenceMatch])
async def search_preferences(
    user_id: int,
    q: str = Query(PREFERENCE_QUERY, min_length=1, max_length=500),
    k: int = Query(MAX_CONTEXT_PREFERENCES, ge=1, le=50),
    store: PreferenceVectorStore = Depends(get_preference_store),
) -> list[PreferenceMatch]:
    """Stored preferences most similar to the query text."""
    return await store.retrieve_for_text(user_id, q, k)


@router.post("/analyze", response_model=PreferenceAnalysis)
async def analyze_preferences(
    user_id: int,
    store: PreferenceVectorStore = Depends(get_preference_store),
) -> PreferenceAnalysis:
    """Extract preferences from the user's recent positive ratings."""
    return await store.analyze(user_id)
