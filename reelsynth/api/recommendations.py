"""Recommendation synthesis and delivery queue endpoints."""

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from reelsynth.api.deps import get_delivery_queue, get_synthesizer
from reelsynth.config import get_settings
from reelsynth.constants import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE
from reelsynth.db import get_db
from reelsynth.db.crud.ratings import upsert_rating
from reelsynth.models.schemas import (
    BatchResult,
    DeliveredItem,
    MarkRatedRequest,
    MarkRatedResponse,
    QueueStatus,
    RatingCreate,
    RatingRead,
    RecommendationFilters,
)
from reelsynth.services.recommendations.delivery import DeliveryQueue
from reelsynth.services.recommendations.synthesis import RecommendationSynthesizer

router = APIRouter(prefix="/users/{user_id}", tags=["recommendations"])


@router.post("/recommendations/bulk", response_model=BatchResult)
async def generate_bulk_recommendations(
    user_id: int,
    filters: RecommendationFilters | None = None,
    synthesizer: RecommendationSynthesizer = Depends(get_synthesizer),
) -> BatchResult:
    """Generate a batch of recommendations and queue it for delivery."""
    filters = filters or RecommendationFilters(count=get_settings().default_recommendation_count)
    max_count = get_settings().max_recommendation_count
    if filters.count > max_count:
        raise HTTPException(status_code=400, detail=f"count must not exceed {max_count}")

    return await synthesizer.synthesize(user_id, filters)


@router.get("/recommendations/next", response_model=list[DeliveredItem])
async def get_next_recommendations(
    user_id: int,
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    queue: DeliveryQueue = Depends(get_delivery_queue),
) -> list[DeliveredItem]:
    """Next page of unshown recommendations; they are marked shown."""
    return await queue.next_batch(user_id, limit)


@router.get("/recommendations/status", response_model=QueueStatus)
async def get_recommendation_status(
    user_id: int,
    queue: DeliveryQueue = Depends(get_delivery_queue),
) -> QueueStatus:
    return await queue.status(user_id)


@router.post("/recommendations/mark-rated", response_model=MarkRatedResponse)
async def mark_recommendation_rated(
    user_id: int,
    body: MarkRatedRequest,
    queue: DeliveryQueue = Depends(get_delivery_queue),
) -> MarkRatedResponse:
    updated = await queue.mark_rated(user_id, body.item_id)
    return MarkRatedResponse(item_id=body.item_id, updated=updated)


@router.post("/ratings", response_model=RatingRead)
async def rate_item(
    user_id: int,
    body: RatingCreate,
    db: AsyncSession = Depends(get_db),
    queue: DeliveryQueue = Depends(get_delivery_queue),
) -> RatingRead:
    """Store a rating and move any queued recommendation of the item to Rated."""
    rating = await upsert_rating(db, user_id, body)
    await queue.mark_rated(user_id, body.item_id)
    return RatingRead.model_validate(rating)
