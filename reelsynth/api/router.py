"""Main API router."""

from fastapi import APIRouter

from reelsynth.api.items import router as items_router
from reelsynth.api.preferences import router as preferences_router
from reelsynth.api.recommendations import router as recommendations_router

api_router = APIRouter(prefix="/api")

api_router.include_router(recommendations_router)
api_router.include_router(preferences_router)
api_router.include_router(items_router)
