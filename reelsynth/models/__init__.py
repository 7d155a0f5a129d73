"""SQLAlchemy models."""

from reelsynth.models.base import Base
from reelsynth.models.catalog import CatalogItem, IdSource, MediaKind
from reelsynth.models.preference import PreferenceVector
from reelsynth.models.rating import Rating, RatingValue, SkippedItem, WatchlistEntry
from reelsynth.models.recommendation import (
    RecommendationBatch,
    RecommendationRecord,
    RecommendationState,
)
from reelsynth.models.user import User

__all__ = [
    "Base",
    "User",
    "CatalogItem",
    "IdSource",
    "MediaKind",
    "Rating",
    "RatingValue",
    "WatchlistEntry",
    "SkippedItem",
    "RecommendationBatch",
    "RecommendationRecord",
    "RecommendationState",
    "PreferenceVector",
]
