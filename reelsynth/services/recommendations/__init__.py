"""Recommendation services package."""

from reelsynth.services.recommendations.delivery import DeliveryQueue
from reelsynth.services.recommendations.embeddings import EmbeddingService
from reelsynth.services.recommendations.identity import (
    CatalogIdentityAssigner,
    HashIdentityAssigner,
    assign_id,
)
from reelsynth.services.recommendations.preferences import PreferenceVectorStore
from reelsynth.services.recommendations.stages import RefinementStage, RetrievalStage
from reelsynth.services.recommendations.synthesis import RecommendationSynthesizer
from reelsynth.services.recommendations.taste_profile import TasteProfile, build_taste_profile

__all__ = [
    "CatalogIdentityAssigner",
    "DeliveryQueue",
    "EmbeddingService",
    "HashIdentityAssigner",
    "PreferenceVectorStore",
    "RecommendationSynthesizer",
    "RefinementStage",
    "RetrievalStage",
    "TasteProfile",
    "assign_id",
    "build_taste_profile",
]
