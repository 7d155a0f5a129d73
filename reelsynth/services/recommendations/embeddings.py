"""Embedding service for preference vectors."""

import logging

import numpy as np

from reelsynth.constants import EMBEDDING_DIMENSION
from reelsynth.exceptions import LLMServiceError
from reelsynth.services.llm.clients import EmbeddingClient

logger = logging.getLogger(__name__)


class EmbeddingService:
    """Generate text embeddings for preference vectors.

    Uses OpenAI's text-embedding-3-small (1536 dimensions). Vectors are
    compared in the database with pgvector's cosine distance.
    """

    EMBEDDING_DIM = EMBEDDING_DIMENSION

    def __init__(self, client: EmbeddingClient) -> None:
        self.client = client

    @staticmethod
    def create_preference_text(preference_type: str, value: str) -> str:
        """Text representation of a preference, e.g. ``"director: Bong Joon-ho"``."""
        return f"{preference_type.strip().lower()}: {value.strip()}"

    async def embed(self, text: str) -> list[float]:
        """Generate embedding for a single text.

        Raises:
            ValueError: Empty or blank input
        """
        if text is None or not text.strip():
            raise ValueError("Cannot embed empty text")

        vector = np.asarray(await self.client.embed(text.strip()), dtype=float)
        if vector.shape != (self.EMBEDDING_DIM,):
            raise LLMServiceError(
                f"Embedding has {vector.size} dimensions, expected {self.EMBEDDING_DIM}"
            )
        if not np.isfinite(vector).all():
            raise LLMServiceError("Embedding contains non-finite values")
        logger.debug(f"Embedded {len(text)} chars")
        return vector.tolist()
