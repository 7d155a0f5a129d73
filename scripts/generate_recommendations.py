#!/usr/bin/env python3
"""Generate a recommendation batch for one user from the command line.

Runs the same pipeline as ``POST /api/users/{id}/recommendations/bulk``
and prints the stored records, failures and rejected titles.

Usage:
    python scripts/generate_recommendations.py USER_ID [--kind=movie|tv] [--count=N]

Options:
    --kind      movie or tv (default: movie)
    --count     Number of recommendations to request (default: 10)
"""

import argparse
import asyncio
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from reelsynth.api.deps import (
    close_catalog_client,
    get_catalog_client,
    get_embedding_client,
    get_search_client,
    get_structured_client,
)
from reelsynth.config import get_settings
from reelsynth.db.database import async_session_maker
from reelsynth.exceptions import ReelSynthError
from reelsynth.models.catalog import MediaKind
from reelsynth.models.schemas import RecommendationFilters
from reelsynth.services.recommendations import (
    CatalogIdentityAssigner,
    EmbeddingService,
    HashIdentityAssigner,
    PreferenceVectorStore,
    RecommendationSynthesizer,
    RefinementStage,
    RetrievalStage,
)
from reelsynth.utils.logging import setup_logging


async def generate(user_id: int, kind: MediaKind, count: int) -> int:
    """Run one synthesis; returns a process exit code."""
    settings = get_settings()

    async with async_session_maker() as db:
        preferences = PreferenceVectorStore(
            db, EmbeddingService(get_embedding_client()), analyzer=get_structured_client()
        )
        synthesizer = RecommendationSynthesizer(
            db,
            RetrievalStage(get_search_client()),
            RefinementStage(get_structured_client(), max_tokens=settings.refinement_max_tokens),
            identity=CatalogIdentityAssigner(get_catalog_client(), HashIdentityAssigner(db)),
            preferences=preferences,
            min_ratings=settings.min_ratings_for_synthesis,
            rating_limit=settings.taste_profile_rating_limit,
            catalog_delay=settings.catalog_call_delay,
        )

        try:
            result = await synthesizer.synthesize(user_id, RecommendationFilters(kind=kind, count=count))
        except ReelSynthError as e:
            print(f"Synthesis failed: {e}")
            return 1

    print(f"\nBatch {result.batch_id}: {result.successfully_stored}/{result.total_requested} stored\n")
    for record in result.records:
        match = f"{record.match_percentage:.0f}%" if record.match_percentage is not None else "?"
        print(f"  {record.position:>2}. {record.title} ({record.year or ''}) [{match}] #{record.item_id}")
    for failure in result.failures:
        print(f"  FAILED {failure.position}. {failure.title}: {failure.error}")
    if result.excluded:
        print(f"\nRejected as already known: {', '.join(result.excluded)}")
    return 0


async def main(user_id: int, kind: MediaKind, count: int) -> int:
    setup_logging("INFO")
    try:
        return await generate(user_id, kind, count)
    finally:
        await close_catalog_client()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Generate recommendations for a user")
    parser.add_argument("user_id", type=int, help="User to generate recommendations for")
    parser.add_argument("--kind", choices=[k.value for k in MediaKind], default=MediaKind.MOVIE.value)
    parser.add_argument("--count", type=int, default=10, help="Number of recommendations")
    args = parser.parse_args()

    sys.exit(asyncio.run(main(args.user_id, MediaKind(args.kind), args.count)))
