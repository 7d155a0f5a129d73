#!/usr/bin/env python3
"""Backfill missing catalog metadata.

Runs the lazy enrichment step ahead of time for catalog items that still
lack a critic rating, voter count, review summary or genres, so the first
detail view does not wait on the search model.

Usage:
    python scripts/enrich_catalog.py [--dry-run] [--limit=N]

Options:
    --dry-run   List the items that would be enriched without calling the model
    --limit     Maximum number of items to process (default: 50)
"""

import argparse
import asyncio
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from reelsynth.api.deps import close_catalog_client, get_catalog_client, get_search_client
from reelsynth.db.crud.catalog import get_items_needing_enrichment
from reelsynth.db.database import async_session_maker
from reelsynth.services.metadata.enrichment import MetadataEnricher, needs_enrichment
from reelsynth.utils.logging import setup_logging


async def enrich_catalog(dry_run: bool = False, limit: int = 50) -> None:
    """Enrich up to ``limit`` incomplete catalog items."""
    print("=" * 60)
    print("Catalog enrichment" + (" (DRY RUN)" if dry_run else ""))
    print("=" * 60 + "\n")

    async with async_session_maker() as db:
        items = [item for item in await get_items_needing_enrichment(db, limit) if needs_enrichment(item)]
        print(f"Found {len(items)} items with missing metadata\n")

        if dry_run:
            for item in items:
                print(f"  would enrich #{item.id} {item.title} ({item.display_year})")
            return

        enricher = MetadataEnricher(get_search_client(), db, catalog=get_catalog_client())
        completed = 0
        for i, item in enumerate(items, 1):
            print(f"[{i}/{len(items)}] {item.title} ({item.display_year})")
            item = await enricher.enrich(item)
            if needs_enrichment(item):
                print("  -> still incomplete")
            else:
                completed += 1
                print(f"  -> rating {item.critic_rating}, {item.voter_count} votes")

    print(f"\nDone: {completed}/{len(items)} items now complete")


async def main(dry_run: bool, limit: int) -> None:
    setup_logging("INFO")
    try:
        await enrich_catalog(dry_run=dry_run, limit=limit)
    finally:
        await close_catalog_client()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Backfill missing catalog metadata")
    parser.add_argument("--dry-run", action="store_true", help="Show what would be done without changes")
    parser.add_argument("--limit", type=int, default=50, help="Maximum number of items to process")
    args = parser.parse_args()

    asyncio.run(main(dry_run=args.dry_run, limit=args.limit))
