"""CRUD operations module."""

from reelsynth.db.crud.catalog import (
    get_catalog_item,
    get_item_detail,
    get_items_needing_enrichment,
    upsert_catalog_item,
)
from reelsynth.db.crud.ratings import (
    add_to_watchlist,
    count_ratings,
    get_positive_ratings,
    get_rated_keys,
    get_recent_ratings,
    get_skipped_keys,
    get_watchlist_keys,
    record_skip,
    upsert_rating,
)

__all__ = [
    "add_to_watchlist",
    "count_ratings",
    "get_catalog_item",
    "get_item_detail",
    "get_items_needing_enrichment",
    "get_positive_ratings",
    "get_rated_keys",
    "get_recent_ratings",
    "get_skipped_keys",
    "get_watchlist_keys",
    "record_skip",
    "upsert_catalog_item",
    "upsert_rating",
]
