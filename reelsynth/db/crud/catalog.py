"""CRUD operations for the metadata catalog."""

from collections.abc import Sequence
from typing import TYPE_CHECKING

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from reelsynth.models.catalog import CatalogItem, IdSource, MediaKind
from reelsynth.models.schemas import CandidateRecord

if TYPE_CHECKING:
    from reelsynth.services.metadata.enrichment import MetadataEnricher

# Columns copied from a candidate on every upsert (when the candidate has a value)
_DESCRIPTIVE_FIELDS = (
    "title",
    "original_title",
    "overview",
    "poster_path",
    "backdrop_path",
    "release_date",
    "year",
    "vote_average",
    "vote_count",
    "popularity",
    "language",
    "runtime",
    "tagline",
    "rt_rating",
)


async def get_catalog_item(db: AsyncSession, item_id: int) -> CatalogItem | None:
    """Get a catalog item by id."""
    return await db.get(CatalogItem, item_id)


async def upsert_catalog_item(
    db: AsyncSession,
    item_id: int,
    candidate: CandidateRecord,
    kind: MediaKind,
    id_source: IdSource,
) -> CatalogItem:
    """Insert or update a catalog item keyed by id.

    Descriptive fields take the candidate's non-null values. Enrichment
    fields are only filled when still empty. Flushes, does not commit.
    """
    item = await db.get(CatalogItem, item_id)
    if item is None:
        item = CatalogItem(id=item_id, kind=kind, id_source=id_source, title=candidate.title)
        db.add(item)
    elif item.id_source is not IdSource.CATALOG:
        item.id_source = id_source

    for field in _DESCRIPTIVE_FIELDS:
        value = getattr(candidate, field)
        if value is not None:
            setattr(item, field, value)

    if candidate.genres:
        item.genres = list(candidate.genres)
    if item.critic_rating is None and candidate.critic_rating is not None:
        item.critic_rating = candidate.critic_rating

    await db.flush()
    return item


async def get_item_detail(
    db: AsyncSession,
    item_id: int,
    enricher: "MetadataEnricher | None" = None,
) -> CatalogItem | None:
    """Get a catalog item for display, enriching missing metadata lazily."""
    item = await db.get(CatalogItem, item_id)
    if item is None or enricher is None:
        return item
    return await enricher.enrich(item)


async def get_items_needing_enrichment(
    db: AsyncSession,
    limit: int = 100,
) -> Sequence[CatalogItem]:
    """Catalog items with at least one enrichment field still null.

    Empty genre lists are caught by ``needs_enrichment`` at enrichment time.
    """
    result = await db.execute(
        select(CatalogItem)
        .where(
            or_(
                CatalogItem.critic_rating.is_(None),
                CatalogItem.voter_count.is_(None),
                CatalogItem.review_summary.is_(None),
                CatalogItem.genres.is_(None),
            )
        )
        .order_by(CatalogItem.created_at.desc())
        .limit(limit)
    )
    return result.scalars().all()
