"""CRUD operations for ratings, watchlist and skipped items."""

from collections.abc import Sequence

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from reelsynth.models.catalog import MediaKind
from reelsynth.models.rating import (
    POSITIVE_RATINGS,
    Rating,
    SkippedItem,
    WatchlistEntry,
)
from reelsynth.models.schemas import RatingCreate

TitleKey = tuple[str, int | None]


async def upsert_rating(db: AsyncSession, user_id: int, data: RatingCreate) -> Rating:
    """Create or overwrite the user's rating for an item."""
    result = await db.execute(
        select(Rating).where(
            Rating.user_id == user_id,
            Rating.kind == data.kind,
            Rating.item_id == data.item_id,
        )
    )
    rating = result.scalar_one_or_none()

    if rating is None:
        rating = Rating(
            user_id=user_id,
            kind=data.kind,
            item_id=data.item_id,
            item_title=data.title,
            item_year=data.year,
            value=data.value,
        )
        db.add(rating)
    else:
        rating.item_title = data.title
        rating.item_year = data.year
        rating.value = data.value

    await db.commit()
    await db.refresh(rating)
    return rating


async def count_ratings(db: AsyncSession, user_id: int, kind: MediaKind) -> int:
    result = await db.execute(
        select(func.count(Rating.id)).where(Rating.user_id == user_id, Rating.kind == kind)
    )
    return result.scalar_one()


async def get_recent_ratings(
    db: AsyncSession,
    user_id: int,
    kind: MediaKind,
    limit: int,
) -> Sequence[Rating]:
    """Ratings newest first, capped at ``limit``."""
    result = await db.execute(
        select(Rating)
        .where(Rating.user_id == user_id, Rating.kind == kind)
        .order_by(Rating.created_at.desc(), Rating.id.desc())
        .limit(limit)
    )
    return result.scalars().all()


async def get_positive_ratings(
    db: AsyncSession,
    user_id: int,
    limit: int,
) -> Sequence[Rating]:
    """Most recent amazing/good ratings across both kinds."""
    result = await db.execute(
        select(Rating)
        .where(Rating.user_id == user_id, Rating.value.in_(POSITIVE_RATINGS))
        .order_by(Rating.created_at.desc(), Rating.id.desc())
        .limit(limit)
    )
    return result.scalars().all()


async def get_rated_keys(db: AsyncSession, user_id: int, kind: MediaKind) -> list[TitleKey]:
    """(title, year) of every rated item, uncapped and regardless of value."""
    result = await db.execute(
        select(Rating.item_title, Rating.item_year).where(
            Rating.user_id == user_id, Rating.kind == kind
        )
    )
    return [(title, year) for title, year in result.all()]


async def get_watchlist_keys(db: AsyncSession, user_id: int, kind: MediaKind) -> list[TitleKey]:
    result = await db.execute(
        select(WatchlistEntry.item_title, WatchlistEntry.item_year).where(
            WatchlistEntry.user_id == user_id, WatchlistEntry.kind == kind
        )
    )
    return [(title, year) for title, year in result.all()]


async def get_skipped_keys(db: AsyncSession, user_id: int, kind: MediaKind) -> list[TitleKey]:
    result = await db.execute(
        select(SkippedItem.item_title, SkippedItem.item_year).where(
            SkippedItem.user_id == user_id, SkippedItem.kind == kind
        )
    )
    return [(title, year) for title, year in result.all()]


async def add_to_watchlist(
    db: AsyncSession,
    user_id: int,
    item_id: int,
    title: str,
    year: int | None = None,
    kind: MediaKind = MediaKind.MOVIE,
) -> WatchlistEntry:
    """Add an item to the user's watchlist (no-op if already there)."""
    result = await db.execute(
        select(WatchlistEntry).where(
            WatchlistEntry.user_id == user_id,
            WatchlistEntry.kind == kind,
            WatchlistEntry.item_id == item_id,
        )
    )
    entry = result.scalar_one_or_none()
    if entry is None:
        entry = WatchlistEntry(
            user_id=user_id, kind=kind, item_id=item_id, item_title=title, item_year=year
        )
        db.add(entry)
        await db.commit()
        await db.refresh(entry)
    return entry


async def record_skip(
    db: AsyncSession,
    user_id: int,
    item_id: int,
    title: str,
    year: int | None = None,
    kind: MediaKind = MediaKind.MOVIE,
) -> SkippedItem:
    """Record that the user passed on an item (no-op if already recorded)."""
    result = await db.execute(
        select(SkippedItem).where(
            SkippedItem.user_id == user_id,
            SkippedItem.kind == kind,
            SkippedItem.item_id == item_id,
        )
    )
    skipped = result.scalar_one_or_none()
    if skipped is None:
        skipped = SkippedItem(
            user_id=user_id, kind=kind, item_id=item_id, item_title=title, item_year=year
        )
        db.add(skipped)
        await db.commit()
        await db.refresh(skipped)
    return skipped
