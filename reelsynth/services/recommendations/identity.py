"""Deterministic identity for recommended titles.

Items coming back from the language models have no trustworthy id. A title
either gets a canonical id from the external catalog or a stable id hashed
from its normalized (title, year), so the same title always lands on the
same catalog row.
"""

import logging
from typing import Any, Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from reelsynth.constants import HASH_ID_MAX, HASH_ID_MIN, MAX_ITEM_ID
from reelsynth.models.catalog import CatalogItem, IdSource, MediaKind
from reelsynth.models.schemas import CandidateRecord
from reelsynth.services.metadata.tmdb import TMDBCatalogClient
from reelsynth.services.recommendations.taste_profile import normalize_title

logger = logging.getLogger(__name__)


def _string_hash32(value: str) -> int:
    """31-multiplier hash over UTF-16 code units, wrapped to a signed 32-bit int.

    Matches ``hash = ((hash << 5) - hash) + charCode | 0`` in JavaScript and
    ``String.hashCode`` in Java.
    """
    h = 0
    data = value.encode("utf-16-le")
    for i in range(0, len(data), 2):
        h = (h * 31 + (data[i] | data[i + 1] << 8)) & 0xFFFFFFFF
    return h - 0x100000000 if h & 0x80000000 else h


def assign_id(
    title: str,
    year: int | None,
    *,
    low: int = HASH_ID_MIN,
    high: int = HASH_ID_MAX,
) -> int:
    """Stable id in ``[low, high)`` for a (title, year) pair."""
    key = f"{title.strip().lower()}-{'' if year is None else year}"
    return abs(_string_hash32(key)) % (high - low) + low


def plausible_id(value: Any) -> int | None:
    """Return ``value`` as an int that fits a catalog id, or None."""
    if value is None or isinstance(value, bool):
        return None
    try:
        number = int(value)
    except (TypeError, ValueError):
        return None
    return number if 0 < number <= MAX_ITEM_ID else None


def same_title(item: CatalogItem, candidate: CandidateRecord) -> bool:
    """True when a stored item and a candidate name the same title.

    An unknown year on either side matches any year.
    """
    if normalize_title(item.title) != normalize_title(candidate.title):
        return False
    return item.year is None or candidate.year is None or item.year == candidate.year


class IdentityAssigner(Protocol):
    """Decides the catalog id of a candidate."""

    @property
    def uses_external_catalog(self) -> bool: ...

    async def assign(self, candidate: CandidateRecord, kind: MediaKind) -> tuple[int, IdSource]: ...


class HashIdentityAssigner:
    """Keep a plausible model-supplied id, otherwise hash (title, year).

    With a session, a model-supplied id is only kept when no catalog row
    holds it yet or the row holding it is the same title. Models reuse
    example ids, so an id pointing at a different title is hashed instead.
    """

    uses_external_catalog = False

    def __init__(self, db: AsyncSession | None = None) -> None:
        self.db = db

    async def assign(self, candidate: CandidateRecord, kind: MediaKind) -> tuple[int, IdSource]:
        supplied = plausible_id(candidate.id)
        if supplied is not None and await self._id_is_free(supplied, candidate):
            return supplied, IdSource.LLM
        return assign_id(candidate.title, candidate.year), IdSource.HASH

    async def _id_is_free(self, item_id: int, candidate: CandidateRecord) -> bool:
        if self.db is None:
            return True
        existing = await self.db.get(CatalogItem, item_id)
        if existing is None or same_title(existing, candidate):
            return True
        logger.warning(
            f"Model id {item_id} for {candidate.title} ({candidate.year}) "
            f"already belongs to {existing.title} ({existing.year}), hashing"
        )
        return False


class CatalogIdentityAssigner:
    """Prefer the external catalog's id; fall back to the hash assigner."""

    def __init__(
        self,
        catalog: TMDBCatalogClient,
        fallback: HashIdentityAssigner | None = None,
    ) -> None:
        self.catalog = catalog
        self.fallback = fallback or HashIdentityAssigner()

    @property
    def uses_external_catalog(self) -> bool:
        return self.catalog.is_configured

    async def assign(self, candidate: CandidateRecord, kind: MediaKind) -> tuple[int, IdSource]:
        if self.catalog.is_configured:
            match = await self.catalog.best_match(candidate.title, candidate.year, kind)
            if match is not None:
                return int(match["id"]), IdSource.CATALOG
            logger.debug(f"No catalog match for {candidate.title} ({candidate.year}), hashing")
        return await self.fallback.assign(candidate, kind)
