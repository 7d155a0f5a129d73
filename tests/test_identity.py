"""Tests for deterministic identity assignment."""

from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from reelsynth.constants import HASH_ID_MAX, HASH_ID_MIN, MAX_ITEM_ID
from reelsynth.models.catalog import CatalogItem, IdSource, MediaKind
from reelsynth.models.schemas import CandidateRecord
from reelsynth.services.recommendations.identity import (
    CatalogIdentityAssigner,
    HashIdentityAssigner,
    _string_hash32,
    assign_id,
    plausible_id,
)


def stub_catalog(match: dict | None, configured: bool = True) -> SimpleNamespace:
    """Catalog lookup returning a fixed match."""
    return SimpleNamespace(is_configured=configured, best_match=AsyncMock(return_value=match))


class TestAssignId:
    """Tests for assign_id."""

    def test_known_values(self):
        """Ids match the 31-multiplier string hash folded into the id range."""
        assert assign_id("a", None) == 100_003_052
        assert assign_id("a", 2020) == 1_574_843_928

    def test_normalizes_title(self):
        assert assign_id("  The Matrix ", 1999) == assign_id("the matrix", 1999)
        assert assign_id("THE MATRIX", 1999) == assign_id("The Matrix", 1999)

    def test_year_is_part_of_identity(self):
        assert assign_id("Dune", 1984) != assign_id("Dune", 2021)

    def test_stable_across_calls(self):
        assert [assign_id("Parasite", 2019) for _ in range(3)] == [assign_id("Parasite", 2019)] * 3

    @pytest.mark.parametrize(
        "title,year",
        [
            ("Parasite", 2019),
            ("Oldboy", 2003),
            ("Amélie", 2001),
            ("千と千尋の神隠し", 2001),
            ("", None),
            ("x" * 500, 1950),
        ],
    )
    def test_within_range(self, title, year):
        assert HASH_ID_MIN <= assign_id(title, year) < HASH_ID_MAX

    def test_custom_range(self):
        assert 10 <= assign_id("Heat", 1995, low=10, high=20) < 20

    def test_hash_uses_utf16_code_units(self):
        assert _string_hash32("é") == 233
        # Astral characters count as a surrogate pair
        assert _string_hash32("\U0001F600") == 0xD83D * 31 + 0xDE00

    def test_hash_wraps_to_signed_32_bits(self):
        assert _string_hash32("a-2020") == -1_474_843_928


class TestPlausibleId:
    """Tests for plausible_id."""

    @pytest.mark.parametrize("value,expected", [(27205, 27205), ("496243", 496243), (0, None), (-3, None)])
    def test_values(self, value, expected):
        assert plausible_id(value) == expected

    @pytest.mark.parametrize("value", [None, True, "tt1375666", "", 2.5j])
    def test_rejects_non_ids(self, value):
        assert plausible_id(value) is None

    def test_id_must_fit_signed_32_bit_column(self):
        assert plausible_id(MAX_ITEM_ID) == 2_147_483_647
        assert plausible_id(MAX_ITEM_ID + 1) is None
        assert plausible_id(9_999_999_999) is None


class TestHashIdentityAssigner:
    """Tests for HashIdentityAssigner."""

    @pytest.mark.asyncio
    async def test_keeps_model_supplied_id(self):
        candidate = CandidateRecord(id=496243, title="Parasite", year=2019)

        item_id, source = await HashIdentityAssigner().assign(candidate, MediaKind.MOVIE)

        assert item_id == 496243
        assert source == IdSource.LLM

    @pytest.mark.asyncio
    async def test_hashes_when_id_missing(self):
        candidate = CandidateRecord(title="Parasite", year=2019)

        item_id, source = await HashIdentityAssigner().assign(candidate, MediaKind.MOVIE)

        assert item_id == assign_id("Parasite", 2019)
        assert source == IdSource.HASH

    @pytest.mark.asyncio
    async def test_negative_id_is_hashed(self):
        candidate = CandidateRecord.model_validate({"id": -1, "title": "Parasite", "year": 2019})

        item_id, source = await HashIdentityAssigner().assign(candidate, MediaKind.MOVIE)

        assert source == IdSource.HASH
        assert item_id == assign_id("Parasite", 2019)

    @pytest.mark.asyncio
    async def test_oversized_id_is_hashed(self):
        candidate = CandidateRecord(id=9_999_999_999, title="Parasite", year=2019)

        item_id, source = await HashIdentityAssigner().assign(candidate, MediaKind.MOVIE)

        assert (item_id, source) == (assign_id("Parasite", 2019), IdSource.HASH)

    @pytest.mark.asyncio
    async def test_id_held_by_other_title_is_hashed(self, db_session: AsyncSession):
        db_session.add(CatalogItem(id=496243, kind=MediaKind.MOVIE, id_source=IdSource.LLM, title="Mother", year=2009))
        await db_session.commit()
        candidate = CandidateRecord(id=496243, title="Parasite", year=2019)

        item_id, source = await HashIdentityAssigner(db_session).assign(candidate, MediaKind.MOVIE)

        assert (item_id, source) == (assign_id("Parasite", 2019), IdSource.HASH)

    @pytest.mark.asyncio
    async def test_id_held_by_same_title_is_kept(self, db_session: AsyncSession):
        db_session.add(CatalogItem(id=496243, kind=MediaKind.MOVIE, id_source=IdSource.LLM, title="Parasite", year=2019))
        await db_session.commit()
        candidate = CandidateRecord(id=496243, title="  parasite ", year=2019)

        item_id, source = await HashIdentityAssigner(db_session).assign(candidate, MediaKind.MOVIE)

        assert (item_id, source) == (496243, IdSource.LLM)

    def test_does_not_use_external_catalog(self):
        assert HashIdentityAssigner().uses_external_catalog is False


class TestCatalogIdentityAssigner:
    """Tests for CatalogIdentityAssigner."""

    @pytest.mark.asyncio
    async def test_prefers_catalog_match(self):
        catalog = stub_catalog({"id": 27205, "title": "Inception", "year": 2010})
        assigner = CatalogIdentityAssigner(catalog)

        item_id, source = await assigner.assign(
            CandidateRecord(id=1, title="Inception", year=2010), MediaKind.MOVIE
        )

        assert (item_id, source) == (27205, IdSource.CATALOG)
        catalog.best_match.assert_awaited_once_with("Inception", 2010, MediaKind.MOVIE)
        assert assigner.uses_external_catalog is True

    @pytest.mark.asyncio
    async def test_falls_back_to_hash_without_match(self):
        assigner = CatalogIdentityAssigner(stub_catalog(None))

        item_id, source = await assigner.assign(CandidateRecord(title="Obscure", year=2024), MediaKind.TV)

        assert (item_id, source) == (assign_id("Obscure", 2024), IdSource.HASH)

    @pytest.mark.asyncio
    async def test_unconfigured_catalog_is_not_called(self):
        catalog = stub_catalog({"id": 1}, configured=False)
        assigner = CatalogIdentityAssigner(catalog)

        _, source = await assigner.assign(CandidateRecord(title="Heat", year=1995), MediaKind.MOVIE)

        assert source == IdSource.HASH
        catalog.best_match.assert_not_awaited()
        assert assigner.uses_external_catalog is False
