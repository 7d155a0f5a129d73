"""Catalog item model (movies and TV shows)."""

import enum
from datetime import datetime

from sqlalchemy import JSON, BigInteger, DateTime, Enum, Float, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from reelsynth.models.base import Base, TimestampMixin


class MediaKind(str, enum.Enum):
    """Kind of catalog item."""

    MOVIE = "movie"
    TV = "tv"

    @property
    def label(self) -> str:
        return "movie" if self is MediaKind.MOVIE else "TV show"

    @property
    def plural(self) -> str:
        return "movies" if self is MediaKind.MOVIE else "TV shows"


class IdSource(str, enum.Enum):
    """Where a catalog id came from."""

    CATALOG = "catalog"  # Issued by the external catalog (TMDB)
    LLM = "llm"  # Supplied by the refinement model and plausible
    HASH = "hash"  # Derived locally from (title, year)


class CatalogItem(Base, TimestampMixin):
    """Canonical movie / TV show record, keyed by numeric id."""

    __tablename__ = "catalog_items"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    kind: Mapped[MediaKind] = mapped_column(Enum(MediaKind), nullable=False, default=MediaKind.MOVIE)
    id_source: Mapped[IdSource] = mapped_column(Enum(IdSource), nullable=False, default=IdSource.HASH)

    # Basic info
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    original_title: Mapped[str | None] = mapped_column(String(500), nullable=True)
    overview: Mapped[str | None] = mapped_column(Text, nullable=True)
    poster_path: Mapped[str | None] = mapped_column(String(500), nullable=True)
    backdrop_path: Mapped[str | None] = mapped_column(String(500), nullable=True)
    release_date: Mapped[str | None] = mapped_column(String(20), nullable=True)  # YYYY-MM-DD
    year: Mapped[int | None] = mapped_column(Integer, nullable=True)
    vote_average: Mapped[float | None] = mapped_column(Float, nullable=True)
    vote_count: Mapped[int | None] = mapped_column(Integer, nullable=True)
    popularity: Mapped[float | None] = mapped_column(Float, nullable=True)
    language: Mapped[str | None] = mapped_column(String(10), nullable=True)  # ISO 639-1
    genres: Mapped[list | None] = mapped_column(JSON, nullable=True)
    runtime: Mapped[int | None] = mapped_column(Integer, nullable=True)  # minutes
    tagline: Mapped[str | None] = mapped_column(String(500), nullable=True)
    rt_rating: Mapped[float | None] = mapped_column(Float, nullable=True)  # Rotten Tomatoes 0-100

    # Enrichment fields (null until enriched)
    critic_rating: Mapped[float | None] = mapped_column(Float, nullable=True)  # IMDb 0-10
    voter_count: Mapped[int | None] = mapped_column(Integer, nullable=True)
    review_summary: Mapped[str | None] = mapped_column(Text, nullable=True)
    budget: Mapped[int | None] = mapped_column(BigInteger, nullable=True)  # USD
    box_office: Mapped[int | None] = mapped_column(BigInteger, nullable=True)  # USD worldwide
    enriched_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index("ix_catalog_title_year", "title", "year"),
    )

    @property
    def display_year(self) -> str:
        if self.year:
            return str(self.year)
        if self.release_date:
            return self.release_date[:4]
        return ""

    def __repr__(self) -> str:
        return f"<CatalogItem(id={self.id}, title={self.title}, year={self.year})>"
