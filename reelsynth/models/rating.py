"""Rating, watchlist and skip models read by the taste profile builder."""

import enum
from typing import TYPE_CHECKING

from sqlalchemy import Enum, ForeignKey, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from reelsynth.models.base import Base, TimestampMixin
from reelsynth.models.catalog import MediaKind

if TYPE_CHECKING:
    from reelsynth.models.user import User


class RatingValue(str, enum.Enum):
    """How a user rated a title."""

    AMAZING = "amazing"
    GOOD = "good"
    MEH = "meh"
    AWFUL = "awful"
    NOT_SEEN = "not-seen"
    NOT_INTERESTED = "not-interested"


POSITIVE_RATINGS = (RatingValue.AMAZING, RatingValue.GOOD)


class Rating(Base, TimestampMixin):
    """One rating per (user, kind, item); later writes overwrite."""

    __tablename__ = "ratings"

    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), index=True)
    kind: Mapped[MediaKind] = mapped_column(Enum(MediaKind), nullable=False, default=MediaKind.MOVIE)
    item_id: Mapped[int] = mapped_column(Integer, nullable=False)
    item_title: Mapped[str] = mapped_column(String(500), nullable=False)
    item_year: Mapped[int | None] = mapped_column(Integer, nullable=True)
    value: Mapped[RatingValue] = mapped_column(Enum(RatingValue), nullable=False)

    user: Mapped["User"] = relationship("User", back_populates="ratings")

    __table_args__ = (
        UniqueConstraint("user_id", "kind", "item_id", name="uq_rating_user_kind_item"),
        Index("ix_rating_user_kind_created", "user_id", "kind", "created_at"),
    )

    @property
    def label(self) -> str:
        """Prompt form: ``"Title (Year)"``."""
        return f"{self.item_title} ({self.item_year or ''})"

    def __repr__(self) -> str:
        return f"<Rating(user_id={self.user_id}, item={self.item_title}, value={self.value.value})>"


class WatchlistEntry(Base, TimestampMixin):
    """Title the user saved to watch later."""

    __tablename__ = "watchlist_entries"

    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), index=True)
    kind: Mapped[MediaKind] = mapped_column(Enum(MediaKind), nullable=False, default=MediaKind.MOVIE)
    item_id: Mapped[int] = mapped_column(Integer, nullable=False)
    item_title: Mapped[str] = mapped_column(String(500), nullable=False)
    item_year: Mapped[int | None] = mapped_column(Integer, nullable=True)

    __table_args__ = (
        UniqueConstraint("user_id", "kind", "item_id", name="uq_watchlist_user_kind_item"),
    )


class SkippedItem(Base, TimestampMixin):
    """Title the user explicitly passed on."""

    __tablename__ = "skipped_items"

    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), index=True)
    kind: Mapped[MediaKind] = mapped_column(Enum(MediaKind), nullable=False, default=MediaKind.MOVIE)
    item_id: Mapped[int] = mapped_column(Integer, nullable=False)
    item_title: Mapped[str] = mapped_column(String(500), nullable=False)
    item_year: Mapped[int | None] = mapped_column(Integer, nullable=True)

    __table_args__ = (
        UniqueConstraint("user_id", "kind", "item_id", name="uq_skipped_user_kind_item"),
    )
