"""Recommendation batches and the shown/rated delivery records."""

import enum
import uuid
from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import DateTime, Enum, Float, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from reelsynth.models.base import Base, TimestampMixin, utcnow
from reelsynth.models.catalog import CatalogItem, MediaKind

if TYPE_CHECKING:
    from reelsynth.models.user import User


def new_batch_id() -> str:
    return str(uuid.uuid4())


class RecommendationState(str, enum.Enum):
    """Delivery state. Transitions only forward: Unshown -> Shown -> Rated."""

    UNSHOWN = "unshown"
    SHOWN = "shown"
    RATED = "rated"


class RecommendationBatch(Base):
    """One synthesis run for a user."""

    __tablename__ = "recommendation_batches"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_batch_id)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), index=True)
    kind: Mapped[MediaKind] = mapped_column(Enum(MediaKind), nullable=False, default=MediaKind.MOVIE)
    generated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    requested_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    records: Mapped[list["RecommendationRecord"]] = relationship(
        "RecommendationRecord", back_populates="batch", lazy="select"
    )

    def __repr__(self) -> str:
        return f"<RecommendationBatch(id={self.id}, user_id={self.user_id}, kind={self.kind.value})>"


class RecommendationRecord(Base, TimestampMixin):
    """A single recommended item within a batch.

    ``shown`` and ``rated`` are only ever flipped to True; ``state`` derives the
    queue position from them.
    """

    __tablename__ = "recommendation_records"

    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), index=True)
    item_id: Mapped[int] = mapped_column(ForeignKey("catalog_items.id"), nullable=False)
    batch_id: Mapped[str] = mapped_column(ForeignKey("recommendation_batches.id", ondelete="CASCADE"))
    position: Mapped[int] = mapped_column(Integer, nullable=False)  # 1..N within the batch
    reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    match_percentage: Mapped[float | None] = mapped_column(Float, nullable=True)  # 0-100, advisory

    shown: Mapped[bool] = mapped_column(default=False, nullable=False)
    rated: Mapped[bool] = mapped_column(default=False, nullable=False)

    # Relationships
    user: Mapped["User"] = relationship("User", back_populates="recommendations")
    batch: Mapped[RecommendationBatch] = relationship(RecommendationBatch, back_populates="records")
    item: Mapped[CatalogItem] = relationship(CatalogItem, lazy="select")

    __table_args__ = (
        Index("ix_recommendation_user_shown", "user_id", "shown"),
        Index("ix_recommendation_user_item", "user_id", "item_id"),
        Index("ix_recommendation_batch_position", "batch_id", "position"),
    )

    @property
    def state(self) -> RecommendationState:
        if self.rated:
            return RecommendationState.RATED
        if self.shown:
            return RecommendationState.SHOWN
        return RecommendationState.UNSHOWN

    def __repr__(self) -> str:
        return (
            f"<RecommendationRecord(id={self.id}, item_id={self.item_id}, "
            f"position={self.position}, state={self.state.value})>"
        )
