"""Preference vectors for similarity retrieval."""

from typing import TYPE_CHECKING

from pgvector.sqlalchemy import Vector
from sqlalchemy import Float, ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from reelsynth.constants import EMBEDDING_DIMENSION
from reelsynth.models.base import Base, TimestampMixin

if TYPE_CHECKING:
    from reelsynth.models.user import User


class PreferenceVector(Base, TimestampMixin):
    """A typed user preference ("genre: slow-burn horror") and its embedding."""

    __tablename__ = "preference_vectors"

    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), index=True)
    preference_type: Mapped[str] = mapped_column(String(50), nullable=False)  # genre, actor, director, ...
    value: Mapped[str] = mapped_column(String(500), nullable=False)
    strength: Mapped[float] = mapped_column(Float, nullable=False, default=1.0)  # 0.0-1.0
    embedding: Mapped[list[float]] = mapped_column(Vector(EMBEDDING_DIMENSION), nullable=False)

    user: Mapped["User"] = relationship("User", back_populates="preferences")

    __table_args__ = (
        UniqueConstraint("user_id", "preference_type", "value", name="uq_preference_user_type_value"),
    )

    @property
    def embedding_text(self) -> str:
        return f"{self.preference_type}: {self.value}"

    def __repr__(self) -> str:
        return f"<PreferenceVector(user_id={self.user_id}, {self.embedding_text}, strength={self.strength})>"
