"""User model."""

from typing import TYPE_CHECKING

from sqlalchemy import JSON, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from reelsynth.models.base import Base, TimestampMixin

if TYPE_CHECKING:
    from reelsynth.models.preference import PreferenceVector
    from reelsynth.models.rating import Rating
    from reelsynth.models.recommendation import RecommendationRecord


class User(Base, TimestampMixin):
    """User and the profile preferences the recommendation prompts read."""

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(primary_key=True)
    username: Mapped[str] = mapped_column(String(255), unique=True, index=True)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)

    # Profile preferences
    languages: Mapped[list] = mapped_column(JSON, default=list)  # e.g. ["English", "Korean"]
    genre_preferences: Mapped[list] = mapped_column(JSON, default=list)
    ai_instructions: Mapped[str | None] = mapped_column(Text, nullable=True)  # Free-text prompt additions

    # Relationships
    # lazy="select" so that loading a user never pulls every rating along
    ratings: Mapped[list["Rating"]] = relationship(
        "Rating",
        back_populates="user",
        cascade="all, delete-orphan",
        lazy="select",
    )
    recommendations: Mapped[list["RecommendationRecord"]] = relationship(
        "RecommendationRecord",
        back_populates="user",
        cascade="all, delete-orphan",
        lazy="select",
    )
    preferences: Mapped[list["PreferenceVector"]] = relationship(
        "PreferenceVector",
        back_populates="user",
        cascade="all, delete-orphan",
        lazy="select",
    )

    def get_languages(self) -> list[str]:
        return list(self.languages or [])

    def get_genre_prefs(self) -> list[str]:
        return list(self.genre_preferences or [])

    def get_free_text_instructions(self) -> str | None:
        instructions = (self.ai_instructions or "").strip()
        return instructions or None

    def __repr__(self) -> str:
        return f"<User(id={self.id}, username={self.username})>"
