"""Pydantic schemas for LLM payload validation and API serialization."""

import re
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from reelsynth.exceptions import PerCandidateStorageFailure
from reelsynth.models.catalog import IdSource, MediaKind
from reelsynth.models.rating import RatingValue
from reelsynth.models.recommendation import RecommendationState

_YEAR_RE = re.compile(r"(\d{4})")
_MISSING = {"", "n/a", "na", "none", "null", "unknown", "-"}


def _blank_to_none(v: Any) -> Any:
    """Treat the placeholder strings LLMs emit for unknown values as None."""
    if isinstance(v, str) and v.strip().lower() in _MISSING:
        return None
    return v


# Synthesis request
class RecommendationFilters(BaseModel):
    """Filters for one synthesis run."""

    kind: MediaKind = MediaKind.MOVIE
    count: int = Field(default=10, ge=1, le=50)
    year_from: int | None = Field(default=None, ge=1870, le=2100)
    year_to: int | None = Field(default=None, ge=1870, le=2100)
    genres: list[str] = Field(default_factory=list)
    languages: list[str] = Field(default_factory=list)
    min_critic_rating: float | None = Field(default=None, ge=0, le=10)  # IMDb scale
    min_box_office: float | None = Field(default=None, ge=0)  # millions USD
    max_budget: float | None = Field(default=None, ge=0)  # millions USD

    @model_validator(mode="after")
    def check_year_range(self) -> "RecommendationFilters":
        if self.year_from and self.year_to and self.year_from > self.year_to:
            raise ValueError("year_from must not be after year_to")
        return self


# Refinement output
class CandidateRecord(BaseModel):
    """One recommendation as emitted by the refinement model.

    Field names follow the camelCase JSON contract given to the model.
    Only ``title`` is required; everything else degrades to None.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: int | None = None
    title: str = Field(min_length=1)
    original_title: str | None = Field(default=None, alias="originalTitle")
    overview: str | None = None
    poster_path: str | None = Field(default=None, alias="posterPath")
    backdrop_path: str | None = Field(default=None, alias="backdropPath")
    release_date: str | None = Field(default=None, alias="releaseDate")
    year: int | None = None
    vote_average: float | None = Field(default=None, alias="voteAverage")
    vote_count: int | None = Field(default=None, alias="voteCount")
    popularity: float | None = None
    language: str | None = None
    genres: list[str] = Field(default_factory=list)
    runtime: int | None = None
    tagline: str | None = None
    critic_rating: float | None = Field(default=None, alias="imdbRating")
    rt_rating: float | None = Field(default=None, alias="rtRating")
    reason: str | None = None
    match_percentage: float | None = Field(default=None, alias="matchPercentage")

    @field_validator("title")
    @classmethod
    def strip_title(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("title must not be blank")
        return v

    @field_validator("id", mode="before")
    @classmethod
    def coerce_id(cls, v: Any) -> int | None:
        """Non-numeric or non-positive ids are treated as absent."""
        v = _blank_to_none(v)
        if v is None or isinstance(v, bool):
            return None
        try:
            value = int(str(v).strip())
        except ValueError:
            return None
        return value if value > 0 else None

    @field_validator("year", mode="before")
    @classmethod
    def coerce_year(cls, v: Any) -> int | None:
        v = _blank_to_none(v)
        if v is None or isinstance(v, int):
            return v
        match = _YEAR_RE.search(str(v))
        return int(match.group(1)) if match else None

    @field_validator(
        "original_title",
        "overview",
        "poster_path",
        "backdrop_path",
        "release_date",
        "vote_average",
        "vote_count",
        "popularity",
        "language",
        "runtime",
        "tagline",
        "critic_rating",
        "rt_rating",
        "reason",
        mode="before",
    )
    @classmethod
    def blank_to_none(cls, v: Any) -> Any:
        return _blank_to_none(v)

    @field_validator("rt_rating", mode="before")
    @classmethod
    def strip_percent(cls, v: Any) -> Any:
        if isinstance(v, str):
            return v.strip().rstrip("%") or None
        return v

    @field_validator("genres", mode="before")
    @classmethod
    def coerce_genres(cls, v: Any) -> list[str]:
        if v is None:
            return []
        if isinstance(v, str):
            return [g.strip() for g in v.split(",") if g.strip()]
        return v

    @field_validator("match_percentage", mode="before")
    @classmethod
    def clamp_match(cls, v: Any) -> float | None:
        """Advisory only: clamp to 0-100, never recompute."""
        v = _blank_to_none(v)
        if v is None:
            return None
        if isinstance(v, str):
            v = v.strip().rstrip("%")
        return max(0.0, min(100.0, float(v)))


# Synthesis result
class StoredRecommendation(BaseModel):
    """A candidate that was persisted into the delivery queue."""

    position: int
    item_id: int
    id_source: IdSource
    title: str
    year: int | None = None
    match_percentage: float | None = None
    reason: str | None = None


class BatchResult(BaseModel):
    """Outcome of one synthesis run.

    ``successfully_stored + failed == total_requested`` always holds.
    """

    batch_id: str
    kind: MediaKind
    total_requested: int
    successfully_stored: int
    failed: int
    records: list[StoredRecommendation] = Field(default_factory=list)
    failures: list[PerCandidateStorageFailure] = Field(default_factory=list)
    excluded: list[str] = Field(default_factory=list)  # "Title (Year)" rejected before storage


# Delivery queue
class CatalogItemRead(BaseModel):
    """Catalog item as returned by the API."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    kind: MediaKind
    id_source: IdSource
    title: str
    original_title: str | None = None
    overview: str | None = None
    poster_path: str | None = None
    backdrop_path: str | None = None
    release_date: str | None = None
    year: int | None = None
    vote_average: float | None = None
    vote_count: int | None = None
    popularity: float | None = None
    language: str | None = None
    genres: list[str] | None = None
    runtime: int | None = None
    tagline: str | None = None
    rt_rating: float | None = None
    critic_rating: float | None = None
    voter_count: int | None = None
    review_summary: str | None = None
    budget: int | None = None
    box_office: int | None = None
    enriched_at: datetime | None = None


class DeliveredItem(BaseModel):
    """A recommendation handed to the user, hydrated with its catalog item."""

    record_id: int
    batch_id: str
    position: int
    reason: str | None = None
    match_percentage: float | None = None
    state: RecommendationState
    item: CatalogItemRead


class QueueStatus(BaseModel):
    """Independent counts over a user's delivery queue."""

    total: int
    unshown: int
    shown: int
    rated: int
    available: int  # unshown + shown


class MarkRatedRequest(BaseModel):
    item_id: int


class MarkRatedResponse(BaseModel):
    item_id: int
    updated: int


# Ratings
class RatingCreate(BaseModel):
    """Rating write from the client; also moves queued records to Rated."""

    item_id: int = Field(gt=0)
    kind: MediaKind = MediaKind.MOVIE
    title: str = Field(min_length=1, max_length=500)
    year: int | None = None
    value: RatingValue


class RatingRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    item_id: int
    kind: MediaKind
    item_title: str
    item_year: int | None = None
    value: RatingValue
    updated_at: datetime


# Preferences
class PreferenceCreate(BaseModel):
    preference_type: str = Field(min_length=1, max_length=50)
    value: str = Field(min_length=1, max_length=500)
    strength: float = Field(default=1.0, ge=0.0, le=1.0)


class PreferenceRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    preference_type: str
    value: str
    strength: float


class PreferenceMatch(BaseModel):
    """A stored preference ranked against a query."""

    id: int
    preference_type: str
    value: str
    strength: float
    similarity: float


class ExtractedPreference(BaseModel):
    """One preference as returned by the analysis model."""

    model_config = ConfigDict(extra="ignore")

    type: str
    value: str = Field(min_length=1)
    strength: float = Field(default=0.5, ge=0.0, le=1.0)

    @field_validator("type")
    @classmethod
    def normalize_type(cls, v: str) -> str:
        return v.strip().lower()

    @field_validator("strength", mode="before")
    @classmethod
    def clamp_strength(cls, v: Any) -> float:
        if v is None:
            return 0.5
        return max(0.0, min(1.0, float(v)))


class PreferenceAnalysis(BaseModel):
    """Result of extracting preferences from a user's positive ratings."""

    analyzed_ratings: int
    extracted: int
    stored: int
    failed: int
    preferences: list[ExtractedPreference] = Field(default_factory=list)


# Enrichment
class EnrichmentPayload(BaseModel):
    """Facts returned by the enrichment model; every field optional.

    The model answers in two groups::

        {"imdb": {"rating", "rating_count", "genres", "user_reviews_ai_summary"},
         "financials": {"budget", "box_office_worldwide"}}
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    critic_rating: float | None = Field(default=None, alias="rating")
    voter_count: int | None = Field(default=None, alias="rating_count")
    review_summary: str | None = Field(default=None, alias="user_reviews_ai_summary")
    genres: list[str] | None = None
    budget: int | None = None
    box_office: int | None = Field(default=None, alias="box_office_worldwide")

    @model_validator(mode="before")
    @classmethod
    def flatten_groups(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        flat = {k: v for k, v in data.items() if k not in ("imdb", "financials")}
        for group in ("imdb", "financials"):
            section = data.get(group)
            if isinstance(section, dict):
                flat.update(section)
        return flat

    @field_validator("critic_rating", "review_summary", mode="before")
    @classmethod
    def blank_to_none(cls, v: Any) -> Any:
        return _blank_to_none(v)

    @field_validator("voter_count", "budget", "box_office", mode="before")
    @classmethod
    def parse_amount(cls, v: Any) -> int | None:
        """Accept ``1,234,567`` or ``"$150000000"`` style numbers."""
        v = _blank_to_none(v)
        if v is None or isinstance(v, int):
            return v
        if isinstance(v, float):
            return int(v)
        digits = re.sub(r"[^\d.]", "", str(v))
        return int(float(digits)) if digits else None

    @field_validator("genres", mode="before")
    @classmethod
    def coerce_genres(cls, v: Any) -> list[str] | None:
        if isinstance(v, str):
            return [g.strip() for g in v.split(",") if g.strip()] or None
        return v or None
