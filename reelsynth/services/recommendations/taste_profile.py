"""Taste profile: what the user loved, disliked and must never be shown again."""

import logging
from dataclasses import dataclass, field

from sqlalchemy.ext.asyncio import AsyncSession

from reelsynth.constants import (
    PROMPT_LIMIT_AMAZING,
    PROMPT_LIMIT_AWFUL,
    PROMPT_LIMIT_EXCLUSIONS,
    PROMPT_LIMIT_GOOD,
    PROMPT_LIMIT_MEH,
    PROMPT_LIMIT_NOT_SEEN,
)
from reelsynth.db.crud.ratings import (
    count_ratings,
    get_rated_keys,
    get_recent_ratings,
    get_skipped_keys,
    get_watchlist_keys,
)
from reelsynth.exceptions import InsufficientDataError, UserNotFoundError
from reelsynth.models.catalog import MediaKind
from reelsynth.models.rating import RatingValue
from reelsynth.models.user import User

logger = logging.getLogger(__name__)

TitleKey = tuple[str, int | None]


def normalize_title(title: str) -> str:
    """Case- and whitespace-insensitive form used for exclusion matching."""
    return " ".join(title.strip().lower().split())


def title_label(title: str, year: int | None) -> str:
    return f"{title} ({year or ''})"


@dataclass
class TasteProfile:
    """Snapshot of a user's ratings for one media kind.

    The five rating lists hold ``"Title (Year)"`` strings, newest first.
    ``exclusion_set`` covers every rated, watchlisted or skipped title,
    uncapped. A key with an unknown year excludes that title in any year.
    """

    user_id: int
    kind: MediaKind
    total_ratings: int
    amazing: list[str] = field(default_factory=list)
    good: list[str] = field(default_factory=list)
    meh: list[str] = field(default_factory=list)
    awful: list[str] = field(default_factory=list)
    not_seen: list[str] = field(default_factory=list)
    not_interested: list[str] = field(default_factory=list)
    languages: list[str] = field(default_factory=list)
    genre_preferences: list[str] = field(default_factory=list)
    instructions: str | None = None
    exclusion_set: frozenset[TitleKey] = frozenset()
    exclusion_labels: list[str] = field(default_factory=list)
    preference_context: list[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        self._any_year_titles = frozenset(title for title, year in self.exclusion_set if year is None)
        self._all_titles = frozenset(title for title, _ in self.exclusion_set)

    def excludes(self, title: str, year: int | None) -> bool:
        """True if (title, year) must not be recommended."""
        normalized = normalize_title(title)
        if year is None:
            return normalized in self._all_titles
        return (normalized, year) in self.exclusion_set or normalized in self._any_year_titles

    def rating_profile_text(self) -> str:
        """Prompt block describing the user's taste."""
        noun = self.kind.plural.upper()

        def block(items: list[str], limit: int) -> str:
            return "\n".join(items[:limit]) or "None yet"

        sections = [
            f"{noun} THEY LOVED (Amazing):\n{block(self.amazing, PROMPT_LIMIT_AMAZING)}",
            f"{noun} THEY ENJOYED (Good):\n{block(self.good, PROMPT_LIMIT_GOOD)}",
            f"{noun} THEY FOUND MEDIOCRE (Meh):\n{block(self.meh, PROMPT_LIMIT_MEH)}",
            f"{noun} THEY DISLIKED (Awful - AVOID similar):\n{block(self.awful, PROMPT_LIMIT_AWFUL)}",
            f"{noun} THEY'RE AWARE OF (Not Seen):\n{block(self.not_seen, PROMPT_LIMIT_NOT_SEEN)}",
        ]
        if self.genre_preferences:
            sections.append(f"Favourite genres: {', '.join(self.genre_preferences)}")
        if self.preference_context:
            sections.append("Learned preferences:\n" + "\n".join(self.preference_context))
        if self.instructions:
            sections.append(f"Additional instructions from the user:\n{self.instructions}")
        return "\n\n".join(sections)

    def exclusion_text(self, limit: int = PROMPT_LIMIT_EXCLUSIONS) -> str:
        return "\n".join(self.exclusion_labels[:limit]) or "None"


async def build_taste_profile(
    db: AsyncSession,
    user_id: int,
    kind: MediaKind = MediaKind.MOVIE,
    *,
    rating_limit: int = 100,
    min_ratings: int = 3,
) -> TasteProfile:
    """Read the user's ratings, watchlist and skips into a TasteProfile.

    Raises:
        UserNotFoundError: Unknown user id
        InsufficientDataError: Fewer than ``min_ratings`` ratings of this kind
    """
    user = await db.get(User, user_id)
    if user is None:
        raise UserNotFoundError(user_id)

    total = await count_ratings(db, user_id, kind)
    if total < min_ratings:
        raise InsufficientDataError(current=total, required=min_ratings)

    buckets: dict[RatingValue, list[str]] = {value: [] for value in RatingValue}
    for rating in await get_recent_ratings(db, user_id, kind, rating_limit):
        buckets[rating.value].append(rating.label)

    keys: set[TitleKey] = set()
    labels: list[str] = []
    for source in (get_rated_keys, get_watchlist_keys, get_skipped_keys):
        for title, year in await source(db, user_id, kind):
            key = (normalize_title(title), year)
            if key not in keys:
                keys.add(key)
                labels.append(title_label(title, year))

    profile = TasteProfile(
        user_id=user_id,
        kind=kind,
        total_ratings=total,
        amazing=buckets[RatingValue.AMAZING],
        good=buckets[RatingValue.GOOD],
        meh=buckets[RatingValue.MEH],
        awful=buckets[RatingValue.AWFUL],
        not_seen=buckets[RatingValue.NOT_SEEN],
        not_interested=buckets[RatingValue.NOT_INTERESTED],
        languages=user.get_languages(),
        genre_preferences=user.get_genre_prefs(),
        instructions=user.get_free_text_instructions(),
        exclusion_set=frozenset(keys),
        exclusion_labels=labels,
    )

    logger.info(
        f"Taste profile for user {user_id} ({kind.value}): "
        f"{len(profile.amazing)} amazing, {len(profile.good)} good, {len(profile.meh)} meh, "
        f"{len(profile.awful)} awful, {len(profile.not_seen)} not-seen, "
        f"{len(profile.exclusion_set)} excluded"
    )
    return profile
