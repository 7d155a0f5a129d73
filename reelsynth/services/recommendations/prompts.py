"""Prompt construction for the retrieval and refinement stages."""

from datetime import date

from reelsynth.constants import LANGUAGE_CODES, LANGUAGE_DESCRIPTIONS
from reelsynth.models.catalog import MediaKind
from reelsynth.models.schemas import RecommendationFilters
from reelsynth.services.recommendations.taste_profile import TasteProfile

RETRIEVAL_SYSTEM_PROMPT = (
    "You are a {label} search expert with access to real-time {label} databases. "
    "Provide accurate, current {label} information with detailed metadata."
)

CANDIDATE_SCHEMA_EXAMPLE = """{
  "recommendations": [
    {
      "id": 123456789,
      "title": "Title",
      "originalTitle": "Original Title (if different)",
      "overview": "Compelling 2-3 sentence plot summary",
      "posterPath": "/actual_tmdb_poster.jpg",
      "backdropPath": "/actual_tmdb_backdrop.jpg",
      "releaseDate": "YYYY-MM-DD",
      "year": 2023,
      "voteAverage": 8.2,
      "voteCount": 15000,
      "popularity": 85.5,
      "language": "en",
      "genres": ["Drama", "Thriller"],
      "runtime": 142,
      "tagline": "Tagline",
      "imdbRating": 8.1,
      "rtRating": 92,
      "reason": "Specific reason based on their ratings and taste",
      "matchPercentage": 94
    }
  ]
}"""


def describe_languages(languages: list[str]) -> str:
    """``["Hindi", "Korean"]`` -> ``"Bollywood/Hindi, Korean Cinema"``."""
    if not languages:
        return "Any"
    return ", ".join(LANGUAGE_DESCRIPTIONS.get(lang, lang) for lang in languages)


def selected_languages(profile: TasteProfile, filters: RecommendationFilters) -> list[str]:
    """Filter languages win over the user's profile languages."""
    return list(filters.languages) if filters.languages else list(profile.languages)


def year_range(filters: RecommendationFilters, today: date | None = None) -> tuple[int, int]:
    """Default to the last two years when no range is given."""
    current_year = (today or date.today()).year
    year_to = filters.year_to or current_year
    year_from = filters.year_from or min(current_year - 2, year_to)
    return year_from, year_to


def build_retrieval_prompt(
    profile: TasteProfile,
    filters: RecommendationFilters,
    today: date | None = None,
) -> tuple[str, str]:
    """System and user prompt for the search-augmented model."""
    label = filters.kind.label
    year_from, year_to = year_range(filters, today)
    languages = describe_languages(selected_languages(profile, filters))

    criteria = [
        f"- Release year: {year_from} to {year_to}",
        f"- Languages/Cinema: {languages}",
    ]
    if filters.genres:
        criteria.append(f"- Preferred genres: {', '.join(filters.genres)}")
    if filters.min_critic_rating:
        criteria.append(f"- Minimum IMDb rating: {filters.min_critic_rating}/10")
    if filters.min_box_office:
        criteria.append(f"- Minimum box office: ${filters.min_box_office:g}M worldwide")
    if filters.max_budget:
        criteria.append(f"- Maximum budget: ${filters.max_budget:g}M")

    runtime_line = "Runtime" if filters.kind is MediaKind.MOVIE else "Number of seasons and episode runtime"
    box_office_line = (
        "Box office performance" if filters.kind is MediaKind.MOVIE else "Network or streaming platform"
    )
    newline = "\n"

    user_prompt = f"""Find {filters.count} {filters.kind.label} recommendations for someone who:

{profile.rating_profile_text()}

DO NOT RECOMMEND ANY OF THESE (already rated, watchlisted or skipped):
{profile.exclusion_text()}

SEARCH CRITERIA:
{newline.join(criteria)}

For each {label}, provide:
1. Title (original and English if different)
2. Release year
3. IMDb rating and vote count
4. Rotten Tomatoes score (if available)
5. {runtime_line}
6. Languages
7. Genres
8. Plot summary (2-3 sentences)
9. Poster URL (from TMDB or IMDb)
10. {box_office_line}
11. Why this {label} would suit the user

Use current, up-to-date {label} information from {year_from}-{year_to}."""

    return RETRIEVAL_SYSTEM_PROMPT.format(label=label), user_prompt


def build_refinement_prompt(
    raw_text: str,
    profile: TasteProfile,
    filters: RecommendationFilters,
) -> tuple[str, str]:
    """System and user prompt for the structured-generation model."""
    count = filters.count
    noun = filters.kind.plural
    codes = ", ".join(f'{name}: "{code}"' for name, code in LANGUAGE_CODES.items())
    languages = describe_languages(selected_languages(profile, filters))

    system_prompt = f"""You are a taste analysis expert. You receive raw {filters.kind.label} data and apply personalized taste logic.

Your task: Transform the data into EXACTLY {count} structured JSON recommendations.

CRITICAL INSTRUCTIONS:
1. Return EXACTLY {count} recommendations
2. Apply the user's taste profile (loved {noun}, disliked {noun})
3. Prioritize {noun} similar to their AMAZING and GOOD ratings
4. AVOID {noun} similar to their AWFUL ratings
5. NEVER include a title from the user's exclusion list
6. Ensure all data is accurate and complete
7. Use proper TMDB poster paths in format: "/abc123xyz.jpg"
8. Use the real TMDB id when you know it, otherwise null

Language codes: {codes}

Return ONLY valid JSON with this EXACT schema:
{CANDIDATE_SCHEMA_EXAMPLE}"""

    user_prompt = f"""RAW DATA FROM SEARCH:
{raw_text}

USER'S TASTE PROFILE:
{profile.rating_profile_text()}

EXCLUSION LIST (never recommend):
{profile.exclusion_text()}

Preferred Languages: {languages}

Transform the data into EXACTLY {count} JSON recommendations.
Apply the user's taste preferences and ensure all fields are complete and accurate.
Return ONLY valid JSON (no explanations)."""

    return system_prompt, user_prompt
