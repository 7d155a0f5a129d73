"""Lazy metadata enrichment for catalog items.

Fills critic rating, voter count, review summary, genres and financials
from the search-augmented model the first time an item is viewed with any
of them missing. Items keyed by an external catalog id also get poster,
runtime and other display fields from that catalog. Values already stored
are never overwritten.
"""

import logging

from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from reelsynth.exceptions import EnrichmentFailure, LLMServiceError, ParseFailure
from reelsynth.models.base import utcnow
from reelsynth.models.catalog import CatalogItem, IdSource, MediaKind
from reelsynth.models.schemas import EnrichmentPayload
from reelsynth.services.llm.clients import SearchCompletionClient, extract_json_object
from reelsynth.services.metadata.tmdb import TMDBCatalogClient

logger = logging.getLogger(__name__)

ENRICHMENT_SYSTEM_PROMPT = "You are a precise fact-retrieval assistant that returns only valid JSON."

_ENRICHABLE_FIELDS = ("critic_rating", "voter_count", "review_summary", "genres", "budget", "box_office")

# Filled from the external catalog for items keyed by a catalog id
_CATALOG_DETAIL_FIELDS = (
    "original_title",
    "overview",
    "poster_path",
    "backdrop_path",
    "release_date",
    "runtime",
    "tagline",
    "genres",
    "budget",
    "box_office",
    "vote_average",
    "vote_count",
    "popularity",
    "language",
)


def needs_enrichment(item: CatalogItem) -> bool:
    """True when any of the core enrichment fields is missing."""
    return (
        item.critic_rating is None
        or item.voter_count is None
        or not item.review_summary
        or not item.genres
    )


def build_enrichment_prompt(title: str, year: int | None, kind: MediaKind) -> str:
    query = f"{title} ({year})" if year else title
    label = "movie" if kind is MediaKind.MOVIE else "TV series"
    financials = (
        "5. Production budget (in USD)\n6. Worldwide box office collection (in USD)"
        if kind is MediaKind.MOVIE
        else "5. Production budget per season if published (in USD)\n"
        "6. Worldwide box office: always null for TV series"
    )

    return f"""Retrieve authoritative information for the {label} {query} ONLY from IMDB.

What to extract:
1. IMDB rating (decimal number, e.g., 8.1)
2. IMDB rating count (total number of votes)
3. AI-generated summary of IMDB user reviews (2 lines, capturing overall sentiment and key themes)
4. Genre list (all genres assigned by IMDB)
{financials}

RULES:
- All values must be real and grounded in IMDB or other authoritative financial sources (Box Office Mojo, Wikipedia, The Numbers).
- If a value cannot be confirmed through browsing, return null.
- Do NOT include Rotten Tomatoes.
- Do NOT hallucinate or estimate.
- For budget and box office, return raw numbers without currency symbols or formatting.

RETURN STRICT JSON IN THIS EXACT FORMAT:
{{
  "imdb": {{
    "rating": number or null,
    "rating_count": number or null,
    "genres": ["Genre1", "Genre2"],
    "user_reviews_ai_summary": "2-line summary based on IMDB user review sentiment"
  }},
  "financials": {{
    "budget": number or null,
    "box_office_worldwide": number or null
  }}
}}

Output ONLY valid JSON. No commentary, no extra text."""


def _fill_missing(item: CatalogItem, values: dict, fields: tuple[str, ...]) -> list[str]:
    """Copy non-empty values onto fields that are still empty."""
    filled = []
    for field in fields:
        new_value = values.get(field)
        current = getattr(item, field)
        if new_value is None or new_value == [] or (current is not None and current != []):
            continue
        setattr(item, field, new_value)
        filled.append(field)
    return filled


class MetadataEnricher:
    """Fill missing catalog metadata.

    IMDB facts come from the search-augmented model. When a catalog client is
    given, items keyed by a catalog id also pull display fields (poster,
    runtime, tagline) from the catalog's details endpoint.
    """

    def __init__(
        self,
        client: SearchCompletionClient,
        db: AsyncSession,
        catalog: TMDBCatalogClient | None = None,
    ) -> None:
        self.client = client
        self.db = db
        self.catalog = catalog

    def wants_catalog_details(self, item: CatalogItem) -> bool:
        return (
            self.catalog is not None
            and self.catalog.is_configured
            and item.id_source is IdSource.CATALOG
            and (item.poster_path is None or item.runtime is None)
        )

    async def fetch(self, item: CatalogItem) -> EnrichmentPayload:
        """One fact-retrieval call for the item's (title, year)."""
        prompt = build_enrichment_prompt(item.title, item.year, item.kind)
        try:
            raw = await self.client.complete(ENRICHMENT_SYSTEM_PROMPT, prompt)
            logger.debug(f"Enrichment response for {item.title}: {raw[:500]}")
            return EnrichmentPayload.model_validate(extract_json_object(raw))
        except (LLMServiceError, ParseFailure, ValidationError) as e:
            raise EnrichmentFailure(f"Could not enrich {item.title} ({item.year}): {e}") from e

    async def enrich(self, item: CatalogItem) -> CatalogItem:
        """Return the item with previously-null fields filled.

        No external call is made when nothing is missing. A failed fact
        retrieval leaves the IMDB fields untouched and ``enriched_at`` unset.
        """
        wants_details = self.wants_catalog_details(item)
        if not wants_details and not needs_enrichment(item):
            logger.debug(f"Catalog item {item.id} already has complete metadata")
            return item

        logger.info(f"Enriching catalog item {item.id} ({item.title})")
        filled: list[str] = []
        stamped = False

        if wants_details:
            details = await self.catalog.details(item.id, item.kind)
            if details is not None:
                filled += _fill_missing(item, details, _CATALOG_DETAIL_FIELDS)

        if needs_enrichment(item):
            try:
                payload = await self.fetch(item)
            except EnrichmentFailure as e:
                logger.warning(str(e))
            else:
                filled += _fill_missing(item, payload.model_dump(), _ENRICHABLE_FIELDS)
                item.enriched_at = utcnow()
                stamped = True

        if not filled and not stamped:
            return item

        try:
            await self.db.commit()
        except SQLAlchemyError as e:
            logger.error(f"Failed to save enrichment for catalog item {item.id}: {e}", exc_info=True)
            await self.db.rollback()
            await self.db.refresh(item)
            return item

        logger.info(f"Enriched catalog item {item.id}: filled {', '.join(filled) or 'nothing'}")
        return item
