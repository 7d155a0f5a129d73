"""TMDB API integration used to resolve canonical catalog ids."""

import logging
from typing import Any

import httpx

from reelsynth.config import Settings, get_settings
from reelsynth.constants import TMDB_API_BASE_URL, TMDB_IMAGE_BASE_URL
from reelsynth.models.catalog import MediaKind
from reelsynth.utils.rate_limiter import RateLimitConfig, RateLimiter

logger = logging.getLogger(__name__)

# TMDB path segment per kind
_KIND_PATH = {MediaKind.MOVIE: "movie", MediaKind.TV: "tv"}


class TMDBCatalogClient:
    """Search and details lookups against TMDB.

    Every HTTP call goes through the shared rate limiter. Failures are
    logged and reported as "no result"; callers fall back to local ids.
    """

    def __init__(
        self,
        api_key: str,
        http_client: httpx.AsyncClient,
        rate_limiter: RateLimiter | None = None,
        language: str = "en-US",
    ) -> None:
        self.api_key = api_key
        self.language = language
        self.rate_limiter = rate_limiter or RateLimiter()
        self.client = http_client
        # Support both API key v3 and Bearer token
        if api_key and api_key.startswith("eyJ"):
            self.headers = {
                "Authorization": f"Bearer {api_key}",
                "Accept": "application/json",
            }
            self.use_api_key_param = False
        else:
            self.headers = {"Accept": "application/json"}
            self.use_api_key_param = True

    @classmethod
    def from_settings(cls, http_client: httpx.AsyncClient, settings: Settings | None = None) -> "TMDBCatalogClient":
        settings = settings or get_settings()
        limiter = RateLimiter(RateLimitConfig(max_requests=settings.tmdb_requests_per_second))
        return cls(api_key=settings.tmdb_api_key, http_client=http_client, rate_limiter=limiter)

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    async def aclose(self) -> None:
        await self.client.aclose()

    def _add_api_key(self, params: dict) -> dict:
        """Add API key to params if using v3 key."""
        if self.use_api_key_param:
            params["api_key"] = self.api_key
        return params

    async def _get(self, path: str, params: dict, context: str) -> dict[str, Any] | None:
        url = f"{TMDB_API_BASE_URL}{path}"
        params = self._add_api_key(params)

        try:
            response = await self.rate_limiter.execute(
                lambda: self.client.get(url, params=params, headers=self.headers),
                context=context,
            )
        except httpx.HTTPError as e:
            logger.warning(f"TMDB request {path} failed: {e}")
            return None

        if response.status_code != 200:
            logger.warning(f"TMDB request {path} returned {response.status_code}")
            return None
        return response.json()

    async def search(
        self,
        title: str,
        year: int | None = None,
        kind: MediaKind = MediaKind.MOVIE,
    ) -> list[dict[str, Any]]:
        """Search for a movie or TV show by title."""
        if not self.is_configured:
            return []

        params: dict[str, str] = {
            "query": title,
            "language": self.language,
            "include_adult": "false",
        }
        if year:
            params["year" if kind is MediaKind.MOVIE else "first_air_date_year"] = str(year)

        data = await self._get(f"/search/{_KIND_PATH[kind]}", params, context="tmdb_search")
        if not data:
            return []

        return [self._parse_result(entry, kind) for entry in data.get("results", [])[:10]]

    async def best_match(
        self,
        title: str,
        year: int | None = None,
        kind: MediaKind = MediaKind.MOVIE,
    ) -> dict[str, Any] | None:
        """Pick the search result whose title and year match, if any."""
        results = await self.search(title, year, kind)
        if not results:
            return None

        wanted = title.strip().lower()
        for result in results:
            titles = {(result.get("title") or "").lower(), (result.get("original_title") or "").lower()}
            if wanted in titles and (year is None or result.get("year") == year):
                return result

        # TMDB already filtered by year; a single hit is trustworthy enough
        if len(results) == 1:
            return results[0]
        return None

    async def details(self, item_id: int, kind: MediaKind = MediaKind.MOVIE) -> dict[str, Any] | None:
        """Get detailed information for a movie or TV show."""
        if not self.is_configured:
            return None

        data = await self._get(
            f"/{_KIND_PATH[kind]}/{item_id}",
            {"language": self.language},
            context="tmdb_details",
        )
        if not data:
            return None

        parsed = self._parse_result(data, kind)
        parsed["genres"] = [genre["name"] for genre in data.get("genres", [])]
        parsed["tagline"] = data.get("tagline") or None
        if kind is MediaKind.MOVIE:
            parsed["runtime"] = data.get("runtime")
            parsed["budget"] = data.get("budget") or None
            parsed["box_office"] = data.get("revenue") or None
        else:
            run_times = data.get("episode_run_time") or []
            parsed["runtime"] = run_times[0] if run_times else None
        return parsed

    @staticmethod
    def _parse_result(entry: dict[str, Any], kind: MediaKind) -> dict[str, Any]:
        if kind is MediaKind.MOVIE:
            title = entry.get("title") or entry.get("original_title") or ""
            original_title = entry.get("original_title")
            release_date = entry.get("release_date") or None
        else:
            title = entry.get("name") or entry.get("original_name") or ""
            original_title = entry.get("original_name")
            release_date = entry.get("first_air_date") or None

        year = int(release_date[:4]) if release_date and release_date[:4].isdigit() else None
        poster_path = entry.get("poster_path")

        return {
            "id": entry["id"],
            "title": title,
            "original_title": original_title,
            "release_date": release_date,
            "year": year,
            "overview": entry.get("overview"),
            "poster_path": poster_path,
            "poster_url": f"{TMDB_IMAGE_BASE_URL}/w342{poster_path}" if poster_path else None,
            "backdrop_path": entry.get("backdrop_path"),
            "vote_average": entry.get("vote_average"),
            "vote_count": entry.get("vote_count"),
            "popularity": entry.get("popularity"),
            "language": entry.get("original_language"),
        }
