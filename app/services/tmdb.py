"""Client for The Movie Database (TMDB) search and details endpoints."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

import httpx

from ..config import Settings
from ..errors import MatchLookupFailure, NotFoundError
from ..models import CatalogType, coerce_catalog_type
from ..utils import parse_year

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class TMDBSearchResult:
    """Normalized view of a TMDB movie or TV result."""

    tmdb_id: int
    catalog_type: CatalogType
    title: str
    overview: str | None
    poster_path: str | None
    year: int | None


class TMDBClient:
    """Client responsible for searching TMDB and fetching media details."""

    def __init__(self, settings: Settings, http_client: httpx.AsyncClient):
        self._settings = settings
        self._client = http_client

    async def search(self, title: str) -> list[TMDBSearchResult]:
        """Return movie and TV results for ``title`` in TMDB's ranking order."""

        query = (title or "").strip()
        if not query:
            return []
        payload = await self._get(
            "/search/multi",
            {"query": query, "include_adult": "false", "page": 1},
        )
        results = payload.get("results") or []
        if not isinstance(results, list):
            raise MatchLookupFailure("Unexpected TMDB search payload", detail=query)

        parsed: list[TMDBSearchResult] = []
        for raw in results:
            if not isinstance(raw, dict):
                continue
            result = self._parse_result(raw, raw.get("media_type"))
            if result is not None:
                parsed.append(result)
        return parsed

    async def get_details(
        self, tmdb_id: int, catalog_type: CatalogType
    ) -> TMDBSearchResult:
        """Fetch a single movie or series by its TMDB identifier."""

        endpoint = f"/{'movie' if catalog_type == 'movie' else 'tv'}/{tmdb_id}"
        payload = await self._get(endpoint, {}, not_found_ok=False)
        result = self._parse_result(payload, catalog_type)
        if result is None:
            raise NotFoundError(f"TMDB {catalog_type} {tmdb_id} not found")
        return result

    async def _get(
        self,
        endpoint: str,
        params: dict[str, Any],
        *,
        not_found_ok: bool = True,
    ) -> dict[str, Any]:
        if not self._settings.tmdb_api_key:
            raise MatchLookupFailure("TMDB API key is not configured")

        request_params = {**params, "api_key": self._settings.tmdb_api_key}
        try:
            response = await self._client.get(endpoint, params=request_params)
        except httpx.HTTPError as exc:
            raise MatchLookupFailure(
                f"TMDB request to {endpoint} failed", detail=str(exc)
            ) from exc

        if response.status_code == 404 and not not_found_ok:
            raise NotFoundError(f"TMDB resource {endpoint} not found")
        if response.status_code >= 400:
            logger.warning(
                "TMDB request to %s failed: %s %s",
                endpoint,
                response.status_code,
                response.text,
            )
            raise MatchLookupFailure(
                f"TMDB request to {endpoint} failed",
                detail=f"HTTP {response.status_code}",
            )
        try:
            payload = response.json()
        except ValueError as exc:
            raise MatchLookupFailure("TMDB returned invalid JSON") from exc
        if not isinstance(payload, dict):
            raise MatchLookupFailure("TMDB returned an unexpected payload")
        return payload

    @staticmethod
    def _parse_result(
        raw: dict[str, Any], media_type: object
    ) -> TMDBSearchResult | None:
        catalog_type = coerce_catalog_type(media_type)
        if catalog_type is None:
            # Search results for people and collections are not watchable.
            return None
        title = raw.get("title") if catalog_type == "movie" else raw.get("name")
        title = title or raw.get("title") or raw.get("name")
        raw_id = raw.get("id")
        if not title or raw_id is None:
            return None
        try:
            tmdb_id = int(raw_id)
        except (TypeError, ValueError):
            return None
        date_value = raw.get("release_date") if catalog_type == "movie" else raw.get(
            "first_air_date"
        )
        return TMDBSearchResult(
            tmdb_id=tmdb_id,
            catalog_type=catalog_type,
            title=str(title),
            overview=raw.get("overview") or None,
            poster_path=raw.get("poster_path") or None,
            year=parse_year(date_value) if isinstance(date_value, str) else None,
        )
