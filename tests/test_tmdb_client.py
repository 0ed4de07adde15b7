from __future__ import annotations

import httpx
import pytest

from app.config import Settings
from app.errors import MatchLookupFailure, NotFoundError
from app.services.tmdb import TMDBClient


def _client(handler, *, api_key: str | None = "secret") -> TMDBClient:
    settings = Settings(_env_file=None, TMDB_API_KEY=api_key)
    http_client = httpx.AsyncClient(
        transport=httpx.MockTransport(handler),
        base_url="https://api.themoviedb.org/3",
    )
    return TMDBClient(settings, http_client)


@pytest.mark.anyio("asyncio")
async def test_search_parses_movies_and_series_and_skips_people() -> None:
    seen: dict[str, object] = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["path"] = request.url.path
        seen["params"] = dict(request.url.params)
        return httpx.Response(
            200,
            json={
                "results": [
                    {
                        "id": 1396,
                        "media_type": "tv",
                        "name": "Breaking Bad",
                        "first_air_date": "2008-01-20",
                        "poster_path": "/bb.jpg",
                        "overview": "A chemist turns to crime.",
                    },
                    {"id": 17419, "media_type": "person", "name": "Bryan Cranston"},
                    {
                        "id": 559969,
                        "media_type": "movie",
                        "title": "El Camino",
                        "release_date": "2019-10-11",
                        "poster_path": None,
                    },
                ]
            },
        )

    client = _client(handler)
    results = await client.search("  Breaking Bad ")

    assert seen["path"] == "/3/search/multi"
    assert seen["params"] == {
        "query": "Breaking Bad",
        "include_adult": "false",
        "page": "1",
        "api_key": "secret",
    }
    assert [(r.tmdb_id, r.catalog_type, r.title, r.year) for r in results] == [
        (1396, "series", "Breaking Bad", 2008),
        (559969, "movie", "El Camino", 2019),
    ]
    assert results[0].poster_path == "/bb.jpg"
    assert results[1].poster_path is None


@pytest.mark.anyio("asyncio")
async def test_blank_query_does_not_call_tmdb() -> None:
    def handler(request: httpx.Request) -> httpx.Response:  # pragma: no cover
        raise AssertionError("unexpected request")

    client = _client(handler)

    assert await client.search("   ") == []


@pytest.mark.anyio("asyncio")
async def test_server_error_raises_lookup_failure() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(503, text="unavailable")

    client = _client(handler)

    with pytest.raises(MatchLookupFailure) as exc_info:
        await client.search("Heat")

    assert exc_info.value.detail == "HTTP 503"


@pytest.mark.anyio("asyncio")
async def test_transport_error_raises_lookup_failure() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    client = _client(handler)

    with pytest.raises(MatchLookupFailure):
        await client.search("Heat")


@pytest.mark.anyio("asyncio")
async def test_missing_api_key_raises_lookup_failure() -> None:
    def handler(request: httpx.Request) -> httpx.Response:  # pragma: no cover
        raise AssertionError("unexpected request")

    client = _client(handler, api_key=None)

    with pytest.raises(MatchLookupFailure, match="API key"):
        await client.search("Heat")


@pytest.mark.anyio("asyncio")
async def test_get_details_uses_tv_endpoint_for_series() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/3/tv/1396"
        return httpx.Response(
            200,
            json={"id": 1396, "name": "Breaking Bad", "first_air_date": "2008-01-20"},
        )

    client = _client(handler)
    result = await client.get_details(1396, "series")

    assert result.catalog_type == "series"
    assert result.title == "Breaking Bad"
    assert result.year == 2008


@pytest.mark.anyio("asyncio")
async def test_get_details_unknown_id_raises_not_found() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(404, json={"status_message": "not found"})

    client = _client(handler)

    with pytest.raises(NotFoundError):
        await client.get_details(42, "movie")
