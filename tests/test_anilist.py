"""Tests for the AniList GraphQL client."""

from __future__ import annotations

import json

import httpx
import pytest

from nyanbar.services.anilist import (
    TRENDING_QUERY,
    AniListClient,
    AniListError,
    AnimeNotFoundError,
)
from nyanbar.services.cache import TTLCache

MEDIA = [
    {"id": 1, "title": {"romaji": "Mono", "english": None, "native": "mono"}, "episodes": 12},
    {"id": 2, "title": {"romaji": "Sousou no Frieren", "english": "Frieren", "native": None}, "episodes": 28},
]


class GraphQLHandler:
    """Records GraphQL payloads and answers with a canned response."""

    def __init__(self, respond):
        self.respond = respond
        self.payloads = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        payload = json.loads(request.content)
        self.payloads.append(payload)
        return self.respond(payload)


def _client(handler) -> AniListClient:
    return AniListClient(api_url="https://graphql.example/", transport=httpx.MockTransport(handler))


def _page(media) -> httpx.Response:
    return httpx.Response(200, json={"data": {"Page": {"media": media}}})


class TestGetAnime:
    @pytest.mark.asyncio
    async def test_returns_media_record(self) -> None:
        handler = GraphQLHandler(lambda p: httpx.Response(200, json={"data": {"Media": MEDIA[1]}}))

        anime = await _client(handler).get_anime(2)

        assert anime == MEDIA[1]
        assert handler.payloads[0]["variables"] == {"id": 2}

    @pytest.mark.asyncio
    async def test_graphql_error_is_not_found(self) -> None:
        body = {"errors": [{"message": "Not Found.", "status": 404}], "data": {"Media": None}}
        handler = GraphQLHandler(lambda p: httpx.Response(404, json=body))

        with pytest.raises(AnimeNotFoundError):
            await _client(handler).get_anime(999999)

    @pytest.mark.asyncio
    async def test_missing_media_is_not_found(self) -> None:
        handler = GraphQLHandler(lambda p: httpx.Response(200, json={"data": {"Media": None}}))
        with pytest.raises(AnimeNotFoundError):
            await _client(handler).get_anime(5)

    @pytest.mark.asyncio
    async def test_server_error(self) -> None:
        handler = GraphQLHandler(lambda p: httpx.Response(500, text="oops"))
        with pytest.raises(AniListError) as excinfo:
            await _client(handler).get_anime(5)
        assert not isinstance(excinfo.value, AnimeNotFoundError)


class TestPages:
    @pytest.mark.asyncio
    async def test_search_passes_query(self) -> None:
        handler = GraphQLHandler(lambda p: _page(MEDIA))

        results = await _client(handler).search("frieren")

        assert results == MEDIA
        assert handler.payloads[0]["variables"] == {"search": "frieren"}

    @pytest.mark.asyncio
    async def test_trending_is_cached(self) -> None:
        handler = GraphQLHandler(lambda p: _page(MEDIA))
        client = _client(handler)

        assert await client.trending() == MEDIA
        assert await client.trending() == MEDIA
        assert len(handler.payloads) == 1
        assert handler.payloads[0]["query"] == TRENDING_QUERY
        assert "variables" not in handler.payloads[0]

    @pytest.mark.asyncio
    async def test_trending_and_popular_cached_separately(self) -> None:
        handler = GraphQLHandler(lambda p: _page(MEDIA))
        client = _client(handler)

        await client.trending()
        await client.popular()
        assert len(handler.payloads) == 2

    @pytest.mark.asyncio
    async def test_expired_cache_refetches(self) -> None:
        now = {"t": 0.0}
        handler = GraphQLHandler(lambda p: _page(MEDIA))
        client = AniListClient(
            api_url="https://graphql.example/",
            cache=TTLCache(300, clock=lambda: now["t"]),
            transport=httpx.MockTransport(handler),
        )

        await client.popular()
        now["t"] = 301.0
        await client.popular()
        assert len(handler.payloads) == 2

    @pytest.mark.asyncio
    async def test_errors_in_page_response(self) -> None:
        handler = GraphQLHandler(lambda p: httpx.Response(400, json={"errors": [{"message": "bad"}]}))
        with pytest.raises(AniListError):
            await _client(handler).search("x")

    @pytest.mark.asyncio
    async def test_connection_error(self) -> None:
        def refuse(payload):
            raise httpx.ConnectError("connection refused")

        with pytest.raises(AniListError):
            await _client(GraphQLHandler(refuse)).trending()

    @pytest.mark.asyncio
    async def test_invalid_json(self) -> None:
        handler = GraphQLHandler(lambda p: httpx.Response(200, text="<html>maintenance</html>"))
        with pytest.raises(AniListError):
            await _client(handler).popular()
