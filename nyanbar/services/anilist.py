"""
AniList GraphQL client for anime metadata.
"""

import logging
from typing import Any, Dict, List, Optional

import httpx

from ..config import ANILIST_API_URL, REQUEST_TIMEOUT, CACHE_DURATION
from .cache import TTLCache

logger = logging.getLogger("nyanbar.services.anilist")


class AniListError(Exception):
    """AniList could not be reached or returned an unusable response."""


class AnimeNotFoundError(AniListError):
    """No anime exists for the requested id."""


SUMMARY_FIELDS = """
            id
            title {
              romaji
              english
              native
            }
            coverImage {
              extraLarge
              large
              medium
            }
            averageScore
            episodes
            status
            season
            seasonYear
"""

ANIME_DETAIL_QUERY = """
query ($id: Int) {
  Media(id: $id, type: ANIME) {
    id
    idMal
    title {
      romaji
      english
      native
    }
    description
    episodes
    duration
    status
    season
    seasonYear
    genres
    averageScore
    meanScore
    popularity
    trending
    coverImage {
      extraLarge
      large
      medium
    }
    bannerImage
    format
    source
    hashtag
    countryOfOrigin
    isLicensed
    isAdult
    siteUrl
    startDate {
      year
      month
      day
    }
    endDate {
      year
      month
      day
    }
    studios {
      nodes {
        name
        siteUrl
      }
    }
    characters {
      nodes {
        name {
          full
        }
        image {
          large
        }
      }
    }
  }
}
"""

SEARCH_QUERY = """
query ($search: String) {
  Page(page: 1, perPage: 20) {
    media(search: $search, type: ANIME, sort: POPULARITY_DESC) {%s}
  }
}
""" % SUMMARY_FIELDS

TRENDING_QUERY = """
query {
  Page(page: 1, perPage: 20) {
    media(type: ANIME, sort: TRENDING_DESC) {%s}
  }
}
""" % SUMMARY_FIELDS

POPULAR_QUERY = """
query {
  Page(page: 1, perPage: 20) {
    media(type: ANIME, sort: POPULARITY_DESC, status: RELEASING) {%s}
  }
}
""" % SUMMARY_FIELDS


class AniListClient:
    """Thin wrapper over the AniList GraphQL API."""

    def __init__(
        self,
        api_url: str = ANILIST_API_URL,
        timeout: float = REQUEST_TIMEOUT,
        cache: Optional[TTLCache] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_url = api_url
        self.timeout = timeout
        self.cache = cache if cache is not None else TTLCache(CACHE_DURATION)
        self._transport = transport

    async def _post(self, query: str, variables: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        payload: Dict[str, Any] = {'query': query}
        if variables is not None:
            payload['variables'] = variables

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(self.api_url, json=payload)
        except httpx.HTTPError as e:
            raise AniListError(f"AniList request failed: {type(e).__name__}: {e}") from e

        try:
            body = response.json()
        except ValueError as e:
            raise AniListError(f"AniList returned invalid JSON (HTTP {response.status_code})") from e

        if not isinstance(body, dict):
            raise AniListError("AniList returned an unexpected response")
        # GraphQL errors come back with 4xx codes; let callers interpret them
        if not response.is_success and not body.get('errors'):
            raise AniListError(f"AniList returned HTTP {response.status_code}")
        return body

    async def _fetch_page(self, query: str, variables: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        body = await self._post(query, variables)
        if body.get('errors'):
            raise AniListError(f"AniList errors: {body['errors']}")

        try:
            return body['data']['Page']['media']
        except (KeyError, TypeError) as e:
            raise AniListError("AniList response is missing the media page") from e

    async def get_anime(self, anime_id: int) -> Dict[str, Any]:
        """Fetch the full record for one anime."""
        body = await self._post(ANIME_DETAIL_QUERY, {'id': anime_id})

        if body.get('errors'):
            logger.warning(f"⚠️  AniList has no anime {anime_id}: {body['errors']}")
            raise AnimeNotFoundError(f"Anime {anime_id} not found")

        media = (body.get('data') or {}).get('Media')
        if not media:
            raise AnimeNotFoundError(f"Anime {anime_id} not found")
        return media

    async def search(self, query: str) -> List[Dict[str, Any]]:
        """Search anime by title, most popular first."""
        logger.info(f"🔍 AniList search: {query}")
        return await self._fetch_page(SEARCH_QUERY, {'search': query})

    async def trending(self) -> List[Dict[str, Any]]:
        return await self._cached_page('trending', TRENDING_QUERY)

    async def popular(self) -> List[Dict[str, Any]]:
        """Currently airing anime by popularity."""
        return await self._cached_page('popular', POPULAR_QUERY)

    async def _cached_page(self, key: str, query: str) -> List[Dict[str, Any]]:
        cached = self.cache.get(key)
        if cached is not None:
            logger.debug(f"📦 Serving {key} from cache")
            return cached

        media = await self._fetch_page(query)
        self.cache.set(key, media)
        logger.info(f"📊 Cached {len(media)} {key} anime")
        return media
