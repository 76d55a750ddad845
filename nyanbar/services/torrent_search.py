"""
Torrent search service for anime releases on nyaa.si.

Sends one query per search variant, strictly one after another, parses the
listing table and keeps the rows that belong to the requested anime/episode.
"""

import asyncio
import logging
import re
import urllib.parse
from typing import Awaitable, Callable, Iterator, List, Optional

import httpx
from bs4 import BeautifulSoup

from ..config import (
    NYAA_BASE_URL,
    REQUEST_TIMEOUT,
    USER_AGENT,
    MAX_TORRENT_RESULTS,
    EPISODE_SCAN_DEPTH,
    ALL_EPISODES_SCAN_DEPTH,
    EPISODE_VARIANT_DELAY,
    RATE_LIMIT_BACKOFF,
    ALL_EPISODES_VARIANT_DELAY,
)
from ..models.torrent import TorrentListing, SearchRequest
from .title_matching import (
    normalize_title,
    build_query_variants,
    is_relevant_torrent,
    rank_torrents,
)

logger = logging.getLogger("nyanbar.services.torrent_search")

# Listing columns: category, title, links, size, -, date, seeders, leechers
SIZE_COLUMN = 3
DATE_COLUMN = 5

_LEADING_DIGITS = re.compile(r'\d+')


class RateLimitedError(Exception):
    """The torrent index answered with HTTP 429."""


class TorrentPool:
    """Accumulates listings across variants, one entry per exact title."""

    def __init__(self):
        self._torrents: List[TorrentListing] = []
        self._titles = set()

    def add(self, torrent: TorrentListing) -> bool:
        """Add a listing unless one with the same title is already pooled."""
        if torrent.title in self._titles:
            return False
        self._titles.add(torrent.title)
        self._torrents.append(torrent)
        return True

    def __len__(self) -> int:
        return len(self._torrents)

    def __iter__(self) -> Iterator[TorrentListing]:
        return iter(self._torrents)

    def to_list(self) -> List[TorrentListing]:
        return list(self._torrents)


def _cell_int(text: str) -> int:
    """Leading digits of a cell, so "12*" reads as 12; 0 when there are none."""
    match = _LEADING_DIGITS.match(text.strip())
    return int(match.group()) if match else 0


def parse_listing(html: str, max_rows: int, base_url: str = NYAA_BASE_URL) -> List[TorrentListing]:
    """Parse the nyaa results table, reading at most ``max_rows`` rows."""
    soup = BeautifulSoup(html, 'html.parser')
    results = []

    for row in soup.select('tbody tr')[:max_rows]:
        cells = row.find_all('td', recursive=False)
        if len(cells) < 3:
            continue

        # Title cell may also hold a comment-count link
        title_links = [
            link for link in cells[1].find_all('a')
            if 'comments' not in (link.get('class') or [])
        ]
        if not title_links:
            continue
        title_link = title_links[-1]
        title = title_link.get_text(strip=True)

        link_anchors = [link for link in cells[2].find_all('a') if link.get('href')]
        if not title or not link_anchors:
            continue

        download_url = urllib.parse.urljoin(base_url, link_anchors[0]['href'])
        magnet_url = None
        if len(link_anchors) > 1:
            magnet_url = urllib.parse.urljoin(base_url, link_anchors[1]['href'])

        view_href = title_link.get('href')

        # Stats columns follow the date cell; nyaa tags it with data-timestamp
        date_index = DATE_COLUMN
        for index, cell in enumerate(cells[3:], start=3):
            if cell.has_attr('data-timestamp'):
                date_index = index
                break

        def cell_text(index: int) -> str:
            return cells[index].get_text(strip=True) if len(cells) > index else ""

        results.append(TorrentListing(
            title=title,
            download_url=download_url,
            size=cell_text(SIZE_COLUMN),
            date=cell_text(date_index),
            seeders=_cell_int(cell_text(date_index + 1)),
            leechers=_cell_int(cell_text(date_index + 2)),
            magnet_url=magnet_url,
            view_url=urllib.parse.urljoin(base_url, view_href) if view_href else None,
        ))

    return results


class TorrentSearchService:
    """Finds and ranks anime torrents for a title and optional episode."""

    def __init__(
        self,
        base_url: str = NYAA_BASE_URL,
        timeout: float = REQUEST_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self.user_agent = USER_AGENT
        self._transport = transport
        self._sleep = sleep

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self.timeout,
            follow_redirects=True,
            headers={'User-Agent': self.user_agent},
            transport=self._transport,
        )

    def search_url(self, query: str) -> str:
        encoded_query = urllib.parse.quote(query, safe='')
        return f"{self.base_url}/?f=0&c=1_0&q={encoded_query}"

    async def search(self, request: SearchRequest) -> List[TorrentListing]:
        """Search the index and return at most MAX_TORRENT_RESULTS ranked listings."""
        clean_title = normalize_title(request.raw_title)
        episode_label = 'all' if request.all_episodes else request.episode
        logger.info(f"🔍 Torrent search for: {clean_title!r} episode: {episode_label}")

        if not clean_title:
            logger.info("⚠️  Empty title after cleaning, skipping upstream search")
            return []

        async with self._client() as client:
            if request.all_episodes:
                pool = await self._search_all_episodes(client, clean_title)
            else:
                pool = await self._search_episode(client, clean_title, request.episode)

        ranked = rank_torrents(pool.to_list())[:MAX_TORRENT_RESULTS]
        logger.info(f"✅ Returning {len(ranked)} torrents for {clean_title!r}")
        return ranked

    async def _fetch(self, client: httpx.AsyncClient, query: str) -> Optional[str]:
        """Fetch one results page. Returns None on failure, raises RateLimitedError on 429."""
        url = self.search_url(query)
        try:
            response = await client.get(url)
        except httpx.HTTPError as e:
            logger.warning(f"❌ Error fetching from nyaa.si for {query!r}: {type(e).__name__}: {e}")
            return None

        if response.status_code == 429:
            raise RateLimitedError(f"Rate limited while searching {query!r}")

        if not response.is_success:
            logger.warning(f"❌ nyaa.si returned HTTP {response.status_code} for {query!r}")
            return None

        return response.text

    async def _search_episode(self, client: httpx.AsyncClient, clean_title: str, episode: int) -> TorrentPool:
        pool = TorrentPool()

        for query in build_query_variants(clean_title, episode):
            try:
                html = await self._fetch(client, query)
            except RateLimitedError as e:
                logger.warning(f"⏱️  {e}, backing off {RATE_LIMIT_BACKOFF}s")
                await self._sleep(RATE_LIMIT_BACKOFF)
                continue

            if html is None:
                await self._sleep(EPISODE_VARIANT_DELAY)
                continue

            added = 0
            for torrent in parse_listing(html, EPISODE_SCAN_DEPTH, self.base_url):
                if is_relevant_torrent(torrent.title, clean_title, episode) and pool.add(torrent):
                    added += 1
            logger.debug(f"📄 {query!r}: {added} new relevant torrents")

            await self._sleep(EPISODE_VARIANT_DELAY)

        return pool

    async def _search_all_episodes(self, client: httpx.AsyncClient, clean_title: str) -> TorrentPool:
        pool = TorrentPool()
        variants = build_query_variants(clean_title)

        for query in variants:
            if len(pool) > 0:
                break

            try:
                html = await self._fetch(client, query)
            except RateLimitedError as e:
                logger.warning(f"⏱️  {e}, abandoning remaining variants")
                break

            if html is None:
                continue

            for torrent in parse_listing(html, ALL_EPISODES_SCAN_DEPTH, self.base_url):
                if is_relevant_torrent(torrent.title, query):
                    pool.add(torrent)

            if len(variants) > 1:
                await self._sleep(ALL_EPISODES_VARIANT_DELAY)

        return pool
