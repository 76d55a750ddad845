"""
New-episode detection for anime on the watch list.

The checker looks up every torrent for a watched anime, takes the highest
episode number it can read from the titles and compares it with the last
episode stored for that anime. The scheduler runs the checker periodically
and hands each batch of results to a callback.
"""

import asyncio
import logging
import re
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set

from ..config import EPISODE_CHECK_DELAY, EPISODE_CHECK_INTERVAL_MINUTES
from ..models.torrent import SearchRequest
from ..models.watchlist import (
    EpisodeCheckResult,
    StoredEpisodeData,
    anime_display_title,
    now_ms,
)
from .store import JsonStore
from .torrent_search import TorrentSearchService
from .watchlist import NotificationLog

logger = logging.getLogger("nyanbar.services.episode_checker")

EPISODE_PATTERN = re.compile(r'(?:ep|episode|e)\s*(\d+)', re.IGNORECASE)

ResultsCallback = Callable[[List[EpisodeCheckResult]], Awaitable[None]]


def episode_key(anime_id: int) -> str:
    return f"nyanbar-episode-{anime_id}"


def latest_episode(titles: List[str]) -> int:
    """Highest episode number found in torrent titles, 0 if none."""
    episodes = []
    for title in titles:
        match = EPISODE_PATTERN.search(title.lower())
        if match and int(match.group(1)) > 0:
            episodes.append(int(match.group(1)))
    return max(episodes, default=0)


class EpisodeChecker:
    """Checks watched anime for episodes newer than the last one seen."""

    def __init__(
        self,
        search_service: TorrentSearchService,
        store: JsonStore,
        delay_seconds: float = EPISODE_CHECK_DELAY,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.search_service = search_service
        self.store = store
        self.delay_seconds = delay_seconds
        self._sleep = sleep
        self._is_checking = False

    @property
    def is_checking(self) -> bool:
        return self._is_checking

    async def get_stored_episode(self, anime_id: int) -> Optional[StoredEpisodeData]:
        raw = await self.store.get(episode_key(anime_id))
        if not raw:
            return None
        try:
            return StoredEpisodeData.from_dict(raw)
        except (KeyError, TypeError, ValueError) as e:
            logger.error(f"❌ Bad stored episode data for anime {anime_id}: {e}")
            return None

    async def update_watched_episode(self, anime_id: int, episode: int) -> StoredEpisodeData:
        data = StoredEpisodeData(
            anime_id=anime_id,
            last_checked_episode=episode,
            last_checked_time=now_ms(),
        )
        await self.store.set(episode_key(anime_id), data.to_dict())
        return data

    async def check_anime(self, anime: Dict[str, Any]) -> Optional[EpisodeCheckResult]:
        """Check one anime. Returns None when nothing usable was found."""
        title = anime_display_title(anime)
        if not title:
            return None

        search_term = title
        if anime.get('seasonYear'):
            search_term = f"{search_term} {anime['seasonYear']}"
        if anime.get('season'):
            search_term = f"{search_term} {anime['season']}"

        try:
            torrents = await self.search_service.search(SearchRequest(raw_title=search_term))

            latest = latest_episode([torrent.title for torrent in torrents])
            if latest == 0:
                return None

            stored = await self.get_stored_episode(anime['id'])
            current = stored.last_checked_episode if stored else 0
        except Exception as e:
            logger.error(f"❌ Error checking episodes for {title}: {e}")
            return None

        return EpisodeCheckResult(
            anime_id=anime['id'],
            anime_title=title,
            current_episode=current,
            latest_episode=latest,
            has_new_episode=latest > current,
        )

    async def check_all(self, anime_list: List[Dict[str, Any]]) -> List[EpisodeCheckResult]:
        """Check every anime; returns only those with a new episode."""
        if self._is_checking or not anime_list:
            return []

        self._is_checking = True
        results = []
        logger.info(f"📺 Checking {len(anime_list)} anime for new episodes")

        try:
            for index, anime in enumerate(anime_list):
                result = await self.check_anime(anime)
                if result and result.has_new_episode:
                    results.append(result)
                    await self.update_watched_episode(result.anime_id, result.latest_episode)

                if index < len(anime_list) - 1:
                    await self._sleep(self.delay_seconds)
        finally:
            self._is_checking = False

        logger.info(f"✅ Episode check done, {len(results)} anime with new episodes")
        return results

    async def manual_check(self, anime_list: List[Dict[str, Any]]) -> List[EpisodeCheckResult]:
        return await self.check_all(anime_list)


def notify_new_episodes(notifications: NotificationLog) -> ResultsCallback:
    """Build a callback that records a notification for every check result."""

    async def _notify(results: List[EpisodeCheckResult]) -> None:
        for result in results:
            await notifications.add(result.anime_id, result.anime_title, result.latest_episode)

    return _notify


class EpisodeCheckScheduler:
    """
    Runs the episode checker on a fixed interval until stopped.

    ``start`` and ``stop`` only end the interval loop. A check that is
    already running always finishes and hands its results to ``on_results``,
    because the checker stores each new episode as seen while it runs.
    """

    def __init__(self, checker: EpisodeChecker, on_results: Optional[ResultsCallback] = None):
        self.checker = checker
        self.on_results = on_results
        self._task: Optional[asyncio.Task] = None
        self._checks: Set[asyncio.Task] = set()
        self.interval_minutes: Optional[float] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self, anime_list: List[Dict[str, Any]], interval_minutes: float = EPISODE_CHECK_INTERVAL_MINUTES) -> None:
        """
        Check now, then every ``interval_minutes``.

        Replaces the interval of a running schedule. If a check is in
        progress it keeps going, and the new immediate check is a no-op.
        """
        if interval_minutes <= 0:
            raise ValueError("interval_minutes must be positive")

        self.stop()
        self.interval_minutes = interval_minutes
        self._task = asyncio.create_task(self._run(list(anime_list), interval_minutes * 60))
        logger.info(f"⏰ Episode checking started every {interval_minutes} minutes")

    def stop(self) -> None:
        if self._task is not None:
            self._task.cancel()
            self._task = None
            logger.info("🛑 Episode checking stopped")

    async def wait_for_checks(self) -> None:
        """Wait until every check started by the schedule has finished."""
        if self._checks:
            await asyncio.gather(*self._checks, return_exceptions=True)

    async def run_once(self, anime_list: List[Dict[str, Any]]) -> List[EpisodeCheckResult]:
        results = await self.checker.check_all(anime_list)
        if results and self.on_results is not None:
            await self.on_results(results)
        return results

    async def _run(self, anime_list: List[Dict[str, Any]], interval_seconds: float) -> None:
        while True:
            check = asyncio.create_task(self.run_once(anime_list))
            self._checks.add(check)
            check.add_done_callback(self._checks.discard)
            try:
                # Cancelling the loop must not cancel the check itself
                await asyncio.shield(check)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(f"❌ Scheduled episode check failed: {e}")
            await asyncio.sleep(interval_seconds)
