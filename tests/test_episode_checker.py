"""Tests for new-episode detection and the periodic scheduler."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Dict, List

import pytest

from nyaa_pages import RecordingSleep
from nyanbar.models.torrent import SearchRequest, TorrentListing
from nyanbar.models.watchlist import EpisodeCheckResult
from nyanbar.services.episode_checker import (
    EpisodeChecker,
    EpisodeCheckScheduler,
    episode_key,
    latest_episode,
    notify_new_episodes,
)
from nyanbar.services.store import JsonStore
from nyanbar.services.watchlist import NotificationLog


class FakeSearch:
    """Stands in for TorrentSearchService, answering by search term."""

    def __init__(self, titles_by_term=None, error: Exception = None):
        self.titles_by_term = titles_by_term or {}
        self.error = error
        self.requests: List[SearchRequest] = []
        self.gates: Dict[str, asyncio.Event] = {}

    async def search(self, request: SearchRequest) -> List[TorrentListing]:
        self.requests.append(request)
        gate = self.gates.get(request.raw_title)
        if gate is not None:
            await gate.wait()
        if self.error is not None:
            raise self.error
        return [
            TorrentListing(title=title, download_url="https://nyaa.si/download/1.torrent")
            for title in self.titles_by_term.get(request.raw_title, [])
        ]


def _anime(anime_id: int, english: str, season_year=None, season=None) -> dict:
    anime = {"id": anime_id, "title": {"english": english, "romaji": f"{english} romaji", "native": None}}
    if season_year:
        anime["seasonYear"] = season_year
    if season:
        anime["season"] = season
    return anime


@pytest.fixture
def store(tmp_path: Path) -> JsonStore:
    return JsonStore(tmp_path / "store.json")


# ---------------------------------------------------------------------------
# latest_episode
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    "titles, expected",
    [
        (["[ASW] Mono - Episode 5", "Mono E07 1080p", "Mono S01E06"], 7),
        (["Mono EP12", "Mono ep 3"], 12),
        (["[SubsPlease] Mono - 05 (1080p)"], 0),
        (["Mono E0"], 0),
        ([], 0),
    ],
)
def test_latest_episode(titles: List[str], expected: int) -> None:
    assert latest_episode(titles) == expected


# ---------------------------------------------------------------------------
# EpisodeChecker
# ---------------------------------------------------------------------------


class TestEpisodeChecker:
    @pytest.mark.asyncio
    async def test_check_anime_compares_with_stored_episode(self, store: JsonStore) -> None:
        search = FakeSearch({"Mono 2024 FALL": ["[ASW] Mono - Episode 5", "Mono E07 1080p"]})
        checker = EpisodeChecker(search, store, sleep=RecordingSleep())
        await checker.update_watched_episode(1, 5)

        result = await checker.check_anime(_anime(1, "Mono", 2024, "FALL"))

        assert search.requests == [SearchRequest(raw_title="Mono 2024 FALL")]
        assert result == EpisodeCheckResult(
            anime_id=1, anime_title="Mono", current_episode=5, latest_episode=7, has_new_episode=True
        )

    @pytest.mark.asyncio
    async def test_check_anime_without_episode_numbers(self, store: JsonStore) -> None:
        checker = EpisodeChecker(FakeSearch({"Mono": ["[SubsPlease] Mono - 05"]}), store)
        assert await checker.check_anime(_anime(1, "Mono")) is None

    @pytest.mark.asyncio
    async def test_check_anime_search_failure_is_none(self, store: JsonStore) -> None:
        checker = EpisodeChecker(FakeSearch(error=RuntimeError("nyaa down")), store)
        assert await checker.check_anime(_anime(1, "Mono")) is None

    @pytest.mark.asyncio
    async def test_check_all_stores_latest_and_spaces_requests(self, store: JsonStore) -> None:
        sleep = RecordingSleep()
        search = FakeSearch({"Mono": ["Mono E03"], "Frieren": ["Frieren E02"]})
        checker = EpisodeChecker(search, store, delay_seconds=3, sleep=sleep)
        await checker.update_watched_episode(2, 2)

        results = await checker.check_all([_anime(1, "Mono"), _anime(2, "Frieren")])

        assert [(r.anime_id, r.latest_episode) for r in results] == [(1, 3)]
        assert sleep.calls == [3]
        stored = await checker.get_stored_episode(1)
        assert stored.last_checked_episode == 3
        assert (await store.get(episode_key(2)))["last_checked_episode"] == 2

    @pytest.mark.asyncio
    async def test_check_all_is_not_reentrant(self, store: JsonStore) -> None:
        search = FakeSearch({"Mono": ["Mono E03"]})
        search.gates["Mono"] = asyncio.Event()
        checker = EpisodeChecker(search, store, sleep=RecordingSleep())

        first = asyncio.create_task(checker.check_all([_anime(1, "Mono")]))
        while not search.requests:
            await asyncio.sleep(0)

        assert checker.is_checking is True
        assert await checker.check_all([_anime(1, "Mono")]) == []

        search.gates["Mono"].set()
        assert len(await first) == 1
        assert checker.is_checking is False
        assert len(search.requests) == 1

    @pytest.mark.asyncio
    async def test_empty_list(self, store: JsonStore) -> None:
        search = FakeSearch()
        assert await EpisodeChecker(search, store).check_all([]) == []
        assert search.requests == []

    @pytest.mark.asyncio
    async def test_corrupt_stored_episode(self, store: JsonStore) -> None:
        await store.set(episode_key(1), {"last_checked_episode": 4})
        assert await EpisodeChecker(FakeSearch(), store).get_stored_episode(1) is None


# ---------------------------------------------------------------------------
# Notifications and scheduling
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_notify_new_episodes_records_each_result(store: JsonStore) -> None:
    log = NotificationLog(store)
    notify = notify_new_episodes(log)

    await notify([
        EpisodeCheckResult(1, "Mono", 2, 3, True),
        EpisodeCheckResult(2, "Frieren", 0, 9, True),
    ])

    notifications = await log.list()
    assert [(n.anime_id, n.episode) for n in notifications] == [(2, 9), (1, 3)]
    assert all(not n.read for n in notifications)


class TestEpisodeCheckScheduler:
    @pytest.mark.asyncio
    async def test_run_once_hands_results_to_callback(self, store: JsonStore) -> None:
        received = []

        async def on_results(results):
            received.append(results)

        checker = EpisodeChecker(FakeSearch({"Mono": ["Mono E03"]}), store, sleep=RecordingSleep())
        scheduler = EpisodeCheckScheduler(checker, on_results=on_results)

        results = await scheduler.run_once([_anime(1, "Mono")])

        assert received == [results]
        assert results[0].latest_episode == 3

    @pytest.mark.asyncio
    async def test_callback_skipped_when_nothing_new(self, store: JsonStore) -> None:
        received = []

        async def on_results(results):
            received.append(results)

        scheduler = EpisodeCheckScheduler(EpisodeChecker(FakeSearch(), store), on_results=on_results)
        assert await scheduler.run_once([_anime(1, "Mono")]) == []
        assert received == []

    @pytest.mark.asyncio
    async def test_start_checks_immediately_and_stop_cancels(self, store: JsonStore) -> None:
        search = FakeSearch({"Mono": ["Mono E03"]})
        scheduler = EpisodeCheckScheduler(EpisodeChecker(search, store, sleep=RecordingSleep()))

        scheduler.start([_anime(1, "Mono")], interval_minutes=30)
        assert scheduler.running is True
        assert scheduler.interval_minutes == 30

        while not search.requests:
            await asyncio.sleep(0)

        scheduler.stop()
        assert scheduler.running is False
        await asyncio.wait_for(scheduler.wait_for_checks(), timeout=5)

    @pytest.mark.asyncio
    async def test_start_rejects_non_positive_interval(self, store: JsonStore) -> None:
        scheduler = EpisodeCheckScheduler(EpisodeChecker(FakeSearch(), store))
        with pytest.raises(ValueError):
            scheduler.start([_anime(1, "Mono")], interval_minutes=0)
        assert scheduler.running is False

    @pytest.mark.asyncio
    async def test_restart_during_check_keeps_its_notifications(self, store: JsonStore) -> None:
        search = FakeSearch({"Mono": ["Mono E07"], "Frieren": ["Frieren E03"]})
        search.gates["Frieren"] = asyncio.Event()
        log = NotificationLog(store)
        checker = EpisodeChecker(search, store, sleep=RecordingSleep())
        scheduler = EpisodeCheckScheduler(checker, on_results=notify_new_episodes(log))
        anime_list = [_anime(1, "Mono"), _anime(2, "Frieren")]

        scheduler.start(anime_list, interval_minutes=30)
        while len(search.requests) < 2:
            await asyncio.sleep(0.01)
        # Mono is already stored as seen while Frieren is still being searched
        assert (await checker.get_stored_episode(1)).last_checked_episode == 7

        scheduler.start(anime_list, interval_minutes=60)
        await asyncio.sleep(0.01)
        assert len(search.requests) == 2
        assert scheduler.interval_minutes == 60

        search.gates["Frieren"].set()
        await asyncio.wait_for(scheduler.wait_for_checks(), timeout=5)

        assert sorted((n.anime_id, n.episode) for n in await log.list()) == [(1, 7), (2, 3)]
        assert scheduler.running is True
        scheduler.stop()

    @pytest.mark.asyncio
    async def test_stop_during_check_lets_it_finish(self, store: JsonStore) -> None:
        search = FakeSearch({"Mono": ["Mono E04"]})
        search.gates["Mono"] = asyncio.Event()
        log = NotificationLog(store)
        checker = EpisodeChecker(search, store, sleep=RecordingSleep())
        scheduler = EpisodeCheckScheduler(checker, on_results=notify_new_episodes(log))

        scheduler.start([_anime(1, "Mono")], interval_minutes=30)
        while not search.requests:
            await asyncio.sleep(0)

        scheduler.stop()
        assert scheduler.running is False
        assert checker.is_checking is True

        search.gates["Mono"].set()
        await asyncio.wait_for(scheduler.wait_for_checks(), timeout=5)

        assert [(n.anime_id, n.episode) for n in await log.list()] == [(1, 4)]
        assert (await checker.get_stored_episode(1)).last_checked_episode == 4
        assert checker.is_checking is False
