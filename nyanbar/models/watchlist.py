"""
Watch list, episode tracking and notification models for Nyanbar.
"""

import time
from dataclasses import dataclass, asdict
from typing import Any, Dict, Optional


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


def anime_display_title(anime: Dict[str, Any]) -> Optional[str]:
    """Pick the English, romaji or native title of an AniList record."""
    titles = anime.get('title') or {}
    return titles.get('english') or titles.get('romaji') or titles.get('native')


@dataclass
class EpisodeCheckResult:
    """Outcome of checking one watched anime for new episodes."""
    anime_id: int
    anime_title: str
    current_episode: int
    latest_episode: int
    has_new_episode: bool

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class StoredEpisodeData:
    """Last episode seen for an anime."""
    anime_id: int
    last_checked_episode: int
    last_checked_time: int

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "StoredEpisodeData":
        return cls(
            anime_id=int(data['anime_id']),
            last_checked_episode=int(data.get('last_checked_episode', 0)),
            last_checked_time=int(data.get('last_checked_time', 0)),
        )


@dataclass
class EpisodeNotification:
    """A new-episode notification shown to the user."""
    id: str
    anime_id: int
    anime_title: str
    episode: int
    timestamp: int
    read: bool = False

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "EpisodeNotification":
        return cls(
            id=str(data['id']),
            anime_id=int(data['anime_id']),
            anime_title=str(data.get('anime_title', '')),
            episode=int(data['episode']),
            timestamp=int(data.get('timestamp', 0)),
            read=bool(data.get('read', False)),
        )

    @classmethod
    def create(cls, anime_id: int, anime_title: str, episode: int) -> "EpisodeNotification":
        timestamp = now_ms()
        return cls(
            id=f"{anime_id}-{episode}-{timestamp}",
            anime_id=anime_id,
            anime_title=anime_title,
            episode=episode,
            timestamp=timestamp,
        )
