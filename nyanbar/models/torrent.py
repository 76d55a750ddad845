"""
Torrent listing models for Nyanbar.
"""

import re
from dataclasses import dataclass
from typing import Optional

EPISODE_ALL = "all"


@dataclass
class TorrentListing:
    """One row scraped from the torrent index."""
    title: str
    download_url: str
    size: str = ""
    date: str = ""
    seeders: int = 0
    leechers: int = 0
    magnet_url: Optional[str] = None
    view_url: Optional[str] = None

    def to_dict(self) -> dict:
        # Key names match what the web client reads
        return {
            'title': self.title,
            'size': self.size,
            'date': self.date,
            'seeds': self.seeders,
            'leeches': self.leechers,
            'downloadUrl': self.download_url,
            'magnetUrl': self.magnet_url,
            'viewUrl': self.view_url,
        }


@dataclass
class SearchRequest:
    """A torrent search for one anime, optionally narrowed to one episode."""
    raw_title: str
    episode: Optional[int] = None  # None means every episode

    @property
    def all_episodes(self) -> bool:
        return self.episode is None

    @classmethod
    def from_params(cls, raw_title: str, episode: Optional[str] = None) -> "SearchRequest":
        return cls(raw_title=raw_title, episode=parse_episode(episode))


def parse_episode(value: Optional[str]) -> Optional[int]:
    """Parse an episode query value; missing or "all" means every episode."""
    if value is None:
        return None

    value = value.strip()
    if not value or value.lower() == EPISODE_ALL:
        return None

    if not re.fullmatch(r'[0-9]+', value):
        raise ValueError(f"Invalid episode selector: {value!r}")

    return int(value)
