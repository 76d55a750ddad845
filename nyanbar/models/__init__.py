"""
Data models for Nyanbar.
"""

from .torrent import TorrentListing, SearchRequest, parse_episode, EPISODE_ALL
from .watchlist import (
    EpisodeCheckResult,
    EpisodeNotification,
    StoredEpisodeData,
    anime_display_title,
)

__all__ = [
    'TorrentListing',
    'SearchRequest',
    'parse_episode',
    'EPISODE_ALL',
    'EpisodeCheckResult',
    'EpisodeNotification',
    'StoredEpisodeData',
    'anime_display_title',
]
