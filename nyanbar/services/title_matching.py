"""
Title matching for anime torrent search.

Turns a free-text anime title into search queries, decides whether a scraped
torrent title belongs to the requested anime and episode, and orders the
survivors by release group preference and seeders.
"""

import re
from typing import List, Optional

from ..models.torrent import TorrentListing

# Release groups in order of preference (index 0 = best)
PREFERRED_ENCODERS = [
    "ASW",
    "EMBER",
    "Anime Time",
    "SubsPlease",
    "Erai-Raws",
]

# Tokens carrying these markers are never episode numbers
QUALITY_INDICATORS = [
    "10BIT",
    "1080P",
    "720P",
    "480P",
    "X265",
    "X264",
    "HEVC",
    "AAC",
    "DDP",
    "WEBRIP",
    "BLURAY",
    "HDRIP",
]

BATCH_PATTERN = re.compile(r'batch|complete|全集|全話|all episodes|volumes?', re.IGNORECASE)
EPISODE_RANGE_PATTERN = re.compile(r'\b([0-9]{1,3})\s*[-~]\s*([0-9]{1,3})\b')
EPISODE_NUMBER_PATTERN = re.compile(r'^[0-9]{1,3}$')

_YEAR_PATTERNS = [
    re.compile(r'\s+\d{4}$'),       # "Mono 2024"
    re.compile(r'^\d{4}\s+'),       # "2024 Mono"
    re.compile(r'\s+\(\d{4}\)'),    # "Mono (2024)"
    re.compile(r'\s+\[\d{4}\]'),    # "Mono [2024]"
]


def _strip_years(title: str) -> str:
    cleaned = title
    for pattern in _YEAR_PATTERNS:
        cleaned = pattern.sub("", cleaned, count=1)
    return re.sub(r'\s+', ' ', cleaned).strip()


def normalize_title(title: str) -> str:
    """Strip release years and collapse whitespace so a title works as a search key."""
    cleaned = title or ""
    # Repeat until stable so "Mono 2024 2023" ends up as "Mono" in one call
    while True:
        stripped = _strip_years(cleaned)
        if stripped == cleaned:
            return stripped
        cleaned = stripped


def build_query_variants(clean_title: str, episode: Optional[int] = None) -> List[str]:
    """Build the ordered list of search strings to send to the index."""
    if episode is None:
        return [
            clean_title,
            re.sub(r'\s+', ' ', clean_title).strip(),
        ]

    padded = f"{episode:02d}"
    return [
        # Encoder-specific patterns first, they disambiguate best
        f"[ASW] {clean_title} - {episode}",
        f"[ASW] {clean_title} {episode}",
        f"[EMBER] {clean_title} S01E{padded}",
        f"[EMBER] {clean_title} {episode}",
        f"[Anime Time] {clean_title} S01E{padded}",
        f"[Anime Time] {clean_title} {episode}",
        f"[Erai-raws] {clean_title} - {episode}",
        f"[Erai-raws] {clean_title} {episode}",
        # General patterns
        f"{clean_title} - {episode}",
        f"{clean_title} {episode}",
        f"{clean_title} EP{padded}",
        f"{clean_title} E{padded}",
        f"{clean_title} [{padded}]",
        f"{clean_title} ({padded})",
    ]


def search_terms(search_title: str) -> List[str]:
    """Uppercase whitespace-separated terms of a search title."""
    return [term for term in search_title.upper().split() if term]


def is_batch_release(torrent_title: str) -> bool:
    return bool(BATCH_PATTERN.search(torrent_title))


def extract_episode_numbers(torrent_title: str) -> List[int]:
    """Collect standalone 1-3 digit numbers, ignoring resolution and codec tokens."""
    numbers = []
    for word in torrent_title.upper().split():
        if any(indicator in word for indicator in QUALITY_INDICATORS):
            continue
        if EPISODE_NUMBER_PATTERN.match(word):
            numbers.append(int(word))
    return numbers


def matches_episode(torrent_title: str, episode: int) -> bool:
    """
    Check that a torrent title carries exactly the requested episode.

    A numeric range only counts for batch releases that cover the episode.
    Otherwise the title must contain a single bare number equal to the
    episode; titles with several candidate numbers are rejected as ambiguous.
    """
    torrent_upper = torrent_title.upper()

    range_match = EPISODE_RANGE_PATTERN.search(torrent_upper)
    if range_match:
        start = int(range_match.group(1))
        end = int(range_match.group(2))
        return is_batch_release(torrent_upper) and start <= episode <= end

    numbers = extract_episode_numbers(torrent_upper)
    return len(numbers) == 1 and numbers[0] == episode


def is_relevant_torrent(torrent_title: str, search_title: str, episode: Optional[int] = None) -> bool:
    """Decide whether a scraped torrent title belongs to the anime (and episode) searched for."""
    torrent_upper = torrent_title.upper()
    terms = search_terms(search_title)

    if episode is None:
        # All episodes: lenient, upstream often renders titles differently
        if len(terms) <= 1:
            return all(term in torrent_upper for term in terms)
        return any(term in torrent_upper for term in terms)

    if not all(term in torrent_upper for term in terms):
        return False

    return matches_episode(torrent_upper, episode)


def encoder_priority(title: str) -> int:
    """Index of the first preferred release group named in the title (lower is better)."""
    title_upper = title.upper()
    for index, encoder in enumerate(PREFERRED_ENCODERS):
        if encoder.upper() in title_upper:
            return index
    return len(PREFERRED_ENCODERS)


def rank_torrents(torrents: List[TorrentListing]) -> List[TorrentListing]:
    """Order by encoder priority, then by seeders within each priority group."""
    return sorted(torrents, key=lambda t: (encoder_priority(t.title), -t.seeders))
