"""
Video quality tiers and display ordering for torrent listings.
"""

import re
from typing import List, Optional

from ..models.torrent import TorrentListing

QUALITY_4K = 4
QUALITY_1080P = 3
QUALITY_720P = 2
QUALITY_SD = 1

QUALITY_FILTERS = {
    'all': None,
    '4k': QUALITY_4K,
    '1080p': QUALITY_1080P,
    '720p': QUALITY_720P,
    '480p': QUALITY_SD,
}

SORT_OPTIONS = ('default', 'seeders', 'size-desc', 'size-asc')

SIZE_UNITS = {
    'B': 1,
    'KB': 1e3,
    'MB': 1e6,
    'GB': 1e9,
    'TB': 1e12,
    'KIB': 1024,
    'MIB': 1024 ** 2,
    'GIB': 1024 ** 3,
    'TIB': 1024 ** 4,
}

_SIZE_PATTERN = re.compile(r'^([\d.]+)\s*([KMGT]?I?B)$', re.IGNORECASE)


def quality_tier(title: str) -> int:
    """Quality tier of a release title; unknown resolutions rank as 720p."""
    lower_title = title.lower()

    if any(marker in lower_title for marker in ('4k', '2160p', 'uhd')):
        return QUALITY_4K
    if any(marker in lower_title for marker in ('1080p', 'fhd')):
        return QUALITY_1080P
    if any(marker in lower_title for marker in ('720p', 'hd')):
        return QUALITY_720P
    if any(marker in lower_title for marker in ('480p', '360p', '240p')):
        return QUALITY_SD
    return QUALITY_720P


def quality_label(title: str) -> str:
    """Short quality badge text for a release title."""
    lower_title = title.lower()

    if any(marker in lower_title for marker in ('4k', '2160p', 'uhd')):
        return "4K"
    if any(marker in lower_title for marker in ('1080p', 'fhd')):
        return "1080p"
    if any(marker in lower_title for marker in ('720p', 'hd')):
        return "720p"
    if '480p' in lower_title:
        return "480p"
    if any(marker in lower_title for marker in ('360p', '240p')):
        return "SD"
    return "HD"


def parse_size(size: str) -> float:
    """Convert a size like "1.2 GiB" or "700 MB" to bytes; unparseable sizes are 0."""
    match = _SIZE_PATTERN.match(size.strip())
    if not match:
        return 0
    try:
        value = float(match.group(1))
    except ValueError:
        return 0
    return value * SIZE_UNITS.get(match.group(2).upper(), 1)


def arrange_for_display(
    torrents: List[TorrentListing],
    quality: Optional[str] = None,
    sort: Optional[str] = None,
) -> List[TorrentListing]:
    """
    Apply the quality filter and sort option, then group by quality tier.

    The sort option orders listings inside each tier; quality tier always
    wins because the tier sort runs last and Python's sort is stable.
    """
    quality = (quality or 'all').lower()
    sort = (sort or 'default').lower()
    if quality not in QUALITY_FILTERS:
        raise ValueError(f"Unknown quality filter: {quality!r}")
    if sort not in SORT_OPTIONS:
        raise ValueError(f"Unknown sort option: {sort!r}")

    arranged = list(torrents)

    wanted_tier = QUALITY_FILTERS[quality]
    if wanted_tier is not None:
        arranged = [t for t in arranged if quality_tier(t.title) == wanted_tier]

    if sort == 'seeders':
        arranged.sort(key=lambda t: t.seeders, reverse=True)
    elif sort == 'size-desc':
        arranged.sort(key=lambda t: parse_size(t.size), reverse=True)
    elif sort == 'size-asc':
        arranged.sort(key=lambda t: parse_size(t.size))

    arranged.sort(key=lambda t: quality_tier(t.title), reverse=True)
    return arranged
