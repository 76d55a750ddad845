"""
API endpoints for anime torrent search
"""

import logging
from typing import Optional

from fastapi import APIRouter, HTTPException, Request

from ..models.torrent import SearchRequest
from ..services.quality import arrange_for_display, quality_label
from ..services.torrent_search import TorrentSearchService

logger = logging.getLogger("nyanbar.api.torrents")

router = APIRouter(prefix="/api/torrents", tags=["torrents"])


def get_torrent_search(request: Request) -> TorrentSearchService:
    return request.app.state.torrent_search


@router.get("/{anime_title:path}")
async def search_torrents(
    anime_title: str,
    request: Request,
    episode: Optional[str] = None,
    quality: Optional[str] = None,
    sort: Optional[str] = None,
):
    """Find torrents for an anime, optionally for one episode"""
    try:
        search_request = SearchRequest.from_params(anime_title, episode)
    except ValueError:
        raise HTTPException(status_code=400, detail="episode must be a number or 'all'")

    try:
        torrents = await get_torrent_search(request).search(search_request)
    except Exception as e:
        logger.error(f"❌ Error fetching torrents for {anime_title!r}: {e}")
        raise HTTPException(status_code=500, detail="Failed to fetch torrent data")

    if quality is not None or sort is not None:
        try:
            torrents = arrange_for_display(torrents, quality=quality, sort=sort)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))

    return [{**torrent.to_dict(), "quality": quality_label(torrent.title)} for torrent in torrents]
