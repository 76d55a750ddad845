"""
API endpoints for anime metadata (AniList pass-through)
"""

import logging
from typing import Optional

from fastapi import APIRouter, HTTPException, Request

from ..services.anilist import AniListClient, AniListError, AnimeNotFoundError

logger = logging.getLogger("nyanbar.api.anime")

router = APIRouter(prefix="/api", tags=["anime"])


def get_anilist(request: Request) -> AniListClient:
    return request.app.state.anilist


@router.get("/anime/{anime_id}")
async def get_anime(anime_id: int, request: Request):
    """Get one anime by its AniList id"""
    try:
        return await get_anilist(request).get_anime(anime_id)
    except AnimeNotFoundError:
        raise HTTPException(status_code=404, detail="Anime not found")
    except AniListError as e:
        logger.error(f"❌ Error fetching anime {anime_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to fetch anime data")


@router.get("/search")
async def search_anime(request: Request, query: Optional[str] = None):
    """Search anime by title"""
    if not query or not query.strip():
        raise HTTPException(status_code=400, detail="Search query is required")

    try:
        return await get_anilist(request).search(query)
    except AniListError as e:
        logger.error(f"❌ Error searching anime: {e}")
        raise HTTPException(status_code=500, detail="Failed to search anime")


@router.get("/trending")
async def trending_anime(request: Request):
    try:
        return await get_anilist(request).trending()
    except AniListError as e:
        logger.error(f"❌ Error fetching trending anime: {e}")
        raise HTTPException(status_code=500, detail="Failed to fetch trending anime")


@router.get("/popular")
async def popular_anime(request: Request):
    try:
        return await get_anilist(request).popular()
    except AniListError as e:
        logger.error(f"❌ Error fetching popular anime: {e}")
        raise HTTPException(status_code=500, detail="Failed to fetch popular anime")
