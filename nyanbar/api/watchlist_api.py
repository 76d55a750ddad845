"""
API endpoints for the watch list, episode checking and notifications
"""

import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel, Field

from ..config import EPISODE_CHECK_INTERVAL_MINUTES
from ..services.episode_checker import EpisodeChecker, EpisodeCheckScheduler, notify_new_episodes
from ..services.watchlist import NotificationLog, WatchList

logger = logging.getLogger("nyanbar.api.watchlist")

router = APIRouter(prefix="/api", tags=["watchlist"])


class WatchedEpisodeRequest(BaseModel):
    episode: int = Field(ge=0)


class MonitorRequest(BaseModel):
    interval_minutes: float = Field(default=EPISODE_CHECK_INTERVAL_MINUTES, gt=0)


def get_watch_list(request: Request) -> WatchList:
    return request.app.state.watch_list


def get_notifications(request: Request) -> NotificationLog:
    return request.app.state.notifications


def get_episode_checker(request: Request) -> EpisodeChecker:
    return request.app.state.episode_checker


def get_scheduler(request: Request) -> EpisodeCheckScheduler:
    return request.app.state.episode_scheduler


@router.get("/watchlist")
async def list_watch_list(request: Request):
    return await get_watch_list(request).list()


@router.post("/watchlist")
async def add_to_watch_list(anime: Dict[str, Any], request: Request):
    """Save an anime (an AniList record) to the watch list"""
    try:
        added = await get_watch_list(request).add(anime)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"added": added, "anime_id": anime["id"]}


@router.post("/watchlist/toggle")
async def toggle_watch_list(anime: Dict[str, Any], request: Request):
    """Add the anime if it is not saved yet, otherwise remove it"""
    try:
        on_list = await get_watch_list(request).toggle(anime)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"on_list": on_list, "anime_id": anime["id"]}


@router.get("/watchlist/{anime_id}")
async def watch_list_status(anime_id: int, request: Request):
    return {"on_list": await get_watch_list(request).contains(anime_id), "anime_id": anime_id}


@router.delete("/watchlist/monitor")
async def stop_monitoring(request: Request):
    get_scheduler(request).stop()
    return {"running": False}


@router.delete("/watchlist/{anime_id}")
async def remove_from_watch_list(anime_id: int, request: Request):
    if not await get_watch_list(request).remove(anime_id):
        raise HTTPException(status_code=404, detail="Anime is not on the watch list")
    return {"removed": True, "anime_id": anime_id}


@router.put("/watchlist/{anime_id}/episode")
async def update_watched_episode(anime_id: int, body: WatchedEpisodeRequest, request: Request):
    """Record the last episode the user has seen"""
    data = await get_episode_checker(request).update_watched_episode(anime_id, body.episode)
    return data.to_dict()


@router.post("/watchlist/check")
async def check_for_new_episodes(request: Request):
    """Check the watch list for new episodes right now"""
    anime_list = await get_watch_list(request).list()
    results = await get_episode_checker(request).manual_check(anime_list)
    await notify_new_episodes(get_notifications(request))(results)

    logger.info(f"🔔 Manual episode check found {len(results)} new episodes")
    return {"results": [result.to_dict() for result in results]}


@router.post("/watchlist/monitor")
async def start_monitoring(request: Request, body: Optional[MonitorRequest] = None):
    """Start periodic new-episode checks over the current watch list"""
    body = body or MonitorRequest()
    anime_list = await get_watch_list(request).list()
    if not anime_list:
        raise HTTPException(status_code=400, detail="Watch list is empty")

    scheduler = get_scheduler(request)
    scheduler.start(anime_list, body.interval_minutes)
    return {"running": True, "interval_minutes": body.interval_minutes, "anime_count": len(anime_list)}


@router.get("/notifications")
async def list_notifications(request: Request):
    notifications = await get_notifications(request).list()
    return {
        "notifications": [n.to_dict() for n in notifications],
        "unread_count": sum(1 for n in notifications if not n.read),
    }


@router.post("/notifications/read-all")
async def mark_all_notifications_read(request: Request):
    marked = await get_notifications(request).mark_all_read()
    return {"marked": marked}


@router.post("/notifications/{notification_id}/read")
async def mark_notification_read(notification_id: str, request: Request):
    notification = await get_notifications(request).mark_read(notification_id)
    if notification is None:
        raise HTTPException(status_code=404, detail="Notification not found")
    return notification.to_dict()


@router.delete("/notifications/{notification_id}")
async def remove_notification(notification_id: str, request: Request):
    if not await get_notifications(request).remove(notification_id):
        raise HTTPException(status_code=404, detail="Notification not found")
    return {"removed": True}


@router.delete("/notifications")
async def clear_notifications(request: Request):
    await get_notifications(request).clear()
    return {"cleared": True}
