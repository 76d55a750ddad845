"""
Watch list and notification log management for Nyanbar.

Every change is a single ``JsonStore.update`` call, so concurrent requests
and the scheduled episode check never overwrite each other's writes.
"""

import logging
from typing import Any, Callable, Dict, List, Optional, Tuple, TypeVar

from ..models.watchlist import EpisodeNotification
from .store import JsonStore

logger = logging.getLogger("nyanbar.services.watchlist")

WATCH_LIST_KEY = "nyanbar-custom-anime-list"
NOTIFICATIONS_KEY = "nyanbar-episode-notifications"

T = TypeVar("T")


def _as_entries(value: Any) -> List[Dict[str, Any]]:
    if not isinstance(value, list):
        if value is not None:
            logger.warning("⚠️  Watch list in store is not a list, ignoring it")
        return []
    return list(value)


def _anime_id(anime: Dict[str, Any]) -> int:
    anime_id = anime.get('id')
    if not isinstance(anime_id, int):
        raise ValueError("Anime entry needs an integer 'id'")
    return anime_id


def _parse_notifications(raw: Any) -> List[EpisodeNotification]:
    if not isinstance(raw, list):
        return []

    notifications = []
    for item in raw:
        try:
            notifications.append(EpisodeNotification.from_dict(item))
        except (KeyError, TypeError, ValueError) as e:
            logger.warning(f"⚠️  Skipping malformed notification {item!r}: {e}")
    return notifications


class WatchList:
    """The user's saved anime, kept in insertion order."""

    def __init__(self, store: JsonStore):
        self.store = store

    async def list(self) -> List[Dict[str, Any]]:
        return _as_entries(await self.store.get(WATCH_LIST_KEY, []))

    async def contains(self, anime_id: int) -> bool:
        return any(entry.get('id') == anime_id for entry in await self.list())

    async def add(self, anime: Dict[str, Any]) -> bool:
        """Add an anime. Returns False if it was already on the list."""
        anime_id = _anime_id(anime)

        def _add(value):
            entries = _as_entries(value)
            if any(entry.get('id') == anime_id for entry in entries):
                return entries, False
            return entries + [anime], True

        added = await self.store.update(WATCH_LIST_KEY, _add, [])
        if added:
            logger.info(f"➕ Added anime {anime_id} to watch list")
        return added

    async def remove(self, anime_id: int) -> bool:
        """Remove an anime. Returns False if it was not on the list."""

        def _remove(value):
            entries = _as_entries(value)
            remaining = [entry for entry in entries if entry.get('id') != anime_id]
            return remaining, len(remaining) != len(entries)

        removed = await self.store.update(WATCH_LIST_KEY, _remove, [])
        if removed:
            logger.info(f"➖ Removed anime {anime_id} from watch list")
        return removed

    async def toggle(self, anime: Dict[str, Any]) -> bool:
        """Add the anime if missing, otherwise remove it. Returns True if now on the list."""
        anime_id = _anime_id(anime)

        def _toggle(value):
            entries = _as_entries(value)
            remaining = [entry for entry in entries if entry.get('id') != anime_id]
            if len(remaining) != len(entries):
                return remaining, False
            return entries + [anime], True

        on_list = await self.store.update(WATCH_LIST_KEY, _toggle, [])
        logger.info(f"🔁 Anime {anime_id} {'added to' if on_list else 'removed from'} watch list")
        return on_list


class NotificationLog:
    """New-episode notifications, newest first."""

    def __init__(self, store: JsonStore):
        self.store = store

    async def list(self) -> List[EpisodeNotification]:
        return _parse_notifications(await self.store.get(NOTIFICATIONS_KEY, []))

    async def _modify(self, fn: Callable[[List[EpisodeNotification]], T]) -> T:
        """Apply ``fn`` to the stored notifications in place and save them atomically."""

        def _apply(raw) -> Tuple[List[dict], T]:
            notifications = _parse_notifications(raw)
            result = fn(notifications)
            return [n.to_dict() for n in notifications], result

        return await self.store.update(NOTIFICATIONS_KEY, _apply, [])

    async def unread_count(self) -> int:
        return sum(1 for n in await self.list() if not n.read)

    async def add(self, anime_id: int, anime_title: str, episode: int) -> EpisodeNotification:
        notification = EpisodeNotification.create(anime_id, anime_title, episode)
        await self._modify(lambda notifications: notifications.insert(0, notification))
        logger.info(f"🔔 New episode notification: {anime_title} episode {episode}")
        return notification

    async def mark_read(self, notification_id: str) -> Optional[EpisodeNotification]:
        def _mark(notifications):
            found = None
            for notification in notifications:
                if notification.id == notification_id:
                    notification.read = True
                    found = notification
            return found

        return await self._modify(_mark)

    async def mark_all_read(self) -> int:
        """Mark everything read. Returns how many were unread."""
        def _mark_all(notifications):
            changed = sum(1 for n in notifications if not n.read)
            for notification in notifications:
                notification.read = True
            return changed

        return await self._modify(_mark_all)

    async def remove(self, notification_id: str) -> bool:
        def _remove(notifications):
            remaining = [n for n in notifications if n.id != notification_id]
            removed = len(remaining) != len(notifications)
            notifications[:] = remaining
            return removed

        return await self._modify(_remove)

    async def clear(self) -> None:
        await self._modify(lambda notifications: notifications.clear())
