"""
Nyanbar - Main Application Module

Anime metadata browser and torrent finder built with FastAPI.
"""

import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .config import APP_NAME, VERSION, STORE_FILE, CORS_ALLOWED_ORIGINS, setup_logging
from .services.anilist import AniListClient
from .services.episode_checker import EpisodeChecker, EpisodeCheckScheduler, notify_new_episodes
from .services.store import JsonStore
from .services.torrent_search import TorrentSearchService
from .services.watchlist import NotificationLog, WatchList
from .api.anime_api import router as anime_router
from .api.torrents_api import router as torrents_router
from .api.watchlist_api import router as watchlist_router

logger = logging.getLogger("nyanbar.main")


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    setup_logging()
    logger.info(f"🚀 {APP_NAME} startup completed")

    yield

    # Shutdown
    app.state.episode_scheduler.stop()
    await app.state.episode_scheduler.wait_for_checks()
    logger.info(f"🛑 {APP_NAME} shutting down")


def create_app(
    torrent_search: Optional[TorrentSearchService] = None,
    anilist: Optional[AniListClient] = None,
    store_path: Optional[Path] = None,
) -> FastAPI:
    """Build the application with its services attached to ``app.state``."""
    app = FastAPI(
        title=APP_NAME,
        description="Anime browser and torrent finder",
        version=VERSION,
        lifespan=lifespan
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=CORS_ALLOWED_ORIGINS,
        allow_credentials="*" not in CORS_ALLOWED_ORIGINS,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    store = JsonStore(store_path or STORE_FILE)
    app.state.torrent_search = torrent_search or TorrentSearchService()
    app.state.anilist = anilist or AniListClient()
    app.state.watch_list = WatchList(store)
    app.state.notifications = NotificationLog(store)
    app.state.episode_checker = EpisodeChecker(app.state.torrent_search, store)
    app.state.episode_scheduler = EpisodeCheckScheduler(
        app.state.episode_checker,
        on_results=notify_new_episodes(app.state.notifications),
    )

    app.include_router(anime_router)
    app.include_router(torrents_router)
    app.include_router(watchlist_router)

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return {
            "status": "healthy",
            "app": APP_NAME,
            "version": VERSION
        }

    logger.info(f"🎬 {APP_NAME} v{VERSION} initialized")
    return app


app = create_app()
