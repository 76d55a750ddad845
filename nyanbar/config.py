"""
Configuration module for Nyanbar application.
"""

import logging
import os
import sys
from pathlib import Path

# Application settings
APP_NAME = "Nyanbar"
VERSION = "0.1.0"
DEBUG = os.getenv("DEBUG", "false").lower() == "true"
HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", 5000))

# Paths
BASE_DIR = Path(__file__).parent.parent
LOGS_DIR = Path(os.getenv("LOGS_DIR", BASE_DIR / "logs"))
DATA_DIR = Path(os.getenv("DATA_DIR", BASE_DIR / "data"))
STORE_FILE = Path(os.getenv("STORE_FILE", DATA_DIR / "nyanbar_store.json"))

# Logging configuration
LOG_LEVEL = logging.INFO if not DEBUG else logging.DEBUG
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
LOG_FILE = LOGS_DIR / "nyanbar.log"

# Upstream services
NYAA_BASE_URL = os.getenv("NYAA_BASE_URL", "https://nyaa.si")
ANILIST_API_URL = os.getenv("ANILIST_API_URL", "https://graphql.anilist.co")
REQUEST_TIMEOUT = float(os.getenv("REQUEST_TIMEOUT", 10))
USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/91.0.4472.124 Safari/537.36"
)

# Server-side metadata cache
CACHE_DURATION = int(os.getenv("CACHE_DURATION", 300))  # 5 minutes

# Torrent search
MAX_TORRENT_RESULTS = 40
EPISODE_SCAN_DEPTH = 7  # rows read per variant for a specific episode
ALL_EPISODES_SCAN_DEPTH = 30
EPISODE_VARIANT_DELAY = 0.5
RATE_LIMIT_BACKOFF = 5.0
ALL_EPISODES_VARIANT_DELAY = 1.0

# Episode checker
EPISODE_CHECK_INTERVAL_MINUTES = int(os.getenv("EPISODE_CHECK_INTERVAL_MINUTES", 30))
EPISODE_CHECK_DELAY = float(os.getenv("EPISODE_CHECK_DELAY", 3))

# CORS settings
CORS_ALLOWED_ORIGINS = [
    origin.strip()
    for origin in os.getenv("CORS_ALLOWED_ORIGINS", "*").split(",")
    if origin.strip()
]


# Libraries that log every request at INFO
QUIET_LOGGERS = ('httpx', 'httpcore', 'uvicorn.access', 'watchfiles.main')


def setup_logging():
    """Send nyanbar logs to stdout and to LOG_FILE, and quiet request-level library logs."""
    LOGS_DIR.mkdir(parents=True, exist_ok=True)

    handlers = [
        logging.FileHandler(LOG_FILE, encoding='utf-8'),
        logging.StreamHandler(sys.stdout),
    ]
    for handler in handlers:
        handler.setLevel(LOG_LEVEL)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))

    logging.basicConfig(level=LOG_LEVEL, handlers=handlers, format=LOG_FORMAT)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logger = logging.getLogger("nyanbar")
    logger.info(f"📝 Logging to {LOG_FILE} at level {logging.getLevelName(LOG_LEVEL)}")
    return logger
