# chatsync/core/logging.py

import logging
import sys
from typing import Optional

from chatsync.core.config import settings

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"

# Third-party loggers and the level they are held at
LIBRARY_LEVELS = {
    "redis": logging.WARNING,
    "asyncio": logging.WARNING,
    "uvicorn": logging.INFO,
    "uvicorn.error": logging.INFO,
    "uvicorn.access": logging.WARNING,
}


def resolve_level(name: Optional[str]) -> int:
    """Level for a LOG_LEVEL name; unknown names fall back to INFO."""
    level = logging.getLevelName((name or "INFO").upper())
    return level if isinstance(level, int) else logging.INFO


def setup_logging(level_name: Optional[str] = None) -> None:
    """
    Configure logging for the chat service.

    The chatsync loggers follow LOG_LEVEL (settings, or level_name when
    given). The redis client and Uvicorn are held at LIBRARY_LEVELS so a
    DEBUG run only shows the sync engine's own trace (snapshot commits,
    subscription transitions, dropped notifications).

    A stdout handler is installed only if the root logger has none, so the
    call is safe under Uvicorn and when repeated.
    """
    level = resolve_level(level_name or settings.LOG_LEVEL)

    root_logger = logging.getLogger()
    if not root_logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root_logger.addHandler(handler)
    root_logger.setLevel(level)

    logging.getLogger("chatsync").setLevel(level)
    for name, library_level in LIBRARY_LEVELS.items():
        logging.getLogger(name).setLevel(library_level)
