# chat_backend/core/logging.py

import logging
import sys
from typing import Dict, Optional

from chat_backend.core.config import settings


CHAT_LOG_FORMAT = "%(asctime)s | %(levelname)-7s | %(name)s | %(message)s"

# Third-party loggers and the level they are held at
LIBRARY_LEVELS: Dict[str, int] = {
    "asyncpg": logging.WARNING,
    "redis": logging.WARNING,
    "uvicorn": logging.INFO,
    "uvicorn.error": logging.INFO,
    "uvicorn.access": logging.WARNING,
}


def setup_logging(level: Optional[str] = None) -> None:
    """
    Configure logging for the chat service.

    `level` overrides settings.LOG_LEVEL. Unknown names fall back to INFO.
    When a handler is already installed (Uvicorn, pytest) only the level
    is applied.
    """
    resolved = getattr(logging, (level or settings.LOG_LEVEL).upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(resolved)

    for name, library_level in LIBRARY_LEVELS.items():
        logging.getLogger(name).setLevel(library_level)

    if root_logger.handlers:
        return

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(CHAT_LOG_FORMAT))
    root_logger.addHandler(handler)


def get_logger(name: Optional[str] = None) -> logging.Logger:
    return logging.getLogger(name)
