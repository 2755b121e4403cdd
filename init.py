"""Application startup orchestration helpers."""

from __future__ import annotations

import logging
from typing import Callable

from db import utils as db_utils

logger = logging.getLogger(__name__)


def initialize_app(
    *,
    ensure_dirs: Callable[[], None],
    init_db: Callable[[db_utils.GamesDatabase], None],
    database: db_utils.GamesDatabase,
) -> db_utils.GamesDatabase:
    """Create the cover directories and the ``games`` table when missing."""

    ensure_dirs()
    try:
        init_db(database)
    except Exception:
        logger.exception("Failed to prepare the games database during startup")
        raise
    return database


__all__ = ["initialize_app"]
