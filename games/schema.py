"""Table definition for persisted game records."""

from __future__ import annotations

import logging

from sqlalchemy import (
    BigInteger,
    Column,
    Float,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    text,
)
from sqlalchemy.engine import Engine

logger = logging.getLogger(__name__)

GAMES_TABLE = "games"

TIME_CATEGORIES: tuple[str, ...] = ("main", "extra", "completionist")
TIME_STATISTICS: tuple[str, ...] = ("avg", "polled", "median", "rushed", "leisure")
TIME_FIELDS: tuple[str, ...] = tuple(
    f"{category}_{statistic}"
    for category in TIME_CATEGORIES
    for statistic in TIME_STATISTICS
)

STOREFRONT_FIELDS: tuple[str, ...] = (
    "name",
    "description",
    "release_date",
    "developer",
    "publisher",
    "review_score",
)

metadata = MetaData()

games_table = Table(
    GAMES_TABLE,
    metadata,
    # SQLite only autoincrements an INTEGER PRIMARY KEY.
    Column("id", BigInteger().with_variant(Integer(), "sqlite"), primary_key=True, autoincrement=True),
    Column("appid", BigInteger, nullable=True, unique=True),
    Column("hltb_id", BigInteger, nullable=True, unique=True),
    Column("name", String(255), nullable=True, index=True),
    Column("description", Text, nullable=True),
    Column("release_date", String(64), nullable=True),
    Column("developer", String(255), nullable=True),
    Column("publisher", String(255), nullable=True),
    Column("review_score", Integer, nullable=True),
    Column("owners", BigInteger, nullable=False, server_default=text("0")),
    *(Column(field, Float, nullable=True) for field in TIME_FIELDS),
    Column("updated_at", String(64), nullable=True),
)

WRITABLE_COLUMNS: frozenset[str] = frozenset(
    column.name for column in games_table.columns if column.name not in {"id", "owners"}
)


def ensure_games_table(engine: Engine) -> None:
    """Create the ``games`` table and its indexes when they are missing."""

    metadata.create_all(engine, tables=[games_table], checkfirst=True)
    logger.debug("Ensured %s table exists", GAMES_TABLE)


__all__ = [
    "GAMES_TABLE",
    "STOREFRONT_FIELDS",
    "TIME_CATEGORIES",
    "TIME_FIELDS",
    "TIME_STATISTICS",
    "WRITABLE_COLUMNS",
    "ensure_games_table",
    "games_table",
    "metadata",
]
