"""Engine construction for the games store (SQLite or MariaDB)."""

from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from pathlib import Path
from threading import Lock
from typing import Any, Iterator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.engine.url import make_url

db_lock = Lock()
"""Serialises game writes inside one process."""

_MARIADB_DIALECTS = frozenset({"mariadb", "mysql"})


class GamesDatabase:
    """The engine behind the ``games`` table."""

    def __init__(self, engine: Engine):
        self._engine = engine

    @property
    def engine(self) -> Engine:
        return self._engine

    @property
    def dialect_name(self) -> str:
        return self._engine.dialect.name

    @contextmanager
    def sa_connection(self) -> Iterator[Connection]:
        """Yield a connection; callers open their own transaction."""

        with self._engine.connect() as conn:
            yield conn

    def dispose(self) -> None:
        self._engine.dispose()


def _tune_sqlite(dbapi_conn: Any, busy_timeout: float) -> None:
    if not isinstance(dbapi_conn, sqlite3.Connection):
        return
    timeout_ms = int(busy_timeout * 1000)
    if timeout_ms > 0:
        dbapi_conn.execute(f"PRAGMA busy_timeout={timeout_ms}")
    try:
        dbapi_conn.execute("PRAGMA journal_mode=WAL").fetchone()
    except sqlite3.OperationalError:  # pragma: no cover - read-only or in-memory files
        pass


def _tune_mariadb(dbapi_conn: Any, lock_timeout: float) -> None:
    seconds = max(int(lock_timeout), 1)
    cursor = dbapi_conn.cursor()
    try:
        cursor.execute("SET SESSION innodb_lock_wait_timeout = %s", (seconds,))
    finally:
        cursor.close()


def build_engine_from_dsn(
    dsn: str,
    *,
    timeout: float | None = None,
    pool_recycle: int = 1_800,
) -> GamesDatabase:
    """Return a :class:`GamesDatabase` for ``dsn``.

    SQLite paths are resolved to absolute paths so the engine does not depend
    on the working directory; MariaDB connections get a lock wait timeout.
    """

    url = make_url(dsn)
    effective_timeout = timeout if timeout is not None else 5.0
    backend = url.get_backend_name()

    if backend == "sqlite":
        if not url.database:
            raise ValueError("SQLite DSN must include a filesystem path")
        url = url.set(database=str(Path(url.database).expanduser().resolve()))
        engine = create_engine(
            url, pool_pre_ping=True, connect_args={"check_same_thread": False}
        )

        @event.listens_for(engine, "connect")
        def _on_sqlite_connect(dbapi_conn, connection_record):
            _tune_sqlite(dbapi_conn, effective_timeout)

    else:
        engine = create_engine(url, pool_pre_ping=True, pool_recycle=pool_recycle)
        if backend in _MARIADB_DIALECTS:

            @event.listens_for(engine, "connect")
            def _on_mariadb_connect(dbapi_conn, connection_record):
                _tune_mariadb(dbapi_conn, effective_timeout)

    return GamesDatabase(engine)


__all__ = ["GamesDatabase", "build_engine_from_dsn", "db_lock"]
