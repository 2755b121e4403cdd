"""Persistence helpers for the ``games`` table."""

from __future__ import annotations

import logging
from typing import Any, Callable, Mapping

from sqlalchemy import func, insert, select, update
from sqlalchemy.dialects.mysql import insert as mysql_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.engine import Connection

from games.merge import apply_partial, strip_null_fields
from games.schema import WRITABLE_COLUMNS, games_table
from helpers import now_utc_iso

logger = logging.getLogger(__name__)

__all__ = [
    "build_appid_upsert",
    "find_game",
    "get_game_by_appid",
    "get_game_by_id",
    "upsert_by_appid",
    "upsert_by_name",
]


def _writable_fields(fields: Mapping[str, Any] | None) -> dict[str, Any]:
    cleaned = strip_null_fields(fields)
    dropped = sorted(key for key in cleaned if key not in WRITABLE_COLUMNS)
    if dropped:
        logger.debug("Ignoring non-column fields %s", ", ".join(dropped))
    return {key: value for key, value in cleaned.items() if key in WRITABLE_COLUMNS}


def _first_row(conn: Connection, stmt) -> dict[str, Any] | None:
    row = conn.execute(stmt).mappings().first()
    return dict(row) if row is not None else None


def get_game_by_id(conn: Connection, game_id: int) -> dict[str, Any] | None:
    return _first_row(conn, select(games_table).where(games_table.c.id == game_id))


def get_game_by_appid(conn: Connection, appid: int) -> dict[str, Any] | None:
    return _first_row(conn, select(games_table).where(games_table.c.appid == appid))


def find_game(
    conn: Connection,
    *,
    hltb_id: int | None = None,
    name: str | None = None,
) -> dict[str, Any] | None:
    """Return the row matching ``hltb_id`` or, failing that, ``name``.

    Names are compared case-insensitively; the oldest row wins when several
    rows share a name.
    """

    if hltb_id is not None:
        row = _first_row(
            conn, select(games_table).where(games_table.c.hltb_id == hltb_id)
        )
        if row is not None:
            return row

    normalized = (name or "").strip()
    if not normalized:
        return None
    stmt = (
        select(games_table)
        .where(func.lower(games_table.c.name) == normalized.lower())
        .order_by(games_table.c.id)
        .limit(1)
    )
    return _first_row(conn, stmt)


def _update_by_id(
    conn: Connection, game_id: int, values: Mapping[str, Any]
) -> dict[str, Any] | None:
    if values:
        conn.execute(
            update(games_table).where(games_table.c.id == game_id).values(**values)
        )
    return get_game_by_id(conn, game_id)


def _release_hltb_claim(
    conn: Connection, appid: int, values: dict[str, Any]
) -> dict[str, Any] | None:
    """Reconcile ``values['hltb_id']`` with rows created by name lookups.

    Returns the row to adopt when a name-keyed row (no ``appid``) already owns
    the HLTB id. When a row for a different app owns it, the id is dropped
    from ``values`` so the unique constraint holds.
    """

    hltb_id = values.get("hltb_id")
    if hltb_id is None:
        return None
    owner = _first_row(
        conn, select(games_table).where(games_table.c.hltb_id == hltb_id)
    )
    if owner is None or owner.get("appid") == appid:
        return None
    if owner.get("appid") is None:
        return owner
    logger.warning(
        "HLTB id %s already belongs to appid %s; not linking it to appid %s",
        hltb_id,
        owner.get("appid"),
        appid,
    )
    values.pop("hltb_id", None)
    return None


def build_appid_upsert(dialect_name: str, appid: int, values: Mapping[str, Any]):
    """Return a dialect-specific insert-or-update keyed on ``appid``.

    Returns ``None`` for dialects without a native upsert.
    """

    insert_values = {"appid": appid, **values}
    if dialect_name == "sqlite":
        stmt = sqlite_insert(games_table).values(**insert_values)
        return stmt.on_conflict_do_update(
            index_elements=[games_table.c.appid],
            set_={key: stmt.excluded[key] for key in values},
        )
    if dialect_name in {"mariadb", "mysql"}:
        stmt = mysql_insert(games_table).values(**insert_values)
        return stmt.on_duplicate_key_update(
            **{key: stmt.inserted[key] for key in values}
        )
    return None


def upsert_by_appid(
    conn: Connection,
    appid: int,
    fields: Mapping[str, Any] | None,
    *,
    timestamp_factory: Callable[[], str] = now_utc_iso,
) -> dict[str, Any]:
    """Insert or merge the row keyed by ``appid`` and return the stored row.

    Only the non-null ``fields`` are written; on conflict the existing row
    keeps every column the new values do not carry.
    """

    values = _writable_fields(fields)
    values.pop("appid", None)
    values["updated_at"] = timestamp_factory()

    if get_game_by_appid(conn, appid) is None:
        adopted = _release_hltb_claim(conn, appid, values)
        if adopted is not None:
            logger.info(
                "Linking appid %s to existing game %s via HLTB id", appid, adopted["id"]
            )
            row = _update_by_id(conn, adopted["id"], {**values, "appid": appid})
            if row is None:  # pragma: no cover - row removed concurrently
                raise RuntimeError(f"game {adopted['id']} disappeared during update")
            return row
    else:
        named = _release_hltb_claim(conn, appid, values)
        if named is not None:
            # Both rows already exist; the HLTB id stays with the name-keyed one.
            logger.warning(
                "HLTB id %s already belongs to game %s; not linking it to appid %s",
                values.pop("hltb_id"),
                named["id"],
                appid,
            )

    stmt = build_appid_upsert(conn.dialect.name, appid, values)
    if stmt is not None:
        conn.execute(stmt)
    elif get_game_by_appid(conn, appid) is None:
        conn.execute(insert(games_table).values(appid=appid, **values))
    else:
        conn.execute(
            update(games_table).where(games_table.c.appid == appid).values(**values)
        )

    row = get_game_by_appid(conn, appid)
    if row is None:  # pragma: no cover - upsert always leaves a row behind
        raise RuntimeError(f"upsert for appid {appid} did not persist a row")
    return row


def upsert_by_name(
    conn: Connection,
    name: str,
    fields: Mapping[str, Any] | None,
    *,
    timestamp_factory: Callable[[], str] = now_utc_iso,
) -> dict[str, Any]:
    """Insert or merge a row resolved by HLTB id, then by ``name``.

    This is a read followed by a write without isolation; two concurrent
    calls for the same name can both insert or overwrite each other.
    """

    values = _writable_fields(fields)
    existing = find_game(conn, hltb_id=values.get("hltb_id"), name=name)
    timestamp = timestamp_factory()

    if existing is None:
        insert_values = {**values, "name": name, "updated_at": timestamp}
        result = conn.execute(insert(games_table).values(**insert_values))
        game_id = result.inserted_primary_key[0]
        logger.info("Inserted game %s for name %r", game_id, name)
        row = get_game_by_id(conn, game_id)
    else:
        merged = apply_partial(existing, values)
        merged["updated_at"] = timestamp
        write_back = {
            key: value for key, value in merged.items() if key in WRITABLE_COLUMNS
        }
        logger.info("Merging HLTB data into game %s for name %r", existing["id"], name)
        row = _update_by_id(conn, existing["id"], write_back)

    if row is None:  # pragma: no cover - row removed concurrently
        raise RuntimeError(f"write for name {name!r} did not persist a row")
    return row
