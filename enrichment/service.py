"""Orchestrates the storefront, HLTB and cover lookups for one game."""

from __future__ import annotations

import logging
from contextlib import nullcontext
from threading import Lock
from typing import Any, Callable, ContextManager, Mapping

from sqlalchemy.engine import Connection
from sqlalchemy.exc import SQLAlchemyError

from db import utils as db_utils
from games.merge import merge_partials
from games.repository import upsert_by_appid, upsert_by_name
from helpers import now_utc_iso
from hltb.client import HLTBClient, normalize_time_data
from steam.client import SteamStoreClient
from storage.covers import CoverStore, CoverStoreError, cover_key_for_appid

__all__ = [
    "EnrichmentError",
    "GameEnricher",
    "HLTBGameNotFoundError",
    "HLTBLookupError",
    "StoreWriteFailure",
]


class EnrichmentError(RuntimeError):
    """Base class for terminal enrichment failures."""


class HLTBGameNotFoundError(EnrichmentError):
    """Raised when a name lookup finds no HLTB entry."""


class HLTBLookupError(EnrichmentError):
    """Raised when the HLTB search itself fails during a name lookup."""


class StoreWriteFailure(EnrichmentError):
    """Raised when the merged record cannot be written."""


class GameEnricher:
    """Collects partial game data from upstream sources and persists it.

    Upstream failures on the appid path are logged and degrade to empty
    partial records; only the final database write can fail the request.
    """

    def __init__(
        self,
        *,
        steam_client: SteamStoreClient,
        hltb_client: HLTBClient,
        cover_store: CoverStore | None,
        get_db: Callable[[], db_utils.GamesDatabase],
        db_lock: Lock | None = None,
        timestamp_factory: Callable[[], str] = now_utc_iso,
        logger: logging.Logger | None = None,
    ) -> None:
        self.steam_client = steam_client
        self.hltb_client = hltb_client
        self.cover_store = cover_store
        self._get_db = get_db
        self._db_lock = db_lock
        self._timestamp_factory = timestamp_factory
        self._logger = logger or logging.getLogger(__name__)

    def store_cover(self, appid: int) -> bool:
        """Fetch the capsule image for ``appid`` and store it as ``<appid>.jpg``."""

        if self.cover_store is None:
            return False
        try:
            image = self.steam_client.fetch_capsule_image(appid)
            self.cover_store.upload(
                cover_key_for_appid(appid), image, content_type="image/jpeg", upsert=True
            )
        except (RuntimeError, CoverStoreError) as exc:
            self._logger.warning("Cover upload failed for appid %s: %s", appid, exc)
            return False
        return True

    def fetch_storefront(self, appid: int) -> dict[str, Any]:
        try:
            return self.steam_client.fetch_app_details(appid)
        except RuntimeError as exc:
            self._logger.warning("Steam metadata fetch failed for appid %s: %s", appid, exc)
            return {}

    def fetch_time_data(self, name: str) -> dict[str, Any]:
        try:
            entry = self.hltb_client.search(name)
        except RuntimeError as exc:
            self._logger.warning("HLTB lookup failed for %r: %s", name, exc)
            return {}
        return normalize_time_data(entry)

    def enrich_by_appid(self, appid: int) -> dict[str, Any]:
        """Refresh the row keyed by ``appid`` and return it."""

        self.store_cover(appid)
        steam_data = self.fetch_storefront(appid)
        time_data: dict[str, Any] = {}
        if steam_data.get("name"):
            time_data = self.fetch_time_data(steam_data["name"])
        fields = merge_partials(steam_data, time_data)
        self._logger.info(
            "Upserting appid %s with fields %s", appid, ", ".join(sorted(fields)) or "-"
        )
        return self._write(
            lambda conn: upsert_by_appid(
                conn, appid, fields, timestamp_factory=self._timestamp_factory
            ),
            description=f"appid {appid}",
        )

    def enrich_by_name(self, name: str) -> dict[str, Any]:
        """Merge HLTB time data into the row resolved for ``name``."""

        try:
            entry = self.hltb_client.search(name)
        except RuntimeError as exc:
            raise HLTBLookupError(f"HLTB fetch failed for {name!r}") from exc
        if entry is None:
            raise HLTBGameNotFoundError(f"HLTB game not found: {name}")
        time_data = normalize_time_data(entry)
        return self._write(
            lambda conn: upsert_by_name(
                conn, name, time_data, timestamp_factory=self._timestamp_factory
            ),
            description=f"name {name!r}",
        )

    def _write(
        self,
        writer: Callable[[Connection], Mapping[str, Any]],
        *,
        description: str,
    ) -> dict[str, Any]:
        lock: ContextManager[Any] = self._db_lock if self._db_lock is not None else nullcontext()
        try:
            with lock:
                database = self._get_db()
                with database.sa_connection() as conn:
                    with conn.begin():
                        return dict(writer(conn))
        except (SQLAlchemyError, RuntimeError) as exc:
            self._logger.exception("Database write failed for %s", description)
            raise StoreWriteFailure(f"database write failed for {description}") from exc
