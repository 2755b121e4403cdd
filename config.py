"""Application-wide configuration helpers and constants."""
from __future__ import annotations

import os
from pathlib import Path
from typing import Final
from urllib.parse import quote_plus

from dotenv import load_dotenv

BASE_DIR: Final[Path] = Path(__file__).resolve().parent

load_dotenv(BASE_DIR / ".env")


def _clean_text(value: str | None) -> str:
    """Return ``value`` stripped of surrounding whitespace."""

    if value is None:
        return ""
    return value.strip()


def _path_from(env_value: str | None, default: str | Path) -> Path:
    """Resolve a filesystem path using an environment override when provided."""

    text = _clean_text(env_value)
    candidate = Path(text) if text else Path(default)
    candidate = candidate.expanduser()
    if candidate.is_absolute():
        try:
            return candidate.resolve()
        except (OSError, RuntimeError):  # pragma: no cover - fallback for exotic paths
            return candidate
    return candidate


def _coerce_positive_float(value: str | None, default: float) -> float:
    """Return ``value`` coerced to a positive float or ``default`` when invalid."""

    text = _clean_text(value)
    if not text:
        return default
    try:
        numeric = float(text)
    except (TypeError, ValueError):
        return default
    return numeric if numeric > 0 else default


def _coerce_positive_int(value: str | None, default: int) -> int:
    """Return ``value`` coerced to a positive integer or ``default`` when invalid."""

    text = _clean_text(value)
    if not text:
        return default
    try:
        numeric = int(float(text))
    except (TypeError, ValueError):
        return default
    return numeric if numeric > 0 else default


COVERS_DIR_PATH: Final[Path] = _path_from(os.environ.get("COVERS_DIR"), "covers")
COVERS_DIR: Final[str] = os.fspath(COVERS_DIR_PATH)
COVER_BUCKET: Final[str] = _clean_text(os.environ.get("COVER_BUCKET", "covers"))

LOG_DIR_PATH: Final[Path] = _path_from(os.environ.get("LOG_DIR"), BASE_DIR / "logs")
LOG_DIR: Final[str] = os.fspath(LOG_DIR_PATH)
LOG_FILE_PATH: Final[Path] = _path_from(
    os.environ.get("LOG_FILE"), LOG_DIR_PATH / "app.log"
)
LOG_FILE: Final[str] = os.fspath(LOG_FILE_PATH)

DB_HOST: Final[str] = _clean_text(os.environ.get("DB_HOST")) or "localhost"
DB_PORT: Final[int] = _coerce_positive_int(os.environ.get("DB_PORT"), 3306)
DB_NAME: Final[str] = _clean_text(os.environ.get("DB_NAME")) or "game_enricher"
DB_USER: Final[str] = _clean_text(os.environ.get("DB_USER"))
DB_PASSWORD: Final[str] = _clean_text(os.environ.get("DB_PASSWORD"))
DB_SSL_CA_PATH: Final[Path | None] = (
    _path_from(os.environ.get("DB_SSL_CA"), "") if os.environ.get("DB_SSL_CA") else None
)
DB_SSL_CA: Final[str] = os.fspath(DB_SSL_CA_PATH) if DB_SSL_CA_PATH is not None else ""
DB_PATH: Final[Path] = _path_from(os.environ.get("DB_PATH"), BASE_DIR / "games.db")


def _build_db_dsn() -> str:
    """Return a database DSN constructed from environment configuration."""

    maria_overrides = {
        key: _clean_text(os.environ.get(key))
        for key in ("DB_HOST", "DB_PORT", "DB_NAME", "DB_USER", "DB_PASSWORD")
    }
    if any(value for value in maria_overrides.values()):
        auth = ""
        if DB_USER:
            password = quote_plus(DB_PASSWORD) if DB_PASSWORD else ""
            auth = DB_USER
            if password:
                auth = f"{auth}:{password}"
            auth = f"{auth}@"

        query_params = []
        if DB_SSL_CA:
            query_params.append(f"ssl_ca={quote_plus(DB_SSL_CA)}")

        query_string = f"?{'&'.join(query_params)}" if query_params else ""
        return f"mariadb+pymysql://{auth}{DB_HOST}:{DB_PORT}/{DB_NAME}{query_string}"

    sqlite_path = DB_PATH.resolve()
    return f"sqlite:///{sqlite_path.as_posix()}"


DB_DSN: Final[str] = _build_db_dsn()

DB_CONNECT_TIMEOUT_SECONDS: Final[float] = _coerce_positive_float(
    os.environ.get("DB_CONNECT_TIMEOUT"), 10.0
)

API_KEY: Final[str] = _clean_text(os.environ.get("API_KEY"))

DEFAULT_HLTB_SEARCH_URL: Final[str] = "https://howlongtobeat.com/api/search"
HLTB_SEARCH_URL: Final[str] = _clean_text(
    os.environ.get("HLTB_SEARCH_URL", DEFAULT_HLTB_SEARCH_URL)
)
DEFAULT_HLTB_USER_AGENT: Final[str] = "Mozilla/5.0 (compatible; HLTBScraper/1.0)"
HLTB_USER_AGENT: Final[str] = (
    _clean_text(os.environ.get("HLTB_USER_AGENT")) or DEFAULT_HLTB_USER_AGENT
)

DEFAULT_STEAM_USER_AGENT: Final[str] = "GameEnricher/1.0"
STEAM_USER_AGENT: Final[str] = (
    _clean_text(os.environ.get("STEAM_USER_AGENT")) or DEFAULT_STEAM_USER_AGENT
)

HTTP_TIMEOUT_SECONDS: Final[float] = _coerce_positive_float(
    os.environ.get("HTTP_TIMEOUT"), 15.0
)


def _validate_settings() -> None:
    """Fail fast when a required setting is missing."""

    missing = [
        name
        for name, value in (
            ("API_KEY", API_KEY),
            ("COVER_BUCKET", COVER_BUCKET),
            ("HLTB_SEARCH_URL", HLTB_SEARCH_URL),
        )
        if not value
    ]
    if missing:
        raise RuntimeError(
            f"Missing required configuration; set {', '.join(missing)}."
        )


_validate_settings()


__all__ = [
    "API_KEY",
    "BASE_DIR",
    "COVERS_DIR",
    "COVERS_DIR_PATH",
    "COVER_BUCKET",
    "DB_CONNECT_TIMEOUT_SECONDS",
    "DB_DSN",
    "DB_HOST",
    "DB_NAME",
    "DB_PASSWORD",
    "DB_PATH",
    "DB_PORT",
    "DB_SSL_CA",
    "DB_SSL_CA_PATH",
    "DB_USER",
    "DEFAULT_HLTB_SEARCH_URL",
    "DEFAULT_HLTB_USER_AGENT",
    "DEFAULT_STEAM_USER_AGENT",
    "HLTB_SEARCH_URL",
    "HLTB_USER_AGENT",
    "HTTP_TIMEOUT_SECONDS",
    "LOG_DIR",
    "LOG_DIR_PATH",
    "LOG_FILE",
    "LOG_FILE_PATH",
    "STEAM_USER_AGENT",
]
