"""Flask application factory and service client initialization."""
from __future__ import annotations

import logging
import logging.config
import os
from pathlib import Path

from flask import Flask, jsonify, request
from werkzeug.exceptions import HTTPException

import config as app_config
from db import utils as db_utils
from enrichment.service import GameEnricher
from games.schema import ensure_games_table
from hltb.client import HLTBClient
from init import initialize_app
from routes import games as routes_games
from steam.client import SteamStoreClient
from storage.covers import CoverStore

logger = logging.getLogger(__name__)

ENRICHER_EXTENSION = 'game_enricher'
DATABASE_EXTENSION = 'games_database'


def _determine_log_level(flask_app: Flask) -> int:
    if flask_app.debug:
        return logging.DEBUG
    if os.environ.get('FLASK_DEBUG', '').lower() in {'1', 'true', 'yes', 'on'}:
        return logging.DEBUG
    return logging.INFO


def _configure_logging(flask_app: Flask, log_file: str) -> None:
    log_level = _determine_log_level(flask_app)
    log_path = Path(log_file)
    try:
        log_path.parent.mkdir(parents=True, exist_ok=True)
    except OSError:
        pass

    for handler in list(flask_app.logger.handlers):
        flask_app.logger.removeHandler(handler)

    logging.config.dictConfig(
        {
            'version': 1,
            'disable_existing_loggers': False,
            'formatters': {
                'standard': {
                    'format': '%(asctime)s %(levelname)s [%(name)s] %(message)s',
                    'datefmt': '%Y-%m-%d %H:%M:%S',
                }
            },
            'handlers': {
                'console': {
                    'class': 'logging.StreamHandler',
                    'formatter': 'standard',
                    'level': log_level,
                    'stream': 'ext://sys.stdout',
                },
                'file': {
                    'class': 'logging.handlers.RotatingFileHandler',
                    'formatter': 'standard',
                    'level': logging.DEBUG,
                    'filename': os.fspath(log_path),
                    'maxBytes': 5 * 1024 * 1024,
                    'backupCount': 5,
                    'encoding': 'utf-8',
                },
            },
            'root': {
                'level': log_level,
                'handlers': ['console', 'file'],
            },
        }
    )

    flask_app.logger = logging.getLogger(flask_app.import_name)
    flask_app.logger.setLevel(log_level)


def _register_handlers(flask_app: Flask) -> None:
    @flask_app.errorhandler(Exception)
    def handle_exception(e):
        if isinstance(e, HTTPException):
            return e
        flask_app.logger.exception("Unhandled exception on %s", request.path)
        return jsonify({'error': 'internal server error'}), 500


def create_app(
    *,
    db_dsn: str | None = None,
    api_key: str | None = None,
    covers_dir: str | os.PathLike[str] | None = None,
    cover_bucket: str | None = None,
    steam_client: SteamStoreClient | None = None,
    hltb_client: HLTBClient | None = None,
    log_file: str | None = None,
) -> Flask:
    """Return a Flask app wired to the database, cover store and upstream clients.

    Every argument defaults to the value loaded by :mod:`config`; tests pass
    temporary paths and fake clients instead.
    """

    flask_app = Flask('app')
    _configure_logging(flask_app, log_file or app_config.LOG_FILE)

    resolved_covers_dir = covers_dir or app_config.COVERS_DIR
    cover_store = CoverStore(resolved_covers_dir, cover_bucket or app_config.COVER_BUCKET)
    database = db_utils.build_engine_from_dsn(
        db_dsn or app_config.DB_DSN, timeout=app_config.DB_CONNECT_TIMEOUT_SECONDS
    )

    def _ensure_dirs() -> None:
        cover_store.bucket_path.mkdir(parents=True, exist_ok=True)

    def _init_db(db: db_utils.GamesDatabase) -> None:
        ensure_games_table(db.engine)

    initialize_app(ensure_dirs=_ensure_dirs, init_db=_init_db, database=database)
    flask_app.extensions[DATABASE_EXTENSION] = database

    enricher = GameEnricher(
        steam_client=steam_client or SteamStoreClient(
            user_agent=app_config.STEAM_USER_AGENT,
            timeout=app_config.HTTP_TIMEOUT_SECONDS,
        ),
        hltb_client=hltb_client or HLTBClient(
            app_config.HLTB_SEARCH_URL,
            user_agent=app_config.HLTB_USER_AGENT,
            timeout=app_config.HTTP_TIMEOUT_SECONDS,
        ),
        cover_store=cover_store,
        get_db=lambda: database,
        db_lock=db_utils.db_lock,
    )
    flask_app.extensions[ENRICHER_EXTENSION] = enricher

    configure_blueprints(flask_app, enricher=enricher, api_key=api_key or app_config.API_KEY)
    _register_handlers(flask_app)
    logger.info(
        "Game enricher ready (database=%s, covers=%s)",
        database.dialect_name,
        cover_store.bucket_path,
    )
    return flask_app


def configure_blueprints(flask_app: Flask, *, enricher: GameEnricher, api_key: str) -> None:
    routes_games.configure(flask_app, {
        'get_enricher': lambda: enricher,
        'api_key': api_key,
    })

    if 'games' not in flask_app.blueprints:
        flask_app.register_blueprint(routes_games.games_blueprint)
