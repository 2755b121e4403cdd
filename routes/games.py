"""Game enrichment API route."""

from __future__ import annotations

import hmac
import numbers
from typing import Any, Mapping

from flask import Blueprint, Flask, current_app, jsonify, request
from werkzeug.exceptions import BadRequest

from enrichment.service import (
    GameEnricher,
    HLTBGameNotFoundError,
    HLTBLookupError,
    StoreWriteFailure,
)
from helpers import coerce_int
from routes.api_utils import (
    BadRequestError,
    MethodNotAllowedError,
    StoreWriteError,
    UnauthorizedError,
    UpstreamServiceError,
    handle_api_errors,
)

games_blueprint = Blueprint("games", __name__)

_ALL_METHODS = ['GET', 'HEAD', 'POST', 'PUT', 'PATCH', 'DELETE', 'OPTIONS']

REQUEST_TYPE_STEAM = 'steam'
REQUEST_TYPE_HLTB = 'hltb'


_CONTEXT_EXTENSION = "games_routes"


def configure(flask_app: Flask, context: Mapping[str, Any]) -> None:
    """Provide the enricher and API secret used by the endpoint on ``flask_app``."""
    flask_app.extensions.setdefault(_CONTEXT_EXTENSION, {}).update(context)


def _ctx(key: str) -> Any:
    context = current_app.extensions.get(_CONTEXT_EXTENSION, {})
    if key not in context:
        raise RuntimeError(f"games routes missing context value: {key}")
    return context[key]


def _get_enricher() -> GameEnricher:
    return _ctx('get_enricher')()


def _check_api_key() -> None:
    expected = str(_ctx('api_key'))
    provided = request.headers.get('x-api-key')
    if not provided or not expected:
        raise UnauthorizedError('Unauthorized')
    if not hmac.compare_digest(provided.encode('utf-8'), expected.encode('utf-8')):
        raise UnauthorizedError('Unauthorized')


def _parse_body() -> dict[str, Any]:
    try:
        body = request.get_json(force=True)
    except BadRequest as exc:
        raise BadRequestError('Invalid JSON') from exc
    if not isinstance(body, dict):
        raise BadRequestError('Invalid JSON')
    return body


def _require_appid(body: Mapping[str, Any]) -> int:
    raw = body.get('appid')
    # JSON numbers only; 620.0 is accepted, 620.5 and "620" are not.
    appid = coerce_int(raw) if isinstance(raw, numbers.Real) else None
    if appid is None or appid <= 0:
        raise BadRequestError('Missing or invalid appid')
    return appid


def _require_name(body: Mapping[str, Any]) -> str:
    name = body.get('name')
    if not isinstance(name, str) or not name.strip():
        raise BadRequestError('Missing or invalid name')
    return name.strip()


@games_blueprint.route(
    '/', methods=_ALL_METHODS, provide_automatic_options=False
)
@games_blueprint.route(
    '/api/enrich', methods=_ALL_METHODS, provide_automatic_options=False
)
@handle_api_errors
def api_enrich():
    if request.method != 'POST':
        raise MethodNotAllowedError('POST required')
    _check_api_key()
    body = _parse_body()

    request_type = body.get('type', REQUEST_TYPE_STEAM)
    enricher = _get_enricher()
    try:
        if request_type == REQUEST_TYPE_STEAM:
            row = enricher.enrich_by_appid(_require_appid(body))
        elif request_type == REQUEST_TYPE_HLTB:
            row = enricher.enrich_by_name(_require_name(body))
        else:
            raise BadRequestError('Unknown request type')
    except HLTBGameNotFoundError as exc:
        raise BadRequestError('HLTB game not found') from exc
    except HLTBLookupError as exc:
        raise UpstreamServiceError('HLTB fetch failed') from exc
    except StoreWriteFailure as exc:
        raise StoreWriteError('Database upsert failed') from exc
    return jsonify(row)
