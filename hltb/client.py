"""How Long To Beat search client."""

from __future__ import annotations

import json
import logging
from http.client import HTTPException
from typing import Any, Callable, Mapping

from urllib.error import HTTPError
from urllib.request import Request, urlopen

from helpers import coerce_float, coerce_int, normalize_text, split_search_terms
from steam.client import format_http_error

logger = logging.getLogger(__name__)


__all__ = [
    "HLTBClient",
    "HLTB_TIME_FIELD_MAP",
    "build_search_payload",
    "normalize_time_data",
]


_HLTB_CATEGORY_SUFFIXES: dict[str, str] = {
    "main": "Main",
    "extra": "MainExtra",
    "completionist": "Completionist",
}
_HLTB_STATISTIC_PREFIXES: dict[str, str] = {
    "avg": "gameplay",
    "polled": "comp",
    "median": "median",
    "rushed": "rushed",
    "leisure": "leisure",
}

HLTB_TIME_FIELD_MAP: dict[str, str] = {
    f"{category}_{statistic}": f"{prefix}{suffix}"
    for category, suffix in _HLTB_CATEGORY_SUFFIXES.items()
    for statistic, prefix in _HLTB_STATISTIC_PREFIXES.items()
}
"""Maps stored time columns to the HLTB search result keys."""


def build_search_payload(name: str, *, size: int = 1) -> dict[str, Any]:
    """Return the JSON body for a name search."""

    return {
        "searchType": "games",
        "searchTerms": split_search_terms(name),
        "searchPage": 1,
        "size": size,
    }


def normalize_time_data(entry: Mapping[str, Any] | None) -> dict[str, Any]:
    """Return the time statistics and HLTB id held by a search result."""

    if not isinstance(entry, Mapping):
        return {}
    data: dict[str, Any] = {
        field: coerce_float(entry.get(source_key))
        for field, source_key in HLTB_TIME_FIELD_MAP.items()
    }
    data["hltb_id"] = coerce_int(entry.get("game_id"))
    return data


class HLTBClient:
    """Minimal client for the HLTB search endpoint."""

    def __init__(
        self,
        search_url: str,
        *,
        user_agent: str | None = None,
        timeout: float | None = None,
        request_factory: Callable[..., Any] | None = None,
        opener: Callable[..., Any] | None = None,
    ) -> None:
        if not search_url:
            raise ValueError("search_url is required")
        self._search_url = search_url
        self._user_agent = (user_agent or "").strip()
        self._timeout = timeout
        self._request_factory = request_factory
        self._opener = opener

    @property
    def search_url(self) -> str:
        return self._search_url

    @property
    def user_agent(self) -> str:
        return self._user_agent or "Mozilla/5.0 (compatible; HLTBScraper/1.0)"

    def search(self, name: str) -> dict[str, Any] | None:
        """Return the best HLTB match for ``name`` or ``None``."""

        terms = split_search_terms(name)
        if not terms:
            return None

        build_request = self._request_factory or Request
        request = build_request(
            self._search_url,
            data=json.dumps(build_search_payload(name)).encode("utf-8"),
            method="POST",
        )
        request.add_header("Content-Type", "application/json")
        request.add_header("Accept", "application/json")
        request.add_header("User-Agent", self.user_agent)

        payload = self._request_json(request)
        results = payload.get("data") if isinstance(payload, Mapping) else None
        if not isinstance(results, list) or not results:
            logger.info("HLTB returned no match for %r", name)
            return None
        first = results[0]
        if not isinstance(first, Mapping):
            return None
        logger.debug(
            "HLTB matched %r to %r (id %s)",
            name,
            normalize_text(first.get("game_name")),
            first.get("game_id"),
        )
        return dict(first)

    def _request_json(self, request: Any) -> Any:
        open_request = self._opener or urlopen
        kwargs = {"timeout": self._timeout} if self._timeout else {}
        try:
            with open_request(request, **kwargs) as response:
                body = response.read()
        except HTTPError as exc:
            raise RuntimeError(format_http_error("HLTB search failed", exc)) from exc
        except (OSError, HTTPException) as exc:
            raise RuntimeError(f"HLTB search failed: {exc!r}") from exc
        try:
            return json.loads(body.decode("utf-8")) if body else {}
        except (UnicodeDecodeError, ValueError) as exc:
            raise RuntimeError("invalid JSON response from HLTB") from exc
