"""Steam storefront client and payload normalisation helpers."""

from __future__ import annotations

import json
import logging
from http.client import HTTPException
from typing import Any, Callable, Mapping

from urllib.error import HTTPError
from urllib.parse import urlencode
from urllib.request import Request, urlopen

from helpers import coerce_int, first_text, normalize_text

logger = logging.getLogger(__name__)


__all__ = [
    "SteamStoreClient",
    "capsule_image_url",
    "format_http_error",
    "normalize_app_details",
]


CAPSULE_IMAGE_URL = (
    "https://shared.cloudflare.steamstatic.com/store_item_assets/steam/apps/"
    "{appid}/capsule_sm_120.jpg"
)


def capsule_image_url(appid: int) -> str:
    """Return the small capsule image URL for ``appid``."""

    return CAPSULE_IMAGE_URL.format(appid=int(appid))


def normalize_app_details(appid: int, payload: Any) -> dict[str, Any]:
    """Return the storefront fields of an ``appdetails`` response.

    The response is keyed by the app id as a string. An unsuccessful or
    malformed entry yields an empty dict.
    """

    if not isinstance(payload, Mapping):
        return {}
    entry = payload.get(str(appid))
    if not isinstance(entry, Mapping) or not entry.get("success"):
        return {}
    data = entry.get("data")
    if not isinstance(data, Mapping):
        return {}

    release = data.get("release_date")
    release_date = (
        normalize_text(release.get("date")) if isinstance(release, Mapping) else None
    )
    metacritic = data.get("metacritic")
    review_score = (
        coerce_int(metacritic.get("score")) if isinstance(metacritic, Mapping) else None
    )

    return {
        "name": normalize_text(data.get("name")),
        "description": normalize_text(data.get("short_description")),
        "release_date": release_date,
        "developer": first_text(data.get("developers")),
        "publisher": first_text(data.get("publishers")),
        "review_score": review_score,
    }


class SteamStoreClient:
    """Fetches storefront metadata and capsule art for Steam apps."""

    APPDETAILS_URL = "https://store.steampowered.com/api/appdetails"

    def __init__(
        self,
        *,
        user_agent: str | None = None,
        timeout: float | None = None,
        request_factory: Callable[..., Any] | None = None,
        opener: Callable[..., Any] | None = None,
    ) -> None:
        self._user_agent = (user_agent or "").strip()
        self._timeout = timeout
        self._request_factory = request_factory
        self._opener = opener

    @property
    def user_agent(self) -> str:
        return self._user_agent or "GameEnricher/1.0"

    def fetch_app_details(self, appid: int) -> dict[str, Any]:
        """Return the normalised storefront partial record for ``appid``."""

        url = f"{self.APPDETAILS_URL}?{urlencode({'appids': int(appid)})}"
        request = self._build_request(url)
        request.add_header("Accept", "application/json")
        body = self._read(request, error_prefix="Steam appdetails request failed")
        try:
            payload = json.loads(body.decode("utf-8")) if body else {}
        except (UnicodeDecodeError, ValueError) as exc:
            raise RuntimeError("invalid JSON response from Steam") from exc
        details = normalize_app_details(appid, payload)
        if not details:
            logger.info("Steam reported no store data for appid %s", appid)
        return details

    def fetch_capsule_image(self, appid: int) -> bytes:
        """Return the raw capsule image bytes for ``appid``."""

        request = self._build_request(capsule_image_url(appid))
        body = self._read(request, error_prefix="Steam image fetch failed")
        if not body:
            raise RuntimeError(f"empty image response for appid {appid}")
        return body

    def _build_request(self, url: str) -> Any:
        build_request = self._request_factory or Request
        request = build_request(url, method="GET")
        request.add_header("User-Agent", self.user_agent)
        return request

    def _read(self, request: Any, *, error_prefix: str) -> bytes:
        open_request = self._opener or urlopen
        kwargs = {"timeout": self._timeout} if self._timeout else {}
        try:
            with open_request(request, **kwargs) as response:
                return response.read()
        except HTTPError as exc:
            raise RuntimeError(format_http_error(error_prefix, exc)) from exc
        except (OSError, HTTPException) as exc:
            raise RuntimeError(f"{error_prefix}: {exc!r}") from exc


def format_http_error(prefix: str, error: HTTPError) -> str:
    message = f"{prefix}: {error.code}"
    error_message = ""
    try:
        error_body = error.read()
    except Exception:  # pragma: no cover - best effort to capture error body
        error_body = b""
    if error_body:
        error_message = error_body.decode("utf-8", errors="replace").strip()
    if not error_message and error.reason:
        error_message = str(error.reason)
    if error_message:
        message = f"{message} {error_message[:200]}"
    return message
