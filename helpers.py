"""General-purpose helper utilities shared across the application."""

from __future__ import annotations

import math
import numbers
from datetime import datetime, timezone
from typing import Any, Iterable


__all__ = [
    "coerce_float",
    "coerce_int",
    "first_text",
    "normalize_text",
    "now_utc_iso",
    "split_search_terms",
]


def now_utc_iso() -> str:
    """Return the current UTC time as an ISO-8601 string."""

    return datetime.now(timezone.utc).replace(microsecond=0).isoformat()


def normalize_text(value: Any) -> str | None:
    """Return ``value`` as stripped text, or ``None`` when it is blank."""

    if value is None:
        return None
    text = value.strip() if isinstance(value, str) else str(value).strip()
    if not text:
        return None
    return text


def first_text(values: Any) -> str | None:
    """Return the first non-blank entry of a list-like value."""

    if isinstance(values, str):
        return normalize_text(values)
    if not isinstance(values, Iterable):
        return None
    for value in values:
        text = normalize_text(value)
        if text:
            return text
    return None


def coerce_int(value: Any) -> int | None:
    """Return ``value`` as ``int`` when it holds an integral number."""

    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, numbers.Integral):
        return int(value)
    if isinstance(value, numbers.Real):
        numeric = float(value)
        if math.isfinite(numeric) and numeric.is_integer():
            return int(numeric)
        return None
    text = normalize_text(value)
    if text is None:
        return None
    try:
        numeric = float(text)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(numeric) or not numeric.is_integer():
        return None
    return int(numeric)


def coerce_float(value: Any) -> float | None:
    """Return ``value`` as a finite ``float`` or ``None``."""

    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, numbers.Real):
        numeric = float(value)
    else:
        text = normalize_text(value)
        if text is None:
            return None
        try:
            numeric = float(text)
        except (TypeError, ValueError):
            return None
    return numeric if math.isfinite(numeric) else None


def split_search_terms(name: str) -> list[str]:
    """Split a game name into the whitespace-separated HLTB search tokens."""

    return [token for token in str(name or "").split() if token]
