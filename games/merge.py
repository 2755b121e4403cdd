"""Helpers for reconciling partial game records."""

from __future__ import annotations

from typing import Any, Mapping

__all__ = [
    "apply_partial",
    "merge_partials",
    "strip_null_fields",
]


def strip_null_fields(partial: Mapping[str, Any] | None) -> dict[str, Any]:
    """Return a copy of ``partial`` without ``None`` values.

    A ``None`` means "unknown" for a partial record, so dropping it keeps a
    later write from clearing a value that is already stored.
    """

    if not partial:
        return {}
    return {key: value for key, value in partial.items() if value is not None}


def merge_partials(*partials: Mapping[str, Any] | None) -> dict[str, Any]:
    """Merge ``partials`` in order; later non-null values win per field."""

    merged: dict[str, Any] = {}
    for partial in partials:
        merged.update(strip_null_fields(partial))
    return merged


def apply_partial(
    existing: Mapping[str, Any], partial: Mapping[str, Any] | None
) -> dict[str, Any]:
    """Overlay the non-null fields of ``partial`` on a full ``existing`` row."""

    merged = dict(existing)
    merged.update(strip_null_fields(partial))
    return merged
