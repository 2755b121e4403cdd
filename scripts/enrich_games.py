#!/usr/bin/env python3
"""Enrich a batch of Steam app ids without going through the HTTP endpoint."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from collections.abc import Iterable, Sequence
from typing import Any

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from enrichment.service import EnrichmentError, GameEnricher
from helpers import coerce_int


def parse_appids(values: Iterable[str]) -> tuple[list[int], list[str]]:
    """Split raw tokens into unique positive app ids and rejected tokens."""

    appids: list[int] = []
    invalid: list[str] = []
    seen: set[int] = set()
    for raw in values:
        text = str(raw).strip()
        if not text or text.startswith("#"):
            continue
        appid = coerce_int(text)
        if appid is None or appid <= 0:
            invalid.append(text)
            continue
        if appid in seen:
            continue
        seen.add(appid)
        appids.append(appid)
    return appids, invalid


def enrich_appids(enricher: GameEnricher, appids: Sequence[int]) -> dict[str, Any]:
    """Enrich each app id in turn; a failing id does not stop the batch."""

    updated: list[dict[str, Any]] = []
    failed: dict[int, str] = {}
    for appid in appids:
        try:
            row = enricher.enrich_by_appid(appid)
        except EnrichmentError as exc:
            failed[appid] = str(exc)
            continue
        updated.append(row)
    return {"total": len(appids), "updated": updated, "failed": failed}


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("appids", nargs="*", help="Steam app ids to enrich")
    parser.add_argument(
        "-f",
        "--file",
        type=Path,
        help="file with one app id per line (blank lines and # comments ignored)",
    )
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)

    tokens = list(args.appids)
    if args.file is not None:
        tokens.extend(args.file.read_text(encoding="utf-8").splitlines())
    appids, invalid = parse_appids(tokens)
    if invalid:
        print("Skipping invalid app ids: " + ", ".join(invalid))
    if not appids:
        print("No app ids to enrich.")
        return 1 if invalid else 0

    from web.app_factory import ENRICHER_EXTENSION, create_app

    flask_app = create_app()
    enricher: GameEnricher = flask_app.extensions[ENRICHER_EXTENSION]
    with flask_app.app_context():
        summary = enrich_appids(enricher, appids)

    for row in summary["updated"]:
        print(f"  {row['appid']}: {row.get('name') or '(no name)'}")
    for appid, reason in summary["failed"].items():
        print(f"  {appid}: FAILED ({reason})")
    print(
        "Processed {total} app ids (updated: {updated}, failed: {failed}).".format(
            total=summary["total"],
            updated=len(summary["updated"]),
            failed=len(summary["failed"]),
        )
    )
    return 1 if summary["failed"] else 0


if __name__ == "__main__":
    raise SystemExit(main())
