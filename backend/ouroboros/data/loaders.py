"""Cached loaders for the portal's seed catalogs."""

# purpose: expose the default departments and Serpentius roster to services and the CLI
# status: active
# depends_on: json, pathlib

from __future__ import annotations

import json
from functools import lru_cache
from pathlib import Path
from typing import Any

_BASE_DIR = Path(__file__).resolve().parent


def _load_json(path: Path) -> Any:
    """Return parsed JSON payload from disk."""

    with path.open("r", encoding="utf-8") as handle:
        return json.load(handle)


@lru_cache(maxsize=None)
def get_default_departments() -> tuple[dict[str, Any], ...]:
    """Return the founding departments with their rank ladders."""

    return tuple(_load_json(_BASE_DIR / "departments.json"))


@lru_cache(maxsize=None)
def get_seat_definitions() -> tuple[dict[str, Any], ...]:
    """Return the Serpentius council roster, ordered by sort order."""

    payload = _load_json(_BASE_DIR / "serpentius_seats.json")
    return tuple(sorted(payload, key=lambda seat: seat["sort_order"]))
