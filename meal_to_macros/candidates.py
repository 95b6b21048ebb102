from __future__ import annotations

from typing import Any

from loguru import logger

from .models import Candidate
from .normalize import (
    extract_pack_grams,
    extract_per_grams,
    extract_per_ml,
    parse_nutrition,
)


def _as_list(raw: Any) -> list[dict[str, Any]]:
    # The catalog returns a bare object instead of a list when there is one hit.
    if not raw:
        return []
    food = raw.get("food") if isinstance(raw, dict) else raw
    if food is None:
        return []
    if isinstance(food, dict):
        return [food]
    if isinstance(food, list):
        return [f for f in food if isinstance(f, dict)]
    return []


def build_candidates(raw: Any) -> list[Candidate]:
    """Parse a catalog `foods` object into candidates, in catalog order.

    Entries whose description does not carry the full
    "Per <N><unit> - Calories | Fat | Carbs | Protein" shape are dropped.
    """
    out: list[Candidate] = []
    for row in _as_list(raw):
        name = str(row.get("food_name") or "").strip()
        description = str(row.get("food_description") or "").strip()
        nutrition = parse_nutrition(description)
        if not name or nutrition is None:
            logger.debug("Dropping unparseable catalog entry {!r}: {!r}", name, description)
            continue

        brand = str(row.get("brand_name") or "").strip() or None
        out.append(
            Candidate(
                id=str(row.get("food_id") or ""),
                name=name,
                brand=brand,
                description=description,
                nutrition=nutrition,
                per_grams=extract_per_grams(description),
                per_ml=extract_per_ml(description),
                pack_grams=extract_pack_grams(name),
            )
        )
    return out
