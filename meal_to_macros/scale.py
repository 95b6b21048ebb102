from __future__ import annotations

from decimal import Decimal, ROUND_HALF_UP

from .config import DEFAULT_SETTINGS, DEFAULT_VOCABULARY, Settings, Vocabulary
from .models import Candidate, Scaled
from .normalize import describes_pack


def _half_up(value: float, places: int) -> float:
    # round() is banker's rounding on binary floats; 0.05 steps must go up.
    exp = Decimal(1).scaleb(-places)
    return float(Decimal(repr(round(value, 6))).quantize(exp, rounding=ROUND_HALF_UP))


def round_calories(value: float) -> int:
    return int(_half_up(value, 0))


def round_macro(value: float) -> float:
    return _half_up(value, 1)


def pack_matches(
    candidate: Candidate,
    grams: float | None,
    settings: Settings = DEFAULT_SETTINGS,
    vocabulary: Vocabulary = DEFAULT_VOCABULARY,
) -> bool:
    """The request is within tolerance of the pack size printed in the name."""
    if not grams or not candidate.pack_grams:
        return False
    if not describes_pack(candidate.description, vocabulary):
        return False
    return abs(grams - candidate.pack_grams) / candidate.pack_grams <= settings.pack_tolerance


def scale(
    candidate: Candidate,
    explicit_grams: float | None,
    explicit_ml: float | None,
    settings: Settings = DEFAULT_SETTINGS,
    vocabulary: Vocabulary = DEFAULT_VOCABULARY,
) -> Scaled:
    """Scale a candidate's stated nutrition to the requested quantity.

    Volume wins over weight when both are given. Without a usable basis the
    description's own serving is returned unchanged (factor 1).
    """
    if explicit_ml and candidate.per_ml:
        mode, factor = "volume", explicit_ml / candidate.per_ml
    elif explicit_grams and candidate.per_grams:
        mode, factor = "weight", explicit_grams / candidate.per_grams
    elif explicit_grams and pack_matches(candidate, explicit_grams, settings, vocabulary):
        mode, factor = "weight", explicit_grams / candidate.pack_grams
    else:
        mode, factor = "serving", 1.0

    n = candidate.nutrition
    return Scaled(
        mode=mode,
        calories=round_calories(n.calories * factor),
        protein=round_macro(n.protein * factor),
        carbs=round_macro(n.carbs * factor),
        fat=round_macro(n.fat * factor),
        factor=factor,
    )
