from __future__ import annotations

import math
import re

from .config import DEFAULT_VOCABULARY, Vocabulary
from .models import NutritionPer, Query


# A number must stand on its own: "Room400g" or "v2.400g" never count.
_NUM = r"(?<![\w.])(\d+(?:\.\d+)?)"

_GRAMS_RE = re.compile(
    _NUM + r"\s*(kg|kilograms?|kilos?|g|grams?|grammes?)\b",
    re.IGNORECASE,
)
_ML_RE = re.compile(
    _NUM + r"\s*(ml|millilitres?|milliliters?|cl|centilitres?|l|litres?|liters?)\b",
    re.IGNORECASE,
)

_TO_GRAMS: dict[str, float] = {
    "kg": 1000.0,
    "kilo": 1000.0,
    "kilogram": 1000.0,
    "g": 1.0,
    "gram": 1.0,
    "gramme": 1.0,
    "oz": 28.3495,
}

_TO_ML: dict[str, float] = {
    "ml": 1.0,
    "millilitre": 1.0,
    "milliliter": 1.0,
    "cl": 10.0,
    "centilitre": 10.0,
    "l": 1000.0,
    "litre": 1000.0,
    "liter": 1000.0,
    "fl oz": 29.5735,
}

# "Per 100g - Calories: ..." -> "Per 100g"
_BASIS_RE = re.compile(r"^\s*(Per\s+.+?)\s+-\s+", re.IGNORECASE)
_PER_GRAMS_RE = re.compile(
    r"^\s*Per\s+(\d+(?:\.\d+)?)\s*(kg|g|grams?|oz)\b", re.IGNORECASE
)
_PER_ML_RE = re.compile(
    r"^\s*Per\s+(\d+(?:\.\d+)?)\s*(fl\.?\s*oz|ml|cl|l|litres?|liters?)\b", re.IGNORECASE
)

_NUTRITION_RE = re.compile(
    r"^\s*Per\s+.+?\s+-\s+"
    r"Calories:\s*(\d+(?:\.\d+)?)\s*kcal\s*\|\s*"
    r"Fat:\s*(\d+(?:\.\d+)?)\s*g\s*\|\s*"
    r"Carbs:\s*(\d+(?:\.\d+)?)\s*g\s*\|\s*"
    r"Protein:\s*(\d+(?:\.\d+)?)\s*g\s*$",
    re.IGNORECASE,
)

# Anything that reads as "how much": 400g, 1.5 l, 2, 1/2, ½, x2
_QTY_TOKEN_RE = re.compile(
    r"(?<![\w.])(?:x\s*)?(?:\d+(?:\.\d+)?(?:\s*/\s*\d+)?|[½¼¾⅓⅔])"
    r"(?:\s*(?:kg|kilograms?|kilos?|g|grams?|grammes?|ml|millilitres?|milliliters?"
    r"|cl|l|litres?|liters?|oz|fl\s*oz))?(?:\s*x)?\b",
    re.IGNORECASE,
)


def _positive(raw: str, factor: float) -> float | None:
    try:
        val = float(raw) * factor
    except ValueError:
        return None
    if not math.isfinite(val) or val <= 0:
        return None
    return round(val, 4)


def _unit_key(unit: str) -> str:
    u = re.sub(r"\s+|\.", " ", unit.lower()).strip()
    u = re.sub(r"\s+", " ", u)
    if u.startswith("fl"):
        return "fl oz"
    if len(u) > 2 and u.endswith("s"):
        u = u[:-1]
    return u


def extract_grams(text: str | None) -> float | None:
    """Explicit weight in grams, e.g. "400g chicken" -> 400.0, "1.2kg" -> 1200.0."""
    if not text:
        return None
    for m in _GRAMS_RE.finditer(text):
        grams = _positive(m.group(1), _TO_GRAMS.get(_unit_key(m.group(2)), 1.0))
        if grams is not None:
            return grams
    return None


def extract_ml(text: str | None) -> float | None:
    """Explicit volume in ml; litres are converted."""
    if not text:
        return None
    for m in _ML_RE.finditer(text):
        factor = _TO_ML.get(_unit_key(m.group(2)))
        ml = _positive(m.group(1), factor) if factor is not None else None
        if ml is not None:
            return ml
    return None


def extract_per_grams(description: str | None) -> float | None:
    if not description:
        return None
    m = _PER_GRAMS_RE.match(description)
    if not m:
        return None
    return _positive(m.group(1), _TO_GRAMS.get(_unit_key(m.group(2)), 1.0))


def extract_per_ml(description: str | None) -> float | None:
    if not description:
        return None
    m = _PER_ML_RE.match(description)
    if not m:
        return None
    factor = _TO_ML.get(_unit_key(m.group(2)))
    if factor is None:
        return None
    return _positive(m.group(1), factor)


def parse_nutrition(description: str | None) -> NutritionPer | None:
    if not description:
        return None
    m = _NUTRITION_RE.match(description)
    if not m:
        return None
    try:
        calories, fat, carbs, protein = (float(v) for v in m.groups())
    except ValueError:
        return None
    if not all(math.isfinite(v) for v in (calories, fat, carbs, protein)):
        return None
    return NutritionPer(calories=calories, fat=fat, carbs=carbs, protein=protein)


def extract_pack_grams(name: str | None) -> float | None:
    # examples: "Ready Salted Crisps (45g)", "Protein Bar (60 g)"
    if not name:
        return None
    for m in re.finditer(r"\(([^)]*?)\)", name):
        grams = extract_grams(m.group(1))
        if grams is not None:
            return grams
    return None


def serving_basis(description: str | None) -> str | None:
    """The "Per ..." part of a catalog description."""
    if not description:
        return None
    m = _BASIS_RE.match(description)
    return m.group(1).strip() if m else None


def describes_single_serving(description: str | None) -> bool:
    """True for any stated basis that is not a weight or volume.

    "Per 1 serving", "Per 2 biscuits", "Per 1/2 cup" and "Per ½ pot" all count.
    """
    if serving_basis(description) is None:
        return False
    return extract_per_grams(description) is None and extract_per_ml(description) is None


def describes_pack(description: str | None, vocabulary: Vocabulary = DEFAULT_VOCABULARY) -> bool:
    basis = serving_basis(description)
    if basis is None:
        return False
    norm = normalize_text(basis)
    return any(contains_phrase(norm, w) for w in vocabulary.pack_words)


# ---------------------------
# Text normalization
# ---------------------------

def normalize_text(text: str | None) -> str:
    """Lower case, apostrophes dropped, punctuation to spaces, whitespace collapsed."""
    if not text:
        return ""
    s = text.lower()
    s = re.sub(r"['’`]", "", s)
    s = re.sub(r"[^\w\s.]+|_", " ", s)
    # Keep decimal points, drop every other dot.
    s = re.sub(r"(?<!\d)\.|\.(?!\d)", " ", s)
    return re.sub(r"\s+", " ", s).strip()


def tokens(text: str | None) -> set[str]:
    return set(normalize_text(text).split())


def contains_phrase(normalized: str, phrase: str) -> bool:
    """Whole-word containment on already-normalized text."""
    if not phrase:
        return False
    return f" {phrase} " in f" {normalized} "


def detect_brands(text: str | None, vocabulary: Vocabulary = DEFAULT_VOCABULARY) -> list[str]:
    norm = normalize_text(text)
    return [b for b in vocabulary.brands if contains_phrase(norm, b)]


def _remove_phrase(normalized: str, phrase: str) -> str:
    return re.sub(r"(?:^|\s)" + re.escape(phrase) + r"(?=\s|$)", " ", normalized)


def clean_query(
    text: str,
    brand_hints: list[str] | tuple[str, ...] = (),
    vocabulary: Vocabulary = DEFAULT_VOCABULARY,
) -> str:
    """Strip brands, quantities and size adjectives to get a plainer search term."""
    q = _QTY_TOKEN_RE.sub(" ", text or "")
    q = normalize_text(q)
    # Longest first so "extra large" goes before "large".
    for phrase in sorted([*brand_hints, *vocabulary.size_words], key=len, reverse=True):
        q = _remove_phrase(q, phrase)
    q = re.sub(r"^(?:of|a|an)\s+", "", q.strip())
    return re.sub(r"\s{2,}", " ", q).strip()


def build_query(text: str) -> Query:
    raw = (text or "").strip()
    return Query(
        text=raw,
        explicit_grams=extract_grams(raw),
        explicit_ml=extract_ml(raw),
    )
