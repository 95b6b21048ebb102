from __future__ import annotations

from dataclasses import dataclass, field, asdict
from typing import Any


@dataclass(frozen=True)
class Query:
    text: str

    # Parsed only from a number directly followed by a g/ml-style unit.
    explicit_grams: float | None = None
    explicit_ml: float | None = None


@dataclass(frozen=True)
class NutritionPer:
    calories: float
    fat: float
    carbs: float
    protein: float


@dataclass(frozen=True)
class Candidate:
    """A single parsed entry from a catalog search."""

    id: str
    name: str
    brand: str | None
    description: str             # e.g. "Per 100g - Calories: 165kcal | ..."
    nutrition: NutritionPer
    per_grams: float | None = None
    per_ml: float | None = None
    pack_grams: float | None = None  # from the name, e.g. "Ready Salted (45g)"

    @property
    def text(self) -> str:
        return " ".join(p for p in (self.brand, self.name, self.description) if p)

    @property
    def display_name(self) -> str:
        if self.brand:
            return f"{self.brand} {self.name}"
        return self.name


@dataclass(frozen=True)
class ScoredCandidate:
    candidate: Candidate
    token_score: float


@dataclass(frozen=True)
class Selection:
    chosen: Candidate | None
    selection_confidence: float
    token_score: float = 0.0
    shortlist: tuple[ScoredCandidate, ...] = ()


@dataclass(frozen=True)
class Scaled:
    mode: str  # weight, volume, serving
    calories: float
    protein: float
    carbs: float
    fat: float
    factor: float


@dataclass(frozen=True)
class ResolutionResult:
    source: str  # catalog, generative
    mode: str    # weight, volume, serving
    name: str
    grams: float | None
    ml: float | None
    calories: float
    protein: float
    carbs: float
    fat: float
    confidence: float
    trace: dict[str, Any] | None = field(default=None)

    def to_dict(self) -> dict[str, Any]:
        out = asdict(self)
        if out["trace"] is None:
            out.pop("trace")
        return out
