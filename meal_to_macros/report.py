from __future__ import annotations

import json
from dataclasses import dataclass, asdict
from datetime import datetime, timezone
from pathlib import Path

from .models import ResolutionResult


@dataclass
class ItemReport:
    raw: str
    name: str
    source: str
    mode: str
    grams: float | None
    ml: float | None
    calories: float
    protein: float
    carbs: float
    fat: float
    confidence: float
    status: str  # CATALOG, GENERATIVE, STUB

    @staticmethod
    def from_result(raw: str, result: ResolutionResult) -> "ItemReport":
        if result.source == "catalog":
            status = "CATALOG"
        elif result.confidence > 0:
            status = "GENERATIVE"
        else:
            status = "STUB"
        return ItemReport(
            raw=raw,
            name=result.name,
            source=result.source,
            mode=result.mode,
            grams=result.grams,
            ml=result.ml,
            calories=result.calories,
            protein=result.protein,
            carbs=result.carbs,
            fat=result.fat,
            confidence=result.confidence,
            status=status,
        )


@dataclass
class RunReport:
    timestamp: str
    total: int
    catalog: int
    generative: int
    stubs: int
    calories: float
    protein: float
    carbs: float
    fat: float
    items: list[ItemReport]

    def summary_text(self) -> str:
        lines = [
            f"Run: {self.timestamp}",
            f"Total: {self.total}  Catalog: {self.catalog}  Generative: {self.generative}  "
            f"Stub: {self.stubs}",
            f"Sum: {self.calories:g} kcal  P {self.protein:g}g  C {self.carbs:g}g  F {self.fat:g}g",
            "",
        ]
        for i, it in enumerate(self.items, 1):
            lines.append(f"  {i}. [{it.status}/{it.mode}] {it.raw}")
            lines.append(
                f"     -> {it.name}  {it.calories:g} kcal  "
                f"P {it.protein:g} C {it.carbs:g} F {it.fat:g}  (conf {it.confidence:.2f})"
            )
        return "\n".join(lines)

    def write_json(self, path: str = "artifacts/run_report.json") -> str:
        out = Path(path)
        out.parent.mkdir(parents=True, exist_ok=True)
        out.write_text(json.dumps(asdict(self), indent=2))
        return str(out)


def build_report(items: list[ItemReport]) -> RunReport:
    return RunReport(
        timestamp=datetime.now(timezone.utc).isoformat(),
        total=len(items),
        catalog=sum(1 for i in items if i.status == "CATALOG"),
        generative=sum(1 for i in items if i.status == "GENERATIVE"),
        stubs=sum(1 for i in items if i.status == "STUB"),
        calories=sum(i.calories for i in items),
        protein=round(sum(i.protein for i in items), 1),
        carbs=round(sum(i.carbs for i in items), 1),
        fat=round(sum(i.fat for i in items), 1),
        items=items,
    )
