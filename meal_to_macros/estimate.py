"""
Generative nutrition estimates and the AI-assisted candidate pick.

Every payload is validated with pydantic before use. Anything that is not a
JSON object of the expected shape raises GenerationError, which callers treat
as recoverable.
"""

from __future__ import annotations

import json
import math
import re
from typing import Any, Optional

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .config import DEFAULT_SETTINGS, Settings
from .generative import GenerationError, GenerativeService
from .models import Query, ResolutionResult, ScoredCandidate
from .normalize import serving_basis
from .prompts import (
    CANDIDATE_PICK_SYSTEM_PROMPT,
    NUTRITION_PER_100G_SYSTEM_PROMPT,
    NUTRITION_SERVING_SYSTEM_PROMPT,
    build_estimate_user_prompt,
    build_pick_user_prompt,
)
from .scale import round_calories, round_macro


def _finite_or_none(v: Any) -> Optional[float]:
    if v is None or isinstance(v, bool):
        return None
    try:
        f = float(v)
    except (TypeError, ValueError):
        return None
    return f if math.isfinite(f) else None


class NutritionEstimateSchema(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: Optional[str] = None
    calories: float = Field(ge=0, allow_inf_nan=False)
    protein: float = Field(ge=0, allow_inf_nan=False)
    carbs: float = Field(ge=0, allow_inf_nan=False)
    fat: float = Field(ge=0, allow_inf_nan=False)
    # Optional: a missing or garbled value falls back to a default instead of failing.
    confidence: Optional[float] = None
    serving_grams: Optional[float] = None

    @field_validator("confidence", "serving_grams", mode="before")
    @classmethod
    def _lenient_number(cls, v: Any) -> Optional[float]:
        return _finite_or_none(v)

    @field_validator("name", mode="before")
    @classmethod
    def _lenient_name(cls, v: Any) -> Optional[str]:
        if not isinstance(v, str) or not v.strip():
            return None
        return v.strip()


class CandidatePickSchema(BaseModel):
    model_config = ConfigDict(extra="ignore")

    index: int
    confidence: Optional[float] = None

    @field_validator("confidence", mode="before")
    @classmethod
    def _lenient_confidence(cls, v: Any) -> Optional[float]:
        return _finite_or_none(v)


def _strip_markdown_json(text: str) -> str:
    if "```json" in text:
        text = text.split("```json")[1].split("```")[0].strip()
    elif "```" in text:
        text = text.split("```")[1].split("```")[0].strip()
    return text


def _fix_trailing_commas(text: str) -> str:
    text = re.sub(r",\s*}", "}", text)
    text = re.sub(r",\s*]", "]", text)
    return text


def parse_json_payload(text: str | None) -> dict[str, Any]:
    if not text or not text.strip():
        raise GenerationError("Empty generative response")
    cleaned = _fix_trailing_commas(_strip_markdown_json(text.strip()))
    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError as e:
        raise GenerationError(f"Generative response is not JSON: {e}") from e
    if not isinstance(data, dict):
        raise GenerationError(f"Expected a JSON object, got {type(data).__name__}")
    return data


def _validate(schema: type[BaseModel], data: dict[str, Any]) -> Any:
    try:
        return schema.model_validate(data)
    except ValidationError as e:
        raise GenerationError(f"{schema.__name__} validation failed: {e.error_count()} error(s)") from e


def _clamp01(value: float) -> float:
    return min(1.0, max(0.0, value))


def _call(generative: GenerativeService, system: str, user: str) -> dict[str, Any]:
    # Any collaborator failure is recoverable from here on.
    try:
        text = generative.complete_json(system, user)
    except GenerationError:
        raise
    except Exception as e:
        raise GenerationError(f"Generative service error: {e}") from e
    return parse_json_payload(text)


def estimate_nutrition(
    query: Query,
    generative: GenerativeService,
    settings: Settings = DEFAULT_SETTINGS,
) -> ResolutionResult:
    """Generative estimate for the whole query.

    With an explicit weight the model returns values per 100 g and the total
    is computed here. Otherwise the model's totals for the described (or a
    typical) portion are used as they are.
    """
    user = build_estimate_user_prompt(query.text)
    grams = query.explicit_grams

    if grams:
        est = _validate(NutritionEstimateSchema, _call(generative, NUTRITION_PER_100G_SYSTEM_PROMPT, user))
        factor = grams / 100.0
        confidence = est.confidence if est.confidence is not None else settings.default_weight_confidence
        return ResolutionResult(
            source="generative",
            mode="weight",
            name=est.name or query.text,
            grams=grams,
            ml=query.explicit_ml,
            calories=round_calories(est.calories * factor),
            protein=round_macro(est.protein * factor),
            carbs=round_macro(est.carbs * factor),
            fat=round_macro(est.fat * factor),
            confidence=_clamp01(confidence),
        )

    est = _validate(NutritionEstimateSchema, _call(generative, NUTRITION_SERVING_SYSTEM_PROMPT, user))
    confidence = est.confidence if est.confidence is not None else settings.default_serving_confidence
    serving_grams = est.serving_grams if est.serving_grams and est.serving_grams > 0 else None
    return ResolutionResult(
        source="generative",
        mode="volume" if query.explicit_ml else "serving",
        name=est.name or query.text,
        grams=None if query.explicit_ml else serving_grams,
        ml=query.explicit_ml,
        calories=round_calories(est.calories),
        protein=round_macro(est.protein),
        carbs=round_macro(est.carbs),
        fat=round_macro(est.fat),
        confidence=_clamp01(confidence),
    )


def pick_candidate(
    query_text: str,
    shortlist: list[ScoredCandidate],
    generative: GenerativeService,
) -> tuple[int, float]:
    """Ask the model which shortlisted entry matches. Returns (index, confidence).

    Only names, brands and serving bases are sent; the model never sees the
    nutrition numbers. The index is not range-checked here.
    """
    entries = [
        {
            "index": i,
            "name": sc.candidate.name,
            "brand": sc.candidate.brand,
            "portion": serving_basis(sc.candidate.description),
        }
        for i, sc in enumerate(shortlist)
    ]
    data = _call(generative, CANDIDATE_PICK_SYSTEM_PROMPT, build_pick_user_prompt(query_text, entries))
    pick = _validate(CandidatePickSchema, data)
    confidence = _clamp01(pick.confidence) if pick.confidence is not None else 0.0
    logger.debug("AI pick for {!r}: index={} confidence={}", query_text, pick.index, confidence)
    return pick.index, confidence


def stub_result(query: Query) -> ResolutionResult:
    """Zero-confidence placeholder when nothing else worked."""
    if query.explicit_grams:
        mode = "weight"
    elif query.explicit_ml:
        mode = "volume"
    else:
        mode = "serving"
    return ResolutionResult(
        source="generative",
        mode=mode,
        name=query.text or "unknown food",
        grams=query.explicit_grams,
        ml=query.explicit_ml,
        calories=0,
        protein=0.0,
        carbs=0.0,
        fat=0.0,
        confidence=0.0,
    )
