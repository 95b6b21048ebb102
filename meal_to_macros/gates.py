"""
Veto rules applied to the candidate the selector named.

Each gate looks at a GateContext and returns a reason string to veto, or None
to let the candidate through. Gates are pure, so the same context always gets
the same verdict. run_gates() stops at the first veto; the order below only
decides which reason is reported.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Optional, Sequence

from .config import DEFAULT_SETTINGS, DEFAULT_VOCABULARY, Settings, Vocabulary
from .models import Candidate, Query
from .normalize import (
    contains_phrase,
    describes_pack,
    describes_single_serving,
    detect_brands,
    normalize_text,
    serving_basis,
    tokens,
)
from .scale import pack_matches


@dataclass(frozen=True)
class GateContext:
    query: Query
    query_text: str  # the text this pass searched and scored with
    candidate: Candidate
    token_score: float
    selection_confidence: float
    baseline_confidence: float
    first_pass: bool = True
    vocabulary: Vocabulary = DEFAULT_VOCABULARY
    settings: Settings = DEFAULT_SETTINGS

    @property
    def query_norm(self) -> str:
        return normalize_text(self.query_text)

    @property
    def candidate_norm(self) -> str:
        return normalize_text(self.candidate.text)


@dataclass(frozen=True)
class GateCheck:
    gate: str
    passed: bool
    reason: Optional[str] = None


@dataclass(frozen=True)
class GateVerdict:
    accepted: bool
    reason: Optional[str] = None
    checks: tuple[GateCheck, ...] = field(default_factory=tuple)


Gate = Callable[[GateContext], Optional[str]]


def min_token_score_gate(ctx: GateContext) -> Optional[str]:
    if ctx.token_score < ctx.settings.min_db_token_score:
        return f"token score {ctx.token_score:.2f} below {ctx.settings.min_db_token_score:.2f}"
    return None


def brand_gate(ctx: GateContext) -> Optional[str]:
    # The cleaned retry strips brands on purpose.
    if not ctx.first_pass:
        return None
    cand = ctx.candidate_norm
    for brand in detect_brands(ctx.query_text, ctx.vocabulary):
        if not contains_phrase(cand, brand):
            return f"query names brand {brand!r} but candidate does not"
    return None


def phrase_gate(ctx: GateContext) -> Optional[str]:
    q = ctx.query_norm
    cand_tokens = tokens(ctx.candidate.text)
    for dish in ctx.vocabulary.dishes:
        if not contains_phrase(q, dish):
            continue
        missing = [w for w in dish.split() if w not in cand_tokens]
        if missing:
            return f"dish {dish!r} missing {', '.join(missing)} in candidate"
    return None


def product_form_gate(ctx: GateContext) -> Optional[str]:
    q = ctx.query_norm
    sized = any(contains_phrase(q, w) for w in ctx.vocabulary.size_words)
    drink = any(contains_phrase(q, w) for w in ctx.vocabulary.drinks)
    if not (sized and drink):
        return None
    cand = ctx.candidate_norm
    for form in ctx.vocabulary.at_home_forms:
        if contains_phrase(cand, form) and not contains_phrase(q, form):
            return f"cafe serving requested but candidate is {form!r}"
    return None


def variant_gate(ctx: GateContext) -> Optional[str]:
    q = ctx.query_norm
    cand = ctx.candidate_norm
    for variant in ctx.vocabulary.variants:
        if contains_phrase(cand, variant) and not contains_phrase(q, variant):
            return f"candidate is a {variant!r} variant the query did not ask for"
    return None


def scaling_compatibility_gate(ctx: GateContext) -> Optional[str]:
    grams = ctx.query.explicit_grams
    ml = ctx.query.explicit_ml
    c = ctx.candidate
    if not grams and not ml:
        return None
    if ml and c.per_ml:
        return None
    if grams and c.per_grams:
        return None

    desc = c.description
    fixed = describes_single_serving(desc)
    # Stated per 100g but asked in ml (or the other way round) cannot be scaled either.
    other_unit = bool(c.per_grams or c.per_ml)
    if not (fixed or other_unit):
        return None

    if grams and describes_pack(desc, ctx.vocabulary):
        if pack_matches(c, grams, ctx.settings, ctx.vocabulary):
            return None
        lo, hi = ctx.settings.single_pack_range_g
        if c.pack_grams is None and lo <= grams <= hi:
            return None

    unit = f"{grams:g}g" if grams else f"{ml:g}ml"
    return f"{unit} requested but candidate is stated {serving_basis(desc) or 'per serving'}"


def selection_confidence_gate(ctx: GateContext) -> Optional[str]:
    s = ctx.settings
    if ctx.selection_confidence < s.min_db_ai_pick_conf and ctx.baseline_confidence >= s.low_baseline_confidence:
        return (
            f"pick confidence {ctx.selection_confidence:.2f} below {s.min_db_ai_pick_conf:.2f} "
            f"and baseline confidence is {ctx.baseline_confidence:.2f}"
        )
    return None


DEFAULT_GATES: tuple[tuple[str, Gate], ...] = (
    ("min_token_score", min_token_score_gate),
    ("brand", brand_gate),
    ("phrase", phrase_gate),
    ("product_form", product_form_gate),
    ("variant", variant_gate),
    ("scaling_compatibility", scaling_compatibility_gate),
    ("selection_confidence", selection_confidence_gate),
)


def run_gates(ctx: GateContext, gates: Sequence[tuple[str, Gate]] = DEFAULT_GATES) -> GateVerdict:
    checks: list[GateCheck] = []
    for name, gate in gates:
        reason = gate(ctx)
        if reason is not None:
            checks.append(GateCheck(gate=name, passed=False, reason=reason))
            return GateVerdict(accepted=False, reason=f"{name}: {reason}", checks=tuple(checks))
        checks.append(GateCheck(gate=name, passed=True))
    return GateVerdict(accepted=True, checks=tuple(checks))
