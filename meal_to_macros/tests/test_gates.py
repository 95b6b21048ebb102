from dataclasses import replace

from meal_to_macros.candidates import build_candidates
from meal_to_macros.config import Settings, Vocabulary
from meal_to_macros.gates import (
    GateContext,
    brand_gate,
    phrase_gate,
    product_form_gate,
    run_gates,
    scaling_compatibility_gate,
    selection_confidence_gate,
    variant_gate,
)
from meal_to_macros.normalize import build_query


def _cand(name, description="Per 100g - Calories: 100kcal | Fat: 1g | Carbs: 10g | Protein: 5g", brand=None):
    raw = {"food": {"food_id": "1", "food_name": name, "brand_name": brand, "food_description": description}}
    (c,) = build_candidates(raw)
    return c


def _ctx(text, candidate, *, token_score=0.75, selection_confidence=0.9, baseline_confidence=0.7, first_pass=True, **kw):
    return GateContext(
        query=build_query(text),
        query_text=text,
        candidate=candidate,
        token_score=token_score,
        selection_confidence=selection_confidence,
        baseline_confidence=baseline_confidence,
        first_pass=first_pass,
        **kw,
    )


def test_clean_match_is_accepted():
    verdict = run_gates(_ctx("400g chicken breast", _cand("Chicken Breast")))
    assert verdict.accepted
    assert verdict.reason is None
    assert [c.gate for c in verdict.checks][0] == "min_token_score"
    assert all(c.passed for c in verdict.checks)


def test_low_token_score_vetoes_first():
    verdict = run_gates(_ctx("chicken breast", _cand("Chicken Breast"), token_score=0.25))
    assert not verdict.accepted
    assert verdict.reason.startswith("min_token_score")
    assert len(verdict.checks) == 1


def test_brand_gate():
    other = _cand("Latte", brand="Costa")
    assert brand_gate(_ctx("starbucks latte", other)) is not None
    assert brand_gate(_ctx("starbucks latte", _cand("Caffe Latte", brand="Starbucks"))) is None
    # skipped on the cleaned retry
    assert brand_gate(_ctx("starbucks latte", other, first_pass=False)) is None


def test_phrase_gate():
    assert phrase_gate(_ctx("greggs sausage roll", _cand("Sausage Bean Melt"))) is not None
    assert phrase_gate(_ctx("greggs sausage roll", _cand("Vegan Sausage Roll"))) is None
    assert phrase_gate(_ctx("sausage", _cand("Sausage Bean Melt"))) is None


def test_product_form_gate():
    pod = _cand("Latte Macchiato Pods", description="Per 1 serving - Calories: 70kcal | Fat: 3g | Carbs: 7g | Protein: 3g")
    assert product_form_gate(_ctx("medium latte", pod)) is not None
    # no size word: could be the at-home product
    assert product_form_gate(_ctx("latte pods", pod)) is None
    cafe = _cand("Latte (Medium)", description="Per 1 serving - Calories: 190kcal | Fat: 7g | Carbs: 19g | Protein: 12g")
    assert product_form_gate(_ctx("medium latte", cafe)) is None


def test_variant_gate():
    assert variant_gate(_ctx("330ml coke", _cand("Coke Zero"))) is not None
    assert variant_gate(_ctx("330ml coke zero", _cand("Coke Zero"))) is None
    assert variant_gate(_ctx("crisps", _cand("Baked Crisps"))) is not None
    assert variant_gate(_ctx("low-fat yoghurt", _cand("Low Fat Yoghurt"))) is None


def test_scaling_compatibility_vetoes_fixed_serving():
    serving = _cand("Chicken Breast", description="Per 1 serving - Calories: 200kcal | Fat: 4g | Carbs: 0g | Protein: 38g")
    assert scaling_compatibility_gate(_ctx("400g chicken breast", serving)) is not None
    assert scaling_compatibility_gate(_ctx("chicken breast", serving)) is None


def test_scaling_compatibility_vetoes_other_unit():
    per_100g = _cand("Orange Juice")
    assert scaling_compatibility_gate(_ctx("250ml orange juice", per_100g)) is not None


def test_scaling_compatibility_pack_allowance():
    bag = _cand("Ready Salted Crisps (45g)", description="Per 1 bag - Calories: 230kcal | Fat: 14g | Carbs: 23g | Protein: 3g")
    assert scaling_compatibility_gate(_ctx("45g crisps", bag)) is None
    assert scaling_compatibility_gate(_ctx("500g crisps", bag)) is not None

    unsized = _cand("Ready Salted Crisps", description="Per 1 bag - Calories: 230kcal | Fat: 14g | Carbs: 23g | Protein: 3g")
    assert scaling_compatibility_gate(_ctx("40g crisps", unsized)) is None
    assert scaling_compatibility_gate(_ctx("900g crisps", unsized)) is not None


def test_selection_confidence_gate():
    c = _cand("Chicken Breast")
    assert selection_confidence_gate(_ctx("chicken breast", c, selection_confidence=0.4, baseline_confidence=0.8)) is not None
    # a shaky baseline is no better than a shaky pick
    assert selection_confidence_gate(_ctx("chicken breast", c, selection_confidence=0.4, baseline_confidence=0.3)) is None
    assert selection_confidence_gate(_ctx("chicken breast", c, selection_confidence=0.6, baseline_confidence=0.8)) is None


def test_thresholds_come_from_settings():
    c = _cand("Chicken Breast")
    strict = Settings(min_db_ai_pick_conf=0.95)
    assert selection_confidence_gate(_ctx("chicken breast", c, selection_confidence=0.9, settings=strict)) is not None


def test_vocabulary_is_injectable():
    vocab = Vocabulary(variants=("keto",))
    ctx = _ctx("bread", _cand("Keto Bread"), vocabulary=vocab)
    assert variant_gate(ctx) is not None
    assert variant_gate(replace(ctx, vocabulary=Vocabulary(variants=()))) is None


def test_verdict_is_repeatable():
    ctx = _ctx("medium latte", _cand("Instant Latte Sachet", description="Per 1 sachet - Calories: 60kcal | Fat: 2g | Carbs: 9g | Protein: 1g"))
    first = run_gates(ctx)
    second = run_gates(ctx)
    assert first == second
    assert not first.accepted


def test_scaling_compatibility_vetoes_fractional_serving():
    half_cup = _cand("White Rice", description="Per 1/2 cup - Calories: 100kcal | Fat: 0g | Carbs: 22g | Protein: 2g")
    assert scaling_compatibility_gate(_ctx("400g white rice", half_cup)) is not None
    assert scaling_compatibility_gate(_ctx("white rice", half_cup)) is None
