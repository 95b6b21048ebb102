from loguru import logger

from meal_to_macros.candidates import build_candidates
from meal_to_macros.generative import GenerationError
from meal_to_macros.selector import select_candidate

from meal_to_macros.tests.fakes import FakeGenerative, food

PER_100G = "Per 100g - Calories: 500kcal | Fat: 30g | Carbs: 50g | Protein: 6g"


def _cands(*names):
    return build_candidates({"food": [food(str(i), n, PER_100G) for i, n in enumerate(names)]})


def test_low_scores_short_circuit_without_calling_the_model():
    gen = FakeGenerative()
    sel = select_candidate("mackerel", _cands("Ready Salted Crisps", "Cheese & Onion Crisps"), gen)
    assert sel.chosen is None
    assert sel.token_score == 0.0
    assert gen.calls == []


def test_model_pick_is_used():
    gen = FakeGenerative(pick={"index": 1, "confidence": 0.8})
    sel = select_candidate("chicken breast fillet", _cands("Chicken Breast", "Chicken Breast Fillet"), gen)
    assert sel.chosen is not None
    assert sel.selection_confidence == 0.8
    # ranked order: the fillet entry scores higher and comes first
    assert sel.shortlist[0].candidate.name == "Chicken Breast Fillet"
    assert sel.chosen.name == "Chicken Breast"


def test_prompt_carries_no_nutrition_numbers():
    gen = FakeGenerative()
    select_candidate("chicken breast", _cands("Chicken Breast"), gen)
    (_, user), = gen.pick_calls()
    assert "Chicken Breast" in user
    assert "Per 100g" in user
    assert "500" not in user
    assert "kcal" not in user


def test_shortlist_is_capped_at_six():
    gen = FakeGenerative(pick={"index": 7, "confidence": 0.9})
    sel = select_candidate("chicken breast", _cands(*["Chicken Breast"] * 9), gen)
    assert len(sel.shortlist) == 6
    # index 7 is outside the shortlist: top entry, no confidence
    assert sel.chosen.id == "0"
    assert sel.selection_confidence == 0.0


def test_model_failure_falls_back_to_top_score():
    gen = FakeGenerative(pick=GenerationError("timeout"))
    sel = select_candidate("chicken breast", _cands("Crisps", "Chicken Breast"), gen)
    assert sel.chosen.name == "Chicken Breast"
    assert sel.selection_confidence == 0.0


def test_garbled_pick_falls_back_to_top_score():
    gen = FakeGenerative(pick="not json at all")
    sel = select_candidate("chicken breast", _cands("Chicken Breast"), gen)
    assert sel.chosen.name == "Chicken Breast"
    assert sel.selection_confidence == 0.0


def test_unexpected_exception_from_service_is_recoverable():
    gen = FakeGenerative(pick=ConnectionError("reset"))
    sel = select_candidate("chicken breast", _cands("Chicken Breast"), gen)
    assert sel.chosen is not None
    assert sel.selection_confidence == 0.0


def test_negative_index_is_reported_as_out_of_range():
    messages = []
    sink = logger.add(messages.append, level="WARNING")
    try:
        gen = FakeGenerative(pick={"index": -1, "confidence": 0.9})
        sel = select_candidate("chicken breast", _cands("Chicken Breast"), gen)
    finally:
        logger.remove(sink)
    assert sel.chosen.name == "Chicken Breast"
    assert sel.selection_confidence == 0.0
    assert any("out of range" in str(m) for m in messages)
