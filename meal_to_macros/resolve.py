"""
Hybrid resolution: free-text food -> one nutrition record.

Order of work for a request:

1. cache lookup (skipped when a debug trace is asked for)
2. generative baseline, always, so its confidence can inform the gates
3. catalog pass on the query as typed
4. if vetoed, one catalog pass on a cleaned query (brand, amounts, sizes removed)
5. otherwise the baseline

Nothing raised by a collaborator reaches the caller; the worst outcome is a
zero-confidence stub.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any, Optional

from loguru import logger

from .cache import ResultCache, TTLCache
from .candidates import build_candidates
from .catalog import CatalogSearch
from .config import DEFAULT_SETTINGS, DEFAULT_VOCABULARY, Settings, Vocabulary
from .estimate import estimate_nutrition, stub_result
from .gates import GateContext, run_gates
from .generative import GenerativeService
from .models import Query, ResolutionResult
from .normalize import build_query, clean_query, detect_brands, normalize_text
from .scale import scale
from .selector import select_candidate


@dataclass(frozen=True)
class _PassOutcome:
    result: Optional[ResolutionResult] = None
    catalog_down: bool = False


class Resolver:
    def __init__(
        self,
        *,
        catalog: CatalogSearch,
        generative: GenerativeService,
        cache: ResultCache | None = None,
        vocabulary: Vocabulary = DEFAULT_VOCABULARY,
        settings: Settings = DEFAULT_SETTINGS,
    ):
        self.catalog = catalog
        self.generative = generative
        self.cache = cache if cache is not None else TTLCache(settings.cache_ttl_s)
        self.vocabulary = vocabulary
        self.settings = settings

    def cache_key(self, text: str) -> str:
        return f"{self.settings.cache_namespace}:{normalize_text(text)}"

    def resolve(self, text: str, *, debug: bool = False) -> ResolutionResult:
        try:
            return self._resolve(text, debug=debug)
        except Exception:
            logger.exception("Resolution failed unexpectedly for {!r}", text)
            return stub_result(build_query(text))

    # ------------------------------------------------------------------

    def _resolve(self, text: str, *, debug: bool) -> ResolutionResult:
        key = self.cache_key(text)
        if not debug:
            cached = self._cache_get(key)
            if isinstance(cached, dict):
                cached = ResolutionResult(**cached)
            if cached is not None:
                logger.debug("Cache hit for {!r}", key)
                return replace(cached)

        query = build_query(text)
        trace: dict[str, Any] | None = None
        if debug:
            trace = {
                "query": {
                    "text": query.text,
                    "explicit_grams": query.explicit_grams,
                    "explicit_ml": query.explicit_ml,
                },
                "cache": "bypassed",
                "passes": [],
            }

        baseline = self._baseline(query, trace)

        try:
            result = self._catalog_passes(query, baseline, trace)
        except Exception:
            logger.exception("Catalog path failed for {!r}, using baseline", query.text)
            result = None

        if result is None:
            result = baseline
            outcome = "fallback"
        else:
            outcome = "catalog"

        if trace is not None:
            trace["outcome"] = outcome
            return replace(result, trace=trace)

        self._cache_set(key, result)
        return result

    def _baseline(self, query: Query, trace: dict[str, Any] | None) -> ResolutionResult:
        try:
            baseline = estimate_nutrition(query, self.generative, self.settings)
            error = None
        except Exception as e:
            logger.warning("Generative baseline failed for {!r}: {}", query.text, e)
            baseline = stub_result(query)
            error = str(e)

        if trace is not None:
            trace["baseline"] = {
                "name": baseline.name,
                "mode": baseline.mode,
                "calories": baseline.calories,
                "confidence": baseline.confidence,
                "error": error,
            }
        return baseline

    def _catalog_passes(
        self,
        query: Query,
        baseline: ResolutionResult,
        trace: dict[str, Any] | None,
    ) -> Optional[ResolutionResult]:
        first = self._attempt(query, query.text, baseline, first_pass=True, trace=trace)
        if first.result is not None or first.catalog_down:
            return first.result

        brands = detect_brands(query.text, self.vocabulary)
        cleaned = clean_query(query.text, brands, self.vocabulary)
        if not cleaned or cleaned == normalize_text(query.text):
            return None

        logger.info("Retrying {!r} as {!r}", query.text, cleaned)
        return self._attempt(query, cleaned, baseline, first_pass=False, trace=trace).result

    def _attempt(
        self,
        query: Query,
        search_text: str,
        baseline: ResolutionResult,
        *,
        first_pass: bool,
        trace: dict[str, Any] | None,
    ) -> _PassOutcome:
        step: dict[str, Any] = {"search_text": search_text, "first_pass": first_pass}
        if trace is not None:
            trace["passes"].append(step)

        try:
            raw = self.catalog.search(search_text, self.settings.max_results)
        except Exception as e:
            logger.warning("Catalog search failed for {!r}: {}", search_text, e)
            step["error"] = str(e)
            return _PassOutcome(catalog_down=True)

        candidates = build_candidates(raw)
        step["candidate_count"] = len(candidates)
        if not candidates:
            step["verdict"] = "no parseable candidates"
            return _PassOutcome()

        selection = select_candidate(search_text, candidates, self.generative, self.settings)
        step["shortlist"] = [
            {"id": sc.candidate.id, "name": sc.candidate.display_name, "token_score": round(sc.token_score, 3)}
            for sc in selection.shortlist
        ]
        step["selection_confidence"] = selection.selection_confidence
        chosen = selection.chosen
        if chosen is None:
            step["verdict"] = f"best token score {selection.token_score:.2f} too low"
            return _PassOutcome()
        step["chosen"] = {"id": chosen.id, "name": chosen.display_name, "description": chosen.description}

        verdict = run_gates(
            GateContext(
                query=query,
                query_text=search_text,
                candidate=chosen,
                token_score=selection.token_score,
                selection_confidence=selection.selection_confidence,
                baseline_confidence=baseline.confidence,
                first_pass=first_pass,
                vocabulary=self.vocabulary,
                settings=self.settings,
            )
        )
        step["gates"] = [{"gate": c.gate, "passed": c.passed, "reason": c.reason} for c in verdict.checks]
        if not verdict.accepted:
            logger.info("Vetoed {!r} for {!r}: {}", chosen.display_name, search_text, verdict.reason)
            step["verdict"] = f"vetoed by {verdict.reason}"
            return _PassOutcome()

        scaled = scale(chosen, query.explicit_grams, query.explicit_ml, self.settings, self.vocabulary)
        step["verdict"] = "accepted"
        step["scaling"] = {"mode": scaled.mode, "factor": round(scaled.factor, 4)}

        confidence = max(selection.selection_confidence, selection.token_score)
        return _PassOutcome(
            result=ResolutionResult(
                source="catalog",
                mode=scaled.mode,
                name=chosen.display_name,
                grams=query.explicit_grams,
                ml=query.explicit_ml,
                calories=scaled.calories,
                protein=scaled.protein,
                carbs=scaled.carbs,
                fat=scaled.fat,
                confidence=min(1.0, max(0.0, confidence)),
            )
        )

    def _cache_get(self, key: str) -> Optional[ResolutionResult]:
        try:
            return self.cache.get(key)
        except Exception as e:
            logger.warning("Cache read failed for {!r}: {}", key, e)
            return None

    def _cache_set(self, key: str, result: ResolutionResult) -> None:
        try:
            self.cache.set(key, result, self.settings.cache_ttl_s)
        except Exception as e:
            logger.warning("Cache write failed for {!r}: {}", key, e)
