from __future__ import annotations

from .models import Candidate, ScoredCandidate
from .normalize import tokens

# Short queries still divide by this, so "tea" vs any tea entry tops out at 0.25.
MIN_QUERY_TOKENS = 4


def token_score(query: str, candidate: Candidate) -> float:
    q_tokens = tokens(query)
    if not q_tokens:
        return 0.0
    c_tokens = tokens(candidate.text)
    return len(q_tokens & c_tokens) / max(MIN_QUERY_TOKENS, len(q_tokens))


def rank_candidates(query: str, candidates: list[Candidate]) -> list[ScoredCandidate]:
    scored = [ScoredCandidate(candidate=c, token_score=token_score(query, c)) for c in candidates]
    # sort() is stable, so equal scores keep catalog order.
    scored.sort(key=lambda s: -s.token_score)
    return scored
