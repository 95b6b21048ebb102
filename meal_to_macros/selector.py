from __future__ import annotations

from loguru import logger

from .config import DEFAULT_SETTINGS, Settings
from .estimate import pick_candidate
from .generative import GenerationError, GenerativeService
from .match import rank_candidates
from .models import Candidate, Selection


def select_candidate(
    query_text: str,
    candidates: list[Candidate],
    generative: GenerativeService,
    settings: Settings = DEFAULT_SETTINGS,
) -> Selection:
    """Name the catalog candidate that best matches the query, or nothing.

    The generative service only chooses among the top token-scored entries;
    when it fails the top-scored entry is returned with confidence 0.
    """
    ranked = rank_candidates(query_text, candidates)
    shortlist = ranked[: settings.shortlist_size]
    if not ranked or ranked[0].token_score < settings.min_db_token_score:
        best = ranked[0].token_score if ranked else 0.0
        logger.debug("No catalog candidate for {!r}: best token score {:.2f}", query_text, best)
        return Selection(chosen=None, selection_confidence=0.0, token_score=best, shortlist=tuple(shortlist))

    try:
        index, confidence = pick_candidate(query_text, shortlist, generative)
    except GenerationError as e:
        logger.warning("Candidate pick failed for {!r}, using top score: {}", query_text, e)
        index, confidence = None, 0.0

    if index is None or not 0 <= index < len(shortlist):
        if index is not None:
            logger.warning("Candidate pick index {} out of range for {!r}", index, query_text)
        top = shortlist[0]
        return Selection(
            chosen=top.candidate,
            selection_confidence=0.0,
            token_score=top.token_score,
            shortlist=tuple(shortlist),
        )

    picked = shortlist[index]
    return Selection(
        chosen=picked.candidate,
        selection_confidence=confidence,
        token_score=picked.token_score,
        shortlist=tuple(shortlist),
    )
