"""Jaro-Winkler suggestions for near-miss names."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from rapidfuzz.distance import JaroWinkler

MAX_SUGGESTIONS = 5
SIMILARITY_THRESHOLD = 0.8
WINKLER_PREFIX_WEIGHT = 0.1


@dataclass(slots=True, frozen=True)
class Suggestion:
    """Candidate name with its similarity to the requested name."""

    candidate: str
    score: float


def normalize_name(value: str) -> str:
    """Fold case and treat hyphen and underscore as the same character."""
    return value.strip().lower().replace("-", "_")


def jaro_winkler_similarity(left: str, right: str) -> float:
    """Return Jaro-Winkler similarity in [0, 1], boosting up to four shared leading chars."""
    return JaroWinkler.similarity(left, right, prefix_weight=WINKLER_PREFIX_WEIGHT)


def suggest(
    target: str,
    candidates: Iterable[str],
    limit: int = MAX_SUGGESTIONS,
    threshold: float = SIMILARITY_THRESHOLD,
) -> list[Suggestion]:
    """Rank candidates by similarity to target.

    Candidates scoring below ``threshold`` are dropped, duplicates are
    collapsed, and ties are broken by candidate text. An empty list means no
    candidate was close enough.
    """
    if limit < 1:
        return []
    normalized_target = normalize_name(target)
    if not normalized_target:
        return []
    best: dict[str, float] = {}
    for candidate in candidates:
        if not candidate:
            continue
        score = jaro_winkler_similarity(normalized_target, normalize_name(candidate))
        if score < threshold:
            continue
        if score > best.get(candidate, -1.0):
            best[candidate] = score
    ranked = sorted(best.items(), key=lambda pair: (-pair[1], pair[0]))
    return [Suggestion(candidate=name, score=round(score, 6)) for name, score in ranked[:limit]]
