"""Path resolution and fuzzy suggestions."""

from .fuzzy import Suggestion, jaro_winkler_similarity, suggest
from .paths import split_query_path
from .resolver import (
    Ambiguous,
    NotFound,
    PathMatch,
    PathResolver,
    ResolutionOutcome,
    Unique,
    UnresolvedExternal,
)

__all__ = [
    "Ambiguous",
    "NotFound",
    "PathMatch",
    "PathResolver",
    "ResolutionOutcome",
    "Suggestion",
    "Unique",
    "UnresolvedExternal",
    "jaro_winkler_similarity",
    "split_query_path",
    "suggest",
]
