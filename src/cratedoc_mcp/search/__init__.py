"""Tokenization, search index construction and persistence."""

from .index import (
    DEFAULT_SEARCH_LIMIT,
    NAME_FIELD_WEIGHT,
    IndexEntry,
    ScoredEntry,
    SearchIndex,
    build_index,
    query_index,
)
from .store import INDEX_SCHEMA_VERSION, IndexCorruptError, IndexStatus, IndexStore
from .tokenize import tokenize

__all__ = [
    "DEFAULT_SEARCH_LIMIT",
    "INDEX_SCHEMA_VERSION",
    "IndexCorruptError",
    "IndexEntry",
    "IndexStatus",
    "IndexStore",
    "NAME_FIELD_WEIGHT",
    "ScoredEntry",
    "SearchIndex",
    "build_index",
    "query_index",
    "tokenize",
]
