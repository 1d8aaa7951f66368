"""Corpus loading, item handles and graph traversal."""

from .handle import ImplOrigin, ItemHandle
from .loader import (
    MAX_FORMAT_VERSION,
    MIN_FORMAT_VERSION,
    CorpusMalformedError,
    CorpusUnreadableError,
    LoadError,
    load_corpus,
    parse_corpus,
)
from .models import Corpus, Item, PathSummary, corpus_key
from .summary import ItemSummary, fields_of, summarize
from .traversal import (
    UnresolvedReference,
    children_of,
    expand_ids,
    iter_tree,
    methods_of,
    trait_impls_of,
)

__all__ = [
    "Corpus",
    "CorpusMalformedError",
    "CorpusUnreadableError",
    "ImplOrigin",
    "Item",
    "ItemHandle",
    "ItemSummary",
    "LoadError",
    "MAX_FORMAT_VERSION",
    "MIN_FORMAT_VERSION",
    "PathSummary",
    "UnresolvedReference",
    "children_of",
    "corpus_key",
    "expand_ids",
    "fields_of",
    "iter_tree",
    "load_corpus",
    "methods_of",
    "parse_corpus",
    "summarize",
    "trait_impls_of",
]
