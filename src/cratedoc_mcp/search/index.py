"""Field-weighted TF-IDF index over item names and documentation bodies."""

from __future__ import annotations

import math
from collections import Counter
from dataclasses import dataclass, field

from cratedoc_mcp.corpus.handle import ItemHandle
from cratedoc_mcp.corpus.traversal import iter_tree
from cratedoc_mcp.resolve.paths import join_path
from cratedoc_mcp.search.tokenize import tokenize

NAME_FIELD_WEIGHT = 2.0
DOC_FIELD_WEIGHT = 1.0
DEFAULT_SEARCH_LIMIT = 10
RELEVANCE_FLOOR = 0.0
INDEXED_CONTAINER_KINDS = frozenset({"module", "struct", "enum", "union", "trait", "primitive"})
SKIPPED_KINDS = frozenset({"impl", "use", "extern_crate"})


@dataclass(slots=True, frozen=True)
class IndexEntry:
    """One searchable item with per-field term counts."""

    item_id: str
    name: str
    path: str
    kind: str
    name_terms: dict[str, int]
    doc_terms: dict[str, int]


@dataclass(slots=True, frozen=True)
class ScoredEntry:
    entry: IndexEntry
    score: float
    matched_terms: list[str]


@dataclass(slots=True)
class SearchIndex:
    """Entries of one corpus plus document frequencies."""

    corpus_name: str
    corpus_version: str | None
    fingerprint: str
    entries: list[IndexEntry]
    doc_freq: dict[str, int] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not self.doc_freq:
            self.doc_freq = document_frequencies(self.entries)

    def query(self, text: str, limit: int = DEFAULT_SEARCH_LIMIT) -> list[ScoredEntry]:
        return query_index(self, text, limit)


def term_counts(text: str | None) -> dict[str, int]:
    if not text:
        return {}
    counts = Counter(_all_tokens(text))
    return dict(sorted(counts.items()))


def _all_tokens(text: str) -> list[str]:
    # One count per term per word occurrence; "Foo" and "foo" fold together.
    tokens: list[str] = []
    for word in text.split():
        tokens.extend(dict.fromkeys(token.lower() for token in tokenize(word)))
    return tokens


def document_frequencies(entries: list[IndexEntry]) -> dict[str, int]:
    frequencies: Counter[str] = Counter()
    for entry in entries:
        frequencies.update(set(entry.name_terms) | set(entry.doc_terms))
    return dict(sorted(frequencies.items()))


def build_index(root: ItemHandle) -> SearchIndex:
    """Index every item of the root's corpus reachable from the crate root.

    Each item is indexed once, under the first (shortest) path it is reached
    by; an item first reached under an alias is searchable by both names.
    Items owned by other corpora are skipped.
    """
    corpus = root.corpus()
    entries: list[IndexEntry] = []
    indexed: set[str] = set()
    for relative_path, handle in iter_tree(
        root, recursive=True, descend_kinds=INDEXED_CONTAINER_KINDS
    ):
        if handle.corpus_key != root.corpus_key or handle.item_id in indexed:
            continue
        item = handle.item()
        if item.kind in SKIPPED_KINDS:
            continue
        indexed.add(handle.item_id)
        name = handle.display_name()
        name_text = name if item.name in {None, name} else f"{name} {item.name}"
        entries.append(
            IndexEntry(
                item_id=handle.item_id,
                name=name,
                path=join_path((corpus.name, *relative_path)),
                kind=item.kind,
                name_terms=term_counts(name_text),
                doc_terms=term_counts(item.docs),
            )
        )
    return SearchIndex(
        corpus_name=corpus.name,
        corpus_version=corpus.version,
        fingerprint=corpus.fingerprint,
        entries=entries,
    )


def query_index(
    index: SearchIndex, text: str, limit: int = DEFAULT_SEARCH_LIMIT
) -> list[ScoredEntry]:
    """Rank entries by summed per-term TF-IDF with the name field weighted double.

    Entries with no overlap are excluded. Ties break on path, then item id.
    """
    terms = sorted({token.lower() for token in tokenize(text)})
    total = len(index.entries)
    if not terms or total == 0 or limit < 1:
        return []
    idf = {
        term: math.log(1.0 + total / index.doc_freq[term])
        for term in terms
        if index.doc_freq.get(term)
    }
    scored: list[ScoredEntry] = []
    for entry in index.entries:
        score = 0.0
        matched: list[str] = []
        for term, weight in idf.items():
            frequency = (
                NAME_FIELD_WEIGHT * entry.name_terms.get(term, 0)
                + DOC_FIELD_WEIGHT * entry.doc_terms.get(term, 0)
            )
            if frequency <= 0:
                continue
            score += weight * frequency
            matched.append(term)
        if score <= RELEVANCE_FLOOR:
            continue
        scored.append(ScoredEntry(entry=entry, score=round(score, 6), matched_terms=matched))
    scored.sort(key=lambda hit: (-hit.score, hit.entry.path, hit.entry.item_id))
    return scored[:limit]
