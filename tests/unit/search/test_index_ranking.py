from __future__ import annotations

import math
from pathlib import Path

from rustdoc_fixtures import open_scope, write_workspace

from cratedoc_mcp.search import build_index
from cratedoc_mcp.search.index import IndexEntry, SearchIndex, term_counts


def _demo_index(tmp_path: Path) -> SearchIndex:
    with open_scope(write_workspace(tmp_path)) as scope:
        return build_index(scope.root_handle("demo"))


def test_index_covers_reachable_items_of_one_corpus(tmp_path: Path) -> None:
    index = _demo_index(tmp_path)

    assert [entry.path for entry in index.entries] == [
        "demo::m",
        "demo::Bar",
        "demo::Shape",
        "demo::make_foo",
        "demo::Config",
        "demo::Bar::new",
        "demo::Bar::clone",
        "demo::Shape::Circle",
        "demo::Shape::Unit",
    ]
    assert index.corpus_name == "demo"
    assert index.fingerprint.startswith("sha256:")


def test_alias_entry_is_searchable_by_both_names(tmp_path: Path) -> None:
    index = _demo_index(tmp_path)
    bar = next(entry for entry in index.entries if entry.name == "Bar")

    assert bar.name_terms == {"bar": 1, "foo": 1}
    assert [hit.entry.path for hit in index.query("Bar")] == ["demo::Bar"]


def test_name_matches_outrank_doc_matches(tmp_path: Path) -> None:
    hits = _demo_index(tmp_path).query("foo")

    assert [hit.entry.path for hit in hits] == ["demo::Bar", "demo::make_foo", "demo::Bar::new"]
    assert hits[0].score == round(3 * math.log(4.0), 6)
    assert hits[2].score == round(math.log(4.0), 6)
    assert hits[0].matched_terms == ["foo"]


def test_plural_query_matches_singular_names(tmp_path: Path) -> None:
    hits = _demo_index(tmp_path).query("shapes")

    assert [hit.entry.path for hit in hits] == ["demo::Shape"]
    assert hits[0].matched_terms == ["shape", "shapes"]


def test_queries_without_overlap_or_limit_return_nothing(tmp_path: Path) -> None:
    index = _demo_index(tmp_path)

    assert index.query("zzz") == []
    assert index.query("   ") == []
    assert index.query("foo", limit=0) == []
    assert len(index.query("foo", limit=1)) == 1


def test_ties_break_on_path_then_item_id() -> None:
    entries = [
        IndexEntry("2", "b", "x::b", "function", {"b": 1}, {"shared": 1}),
        IndexEntry("1", "a", "x::a", "function", {"a": 1}, {"shared": 1}),
        IndexEntry("3", "a", "x::a", "function", {"a": 1}, {"shared": 1}),
    ]
    index = SearchIndex("x", None, "sha256:0", entries)

    hits = index.query("shared")

    assert [(hit.entry.path, hit.entry.item_id) for hit in hits] == [
        ("x::a", "1"),
        ("x::a", "3"),
        ("x::b", "2"),
    ]


def test_term_counts_fold_case_per_word() -> None:
    assert term_counts("Foo foo FOO") == {"foo": 3}
    assert term_counts("HashMap of maps") == {
        "hash": 1,
        "hashmap": 1,
        "map": 2,
        "maps": 1,
        "of": 1,
    }
    assert term_counts(None) == {}


def test_rebuilding_the_same_corpus_gives_identical_results(tmp_path: Path) -> None:
    root = write_workspace(tmp_path)
    with open_scope(root) as scope:
        first = build_index(scope.root_handle("demo"))
    with open_scope(root) as scope:
        second = build_index(scope.root_handle("demo"))

    assert first.entries == second.entries
    for query in ("foo", "shape", "Creates cached value", "config settings", "new"):
        assert [(hit.entry.path, hit.score, hit.matched_terms) for hit in first.query(query)] == [
            (hit.entry.path, hit.score, hit.matched_terms) for hit in second.query(query)
        ]
