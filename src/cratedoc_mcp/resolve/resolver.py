"""Resolve qualified names to items, following re-exports across corpora."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from typing import ClassVar

from cratedoc_mcp.corpus.handle import ItemHandle
from cratedoc_mcp.corpus.models import kind_rank
from cratedoc_mcp.corpus.traversal import UnresolvedReference, children_of, expand_ids
from cratedoc_mcp.resolve.fuzzy import Suggestion, suggest
from cratedoc_mcp.resolve.paths import CRATE_ALIASES, lenient_key, split_query_path
from cratedoc_mcp.session.scope import RequestScope


@dataclass(slots=True, frozen=True)
class PathMatch:
    """A resolved handle together with the path it was reached under."""

    handle: ItemHandle
    path: str


@dataclass(slots=True, frozen=True)
class Unique:
    match: PathMatch
    status: ClassVar[str] = "unique"

    @property
    def handle(self) -> ItemHandle:
        return self.match.handle

    @property
    def path(self) -> str:
        return self.match.path


@dataclass(slots=True, frozen=True)
class Ambiguous:
    query: str
    candidates: tuple[PathMatch, ...]
    status: ClassVar[str] = "ambiguous"


@dataclass(slots=True, frozen=True)
class NotFound:
    query: str
    suggestions: tuple[Suggestion, ...]
    reason: str
    status: ClassVar[str] = "not_found"


@dataclass(slots=True, frozen=True)
class UnresolvedExternal:
    """The path leads into a corpus the workspace does not provide."""

    query: str
    corpus_name: str
    target_path: str
    status: ClassVar[str] = "unresolved_external"


ResolutionOutcome = Unique | Ambiguous | NotFound | UnresolvedExternal


class PathResolver:
    """Turns query paths into resolution outcomes within one request scope."""

    def __init__(self, scope: RequestScope) -> None:
        self._scope = scope

    def resolve(self, query: str) -> ResolutionOutcome:
        """Resolve a path such as `serde::de::Deserialize`, `crate::Foo` or `Foo`.

        The first segment may name a crate (or the `crate`/`self` alias);
        otherwise it is looked up among the top-level names of the default
        crate and of any crate already loaded in this scope. Loading failures
        of an explicitly named crate propagate as LoadError.
        """
        segments = split_query_path(query)
        if not segments:
            return NotFound(query=query, suggestions=(), reason="Empty path.")
        session = self._scope.session
        first = segments[0]

        if first in CRATE_ALIASES:
            default = session.default_source()
            if default is None:
                return NotFound(
                    query=query,
                    suggestions=(),
                    reason=f"'{first}' needs a local crate, and the workspace has none.",
                )
            start = PathMatch(self._scope.root_handle(default.name), default.name)
            return self._walk(query, [start], segments[1:])

        source = session.find(first)
        if source is not None:
            start = PathMatch(self._scope.root_handle(source.name), source.name)
            return self._walk(query, [start], segments[1:])

        starts = self._bare_starts()
        if not starts:
            suggestions = suggest(first, session.names())
            return NotFound(
                query=query,
                suggestions=tuple(suggestions),
                reason=f"'{first}' is not a known crate and no default crate is available.",
            )
        return self._walk(query, starts, segments, first_hop_extras=session.names())

    def resolve_below(self, handle: ItemHandle, segment: str) -> ResolutionOutcome:
        """Resolve a single segment relative to an already resolved item."""
        start = PathMatch(handle, handle.canonical_path())
        return self._walk(f"{start.path}::{segment}", [start], split_query_path(segment))

    def _bare_starts(self) -> list[PathMatch]:
        starts: list[PathMatch] = []
        default = self._scope.session.default_source()
        if default is not None:
            starts.append(PathMatch(self._scope.root_handle(default.name), default.name))
        for key in self._scope.loaded_keys():
            if default is not None and key == default.key:
                continue
            corpus = self._scope.loaded(key)
            starts.append(PathMatch(self._scope.handle_for(key, corpus.root_id), corpus.name))
        return starts

    def _walk(
        self,
        query: str,
        matches: list[PathMatch],
        segments: list[str],
        first_hop_extras: Iterable[str] = (),
    ) -> ResolutionOutcome:
        current = matches
        for index, segment in enumerate(segments):
            unresolved: list[UnresolvedReference] = []
            found, siblings = self._step(current, segment, unresolved)
            if found:
                current = found
                continue
            for reference in unresolved:
                if lenient_key(reference.name) == lenient_key(segment):
                    return UnresolvedExternal(
                        query=query,
                        corpus_name=reference.corpus_name,
                        target_path=reference.target_path,
                    )
            candidates = list(siblings)
            if index == 0:
                candidates.extend(first_hop_extras)
            suggestions = tuple(
                Suggestion(candidate=siblings.get(item.candidate, item.candidate), score=item.score)
                for item in suggest(segment, candidates)
            )
            prefix = current[0].path
            if not siblings:
                reason = f"'{prefix}' has no children; nothing can match '{segment}'."
            elif suggestions:
                reason = f"No item named '{segment}' under '{prefix}'."
            else:
                reason = f"No item named '{segment}' under '{prefix}' and no similar names."
            return NotFound(query=query, suggestions=suggestions, reason=reason)
        return _finish(query, current)

    def _step(
        self,
        current: list[PathMatch],
        segment: str,
        unresolved: list[UnresolvedReference],
    ) -> tuple[list[PathMatch], dict[str, str]]:
        exact: list[PathMatch] = []
        lenient: list[PathMatch] = []
        siblings: dict[str, str] = {}
        wanted = lenient_key(segment)
        for match in current:
            for child in self._candidates(match.handle, segment, unresolved):
                name = child.display_name()
                child_path = f"{match.path}::{name}"
                siblings.setdefault(name, child_path)
                if name == segment:
                    _append_unique(exact, PathMatch(child, child_path))
                elif lenient_key(name) == wanted:
                    _append_unique(lenient, PathMatch(child, child_path))
        return (exact or lenient), siblings

    @staticmethod
    def _candidates(
        handle: ItemHandle, segment: str, unresolved: list[UnresolvedReference]
    ) -> Iterable[ItemHandle]:
        corpus = handle.corpus()
        if handle.item_id == corpus.root_id and segment in corpus.top_level:
            direct = expand_ids(handle, corpus.top_level[segment], unresolved=unresolved)
            if direct:
                return direct
        return children_of(handle, unresolved=unresolved)


def _append_unique(matches: list[PathMatch], candidate: PathMatch) -> None:
    if all(existing.handle != candidate.handle for existing in matches):
        matches.append(candidate)


def _finish(query: str, matches: list[PathMatch]) -> ResolutionOutcome:
    unique: list[PathMatch] = []
    for match in matches:
        _append_unique(unique, match)
    if len(unique) == 1:
        return Unique(match=unique[0])
    ordered = sorted(
        unique,
        key=lambda match: (kind_rank(match.handle.kind), match.path, *match.handle.identity),
    )
    return Ambiguous(query=query, candidates=tuple(ordered))
