"""Query operations over the selected workspace, one request scope per call."""

from __future__ import annotations

import threading
from dataclasses import asdict
from pathlib import Path

from cratedoc_mcp.config import CliOverrides, ServerConfig, load_effective_config
from cratedoc_mcp.corpus.handle import ItemHandle
from cratedoc_mcp.corpus.loader import load_corpus
from cratedoc_mcp.corpus.summary import summarize
from cratedoc_mcp.corpus.traversal import iter_tree, methods_of, trait_impls_of
from cratedoc_mcp.resolve.fuzzy import suggest
from cratedoc_mcp.resolve.paths import CRATE_ALIASES, join_path, split_query_path
from cratedoc_mcp.resolve.resolver import (
    Ambiguous,
    NotFound,
    PathResolver,
    ResolutionOutcome,
    Unique,
)
from cratedoc_mcp.search.store import IndexStore
from cratedoc_mcp.security import resolve_workspace_root
from cratedoc_mcp.session.discovery import ORIGIN_ORDER
from cratedoc_mcp.session.scope import CorpusLoader, RequestScope
from cratedoc_mcp.session.workspace import SessionState, WorkspaceSession, build_session


class DocsEngine:
    """Answers documentation queries for the currently selected workspace.

    Every operation opens its own RequestScope and converts handles into plain
    summaries before the scope closes. Auxiliary load failures and index
    rebuilds are reported under the ``__warnings__`` result key.
    """

    def __init__(
        self,
        config: ServerConfig,
        overrides: CliOverrides | None = None,
        loader: CorpusLoader = load_corpus,
    ) -> None:
        self._startup_config = config
        self._overrides = overrides or CliOverrides()
        self._loader = loader
        self._state = SessionState()
        self._stores: dict[Path, IndexStore] = {}
        self._stores_lock = threading.Lock()

    @property
    def state(self) -> SessionState:
        return self._state

    def auto_select(self) -> bool:
        """Select the startup workspace when it holds a manifest or generated docs."""
        root = self._startup_config.workspace_root
        if not (root / "Cargo.toml").is_file() and not (root / "target" / "doc").is_dir():
            return False
        self._state.replace(build_session(self._startup_config))
        return True

    def select_workspace(self, path: str) -> dict[str, object]:
        root = resolve_workspace_root(path)
        if root == self._startup_config.workspace_root:
            config = self._startup_config
        else:
            config = load_effective_config(root, self._overrides)
        session = build_session(config)
        self._state.replace(session)
        return session.describe()

    def open_scope(self) -> RequestScope:
        return RequestScope(self._state.current(), loader=self._loader)

    def effective_config(self) -> ServerConfig:
        session = self._state.peek()
        return session.config if session is not None else self._startup_config

    def status(self) -> dict[str, object]:
        session = self._state.peek()
        config = self.effective_config()
        indexes: list[dict[str, object]] = []
        if session is not None:
            store = self._store_for(session)
            for source in session.corpora:
                if source.origin == "local":
                    indexes.append(asdict(store.status(source.name, source.version)))
        return {
            "workspace": session.describe() if session is not None else None,
            "search_index_dir": str(config.data_dir / "search"),
            "search_indexes": indexes,
            "effective_config": config.to_public_dict(),
        }

    def list_corpora(self, scope: str = "all") -> dict[str, object]:
        session = self._state.current()
        crates: list[dict[str, object]] = []
        for source in session.corpora:
            if scope != "all" and source.origin != scope:
                continue
            crates.append(
                {
                    "name": source.name,
                    "version": source.version,
                    "origin": source.origin,
                    "available": source.is_available(),
                    "default": source.name == session.default_corpus,
                    "path": str(source.path),
                }
            )
        crates.sort(key=lambda entry: (ORIGIN_ORDER.index(str(entry["origin"])), entry["name"]))
        return {"scope": scope, "crates": crates}

    def resolve(self, path: str) -> dict[str, object]:
        with self.open_scope() as scope:
            warnings = self._preload(scope, path)
            outcome = PathResolver(scope).resolve(path)
            payload = outcome_payload(outcome)
            if isinstance(outcome, Unique):
                payload["item"] = summarize(outcome.handle, outcome.path).to_dict()
            elif isinstance(outcome, Ambiguous):
                payload["candidates"] = [
                    summarize(match.handle, match.path).to_brief_dict()
                    for match in outcome.candidates
                ]
            return _with_warnings(payload, warnings)

    def list_children(
        self,
        path: str,
        recursive: bool = False,
        kind: str | None = None,
        limit: int = 200,
    ) -> dict[str, object]:
        with self.open_scope() as scope:
            warnings = self._preload(scope, path)
            outcome = PathResolver(scope).resolve(path)
            if not isinstance(outcome, Unique):
                return _with_warnings(outcome_payload(outcome), warnings)
            children: list[dict[str, object]] = []
            truncated = False
            for relative, child in iter_tree(outcome.handle, recursive=recursive):
                if kind is not None and child.kind != kind:
                    continue
                if len(children) >= limit:
                    truncated = True
                    break
                child_path = join_path((outcome.path, *relative))
                children.append(summarize(child, child_path).to_brief_dict())
            payload = outcome_payload(outcome)
            payload["children"] = children
            payload["truncated"] = truncated
            return _with_warnings(payload, warnings)

    def list_methods(self, path: str) -> dict[str, object]:
        return self._list_type_members(path, methods=True)

    def list_trait_impls(self, path: str) -> dict[str, object]:
        return self._list_type_members(path, methods=False)

    def search(self, crate: str | None, query: str, limit: int) -> dict[str, object]:
        with self.open_scope() as scope:
            session = scope.session
            source = session.find(crate) if crate else session.default_source()
            if source is None:
                target = crate or ""
                return {
                    "status": "not_found",
                    "hits": [],
                    "suggestions": [
                        {"path": item.candidate, "score": item.score}
                        for item in suggest(target, session.names())
                    ],
                    "reason": (
                        f"Crate '{target}' is not known in the selected workspace."
                        if crate
                        else "No crate given and the workspace has no default crate."
                    ),
                }
            root = scope.root_handle(source.name)
            corpus = root.corpus()
            index, warnings = self._store_for(session).load_or_build(root)
            hits: list[dict[str, object]] = []
            for scored in index.query(query, limit):
                entry = scored.entry
                item = corpus.items.get(entry.item_id)
                if item is None:
                    continue
                alias = entry.name if entry.name != item.name else None
                handle = scope.handle_for(source.key, entry.item_id, alias=alias)
                hit = summarize(handle, entry.path).to_brief_dict()
                hit["score"] = scored.score
                hit["matched_terms"] = scored.matched_terms
                hits.append(hit)
            payload: dict[str, object] = {
                "status": "ok",
                "crate": corpus.name,
                "crate_version": corpus.version,
                "hits": hits,
            }
            return _with_warnings(payload, warnings)

    def _list_type_members(self, path: str, methods: bool) -> dict[str, object]:
        with self.open_scope() as scope:
            warnings = self._preload(scope, path)
            outcome = PathResolver(scope).resolve(path)
            if not isinstance(outcome, Unique):
                return _with_warnings(outcome_payload(outcome), warnings)
            members: list[ItemHandle] = list(
                methods_of(outcome.handle) if methods else trait_impls_of(outcome.handle)
            )
            entries = [
                summarize(member, f"{outcome.path}::{member.display_name()}").to_brief_dict()
                for member in members
            ]
            payload = outcome_payload(outcome)
            payload["methods" if methods else "impls"] = entries
            return _with_warnings(payload, warnings)

    def _preload(self, scope: RequestScope, query: str) -> list[str]:
        """Load the corpus a query starts in, then its re-export targets in parallel."""
        segments = split_query_path(query)
        session = scope.session
        source = None
        if segments and segments[0] not in CRATE_ALIASES:
            source = session.find(segments[0])
        if source is None:
            source = session.default_source()
        if source is None:
            return []
        corpus = scope.corpus(source.name)
        targets = [name for name in corpus.reexport_crates if session.find(name) is not None]
        failures = scope.load_many(targets)
        return [f"{error}" for _, error in sorted(failures.items())]

    def _store_for(self, session: WorkspaceSession) -> IndexStore:
        with self._stores_lock:
            store = self._stores.get(session.data_dir)
            if store is None:
                store = IndexStore(session.data_dir)
                self._stores[session.data_dir] = store
            return store


def outcome_payload(outcome: ResolutionOutcome) -> dict[str, object]:
    """Serialize the status part of a resolution outcome."""
    payload: dict[str, object] = {"status": outcome.status, "query": _outcome_query(outcome)}
    if isinstance(outcome, Unique):
        payload["path"] = outcome.path
        return payload
    if isinstance(outcome, NotFound):
        payload["suggestions"] = [
            {"path": item.candidate, "score": item.score} for item in outcome.suggestions
        ]
        payload["reason"] = outcome.reason
        return payload
    if isinstance(outcome, Ambiguous):
        payload["reason"] = (
            f"'{outcome.query}' matches {len(outcome.candidates)} items; "
            "qualify the path further."
        )
        return payload
    payload["crate"] = outcome.corpus_name
    payload["target_path"] = outcome.target_path
    payload["reason"] = (
        f"'{outcome.target_path}' lives in crate '{outcome.corpus_name}', "
        "which has no documentation in this workspace."
    )
    return payload


def _outcome_query(outcome: ResolutionOutcome) -> str:
    if isinstance(outcome, Unique):
        return outcome.path
    return outcome.query


def _with_warnings(payload: dict[str, object], warnings: list[str]) -> dict[str, object]:
    if warnings:
        payload["__warnings__"] = warnings
    return payload
