"""Process-wide session tier: the selected workspace and its known corpora."""

from __future__ import annotations

import threading
from dataclasses import dataclass
from pathlib import Path

from cratedoc_mcp.config import ServerConfig
from cratedoc_mcp.corpus.models import corpus_key
from cratedoc_mcp.session.discovery import CorpusSource, discover_corpora


class WorkspaceNotSelectedError(Exception):
    """Raised when a query arrives before any workspace was selected."""

    def __init__(self) -> None:
        super().__init__("No workspace selected. Call docs.set_workspace first.")


@dataclass(slots=True, frozen=True)
class WorkspaceSession:
    """Immutable snapshot of one selected workspace."""

    root: Path
    config: ServerConfig
    corpora: tuple[CorpusSource, ...]
    default_corpus: str | None

    @property
    def data_dir(self) -> Path:
        return self.config.data_dir

    def find(self, name: str) -> CorpusSource | None:
        """Return a known corpus by name, hyphen/underscore and case insensitive."""
        key = corpus_key(name)
        for source in self.corpora:
            if source.key == key:
                return source
        return None

    def names(self) -> list[str]:
        return [source.name for source in self.corpora]

    def default_source(self) -> CorpusSource | None:
        if self.default_corpus is None:
            return None
        return self.find(self.default_corpus)

    def describe(self) -> dict[str, object]:
        counts: dict[str, int] = {}
        available = 0
        for source in self.corpora:
            counts[source.origin] = counts.get(source.origin, 0) + 1
            if source.is_available():
                available += 1
        return {
            "workspace_root": str(self.root),
            "default_crate": self.default_corpus,
            "crate_count": len(self.corpora),
            "available_count": available,
            "origin_counts": dict(sorted(counts.items())),
        }


def build_session(config: ServerConfig) -> WorkspaceSession:
    """Discover corpora for the workspace described by config."""
    root = config.workspace_root
    doc_dir = config.corpus.doc_dir
    if not doc_dir.is_absolute():
        doc_dir = root / doc_dir
    corpora = discover_corpora(root, doc_dir, config.corpus.stdlib_doc_dir)
    default_corpus = next((source.name for source in corpora if source.origin == "local"), None)
    return WorkspaceSession(
        root=root,
        config=config,
        corpora=tuple(corpora),
        default_corpus=default_corpus,
    )


class SessionState:
    """Holder for the current session; replacement is atomic for readers."""

    def __init__(self, session: WorkspaceSession | None = None) -> None:
        self._lock = threading.Lock()
        self._session = session

    def current(self) -> WorkspaceSession:
        with self._lock:
            session = self._session
        if session is None:
            raise WorkspaceNotSelectedError()
        return session

    def peek(self) -> WorkspaceSession | None:
        with self._lock:
            return self._session

    def replace(self, session: WorkspaceSession) -> WorkspaceSession | None:
        with self._lock:
            previous = self._session
            self._session = session
        return previous
