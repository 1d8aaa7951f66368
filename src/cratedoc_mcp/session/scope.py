"""Request-scoped corpus cache with deterministic teardown."""

from __future__ import annotations

import threading
from collections.abc import Callable, Iterable
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from pathlib import Path
from types import TracebackType

from cratedoc_mcp.corpus.handle import ImplOrigin, ItemHandle
from cratedoc_mcp.corpus.loader import LoadError, load_corpus
from cratedoc_mcp.corpus.models import Corpus
from cratedoc_mcp.session.discovery import CorpusSource
from cratedoc_mcp.session.workspace import WorkspaceSession

CorpusLoader = Callable[[Path, str | None, int], Corpus]


class ScopeClosedError(RuntimeError):
    """Raised when a handle or scope is used after the request ended."""


class UnknownCorpusError(LookupError):
    """Raised when a corpus name is not part of the selected workspace."""

    def __init__(self, name: str) -> None:
        super().__init__(f"Crate '{name}' is not known in the selected workspace.")
        self.name = name


class RequestScope:
    """Owns every corpus loaded while answering one query.

    Corpora load on first touch and are dropped when the scope exits. Handles
    produced inside the scope dereference through it and stop working after
    close.
    """

    def __init__(
        self,
        session: WorkspaceSession,
        loader: CorpusLoader = load_corpus,
        workers: int | None = None,
        retries: int | None = None,
    ) -> None:
        self._session = session
        self._loader = loader
        self._workers = workers if workers is not None else session.config.corpus.load_workers
        self._retries = retries if retries is not None else session.config.corpus.load_retries
        self._corpora: dict[str, Corpus] = {}
        self._failures: dict[str, LoadError] = {}
        self._cancelled = threading.Event()
        self._closed = False

    @property
    def session(self) -> WorkspaceSession:
        return self._session

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def failures(self) -> dict[str, LoadError]:
        return dict(self._failures)

    def __enter__(self) -> RequestScope:
        self._ensure_open()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        traceback: TracebackType | None,
    ) -> None:
        if exc_type is not None:
            self.cancel()
        self.close()

    def close(self) -> None:
        """Drop every loaded corpus; safe to call more than once."""
        self._corpora.clear()
        self._failures.clear()
        self._closed = True

    def cancel(self) -> None:
        """Abandon in-flight loads; their results are discarded."""
        self._cancelled.set()

    def loaded_keys(self) -> list[str]:
        self._ensure_open()
        return list(self._corpora.keys())

    def loaded(self, key: str) -> Corpus:
        """Return a corpus by key, loading it if no handle has touched it yet."""
        self._ensure_open()
        corpus = self._corpora.get(key)
        if corpus is not None:
            return corpus
        return self.corpus(key)

    def corpus(self, name: str) -> Corpus:
        """Return the named corpus, loading it on first touch.

        Raises UnknownCorpusError for names outside the workspace and LoadError
        when the export cannot be loaded.
        """
        self._ensure_open()
        source = self._session.find(name)
        if source is None:
            raise UnknownCorpusError(name)
        loaded = self._corpora.get(source.key)
        if loaded is not None:
            return loaded
        failure = self._failures.get(source.key)
        if failure is not None:
            raise failure
        try:
            corpus = self._load(source)
        except LoadError as error:
            self._failures[source.key] = error
            raise
        self._corpora[source.key] = corpus
        return corpus

    def try_corpus(self, name: str) -> Corpus | None:
        """Like corpus(), but unknown or failing corpora read as None."""
        try:
            return self.corpus(name)
        except (UnknownCorpusError, LoadError):
            return None

    def load_many(self, names: Iterable[str]) -> dict[str, LoadError]:
        """Load independent corpora in parallel; failures are per corpus.

        Only fully loaded corpora become visible. Returns the failures among
        the requested names, keyed by corpus key.
        """
        self._ensure_open()
        requested: list[CorpusSource] = []
        for name in names:
            source = self._session.find(name)
            if source is not None and all(source.key != known.key for known in requested):
                requested.append(source)
        pending = [
            source
            for source in requested
            if source.key not in self._corpora and source.key not in self._failures
        ]
        if len(pending) == 1:
            self.try_corpus(pending[0].name)
        elif pending:
            self._load_parallel(pending)
        return {
            source.key: self._failures[source.key]
            for source in requested
            if source.key in self._failures
        }

    def handle_for(
        self,
        corpus_key: str,
        item_id: str,
        alias: str | None = None,
        origin: ImplOrigin | None = None,
    ) -> ItemHandle:
        self._ensure_open()
        return ItemHandle(
            scope=self,
            corpus_key=corpus_key,
            item_id=item_id,
            alias=alias,
            origin=origin,
        )

    def root_handle(self, name: str) -> ItemHandle:
        corpus = self.corpus(name)
        source = self._session.find(name)
        key = source.key if source is not None else corpus.key
        return self.handle_for(key, corpus.root_id)

    def _load_parallel(self, pending: list[CorpusSource]) -> None:
        executor = ThreadPoolExecutor(max_workers=max(1, min(self._workers, len(pending))))
        try:
            futures: dict[Future[Corpus], CorpusSource] = {
                executor.submit(self._load, source): source for source in pending
            }
            for future in as_completed(futures):
                if self._cancelled.is_set():
                    break
                source = futures[future]
                try:
                    corpus = future.result()
                except LoadError as error:
                    self._failures[source.key] = error
                    continue
                self._corpora[source.key] = corpus
        finally:
            executor.shutdown(wait=not self._cancelled.is_set(), cancel_futures=True)

    def _load(self, source: CorpusSource) -> Corpus:
        return self._loader(source.path, source.name, self._retries)

    def _ensure_open(self) -> None:
        if self._closed:
            raise ScopeClosedError("Request scope is closed.")
