"""Persistent search index storage keyed by corpus identity."""

from __future__ import annotations

import json
import threading
import uuid
from dataclasses import asdict, dataclass
from datetime import UTC, datetime
from pathlib import Path

from cratedoc_mcp.corpus.handle import ItemHandle
from cratedoc_mcp.corpus.models import corpus_key
from cratedoc_mcp.search.index import IndexEntry, SearchIndex, build_index

INDEX_SCHEMA_VERSION = 1


@dataclass(slots=True, frozen=True)
class IndexCorruptError(Exception):
    """Raised when persisted index files cannot be trusted."""

    path: str
    detail: str


@dataclass(slots=True, frozen=True)
class IndexStatus:
    """Snapshot of one persisted index."""

    index_status: str
    corpus_name: str
    corpus_version: str | None
    fingerprint: str | None
    entry_count: int
    built_at: str | None


class IndexStore:
    """Loads, validates and rebuilds per-corpus search indexes under data_dir.

    A stored index is reused only when its schema version, corpus identity and
    fingerprint all match the loaded corpus; otherwise it is rebuilt wholesale.
    Files are written after the in-memory build completes, entries before the
    manifest, each through a temporary file and an atomic replace.
    """

    def __init__(self, data_dir: Path) -> None:
        self._data_dir = data_dir.resolve()
        self._root = self._data_dir / "search"
        self._lock = threading.Lock()
        self._memo: dict[Path, SearchIndex] = {}

    @property
    def root(self) -> Path:
        return self._root

    def index_dir(self, corpus_name: str, version: str | None) -> Path:
        return self._root / f"{corpus_key(corpus_name)}-{version or 'unversioned'}"

    def load_or_build(self, root: ItemHandle) -> tuple[SearchIndex, list[str]]:
        """Return a valid index for the root's corpus and any rebuild warnings."""
        corpus = root.corpus()
        index_dir = self.index_dir(corpus.name, corpus.version)
        warnings: list[str] = []
        with self._lock:
            cached = self._memo.get(index_dir)
            if cached is not None and cached.fingerprint == corpus.fingerprint:
                return cached, warnings
            try:
                stored = self._read_index(index_dir)
            except IndexCorruptError as error:
                warnings.append(
                    f"Search index for '{corpus.name}' was unreadable ({error.detail}); rebuilt."
                )
                stored = None
            if stored is not None and _matches(stored, corpus.name, corpus.fingerprint):
                self._memo[index_dir] = stored
                return stored, warnings

            index = build_index(root)
            self._write_index(index_dir, index)
            self._memo[index_dir] = index
            return index, warnings

    def status(self, corpus_name: str, version: str | None) -> IndexStatus:
        manifest_path = self.index_dir(corpus_name, version) / "manifest.json"
        try:
            manifest = self._read_manifest(manifest_path)
        except IndexCorruptError:
            manifest = {"schema_version": -1}
        if manifest is None:
            return IndexStatus("not_indexed", corpus_name, version, None, 0, None)
        if manifest.get("schema_version") != INDEX_SCHEMA_VERSION:
            return IndexStatus("schema_mismatch", corpus_name, version, None, 0, None)
        return IndexStatus(
            index_status="ready",
            corpus_name=corpus_name,
            corpus_version=version,
            fingerprint=_as_optional_str(manifest.get("fingerprint")),
            entry_count=_as_optional_int(manifest.get("entry_count")) or 0,
            built_at=_as_optional_str(manifest.get("built_at")),
        )

    def _read_index(self, index_dir: Path) -> SearchIndex | None:
        manifest_path = index_dir / "manifest.json"
        entries_path = index_dir / "entries.jsonl"
        manifest = self._read_manifest(manifest_path)
        if manifest is None:
            return None
        schema = manifest.get("schema_version")
        if schema != INDEX_SCHEMA_VERSION:
            return None
        build_id = manifest.get("build_id")
        corpus_name = manifest.get("corpus_name")
        fingerprint = manifest.get("fingerprint")
        if not isinstance(build_id, str) or not isinstance(corpus_name, str):
            raise IndexCorruptError(path=str(manifest_path), detail="manifest fields missing")
        if not isinstance(fingerprint, str):
            raise IndexCorruptError(path=str(manifest_path), detail="fingerprint missing")
        if not entries_path.exists():
            raise IndexCorruptError(path=str(entries_path), detail="entries file missing")

        rows = self._read_jsonl(entries_path)
        if not rows or rows[0].get("build_id") != build_id:
            raise IndexCorruptError(path=str(entries_path), detail="build id mismatch")
        entries = [_entry_from_row(row, entries_path) for row in rows[1:]]
        if len(entries) != manifest.get("entry_count"):
            raise IndexCorruptError(path=str(entries_path), detail="entry count mismatch")
        return SearchIndex(
            corpus_name=corpus_name,
            corpus_version=_as_optional_str(manifest.get("corpus_version")),
            fingerprint=fingerprint,
            entries=entries,
        )

    def _write_index(self, index_dir: Path, index: SearchIndex) -> None:
        index_dir.mkdir(parents=True, exist_ok=True)
        build_id = uuid.uuid4().hex
        rows: list[dict[str, object]] = [{"build_id": build_id}]
        rows.extend(asdict(entry) for entry in index.entries)
        self._atomic_write_jsonl(index_dir / "entries.jsonl", rows)
        self._atomic_write_json(
            index_dir / "manifest.json",
            {
                "schema_version": INDEX_SCHEMA_VERSION,
                "build_id": build_id,
                "corpus_name": index.corpus_name,
                "corpus_version": index.corpus_version,
                "fingerprint": index.fingerprint,
                "entry_count": len(index.entries),
                "built_at": _utc_now_iso(),
            },
        )

    @staticmethod
    def _read_manifest(path: Path) -> dict[str, object] | None:
        if not path.exists():
            return None
        try:
            with path.open("r", encoding="utf-8") as handle:
                payload = json.load(handle)
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as error:
            raise IndexCorruptError(path=str(path), detail="manifest is not valid JSON") from error
        if not isinstance(payload, dict):
            raise IndexCorruptError(path=str(path), detail="manifest is not an object")
        return payload

    @staticmethod
    def _read_jsonl(path: Path) -> list[dict[str, object]]:
        try:
            text = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as error:
            raise IndexCorruptError(path=str(path), detail="entries file is unreadable") from error
        output: list[dict[str, object]] = []
        for line_number, raw_line in enumerate(text.splitlines(), start=1):
            stripped = raw_line.strip()
            if not stripped:
                continue
            try:
                obj = json.loads(stripped)
            except json.JSONDecodeError as error:
                raise IndexCorruptError(
                    path=str(path), detail=f"line {line_number} is not valid JSON"
                ) from error
            if not isinstance(obj, dict):
                raise IndexCorruptError(
                    path=str(path), detail=f"line {line_number} is not an object"
                )
            output.append(obj)
        return output

    @staticmethod
    def _atomic_write_json(path: Path, payload: dict[str, object]) -> None:
        tmp = path.with_suffix(path.suffix + ".tmp")
        with tmp.open("w", encoding="utf-8") as handle:
            json.dump(payload, handle, sort_keys=True)
            handle.write("\n")
        tmp.replace(path)

    @staticmethod
    def _atomic_write_jsonl(path: Path, rows: list[dict[str, object]]) -> None:
        tmp = path.with_suffix(path.suffix + ".tmp")
        with tmp.open("w", encoding="utf-8") as handle:
            for row in rows:
                handle.write(json.dumps(row, sort_keys=True))
                handle.write("\n")
        tmp.replace(path)


def _matches(index: SearchIndex, corpus_name: str, fingerprint: str) -> bool:
    return corpus_key(index.corpus_name) == corpus_key(corpus_name) and (
        index.fingerprint == fingerprint
    )


def _entry_from_row(row: dict[str, object], path: Path) -> IndexEntry:
    item_id = row.get("item_id")
    name = row.get("name")
    entry_path = row.get("path")
    kind = row.get("kind")
    name_terms = row.get("name_terms")
    doc_terms = row.get("doc_terms")
    if not all(isinstance(value, str) for value in (item_id, name, entry_path, kind)):
        raise IndexCorruptError(path=str(path), detail="entry is missing string fields")
    if not isinstance(name_terms, dict) or not isinstance(doc_terms, dict):
        raise IndexCorruptError(path=str(path), detail="entry term tables are not objects")
    for table in (name_terms, doc_terms):
        if not all(isinstance(count, int) for count in table.values()):
            raise IndexCorruptError(path=str(path), detail="entry term counts are not integers")
    return IndexEntry(
        item_id=item_id,
        name=name,
        path=entry_path,
        kind=kind,
        name_terms=dict(name_terms),
        doc_terms=dict(doc_terms),
    )


def _utc_now_iso() -> str:
    return datetime.now(tz=UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _as_optional_int(value: object) -> int | None:
    if isinstance(value, int):
        return value
    return None


def _as_optional_str(value: object) -> str | None:
    if isinstance(value, str):
        return value
    return None
