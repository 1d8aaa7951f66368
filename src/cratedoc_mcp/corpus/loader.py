"""Parse and validate rustdoc JSON exports into Corpus objects."""

from __future__ import annotations

import hashlib
import json
from collections.abc import Callable
from pathlib import Path

from cratedoc_mcp.corpus.models import (
    LOCAL_CRATE_ID,
    Corpus,
    Item,
    PathSummary,
    field_ids,
)

MIN_FORMAT_VERSION = 28
MAX_FORMAT_VERSION = 57
DEFAULT_LOAD_RETRIES = 1


class LoadError(Exception):
    """Raised when a corpus cannot be turned into an addressable item graph."""

    kind = "load_failed"

    def __init__(self, corpus_name: str, source: Path | None, detail: str) -> None:
        location = str(source) if source is not None else "<memory>"
        super().__init__(f"Corpus '{corpus_name}' ({location}): {detail}")
        self.corpus_name = corpus_name
        self.source = source
        self.detail = detail


class CorpusUnreadableError(LoadError):
    """The export file could not be read."""

    kind = "unreadable"


class CorpusMalformedError(LoadError):
    """The export file was read but violates the expected schema."""

    kind = "malformed"

    def __init__(self, corpus_name: str, source: Path | None, location: str, detail: str) -> None:
        super().__init__(corpus_name, source, f"{location}: {detail}")
        self.location = location


def load_corpus(
    source: Path, name: str | None = None, retries: int = DEFAULT_LOAD_RETRIES
) -> Corpus:
    """Read, parse and validate one export file.

    Read failures are retried ``retries`` times before surfacing as
    CorpusUnreadableError. Parse and schema failures are never retried.
    """
    label = name or source.stem
    raw = _read_bytes(source, label, retries)
    try:
        payload = json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError) as error:
        raise CorpusMalformedError(label, source, "$", f"invalid JSON ({error})") from error
    corpus = parse_corpus(payload, source=source, name=name)
    corpus.fingerprint = f"sha256:{hashlib.sha256(raw).hexdigest()}"
    return corpus


def _read_bytes(source: Path, label: str, retries: int) -> bytes:
    last_error: OSError | None = None
    for _ in range(max(retries, 0) + 1):
        try:
            return source.read_bytes()
        except OSError as error:
            last_error = error
    detail = last_error.strerror if last_error and last_error.strerror else str(last_error)
    raise CorpusUnreadableError(label, source, f"cannot read export file ({detail})")


def parse_corpus(payload: object, source: Path | None = None, name: str | None = None) -> Corpus:
    """Build a Corpus from decoded JSON, failing closed on schema violations."""
    label = name or (source.stem if source is not None else "unknown")

    def fail(location: str, detail: str) -> CorpusMalformedError:
        return CorpusMalformedError(label, source, location, detail)

    if not isinstance(payload, dict):
        raise fail("$", "top level must be an object")

    format_version = payload.get("format_version")
    if not isinstance(format_version, int) or isinstance(format_version, bool):
        raise fail("format_version", "missing or not an integer")
    if not MIN_FORMAT_VERSION <= format_version <= MAX_FORMAT_VERSION:
        raise fail(
            "format_version",
            f"unsupported export format {format_version}; "
            f"supported range is {MIN_FORMAT_VERSION}..{MAX_FORMAT_VERSION}",
        )

    raw_index = payload.get("index")
    if not isinstance(raw_index, dict):
        raise fail("index", "must be an object")
    raw_paths = payload.get("paths", {})
    if not isinstance(raw_paths, dict):
        raise fail("paths", "must be an object")
    raw_external = payload.get("external_crates", {})
    if not isinstance(raw_external, dict):
        raise fail("external_crates", "must be an object")

    items: dict[str, Item] = {}
    for raw_key, raw_item in raw_index.items():
        item = _parse_item(str(raw_key), raw_item, fail)
        items[item.id] = item

    paths: dict[str, PathSummary] = {}
    for raw_key, raw_summary in raw_paths.items():
        location = f'paths["{raw_key}"]'
        if not isinstance(raw_summary, dict):
            raise fail(location, "must be an object")
        crate_id = raw_summary.get("crate_id")
        path = raw_summary.get("path")
        if not isinstance(crate_id, int):
            raise fail(f"{location}.crate_id", "must be an integer")
        if not isinstance(path, list) or not all(isinstance(part, str) for part in path):
            raise fail(f"{location}.path", "must be a list of strings")
        kind = raw_summary.get("kind")
        paths[str(raw_key)] = PathSummary(
            crate_id=crate_id,
            path=tuple(path),
            kind=kind if isinstance(kind, str) else "unknown",
        )

    external_crates: dict[int, str] = {}
    for raw_key, raw_crate in raw_external.items():
        crate_name = raw_crate.get("name") if isinstance(raw_crate, dict) else None
        if not isinstance(crate_name, str):
            raise fail(f'external_crates["{raw_key}"].name', "must be a string")
        try:
            external_crates[int(raw_key)] = crate_name
        except ValueError as error:
            raise fail(f'external_crates["{raw_key}"]', "key must be an integer") from error

    root_value = payload.get("root")
    if root_value is None:
        raise fail("root", "missing")
    root_id = str(root_value)
    root = items.get(root_id)
    if root is None:
        raise fail("root", f"id {root_id} is not present in index")
    if root.kind != "module":
        raise fail("root", f"id {root_id} is a {root.kind}, expected module")

    def is_known(item_id: str) -> bool:
        if item_id in items:
            return True
        summary = paths.get(item_id)
        return summary is not None and summary.crate_id != LOCAL_CRATE_ID

    for item in items.values():
        for location, referenced in _structural_references(item):
            for child_id in referenced:
                if not is_known(child_id):
                    raise fail(
                        f'index["{item.id}"].{location}',
                        f"references id {child_id} that is neither in the index nor external",
                    )

    version = payload.get("crate_version")
    corpus = Corpus(
        name=root.name or label,
        version=version if isinstance(version, str) else None,
        format_version=format_version,
        root_id=root_id,
        items=items,
        paths=paths,
        external_crates=external_crates,
        source=source,
    )
    _build_lookups(corpus)
    return corpus


def _parse_item(
    item_key: str, raw: object, fail: Callable[[str, str], CorpusMalformedError]
) -> Item:
    location = f'index["{item_key}"]'
    if not isinstance(raw, dict):
        raise fail(location, "item must be an object")

    raw_inner = raw.get("inner")
    if isinstance(raw_inner, str):
        kind = raw_inner
        payload: dict[str, object] = {}
    elif isinstance(raw_inner, dict) and len(raw_inner) == 1:
        kind, body = next(iter(raw_inner.items()))
        if kind == "struct_field":
            payload = {"type": body}
        elif isinstance(body, dict):
            payload = body
        else:
            payload = {"value": body}
    else:
        raise fail(f"{location}.inner", "must be a single-key object")

    name = raw.get("name")
    if name is not None and not isinstance(name, str):
        raise fail(f"{location}.name", "must be a string or null")
    docs = raw.get("docs")
    if docs is not None and not isinstance(docs, str):
        raise fail(f"{location}.docs", "must be a string or null")
    crate_id = raw.get("crate_id", LOCAL_CRATE_ID)
    if not isinstance(crate_id, int):
        raise fail(f"{location}.crate_id", "must be an integer")

    raw_visibility = raw.get("visibility", "default")
    if isinstance(raw_visibility, str):
        visibility = raw_visibility
    elif isinstance(raw_visibility, dict) and "restricted" in raw_visibility:
        visibility = "restricted"
    else:
        raise fail(f"{location}.visibility", "unrecognized visibility")

    return Item(
        id=str(raw.get("id", item_key)),
        crate_id=crate_id,
        name=name,
        kind=kind,
        visibility=visibility,
        docs=docs,
        payload=payload,
        deprecated=raw.get("deprecation") is not None,
    )


def _structural_references(item: Item) -> list[tuple[str, list[str]]]:
    references: list[tuple[str, list[str]]] = []
    if item.kind in {"module", "trait", "impl"}:
        references.append((f"inner.{item.kind}.items", item.id_list("items")))
    if item.kind == "enum":
        references.append(("inner.enum.variants", item.id_list("variants")))
    if item.kind in {"struct", "union", "variant"}:
        references.append((f"inner.{item.kind}.fields", field_ids(item)))
    return references


def _build_lookups(corpus: Corpus) -> None:
    top_level: dict[str, list[str]] = {}
    for child_id in corpus.root().id_list("items"):
        child = corpus.items.get(child_id)
        if child is None:
            continue
        if child.kind == "use":
            if child.payload.get("is_glob") is True:
                continue
            declared = child.payload.get("name")
        else:
            declared = child.name
        if isinstance(declared, str) and declared:
            top_level.setdefault(declared, []).append(child_id)
    corpus.top_level = {name: tuple(ids) for name, ids in top_level.items()}

    impls_by_type: dict[str, list[str]] = {}
    reexport_crates: set[str] = set()
    for item in corpus.items.values():
        if item.kind == "impl":
            target = item.payload.get("for", item.payload.get("for_"))
            if isinstance(target, dict):
                resolved = target.get("resolved_path")
                if isinstance(resolved, dict) and resolved.get("id") is not None:
                    impls_by_type.setdefault(str(resolved["id"]), []).append(item.id)
        elif item.kind == "use":
            target_id = item.payload.get("id")
            if target_id is None:
                continue
            external = corpus.external_target(str(target_id))
            if external is not None:
                reexport_crates.add(external[0])
    corpus.impls_by_type = {
        type_id: tuple(sorted(ids, key=_id_sort_key)) for type_id, ids in impls_by_type.items()
    }
    corpus.reexport_crates = tuple(sorted(reexport_crates))

    path_lookup: dict[tuple[str, ...], str] = {}
    for item_id, summary in corpus.paths.items():
        if summary.crate_id != LOCAL_CRATE_ID or item_id not in corpus.items:
            continue
        path_lookup.setdefault(summary.path, item_id)
    corpus.path_lookup = path_lookup


def _id_sort_key(item_id: str) -> tuple[int, str]:
    if item_id.isdigit():
        return (int(item_id), "")
    return (0, item_id)
