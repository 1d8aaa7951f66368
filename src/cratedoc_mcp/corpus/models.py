"""Typed in-memory representation of one documentation corpus."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

LOCAL_CRATE_ID = 0

KIND_ORDER = (
    "module",
    "struct",
    "enum",
    "union",
    "trait",
    "trait_alias",
    "type_alias",
    "function",
    "macro",
    "proc_macro",
    "constant",
    "static",
    "primitive",
    "variant",
    "struct_field",
    "assoc_type",
    "assoc_const",
    "impl",
    "use",
    "extern_crate",
    "extern_type",
)
TYPE_KINDS = frozenset({"struct", "enum", "union", "primitive"})


def kind_rank(kind: str) -> int:
    """Return a stable ordering position for an item kind."""
    try:
        return KIND_ORDER.index(kind)
    except ValueError:
        return len(KIND_ORDER)


def corpus_key(name: str) -> str:
    """Return the normalized identity of a corpus name."""
    return name.strip().lower().replace("-", "_")


@dataclass(slots=True, frozen=True)
class Item:
    """One documented item; ``payload`` is the kind-specific rustdoc mapping."""

    id: str
    crate_id: int
    name: str | None
    kind: str
    visibility: str
    docs: str | None
    payload: dict[str, object]
    deprecated: bool = False

    def id_list(self, key: str) -> list[str]:
        """Return payload[key] as a list of normalized ids."""
        raw = self.payload.get(key)
        if not isinstance(raw, list):
            return []
        return [str(value) for value in raw if value is not None]


def field_ids(item: Item) -> list[str]:
    """Return field ids of a struct, union or struct-like/tuple variant."""
    if item.kind == "union":
        return item.id_list("fields")
    if item.kind not in {"struct", "variant"}:
        return []
    shape = item.payload.get("kind")
    if not isinstance(shape, dict):
        return []
    for key in ("plain", "struct"):
        body = shape.get(key)
        if isinstance(body, dict):
            raw = body.get("fields")
            if isinstance(raw, list):
                return [str(value) for value in raw if value is not None]
    raw_tuple = shape.get("tuple")
    if isinstance(raw_tuple, list):
        return [str(value) for value in raw_tuple if value is not None]
    return []


def shape_of(item: Item) -> str:
    """Return 'unit', 'plain' or 'tuple' for structs and variants."""
    shape = item.payload.get("kind")
    if isinstance(shape, str):
        return "unit" if shape in {"unit", "plain"} else shape
    if isinstance(shape, dict):
        if "tuple" in shape:
            return "tuple"
        return "plain"
    return "unit"


@dataclass(slots=True, frozen=True)
class PathSummary:
    """Canonical location of an item, local or external."""

    crate_id: int
    path: tuple[str, ...]
    kind: str


@dataclass(slots=True)
class Corpus:
    """Addressable item graph loaded from one export file."""

    name: str
    version: str | None
    format_version: int
    root_id: str
    items: dict[str, Item]
    paths: dict[str, PathSummary]
    external_crates: dict[int, str]
    source: Path | None = None
    fingerprint: str = ""
    top_level: dict[str, tuple[str, ...]] = field(default_factory=dict)
    impls_by_type: dict[str, tuple[str, ...]] = field(default_factory=dict)
    path_lookup: dict[tuple[str, ...], str] = field(default_factory=dict)
    reexport_crates: tuple[str, ...] = ()

    @property
    def key(self) -> str:
        return corpus_key(self.name)

    def root(self) -> Item:
        return self.items[self.root_id]

    def canonical_path(self, item_id: str) -> tuple[str, ...] | None:
        summary = self.paths.get(item_id)
        if summary is None:
            return None
        return summary.path

    def external_target(self, item_id: str) -> tuple[str, tuple[str, ...]] | None:
        """Return (crate name, full path) for an id that lives in another corpus."""
        if item_id in self.items:
            return None
        summary = self.paths.get(item_id)
        if summary is None or summary.crate_id == LOCAL_CRATE_ID:
            return None
        crate_name = self.external_crates.get(summary.crate_id)
        if crate_name is None:
            if not summary.path:
                return None
            crate_name = summary.path[0]
        return crate_name, summary.path

    def impls_for(self, type_id: str) -> list[str]:
        """Return impl ids attached to a type: declared ones first, then discovered ones."""
        output: list[str] = []
        seen: set[str] = set()
        item = self.items.get(type_id)
        declared = item.id_list("impls") if item is not None else []
        for impl_id in [*declared, *self.impls_by_type.get(type_id, ())]:
            if impl_id in seen or impl_id not in self.items:
                continue
            seen.add(impl_id)
            output.append(impl_id)
        return output

    def find_by_path(self, path: tuple[str, ...]) -> str | None:
        """Return the id of a local item by its canonical path, crate name first."""
        if not path:
            return None
        found = self.path_lookup.get(path)
        if found is not None:
            return found
        if corpus_key(path[0]) == self.key:
            return self.path_lookup.get((self.name, *path[1:]))
        return None
