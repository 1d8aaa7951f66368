"""Structural item summaries handed to callers for rendering."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field

from cratedoc_mcp.corpus.handle import ItemHandle
from cratedoc_mcp.corpus.models import Corpus, Item, field_ids, shape_of
from cratedoc_mcp.corpus.render import TypeRenderer

DECLARATION_KEYWORDS = {
    "struct": "struct",
    "enum": "enum",
    "union": "union",
    "trait": "trait",
    "trait_alias": "trait",
    "type_alias": "type",
    "constant": "const",
    "static": "static",
    "module": "mod",
    "macro": "macro_rules!",
    "assoc_type": "type",
    "assoc_const": "const",
}
TYPED_KINDS = frozenset({"struct_field", "type_alias", "constant", "static", "assoc_const"})


@dataclass(slots=True, frozen=True)
class FieldSummary:
    name: str
    type: str
    visibility: str
    docs_excerpt: str | None


@dataclass(slots=True, frozen=True)
class VariantSummary:
    name: str
    shape: str
    fields: list[FieldSummary]
    docs_excerpt: str | None


@dataclass(slots=True, frozen=True)
class ItemSummary:
    """Everything a caller needs to render one item."""

    path: str
    name: str
    kind: str
    crate: str
    crate_version: str | None
    visibility: str
    deprecated: bool
    docs_excerpt: str | None
    docs: str | None
    declaration: str | None = None
    signature: str | None = None
    generics: str | None = None
    where_clause: str | None = None
    type: str | None = None
    fields: list[FieldSummary] = field(default_factory=list)
    variants: list[VariantSummary] = field(default_factory=list)
    origin: dict[str, object] | None = None

    def to_dict(self) -> dict[str, object]:
        return asdict(self)

    def to_brief_dict(self) -> dict[str, object]:
        """Listing form: identity, excerpt and one-line declaration only."""
        return {
            "path": self.path,
            "name": self.name,
            "kind": self.kind,
            "crate": self.crate,
            "docs_excerpt": self.docs_excerpt,
            "declaration": self.declaration,
            "signature": self.signature,
            "origin": self.origin,
        }


def docs_excerpt(docs: str | None) -> str | None:
    """Return the first paragraph of a documentation body."""
    if not docs:
        return None
    paragraph: list[str] = []
    for line in docs.strip().splitlines():
        if not line.strip():
            if paragraph:
                break
            continue
        paragraph.append(line.strip())
    return " ".join(paragraph) or None


def fields_of(handle: ItemHandle) -> list[tuple[str, str]]:
    """Return (name, type) pairs for a struct, union or variant, in declaration order."""
    return [(entry.name, entry.type) for entry in _field_summaries(handle.corpus(), handle.item())]


def summarize(handle: ItemHandle, path: str | None = None) -> ItemSummary:
    """Build the summary of one item; ``path`` overrides the canonical display path."""
    corpus = handle.corpus()
    item = handle.item()
    renderer = TypeRenderer(corpus)
    generics_text, where_text = renderer.generics_text(item.payload.get("generics"))
    name = handle.display_name()

    declaration: str | None = None
    keyword = DECLARATION_KEYWORDS.get(item.kind)
    if keyword is not None:
        declaration = f"{keyword} {name}{generics_text}"
        if item.kind == "trait":
            bounds = renderer.bounds_text(item.payload.get("bounds"))
            if bounds:
                declaration += f": {bounds}"
    elif item.kind == "impl":
        declaration = f"{name.replace('impl ', f'impl{generics_text} ', 1)}"

    type_text: str | None = None
    if item.kind in TYPED_KINDS or (item.kind == "assoc_type" and item.payload.get("type")):
        type_text = renderer.type_text(item.payload.get("type"))
    elif item.kind == "impl":
        type_text = renderer.type_text(item.payload.get("for", item.payload.get("for_")))

    origin = None
    if handle.origin is not None:
        origin = {"kind": handle.origin.kind, "trait": handle.origin.trait_path}

    variants: list[VariantSummary] = []
    if item.kind == "enum":
        for variant_id in item.id_list("variants"):
            variant = corpus.items.get(variant_id)
            if variant is None:
                continue
            variants.append(
                VariantSummary(
                    name=variant.name or "_",
                    shape=shape_of(variant),
                    fields=_field_summaries(corpus, variant),
                    docs_excerpt=docs_excerpt(variant.docs),
                )
            )

    return ItemSummary(
        path=path or handle.canonical_path(),
        name=name,
        kind=item.kind,
        crate=corpus.name,
        crate_version=corpus.version,
        visibility=item.visibility,
        deprecated=item.deprecated,
        docs_excerpt=docs_excerpt(item.docs),
        docs=item.docs,
        declaration=declaration,
        signature=renderer.function_signature(item),
        generics=generics_text or None,
        where_clause=where_text or None,
        type=type_text,
        fields=_field_summaries(corpus, item),
        variants=variants,
        origin=origin,
    )


def _field_summaries(corpus: Corpus, item: Item) -> list[FieldSummary]:
    renderer = TypeRenderer(corpus)
    output: list[FieldSummary] = []
    for position, field_id in enumerate(field_ids(item)):
        member = corpus.items.get(field_id)
        if member is None:
            continue
        output.append(
            FieldSummary(
                name=member.name or str(position),
                type=renderer.type_text(member.payload.get("type")),
                visibility=member.visibility,
                docs_excerpt=docs_excerpt(member.docs),
            )
        )
    return output
