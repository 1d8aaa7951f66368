"""Lightweight references to items owned by a request scope."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from cratedoc_mcp.corpus.models import Corpus, Item
from cratedoc_mcp.corpus.render import TypeRenderer

if TYPE_CHECKING:
    from cratedoc_mcp.resolve.resolver import ResolutionOutcome
    from cratedoc_mcp.session.scope import RequestScope


@dataclass(slots=True, frozen=True)
class ImplOrigin:
    """Where a method came from: an inherent impl or a trait impl."""

    kind: str
    trait_path: str | None = None


@dataclass(slots=True, frozen=True, eq=False)
class ItemHandle:
    """Reference to one item in one corpus.

    Holds no item data; every access goes through the request scope. Equality
    and hashing use (corpus, item id), so an item reached under an alias equals
    the item reached directly.
    """

    scope: RequestScope
    corpus_key: str
    item_id: str
    alias: str | None = None
    origin: ImplOrigin | None = None

    @property
    def identity(self) -> tuple[str, str]:
        return (self.corpus_key, self.item_id)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ItemHandle):
            return NotImplemented
        return self.identity == other.identity

    def __hash__(self) -> int:
        return hash(self.identity)

    def __repr__(self) -> str:
        return f"ItemHandle({self.corpus_key}:{self.item_id} as {self.alias!r})"

    def corpus(self) -> Corpus:
        return self.scope.loaded(self.corpus_key)

    def item(self) -> Item:
        return self.corpus().items[self.item_id]

    def owning_corpus(self) -> str:
        return self.corpus().name

    @property
    def kind(self) -> str:
        return self.item().kind

    def display_name(self) -> str:
        """Alias-aware name; impl blocks render as `impl Trait for Type`."""
        if self.alias:
            return self.alias
        item = self.item()
        if item.name:
            return item.name
        if item.kind == "impl":
            renderer = TypeRenderer(self.corpus())
            target = renderer.type_text(item.payload.get("for", item.payload.get("for_")))
            trait = item.payload.get("trait")
            if isinstance(trait, dict):
                return f"impl {renderer.path_text(trait)} for {target}"
            return f"impl {target}"
        return "<unnamed>"

    def canonical_path(self) -> str:
        """Defining path from the corpus path table, else the bare display name."""
        path = self.corpus().canonical_path(self.item_id)
        if path:
            return "::".join(path)
        return self.display_name()

    def with_alias(self, alias: str | None) -> ItemHandle:
        return ItemHandle(
            scope=self.scope,
            corpus_key=self.corpus_key,
            item_id=self.item_id,
            alias=alias,
            origin=self.origin,
        )

    def resolve_further(self, segment: str) -> ResolutionOutcome:
        """Resolve one more path segment below this item, possibly across corpora."""
        from cratedoc_mcp.resolve.resolver import PathResolver

        return PathResolver(self.scope).resolve_below(self, segment)
