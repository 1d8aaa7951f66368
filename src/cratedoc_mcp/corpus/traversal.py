"""Lazy, cycle-safe traversal of corpus item graphs.

Re-exports are replaced by their targets and glob imports are expanded in
place, following references into other corpora through the request scope.
Every traversal call keeps its own visited sets, so a module that glob-imports
itself, or two modules importing each other, terminate instead of recursing.
"""

from __future__ import annotations

from collections import deque
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field

from cratedoc_mcp.corpus.handle import ImplOrigin, ItemHandle
from cratedoc_mcp.corpus.models import TYPE_KINDS, Corpus, Item
from cratedoc_mcp.corpus.render import TypeRenderer

LOCAL_PATH_ROOTS = frozenset({"crate", "self", "$crate"})
DEFAULT_DESCEND_KINDS = frozenset({"module"})


@dataclass(slots=True, frozen=True)
class UnresolvedReference:
    """A re-export whose target corpus is not available in the workspace."""

    name: str
    corpus_name: str
    target_path: str


@dataclass(slots=True)
class _Walk:
    # expanded: containers already queued for descent.
    # active: containers and glob targets whose listing is in progress.
    # resolving: use items whose target is being looked up.
    expanded: set[tuple[str, str]] = field(default_factory=set)
    active: set[tuple[str, str]] = field(default_factory=set)
    resolving: set[tuple[str, str]] = field(default_factory=set)
    unresolved: list[UnresolvedReference] | None = None

    def record(self, reference: UnresolvedReference) -> None:
        if self.unresolved is not None and reference not in self.unresolved:
            self.unresolved.append(reference)


class ChildSequence:
    """Restartable view over the children of one item."""

    def __init__(
        self,
        handle: ItemHandle,
        recursive: bool = False,
        unresolved: list[UnresolvedReference] | None = None,
    ) -> None:
        self._handle = handle
        self._recursive = recursive
        self._unresolved = unresolved

    def __iter__(self) -> Iterator[ItemHandle]:
        for _, child in iter_tree(
            self._handle, recursive=self._recursive, unresolved=self._unresolved
        ):
            yield child


def children_of(
    handle: ItemHandle,
    recursive: bool = False,
    unresolved: list[UnresolvedReference] | None = None,
) -> ChildSequence:
    """Return the contents of a module, type, trait or enum.

    Modules yield their items, enums their variants then methods, types their
    methods and traits their associated items. ``recursive`` descends into
    child modules. Re-exports into unknown corpora are appended to
    ``unresolved`` when a list is given.
    """
    return ChildSequence(handle, recursive=recursive, unresolved=unresolved)


def iter_tree(
    handle: ItemHandle,
    recursive: bool = True,
    descend_kinds: frozenset[str] = DEFAULT_DESCEND_KINDS,
    unresolved: list[UnresolvedReference] | None = None,
) -> Iterator[tuple[tuple[str, ...], ItemHandle]]:
    """Breadth-first walk yielding (path relative to handle, child handle).

    An item reached again under the same name is yielded once.
    """
    walk = _Walk(unresolved=unresolved)
    walk.expanded.add(handle.identity)
    seen: set[tuple[str, str, str]] = set()
    pending: deque[tuple[tuple[str, ...], ItemHandle]] = deque([((), handle)])
    while pending:
        prefix, container = pending.popleft()
        for child in _direct_children(container, walk):
            name = child.display_name()
            key = (*child.identity, name)
            if key in seen:
                continue
            seen.add(key)
            child_path = (*prefix, name)
            yield child_path, child
            if recursive and child.identity not in walk.expanded and child.kind in descend_kinds:
                walk.expanded.add(child.identity)
                pending.append((child_path, child))


def expand_ids(
    container: ItemHandle,
    item_ids: Iterable[str],
    unresolved: list[UnresolvedReference] | None = None,
) -> list[ItemHandle]:
    """Expand selected child ids of a container exactly as children_of would."""
    walk = _Walk(unresolved=unresolved)
    walk.active.add(container.identity)
    output: list[ItemHandle] = []
    for handle in _expand_ids(container, list(item_ids), walk):
        if handle not in output:
            output.append(handle)
    return output


def methods_of(handle: ItemHandle) -> Iterator[ItemHandle]:
    """Yield functions callable on a type, tagged inherent or trait.

    Provided trait methods that an impl does not override are included when
    the trait is defined in the same corpus. Blanket and synthetic impls are
    skipped.
    """
    corpus = handle.corpus()
    renderer = TypeRenderer(corpus)
    for impl_id in corpus.impls_for(handle.item_id):
        impl = corpus.items[impl_id]
        if not _is_method_source(impl):
            continue
        trait = impl.payload.get("trait")
        if isinstance(trait, dict):
            origin = ImplOrigin(kind="trait", trait_path=renderer.path_text(trait))
        else:
            origin = ImplOrigin(kind="inherent")
        declared: set[str] = set()
        for member_id in impl.id_list("items"):
            member = corpus.items.get(member_id)
            if member is None or member.kind != "function":
                continue
            if member.name:
                declared.add(member.name)
            yield handle.scope.handle_for(handle.corpus_key, member_id, origin=origin)
        if isinstance(trait, dict):
            yield from _provided_methods(handle, corpus, impl, trait, declared, origin)


def trait_impls_of(handle: ItemHandle) -> Iterator[ItemHandle]:
    """Yield the trait impl blocks attached to a type."""
    corpus = handle.corpus()
    renderer = TypeRenderer(corpus)
    for impl_id in corpus.impls_for(handle.item_id):
        impl = corpus.items[impl_id]
        trait = impl.payload.get("trait")
        if impl.kind != "impl" or not isinstance(trait, dict):
            continue
        origin = ImplOrigin(kind="trait", trait_path=renderer.path_text(trait))
        yield handle.scope.handle_for(handle.corpus_key, impl_id, origin=origin)


def _is_method_source(impl: Item) -> bool:
    if impl.kind != "impl":
        return False
    if impl.payload.get("is_negative") or impl.payload.get("negative"):
        return False
    if impl.payload.get("is_synthetic") or impl.payload.get("synthetic"):
        return False
    return impl.payload.get("blanket_impl") is None


def _provided_methods(
    handle: ItemHandle,
    corpus: Corpus,
    impl: Item,
    trait: dict[str, object],
    declared: set[str],
    origin: ImplOrigin,
) -> Iterator[ItemHandle]:
    provided = impl.payload.get("provided_trait_methods")
    trait_id = trait.get("id")
    if not isinstance(provided, list) or trait_id is None:
        return
    trait_item = corpus.items.get(str(trait_id))
    if trait_item is None or trait_item.kind != "trait":
        return
    wanted = {name for name in provided if isinstance(name, str)} - declared
    for member_id in trait_item.id_list("items"):
        member = corpus.items.get(member_id)
        if member is None or member.kind != "function" or member.name not in wanted:
            continue
        yield handle.scope.handle_for(handle.corpus_key, member_id, origin=origin)


def _direct_children(container: ItemHandle, walk: _Walk) -> Iterator[ItemHandle]:
    item = container.item()
    nested = container.identity in walk.active
    walk.active.add(container.identity)
    try:
        if item.kind in {"module", "trait"}:
            yield from _expand_ids(container, item.id_list("items"), walk)
        elif item.kind == "enum":
            yield from _expand_ids(container, item.id_list("variants"), walk)
            yield from methods_of(container)
        elif item.kind in TYPE_KINDS:
            yield from methods_of(container)
    finally:
        if not nested:
            walk.active.discard(container.identity)


def _expand_ids(container: ItemHandle, item_ids: list[str], walk: _Walk) -> Iterator[ItemHandle]:
    corpus = container.corpus()
    for item_id in item_ids:
        yield from _expand_id(container, corpus, item_id, walk)


def _expand_id(
    container: ItemHandle, corpus: Corpus, item_id: str, walk: _Walk
) -> Iterator[ItemHandle]:
    scope = container.scope
    item = corpus.items.get(item_id)
    if item is None:
        external = corpus.external_target(item_id)
        if external is not None:
            target = _external_handle(container, external, None, walk)
            if target is not None:
                yield target
        return
    if item.kind != "use":
        yield scope.handle_for(container.corpus_key, item_id)
        return

    marker = (container.corpus_key, item_id)
    if marker in walk.resolving:
        return
    walk.resolving.add(marker)
    try:
        target = _use_target(container, corpus, item, walk)
    finally:
        walk.resolving.discard(marker)
    if target is None:
        return
    use_name = item.payload.get("name")
    if item.payload.get("is_glob") is True:
        if target.identity in walk.active:
            return
        walk.active.add(target.identity)
        try:
            target_item = target.item()
            if target_item.kind == "module":
                yield from _expand_ids(target, target_item.id_list("items"), walk)
            elif target_item.kind == "enum":
                yield from _expand_ids(target, target_item.id_list("variants"), walk)
        finally:
            walk.active.discard(target.identity)
        return
    if isinstance(use_name, str) and use_name and use_name != target.item().name:
        yield target.with_alias(use_name)
    else:
        yield target.with_alias(None)


def _use_target(
    container: ItemHandle, corpus: Corpus, use_item: Item, walk: _Walk
) -> ItemHandle | None:
    use_name = use_item.payload.get("name")
    raw_id = use_item.payload.get("id")
    if raw_id is not None:
        target_id = str(raw_id)
        target_item = corpus.items.get(target_id)
        if target_item is not None:
            if target_item.kind == "use":
                return next(iter(_expand_id(container, corpus, target_id, walk)), None)
            return container.scope.handle_for(container.corpus_key, target_id)
        external = corpus.external_target(target_id)
        if external is not None:
            name = use_name if isinstance(use_name, str) else None
            return _external_handle(container, external, name, walk)
    source = use_item.payload.get("source")
    if isinstance(source, str) and source:
        return _source_handle(container, corpus, source, walk)
    return None


def _external_handle(
    container: ItemHandle,
    external: tuple[str, tuple[str, ...]],
    name: str | None,
    walk: _Walk,
) -> ItemHandle | None:
    crate_name, path = external
    scope = container.scope
    source = scope.session.find(crate_name)
    other = scope.try_corpus(crate_name) if source is not None else None
    if source is None or other is None:
        walk.record(
            UnresolvedReference(
                name=name or (path[-1] if path else crate_name),
                corpus_name=crate_name,
                target_path="::".join(path),
            )
        )
        return None
    found = other.find_by_path(path)
    if found is not None:
        return scope.handle_for(source.key, found)
    root = scope.handle_for(source.key, other.root_id)
    return _walk_segments(root, path[1:], walk)


def _source_handle(
    container: ItemHandle, corpus: Corpus, source: str, walk: _Walk
) -> ItemHandle | None:
    segments = tuple(part for part in source.split("::") if part)
    if not segments or "super" in segments:
        return None
    if segments[0] in LOCAL_PATH_ROOTS or segments[0] == corpus.name:
        local_path = (corpus.name, *segments[1:])
        found = corpus.find_by_path(local_path)
        if found is not None:
            return container.scope.handle_for(container.corpus_key, found)
        root = container.scope.handle_for(container.corpus_key, corpus.root_id)
        return _walk_segments(root, segments[1:], walk)
    if container.scope.session.find(segments[0]) is not None:
        return _external_handle(container, (segments[0], segments), None, walk)
    return None


def _walk_segments(
    start: ItemHandle, segments: tuple[str, ...], walk: _Walk
) -> ItemHandle | None:
    current = start
    for segment in segments:
        match = None
        for child in _direct_children(current, walk):
            if child.display_name() == segment:
                match = child
                break
        if match is None:
            return None
        current = match
    return current
