"""Builders for small rustdoc JSON exports and Cargo workspaces used by tests."""

from __future__ import annotations

import json
from pathlib import Path

from cratedoc_mcp.config import load_effective_config
from cratedoc_mcp.session.scope import RequestScope
from cratedoc_mcp.session.workspace import build_session

FORMAT_VERSION = 39


def primitive(name: str) -> dict[str, object]:
    return {"primitive": name}


def resolved(name: str, item_id: str) -> dict[str, object]:
    return {"resolved_path": {"path": name, "id": item_id, "args": None}}


def self_ref() -> dict[str, object]:
    return {"borrowed_ref": {"lifetime": None, "is_mutable": False, "type": {"generic": "Self"}}}


def item(
    item_id: str,
    name: str | None,
    inner: dict[str, object],
    docs: str | None = None,
    visibility: str = "public",
    crate_id: int = 0,
) -> dict[str, object]:
    return {
        "id": item_id,
        "crate_id": crate_id,
        "name": name,
        "visibility": visibility,
        "docs": docs,
        "deprecation": None,
        "inner": inner,
    }


def module(item_id: str, name: str, items: list[str], docs: str | None = None) -> dict[str, object]:
    return item(item_id, name, {"module": {"is_crate": False, "items": items}}, docs=docs)


def struct(
    item_id: str,
    name: str,
    fields: list[str] | None = None,
    impls: list[str] | None = None,
    docs: str | None = None,
) -> dict[str, object]:
    kind: object = "unit" if fields is None else {"plain": {"fields": fields}}
    body = {"kind": kind, "generics": {"params": [], "where_predicates": []}, "impls": impls or []}
    return item(item_id, name, {"struct": body}, docs=docs)


def field(item_id: str, name: str, type_: dict[str, object]) -> dict[str, object]:
    return item(item_id, name, {"struct_field": type_})


def enum(
    item_id: str, name: str, variants: list[str], docs: str | None = None
) -> dict[str, object]:
    body = {"variants": variants, "generics": {"params": [], "where_predicates": []}, "impls": []}
    return item(item_id, name, {"enum": body}, docs=docs)


def variant(item_id: str, name: str, tuple_fields: list[str] | None = None) -> dict[str, object]:
    kind: object = "plain" if tuple_fields is None else {"tuple": tuple_fields}
    return item(item_id, name, {"variant": {"kind": kind, "discriminant": None}})


def function(
    item_id: str,
    name: str,
    inputs: list[list[object]] | None = None,
    output: dict[str, object] | None = None,
    docs: str | None = None,
) -> dict[str, object]:
    body = {
        "sig": {"inputs": inputs or [], "output": output, "is_c_variadic": False},
        "generics": {"params": [], "where_predicates": []},
        "header": {"is_const": False, "is_unsafe": False, "is_async": False},
        "has_body": True,
    }
    return item(item_id, name, {"function": body}, docs=docs)


def use(
    item_id: str, name: str, target_id: str | None, source: str, glob: bool = False
) -> dict[str, object]:
    body = {"source": source, "name": name, "id": target_id, "is_glob": glob}
    return item(item_id, None, {"use": body})


def impl(
    item_id: str,
    for_type: dict[str, object],
    items: list[str],
    trait: dict[str, object] | None = None,
    provided: list[str] | None = None,
    blanket: dict[str, object] | None = None,
) -> dict[str, object]:
    body = {
        "is_unsafe": False,
        "generics": {"params": [], "where_predicates": []},
        "provided_trait_methods": provided or [],
        "trait": trait,
        "for": for_type,
        "items": items,
        "is_negative": False,
        "is_synthetic": False,
        "blanket_impl": blanket,
    }
    return item(item_id, None, {"impl": body})


def export(
    root_id: str,
    items: list[dict[str, object]],
    crate_version: str | None = "0.1.0",
    paths: dict[str, tuple[int, list[str], str]] | None = None,
    external_crates: dict[int, str] | None = None,
    format_version: int = FORMAT_VERSION,
) -> dict[str, object]:
    return {
        "root": root_id,
        "crate_version": crate_version,
        "includes_private": False,
        "format_version": format_version,
        "index": {str(entry["id"]): entry for entry in items},
        "paths": {
            item_id: {"crate_id": crate_id, "path": path, "kind": kind}
            for item_id, (crate_id, path, kind) in (paths or {}).items()
        },
        "external_crates": {
            str(crate_id): {"name": name, "html_root_url": None}
            for crate_id, name in (external_crates or {}).items()
        },
    }


def demo_export() -> dict[str, object]:
    """A crate `demo` exercising modules, aliases, impls, enums and re-exports.

    Layout::

        demo
          m::Foo { x: i32 }        (impl Foo { fn new }, impl Clone for Foo)
          Bar                      (pub use m::Foo as Bar)
          Shape { Circle(f64), Unit }
          make_foo(x: i32) -> Foo
          Serialize                (pub use serde::Serialize, serde not generated)
          Widget                   (pub use helper::widgets::Widget)
          Config                   (unit struct)
    """
    items = [
        module("0", "demo", ["1", "2", "10", "20", "30", "31", "40"], docs="Demo crate."),
        module("1", "m", ["3"]),
        struct("3", "Foo", fields=["4"], impls=["6", "7"], docs="A foo holding one number."),
        field("4", "x", primitive("i32")),
        use("2", "Bar", "3", "crate::m::Foo"),
        impl("6", resolved("Foo", "3"), ["8"]),
        function("8", "new", output=resolved("Foo", "3"), docs="Builds a default Foo."),
        impl("7", resolved("Foo", "3"), ["9"], trait=resolved("Clone", "90")),
        function("9", "clone", inputs=[["self", self_ref()]], output={"generic": "Self"}),
        enum("10", "Shape", ["11", "12"], docs="Geometric shapes."),
        variant("11", "Circle", tuple_fields=["13"]),
        field("13", "0", primitive("f64")),
        variant("12", "Unit"),
        function(
            "20",
            "make_foo",
            inputs=[["x", primitive("i32")]],
            output=resolved("Foo", "3"),
            docs="Creates a Foo value.\n\nThe value is never cached.",
        ),
        use("30", "Serialize", "91", "serde::Serialize"),
        use("31", "Widget", "92", "helper::widgets::Widget"),
        struct("40", "Config", docs="Settings for the demo."),
    ]
    paths = {
        "0": (0, ["demo"], "module"),
        "1": (0, ["demo", "m"], "module"),
        "3": (0, ["demo", "m", "Foo"], "struct"),
        "10": (0, ["demo", "Shape"], "enum"),
        "20": (0, ["demo", "make_foo"], "function"),
        "40": (0, ["demo", "Config"], "struct"),
        "90": (1, ["core", "clone", "Clone"], "trait"),
        "91": (2, ["serde", "ser", "Serialize"], "trait"),
        "92": (3, ["helper", "widgets", "Widget"], "struct"),
    }
    return export("0", items, paths=paths, external_crates={1: "core", 2: "serde", 3: "helper"})


def helper_export() -> dict[str, object]:
    items = [
        module("0", "helper", ["1", "3"]),
        module("1", "widgets", ["2"]),
        struct("2", "Widget", docs="A reusable widget."),
        struct("3", "Config", docs="Helper configuration."),
    ]
    paths = {
        "0": (0, ["helper"], "module"),
        "1": (0, ["helper", "widgets"], "module"),
        "2": (0, ["helper", "widgets", "Widget"], "struct"),
        "3": (0, ["helper", "Config"], "struct"),
    }
    return export("0", items, crate_version="0.2.0", paths=paths)


def write_export(path: Path, payload: dict[str, object]) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(payload), encoding="utf-8")
    return path


def write_workspace(
    root: Path,
    exports: dict[str, dict[str, object]] | None = None,
    package: str = "demo",
    dependencies: tuple[tuple[str, str], ...] = (("helper", "0.2.0"),),
) -> Path:
    """Write Cargo.toml, Cargo.lock and target/doc exports; returns the root."""
    root.mkdir(parents=True, exist_ok=True)
    (root / "Cargo.toml").write_text(
        f'[package]\nname = "{package}"\nversion = "0.1.0"\n', encoding="utf-8"
    )
    lock_lines = ["version = 3", ""]
    for name, version in ((package, "0.1.0"), *dependencies):
        lock_lines.extend(["[[package]]", f'name = "{name}"', f'version = "{version}"', ""])
    (root / "Cargo.lock").write_text("\n".join(lock_lines), encoding="utf-8")
    if exports is None:
        exports = {"demo": demo_export(), "helper": helper_export()}
    for name, payload in exports.items():
        write_export(root / "target" / "doc" / f"{name.replace('-', '_')}.json", payload)
    return root


def open_scope(root: Path) -> RequestScope:
    """Open a request scope over an already written workspace."""
    session = build_session(load_effective_config(root))
    return RequestScope(session)
