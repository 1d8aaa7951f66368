from __future__ import annotations

import json
from pathlib import Path

from rustdoc_fixtures import helper_export, write_workspace

from cratedoc_mcp.server import StdioServer, create_server


def _call(server: StdioServer, method: str, **params: object) -> dict[str, object]:
    response = server.handle_payload({"id": f"req-{method}", "method": method, "params": params})
    assert response["ok"] is True, response
    return response


def _selected_server(tmp_path: Path) -> tuple[StdioServer, Path]:
    workspace = write_workspace(tmp_path / "ws")
    server = create_server(workspace_root=str(tmp_path))
    _call(server, "docs.set_workspace", path=str(workspace))
    return server, workspace


def test_select_workspace_then_list_crates(tmp_path: Path) -> None:
    workspace = write_workspace(tmp_path / "ws")
    server = create_server(workspace_root=str(tmp_path))

    selected = _call(server, "docs.set_workspace", path=str(workspace))["result"]
    crates = _call(server, "docs.list_crates")["result"]["crates"]
    dependencies = _call(server, "docs.list_crates", scope="dependency")["result"]["crates"]

    assert selected["workspace"]["workspace_root"] == str(workspace.resolve())
    assert selected["effective_config"]["data_dir"] == str(workspace.resolve() / ".cratedoc_mcp")
    assert [(crate["name"], crate["origin"], crate["default"]) for crate in crates] == [
        ("demo", "local", True),
        ("helper", "dependency", False),
    ]
    assert all(crate["available"] for crate in crates)
    assert [crate["name"] for crate in dependencies] == ["helper"]


def test_resolve_reports_each_outcome(tmp_path: Path) -> None:
    server, _ = _selected_server(tmp_path)

    unique = _call(server, "docs.resolve", path="demo::Bar")["result"]
    ambiguous = _call(server, "docs.resolve", path="Config")["result"]
    external = _call(server, "docs.resolve", path="demo::Serialize")["result"]
    missing = _call(server, "docs.resolve", path="demo::Shap")["result"]

    assert unique["status"] == "unique"
    assert unique["path"] == "demo::Bar"
    assert unique["item"]["name"] == "Bar"
    assert unique["item"]["declaration"] == "struct Bar"
    assert unique["item"]["fields"][0]["type"] == "i32"

    assert ambiguous["status"] == "ambiguous"
    assert [entry["path"] for entry in ambiguous["candidates"]] == [
        "demo::Config",
        "helper::Config",
    ]

    assert external["status"] == "unresolved_external"
    assert external["crate"] == "serde"
    assert external["target_path"] == "serde::ser::Serialize"

    assert missing["status"] == "not_found"
    assert missing["suggestions"][0]["path"] == "demo::Shape"


def test_children_methods_and_trait_impls(tmp_path: Path) -> None:
    server, _ = _selected_server(tmp_path)

    children = _call(server, "docs.list_children", path="demo")["result"]
    structs = _call(server, "docs.list_children", path="demo", kind="struct")["result"]
    nested = _call(server, "docs.list_children", path="demo::m", recursive=True)["result"]
    methods = _call(server, "docs.list_methods", path="demo::Bar")["result"]
    impls = _call(server, "docs.list_trait_impls", path="demo::m::Foo")["result"]

    assert [entry["path"] for entry in children["children"]] == [
        "demo::m",
        "demo::Bar",
        "demo::Shape",
        "demo::make_foo",
        "demo::Widget",
        "demo::Config",
    ]
    assert children["truncated"] is False
    widget = children["children"][4]
    assert widget["crate"] == "helper"
    assert [entry["name"] for entry in structs["children"]] == ["Bar", "Widget", "Config"]
    assert [entry["path"] for entry in nested["children"]] == ["demo::m::Foo"]

    assert [(entry["name"], entry["origin"]) for entry in methods["methods"]] == [
        ("new", {"kind": "inherent", "trait": None}),
        ("clone", {"kind": "trait", "trait": "Clone"}),
    ]
    assert methods["methods"][0]["path"] == "demo::Bar::new"
    assert [entry["name"] for entry in impls["impls"]] == ["impl Clone for Foo"]


def test_search_persists_index_in_workspace_data_dir(tmp_path: Path) -> None:
    server, workspace = _selected_server(tmp_path)

    result = _call(server, "docs.search", query="foo", crate="demo", limit=5)["result"]

    assert result["status"] == "ok"
    assert result["crate_version"] == "0.1.0"
    assert [hit["path"] for hit in result["hits"]] == [
        "demo::Bar",
        "demo::make_foo",
        "demo::Bar::new",
    ]
    manifest_path = workspace / ".cratedoc_mcp" / "search" / "demo-0.1.0" / "manifest.json"
    manifest = json.loads(manifest_path.read_text(encoding="utf-8"))
    assert manifest["entry_count"] == 9


def test_corrupt_index_is_rebuilt_with_warning(tmp_path: Path) -> None:
    server, workspace = _selected_server(tmp_path)
    _call(server, "docs.search", query="foo")
    entries_path = workspace / ".cratedoc_mcp" / "search" / "demo-0.1.0" / "entries.jsonl"
    entries_path.write_text("not json\n", encoding="utf-8")

    fresh = create_server(workspace_root=str(workspace))
    response = _call(fresh, "docs.search", query="foo")

    assert len(response["result"]["hits"]) == 3
    assert len(response["warnings"]) == 1
    assert "unreadable" in response["warnings"][0]
    assert "__warnings__" not in response["result"]


def test_auxiliary_load_failure_becomes_warning(tmp_path: Path) -> None:
    server, workspace = _selected_server(tmp_path)
    (workspace / "target" / "doc" / "helper.json").write_text("{", encoding="utf-8")

    response = _call(server, "docs.resolve", path="demo::Bar")

    assert response["result"]["status"] == "unique"
    assert len(response["warnings"]) == 1
    assert "helper" in response["warnings"][0]


def test_reselecting_workspace_replaces_session(tmp_path: Path) -> None:
    server, _ = _selected_server(tmp_path)
    other = write_workspace(
        tmp_path / "other",
        exports={"helper": helper_export()},
        package="helper",
        dependencies=(),
    )

    result = _call(server, "docs.set_workspace", path=str(other))["result"]

    assert result["workspace"]["default_crate"] == "helper"
    assert result["workspace"]["available_count"] == 1


def test_audit_log_tool_reads_startup_log(tmp_path: Path) -> None:
    server, _ = _selected_server(tmp_path)
    _call(server, "docs.resolve", path="demo::Shape")

    entries = _call(server, "docs.audit_log", limit=2)["result"]["entries"]

    assert [entry["tool"] for entry in entries] == ["docs.set_workspace", "docs.resolve"]
    assert (tmp_path / ".cratedoc_mcp" / "audit.jsonl").exists()


def test_status_reports_search_index_state(tmp_path: Path) -> None:
    server, _ = _selected_server(tmp_path)

    before = _call(server, "docs.status")["result"]["search_indexes"]
    _call(server, "docs.search", query="foo")
    after = _call(server, "docs.status")["result"]["search_indexes"]

    assert [(entry["corpus_name"], entry["index_status"]) for entry in before] == [
        ("demo", "not_indexed")
    ]
    assert after[0]["index_status"] == "ready"
    assert after[0]["corpus_version"] == "0.1.0"
    assert after[0]["entry_count"] == 9
