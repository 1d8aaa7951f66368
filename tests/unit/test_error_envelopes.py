from __future__ import annotations

import json
from pathlib import Path

from rustdoc_fixtures import write_workspace

from cratedoc_mcp.server import create_server


def test_malformed_json_returns_invalid_json_error(tmp_path: Path) -> None:
    server = create_server(workspace_root=str(tmp_path))

    response = server.handle_json_line("{not-json")

    assert response["ok"] is False
    assert response["error"] == {
        "code": "INVALID_JSON",
        "message": "Request must be valid JSON.",
    }
    assert str(response["request_id"]).startswith("req-")


def test_unknown_tool_returns_explicit_error(tmp_path: Path) -> None:
    server = create_server(workspace_root=str(tmp_path))

    response = server.handle_payload(
        {"id": "abc-123", "method": "docs.unknown", "params": {"k": "v"}}
    )

    assert response["ok"] is False
    assert response["request_id"] == "abc-123"
    assert response["error"] == {
        "code": "UNKNOWN_TOOL",
        "message": "Unknown tool: docs.unknown",
    }


def test_invalid_tools_call_params_returns_invalid_params_error(tmp_path: Path) -> None:
    server = create_server(workspace_root=str(tmp_path))
    payload = {"id": 7, "method": "tools/call", "params": {"name": "docs.status", "arguments": []}}

    response = server.handle_payload(json.loads(json.dumps(payload)))

    assert response["ok"] is False
    assert response["request_id"] == "7"
    assert response["error"] == {
        "code": "INVALID_PARAMS",
        "message": "tools/call params.arguments must be an object.",
    }


def test_non_object_request_is_invalid(tmp_path: Path) -> None:
    server = create_server(workspace_root=str(tmp_path))

    response = server.handle_payload(["docs.status"])

    assert response["ok"] is False
    assert response["error"]["code"] == "INVALID_REQUEST"


def test_queries_before_workspace_selection_fail(tmp_path: Path) -> None:
    server = create_server(workspace_root=str(tmp_path))

    response = server.handle_payload(
        {"id": "req-nows", "method": "docs.resolve", "params": {"path": "demo::Foo"}}
    )
    status = server.handle_payload({"id": "req-status", "method": "docs.status", "params": {}})

    assert response["ok"] is False
    assert response["error"] == {
        "code": "NO_WORKSPACE",
        "message": "No workspace selected. Call docs.set_workspace first.",
    }
    assert status["ok"] is True
    assert status["result"]["workspace"] is None


def test_unknown_crate_for_search_is_a_not_found_result(tmp_path: Path) -> None:
    server = create_server(workspace_root=str(write_workspace(tmp_path)))

    response = server.handle_payload(
        {"id": "req-crate", "method": "docs.search", "params": {"query": "x", "crate": "dmeo"}}
    )

    assert response["ok"] is True
    assert response["result"]["status"] == "not_found"
    assert response["result"]["hits"] == []
    assert response["result"]["suggestions"][0]["path"] == "demo"


def test_unreadable_default_crate_reports_load_failure(tmp_path: Path) -> None:
    root = write_workspace(tmp_path)
    (root / "target" / "doc" / "demo.json").write_text("[1, 2", encoding="utf-8")
    server = create_server(workspace_root=str(root))

    response = server.handle_payload(
        {"id": "req-load", "method": "docs.resolve", "params": {"path": "demo::Foo"}}
    )

    assert response["ok"] is False
    assert response["blocked"] is False
    assert response["error"]["code"] == "CORPUS_LOAD_FAILED"
    assert "demo" in response["error"]["message"]


def test_oversized_response_is_blocked(tmp_path: Path) -> None:
    root = write_workspace(tmp_path)
    (root / "cratedoc_mcp.toml").write_text(
        "[limits]\nmax_total_bytes_per_response = 200\n", encoding="utf-8"
    )
    server = create_server(workspace_root=str(root))

    response = server.handle_payload(
        {"id": "req-big", "method": "docs.resolve", "params": {"path": "demo::m::Foo"}}
    )

    assert response["ok"] is False
    assert response["blocked"] is True
    assert response["result"]["reason"] == "Response exceeds max_total_bytes_per_response limit."
