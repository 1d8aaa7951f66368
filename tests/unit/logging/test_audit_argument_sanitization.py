from __future__ import annotations

import json
from pathlib import Path

from rustdoc_fixtures import write_workspace

from cratedoc_mcp.logging import sanitize_arguments, summarize_outcome
from cratedoc_mcp.server import create_server


def _audit_entries(root: Path) -> list[dict[str, object]]:
    audit_path = root / ".cratedoc_mcp" / "audit.jsonl"
    return [json.loads(line) for line in audit_path.read_text(encoding="utf-8").splitlines()]


def test_audit_log_records_query_by_length_only(tmp_path: Path) -> None:
    root = write_workspace(tmp_path)
    server = create_server(workspace_root=str(root))
    server.handle_payload(
        {
            "id": "req-200",
            "method": "docs.search",
            "params": {"query": "API_KEY=top-secret", "crate": "demo", "limit": 3},
        }
    )

    event = _audit_entries(root)[-1]
    metadata = event["metadata"]

    assert event["tool"] == "docs.search"
    assert event["ok"] is True
    assert metadata["query_present"] is True
    assert metadata["query_length"] == len("API_KEY=top-secret")
    assert metadata["crate"] == "demo"
    assert metadata["limit"] == 3
    assert "query" not in metadata
    assert "API_KEY=top-secret" not in json.dumps(event, sort_keys=True)


def test_audit_log_records_paths_by_length_only(tmp_path: Path) -> None:
    root = write_workspace(tmp_path)
    server = create_server(workspace_root=str(root))
    server.handle_payload(
        {"id": "req-201", "method": "docs.resolve", "params": {"path": "demo::m::Foo"}}
    )

    event = _audit_entries(root)[-1]

    assert event["metadata"] == {"path_length": len("demo::m::Foo"), "path_present": True}
    assert set(event) == {
        "timestamp",
        "request_id",
        "tool",
        "ok",
        "blocked",
        "error_code",
        "metadata",
        "outcome",
    }
    assert event["outcome"] == {"crate": "demo", "kind": "struct", "status": "unique"}


def test_failed_requests_record_error_code(tmp_path: Path) -> None:
    root = write_workspace(tmp_path)
    server = create_server(workspace_root=str(root))
    server.handle_payload({"id": "req-202", "method": "docs.nope", "params": {}})

    event = _audit_entries(root)[-1]

    assert event["ok"] is False
    assert event["error_code"] == "UNKNOWN_TOOL"


def test_sanitize_arguments_summarizes_structured_values() -> None:
    sanitized = sanitize_arguments(
        {
            "recursive": True,
            "kind": "struct",
            "custom_note": "token=abc123",
            "items": [1, 2, 3],
            "options": {"b": 1, "a": 2},
        }
    )

    assert sanitized == {
        "custom_note_length": len("token=abc123"),
        "custom_note_present": True,
        "items_length": 3,
        "items_type": "list",
        "kind": "struct",
        "options_length": 2,
        "options_type": "dict",
        "recursive": True,
    }


def test_search_outcome_records_counts_not_hits(tmp_path: Path) -> None:
    root = write_workspace(tmp_path)
    server = create_server(workspace_root=str(root))
    server.handle_payload(
        {"id": "req-203", "method": "docs.search", "params": {"query": "foo", "crate": "demo"}}
    )

    event = _audit_entries(root)[-1]

    assert event["outcome"] == {"crate": "demo", "hits_count": 3, "status": "ok"}
    assert "make_foo" not in json.dumps(event, sort_keys=True)


def test_near_miss_outcome_records_status_and_suggestion_count(tmp_path: Path) -> None:
    root = write_workspace(tmp_path)
    server = create_server(workspace_root=str(root))
    server.handle_payload(
        {"id": "req-204", "method": "docs.resolve", "params": {"path": "demo::Shap"}}
    )

    outcome = _audit_entries(root)[-1]["outcome"]

    assert outcome["status"] == "not_found"
    assert outcome["suggestions_count"] >= 1


def test_load_failure_records_crate_and_failure_kind(tmp_path: Path) -> None:
    root = write_workspace(tmp_path)
    (root / "target" / "doc" / "demo.json").write_text("[1, 2", encoding="utf-8")
    server = create_server(workspace_root=str(root))
    server.handle_payload(
        {"id": "req-205", "method": "docs.resolve", "params": {"path": "demo::Bar"}}
    )

    event = _audit_entries(root)[-1]

    assert event["error_code"] == "CORPUS_LOAD_FAILED"
    assert event["outcome"] == {"crate": "demo", "load_failure": "malformed"}


def test_auxiliary_failures_are_counted_as_warnings(tmp_path: Path) -> None:
    root = write_workspace(tmp_path)
    (root / "target" / "doc" / "helper.json").write_text("{", encoding="utf-8")
    server = create_server(workspace_root=str(root))
    server.handle_payload(
        {"id": "req-206", "method": "docs.resolve", "params": {"path": "demo::Bar"}}
    )

    outcome = _audit_entries(root)[-1]["outcome"]

    assert outcome["status"] == "unique"
    assert outcome["warning_count"] == 1


def test_blocked_response_outcome_is_empty() -> None:
    response = {
        "ok": False,
        "blocked": True,
        "result": {"reason": "too big", "hint": "narrow it", "status": "unique"},
        "warnings": [],
    }

    assert summarize_outcome(response) == {}
