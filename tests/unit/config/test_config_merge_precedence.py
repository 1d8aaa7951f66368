from __future__ import annotations

from pathlib import Path

from rustdoc_fixtures import write_workspace

from cratedoc_mcp.config import CliOverrides, load_effective_config
from cratedoc_mcp.server import create_server


def test_merge_order_defaults_then_workspace_then_cli(tmp_path: Path) -> None:
    root = write_workspace(tmp_path)
    (root / "cratedoc_mcp.toml").write_text(
        "\n".join(
            [
                "[limits]",
                "max_children = 42",
                "max_search_hits = 7",
                "",
                "[corpus]",
                "load_workers = 3",
            ]
        ),
        encoding="utf-8",
    )
    overrides = CliOverrides(max_children=99, load_workers=8)
    server = create_server(workspace_root=str(root), cli_overrides=overrides)

    response = server.handle_payload({"id": "req-merge", "method": "docs.status", "params": {}})
    effective = response["result"]["effective_config"]

    assert effective["limits"]["max_children"] == 99
    assert effective["limits"]["max_search_hits"] == 7
    assert effective["corpus"]["load_workers"] == 8
    assert effective["corpus"]["load_retries"] == 1


def test_data_dir_override_has_highest_precedence(tmp_path: Path) -> None:
    custom_data_dir = tmp_path / ".custom_data"
    server = create_server(
        workspace_root=str(write_workspace(tmp_path / "ws")),
        cli_overrides=CliOverrides(data_dir=custom_data_dir),
    )

    response = server.handle_payload({"id": "req-data", "method": "docs.status", "params": {}})

    effective = response["result"]["effective_config"]
    assert effective["data_dir"] == str(custom_data_dir.resolve())
    assert response["result"]["search_index_dir"] == str(custom_data_dir.resolve() / "search")


def test_search_default_limit_never_exceeds_hit_cap(tmp_path: Path) -> None:
    (tmp_path / "cratedoc_mcp.toml").write_text(
        "[search]\ndefault_limit = 20\n", encoding="utf-8"
    )

    config = load_effective_config(tmp_path, CliOverrides(max_search_hits=5))

    assert config.limits.max_search_hits == 5
    assert config.search.default_limit == 5


def test_defaults_apply_without_config_file(tmp_path: Path) -> None:
    config = load_effective_config(tmp_path)

    assert config.workspace_root == tmp_path.resolve()
    assert config.data_dir == tmp_path.resolve() / ".cratedoc_mcp"
    assert config.corpus.doc_dir == Path("target") / "doc"
    assert config.corpus.stdlib_doc_dir is None
    assert config.limits.max_children == 200
    assert config.search.default_limit == 10
