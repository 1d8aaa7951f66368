from __future__ import annotations

from pathlib import Path

import pytest
from rustdoc_fixtures import helper_export, write_export, write_workspace

from cratedoc_mcp.config import CliOverrides, load_effective_config
from cratedoc_mcp.session import (
    SessionState,
    WorkspaceNotSelectedError,
    build_session,
    discover_corpora,
)
from cratedoc_mcp.session.discovery import export_path, local_packages


def test_corpora_are_ordered_by_origin(tmp_path: Path) -> None:
    root = write_workspace(tmp_path / "ws")
    stdlib_dir = tmp_path / "stdlib"
    write_export(stdlib_dir / "core.json", helper_export())
    write_export(stdlib_dir / "std.json", helper_export())
    write_export(root / "target" / "doc" / "stray.json", helper_export())

    sources = discover_corpora(root, root / "target" / "doc", stdlib_dir)

    assert [(source.name, source.origin) for source in sources] == [
        ("demo", "local"),
        ("helper", "dependency"),
        ("std", "standard"),
        ("core", "standard"),
        ("stray", "discovered"),
    ]
    assert sources[1].version == "0.2.0"


def test_missing_exports_are_listed_as_unavailable(tmp_path: Path) -> None:
    root = write_workspace(tmp_path, dependencies=(("helper", "0.2.0"), ("serde-json", "1.0.0")))

    session = build_session(load_effective_config(root))
    serde = session.find("serde_json")

    assert serde is not None
    assert serde.name == "serde-json"
    assert serde.path == export_path(root / "target" / "doc", "serde-json")
    assert serde.path.name == "serde_json.json"
    assert serde.is_available() is False


def test_workspace_members_follow_root_package(tmp_path: Path) -> None:
    (tmp_path / "Cargo.toml").write_text(
        '[workspace]\nmembers = ["crates/*"]\nexclude = ["crates/skip"]\n',
        encoding="utf-8",
    )
    for name in ("beta", "alpha", "skip"):
        member = tmp_path / "crates" / name
        member.mkdir(parents=True)
        (member / "Cargo.toml").write_text(
            f'[package]\nname = "{name}"\nversion = "0.3.0"\n', encoding="utf-8"
        )

    assert [package.name for package in local_packages(tmp_path)] == ["alpha", "beta"]


def test_session_defaults_to_first_local_crate(tmp_path: Path) -> None:
    root = write_workspace(tmp_path)

    session = build_session(load_effective_config(root))
    described = session.describe()

    assert session.default_corpus == "demo"
    assert described["default_crate"] == "demo"
    assert described["crate_count"] == 2
    assert described["available_count"] == 2
    assert described["origin_counts"] == {"dependency": 1, "local": 1}


def test_stdlib_override_adds_standard_corpora(tmp_path: Path) -> None:
    root = write_workspace(tmp_path / "ws")
    stdlib_dir = tmp_path / "toolchain"
    write_export(stdlib_dir / "alloc.json", helper_export())

    config = load_effective_config(root, CliOverrides(stdlib_doc_dir=stdlib_dir))
    session = build_session(config)

    alloc = session.find("alloc")
    assert alloc is not None
    assert alloc.origin == "standard"


def test_session_state_requires_a_selection(tmp_path: Path) -> None:
    state = SessionState()

    with pytest.raises(WorkspaceNotSelectedError, match="docs.set_workspace"):
        state.current()
    assert state.peek() is None

    session = build_session(load_effective_config(write_workspace(tmp_path)))
    assert state.replace(session) is None
    assert state.current() is session
