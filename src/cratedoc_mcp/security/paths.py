"""Validation of workspace root paths supplied by callers."""

from __future__ import annotations

from pathlib import Path


class PathBlockedError(Exception):
    """Raised when a requested workspace path cannot be used."""

    def __init__(self, reason: str, hint: str) -> None:
        super().__init__(reason)
        self.reason = reason
        self.hint = hint


def resolve_workspace_root(candidate: str) -> Path:
    """Resolve a caller-supplied workspace directory.

    The directory must exist and contain a Cargo.toml, or already hold a doc
    output directory with exports.
    """
    normalized = candidate.strip()
    if not normalized:
        raise PathBlockedError(
            reason="Workspace path is empty.",
            hint="Provide the directory that contains Cargo.toml.",
        )
    resolved = Path(normalized).expanduser().resolve(strict=False)
    if not resolved.exists():
        raise PathBlockedError(
            reason="Workspace path does not exist.",
            hint="Provide an existing project directory.",
        )
    if not resolved.is_dir():
        if resolved.name == "Cargo.toml":
            return resolved.parent
        raise PathBlockedError(
            reason="Workspace path is not a directory.",
            hint="Provide the project directory, not a file inside it.",
        )
    if not (resolved / "Cargo.toml").is_file() and not (resolved / "target" / "doc").is_dir():
        raise PathBlockedError(
            reason="Workspace path has no Cargo.toml.",
            hint="Point at the root of a Cargo package or workspace.",
        )
    return resolved
