"""Workspace corpus discovery from Cargo manifests and the doc output directory."""

from __future__ import annotations

import tomllib
from dataclasses import dataclass
from pathlib import Path

from cratedoc_mcp.corpus.models import corpus_key

STANDARD_CORPORA = ("std", "core", "alloc", "proc_macro", "test")
ORIGIN_ORDER = ("local", "dependency", "standard", "discovered")


@dataclass(slots=True, frozen=True)
class CorpusSource:
    """Where a corpus export is expected to live."""

    name: str
    version: str | None
    path: Path
    origin: str

    @property
    def key(self) -> str:
        return corpus_key(self.name)

    def is_available(self) -> bool:
        return self.path.is_file()


@dataclass(slots=True, frozen=True)
class CargoPackage:
    name: str
    version: str | None


def export_path(doc_dir: Path, name: str) -> Path:
    """Return the conventional export location for a crate name."""
    return doc_dir / f"{name.replace('-', '_')}.json"


def read_toml(path: Path) -> dict[str, object]:
    """Read a TOML file; a missing file reads as an empty table."""
    if not path.is_file():
        return {}
    with path.open("rb") as handle:
        return tomllib.load(handle)


def local_packages(root: Path) -> list[CargoPackage]:
    """Return the root package followed by workspace members, in manifest order."""
    manifest = read_toml(root / "Cargo.toml")
    packages: list[CargoPackage] = []
    root_package = _package_entry(manifest)
    if root_package is not None:
        packages.append(root_package)

    workspace = manifest.get("workspace")
    if not isinstance(workspace, dict):
        return packages
    members = workspace.get("members", [])
    excluded = {
        (root / pattern).resolve()
        for pattern in workspace.get("exclude", [])
        if isinstance(pattern, str)
    }
    for pattern in members if isinstance(members, list) else []:
        if not isinstance(pattern, str):
            continue
        for member_dir in sorted(root.glob(pattern)):
            if member_dir.resolve() in excluded:
                continue
            member = _package_entry(read_toml(member_dir / "Cargo.toml"))
            if member is not None and all(member.name != known.name for known in packages):
                packages.append(member)
    return packages


def locked_packages(root: Path) -> list[CargoPackage]:
    """Return every package pinned in Cargo.lock, sorted by name then version."""
    lockfile = read_toml(root / "Cargo.lock")
    raw_packages = lockfile.get("package", [])
    output: list[CargoPackage] = []
    for entry in raw_packages if isinstance(raw_packages, list) else []:
        if not isinstance(entry, dict) or not isinstance(entry.get("name"), str):
            continue
        version = entry.get("version")
        output.append(
            CargoPackage(name=entry["name"], version=version if isinstance(version, str) else None)
        )
    return sorted(output, key=lambda package: (package.name, package.version or ""))


def discover_corpora(
    root: Path,
    doc_dir: Path,
    stdlib_doc_dir: Path | None = None,
) -> list[CorpusSource]:
    """Return all corpora a workspace can reach, local packages first.

    Missing export files are kept in the listing; loading reports them as
    unreadable.
    """
    sources: list[CorpusSource] = []
    seen: set[str] = set()

    def add(name: str, version: str | None, path: Path, origin: str) -> None:
        key = corpus_key(name)
        if key in seen:
            return
        seen.add(key)
        sources.append(CorpusSource(name=name, version=version, path=path, origin=origin))

    for package in local_packages(root):
        add(package.name, package.version, export_path(doc_dir, package.name), "local")
    for package in locked_packages(root):
        add(package.name, package.version, export_path(doc_dir, package.name), "dependency")
    if stdlib_doc_dir is not None:
        for name in STANDARD_CORPORA:
            candidate = stdlib_doc_dir / f"{name}.json"
            if candidate.is_file():
                add(name, None, candidate, "standard")
    if doc_dir.is_dir():
        for candidate in sorted(doc_dir.glob("*.json")):
            if "." in candidate.stem:
                continue
            add(candidate.stem, None, candidate, "discovered")
    return sources


def _package_entry(manifest: dict[str, object]) -> CargoPackage | None:
    package = manifest.get("package")
    if not isinstance(package, dict) or not isinstance(package.get("name"), str):
        return None
    version = package.get("version")
    return CargoPackage(name=package["name"], version=version if isinstance(version, str) else None)
