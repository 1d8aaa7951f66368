"""Configuration loading and deterministic merge order."""

from __future__ import annotations

import tomllib
from dataclasses import dataclass
from pathlib import Path

from cratedoc_mcp.security import SecurityLimits

CONFIG_FILE_NAME = "cratedoc_mcp.toml"
DATA_DIR_NAME = ".cratedoc_mcp"

MAX_TOTAL_BYTES_PER_RESPONSE_CAP = 4 * 1024 * 1024
MAX_SEARCH_HITS_CAP = 200
MAX_CHILDREN_CAP = 5_000
LOAD_WORKERS_CAP = 32
LOAD_RETRIES_CAP = 5

DEFAULT_DOC_DIR = Path("target") / "doc"


@dataclass(slots=True, frozen=True)
class CorpusConfig:
    """Where corpora live and how they are loaded."""

    doc_dir: Path
    stdlib_doc_dir: Path | None
    load_workers: int
    load_retries: int


@dataclass(slots=True, frozen=True)
class SearchConfig:
    """Search defaults."""

    default_limit: int


@dataclass(slots=True, frozen=True)
class ServerConfig:
    """Fully merged server configuration."""

    workspace_root: Path
    data_dir: Path
    limits: SecurityLimits
    corpus: CorpusConfig
    search: SearchConfig

    def to_public_dict(self) -> dict[str, object]:
        """Return serializable config snapshot for tool responses."""
        return {
            "workspace_root": str(self.workspace_root),
            "data_dir": str(self.data_dir),
            "limits": {
                "max_total_bytes_per_response": self.limits.max_total_bytes_per_response,
                "max_search_hits": self.limits.max_search_hits,
                "max_children": self.limits.max_children,
            },
            "corpus": {
                "doc_dir": str(self.corpus.doc_dir),
                "stdlib_doc_dir": (
                    str(self.corpus.stdlib_doc_dir)
                    if self.corpus.stdlib_doc_dir is not None
                    else None
                ),
                "load_workers": self.corpus.load_workers,
                "load_retries": self.corpus.load_retries,
            },
            "search": {
                "default_limit": self.search.default_limit,
            },
        }


@dataclass(slots=True, frozen=True)
class CliOverrides:
    """Optional startup overrides applied at highest precedence."""

    data_dir: Path | None = None
    stdlib_doc_dir: Path | None = None
    max_total_bytes_per_response: int | None = None
    max_search_hits: int | None = None
    max_children: int | None = None
    load_workers: int | None = None


def default_config(workspace_root: Path) -> ServerConfig:
    """Build default config for a given workspace root."""
    resolved_root = workspace_root.resolve()
    return ServerConfig(
        workspace_root=resolved_root,
        data_dir=resolved_root / DATA_DIR_NAME,
        limits=SecurityLimits(),
        corpus=CorpusConfig(
            doc_dir=DEFAULT_DOC_DIR,
            stdlib_doc_dir=None,
            load_workers=4,
            load_retries=1,
        ),
        search=SearchConfig(default_limit=10),
    )


def load_workspace_config_file(workspace_root: Path) -> dict[str, object]:
    """Load optional cratedoc_mcp.toml from the workspace root."""
    config_path = workspace_root / CONFIG_FILE_NAME
    if not config_path.exists():
        return {}
    with config_path.open("rb") as handle:
        payload = tomllib.load(handle)
    if not isinstance(payload, dict):
        raise ValueError(f"{CONFIG_FILE_NAME} must contain a top-level table.")
    return payload


def _get_table(payload: dict[str, object], key: str) -> dict[str, object]:
    value = payload.get(key, {})
    if not isinstance(value, dict):
        raise ValueError(f"Config section '{key}' must be a table.")
    return value


def _optional_path(value: object, name: str, default: Path | None) -> Path | None:
    if value is None:
        return default
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"Config field '{name}' must be a non-empty string path.")
    return Path(value).expanduser()


def merge_config(
    base: ServerConfig, workspace_payload: dict[str, object], overrides: CliOverrides
) -> ServerConfig:
    """Merge defaults, workspace config, then CLI/startup overrides."""
    limits_payload = _get_table(workspace_payload, "limits")
    corpus_payload = _get_table(workspace_payload, "corpus")
    search_payload = _get_table(workspace_payload, "search")

    max_total_bytes_per_response = _optional_positive_int_with_cap(
        limits_payload.get("max_total_bytes_per_response"),
        "limits.max_total_bytes_per_response",
        base.limits.max_total_bytes_per_response,
        MAX_TOTAL_BYTES_PER_RESPONSE_CAP,
    )
    max_search_hits = _optional_positive_int_with_cap(
        limits_payload.get("max_search_hits"),
        "limits.max_search_hits",
        base.limits.max_search_hits,
        MAX_SEARCH_HITS_CAP,
    )
    max_children = _optional_positive_int_with_cap(
        limits_payload.get("max_children"),
        "limits.max_children",
        base.limits.max_children,
        MAX_CHILDREN_CAP,
    )

    doc_dir = _optional_path(corpus_payload.get("doc_dir"), "corpus.doc_dir", base.corpus.doc_dir)
    stdlib_doc_dir = _optional_path(
        corpus_payload.get("stdlib_doc_dir"),
        "corpus.stdlib_doc_dir",
        base.corpus.stdlib_doc_dir,
    )
    load_workers = _optional_positive_int_with_cap(
        corpus_payload.get("load_workers"),
        "corpus.load_workers",
        base.corpus.load_workers,
        LOAD_WORKERS_CAP,
    )
    load_retries = base.corpus.load_retries
    if "load_retries" in corpus_payload:
        raw_retries = corpus_payload["load_retries"]
        if (
            not isinstance(raw_retries, int)
            or isinstance(raw_retries, bool)
            or not 0 <= raw_retries <= LOAD_RETRIES_CAP
        ):
            raise ValueError(
                f"Config field 'corpus.load_retries' must be an integer from 0 to "
                f"{LOAD_RETRIES_CAP}."
            )
        load_retries = raw_retries

    default_limit = _optional_positive_int_with_cap(
        search_payload.get("default_limit"),
        "search.default_limit",
        base.search.default_limit,
        max_search_hits,
    )

    merged = ServerConfig(
        workspace_root=base.workspace_root,
        data_dir=base.data_dir,
        limits=SecurityLimits(
            max_total_bytes_per_response=max_total_bytes_per_response,
            max_search_hits=max_search_hits,
            max_children=max_children,
        ),
        corpus=CorpusConfig(
            doc_dir=doc_dir or DEFAULT_DOC_DIR,
            stdlib_doc_dir=stdlib_doc_dir,
            load_workers=load_workers,
            load_retries=load_retries,
        ),
        search=SearchConfig(default_limit=default_limit),
    )
    return apply_cli_overrides(merged, overrides)


def apply_cli_overrides(config: ServerConfig, overrides: CliOverrides) -> ServerConfig:
    """Apply startup overrides at highest precedence."""
    max_total_bytes_per_response = _optional_positive_int_with_cap(
        overrides.max_total_bytes_per_response,
        "overrides.max_total_bytes_per_response",
        config.limits.max_total_bytes_per_response,
        MAX_TOTAL_BYTES_PER_RESPONSE_CAP,
    )
    max_search_hits = _optional_positive_int_with_cap(
        overrides.max_search_hits,
        "overrides.max_search_hits",
        config.limits.max_search_hits,
        MAX_SEARCH_HITS_CAP,
    )
    max_children = _optional_positive_int_with_cap(
        overrides.max_children,
        "overrides.max_children",
        config.limits.max_children,
        MAX_CHILDREN_CAP,
    )
    load_workers = _optional_positive_int_with_cap(
        overrides.load_workers,
        "overrides.load_workers",
        config.corpus.load_workers,
        LOAD_WORKERS_CAP,
    )

    limits = SecurityLimits(
        max_total_bytes_per_response=max_total_bytes_per_response,
        max_search_hits=max_search_hits,
        max_children=max_children,
    )
    corpus = CorpusConfig(
        doc_dir=config.corpus.doc_dir,
        stdlib_doc_dir=(
            overrides.stdlib_doc_dir
            if overrides.stdlib_doc_dir is not None
            else config.corpus.stdlib_doc_dir
        ),
        load_workers=load_workers,
        load_retries=config.corpus.load_retries,
    )
    data_dir = overrides.data_dir or config.data_dir
    return ServerConfig(
        workspace_root=config.workspace_root,
        data_dir=data_dir.resolve(),
        limits=limits,
        corpus=corpus,
        search=SearchConfig(default_limit=min(config.search.default_limit, max_search_hits)),
    )


def load_effective_config(
    workspace_root: Path, overrides: CliOverrides | None = None
) -> ServerConfig:
    """Load effective config using merge order defaults -> workspace config -> overrides."""
    resolved_root = workspace_root.resolve()
    base = default_config(resolved_root)
    payload = load_workspace_config_file(resolved_root)
    return merge_config(base, payload, overrides or CliOverrides())


def _optional_positive_int_with_cap(
    value: object,
    name: str,
    default: int,
    cap: int | None,
) -> int:
    if value is None:
        return default
    if not isinstance(value, int) or isinstance(value, bool) or value < 1:
        raise ValueError(f"Config field '{name}' must be a positive integer.")
    if cap is not None and value > cap:
        raise ValueError(f"Config field '{name}' must be <= {cap}.")
    return value
