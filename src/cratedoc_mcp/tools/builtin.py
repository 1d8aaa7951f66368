"""Built-in documentation tools."""

from __future__ import annotations

from collections.abc import Callable

from cratedoc_mcp.corpus.models import KIND_ORDER
from cratedoc_mcp.engine import DocsEngine
from cratedoc_mcp.security import clamp_children, enforce_search_limit
from cratedoc_mcp.session.discovery import ORIGIN_ORDER
from cratedoc_mcp.tools.registry import ToolDispatchError, ToolHandler, ToolRegistry

CRATE_SCOPES = ("all", *ORIGIN_ORDER)


def register_builtin_tools(
    registry: ToolRegistry,
    engine: DocsEngine,
    read_audit_entries: Callable[[str | None, int], list[dict[str, object]]],
) -> None:
    """Register the documentation tool set in its published order."""
    registry.register("docs.set_workspace", _set_workspace_handler(engine))
    registry.register("docs.status", _status_handler(engine, registry))
    registry.register("docs.list_crates", _list_crates_handler(engine))
    registry.register("docs.resolve", _resolve_handler(engine))
    registry.register("docs.list_children", _list_children_handler(engine))
    registry.register("docs.list_methods", _path_handler("docs.list_methods", engine.list_methods))
    registry.register(
        "docs.list_trait_impls",
        _path_handler("docs.list_trait_impls", engine.list_trait_impls),
    )
    registry.register("docs.search", _search_handler(engine))
    registry.register("docs.audit_log", _audit_log_handler(engine, read_audit_entries))


def _require_path(tool: str, arguments: dict[str, object]) -> str:
    value = arguments.get("path")
    if not isinstance(value, str) or not value.strip():
        raise ToolDispatchError(
            code="INVALID_PARAMS",
            message=f"{tool} path must be a non-empty string.",
        )
    return value.strip()


def _set_workspace_handler(engine: DocsEngine) -> ToolHandler:
    def handler(arguments: dict[str, object]) -> dict[str, object]:
        path = _require_path("docs.set_workspace", arguments)
        try:
            workspace = engine.select_workspace(path)
        except ValueError as error:
            raise ToolDispatchError(
                code="INVALID_PARAMS",
                message=f"Workspace configuration is invalid: {error}",
            ) from error
        return {
            "workspace": workspace,
            "effective_config": engine.effective_config().to_public_dict(),
        }

    return handler


def _status_handler(engine: DocsEngine, registry: ToolRegistry) -> ToolHandler:
    def handler(_: dict[str, object]) -> dict[str, object]:
        status = engine.status()
        status["tools"] = list(registry.names())
        return status

    return handler


def _list_crates_handler(engine: DocsEngine) -> ToolHandler:
    def handler(arguments: dict[str, object]) -> dict[str, object]:
        scope = arguments.get("scope", "all")
        if not isinstance(scope, str) or scope not in CRATE_SCOPES:
            raise ToolDispatchError(
                code="INVALID_PARAMS",
                message=f"docs.list_crates scope must be one of: {', '.join(CRATE_SCOPES)}.",
            )
        return engine.list_corpora(scope)

    return handler


def _resolve_handler(engine: DocsEngine) -> ToolHandler:
    def handler(arguments: dict[str, object]) -> dict[str, object]:
        return engine.resolve(_require_path("docs.resolve", arguments))

    return handler


def _list_children_handler(engine: DocsEngine) -> ToolHandler:
    def handler(arguments: dict[str, object]) -> dict[str, object]:
        path = _require_path("docs.list_children", arguments)
        recursive = arguments.get("recursive", False)
        if not isinstance(recursive, bool):
            raise ToolDispatchError(
                code="INVALID_PARAMS",
                message="docs.list_children recursive must be a boolean.",
            )
        kind = arguments.get("kind")
        if kind is not None and (not isinstance(kind, str) or kind not in KIND_ORDER):
            raise ToolDispatchError(
                code="INVALID_PARAMS",
                message="docs.list_children kind must be a known item kind.",
            )
        limit_value = arguments.get("limit")
        if limit_value is not None and (
            not isinstance(limit_value, int) or isinstance(limit_value, bool)
        ):
            raise ToolDispatchError(
                code="INVALID_PARAMS",
                message="docs.list_children limit must be an integer.",
            )
        limit = clamp_children(limit_value, engine.effective_config().limits)
        return engine.list_children(path, recursive=recursive, kind=kind, limit=limit)

    return handler


def _path_handler(tool: str, operation: Callable[[str], dict[str, object]]) -> ToolHandler:
    def handler(arguments: dict[str, object]) -> dict[str, object]:
        return operation(_require_path(tool, arguments))

    return handler


def _search_handler(engine: DocsEngine) -> ToolHandler:
    def handler(arguments: dict[str, object]) -> dict[str, object]:
        query = arguments.get("query")
        if not isinstance(query, str) or not query.strip():
            raise ToolDispatchError(
                code="INVALID_PARAMS",
                message="docs.search query must be a non-empty string.",
            )
        crate = arguments.get("crate")
        if crate is not None and (not isinstance(crate, str) or not crate.strip()):
            raise ToolDispatchError(
                code="INVALID_PARAMS",
                message="docs.search crate must be a non-empty string when given.",
            )
        config = engine.effective_config()
        limit = arguments.get("limit", config.search.default_limit)
        if not isinstance(limit, int) or isinstance(limit, bool) or limit < 1:
            raise ToolDispatchError(
                code="INVALID_PARAMS",
                message="docs.search limit must be an integer >= 1.",
            )
        enforce_search_limit(limit, config.limits)
        return engine.search(crate, query, limit)

    return handler


def _audit_log_handler(
    engine: DocsEngine,
    read_audit_entries: Callable[[str | None, int], list[dict[str, object]]],
) -> ToolHandler:
    def handler(arguments: dict[str, object]) -> dict[str, object]:
        limits = engine.effective_config().limits
        since_value = arguments.get("since")
        limit_value = arguments.get("limit", limits.max_search_hits)

        since = since_value if isinstance(since_value, str) else None
        limit = limit_value if isinstance(limit_value, int) else limits.max_search_hits
        limit = max(1, min(limit, limits.max_search_hits))
        return {"entries": read_audit_entries(since, limit)}

    return handler
