"""Tool registration and dispatch with domain error translation."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field

from cratedoc_mcp.corpus.loader import LoadError
from cratedoc_mcp.session.scope import UnknownCorpusError
from cratedoc_mcp.session.workspace import WorkspaceNotSelectedError

ToolHandler = Callable[[dict[str, object]], dict[str, object]]


@dataclass(slots=True, frozen=True)
class ToolDispatchError(Exception):
    """A request that reached a tool but cannot be served as asked.

    ``detail`` carries loggable facts about the failure (crate name, load
    failure kind); it is written to the audit log, never to the response.
    """

    code: str
    message: str
    detail: dict[str, object] = field(default_factory=dict)


@dataclass(slots=True)
class ToolRegistry:
    """Named tool handlers, listed in registration order."""

    _handlers: dict[str, ToolHandler] = field(default_factory=dict)

    def register(self, name: str, handler: ToolHandler) -> None:
        if name in self._handlers:
            raise ValueError(f"Tool already registered: {name}")
        self._handlers[name] = handler

    def names(self) -> tuple[str, ...]:
        return tuple(self._handlers.keys())

    def dispatch(self, name: str, arguments: dict[str, object]) -> dict[str, object]:
        """Run one tool, mapping session and corpus failures to dispatch errors."""
        handler = self._handlers.get(name)
        if handler is None:
            raise ToolDispatchError(code="UNKNOWN_TOOL", message=f"Unknown tool: {name}")
        try:
            return handler(arguments)
        except WorkspaceNotSelectedError as error:
            raise ToolDispatchError(code="NO_WORKSPACE", message=str(error)) from error
        except UnknownCorpusError as error:
            raise ToolDispatchError(
                code="INVALID_PARAMS",
                message=f"Unknown crate: {error.name}",
                detail={"crate": error.name},
            ) from error
        except LoadError as error:
            raise ToolDispatchError(
                code="CORPUS_LOAD_FAILED",
                message=str(error),
                detail={"crate": error.corpus_name, "load_failure": error.kind},
            ) from error
