"""STDIO MCP server entrypoint."""

from __future__ import annotations

import argparse
import json
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import TextIO

from cratedoc_mcp.config import CliOverrides, ServerConfig, load_effective_config
from cratedoc_mcp.corpus.loader import load_corpus
from cratedoc_mcp.engine import DocsEngine
from cratedoc_mcp.logging import (
    AuditEvent,
    JsonlAuditLogger,
    sanitize_arguments,
    summarize_outcome,
    utc_timestamp,
)
from cratedoc_mcp.security import PathBlockedError, PolicyBlockedError
from cratedoc_mcp.session.scope import CorpusLoader
from cratedoc_mcp.tools.builtin import register_builtin_tools
from cratedoc_mcp.tools.registry import ToolDispatchError, ToolRegistry


@dataclass(slots=True, frozen=True)
class Request:
    """Normalized incoming request."""

    request_id: str
    method: str
    params: dict[str, object]


def build_arg_parser() -> argparse.ArgumentParser:
    """Build argument parser for server startup configuration."""
    parser = argparse.ArgumentParser(prog="cratedoc-mcp")
    parser.add_argument("--workspace-root", required=False, default=".")
    parser.add_argument("--data-dir", required=False, default=None)
    parser.add_argument("--stdlib-doc-dir", required=False, default=None)
    parser.add_argument("--max-total-bytes-per-response", type=int, required=False, default=None)
    parser.add_argument("--max-search-hits", type=int, required=False, default=None)
    parser.add_argument("--max-children", type=int, required=False, default=None)
    parser.add_argument("--load-workers", type=int, required=False, default=None)
    return parser


class StdioServer:
    """JSON-line STDIO server routing requests to documentation tools."""

    def __init__(
        self,
        config: ServerConfig,
        overrides: CliOverrides | None = None,
        loader: CorpusLoader | None = None,
    ) -> None:
        self._engine = DocsEngine(config, overrides, loader=loader or load_corpus)
        self._audit_logger = JsonlAuditLogger(path=config.data_dir / "audit.jsonl")
        self._registry = ToolRegistry()
        register_builtin_tools(
            self._registry,
            engine=self._engine,
            read_audit_entries=self._audit_logger.read,
        )
        self._engine.auto_select()
        self._fallback_request_counter = 0

    @property
    def engine(self) -> DocsEngine:
        return self._engine

    @property
    def tool_names(self) -> tuple[str, ...]:
        return self._registry.names()

    def serve(self, in_stream: TextIO, out_stream: TextIO) -> None:
        """Process JSON-line requests from stdin and write JSON-line responses."""
        for raw_line in in_stream:
            line = raw_line.strip()
            if not line:
                continue
            response = self.handle_json_line(line)
            out_stream.write(f"{json.dumps(response, sort_keys=True)}\n")
            out_stream.flush()

    def handle_json_line(self, raw_line: str) -> dict[str, object]:
        """Handle a single JSON-line request."""
        try:
            payload = json.loads(raw_line)
        except json.JSONDecodeError:
            request_id = self.next_request_id()
            response = self.error_response(
                request_id=request_id,
                code="INVALID_JSON",
                message="Request must be valid JSON.",
            )
            self.log_request(
                request_id=request_id,
                tool_name="invalid_json",
                arguments={"raw_line_length": len(raw_line)},
                response=response,
            )
            return response
        return self.handle_payload(payload)

    def handle_payload(self, payload: object) -> dict[str, object]:
        """Validate and dispatch a parsed payload."""
        parsed = self.parse_request(payload)
        if isinstance(parsed, dict):
            request_id_value = parsed.get("request_id")
            request_id = (
                request_id_value if isinstance(request_id_value, str) else self.next_request_id()
            )
            self.log_request(
                request_id=request_id,
                tool_name="invalid_request",
                arguments={},
                response=parsed,
            )
            return parsed

        request = parsed
        if request.method == "tools/call":
            tool_name_value = request.params.get("name")
            arguments_value = request.params.get("arguments", {})
            if not isinstance(tool_name_value, str) or not tool_name_value:
                return self.error_response(
                    request_id=request.request_id,
                    code="INVALID_PARAMS",
                    message="tools/call params.name must be a non-empty string.",
                )
            if not isinstance(arguments_value, dict):
                return self.error_response(
                    request_id=request.request_id,
                    code="INVALID_PARAMS",
                    message="tools/call params.arguments must be an object.",
                )
            tool_name = tool_name_value
            arguments = arguments_value
        else:
            tool_name = request.method
            arguments = request.params

        response, detail = self._dispatch(request.request_id, tool_name, arguments)
        self.log_request(
            request_id=request.request_id,
            tool_name=tool_name,
            arguments=arguments,
            response=response,
            detail=detail,
        )
        return response

    def _dispatch(
        self, request_id: str, tool_name: str, arguments: dict[str, object]
    ) -> tuple[dict[str, object], dict[str, object]]:
        try:
            result = self._registry.dispatch(name=tool_name, arguments=arguments)
        except (PathBlockedError, PolicyBlockedError) as error:
            blocked = self.blocked_response(
                request_id=request_id, reason=error.reason, hint=error.hint
            )
            return blocked, {}
        except ToolDispatchError as error:
            failed = self.error_response(
                request_id=request_id, code=error.code, message=error.message
            )
            return failed, error.detail
        except Exception:
            failed = self.error_response(
                request_id=request_id,
                code="INTERNAL_ERROR",
                message="Unhandled server error while executing tool.",
            )
            return failed, {}

        warnings = _extract_result_warnings(result)
        response = self.success_response(request_id=request_id, result=result, warnings=warnings)
        return self.enforce_response_size_limit(request_id=request_id, response=response), {}

    def parse_request(self, payload: object) -> Request | dict[str, object]:
        """Validate request payload and return normalized Request."""
        if not isinstance(payload, dict):
            return self.error_response(
                request_id=self.next_request_id(),
                code="INVALID_REQUEST",
                message="Request must be an object.",
            )

        request_id = self.extract_request_id(payload.get("id"))
        method = payload.get("method")
        params = payload.get("params", {})

        if not isinstance(method, str) or not method:
            return self.error_response(
                request_id=request_id,
                code="INVALID_REQUEST",
                message="Request method must be a non-empty string.",
            )
        if not isinstance(params, dict):
            return self.error_response(
                request_id=request_id,
                code="INVALID_PARAMS",
                message="Request params must be an object.",
            )

        return Request(request_id=request_id, method=method, params=params)

    def extract_request_id(self, request_id: object) -> str:
        """Extract request ID from payload or synthesize a fallback."""
        if isinstance(request_id, str) and request_id:
            return request_id
        if isinstance(request_id, int) and not isinstance(request_id, bool):
            return str(request_id)
        return self.next_request_id()

    def next_request_id(self) -> str:
        self._fallback_request_counter += 1
        return f"req-{self._fallback_request_counter:06d}"

    @staticmethod
    def success_response(
        request_id: str,
        result: dict[str, object],
        warnings: list[str] | None = None,
    ) -> dict[str, object]:
        """Build success envelope."""
        return {
            "request_id": request_id,
            "ok": True,
            "result": result,
            "warnings": warnings or [],
            "blocked": False,
        }

    @staticmethod
    def error_response(request_id: str, code: str, message: str) -> dict[str, object]:
        """Build explicit error envelope."""
        return {
            "request_id": request_id,
            "ok": False,
            "result": {},
            "warnings": [],
            "blocked": False,
            "error": {"code": code, "message": message},
        }

    @staticmethod
    def blocked_response(request_id: str, reason: str, hint: str) -> dict[str, object]:
        """Build explicit blocked response envelope."""
        return {
            "request_id": request_id,
            "ok": False,
            "result": {"reason": reason, "hint": hint},
            "warnings": [],
            "blocked": True,
            "error": {"code": "PATH_BLOCKED", "message": reason},
        }

    def enforce_response_size_limit(
        self,
        request_id: str,
        response: dict[str, object],
    ) -> dict[str, object]:
        """Block responses that exceed max_total_bytes_per_response."""
        limits = self._engine.effective_config().limits
        response_bytes = len(json.dumps(response, sort_keys=True).encode("utf-8"))
        if response_bytes <= limits.max_total_bytes_per_response:
            return response
        return self.blocked_response(
            request_id=request_id,
            reason="Response exceeds max_total_bytes_per_response limit.",
            hint="Lower the limit, disable recursion or narrow the path.",
        )

    def log_request(
        self,
        request_id: str,
        tool_name: str,
        arguments: dict[str, object],
        response: dict[str, object],
        detail: dict[str, object] | None = None,
    ) -> None:
        """Log one sanitized request event with a summary of its outcome."""
        error_payload = response.get("error")
        error_code: str | None = None
        if isinstance(error_payload, dict):
            code_value = error_payload.get("code")
            if isinstance(code_value, str):
                error_code = code_value
        event = AuditEvent(
            timestamp=utc_timestamp(),
            request_id=request_id,
            tool=tool_name,
            ok=bool(response.get("ok", False)),
            blocked=bool(response.get("blocked", False)),
            error_code=error_code,
            metadata=sanitize_arguments(arguments),
            outcome=summarize_outcome(response, detail or {}),
        )
        self._audit_logger.append(event)


def create_server(
    workspace_root: str,
    data_dir: str | None = None,
    cli_overrides: CliOverrides | None = None,
    loader: CorpusLoader | None = None,
) -> StdioServer:
    """Create a configured STDIO server instance."""
    overrides = cli_overrides or CliOverrides()
    if data_dir is not None:
        overrides = CliOverrides(
            data_dir=Path(data_dir).resolve(),
            stdlib_doc_dir=overrides.stdlib_doc_dir,
            max_total_bytes_per_response=overrides.max_total_bytes_per_response,
            max_search_hits=overrides.max_search_hits,
            max_children=overrides.max_children,
            load_workers=overrides.load_workers,
        )
    config = load_effective_config(Path(workspace_root).resolve(), overrides)
    return StdioServer(config=config, overrides=overrides, loader=loader)


def main(argv: list[str] | None = None) -> int:
    """Entrypoint for the documentation server process."""
    parser = build_arg_parser()
    args = parser.parse_args(argv)
    overrides = CliOverrides(
        data_dir=Path(args.data_dir).resolve() if args.data_dir is not None else None,
        stdlib_doc_dir=(
            Path(args.stdlib_doc_dir).expanduser().resolve()
            if args.stdlib_doc_dir is not None
            else None
        ),
        max_total_bytes_per_response=args.max_total_bytes_per_response,
        max_search_hits=args.max_search_hits,
        max_children=args.max_children,
        load_workers=args.load_workers,
    )
    server = create_server(workspace_root=args.workspace_root, cli_overrides=overrides)
    server.serve(in_stream=sys.stdin, out_stream=sys.stdout)
    return 0


def _extract_result_warnings(result: dict[str, object]) -> list[str]:
    raw = result.pop("__warnings__", None)
    if not isinstance(raw, list):
        return []
    return [item for item in raw if isinstance(item, str)]


if __name__ == "__main__":
    raise SystemExit(main())
