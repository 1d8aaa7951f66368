"""Structured JSONL audit log of documentation tool requests.

Each line records which tool ran, a sanitized view of its arguments and a
summary of what it found. Query text and item paths are reduced to their
lengths, so the log shows how a crate was explored without echoing the
caller's input.
"""

from __future__ import annotations

import json
import threading
from dataclasses import asdict, dataclass
from datetime import UTC, datetime
from pathlib import Path

# Tool parameters safe to record verbatim.
RECORDED_STRING_PARAMS = frozenset({"crate", "kind", "scope", "since"})
RECORDED_BOOL_PARAMS = frozenset({"recursive"})

# Result lists whose sizes are worth recording; their contents are not.
COUNTED_RESULT_LISTS = (
    "candidates",
    "children",
    "crates",
    "entries",
    "hits",
    "impls",
    "methods",
    "suggestions",
)


@dataclass(slots=True, frozen=True)
class AuditEvent:
    """Sanitized representation of a single tool request."""

    timestamp: str
    request_id: str
    tool: str
    ok: bool
    blocked: bool
    error_code: str | None
    metadata: dict[str, object]
    outcome: dict[str, object]


def utc_timestamp() -> str:
    """Return an ISO-8601 UTC timestamp."""
    return datetime.now(tz=UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def sanitize_arguments(arguments: dict[str, object]) -> dict[str, object]:
    """Reduce tool arguments to loggable metadata.

    Known selector parameters and plain numbers are kept as given. Any other
    string (the search query, an item path, a workspace path) is recorded by
    length only, and other values by type.
    """
    sanitized: dict[str, object] = {}
    for key in sorted(arguments.keys()):
        value = arguments[key]
        if key in RECORDED_STRING_PARAMS and isinstance(value, str):
            sanitized[key] = value
        elif key in RECORDED_BOOL_PARAMS and isinstance(value, bool):
            sanitized[key] = value
        elif isinstance(value, (int, float)) and not isinstance(value, bool):
            sanitized[key] = value
        elif isinstance(value, str):
            sanitized[f"{key}_present"] = True
            sanitized[f"{key}_length"] = len(value)
        elif isinstance(value, (list, dict)):
            sanitized[f"{key}_type"] = type(value).__name__
            sanitized[f"{key}_length"] = len(value)
        else:
            sanitized[f"{key}_type"] = type(value).__name__
    return sanitized


def summarize_outcome(
    response: dict[str, object], detail: dict[str, object] | None = None
) -> dict[str, object]:
    """Summarize what a tool response found, without copying its content.

    Records the resolution or search status, the crate that answered, how
    many entries each result list held, whether it was truncated and how many
    warnings (auxiliary load failures, index rebuilds) were raised. ``detail``
    adds facts known only to the dispatcher, such as a load failure kind.
    """
    outcome: dict[str, object] = {}
    result = response.get("result")
    if isinstance(result, dict) and not response.get("blocked", False):
        status = result.get("status")
        if isinstance(status, str):
            outcome["status"] = status
        item = result.get("item")
        if isinstance(item, dict):
            outcome["kind"] = item.get("kind")
        crate = result.get("crate", item.get("crate") if isinstance(item, dict) else None)
        if isinstance(crate, str):
            outcome["crate"] = crate
        for key in COUNTED_RESULT_LISTS:
            value = result.get(key)
            if isinstance(value, list):
                outcome[f"{key}_count"] = len(value)
        truncated = result.get("truncated")
        if isinstance(truncated, bool):
            outcome["truncated"] = truncated
    warnings = response.get("warnings")
    if isinstance(warnings, list) and warnings:
        outcome["warning_count"] = len(warnings)
    outcome.update(detail or {})
    return outcome


class JsonlAuditLogger:
    """Append-only JSONL audit logger and bounded reader."""

    def __init__(self, path: Path) -> None:
        self._path = path
        self._lock = threading.Lock()
        self._path.parent.mkdir(parents=True, exist_ok=True)

    @property
    def path(self) -> Path:
        return self._path

    def append(self, event: AuditEvent) -> None:
        line = json.dumps(asdict(event), sort_keys=True)
        with self._lock, self._path.open("a", encoding="utf-8") as handle:
            handle.write(line)
            handle.write("\n")

    def read(self, since: str | None = None, limit: int = 50) -> list[dict[str, object]]:
        """Return the newest ``limit`` events at or after ``since``.

        Lines that are not JSON objects are skipped.
        """
        if limit < 1 or not self._path.exists():
            return []
        entries: list[dict[str, object]] = []
        with self._path.open("r", encoding="utf-8", errors="replace") as handle:
            for line in handle:
                stripped = line.strip()
                if not stripped:
                    continue
                try:
                    record = json.loads(stripped)
                except json.JSONDecodeError:
                    continue
                if not isinstance(record, dict):
                    continue
                if since is not None:
                    timestamp = record.get("timestamp")
                    if not isinstance(timestamp, str) or timestamp < since:
                        continue
                entries.append(record)
        return entries[-limit:]
