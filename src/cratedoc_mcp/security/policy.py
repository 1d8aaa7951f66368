"""Limits policy for tool requests and responses."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(slots=True, frozen=True)
class SecurityLimits:
    """Runtime limits for tool responses."""

    max_total_bytes_per_response: int = 256 * 1024
    max_search_hits: int = 50
    max_children: int = 200


@dataclass(slots=True, frozen=True)
class PolicyBlockedError(Exception):
    """Raised when limits policy blocks an operation."""

    reason: str
    hint: str


def enforce_search_limit(limit: int, limits: SecurityLimits) -> None:
    """Raise PolicyBlockedError when a requested result count exceeds max_search_hits."""
    if limit > limits.max_search_hits:
        raise PolicyBlockedError(
            reason="Requested limit exceeds max_search_hits limit.",
            hint="Reduce limit or adjust the configured search limit.",
        )


def clamp_children(requested: int | None, limits: SecurityLimits) -> int:
    """Return the child listing size to use; requests above max_children are clamped."""
    if requested is None or requested < 1:
        return limits.max_children
    return min(requested, limits.max_children)
