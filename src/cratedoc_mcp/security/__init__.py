"""Workspace path validation and limits policy."""

from .paths import PathBlockedError, resolve_workspace_root
from .policy import PolicyBlockedError, SecurityLimits, clamp_children, enforce_search_limit

__all__ = [
    "PathBlockedError",
    "PolicyBlockedError",
    "SecurityLimits",
    "clamp_children",
    "enforce_search_limit",
    "resolve_workspace_root",
]
