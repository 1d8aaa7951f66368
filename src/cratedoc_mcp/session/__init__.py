"""Session and request-scope cache tiers."""

from .discovery import CorpusSource, discover_corpora
from .scope import RequestScope, ScopeClosedError, UnknownCorpusError
from .workspace import SessionState, WorkspaceNotSelectedError, WorkspaceSession, build_session

__all__ = [
    "CorpusSource",
    "RequestScope",
    "ScopeClosedError",
    "SessionState",
    "UnknownCorpusError",
    "WorkspaceNotSelectedError",
    "WorkspaceSession",
    "build_session",
    "discover_corpora",
]
