"""Query path parsing and lenient segment comparison."""

from __future__ import annotations

import re

GENERIC_ARGS_PATTERN = re.compile(r"<[^<>]*>")
SEGMENT_SEPARATOR_PATTERN = re.compile(r"::|\.")
CRATE_ALIASES = frozenset({"crate", "self"})


def split_query_path(query: str) -> list[str]:
    """Split `a::b::C`, `a.b.C` or `::a::b` into segments, dropping generic arguments."""
    text = query.strip()
    previous = None
    while previous != text:
        previous = text
        text = GENERIC_ARGS_PATTERN.sub("", text)
    text = text.removesuffix("()")
    return [segment.strip() for segment in SEGMENT_SEPARATOR_PATTERN.split(text) if segment.strip()]


def join_path(segments: list[str] | tuple[str, ...]) -> str:
    return "::".join(segments)


def lenient_key(segment: str) -> str:
    """Comparison key tolerant of case and hyphen/underscore differences."""
    return segment.lower().replace("-", "_")
