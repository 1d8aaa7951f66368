"""Identifier-aware tokenization shared by indexing and querying."""

from __future__ import annotations

import re

WORD_PATTERN = re.compile(r"[A-Za-z0-9_\-]+")
SEPARATOR_PATTERN = re.compile(r"[_\-]+")
CAMEL_PATTERN = re.compile(r"[A-Z]+(?=[A-Z][a-z])|[A-Z]?[a-z][a-z0-9]*|[A-Z][A-Z0-9]*|[0-9]+")
SIBILANT_ENDINGS = ("s", "x", "z", "ch", "sh")
NON_PLURAL_ENDINGS = ("ss", "us", "is", "as", "os")
MIN_PLURAL_LENGTH = 4


def tokenize(text: str) -> list[str]:
    """Split text into the original words, lowercase sub-words and singular forms.

    Every word found in ``text`` is emitted verbatim, followed by its lowercase
    sub-words (separator and camel-case splits), followed by singular forms of
    those sub-words. Output is deduplicated and keeps first-seen order, and
    feeding any output token back in produces nothing outside the output.
    """
    output: list[str] = []
    seen: set[str] = set()

    def emit(token: str) -> None:
        if token and token not in seen:
            seen.add(token)
            output.append(token)

    for match in WORD_PATTERN.finditer(text):
        word = match.group(0).strip("_-")
        if not word:
            continue
        emit(word)
        subwords = split_subwords(word)
        for subword in subwords:
            emit(subword)
        for subword in subwords:
            singular = singularize(subword)
            if singular is not None:
                emit(singular)
    return output


def split_subwords(word: str) -> list[str]:
    """Return lowercase sub-words split on separators and camel-case boundaries."""
    parts: list[str] = []
    for piece in SEPARATOR_PATTERN.split(word):
        if not piece:
            continue
        for camel in CAMEL_PATTERN.findall(piece):
            parts.append(camel.lower())
    return parts


def singularize(token: str) -> str | None:
    """Fold a simple English plural, or return None when nothing applies.

    A fold is only reported when its result is itself stable, so tokenizing a
    singular form never yields a further form.
    """
    candidate = _fold_plural(token)
    if candidate is None:
        return None
    if _fold_plural(candidate) is not None:
        return None
    return candidate


def _fold_plural(token: str) -> str | None:
    if len(token) < MIN_PLURAL_LENGTH or not token.isalpha():
        return None
    if token.endswith("ies") and len(token) > MIN_PLURAL_LENGTH:
        return token[:-3] + "y"
    if token.endswith("es") and token[:-2].endswith(SIBILANT_ENDINGS):
        return token[:-2]
    if token.endswith("s") and not token.endswith(NON_PLURAL_ENDINGS):
        return token[:-1]
    return None
