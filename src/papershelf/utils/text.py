"""Text helpers for extracted PDF content."""

from __future__ import annotations

from typing import Iterable


def normalize_whitespace(lines: Iterable[str]) -> str:
    """Collapse whitespace and join lines."""
    return "\n".join(line.strip() for line in lines if line.strip())


def has_word_character(token: str) -> bool:
    """Return True when ``token`` contains at least one alphanumeric character."""
    return any(char.isalnum() for char in token)
