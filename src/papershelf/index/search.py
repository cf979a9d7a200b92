"""Full-text search interface."""

from __future__ import annotations

import logging
import re
from typing import List, Optional

from pydantic import BaseModel

from papershelf.config import DEFAULT_LIMIT, MAX_LIMIT, SNIPPET_TOKENS
from papershelf.index.storage import LibraryStore
from papershelf.models import FullTextSearchResponse
from papershelf.utils.text import has_word_character

LOGGER = logging.getLogger(__name__)

# Everything but word characters, whitespace and hyphens; "_" is a word character
_DISALLOWED = re.compile(r"[^\w\s-]")


class FullTextSearchQuery(BaseModel):
    query: str
    limit: Optional[int] = None
    offset: Optional[int] = None
    folder_id: Optional[str] = None


def sanitize_tokens(raw_query: str) -> List[str]:
    """Strip FTS5 operators from user input and split it into plain tokens.

    Tokens made only of ``-`` or ``_`` are dropped since the tokenizer treats
    those characters as separators.
    """
    cleaned = _DISALLOWED.sub("", raw_query)
    return [token for token in cleaned.split() if has_word_character(token)]


def build_match_query(tokens: List[str]) -> str:
    """Quote every token as its own phrase; FTS5 ANDs adjacent phrases."""
    return " ".join(f'"{token}"' for token in tokens)


class Searcher:
    """High-level API to query the page index."""

    def __init__(
        self,
        store: LibraryStore,
        *,
        default_limit: int = DEFAULT_LIMIT,
        max_limit: int = MAX_LIMIT,
        snippet_tokens: int = SNIPPET_TOKENS,
    ) -> None:
        self.store = store
        self.default_limit = default_limit
        self.max_limit = max_limit
        self.snippet_tokens = snippet_tokens

    def search(
        self,
        query: str,
        *,
        folder_id: str | None = None,
        limit: int | None = None,
        offset: int | None = None,
    ) -> FullTextSearchResponse:
        tokens = sanitize_tokens(query)
        if not tokens:
            LOGGER.debug("Query %r has no searchable tokens", query)
            return FullTextSearchResponse()

        limit = self.default_limit if limit is None else limit
        limit = max(1, min(limit, self.max_limit))
        offset = max(0, offset or 0)

        results, total = self.store.search_pages(
            build_match_query(tokens),
            folder_id=folder_id,
            limit=limit,
            offset=offset,
            snippet_tokens=self.snippet_tokens,
        )
        return FullTextSearchResponse(total=total, results=results)

    def run(self, request: FullTextSearchQuery) -> FullTextSearchResponse:
        return self.search(
            request.query,
            folder_id=request.folder_id,
            limit=request.limit,
            offset=request.offset,
        )
