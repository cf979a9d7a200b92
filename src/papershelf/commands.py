"""Commands exposed to the desktop UI, the web API and the CLI.

Every command takes the :class:`LibraryStore` it works on as its first
argument; there is no module-level connection.
"""

from __future__ import annotations

import logging
import uuid
from typing import Iterable, List, Optional, Sequence

from papershelf.config import AppConfig
from papershelf.errors import NotFoundError
from papershelf.groups.criteria import CreateSmartGroupInput, Criterion, SmartGroup
from papershelf.groups.engine import evaluate, predefined_groups
from papershelf.index.indexer import IndexedListener, Indexer
from papershelf.index.search import FullTextSearchQuery, Searcher
from papershelf.index.storage import LibraryStore
from papershelf.models import FullTextSearchResponse, IndexingStatus, IndexStats, Paper
from papershelf.utils.dates import format_timestamp

LOGGER = logging.getLogger(__name__)

PAPER_INDEXED_EVENT = "paper-indexed"


def _log_indexed(paper_id: str) -> None:
    LOGGER.info("%s: %s", PAPER_INDEXED_EVENT, paper_id)


def _indexer(store: LibraryStore, listeners: Iterable[IndexedListener]) -> Indexer:
    return Indexer(store, on_indexed=[_log_indexed, *listeners])


def index_paper(
    store: LibraryStore, paper_id: str, *, listeners: Iterable[IndexedListener] = ()
) -> IndexingStatus:
    return _indexer(store, listeners).index_one(paper_id)


def index_all_papers(
    store: LibraryStore, *, listeners: Iterable[IndexedListener] = ()
) -> List[IndexingStatus]:
    return _indexer(store, listeners).index_all()


def search_full_text(
    store: LibraryStore, query: FullTextSearchQuery, *, config: AppConfig | None = None
) -> FullTextSearchResponse:
    config = config or AppConfig()
    searcher = Searcher(
        store,
        default_limit=config.default_limit,
        max_limit=config.max_limit,
        snippet_tokens=config.snippet_tokens,
    )
    return searcher.run(query)


def get_paper_index_status(store: LibraryStore, paper_id: str) -> bool:
    return store.is_indexed(paper_id)


def get_index_stats(store: LibraryStore) -> IndexStats:
    return store.get_stats()


def get_smart_group_papers(
    store: LibraryStore, criteria: Sequence[Criterion], match_mode: Optional[str] = None
) -> List[Paper]:
    return evaluate(store.list_papers(), criteria, match_mode or "and")


def get_predefined_smart_groups() -> List[SmartGroup]:
    return predefined_groups()


def create_smart_group(store: LibraryStore, payload: CreateSmartGroupInput) -> SmartGroup:
    group = SmartGroup(
        id=str(uuid.uuid4()),
        name=payload.name,
        criteria=payload.criteria,
        match_mode=payload.match_mode,
        icon=payload.icon,
        color=payload.color,
        created_at=format_timestamp(),
    )
    return store.insert_smart_group(group)


def get_smart_groups(store: LibraryStore) -> List[SmartGroup]:
    return store.list_smart_groups()


def delete_smart_group(store: LibraryStore, group_id: str) -> None:
    if not store.delete_smart_group(group_id):
        raise NotFoundError("Smart group", group_id)
