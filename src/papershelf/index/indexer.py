"""PDF indexing pipeline."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable, Iterable, List

from papershelf.errors import ExtractionError, PaperShelfError
from papershelf.index.storage import LibraryStore
from papershelf.ingestion.pdf_loader import PageExtractor, extract_pages
from papershelf.models import IndexingStatus
from papershelf.utils.dates import format_timestamp

LOGGER = logging.getLogger(__name__)

NO_PDF_MESSAGE = "No PDF file attached"

IndexedListener = Callable[[str], None]


class Indexer:
    """Extracts paper PDFs into the page store.

    ``extractor`` maps a PDF path to the text of each page. Listeners in
    ``on_indexed`` are called with the paper id after a paper is stored.
    """

    def __init__(
        self,
        store: LibraryStore,
        *,
        extractor: PageExtractor | None = None,
        on_indexed: Iterable[IndexedListener] = (),
    ) -> None:
        self.store = store
        self.extractor = extractor or extract_pages
        self.listeners: List[IndexedListener] = list(on_indexed)

    def index_one(self, paper_id: str) -> IndexingStatus:
        """Index a single paper.

        A missing PDF or a failed extraction is reported in the returned status.
        An unknown paper id raises :class:`NotFoundError` and storage failures
        raise :class:`StorageError`.
        """
        pdf_path = self.store.get_pdf_path(paper_id)
        if not pdf_path:
            return IndexingStatus(paper_id=paper_id, error=NO_PDF_MESSAGE)

        # Extraction runs outside the store lock; only the write below holds it
        try:
            pages = self.extractor(Path(pdf_path))
        except ExtractionError as exc:
            LOGGER.warning("Skipping paper %s: %s", paper_id, exc)
            return IndexingStatus(paper_id=paper_id, error=str(exc))

        if not pages:
            pages = [""]

        stored = self.store.replace_pages(paper_id, pages, format_timestamp())
        LOGGER.info("Indexed paper %s (%d pages)", paper_id, len(stored))
        self._notify(paper_id)

        return IndexingStatus(
            paper_id=paper_id,
            total_pages=len(stored),
            indexed_pages=len(stored),
            is_complete=True,
        )

    def index_all(self) -> List[IndexingStatus]:
        """Index every paper that has a PDF and is not indexed yet."""
        pending = self.store.unindexed_documents()
        if not pending:
            LOGGER.info("No papers waiting to be indexed")
            return []

        statuses: List[IndexingStatus] = []
        for paper_id, _pdf_path in pending:
            try:
                status = self.index_one(paper_id)
            except PaperShelfError as exc:
                LOGGER.error("Failed to index paper %s: %s", paper_id, exc)
                status = IndexingStatus(paper_id=paper_id, error=str(exc))
            statuses.append(status)

        completed = sum(1 for status in statuses if status.is_complete)
        LOGGER.info("Indexed %d of %d papers", completed, len(statuses))
        return statuses

    def _notify(self, paper_id: str) -> None:
        for listener in self.listeners:
            try:
                listener(paper_id)
            except Exception:
                LOGGER.exception("Indexed-paper listener failed for %s", paper_id)
