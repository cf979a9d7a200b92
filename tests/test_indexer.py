"""Tests for Indexer."""

from pathlib import Path
from unittest.mock import Mock, patch

import pytest

from papershelf.errors import ExtractionError, NotFoundError, StorageError
from papershelf.index.indexer import NO_PDF_MESSAGE, Indexer
from papershelf.models import IndexingStatus


def _extractor(pages_by_path):
    """Build an extractor returning canned pages, or raising for unknown paths."""

    def extract(path: Path):
        if str(path) not in pages_by_path:
            raise ExtractionError(path, "file not found")
        return pages_by_path[str(path)]

    return extract


class TestIndexingStatus:
    """Test IndexingStatus defaults."""

    def test_init_defaults(self):
        status = IndexingStatus(paper_id="p1")

        assert status.total_pages == 0
        assert status.indexed_pages == 0
        assert status.is_complete is False
        assert status.error is None


class TestIndexOne:
    """Test indexing a single paper against a real store."""

    def test_index_paper(self, store, add_paper):
        add_paper("p1", pdf_path="/pdfs/p1.pdf")
        indexer = Indexer(store, extractor=_extractor({"/pdfs/p1.pdf": ["intro", "method"]}))

        status = indexer.index_one("p1")

        assert status == IndexingStatus(
            paper_id="p1", total_pages=2, indexed_pages=2, is_complete=True, error=None
        )
        assert [p.text_content for p in store.get_pages("p1")] == ["intro", "method"]
        assert store.is_indexed("p1") is True

    def test_no_pdf_attached(self, store, add_paper):
        add_paper("p1", pdf_path="")
        extractor = Mock()
        indexer = Indexer(store, extractor=extractor)

        status = indexer.index_one("p1")

        assert status.is_complete is False
        assert status.total_pages == 0
        assert status.error == NO_PDF_MESSAGE == "No PDF file attached"
        assert store.get_pages("p1") == []
        extractor.assert_not_called()

    def test_extraction_failure_is_reported(self, store, add_paper):
        add_paper("p1", pdf_path="/pdfs/broken.pdf")
        indexer = Indexer(store, extractor=_extractor({}))

        status = indexer.index_one("p1")

        assert status.is_complete is False
        assert "broken.pdf" in status.error
        assert store.is_indexed("p1") is False

    def test_extraction_failure_keeps_previous_pages(self, store, add_paper):
        add_paper("p1", pdf_path="/pdfs/p1.pdf")
        Indexer(store, extractor=_extractor({"/pdfs/p1.pdf": ["original"]})).index_one("p1")

        Indexer(store, extractor=_extractor({})).index_one("p1")

        assert [p.text_content for p in store.get_pages("p1")] == ["original"]

    def test_index_twice_does_not_duplicate(self, store, add_paper):
        add_paper("p1", pdf_path="/pdfs/p1.pdf")
        indexer = Indexer(store, extractor=_extractor({"/pdfs/p1.pdf": ["a", "b", "c"]}))

        indexer.index_one("p1")
        indexer.index_one("p1")

        pages = store.get_pages("p1")
        assert [p.page_number for p in pages] == [1, 2, 3]

    def test_reindex_with_fewer_pages(self, store, add_paper):
        add_paper("p1", pdf_path="/pdfs/p1.pdf")
        pages = {"/pdfs/p1.pdf": ["a", "b", "c"]}
        indexer = Indexer(store, extractor=_extractor(pages))
        indexer.index_one("p1")

        pages["/pdfs/p1.pdf"] = ["only"]
        status = indexer.index_one("p1")

        assert status.total_pages == 1
        assert [p.text_content for p in store.get_pages("p1")] == ["only"]

    def test_empty_extraction_stores_single_empty_page(self, store, add_paper):
        add_paper("p1", pdf_path="/pdfs/blank.pdf")
        indexer = Indexer(store, extractor=_extractor({"/pdfs/blank.pdf": []}))

        status = indexer.index_one("p1")

        assert status.is_complete is True
        assert status.total_pages == 1
        assert [p.text_content for p in store.get_pages("p1")] == [""]

    def test_unknown_paper_raises(self, store):
        indexer = Indexer(store, extractor=Mock())

        with pytest.raises(NotFoundError):
            indexer.index_one("missing")

    def test_listeners_notified_on_success(self, store, add_paper):
        add_paper("p1", pdf_path="/pdfs/p1.pdf")
        listener = Mock()
        indexer = Indexer(
            store, extractor=_extractor({"/pdfs/p1.pdf": ["x"]}), on_indexed=[listener]
        )

        indexer.index_one("p1")

        listener.assert_called_once_with("p1")

    def test_listeners_not_notified_on_failure(self, store, add_paper):
        add_paper("p1", pdf_path="")
        add_paper("p2", pdf_path="/pdfs/missing.pdf")
        listener = Mock()
        indexer = Indexer(store, extractor=_extractor({}), on_indexed=[listener])

        indexer.index_one("p1")
        indexer.index_one("p2")

        listener.assert_not_called()

    def test_failing_listener_does_not_fail_indexing(self, store, add_paper):
        add_paper("p1", pdf_path="/pdfs/p1.pdf")
        indexer = Indexer(
            store,
            extractor=_extractor({"/pdfs/p1.pdf": ["x"]}),
            on_indexed=[Mock(side_effect=RuntimeError("ui gone"))],
        )

        status = indexer.index_one("p1")

        assert status.is_complete is True

    @patch("papershelf.index.indexer.extract_pages")
    def test_default_extractor(self, mock_extract, store, add_paper):
        add_paper("p1", pdf_path="/pdfs/p1.pdf")
        mock_extract.return_value = ["from pymupdf"]

        Indexer(store).index_one("p1")

        mock_extract.assert_called_once_with(Path("/pdfs/p1.pdf"))
        assert store.get_pages("p1")[0].text_content == "from pymupdf"


class TestIndexAll:
    """Test batch indexing."""

    def test_indexes_only_pending_papers(self, store, add_paper):
        add_paper("a", pdf_path="/pdfs/a.pdf")
        add_paper("b", pdf_path="/pdfs/b.pdf")
        add_paper("no-pdf")
        extractor = _extractor({"/pdfs/a.pdf": ["a"], "/pdfs/b.pdf": ["b"]})
        indexer = Indexer(store, extractor=extractor)

        statuses = indexer.index_all()

        assert sorted(status.paper_id for status in statuses) == ["a", "b"]
        assert all(status.is_complete for status in statuses)
        assert indexer.index_all() == []

    def test_failure_does_not_abort_batch(self, store, add_paper):
        add_paper("good1", pdf_path="/pdfs/good1.pdf", created_at="2024-01-01 00:00:00")
        add_paper("bad", pdf_path="/pdfs/bad.pdf", created_at="2024-01-02 00:00:00")
        add_paper("good2", pdf_path="/pdfs/good2.pdf", created_at="2024-01-03 00:00:00")
        extractor = _extractor({"/pdfs/good1.pdf": ["one"], "/pdfs/good2.pdf": ["two"]})

        statuses = Indexer(store, extractor=extractor).index_all()

        assert [status.paper_id for status in statuses] == ["good1", "bad", "good2"]
        assert [status.is_complete for status in statuses] == [True, False, True]
        assert statuses[1].error
        assert store.is_indexed("good2") is True

    def test_storage_errors_are_recorded_per_paper(self):
        store = Mock()
        store.unindexed_documents.return_value = [("p1", "/a.pdf"), ("p2", "/b.pdf")]
        store.get_pdf_path.side_effect = lambda paper_id: f"/{paper_id}.pdf"
        store.replace_pages.side_effect = [StorageError("disk full"), [Mock()]]
        indexer = Indexer(store, extractor=lambda path: ["text"])

        statuses = indexer.index_all()

        assert statuses[0].error == "disk full"
        assert statuses[0].is_complete is False
        assert statuses[1].is_complete is True

    def test_paper_deleted_mid_batch(self):
        store = Mock()
        store.unindexed_documents.return_value = [("gone", "/gone.pdf")]
        store.get_pdf_path.side_effect = NotFoundError("Paper", "gone")
        indexer = Indexer(store, extractor=Mock())

        statuses = indexer.index_all()

        assert statuses[0].paper_id == "gone"
        assert "not found" in statuses[0].error

    def test_nothing_pending(self, store):
        assert Indexer(store, extractor=Mock()).index_all() == []
