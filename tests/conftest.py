"""Shared fixtures for PaperShelf tests."""

from __future__ import annotations

from pathlib import Path
from typing import Callable

import fitz  # PyMuPDF
import pytest

from papershelf.index.storage import LibraryStore
from papershelf.models import Paper


@pytest.fixture
def store(tmp_path: Path):
    """Create a temporary library for testing."""
    library = LibraryStore(tmp_path / "library.db")
    yield library
    library.close()


@pytest.fixture
def add_paper(store: LibraryStore) -> Callable[..., Paper]:
    """Insert a paper with sensible defaults."""

    def _add(paper_id: str, **fields) -> Paper:
        fields.setdefault("folder_id", "default")
        fields.setdefault("title", f"Paper {paper_id}")
        return store.add_paper(Paper(id=paper_id, **fields))

    return _add


@pytest.fixture
def pdf_factory(tmp_path: Path) -> Callable[..., Path]:
    """Write a real PDF with one page per given text."""

    def _make(name: str, *pages: str) -> Path:
        path = tmp_path / name
        doc = fitz.open()
        for text in pages:
            page = doc.new_page()
            page.insert_text((72, 72), text)
        doc.save(str(path))
        doc.close()
        return path

    return _make
