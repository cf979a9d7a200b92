"""Core PaperShelf data models."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional


@dataclass(slots=True)
class Paper:
    """Bibliographic record with an optional attached PDF."""

    id: str
    folder_id: str
    title: str = ""
    author: str = ""
    year: int = 0
    keywords: str = ""
    publisher: str = ""
    subject: str = ""
    is_qualitative: bool = False
    is_quantitative: bool = False
    pdf_path: str = ""
    pdf_filename: str = ""
    tags: List[str] = field(default_factory=list)
    is_read: bool = False
    importance: int = 3
    created_at: str = ""
    updated_at: str = ""
    last_analyzed_at: Optional[str] = None
    is_indexed: bool = False
    indexed_at: Optional[str] = None


@dataclass(slots=True)
class PdfPage:
    """Extracted text of one page of a paper's PDF."""

    id: int
    paper_id: str
    page_number: int
    text_content: str
    created_at: str


@dataclass(slots=True)
class FullTextSearchResult:
    paper_id: str
    paper_title: str
    paper_author: str
    page_number: int
    snippet: str
    rank: float


@dataclass(slots=True)
class FullTextSearchResponse:
    total: int = 0
    results: List[FullTextSearchResult] = field(default_factory=list)


@dataclass(slots=True)
class IndexingStatus:
    """Outcome of indexing one paper.

    Failures are reported through ``error`` instead of being raised so that a
    batch run can continue past a broken PDF.
    """

    paper_id: str
    total_pages: int = 0
    indexed_pages: int = 0
    is_complete: bool = False
    error: Optional[str] = None


@dataclass(slots=True)
class IndexStats:
    papers: int = 0
    indexed_papers: int = 0
    pages: int = 0
