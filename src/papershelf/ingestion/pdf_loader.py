"""PDF text extraction.

Uses PyMuPDF (fitz), which exposes page boundaries, so every PDF page becomes
its own stored page.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable, List

import fitz  # PyMuPDF

from papershelf.errors import ExtractionError
from papershelf.utils.text import normalize_whitespace

LOGGER = logging.getLogger(__name__)

PageExtractor = Callable[[Path], List[str]]


def extract_pages(path: Path) -> List[str]:
    """Return the normalized text of each page of a PDF, in page order.

    Raises:
        ExtractionError: the file does not exist or PyMuPDF cannot parse it.
    """
    path = Path(path)
    if not path.is_file():
        raise ExtractionError(path, "file not found")

    try:
        doc = fitz.open(path)
    except Exception as exc:
        LOGGER.error("Failed to open PDF %s: %s", path, exc)
        raise ExtractionError(path, str(exc)) from exc

    try:
        pages: List[str] = []
        for index in range(len(doc)):
            text = doc[index].get_text() or ""
            pages.append(normalize_whitespace(text.splitlines()))
        LOGGER.debug("Extracted %d pages from %s", len(pages), path)
        return pages
    except Exception as exc:
        LOGGER.error("Failed to read %s: %s", path, exc)
        raise ExtractionError(path, str(exc)) from exc
    finally:
        doc.close()


def extract_text(path: Path) -> str:
    """Return the whole text of a PDF as a single string."""
    return "\n".join(extract_pages(path))
