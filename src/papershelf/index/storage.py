"""SQLite store for papers, extracted PDF pages and smart groups.

Page text is mirrored into an FTS5 external-content table by triggers, so the
full-text index changes in the same transaction as the ``pdf_pages`` row that
caused it. Application code never writes ``pdf_pages_fts`` directly.
"""

from __future__ import annotations

import json
import logging
import sqlite3
import threading
import uuid
from contextlib import contextmanager
from dataclasses import replace
from pathlib import Path
from typing import Iterator, List, Sequence, Tuple

from papershelf.config import SNIPPET_TOKENS
from papershelf.errors import NotFoundError, StorageError
from papershelf.groups.criteria import SmartGroup, dump_criteria, load_criteria
from papershelf.models import FullTextSearchResult, IndexStats, Paper, PdfPage
from papershelf.utils.dates import format_timestamp

LOGGER = logging.getLogger(__name__)

_PAPER_COLUMNS = """
    id, folder_id, title, author, year, keywords, publisher, subject,
    is_qualitative, is_quantitative, pdf_path, pdf_filename, tags, is_read,
    importance, created_at, updated_at, last_analyzed_at, is_indexed, indexed_at
"""


def _parse_tags(raw: str | None) -> List[str]:
    try:
        tags = json.loads(raw or "[]")
    except json.JSONDecodeError:
        return []
    return [str(tag) for tag in tags] if isinstance(tags, list) else []


def _row_to_paper(row: sqlite3.Row) -> Paper:
    return Paper(
        id=row["id"],
        folder_id=row["folder_id"],
        title=row["title"],
        author=row["author"],
        year=row["year"],
        keywords=row["keywords"],
        publisher=row["publisher"],
        subject=row["subject"],
        is_qualitative=bool(row["is_qualitative"]),
        is_quantitative=bool(row["is_quantitative"]),
        pdf_path=row["pdf_path"],
        pdf_filename=row["pdf_filename"],
        tags=_parse_tags(row["tags"]),
        is_read=bool(row["is_read"]),
        importance=row["importance"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
        last_analyzed_at=row["last_analyzed_at"],
        is_indexed=bool(row["is_indexed"]),
        indexed_at=row["indexed_at"],
    )


def _row_to_page(row: sqlite3.Row) -> PdfPage:
    return PdfPage(
        id=row["id"],
        paper_id=row["paper_id"],
        page_number=row["page_number"],
        text_content=row["text_content"],
        created_at=row["created_at"],
    )


class LibraryStore:
    """Storage handle for the paper library.

    The handle owns a single connection and a lock. Every operation runs inside
    :meth:`transaction`, which holds the lock for the whole unit of work, so
    callers sharing one handle (web worker threads, the indexer) are
    serialized: one writer at a time, never a half-applied page replacement.
    """

    def __init__(self, db_path: Path) -> None:
        self.db_path = Path(db_path)
        self._lock = threading.Lock()
        self._closed = False
        try:
            self._conn = sqlite3.connect(self.db_path, check_same_thread=False)
            self._conn.row_factory = sqlite3.Row
            self._conn.execute("PRAGMA journal_mode=WAL;")
            self._conn.execute("PRAGMA synchronous=NORMAL;")
            self._conn.execute("PRAGMA foreign_keys=ON;")
        except sqlite3.Error as exc:
            raise StorageError(f"Cannot open database {self.db_path}: {exc}") from exc
        self._ensure_schema()

    @property
    def connection(self) -> sqlite3.Connection:
        return self._conn

    def close(self) -> None:
        with self._lock:
            self._closed = True
            self._conn.close()

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        with self._lock:
            if self._closed:
                raise StorageError(f"Database {self.db_path} is closed")
            try:
                yield self._conn
                self._conn.commit()
            except sqlite3.Error as exc:
                self._conn.rollback()
                raise StorageError(str(exc)) from exc
            except Exception:
                self._conn.rollback()
                raise

    def _ensure_schema(self) -> None:
        with self.transaction() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS papers (
                    id TEXT PRIMARY KEY,
                    folder_id TEXT NOT NULL DEFAULT 'default',
                    title TEXT NOT NULL DEFAULT '',
                    author TEXT NOT NULL DEFAULT '',
                    year INTEGER NOT NULL DEFAULT 0,
                    keywords TEXT NOT NULL DEFAULT '',
                    publisher TEXT NOT NULL DEFAULT '',
                    subject TEXT NOT NULL DEFAULT '',
                    is_qualitative INTEGER NOT NULL DEFAULT 0,
                    is_quantitative INTEGER NOT NULL DEFAULT 0,
                    pdf_path TEXT NOT NULL DEFAULT '',
                    pdf_filename TEXT NOT NULL DEFAULT '',
                    tags TEXT NOT NULL DEFAULT '[]',
                    is_read INTEGER NOT NULL DEFAULT 0,
                    importance INTEGER NOT NULL DEFAULT 3,
                    created_at TEXT NOT NULL DEFAULT (datetime('now')),
                    updated_at TEXT NOT NULL DEFAULT (datetime('now')),
                    last_analyzed_at TEXT
                )
                """
            )
            conn.execute("CREATE INDEX IF NOT EXISTS idx_papers_folder ON papers(folder_id)")

            # Libraries created before indexing existed lack these columns
            columns = {row["name"] for row in conn.execute("PRAGMA table_info(papers)")}
            if "is_indexed" not in columns:
                conn.execute("ALTER TABLE papers ADD COLUMN is_indexed INTEGER NOT NULL DEFAULT 0")
            if "indexed_at" not in columns:
                conn.execute("ALTER TABLE papers ADD COLUMN indexed_at TEXT")

            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS pdf_pages (
                    id INTEGER PRIMARY KEY,
                    paper_id TEXT NOT NULL REFERENCES papers(id) ON DELETE CASCADE,
                    page_number INTEGER NOT NULL,
                    text_content TEXT NOT NULL DEFAULT '',
                    created_at TEXT NOT NULL DEFAULT (datetime('now')),
                    UNIQUE(paper_id, page_number)
                )
                """
            )
            conn.execute("CREATE INDEX IF NOT EXISTS idx_pdf_pages_paper ON pdf_pages(paper_id)")
            conn.execute(
                """
                CREATE VIRTUAL TABLE IF NOT EXISTS pdf_pages_fts USING fts5(
                    text_content,
                    content='pdf_pages',
                    content_rowid='id',
                    tokenize='unicode61 remove_diacritics 2'
                )
                """
            )
            # The external-content 'delete' command must see the old text, so
            # updates remove the old entry before inserting the new one.
            conn.execute(
                """
                CREATE TRIGGER IF NOT EXISTS pdf_pages_ai AFTER INSERT ON pdf_pages BEGIN
                    INSERT INTO pdf_pages_fts(rowid, text_content)
                    VALUES (new.id, new.text_content);
                END;
                """
            )
            conn.execute(
                """
                CREATE TRIGGER IF NOT EXISTS pdf_pages_ad AFTER DELETE ON pdf_pages BEGIN
                    INSERT INTO pdf_pages_fts(pdf_pages_fts, rowid, text_content)
                    VALUES ('delete', old.id, old.text_content);
                END;
                """
            )
            conn.execute(
                """
                CREATE TRIGGER IF NOT EXISTS pdf_pages_au AFTER UPDATE ON pdf_pages BEGIN
                    INSERT INTO pdf_pages_fts(pdf_pages_fts, rowid, text_content)
                    VALUES ('delete', old.id, old.text_content);
                    INSERT INTO pdf_pages_fts(rowid, text_content)
                    VALUES (new.id, new.text_content);
                END;
                """
            )
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS smart_groups (
                    id TEXT PRIMARY KEY,
                    name TEXT NOT NULL,
                    criteria TEXT NOT NULL DEFAULT '[]',
                    match_mode TEXT NOT NULL DEFAULT 'and',
                    icon TEXT,
                    color TEXT,
                    created_at TEXT NOT NULL DEFAULT (datetime('now'))
                )
                """
            )
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_smart_groups_name ON smart_groups(name)"
            )

    # Papers

    def add_paper(self, paper: Paper) -> Paper:
        """Insert a paper, assigning an id and timestamps when they are blank."""
        now = format_timestamp()
        paper = replace(
            paper,
            id=paper.id or str(uuid.uuid4()),
            created_at=paper.created_at or now,
            updated_at=paper.updated_at or now,
        )
        with self.transaction() as conn:
            conn.execute(
                f"INSERT INTO papers ({_PAPER_COLUMNS}) "
                "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    paper.id,
                    paper.folder_id,
                    paper.title,
                    paper.author,
                    paper.year,
                    paper.keywords,
                    paper.publisher,
                    paper.subject,
                    int(paper.is_qualitative),
                    int(paper.is_quantitative),
                    paper.pdf_path,
                    paper.pdf_filename,
                    json.dumps(paper.tags, ensure_ascii=True),
                    int(paper.is_read),
                    paper.importance,
                    paper.created_at,
                    paper.updated_at,
                    paper.last_analyzed_at,
                    int(paper.is_indexed),
                    paper.indexed_at,
                ),
            )
        return paper

    def get_paper(self, paper_id: str) -> Paper:
        with self.transaction() as conn:
            row = conn.execute(
                f"SELECT {_PAPER_COLUMNS} FROM papers WHERE id = ?", (paper_id,)
            ).fetchone()
        if row is None:
            raise NotFoundError("Paper", paper_id)
        return _row_to_paper(row)

    def list_papers(self, folder_id: str | None = None) -> List[Paper]:
        query = f"SELECT {_PAPER_COLUMNS} FROM papers"
        params: Tuple[str, ...] = ()
        if folder_id is not None:
            query += " WHERE folder_id = ?"
            params = (folder_id,)
        query += " ORDER BY created_at DESC"
        with self.transaction() as conn:
            rows = conn.execute(query, params).fetchall()
        return [_row_to_paper(row) for row in rows]

    def delete_paper(self, paper_id: str) -> bool:
        """Delete a paper; its pages and index entries go with it."""
        with self.transaction() as conn:
            cursor = conn.execute("DELETE FROM papers WHERE id = ?", (paper_id,))
        return cursor.rowcount > 0

    def set_pdf_path(self, paper_id: str, pdf_path: str) -> None:
        """Attach (or detach, with ``""``) a PDF and drop the stale index."""
        with self.transaction() as conn:
            cursor = conn.execute(
                """
                UPDATE papers
                SET pdf_path = ?, pdf_filename = ?, is_indexed = 0, indexed_at = NULL,
                    updated_at = ?
                WHERE id = ?
                """,
                (pdf_path, Path(pdf_path).name if pdf_path else "", format_timestamp(), paper_id),
            )
            if cursor.rowcount == 0:
                raise NotFoundError("Paper", paper_id)
            conn.execute("DELETE FROM pdf_pages WHERE paper_id = ?", (paper_id,))

    # Extracted pages

    def _insert_page(
        self, conn: sqlite3.Connection, paper_id: str, page_number: int, text: str
    ) -> PdfPage:
        created_at = format_timestamp()
        cursor = conn.execute(
            """
            INSERT INTO pdf_pages(paper_id, page_number, text_content, created_at)
            VALUES (?, ?, ?, ?)
            """,
            (paper_id, page_number, text, created_at),
        )
        return PdfPage(
            id=cursor.lastrowid,
            paper_id=paper_id,
            page_number=page_number,
            text_content=text,
            created_at=created_at,
        )

    def _mark_indexed(self, conn: sqlite3.Connection, paper_id: str, timestamp: str) -> None:
        cursor = conn.execute(
            "UPDATE papers SET is_indexed = 1, indexed_at = ? WHERE id = ?",
            (timestamp, paper_id),
        )
        if cursor.rowcount == 0:
            raise NotFoundError("Paper", paper_id)

    def put_page(self, paper_id: str, page_number: int, text: str) -> PdfPage:
        """Insert one page.

        This is a plain insert: a second page with the same number for the same
        paper violates the unique constraint and raises :class:`StorageError`.
        Call :meth:`clear_pages` first when re-indexing.
        """
        with self.transaction() as conn:
            return self._insert_page(conn, paper_id, page_number, text)

    def clear_pages(self, paper_id: str) -> int:
        with self.transaction() as conn:
            cursor = conn.execute("DELETE FROM pdf_pages WHERE paper_id = ?", (paper_id,))
        return cursor.rowcount

    def mark_indexed(self, paper_id: str, timestamp: str | None = None) -> None:
        with self.transaction() as conn:
            self._mark_indexed(conn, paper_id, timestamp or format_timestamp())

    def replace_pages(
        self, paper_id: str, pages: Sequence[str], timestamp: str | None = None
    ) -> List[PdfPage]:
        """Replace every page of a paper and mark it indexed, atomically.

        Pages are numbered from 1 in the order given.
        """
        with self.transaction() as conn:
            conn.execute("DELETE FROM pdf_pages WHERE paper_id = ?", (paper_id,))
            stored = [
                self._insert_page(conn, paper_id, number, text)
                for number, text in enumerate(pages, start=1)
            ]
            self._mark_indexed(conn, paper_id, timestamp or format_timestamp())
        LOGGER.debug("Stored %d pages for paper %s", len(stored), paper_id)
        return stored

    def reset_index(self, paper_id: str) -> None:
        """Remove a paper's pages and flag it as not indexed."""
        with self.transaction() as conn:
            cursor = conn.execute(
                "UPDATE papers SET is_indexed = 0, indexed_at = NULL WHERE id = ?", (paper_id,)
            )
            if cursor.rowcount == 0:
                raise NotFoundError("Paper", paper_id)
            conn.execute("DELETE FROM pdf_pages WHERE paper_id = ?", (paper_id,))

    def get_pages(self, paper_id: str) -> List[PdfPage]:
        with self.transaction() as conn:
            rows = conn.execute(
                """
                SELECT id, paper_id, page_number, text_content, created_at
                FROM pdf_pages WHERE paper_id = ? ORDER BY page_number
                """,
                (paper_id,),
            ).fetchall()
        return [_row_to_page(row) for row in rows]

    def get_pdf_path(self, paper_id: str) -> str:
        with self.transaction() as conn:
            row = conn.execute("SELECT pdf_path FROM papers WHERE id = ?", (paper_id,)).fetchone()
        if row is None:
            raise NotFoundError("Paper", paper_id)
        return row["pdf_path"]

    def is_indexed(self, paper_id: str) -> bool:
        """Return the indexed flag; unknown papers count as not indexed."""
        with self.transaction() as conn:
            row = conn.execute(
                "SELECT COALESCE(is_indexed, 0) AS is_indexed FROM papers WHERE id = ?",
                (paper_id,),
            ).fetchone()
        return bool(row["is_indexed"]) if row is not None else False

    def unindexed_documents(self) -> List[Tuple[str, str]]:
        """Return ``(paper_id, pdf_path)`` for papers with a PDF that are not indexed."""
        with self.transaction() as conn:
            rows = conn.execute(
                """
                SELECT id, pdf_path FROM papers
                WHERE COALESCE(is_indexed, 0) = 0 AND pdf_path != ''
                ORDER BY created_at, id
                """
            ).fetchall()
        return [(row["id"], row["pdf_path"]) for row in rows]

    def get_stats(self) -> IndexStats:
        with self.transaction() as conn:
            row = conn.execute(
                """
                SELECT
                    (SELECT COUNT(*) FROM papers) AS papers,
                    (SELECT COUNT(*) FROM papers WHERE is_indexed = 1) AS indexed_papers,
                    (SELECT COUNT(*) FROM pdf_pages) AS pages
                """
            ).fetchone()
        return IndexStats(
            papers=row["papers"], indexed_papers=row["indexed_papers"], pages=row["pages"]
        )

    # Full-text index

    def search_pages(
        self,
        fts_query: str,
        *,
        folder_id: str | None = None,
        limit: int = 20,
        offset: int = 0,
        snippet_tokens: int = SNIPPET_TOKENS,
    ) -> Tuple[List[FullTextSearchResult], int]:
        """Run an FTS5 ``MATCH`` and return one page of ranked hits plus the total.

        ``fts_query`` must already be valid FTS5 syntax. Ranks come from
        ``bm25`` and sort ascending (lower is more relevant).
        """
        joins = """
            FROM pdf_pages_fts
            JOIN pdf_pages pp ON pp.id = pdf_pages_fts.rowid
            JOIN papers p ON p.id = pp.paper_id
            WHERE pdf_pages_fts MATCH ?
        """
        params: list = [fts_query]
        if folder_id is not None:
            joins += " AND p.folder_id = ?"
            params.append(folder_id)

        with self.transaction() as conn:
            rows = conn.execute(
                f"""
                SELECT
                    pp.paper_id AS paper_id,
                    p.title AS title,
                    p.author AS author,
                    pp.page_number AS page_number,
                    snippet(pdf_pages_fts, 0, '<mark>', '</mark>', '...', ?) AS snippet,
                    bm25(pdf_pages_fts) AS rank
                {joins}
                ORDER BY rank, pp.id
                LIMIT ? OFFSET ?
                """,
                [snippet_tokens, *params, limit, offset],
            ).fetchall()
            total = conn.execute(f"SELECT COUNT(*) {joins}", params).fetchone()[0]

        results = [
            FullTextSearchResult(
                paper_id=row["paper_id"],
                paper_title=row["title"],
                paper_author=row["author"],
                page_number=row["page_number"],
                snippet=row["snippet"],
                rank=float(row["rank"]),
            )
            for row in rows
        ]
        return results, total

    # Smart groups

    def insert_smart_group(self, group: SmartGroup) -> SmartGroup:
        with self.transaction() as conn:
            conn.execute(
                """
                INSERT INTO smart_groups (id, name, criteria, match_mode, icon, color, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    group.id,
                    group.name,
                    dump_criteria(group.criteria),
                    group.match_mode,
                    group.icon,
                    group.color,
                    group.created_at,
                ),
            )
        return group

    def list_smart_groups(self) -> List[SmartGroup]:
        with self.transaction() as conn:
            rows = conn.execute(
                """
                SELECT id, name, criteria, match_mode, icon, color, created_at
                FROM smart_groups ORDER BY name
                """
            ).fetchall()
        return [
            SmartGroup(
                id=row["id"],
                name=row["name"],
                criteria=load_criteria(row["criteria"]),
                match_mode=row["match_mode"],
                icon=row["icon"],
                color=row["color"],
                created_at=row["created_at"],
            )
            for row in rows
        ]

    def delete_smart_group(self, group_id: str) -> bool:
        with self.transaction() as conn:
            cursor = conn.execute("DELETE FROM smart_groups WHERE id = ?", (group_id,))
        return cursor.rowcount > 0
