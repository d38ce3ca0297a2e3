"""SQLite database for books, chapters, table of contents, and bookmarks."""

from __future__ import annotations

import logging
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

from ereader.errors import DerivationCollisionError

from .compression import decompress_text
from .models import Book, Bookmark, BookRecord, Chapter, TocEntry

log = logging.getLogger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS books (
    id TEXT PRIMARY KEY,
    identifier TEXT NOT NULL,
    language TEXT NOT NULL,
    title TEXT NOT NULL,
    creator TEXT,
    description TEXT,
    publisher TEXT,
    content_hash TEXT UNIQUE NOT NULL
);

CREATE INDEX IF NOT EXISTS book_titles_idx ON books(title);
CREATE INDEX IF NOT EXISTS book_creators_idx ON books(creator);
CREATE INDEX IF NOT EXISTS book_publishers_idx ON books(publisher);

CREATE TABLE IF NOT EXISTS chapters (
    id TEXT PRIMARY KEY,
    book_id TEXT NOT NULL REFERENCES books(id) ON DELETE CASCADE,
    "index" INTEGER NOT NULL,
    content BLOB NOT NULL,
    UNIQUE (book_id, "index")
);

CREATE TABLE IF NOT EXISTS table_of_contents (
    id TEXT PRIMARY KEY,
    book_id TEXT NOT NULL REFERENCES books(id) ON DELETE CASCADE,
    "index" INTEGER NOT NULL,
    chapter_id TEXT NOT NULL REFERENCES chapters(id) ON DELETE CASCADE,
    title TEXT NOT NULL,
    UNIQUE (book_id, "index")
);

CREATE TABLE IF NOT EXISTS bookmarks (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    book_id TEXT UNIQUE NOT NULL REFERENCES books(id) ON DELETE CASCADE,
    chapter_id TEXT NOT NULL REFERENCES chapters(id) ON DELETE CASCADE,
    progress REAL NOT NULL,
    created_at REAL NOT NULL
);
"""


class Database:
    def __init__(self, db_path: Path) -> None:
        self._db_path = db_path
        self._conn = sqlite3.connect(str(db_path), check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.execute("PRAGMA foreign_keys=ON")
        self._init_schema()

    def _init_schema(self) -> None:
        self._conn.executescript(_SCHEMA)
        self._conn.commit()

    def close(self) -> None:
        self._conn.close()

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        self._conn.execute("BEGIN IMMEDIATE")
        try:
            yield self._conn
        except BaseException:
            self._conn.rollback()
            raise
        else:
            self._conn.commit()

    # ── Import ─────────────────────────────────────────────

    def import_book(self, record: BookRecord) -> bool:
        """Write a book with its chapters and ToC as one transaction.

        Returns False without writing when the content digest is already in
        the library, so a re-run after a partial failure is a no-op.
        """
        book = record.book
        with self._transaction() as conn:
            row = conn.execute(
                "SELECT id FROM books WHERE content_hash = ?", (book.content_hash,)
            ).fetchone()
            if row:
                if row["id"] != book.id:
                    raise DerivationCollisionError(
                        f"digest {book.content_hash} stored as {row['id']}, "
                        f"derived as {book.id}"
                    )
                log.debug("Book %s already imported", book.id)
                return False

            if conn.execute("SELECT 1 FROM books WHERE id = ?", (book.id,)).fetchone():
                raise DerivationCollisionError(
                    f"book id {book.id} already used by different content"
                )
            self._check_chapter_ids(conn, record.chapters)

            conn.execute(
                """INSERT INTO books
                   (id, identifier, language, title, creator, description, publisher, content_hash)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?)""",
                (
                    book.id,
                    book.identifier,
                    book.language,
                    book.title,
                    book.creator,
                    book.description,
                    book.publisher,
                    book.content_hash,
                ),
            )
            conn.executemany(
                'INSERT INTO chapters (id, book_id, "index", content) VALUES (?, ?, ?, ?)',
                [(ch.id, ch.book_id, ch.index, ch.content) for ch in record.chapters],
            )
            conn.executemany(
                """INSERT INTO table_of_contents (id, book_id, "index", chapter_id, title)
                   VALUES (?, ?, ?, ?, ?)""",
                [
                    (t.id, t.book_id, t.index, t.chapter_id, t.title)
                    for t in record.toc
                ],
            )
        return True

    @staticmethod
    def _check_chapter_ids(conn: sqlite3.Connection, chapters: list[Chapter]) -> None:
        ids = [ch.id for ch in chapters]
        if len(set(ids)) != len(ids):
            raise DerivationCollisionError("duplicate chapter id within one book")
        for ch in chapters:
            if conn.execute("SELECT 1 FROM chapters WHERE id = ?", (ch.id,)).fetchone():
                raise DerivationCollisionError(
                    f"chapter id {ch.id} already used by different content"
                )

    # ── Books ──────────────────────────────────────────────

    def get_book(self, book_id: str) -> Optional[Book]:
        row = self._conn.execute(
            "SELECT * FROM books WHERE id = ?", (book_id,)
        ).fetchone()
        return self._row_to_book(row) if row else None

    def get_book_by_hash(self, content_hash: str) -> Optional[Book]:
        row = self._conn.execute(
            "SELECT * FROM books WHERE content_hash = ?", (content_hash,)
        ).fetchone()
        return self._row_to_book(row) if row else None

    def list_books(self) -> list[Book]:
        rows = self._conn.execute("SELECT * FROM books ORDER BY title").fetchall()
        return [self._row_to_book(r) for r in rows]

    def content_hashes(self) -> set[str]:
        rows = self._conn.execute("SELECT content_hash FROM books").fetchall()
        return {r["content_hash"] for r in rows}

    def count_rows(self) -> dict[str, int]:
        counts = {}
        for table in ("books", "chapters", "table_of_contents", "bookmarks"):
            counts[table] = self._conn.execute(
                f"SELECT COUNT(*) FROM {table}"
            ).fetchone()[0]
        return counts

    @staticmethod
    def _row_to_book(row: sqlite3.Row) -> Book:
        return Book(
            id=row["id"],
            identifier=row["identifier"],
            language=row["language"],
            title=row["title"],
            content_hash=row["content_hash"],
            creator=row["creator"],
            description=row["description"],
            publisher=row["publisher"],
        )

    # ── Chapters & ToC ─────────────────────────────────────

    def list_chapters(self, book_id: str) -> list[Chapter]:
        rows = self._conn.execute(
            'SELECT * FROM chapters WHERE book_id = ? ORDER BY "index"', (book_id,)
        ).fetchall()
        return [self._row_to_chapter(r) for r in rows]

    def get_chapter(self, book_id: str, index: int) -> Optional[Chapter]:
        row = self._conn.execute(
            'SELECT * FROM chapters WHERE book_id = ? AND "index" = ?',
            (book_id, index),
        ).fetchone()
        return self._row_to_chapter(row) if row else None

    def get_chapter_by_id(self, chapter_id: str) -> Optional[Chapter]:
        row = self._conn.execute(
            "SELECT * FROM chapters WHERE id = ?", (chapter_id,)
        ).fetchone()
        return self._row_to_chapter(row) if row else None

    def read_chapter(self, chapter_id: str) -> Optional[str]:
        """Return the chapter's HTML, or None if no such chapter.

        Raises CompressionError if the stored payload is damaged.
        """
        chapter = self.get_chapter_by_id(chapter_id)
        return decompress_text(chapter.content) if chapter else None

    def get_toc(self, book_id: str) -> list[TocEntry]:
        rows = self._conn.execute(
            'SELECT * FROM table_of_contents WHERE book_id = ? ORDER BY "index"',
            (book_id,),
        ).fetchall()
        return [
            TocEntry(
                id=r["id"],
                book_id=r["book_id"],
                index=r["index"],
                chapter_id=r["chapter_id"],
                title=r["title"],
            )
            for r in rows
        ]

    @staticmethod
    def _row_to_chapter(row: sqlite3.Row) -> Chapter:
        return Chapter(
            id=row["id"],
            book_id=row["book_id"],
            index=row["index"],
            content=bytes(row["content"]),
        )

    # ── Bookmarks ──────────────────────────────────────────

    def save_bookmark(self, bm: Bookmark) -> None:
        self._conn.execute(
            """INSERT OR REPLACE INTO bookmarks
               (book_id, chapter_id, progress, created_at)
               VALUES (?, ?, ?, ?)""",
            (bm.book_id, bm.chapter_id, bm.progress, bm.created_at),
        )
        self._conn.commit()

    def get_bookmark(self, book_id: str) -> Optional[Bookmark]:
        row = self._conn.execute(
            "SELECT * FROM bookmarks WHERE book_id = ?", (book_id,)
        ).fetchone()
        return self._row_to_bookmark(row) if row else None

    def delete_bookmark(self, book_id: str) -> None:
        self._conn.execute("DELETE FROM bookmarks WHERE book_id = ?", (book_id,))
        self._conn.commit()

    def list_bookmarks(self) -> list[Bookmark]:
        rows = self._conn.execute(
            "SELECT * FROM bookmarks ORDER BY created_at DESC"
        ).fetchall()
        return [self._row_to_bookmark(r) for r in rows]

    @staticmethod
    def _row_to_bookmark(row: sqlite3.Row) -> Bookmark:
        return Bookmark(
            id=row["id"],
            book_id=row["book_id"],
            chapter_id=row["chapter_id"],
            progress=row["progress"],
            created_at=row["created_at"],
        )
