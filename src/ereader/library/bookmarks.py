"""One reading position per book."""

from __future__ import annotations

import logging
import time
from typing import Optional

from ereader.errors import InvalidBookmarkError

from .database import Database
from .models import Bookmark

log = logging.getLogger(__name__)


class BookmarkManager:
    """Validates and stores the current bookmark of each book.

    ``progress`` is a fraction of the chapter's length. Mapping it to rows
    or pixels is the renderer's business.
    """

    def __init__(self, db: Database) -> None:
        self._db = db

    def set_bookmark(self, book_id: str, chapter_id: str, progress: float) -> Bookmark:
        """Replace the book's bookmark with a new one."""
        if not 0.0 <= progress <= 1.0:
            raise InvalidBookmarkError(f"progress {progress} is outside [0, 1]")
        if self._db.get_book(book_id) is None:
            raise InvalidBookmarkError(f"no book {book_id}")
        chapter = self._db.get_chapter_by_id(chapter_id)
        if chapter is None or chapter.book_id != book_id:
            raise InvalidBookmarkError(
                f"chapter {chapter_id} does not belong to book {book_id}"
            )

        bm = Bookmark(
            book_id=book_id,
            chapter_id=chapter_id,
            progress=float(progress),
            created_at=time.time(),
        )
        self._db.save_bookmark(bm)
        log.debug("Bookmark for %s at %s (%.3f)", book_id, chapter_id, progress)
        return bm

    def clear_bookmark(self, book_id: str) -> None:
        self._db.delete_bookmark(book_id)

    def get_bookmark(self, book_id: str) -> Optional[Bookmark]:
        return self._db.get_bookmark(book_id)
