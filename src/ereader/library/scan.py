"""Library scan: walk the library root and import new EPUB content.

Files are read, hashed, extracted and compressed on a bounded thread pool.
The calling thread is the only writer: it commits each finished book in its
own transaction as soon as the book is ready.
"""

from __future__ import annotations

import logging
import os
import threading
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterator, Optional

from ereader.config import AppConfig, load_config
from ereader.errors import DerivationCollisionError, LibraryError, UnreadableSourceError
from ereader.parsers.base import get_parser, is_supported

from .compression import compress
from .database import Database
from .hashing import content_digest
from .identity import IdentityDeriver
from .models import Book, BookRecord, Chapter, ExtractedBook, TocEntry
from .reconcile import Disposition, Reconciler

log = logging.getLogger(__name__)


def walk_sources(root: Path, follow_symlinks: bool = True) -> Iterator[Path]:
    """Yield supported regular files under ``root``, lazily.

    Each call starts a fresh walk. Unreadable directories and symlink
    cycles are logged and skipped.
    """

    def _on_error(err: OSError) -> None:
        log.warning("Skipping %s: %s", err.filename, err.strerror or err)

    seen_dirs: set[tuple[int, int]] = set()
    for dirpath, dirnames, filenames in os.walk(
        root, onerror=_on_error, followlinks=follow_symlinks
    ):
        try:
            st = os.stat(dirpath)
        except OSError as e:
            _on_error(e)
            dirnames[:] = []
            continue
        key = (st.st_dev, st.st_ino)
        if key in seen_dirs:
            log.warning("Skipping %s: directory already visited (symlink cycle)", dirpath)
            dirnames[:] = []
            continue
        seen_dirs.add(key)

        dirnames.sort()
        for name in sorted(filenames):
            path = Path(dirpath) / name
            if not is_supported(path):
                continue
            if not path.is_file():
                log.warning("Skipping %s: not a regular file", path)
                continue
            yield path


@dataclass
class ScanFailure:
    path: Path
    reason: str
    identifier: Optional[str] = None  # declared package identifier, if known


@dataclass
class ScanSummary:
    imported: list[Book] = field(default_factory=list)
    unchanged: int = 0
    failed: list[ScanFailure] = field(default_factory=list)
    orphaned: list[Book] = field(default_factory=list)
    cancelled: bool = False

    def __str__(self) -> str:
        text = (
            f"imported {len(self.imported)}, unchanged {self.unchanged}, "
            f"failed {len(self.failed)}, orphaned {len(self.orphaned)}"
        )
        return text + " (cancelled)" if self.cancelled else text


def build_record(
    extracted: ExtractedBook,
    digest: str,
    deriver: IdentityDeriver,
    level: int,
) -> BookRecord:
    """Assign identifiers and compress chapters of an extracted book."""
    meta = extracted.metadata
    book_id = deriver.book_id(digest)
    book = Book(
        id=book_id,
        identifier=meta.identifier,
        language=meta.language,
        title=meta.title,
        content_hash=digest,
        creator=meta.creator,
        description=meta.description,
        publisher=meta.publisher,
    )

    chapters = []
    for index, html in enumerate(extracted.chapters):
        payload = html.encode("utf-8")
        chapters.append(
            Chapter(
                id=deriver.chapter_id(book_id, index, payload),
                book_id=book_id,
                index=index,
                content=compress(payload, level),
            )
        )

    toc = [
        TocEntry(
            id=deriver.toc_id(book_id, index),
            book_id=book_id,
            index=index,
            chapter_id=chapters[chapter_index].id,
            title=title,
        )
        for index, (chapter_index, title) in enumerate(extracted.toc)
    ]
    return BookRecord(book=book, chapters=chapters, toc=toc)


class LibraryScanner:
    def __init__(self, db: Database, config: AppConfig) -> None:
        self._db = db
        self._config = config
        self._deriver = IdentityDeriver(config.namespace)

    def scan(
        self, root: Path, cancel: Optional[threading.Event] = None
    ) -> ScanSummary:
        """Import every new book under ``root`` and report what was found.

        Setting ``cancel`` stops dispatching new files; books already being
        processed are still committed.
        """
        summary = ScanSummary()
        # Single snapshot of the library, taken before any work starts.
        reconciler = Reconciler(self._db.content_hashes())
        paths = walk_sources(root, self._config.follow_symlinks)
        workers = self._config.scan_workers
        max_in_flight = workers * 2

        def _cancelled() -> bool:
            return cancel is not None and cancel.is_set()

        log.info("Scanning %s", root)
        with ThreadPoolExecutor(
            max_workers=workers, thread_name_prefix="ereader-scan"
        ) as executor:
            pending: dict[Future, Path] = {}
            exhausted = False
            while True:
                while not exhausted and len(pending) < max_in_flight and not _cancelled():
                    path = next(paths, None)
                    if path is None:
                        exhausted = True
                        break
                    pending[executor.submit(self._prepare, path, reconciler)] = path

                if _cancelled() and not summary.cancelled:
                    summary.cancelled = True
                    for future in list(pending):
                        if future.cancel():
                            del pending[future]

                if not pending:
                    break
                done, _ = wait(pending, return_when=FIRST_COMPLETED)
                for future in done:
                    self._collect(future, pending.pop(future), summary)

        if summary.cancelled:
            log.info("Scan of %s cancelled; orphan check skipped", root)
        else:
            for digest in sorted(reconciler.orphaned()):
                book = self._db.get_book_by_hash(digest)
                if book is not None:
                    log.warning("Orphaned: %s (%s) not found under %s", book.title, book.id, root)
                    summary.orphaned.append(book)

        log.info("Scan of %s finished: %s", root, summary)
        return summary

    def _prepare(
        self, path: Path, reconciler: Reconciler
    ) -> tuple[Disposition, Optional[BookRecord]]:
        try:
            data = path.read_bytes()
        except OSError as e:
            raise UnreadableSourceError(f"unable to read: {e.strerror or e}") from e

        digest = content_digest(data)
        disposition = reconciler.claim(digest)
        if disposition is not Disposition.NEW:
            return disposition, None

        extracted = get_parser(path).parse(data)
        return disposition, build_record(
            extracted, digest, self._deriver, self._config.compression_level
        )

    def _collect(self, future: Future, path: Path, summary: ScanSummary) -> None:
        try:
            _disposition, record = future.result()
        except LibraryError as e:
            log.warning("Failed to import %s: %s", path, e)
            summary.failed.append(
                ScanFailure(path, str(e), getattr(e, "identifier", None))
            )
            return
        except Exception as e:
            log.exception("Unexpected error importing %s", path)
            summary.failed.append(ScanFailure(path, f"unexpected error: {e}"))
            return

        if record is None:
            log.debug("Unchanged: %s", path)
            summary.unchanged += 1
            return

        try:
            written = self._db.import_book(record)
        except DerivationCollisionError as e:
            log.error("Integrity error importing %s: %s", path, e)
            summary.failed.append(ScanFailure(path, str(e), record.book.identifier or None))
            return

        if written:
            log.info("Imported %s (%s) from %s", record.book.title, record.book.id, path)
            summary.imported.append(record.book)
        else:
            summary.unchanged += 1


def scan_library(
    db: Database,
    root: Path,
    config: Optional[AppConfig] = None,
    cancel: Optional[threading.Event] = None,
) -> ScanSummary:
    """Scan ``root`` into ``db`` with ``config``, or the loaded configuration."""
    return LibraryScanner(db, config or load_config()).scan(root, cancel)
