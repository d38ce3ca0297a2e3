"""EPUB parser using ebooklib."""

from __future__ import annotations

import io
import logging
import posixpath
from typing import Iterator, Optional
from urllib.parse import unquote

import ebooklib
from ebooklib import epub

from ereader.errors import (
    BrokenTocReferenceError,
    MalformedArchiveError,
    MissingMetadataError,
)
from ereader.library.models import BookMetadata, ExtractedBook

from .base import BaseParser
from .normalize import normalize_html

log = logging.getLogger(__name__)


class EpubParser(BaseParser):
    SUPPORTED_EXTENSIONS = (".epub",)

    def parse(self, data: bytes) -> ExtractedBook:
        book = self._open(data)

        identifier = self._get_meta(book, "identifier")
        title = self._get_meta(book, "title")
        if not title:
            raise MissingMetadataError("title", identifier or None)
        language = self._get_meta(book, "language")
        if not language:
            raise MissingMetadataError("language", identifier or None)

        meta = BookMetadata(
            title=title,
            language=language,
            identifier=identifier,
            creator=self._get_meta(book, "creator") or None,
            description=self._get_meta(book, "description") or None,
            publisher=self._get_meta(book, "publisher") or None,
        )

        ordered_items = self._spine_items(book, identifier)
        # item.content is the archive's bytes; EpubHtml.get_content() would
        # re-render the document through ebooklib's template.
        chapters = []
        for item in ordered_items:
            try:
                chapters.append(normalize_html(item.content or b""))
            except MalformedArchiveError as e:
                raise MalformedArchiveError(
                    f"{item.get_name()}: {e}", identifier or None
                ) from e
        toc = self._extract_toc(book, ordered_items, identifier)

        return ExtractedBook(metadata=meta, chapters=chapters, toc=toc)

    @staticmethod
    def _open(data: bytes) -> epub.EpubBook:
        try:
            return epub.read_epub(io.BytesIO(data), options={"ignore_ncx": False})
        except Exception as e:
            raise MalformedArchiveError(f"unable to parse epub: {e}") from e

    @staticmethod
    def _spine_items(
        book: epub.EpubBook, identifier: str
    ) -> list[epub.EpubItem]:
        ordered_items = []
        for item_id, _linear in book.spine:
            item = book.get_item_with_id(item_id)
            if item is None:
                raise MalformedArchiveError(
                    f"spine references missing item {item_id!r}", identifier or None
                )
            ordered_items.append(item)
        # Fall back to all document items if spine is empty
        if not ordered_items:
            ordered_items = list(book.get_items_of_type(ebooklib.ITEM_DOCUMENT))
        return ordered_items

    def _extract_toc(
        self,
        book: epub.EpubBook,
        ordered_items: list[epub.EpubItem],
        identifier: str,
    ) -> list[tuple[int, str]]:
        """Flatten the navigation tree into (chapter_index, title) pairs."""
        item_names = [item.get_name() for item in ordered_items]
        toc_entries: list[tuple[int, str]] = []
        # An NCX with an empty navMap comes back as a single blank Link.
        nav = book.toc if isinstance(book.toc, list) else [book.toc]

        for entry in _flatten_toc(nav):
            title = (getattr(entry, "title", "") or "").strip()
            href = getattr(entry, "href", "") or ""
            if not title or not href:
                continue
            index = _resolve_href(href, item_names)
            if index is None:
                raise BrokenTocReferenceError(href, identifier or None)
            toc_entries.append((index, title))

        return toc_entries

    @staticmethod
    def _get_meta(book: epub.EpubBook, field: str) -> str:
        try:
            values = book.get_metadata("DC", field)
        except KeyError:  # no Dublin Core metadata at all
            return ""
        if values:
            val = values[0]
            if isinstance(val, tuple):
                return str(val[0]).strip() if val[0] else ""
            return str(val).strip()
        return ""


def _flatten_toc(toc_list: list) -> Iterator[object]:
    for entry in toc_list:
        if isinstance(entry, tuple):
            # (Section or Link, children)
            head, children = entry[0], entry[1] if len(entry) > 1 else []
            yield head
            yield from _flatten_toc(list(children))
        elif isinstance(entry, list):
            yield from _flatten_toc(entry)
        else:
            yield entry


def _resolve_href(href: str, item_names: list[str]) -> Optional[int]:
    """Map a navigation target to a spine position, ignoring its fragment."""
    target = unquote(href.split("#", 1)[0])
    if not target:
        return None
    target = posixpath.normpath(target).lstrip("/")

    for idx, name in enumerate(item_names):
        if posixpath.normpath(name) == target:
            return idx
    # Navigation documents may live in a different directory than the OPF.
    for idx, name in enumerate(item_names):
        name = posixpath.normpath(name)
        if name.endswith("/" + target) or target.endswith("/" + name):
            return idx
    log.debug("No spine item for toc target %r", href)
    return None
