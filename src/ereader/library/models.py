"""Data models for the book library."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Optional


@dataclass
class Book:
    id: str  # UUIDv5 of the content digest
    identifier: str  # declared by the package, not unique
    language: str
    title: str
    content_hash: str
    creator: Optional[str] = None
    description: Optional[str] = None
    publisher: Optional[str] = None


@dataclass
class Chapter:
    id: str
    book_id: str
    index: int  # zero-based spine position
    content: bytes  # compressed blob, see library.compression


@dataclass
class TocEntry:
    id: str
    book_id: str
    index: int  # position among ToC entries, not a chapter index
    chapter_id: str
    title: str


@dataclass
class Bookmark:
    book_id: str
    chapter_id: str
    progress: float  # 0.0 - 1.0 of the chapter length
    created_at: float = field(default_factory=time.time)
    id: Optional[int] = None  # assigned by the store


@dataclass
class BookRecord:
    """A fully derived book, ready to be committed as one unit."""

    book: Book
    chapters: list[Chapter] = field(default_factory=list)
    toc: list[TocEntry] = field(default_factory=list)


@dataclass
class BookMetadata:
    title: str
    language: str
    identifier: str = ""
    creator: Optional[str] = None
    description: Optional[str] = None
    publisher: Optional[str] = None


@dataclass
class ExtractedBook:
    """Parsed package contents before identifiers are assigned."""

    metadata: BookMetadata
    chapters: list[str] = field(default_factory=list)  # normalized chapter HTML
    toc: list[tuple[int, str]] = field(default_factory=list)  # (chapter_index, title)
