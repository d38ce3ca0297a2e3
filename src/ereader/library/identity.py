"""Deterministic identifiers for books, chapters and ToC entries.

Every identifier is a UUIDv5 derived from a parent identifier and local
content, rooted in a configured namespace. The same bytes always yield the
same identifiers, so a rebuilt database can be exported to and imported
from another one without renumbering.
"""

from __future__ import annotations

import uuid

from .hashing import content_digest


class IdentityDeriver:
    def __init__(self, namespace: uuid.UUID) -> None:
        self._namespace = namespace

    @property
    def namespace(self) -> uuid.UUID:
        return self._namespace

    def book_id(self, digest: str) -> str:
        return str(uuid.uuid5(self._namespace, digest))

    def chapter_id(self, book_id: str, index: int, content: bytes) -> str:
        # Blank pages and repeated boilerplate are byte-identical across
        # chapters, so the index must be part of the name.
        name = f"chapter:{index}:{content_digest(content)}"
        return str(uuid.uuid5(uuid.UUID(book_id), name))

    def toc_id(self, book_id: str, index: int) -> str:
        return str(uuid.uuid5(uuid.UUID(book_id), f"toc:{index}"))
