"""Exceptions raised while importing and reading the library."""

from __future__ import annotations

from typing import Optional


class LibraryError(RuntimeError):
    """Base class for library-related failures."""


class UnreadableSourceError(LibraryError):
    """Raised when a source file cannot be read from disk."""


class MalformedArchiveError(LibraryError):
    """Raised when an EPUB archive cannot be extracted.

    ``identifier`` is the identifier declared inside the package, when the
    metadata could be read before the failure.
    """

    def __init__(self, message: str, identifier: Optional[str] = None) -> None:
        super().__init__(message)
        self.identifier = identifier


class MissingMetadataError(MalformedArchiveError):
    """Raised when a required metadata field (title, language) is absent."""

    def __init__(self, field: str, identifier: Optional[str] = None) -> None:
        super().__init__(f"missing metadata tag {field}", identifier)
        self.field = field


class BrokenTocReferenceError(MalformedArchiveError):
    """Raised when a table of contents entry points outside the spine."""

    def __init__(self, href: str, identifier: Optional[str] = None) -> None:
        super().__init__(
            f"table of contents references missing chapter {href!r}", identifier
        )
        self.href = href


class DerivationCollisionError(LibraryError):
    """Raised when a derived identifier is already taken by different content."""


class CompressionError(LibraryError):
    """Raised when a stored payload cannot be decompressed intact."""


class InvalidBookmarkError(LibraryError, ValueError):
    """Raised when a bookmark request violates its constraints."""
