"""Base parser interface for library source formats."""

from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path

from ereader.library.models import ExtractedBook


class BaseParser(ABC):
    """Abstract base for format-specific parsers."""

    SUPPORTED_EXTENSIONS: tuple[str, ...] = ()

    @abstractmethod
    def parse(self, data: bytes) -> ExtractedBook:
        """Parse raw archive bytes and return structured book content."""

    @classmethod
    def can_handle(cls, file_path: Path) -> bool:
        return file_path.suffix.lower() in cls.SUPPORTED_EXTENSIONS


def _parsers() -> list[type[BaseParser]]:
    from ereader.parsers.epub_parser import EpubParser

    return [EpubParser]


def is_supported(file_path: Path) -> bool:
    return any(p.can_handle(file_path) for p in _parsers())


def get_parser(file_path: Path) -> BaseParser:
    """Return the appropriate parser for a file."""
    parsers = _parsers()
    for parser_cls in parsers:
        if parser_cls.can_handle(file_path):
            return parser_cls()

    supported = []
    for p in parsers:
        supported.extend(p.SUPPORTED_EXTENSIONS)
    raise ValueError(
        f"Unsupported format: {file_path.suffix}. Supported: {', '.join(supported)}"
    )
