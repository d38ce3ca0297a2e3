"""ereader - EPUB library importer."""

from __future__ import annotations

import logging
import sys
from pathlib import Path

from ereader.config import AppConfig, load_config
from ereader.library.database import Database
from ereader.library.scan import scan_library


def _setup_logging(config: AppConfig) -> None:
    handler = logging.FileHandler(config.log_path, encoding="utf-8")
    handler.setFormatter(
        logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")
    )
    root = logging.getLogger("ereader")
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)


def main() -> None:
    config = load_config()
    _setup_logging(config)

    library_dir = config.library_dir
    if len(sys.argv) > 1:
        library_dir = Path(sys.argv[1]).expanduser()

    if not library_dir.is_dir():
        print(f"Library directory not found: {library_dir}", file=sys.stderr)
        sys.exit(1)

    db = Database(config.db_path)
    try:
        summary = scan_library(db, library_dir.resolve(), config)
    finally:
        db.close()

    print(f"Scanned {library_dir}: {summary}")
    for failure in summary.failed:
        ident = f" [{failure.identifier}]" if failure.identifier else ""
        print(f"  failed: {failure.path}{ident}: {failure.reason}")
    for book in summary.orphaned:
        print(f"  orphaned: {book.title} ({book.id})")


if __name__ == "__main__":
    main()
