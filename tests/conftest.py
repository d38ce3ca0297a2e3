"""Shared fixtures for tests."""

from __future__ import annotations

import zipfile
from pathlib import Path
from typing import Callable, Optional, Union
from xml.sax.saxutils import escape

import pytest

from ereader.config import AppConfig
from ereader.library.database import Database

_CONTAINER = """<?xml version="1.0" encoding="utf-8"?>
<container version="1.0" xmlns="urn:oasis:names:tc:opendocument:xmlns:container">
  <rootfiles>
    <rootfile full-path="OEBPS/content.opf" media-type="application/oebps-package+xml"/>
  </rootfiles>
</container>
"""

_CHAPTER = """<?xml version="1.0" encoding="utf-8"?>
<html xmlns="http://www.w3.org/1999/xhtml">
<head><title>Chapter</title></head>
<body>{body}</body>
</html>
"""

# (label, src) or (label, src, children)
TocSpec = tuple


def _nav_points(entries: list[TocSpec], counter: list[int]) -> str:
    out = []
    for entry in entries:
        label, src = entry[0], entry[1]
        children = entry[2] if len(entry) > 2 else []
        counter[0] += 1
        n = counter[0]
        out.append(
            f'<navPoint id="np{n}" playOrder="{n}">'
            f"<navLabel><text>{escape(label)}</text></navLabel>"
            f'<content src="{escape(src)}"/>'
            f"{_nav_points(children, counter)}"
            "</navPoint>"
        )
    return "".join(out)


def write_epub(
    path: Path,
    chapters: list[Union[str, bytes]],
    toc: Optional[list[TocSpec]] = None,
    title: Optional[str] = "Test Book",
    language: Optional[str] = "en",
    identifier: str = "urn:uuid:test-book",
    creator: Optional[str] = "Author",
) -> Path:
    """Write a minimal EPUB 2 package. Byte-identical for identical input."""
    meta = [f'<dc:identifier id="bookid">{escape(identifier)}</dc:identifier>']
    if title is not None:
        meta.append(f"<dc:title>{escape(title)}</dc:title>")
    if language is not None:
        meta.append(f"<dc:language>{escape(language)}</dc:language>")
    if creator is not None:
        meta.append(f"<dc:creator>{escape(creator)}</dc:creator>")

    manifest = [
        f'<item id="ch{i}" href="text/ch{i}.xhtml" media-type="application/xhtml+xml"/>'
        for i in range(len(chapters))
    ]
    spine_attr = ""
    if toc is not None:
        manifest.append(
            '<item id="ncx" href="toc.ncx" media-type="application/x-dtbncx+xml"/>'
        )
        spine_attr = ' toc="ncx"'
    spine = [f'<itemref idref="ch{i}"/>' for i in range(len(chapters))]

    opf = (
        '<?xml version="1.0" encoding="utf-8"?>\n'
        '<package xmlns="http://www.idpf.org/2007/opf" version="2.0" '
        'unique-identifier="bookid">'
        '<metadata xmlns:dc="http://purl.org/dc/elements/1.1/">'
        + "".join(meta)
        + "</metadata><manifest>"
        + "".join(manifest)
        + f"</manifest><spine{spine_attr}>"
        + "".join(spine)
        + "</spine></package>"
    )

    files = {
        "META-INF/container.xml": _CONTAINER,
        "OEBPS/content.opf": opf,
    }
    for i, body in enumerate(chapters):
        # bytes are written verbatim as the whole document
        files[f"OEBPS/text/ch{i}.xhtml"] = (
            body if isinstance(body, bytes) else _CHAPTER.format(body=body)
        )
    if toc is not None:
        files["OEBPS/toc.ncx"] = (
            '<?xml version="1.0" encoding="utf-8"?>\n'
            '<ncx xmlns="http://www.daisy.org/z3986/2005/ncx/" version="2005-1">'
            f'<head><meta name="dtb:uid" content="{escape(identifier)}"/></head>'
            f"<docTitle><text>{escape(title or '')}</text></docTitle>"
            f"<navMap>{_nav_points(toc, [0])}</navMap>"
            "</ncx>"
        )

    fixed_time = (1980, 1, 1, 0, 0, 0)
    with zipfile.ZipFile(path, "w") as zf:
        zf.writestr(
            zipfile.ZipInfo("mimetype", date_time=fixed_time),
            "application/epub+zip",
            compress_type=zipfile.ZIP_STORED,
        )
        for name, text in files.items():
            zf.writestr(
                zipfile.ZipInfo(name, date_time=fixed_time),
                text,
                compress_type=zipfile.ZIP_DEFLATED,
            )
    return path


@pytest.fixture
def make_epub() -> Callable[..., Path]:
    return write_epub


@pytest.fixture
def three_chapter_epub(tmp_path: Path) -> Path:
    """Three chapters, two ToC entries (one with a fragment)."""
    library = tmp_path / "library"
    library.mkdir(exist_ok=True)
    return write_epub(
        library / "a.epub",
        chapters=[
            "<h1>One</h1><p>First chapter.</p><p></p>",
            "<h1>Two</h1><p>Second <span></span>chapter.</p>",
            "<p>Third chapter.</p>",
        ],
        toc=[("One", "text/ch0.xhtml"), ("Two", "text/ch1.xhtml#start")],
    )


@pytest.fixture
def db(tmp_path: Path) -> Database:
    db_path = tmp_path / "test.db"
    database = Database(db_path)
    yield database
    database.close()


@pytest.fixture
def config(tmp_path: Path) -> AppConfig:
    return AppConfig(
        data_dir=tmp_path / "data",
        config_dir=tmp_path / "config",
        library_dir=tmp_path / "library",
        scan_workers=2,
    )
