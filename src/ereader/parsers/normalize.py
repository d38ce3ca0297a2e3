"""Removal of semantically-empty markup from chapter documents."""

from __future__ import annotations

import warnings
from typing import Union

from bs4 import (
    BeautifulSoup,
    Comment,
    ProcessingInstruction,
    Tag,
    UnicodeDammit,
    XMLParsedAsHTMLWarning,
)

from ereader.errors import MalformedArchiveError

warnings.filterwarnings("ignore", category=XMLParsedAsHTMLWarning)

# Elements that only matter through their text or children. Anything else
# (img, br, hr, svg, table cells, document structure) is kept even if empty.
_PRUNABLE_TAGS = frozenset(
    [
        "p", "div", "span", "a", "em", "i", "strong", "b", "u", "s", "small",
        "big", "sub", "sup", "font", "blockquote", "section", "article",
        "aside", "center", "h1", "h2", "h3", "h4", "h5", "h6", "li", "ul",
        "ol", "dl", "dt", "dd", "pre", "code", "cite", "q", "abbr", "label",
    ]
)


def _is_removable(tag: Tag) -> bool:
    if tag.name not in _PRUNABLE_TAGS:
        return False
    # Fragment targets (#note1) must survive even when they render nothing.
    if tag.get("id") or (tag.name == "a" and tag.get("name")):
        return False
    if tag.find(True) is not None:
        return False
    return not tag.get_text().strip()


def _is_xml_declaration(node: object) -> bool:
    # The HTML parser keeps <?xml ...?> as a processing instruction or, with
    # newer libxml2, as a comment reading "?xml ...?".
    if isinstance(node, ProcessingInstruction):
        return True
    return isinstance(node, Comment) and node.lstrip().startswith("?xml")


def prune_empty(soup: BeautifulSoup) -> BeautifulSoup:
    """Remove empty nodes in place, children before parents.

    Reversed document order visits every descendant before its ancestor, so
    one pass reaches the fixpoint: pruning a child can only make its parent
    emptier.
    """
    for tag in reversed(soup.find_all(True)):
        if _is_removable(tag):
            tag.decompose()
    return soup


def decode_markup(markup: Union[bytes, str]) -> str:
    """Decode chapter bytes using their BOM or declared encoding.

    Raises MalformedArchiveError if no candidate encoding fits.
    """
    if isinstance(markup, str):
        return markup
    dammit = UnicodeDammit(markup, is_html=True)
    if dammit.unicode_markup is None:
        raise MalformedArchiveError("chapter is not text in any known encoding")
    return dammit.unicode_markup


def normalize_html(markup: Union[bytes, str]) -> str:
    """Return the chapter as pruned HTML text without its XML declaration.

    The result is meant to be stored as UTF-8; a ``<meta charset>`` in the
    source is rewritten to match on output.
    """
    soup = BeautifulSoup(decode_markup(markup), "lxml")
    for node in soup.find_all(string=_is_xml_declaration):
        node.extract()
    return str(prune_empty(soup))
