"""Tests for empty-node pruning."""

from __future__ import annotations

from bs4 import BeautifulSoup

from ereader.parsers.normalize import decode_markup, normalize_html, prune_empty


def _body(html: str) -> str:
    soup = BeautifulSoup(normalize_html(f"<html><body>{html}</body></html>"), "lxml")
    return soup.body.decode_contents() if soup.body else ""


class TestPruneEmpty:
    def test_removes_empty_paragraph(self):
        assert _body("<p>Text</p><p></p>") == "<p>Text</p>"

    def test_removes_whitespace_only_paragraph(self):
        assert _body("<p>Text</p><p>  \n </p>") == "<p>Text</p>"

    def test_removes_nested_empty_nodes(self):
        assert _body("<div><p><span></span></p></div><p>Kept</p>") == "<p>Kept</p>"

    def test_removes_stray_inline_elements(self):
        assert _body("<p>Hello <span></span>world</p>") == "<p>Hello world</p>"

    def test_keeps_text(self):
        assert _body("<p><em>Stress</em></p>") == "<p><em>Stress</em></p>"

    def test_keeps_images(self):
        result = _body('<p><img src="cover.jpg"/></p>')
        assert "cover.jpg" in result
        assert result.startswith("<p>")

    def test_keeps_line_breaks(self):
        assert "<br/>" in _body("<p>one<br/>two</p>")

    def test_keeps_anchor_targets(self):
        result = _body('<p>Text</p><a id="note1"></a>')
        assert 'id="note1"' in result

    def test_keeps_any_element_with_id(self):
        result = _body('<p>Text</p><span id="p12"></span><div id="ch1"></div>')
        assert 'id="p12"' in result
        assert 'id="ch1"' in result

    def test_keeps_named_anchor(self):
        assert 'name="fn2"' in _body('<p>Text</p><a name="fn2"></a>')

    def test_removes_empty_links(self):
        assert _body('<p>Text<a href="x.html"></a></p>') == "<p>Text</p>"

    def test_keeps_head(self):
        html = "<html><head><title>T</title></head><body><p></p></body></html>"
        soup = BeautifulSoup(normalize_html(html), "lxml")
        assert soup.title is not None
        assert soup.body is not None
        assert soup.body.find("p") is None

    def test_empty_document(self):
        assert normalize_html("") == ""


class TestFixpoint:
    DOCS = [
        "<html><body><p>a</p><p></p><div><span> </span></div></body></html>",
        "<html><body><div><div><p><b></b></p></div>x</div></body></html>",
        '<html><body><p><img src="i.png"/></p><p><span></span></p></body></html>',
    ]

    def test_second_pass_is_noop(self):
        for doc in self.DOCS:
            once = normalize_html(doc)
            assert normalize_html(once) == once

    def test_single_pass_on_tree(self):
        for doc in self.DOCS:
            soup = prune_empty(BeautifulSoup(doc, "lxml"))
            before = str(soup)
            assert str(prune_empty(soup)) == before


class TestDecoding:
    XHTML = (
        '<?xml version="1.0" encoding="{encoding}"?>\n'
        '<html xmlns="http://www.w3.org/1999/xhtml">'
        "<head><title>T</title></head><body><p>{text}</p></body></html>"
    )

    def _doc(self, encoding: str, text: str) -> bytes:
        return self.XHTML.format(encoding=encoding, text=text).encode(encoding)

    def test_declared_latin1(self):
        result = normalize_html(self._doc("iso-8859-1", "Café crème"))
        assert "<p>Café crème</p>" in result
        assert "�" not in result

    def test_utf16_with_bom(self):
        result = normalize_html(self._doc("utf-16", "Grüße 第一章"))
        assert "<p>Grüße 第一章</p>" in result

    def test_utf8_bytes(self):
        assert "<p>naïve</p>" in normalize_html(self._doc("utf-8", "naïve"))

    def test_decode_passes_text_through(self):
        assert decode_markup("<p>é</p>") == "<p>é</p>"

    def test_meta_charset_rewritten(self):
        doc = (
            '<html><head><meta charset="iso-8859-1"/></head>'
            "<body><p>Señor</p></body></html>"
        ).encode("iso-8859-1")
        result = normalize_html(doc)
        assert "Señor" in result
        assert 'charset="utf-8"' in result


class TestXmlDeclaration:
    def test_stripped_from_bytes(self):
        doc = b'<?xml version="1.0" encoding="utf-8"?>\n<html><body><p>x</p></body></html>'
        result = normalize_html(doc)
        assert "?xml" not in result
        assert "<!--" not in result
        assert "<p>x</p>" in result

    def test_stripped_from_text(self):
        doc = '<?xml version="1.0"?><html><body><p>x</p></body></html>'
        assert "?xml" not in normalize_html(doc)

    def test_other_comments_kept(self):
        doc = "<html><body><!-- page 4 --><p>x</p></body></html>"
        assert "<!-- page 4 -->" in normalize_html(doc)
