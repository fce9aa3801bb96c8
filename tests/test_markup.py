"""
Unit tests for Word-ready HTML generation
"""

from ai_paste.markup import OMML_NS, rich_payload, text_to_html, wrap_for_word


class TestTextToHtml:
    def test_single_line(self):
        assert text_to_html("hello") == "<p>hello</p>"

    def test_line_breaks_and_paragraphs(self):
        assert text_to_html("a\nb\n\nc") == "<p>a<br>b</p>\n<p>c</p>"

    def test_windows_newlines(self):
        assert text_to_html("a\r\nb") == "<p>a<br>b</p>"

    def test_markup_is_escaped(self):
        assert text_to_html("x < y & $a>b$") == "<p>x &lt; y &amp; $a&gt;b$</p>"

    def test_extra_blank_lines_collapse(self):
        assert text_to_html("a\n\n\n\nb") == "<p>a</p>\n<p>b</p>"

    def test_empty_text(self):
        assert text_to_html("") == ""


class TestWordDocument:
    def test_document_declares_office_namespaces(self):
        doc = wrap_for_word("<p>x</p>")
        assert doc.startswith("<!DOCTYPE html>")
        assert f'xmlns:m="{OMML_NS}"' in doc
        assert 'xmlns:o="urn:schemas-microsoft-com:office:office"' in doc
        assert '<meta charset="utf-8">' in doc

    def test_body_carries_content_class_and_fragment_markers(self):
        doc = wrap_for_word("<p>x</p>")
        assert '<body class="ai-paste-content"' in doc
        assert "<!--StartFragment--><p>x</p><!--EndFragment-->" in doc
        assert doc.index("<!--EndFragment-->") < doc.index("</body>")

    def test_rich_payload(self):
        payload = rich_payload("E = mc^2")
        assert payload["text"] == "E = mc^2"
        assert "<p>E = mc^2</p>" in payload["html"]
