"""HTML markup for pasting OCR output into Word and other rich editors."""

from __future__ import annotations

import html as html_lib
from typing import Dict

OMML_NS = "http://schemas.openxmlformats.org/officeDocument/2006/math"

WORD_STYLE = """
    .ai-paste-content {
      font-family: "Microsoft YaHei", Arial, sans-serif;
      font-size: 12pt;
      line-height: 1.6;
      color: #333333;
    }
    .ai-paste-content p { margin: 0 0 8pt 0; }
    .ai-paste-content pre,
    .ai-paste-content code {
      font-family: Consolas, Monaco, "Courier New", monospace;
      font-size: 10pt;
      background-color: #f5f5f5;
      white-space: pre-wrap;
    }
"""


def text_to_html(text: str) -> str:
    """Escape ``text``; blank lines split paragraphs, single newlines become ``<br>``."""
    paragraphs = []
    for block in text.replace("\r\n", "\n").split("\n\n"):
        block = block.strip("\n")
        if not block:
            continue
        lines = [html_lib.escape(line) for line in block.split("\n")]
        paragraphs.append("<p>" + "<br>".join(lines) + "</p>")
    return "\n".join(paragraphs)


def wrap_for_word(body: str) -> str:
    """Wrap an HTML fragment in a document Word accepts as a rich paste."""
    return f"""<!DOCTYPE html>
<html xmlns:o="urn:schemas-microsoft-com:office:office"
      xmlns:w="http://schemas.openxmlformats.org/wordprocessingml/2006/main"
      xmlns:m="{OMML_NS}"
      xmlns="http://www.w3.org/TR/REC-html40">
<head>
  <meta charset="utf-8">
  <meta http-equiv="Content-Type" content="text/html; charset=utf-8">
  <!--[if gte mso 9]>
  <xml>
    <o:OfficeDocumentSettings>
      <o:AllowPNG/>
    </o:OfficeDocumentSettings>
  </xml>
  <![endif]-->
  <style>{WORD_STYLE}  </style>
</head>
<body class="ai-paste-content" xmlns:m="{OMML_NS}">
<!--StartFragment-->{body}<!--EndFragment-->
</body>
</html>"""


def rich_payload(text: str) -> Dict[str, str]:
    """Clipboard payload carrying ``text`` both plain and as Word-ready HTML"""
    return {"text": text, "html": wrap_for_word(text_to_html(text))}
