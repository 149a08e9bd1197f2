"""Print jobs: browser print pages and a print-ready PDF."""

from __future__ import annotations

import html
from io import BytesIO
from typing import Iterable, List, Sequence

from reportlab.lib.pagesizes import letter
from reportlab.lib.units import inch
from reportlab.pdfgen import canvas

from .placeholders import Record, merge_html

PRINT_STYLE = """
            body {
              margin: 20px;
              font-family: 'Times New Roman', serif;
            }
            @media print {
              body { margin: 0; }
            }
"""

PDF_FONT = "Times-Roman"
PDF_FONT_SIZE = 14
PDF_LINE_HEIGHT = 1.2


def print_document(bodies: Sequence[str], title: str = "Certificate") -> str:
    """Wrap merged HTML bodies in a standalone printable page.

    Several bodies are separated by page breaks; the last one is not.
    """
    if len(bodies) == 1:
        content = bodies[0]
    else:
        parts = []
        for idx, body in enumerate(bodies):
            brk = "always" if idx < len(bodies) - 1 else "auto"
            parts.append(f'<div style="page-break-after: {brk};">\n{body}\n</div>')
        content = "\n".join(parts)
    return (
        "<html>\n<head>\n"
        f"<title>{html.escape(title)}</title>\n"
        f"<style>{PRINT_STYLE}</style>\n"
        "</head>\n<body>\n"
        f"{content}\n"
        "</body>\n</html>\n"
    )


def print_current(template_html: str, record: Record, blank_unmatched: bool = True) -> str:
    return print_document([merge_html(template_html, record, blank_unmatched)], "Certificate")


def print_all(template_html: str, records: Iterable[Record], blank_unmatched: bool = True) -> str:
    bodies = [merge_html(template_html, r, blank_unmatched) for r in records]
    return print_document(bodies, "All Certificates")


def print_script(document: str) -> str:
    """Return ``document`` with a script that opens the print dialog."""
    script = "<script>window.onload = function () { window.print(); };</script>"
    if "</body>" in document:
        return document.replace("</body>", f"{script}\n</body>", 1)
    return document + script


def render_print_pdf(pages: Iterable[Sequence[str]]) -> bytes:
    """Lay out one letter page per certificate from its paragraph texts."""
    buffer = BytesIO()
    c = canvas.Canvas(buffer, pagesize=letter)
    page_width, page_height = letter
    left_margin = right_margin = 0.75 * inch
    top_margin = bottom_margin = 1 * inch
    avail_width = page_width - left_margin - right_margin
    center_x = page_width / 2
    step = PDF_FONT_SIZE * PDF_LINE_HEIGHT

    def wrap_text(text: str) -> List[str]:
        lines = []
        for raw in text.split("\n"):
            words = raw.split()
            current = ""
            for word in words:
                test = f"{current} {word}".strip()
                if c.stringWidth(test, PDF_FONT, PDF_FONT_SIZE) <= avail_width:
                    current = test
                else:
                    if current:
                        lines.append(current)
                    current = word
            lines.append(current)
        return lines

    first = True
    for paragraphs in pages:
        if not first:
            c.showPage()
        first = False
        c.setFont(PDF_FONT, PDF_FONT_SIZE)
        y = page_height - top_margin
        for paragraph in paragraphs:
            for line in wrap_text(paragraph):
                if y < bottom_margin:
                    c.showPage()
                    c.setFont(PDF_FONT, PDF_FONT_SIZE)
                    y = page_height - top_margin
                if line:
                    c.drawCentredString(center_x, y, line)
                y -= step

    c.save()
    buffer.seek(0)
    return buffer.read()
