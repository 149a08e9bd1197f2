"""Read Word templates and regenerate them once per record."""

from __future__ import annotations

import io
import logging
import re
from bisect import bisect_right
from typing import Callable, Iterator, List, Optional

from docx import Document
from docx.oxml import OxmlElement
from docx.oxml.ns import qn

from .placeholders import (
    PLACEHOLDER_PATTERN,
    Record,
    extract_placeholders,
    find_matching_key,
    resolve_field,
    token_name,
)

logger = logging.getLogger(__name__)

DOCX_MIME = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"

W_P = qn("w:p")
W_T = qn("w:t")
XML_SPACE = "{http://www.w3.org/XML/1998/namespace}space"
MC_FALLBACK = "{http://schemas.openxmlformats.org/markup-compatibility/2006}Fallback"


class TemplateError(ValueError):
    """Raised when a template cannot be read or rendered."""


def open_document(binary: bytes):
    if not binary:
        raise TemplateError("No template loaded")
    try:
        return Document(io.BytesIO(binary))
    except Exception as e:
        raise TemplateError("Error reading DOCX file. Please check the template.") from e


def _story_roots(doc) -> Iterator:
    """Yield the body and every distinct header/footer element."""
    yield doc.element.body
    seen: list = []
    for section in doc.sections:
        for part in (
            section.header,
            section.first_page_header,
            section.even_page_header,
            section.footer,
            section.first_page_footer,
            section.even_page_footer,
        ):
            if part.is_linked_to_previous:
                continue
            element = part._element
            if any(element is s for s in seen):
                continue
            seen.append(element)
            yield element


def _paragraph_elements(doc) -> List:
    paragraphs = []
    for root in _story_roots(doc):
        paragraphs.extend(root.iter(W_P))
    return paragraphs


def _own_text_nodes(paragraph) -> List:
    """Text nodes of ``paragraph`` itself, excluding nested text-box paragraphs."""
    return [t for t in paragraph.iter(W_T) if next(t.iterancestors(W_P), None) is paragraph]


def _is_fallback(paragraph) -> bool:
    return next(paragraph.iterancestors(MC_FALLBACK), None) is not None


def read_template_text(binary: bytes) -> List[str]:
    """Return the text of every paragraph in the template, in document order."""
    doc = open_document(binary)
    texts = []
    for paragraph in _paragraph_elements(doc):
        # text boxes are stored twice; the VML fallback copy is skipped
        if _is_fallback(paragraph):
            continue
        texts.append("".join(t.text or "" for t in _own_text_nodes(paragraph)))
    return texts


def find_docx_placeholders(binary: bytes) -> List[str]:
    return extract_placeholders("\n".join(read_template_text(binary)))


def _set_text(node, text: str) -> None:
    """Write ``text`` into a ``w:t`` node, turning newlines into ``w:br``."""
    lines = text.replace("\r\n", "\n").replace("\r", "\n").split("\n")
    node.text = lines[0]
    node.set(XML_SPACE, "preserve")
    anchor = node
    for line in lines[1:]:
        br = OxmlElement("w:br")
        anchor.addnext(br)
        t = OxmlElement("w:t")
        t.text = line
        t.set(XML_SPACE, "preserve")
        br.addnext(t)
        anchor = t


def _fill_paragraph(paragraph, resolve: Callable[[re.Match], Optional[str]]) -> int:
    nodes = _own_text_nodes(paragraph)
    if not nodes:
        return 0
    texts = [t.text or "" for t in nodes]
    full = "".join(texts)
    matches = list(PLACEHOLDER_PATTERN.finditer(full))
    if not matches:
        return 0

    starts = []
    pos = 0
    for text in texts:
        starts.append(pos)
        pos += len(text)

    new_texts = list(texts)
    replaced = 0
    # right to left, so offsets left of each edit stay valid
    for match in reversed(matches):
        replacement = resolve(match)
        if replacement is None:
            continue
        begin, end = match.span()
        first = bisect_right(starts, begin) - 1
        last = bisect_right(starts, end - 1) - 1
        head = new_texts[first][: begin - starts[first]]
        if first == last:
            new_texts[first] = head + replacement + new_texts[first][end - starts[first]:]
        else:
            new_texts[first] = head + replacement
            for i in range(first + 1, last):
                new_texts[i] = ""
            new_texts[last] = new_texts[last][end - starts[last]:]
        replaced += 1

    for node, old, new in zip(nodes, texts, new_texts):
        if old != new:
            _set_text(node, new)
    return replaced


def fill_docx(binary: bytes, record: Record, blank_unmatched: bool = True) -> bytes:
    """Return a copy of the template with every token filled from ``record``."""
    doc = open_document(binary)

    def resolve(match: re.Match) -> Optional[str]:
        name = token_name(match)
        if find_matching_key(record, name) is None and not blank_unmatched:
            return None
        return resolve_field(record, name)

    replaced = 0
    for paragraph in _paragraph_elements(doc):
        replaced += _fill_paragraph(paragraph, resolve)
    logger.debug("Filled %d placeholder(s)", replaced)

    buffer = io.BytesIO()
    doc.save(buffer)
    return buffer.getvalue()
