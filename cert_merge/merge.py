"""The mail-merge job: one template, many records, one document each."""

from __future__ import annotations

import io
import logging
import re
import zipfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, Iterator, List, Optional, Sequence, Tuple

from .docx_fill import TemplateError, fill_docx, find_docx_placeholders, read_template_text
from .placeholders import Record, format_value, merge_html, merge_text, resolve_field
from .preview import docx_to_html

logger = logging.getLogger(__name__)

RANGE_ERROR = "Invalid range. Please check your input."

_UNSAFE_CHARS = re.compile(r'[\\/:*?"<>|\x00-\x1f]+')

Document = Tuple[str, bytes]


class InvalidRangeError(ValueError):
    """Raised for a record range outside ``1..len(records)``."""


@dataclass
class CertificateTemplate:
    name: str
    binary: bytes
    html: str = ""
    placeholders: List[str] = field(default_factory=list)

    @classmethod
    def from_docx(cls, binary: bytes, name: str = "") -> "CertificateTemplate":
        """Read placeholders and preview HTML from uploaded template bytes."""
        placeholders = find_docx_placeholders(binary)
        html = docx_to_html(binary)
        logger.info("Template %r has placeholders: %s", name, placeholders)
        return cls(name=name, binary=binary, html=html, placeholders=placeholders)


def template_name_from_filename(filename: str) -> str:
    name = Path(filename).name
    return name[: -len(".docx")] if name.lower().endswith(".docx") else name


def safe_filename(name: str) -> str:
    cleaned = _UNSAFE_CHARS.sub("_", name).strip().strip(".")
    return cleaned[:150]


def validate_range(start: int, end: int, total: int) -> None:
    if start < 1 or end > total or start > end:
        raise InvalidRangeError(RANGE_ERROR)


def parse_range(spec: str, total: int) -> Tuple[int, int]:
    """Parse ``"all"``, ``"3"`` or ``"2-5"`` into a 1-based inclusive range."""
    spec = (spec or "").strip().lower()
    if spec in ("", "all"):
        start, end = 1, total
    else:
        try:
            if "-" in spec:
                a, b = spec.split("-", 1)
                start, end = int(a.strip()), int(b.strip())
            else:
                start = end = int(spec)
        except ValueError:
            raise InvalidRangeError(RANGE_ERROR) from None
    validate_range(start, end, total)
    return start, end


def _dedupe(name: str, used: Dict[str, int]) -> str:
    key = name.lower()
    count = used.get(key, 0) + 1
    used[key] = count
    if count == 1:
        return name
    stem, dot, ext = name.rpartition(".")
    if not dot:
        return f"{name} ({count})"
    return f"{stem} ({count}).{ext}"


def build_zip(documents: Iterable[Document]) -> bytes:
    """Pack generated documents into a single zip archive."""
    buffer = io.BytesIO()
    used: Dict[str, int] = {}
    with zipfile.ZipFile(buffer, "w", zipfile.ZIP_DEFLATED) as zf:
        for filename, data in documents:
            zf.writestr(_dedupe(filename, used), data)
    return buffer.getvalue()


def write_documents(documents: Iterable[Document], directory: str | Path) -> List[Path]:
    out_dir = Path(directory)
    out_dir.mkdir(parents=True, exist_ok=True)
    used: Dict[str, int] = {}
    written = []
    for filename, data in documents:
        path = out_dir / _dedupe(filename, used)
        path.write_bytes(data)
        written.append(path)
    return written


class MailMerge:
    """Pairs a template with records and produces one document per record."""

    def __init__(
        self,
        template: Optional[CertificateTemplate] = None,
        records: Optional[Sequence[Record]] = None,
        blank_unmatched: bool = True,
    ):
        self.template = template
        self.records: List[Record] = list(records or [])
        self.blank_unmatched = blank_unmatched
        self.current_index = 0
        self.failures: List[Tuple[int, str]] = []

    @property
    def is_ready(self) -> bool:
        return self.template is not None and bool(self.records)

    def __len__(self) -> int:
        return len(self.records)

    def go_to(self, index: int) -> int:
        last = max(len(self.records) - 1, 0)
        self.current_index = min(max(index, 0), last)
        return self.current_index

    def next(self) -> int:
        return self.go_to(self.current_index + 1)

    def previous(self) -> int:
        return self.go_to(self.current_index - 1)

    @property
    def current_record(self) -> Record:
        return self.records[self.current_index]

    def _require_template(self) -> CertificateTemplate:
        if self.template is None:
            raise TemplateError("No template loaded")
        return self.template

    def template_data(self, record: Record) -> Dict[str, str]:
        """Values for each template placeholder, matched ignoring case."""
        template = self._require_template()
        return {ph: resolve_field(record, ph) for ph in template.placeholders}

    def preview_html(self, index: Optional[int] = None) -> str:
        template = self._require_template()
        idx = self.current_index if index is None else index
        return merge_html(template.html, self.records[idx], self.blank_unmatched)

    def generate(self, index: Optional[int] = None) -> bytes:
        template = self._require_template()
        idx = self.current_index if index is None else index
        return fill_docx(template.binary, self.records[idx], self.blank_unmatched)

    def output_name(self, index: int) -> str:
        record = self.records[index]
        for key in ("name", "Name"):
            value = format_value(record.get(key))
            if value:
                cleaned = safe_filename(value)
                if cleaned:
                    return cleaned
        return f"certificate_{index + 1}"

    def export_range(self, start: int, end: int) -> Iterator[Document]:
        """Yield ``(filename, docx bytes)`` for records ``start..end`` (1-based).

        The range is checked before anything is generated. A record that
        fails to render is logged and skipped; see ``failures``.
        """
        validate_range(start, end, len(self.records))
        self._require_template()
        self.failures = []
        return self._iter_range(start, end)

    def _iter_range(self, start: int, end: int) -> Iterator[Document]:
        for i in range(start - 1, end):
            try:
                data = self.generate(i)
            except Exception as e:
                logger.error("Error generating certificate %d: %s", i + 1, e, exc_info=True)
                self.failures.append((i, str(e)))
                continue
            yield f"{self.output_name(i)}.docx", data

    def export_all(self) -> Iterator[Document]:
        return self.export_range(1, len(self.records))

    def merged_paragraphs(self, index: int) -> List[str]:
        """Paragraph text of the filled document, for PDF print output."""
        template = self._require_template()
        record = self.records[index]
        return [merge_text(p, record, self.blank_unmatched) for p in read_template_text(template.binary)]
