"""Certificate mail merge: fill a Word template once per spreadsheet record."""

__version__ = "1.0.0"

from .docx_fill import TemplateError, fill_docx, find_docx_placeholders
from .merge import CertificateTemplate, InvalidRangeError, MailMerge, build_zip
from .placeholders import extract_placeholders, merge_html
from .records import DataFileError, RecordSet, load_records
from .template_store import TemplateStore, TemplateStoreError

__all__ = [
    "CertificateTemplate",
    "DataFileError",
    "InvalidRangeError",
    "MailMerge",
    "RecordSet",
    "TemplateError",
    "TemplateStore",
    "TemplateStoreError",
    "build_zip",
    "extract_placeholders",
    "fill_docx",
    "find_docx_placeholders",
    "load_records",
    "merge_html",
]
