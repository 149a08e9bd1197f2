"""Shared fixtures: small certificate documents built with python-docx."""

import io
import sys
from pathlib import Path

import pytest
from docx import Document

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))


def docx_bytes(doc) -> bytes:
    buffer = io.BytesIO()
    doc.save(buffer)
    return buffer.getvalue()


def certificate_doc():
    """A small certificate with tokens in the body, a table and the header."""
    doc = Document()
    doc.sections[0].header.paragraphs[0].text = "Issued by {Organization}"
    doc.add_paragraph("Certificate of Completion")
    doc.add_paragraph("This certifies that {name}")
    doc.add_paragraph("has earned the {{Degree}} on [date].")
    table = doc.add_table(rows=1, cols=2)
    table.cell(0, 0).text = "Grade"
    table.cell(0, 1).text = "{grade}"
    return doc


@pytest.fixture
def certificate_docx() -> bytes:
    return docx_bytes(certificate_doc())


@pytest.fixture
def people() -> list:
    return [
        {"Name": "Ada Lovelace", "degree": "BSc", "Date": "June 1, 2024", "Grade": "A", "organization": "Analytical Society"},
        {"name": "Alan Turing", "Degree": "PhD", "date": "January 1, 2024"},
    ]
