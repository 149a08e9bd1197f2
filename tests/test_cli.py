"""Tests for the certmerge command line."""

import io
import logging
import sys
import zipfile
from pathlib import Path

import pytest
from docx import Document

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from cert_merge.cli import main

CSV = "name,degree,date\nAda Lovelace,BSc,2024-06-01\nAlan Turing,PhD,2024-01-01\nGrace Hopper,MSc,\n"


@pytest.fixture
def inputs(tmp_path, certificate_docx):
    template = tmp_path / "award.docx"
    template.write_bytes(certificate_docx)
    data = tmp_path / "people.csv"
    data.write_text(CSV, encoding="utf-8")
    return template, data


def test_list_placeholders(inputs, capsys) -> None:
    """--list-placeholders prints one field per line and needs no data."""

    template, _ = inputs

    assert main([str(template), "--list-placeholders"]) == 0
    assert capsys.readouterr().out.split() == ["name", "Degree", "date", "grade", "Organization"]


def test_writes_one_document_per_record(inputs, tmp_path) -> None:
    """Each record becomes a .docx named after the person."""

    template, data = inputs
    out = tmp_path / "out"

    assert main([str(template), str(data), str(out)]) == 0

    assert sorted(p.name for p in out.iterdir()) == ["Ada Lovelace.docx", "Alan Turing.docx", "Grace Hopper.docx"]
    doc = Document(str(out / "Ada Lovelace.docx"))
    assert "has earned the BSc on June 1, 2024." in [p.text for p in doc.paragraphs]


def test_range_into_zip(inputs, tmp_path) -> None:
    """--range picks records and --zip packs them into one archive."""

    template, data = inputs
    archive = tmp_path / "batch.zip"

    assert main([str(template), str(data), "--range", "2-3", "--zip", str(archive)]) == 0

    with zipfile.ZipFile(archive) as zf:
        assert zf.namelist() == ["Alan Turing.docx", "Grace Hopper.docx"]
        doc = Document(io.BytesIO(zf.read("Grace Hopper.docx")))
    assert "has earned the MSc on ." in [p.text for p in doc.paragraphs]


def test_keep_unmatched(inputs, tmp_path) -> None:
    """--keep-unmatched leaves tokens without a column untouched."""

    template, data = inputs
    out = tmp_path / "out"

    assert main([str(template), str(data), str(out), "--range", "1", "--keep-unmatched"]) == 0

    doc = Document(str(out / "Ada Lovelace.docx"))
    assert doc.tables[0].cell(0, 1).text == "{grade}"


def test_print_outputs(inputs, tmp_path) -> None:
    """The print page breaks between records and the PDF is written."""

    template, data = inputs
    page = tmp_path / "print.html"
    pdf = tmp_path / "print.pdf"

    assert main([str(template), str(data), "--print-html", str(page), "--print-pdf", str(pdf)]) == 0

    html = page.read_text(encoding="utf-8")
    assert html.count("page-break-after: always;") == 2
    assert "This certifies that Grace Hopper" in html
    assert pdf.read_bytes().startswith(b"%PDF")


def test_warns_about_unmatched_placeholders(inputs, tmp_path, caplog) -> None:
    """Placeholders with no matching column are reported as a warning."""

    template, data = inputs

    with caplog.at_level(logging.WARNING, logger="cert_merge"):
        main([str(template), str(data), str(tmp_path / "out")])

    assert "grade, Organization" in caplog.text


@pytest.mark.parametrize(
    "extra",
    [
        [],
        ["--range", "0-9", "--zip", "x.zip"],
    ],
)
def test_failures_return_one(inputs, extra) -> None:
    """No output target, or a bad range, exits with status 1."""

    template, data = inputs

    assert main([str(template), str(data)] + extra) == 1


def test_missing_or_wrong_template(tmp_path, inputs) -> None:
    _, data = inputs

    assert main([str(tmp_path / "missing.docx"), str(data), str(tmp_path)]) == 1
    assert main([str(data), str(data), str(tmp_path)]) == 1


def test_bad_spreadsheet(inputs, tmp_path) -> None:
    """An unreadable spreadsheet exits with status 1."""

    template, _ = inputs
    bad = tmp_path / "people.xlsx"
    bad.write_bytes(b"not excel")

    assert main([str(template), str(bad), str(tmp_path / "out")]) == 1


def test_failed_records_return_one(inputs, tmp_path, monkeypatch) -> None:
    """A batch with records that failed to generate exits with status 1."""

    import cert_merge.merge as merge_module

    template, data = inputs

    def broken_fill(*args, **kwargs):
        raise RuntimeError("boom")

    monkeypatch.setattr(merge_module, "fill_docx", broken_fill)

    assert main([str(template), str(data), str(tmp_path / "out")]) == 1
