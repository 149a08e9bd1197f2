"""Tests for the cert_merge.placeholders module."""

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from cert_merge.placeholders import (
    extract_placeholders,
    find_matching_key,
    format_value,
    merge_html,
    merge_text,
    resolve_field,
)


def test_extract_placeholders_supports_all_three_syntaxes() -> None:
    """Braces, double braces and brackets all mark fields."""

    text = "To {name}, for the {{degree}} awarded on [date]. Again: {name}"

    assert extract_placeholders(text) == ["name", "degree", "date"]


def test_extract_placeholders_ignores_non_word_tokens() -> None:
    """Tokens with spaces or punctuation are not fields."""

    text = "{first name} {} [ ] {{ spaced }} [item-1] {ok_1}"

    assert extract_placeholders(text) == ["ok_1"]


def test_extract_placeholders_handles_empty_text() -> None:
    assert extract_placeholders("") == []
    assert extract_placeholders(None) == []


def test_find_matching_key_prefers_exact_case() -> None:
    """An exact-case column wins over other case variants."""

    record = {"NAME": "upper", "name": "lower"}

    assert find_matching_key(record, "name") == "name"
    assert find_matching_key(record, "Name") == "NAME"
    assert find_matching_key(record, "missing") is None


def test_format_value_renders_spreadsheet_values() -> None:
    """Spreadsheet values print the way a person would type them."""

    assert format_value(None) == ""
    assert format_value(float("nan")) == ""
    assert format_value(3.0) == "3"
    assert format_value(3.5) == "3.5"
    assert format_value(0) == "0"
    assert format_value(True) == "true"
    assert format_value("Ada") == "Ada"


def test_resolve_field_is_case_insensitive() -> None:
    record = {"Degree": "PhD", "score": 98.0}

    assert resolve_field(record, "degree") == "PhD"
    assert resolve_field(record, "SCORE") == "98"
    assert resolve_field(record, "missing") == ""


def test_merge_html_consumes_double_braces_whole() -> None:
    """No stray braces are left around a double-brace token."""

    html = "<p>{{name}} / {name} / [NAME]</p>"

    assert merge_html(html, {"Name": "Ada"}) == "<p>Ada / Ada / Ada</p>"


def test_merge_html_escapes_values_and_keeps_line_breaks() -> None:
    """Values are escaped and newlines become <br>."""

    merged = merge_html("<p>{name}</p>", {"name": "<b>Tom & Jerry</b>\nCo."})

    assert merged == "<p>&lt;b&gt;Tom &amp; Jerry&lt;/b&gt;<br>Co.</p>"


def test_merge_blanks_or_keeps_unmatched_tokens() -> None:
    """Unknown tokens are blanked unless asked to keep them."""

    text = "See [ref] for {name}"

    assert merge_text(text, {"name": "Ada"}) == "See  for Ada"
    assert merge_text(text, {"name": "Ada"}, blank_unmatched=False) == "See [ref] for Ada"


def test_merge_is_single_pass() -> None:
    """Text inserted from a record is not scanned again."""

    record = {"name": "{title}", "title": "Dr"}

    assert merge_text("{name} {title}", record) == "{title} Dr"
