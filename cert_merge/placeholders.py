"""Placeholder tokens: ``{field}``, ``{{field}}`` and ``[field]``.

Field names are matched against record columns case-insensitively. Every
substitution is a single left-to-right pass, so text inserted from a record
is never scanned for further tokens.
"""

from __future__ import annotations

import html
import math
import re
from typing import Any, Callable, List, Mapping, Optional

# Double braces come first so ``{{name}}`` is consumed whole.
PLACEHOLDER_PATTERN = re.compile(r"\{\{(\w+)\}\}|\{(\w+)\}|\[(\w+)\]")

Record = Mapping[str, Any]


def token_name(match: re.Match) -> str:
    return match.group(1) or match.group(2) or match.group(3)


def extract_placeholders(text: str) -> List[str]:
    """Return unique field names in order of first appearance."""
    found: List[str] = []
    seen = set()
    for match in PLACEHOLDER_PATTERN.finditer(text or ""):
        name = token_name(match)
        if name not in seen:
            seen.add(name)
            found.append(name)
    return found


def find_matching_key(record: Record, field: str) -> Optional[str]:
    """Return the record column that matches ``field``, ignoring case.

    An exact-case column wins over other case variants.
    """
    if field in record:
        return field
    wanted = field.lower()
    for key in record:
        if str(key).lower() == wanted:
            return key
    return None


def format_value(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float):
        if math.isnan(value):
            return ""
        if value.is_integer():
            return str(int(value))
    return str(value)


def resolve_field(record: Record, field: str) -> str:
    key = find_matching_key(record, field)
    if key is None:
        return ""
    return format_value(record[key])


def substitute(
    text: str,
    record: Record,
    *,
    blank_unmatched: bool = True,
    escape: Callable[[str], str] | None = None,
) -> str:
    """Replace every token in ``text`` with its value from ``record``."""

    def repl(match: re.Match) -> str:
        name = token_name(match)
        if find_matching_key(record, name) is None and not blank_unmatched:
            return match.group(0)
        value = resolve_field(record, name)
        return escape(value) if escape else value

    return PLACEHOLDER_PATTERN.sub(repl, text)


def merge_text(text: str, record: Record, blank_unmatched: bool = True) -> str:
    return substitute(text, record, blank_unmatched=blank_unmatched)


def _escape_html(value: str) -> str:
    return html.escape(value).replace("\n", "<br>")


def merge_html(html_text: str, record: Record, blank_unmatched: bool = True) -> str:
    """Merge one record into preview HTML, escaping the inserted values."""
    return substitute(html_text, record, blank_unmatched=blank_unmatched, escape=_escape_html)
