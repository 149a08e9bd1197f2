"""Spreadsheet loading for merge records."""

from __future__ import annotations

import io
import logging
import math
import numbers
import re
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from pathlib import Path
from typing import Any, Dict, List

import pandas as pd
from dateutil import parser as date_parser

logger = logging.getLogger(__name__)

SUPPORTED_EXTENSIONS = (".xlsx", ".xls", ".csv")

# Excel's 1900 date system, shifted for the phantom 1900-02-29
EXCEL_EPOCH = datetime(1899, 12, 30)
# Serial for 2100-01-01; numbers in (1, MAX_DATE_SERIAL) are read as dates
MAX_DATE_SERIAL = 73050

_ISO_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


class DataFileError(ValueError):
    """Raised when a spreadsheet cannot be turned into records."""


@dataclass
class RecordSet:
    columns: List[str] = field(default_factory=list)
    records: List[Dict[str, Any]] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.records)


def format_long_date(value: date) -> str:
    """Return a date like ``January 5, 2024``."""
    return f"{value:%B} {value.day}, {value.year}"


def excel_serial_to_date(serial: float) -> str:
    dt = EXCEL_EPOCH + timedelta(days=math.floor(serial))
    return format_long_date(dt)


def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, float) and math.isnan(value):
        return True
    if isinstance(value, str) and value == "":
        return True
    return value is pd.NaT


def coerce_value(value: Any) -> Any:
    """Turn date-like cell values into readable dates.

    Plain numbers between 1 and 73050 are treated as Excel date serials,
    matching what a spreadsheet stores for an unformatted date cell.
    """
    if isinstance(value, bool):
        return value
    if isinstance(value, numbers.Real):
        if 1 < value < MAX_DATE_SERIAL:
            return excel_serial_to_date(float(value))
        return value
    if isinstance(value, (datetime, date)):
        return format_long_date(value)
    if isinstance(value, str) and _ISO_DATE.match(value.strip()):
        try:
            return format_long_date(date_parser.parse(value.strip()))
        except (ValueError, OverflowError):
            return value
    return value


def _unique_names(names) -> List[str]:
    """Suffix repeated headers with .1, .2 and so on, the way pandas does."""
    used = set()
    unique = []
    for name in names:
        candidate, n = name, 0
        while candidate in used:
            n += 1
            candidate = f"{name}.{n}"
        used.add(candidate)
        unique.append(candidate)
    return unique


def _read_frame(data: bytes, suffix: str) -> pd.DataFrame:
    buf = io.BytesIO(data)
    if suffix == ".csv":
        return pd.read_csv(buf, dtype=str, keep_default_na=False)
    return pd.read_excel(buf, sheet_name=0, dtype=object)


def load_records(data: bytes, filename: str, coerce_dates: bool = True) -> RecordSet:
    """Read the first sheet of a spreadsheet into a list of records.

    The first row holds the column names. Empty cells are left out of each
    record and blank rows are skipped.
    """
    suffix = Path(filename).suffix.lower()
    if suffix not in SUPPORTED_EXTENSIONS:
        raise DataFileError(f"Unsupported spreadsheet type: {suffix or filename}")
    if not data:
        raise DataFileError("The spreadsheet is empty.")

    try:
        df = _read_frame(data, suffix)
    except Exception as e:
        raise DataFileError("Error reading Excel file. Please try again.") from e

    names = _unique_names(str(col).strip() for col in df.columns)
    columns = []
    for name, col in zip(names, df.columns):
        if name.startswith("Unnamed:") and all(_is_blank(v) for v in df[col]):
            continue
        columns.append(name)

    records: List[Dict[str, Any]] = []
    for row in df.itertuples(index=False, name=None):
        record: Dict[str, Any] = {}
        for name, value in zip(names, row):
            if name not in columns or _is_blank(value):
                continue
            record[name] = coerce_value(value) if coerce_dates else value
        if record:
            records.append(record)

    if not records:
        raise DataFileError("No data rows found in the spreadsheet.")

    logger.info("Loaded %d record(s) with columns %s from %s", len(records), columns, filename)
    return RecordSet(columns=columns, records=records)
