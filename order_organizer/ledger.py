"""
Ledger reader
=============
Opens the work-order spreadsheet (openpyxl), maps the header row to column
indexes with accent/case-insensitive lookup and reads cells as text or as
dates.

Dates come either as native date cells or as text in one of
MM/dd/yyyy, M/d/yyyy, MM/dd/yy, M/d/yy, yyyy-MM-dd (tried in that order,
first match wins, time-of-day suffix ignored).
"""

import calendar
import datetime
import re
import unicodedata
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, Optional

from openpyxl import load_workbook

from .exceptions import ColumnNotFound, HeaderMissing, LedgerNotFound, SheetNotFound

# (label, pattern, group order) -- order matters, ambiguous inputs take the first hit
_DATE_PATTERNS = [
    ("MM/dd/yyyy", re.compile(r'(\d{2})/(\d{2})/(\d{4})'), "mdy"),
    ("M/d/yyyy", re.compile(r'(\d{1,2})/(\d{1,2})/(\d{4})'), "mdy"),
    ("MM/dd/yy", re.compile(r'(\d{2})/(\d{2})/(\d{2})'), "mdy"),
    ("M/d/yy", re.compile(r'(\d{1,2})/(\d{1,2})/(\d{2})'), "mdy"),
    ("yyyy-MM-dd", re.compile(r'(\d{4})-(\d{2})-(\d{2})'), "ymd"),
]


def normalize_header(s) -> str:
    """Strip diacritics, lower-case and trim: 'Número ' -> 'numero'."""
    if s is None:
        return ""
    n = unicodedata.normalize("NFD", str(s))
    n = "".join(ch for ch in n if not unicodedata.combining(ch))
    return n.lower().strip()


def cell_text(value) -> str:
    """Cell value the way it reads in the sheet."""
    if value is None:
        return ""
    if isinstance(value, datetime.datetime):
        if value.time() == datetime.time(0, 0):
            return value.date().isoformat()
        return value.isoformat(sep=" ")
    if isinstance(value, datetime.date):
        return value.isoformat()
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()


def parse_date_text(raw: str) -> Optional[datetime.date]:
    if raw is None:
        return None
    raw = raw.strip()
    if not raw:
        return None
    space = raw.find(" ")
    if space > 0:
        raw = raw[:space].strip()

    for _label, pattern, order in _DATE_PATTERNS:
        m = pattern.fullmatch(raw)
        if not m:
            continue
        a, b, c = (int(g) for g in m.groups())
        if order == "ymd":
            year, month, day = a, b, c
        else:
            month, day, year = a, b, c
            if len(m.group(3)) == 2:
                year += 2000
            # slash formats resolve 02/30 to the last day of February, ISO stays strict
            if 1 <= month <= 12 and 29 <= day <= 31:
                day = min(day, calendar.monthrange(year, month)[1])
        try:
            return datetime.date(year, month, day)
        except ValueError:
            continue
    return None


def read_date(value, zone=None) -> Optional[datetime.date]:
    """Native date cell or date text; None when nothing parses."""
    if isinstance(value, datetime.datetime):
        if value.tzinfo is not None and zone is not None:
            value = value.astimezone(zone)
        return value.date()
    if isinstance(value, datetime.date):
        return value
    return parse_date_text(cell_text(value))


# ── Header ───────────────────────────────────────────────────────────────────

class ColumnIndex:
    """Normalized header name -> 0-based column index."""

    def __init__(self, row_number: int, names: dict):
        self.row_number = row_number
        self._names = names

    def __contains__(self, name) -> bool:
        return normalize_header(name) in self._names

    def column(self, name: str) -> int:
        idx = self._names.get(normalize_header(name))
        if idx is None:
            raise ColumnNotFound(name)
        return idx


def read_header(sheet) -> ColumnIndex:
    first = sheet.min_row
    values = next(sheet.iter_rows(min_row=first, max_row=first, values_only=True), ())
    names = {}
    for i, raw in enumerate(values):
        key = normalize_header(cell_text(raw))
        if key and key not in names:
            names[key] = i
    if not names:
        raise HeaderMissing(f"Header not found in sheet '{sheet.title}'")
    return ColumnIndex(first, names)


def iter_data_rows(sheet, header: ColumnIndex) -> Iterator[tuple]:
    """(1-based row number, values) for every non-empty row after the header."""
    for offset, values in enumerate(
            sheet.iter_rows(min_row=header.row_number + 1, values_only=True), 1):
        if all(cell_text(v) == "" for v in values):
            continue
        yield header.row_number + offset, values


def _at(values: tuple, idx: int):
    return values[idx] if idx < len(values) else None


# ── Workbook ─────────────────────────────────────────────────────────────────

class Ledger:
    """An opened workbook. Use `open_ledger`."""

    def __init__(self, path: Path, workbook):
        self.path = path
        self.workbook = workbook

    def sheet(self, index: int):
        sheets = self.workbook.worksheets
        if index < 0 or index >= len(sheets):
            raise SheetNotFound(f"Sheet {index} not found in '{self.path.name}' "
                                f"({len(sheets)} sheet(s))")
        return sheets[index]

    def close(self):
        self.workbook.close()


def open_ledger(path) -> Ledger:
    path = Path(path)
    if not path.is_file():
        raise LedgerNotFound(f"Ledger not found: {path}")
    return Ledger(path, load_workbook(str(path), data_only=True))


# ── Work orders ──────────────────────────────────────────────────────────────

@dataclass
class WorkOrder:
    row: int
    order_id: str
    order_type: str
    due_date: Optional[datetime.date]
    due_text: str = ""


def read_work_orders(sheet, columns, zone=None) -> list:
    """
    One WorkOrder per data row.

    `columns` carries the header names (order_id, order_type, due_date).
    All three are resolved before any row is read, so a missing column
    fails the run up front. Blank ids/types are kept for the router to
    report.
    """
    header = read_header(sheet)
    idx_id = header.column(columns.order_id)
    idx_type = header.column(columns.order_type)
    idx_due = header.column(columns.due_date)

    orders = []
    for row_number, values in iter_data_rows(sheet, header):
        due_raw = _at(values, idx_due)
        orders.append(WorkOrder(
            row=row_number,
            order_id=cell_text(_at(values, idx_id)),
            order_type=cell_text(_at(values, idx_type)),
            due_date=read_date(due_raw, zone),
            due_text=cell_text(due_raw),
        ))
    return orders


def load_work_orders(path, sheet_index: int, columns, zone=None) -> list:
    ledger = open_ledger(path)
    try:
        return read_work_orders(ledger.sheet(sheet_index), columns, zone)
    finally:
        ledger.close()
