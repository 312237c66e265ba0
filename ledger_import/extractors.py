"""
extractors.py — turn a header+rows grid into normalized string rows

Three layouts are supported:

    flexible / simple    one output row per source row, fields copied by mapping
    bank statement       flexible mapping + debit/credit inference + defaults
    financial statement  one output row per non-zero month cell per line item
"""

from __future__ import annotations

import re
from typing import Mapping, Sequence

from ledger_import.amounts import format_amount, parse_amount, resolve_month_columns
from ledger_import.config import (
    DEFAULT_CATEGORY,
    DEFAULT_FREQUENCY,
    DEFAULT_NAME,
    DEFAULT_TYPE,
    STATEMENT_FREQUENCY,
    STATEMENT_STATUS,
)
from ledger_import.logging_setup import get_logger
from ledger_import.tokenizer import cell_at, is_blank_row

log = get_logger(__name__)

Grid = Sequence[Sequence[str]]
NormalizedRow = dict[str, str]

# Column type -> canonical field name. "description" and "name" share Name.
FIELD_FOR_TYPE = {
    "type": "Type",
    "date": "Date",
    "description": "Name",
    "name": "Name",
    "amount": "Amount",
    "debit": "Debit",
    "credit": "Credit",
    "category": "Category",
    "account": "Account",
    "frequency": "Frequency",
    "balance": "Balance",
    "total": "Total",
}

CANONICAL_FIELDS = (
    "Type",
    "Date",
    "Transaction Date",
    "Month",
    "Name",
    "Amount",
    "Debit",
    "Credit",
    "Category",
    "Account",
    "Frequency",
    "Balance",
    "Total",
    "Status",
)

SECTION_INCOME = "income"
SECTION_EXPENSE = "expense"
SECTION_LABELS = {SECTION_INCOME: "Income", SECTION_EXPENSE: "Expense"}

SUMMARY_ROW_RE = re.compile(
    r"^(?:total\s|total$|noi|net operating|operating income|operating expense)",
    re.IGNORECASE,
)


# ── Flexible / simple ─────────────────────────────────────────────────────────

def map_row(raw_row: Sequence[str], mapping: Mapping[int, str]) -> NormalizedRow:
    """Copy mapped cells into canonical fields; the first non-empty Name wins."""
    mapped: NormalizedRow = {}
    for index in sorted(mapping):
        field_name = FIELD_FOR_TYPE.get(mapping[index])
        if field_name is None:
            continue
        value = cell_at(raw_row, index)
        if field_name == "Name":
            if not mapped.get("Name"):
                mapped["Name"] = value
            continue
        mapped[field_name] = value
    return mapped


def _mapped_data_rows(grid: Grid, mapping: Mapping[int, str]) -> list[NormalizedRow]:
    rows: list[NormalizedRow] = []
    for raw_row in grid[1:]:
        if not raw_row or is_blank_row(raw_row):
            continue
        mapped = map_row(raw_row, mapping)
        if not any(value.strip() for value in mapped.values()):
            continue
        rows.append(mapped)
    return rows


def extract_flexible_rows(grid: Grid, mapping: Mapping[int, str]) -> list[NormalizedRow]:
    return _mapped_data_rows(grid, mapping)


# ── Bank statement ────────────────────────────────────────────────────────────

def _as_money(value: str | None) -> float:
    parsed = parse_amount(value or "")
    return parsed if parsed is not None else 0.0


def apply_bank_defaults(row: NormalizedRow) -> NormalizedRow:
    """Infer Type/Amount from Debit/Credit, then fill unset fields with defaults."""
    if row.get("Debit") or row.get("Credit"):
        debit = _as_money(row.get("Debit"))
        credit = _as_money(row.get("Credit"))
        if debit > 0:
            row["Type"] = "Expense"
            row["Amount"] = format_amount(debit)
        elif credit > 0:
            row["Type"] = "Income"
            row["Amount"] = format_amount(credit)

    if not row.get("Type"):
        row["Type"] = DEFAULT_TYPE
    if not row.get("Frequency"):
        row["Frequency"] = DEFAULT_FREQUENCY
    if not row.get("Category"):
        row["Category"] = DEFAULT_CATEGORY
    if not row.get("Name"):
        row["Name"] = DEFAULT_NAME
    return row


def extract_bank_rows(grid: Grid, mapping: Mapping[int, str]) -> list[NormalizedRow]:
    return [apply_bank_defaults(row) for row in _mapped_data_rows(grid, mapping)]


# ── Financial statement ───────────────────────────────────────────────────────

def find_total_column(headers: Sequence[str]) -> int | None:
    for index, header in enumerate(headers):
        if str(header).strip().lower() == "total":
            return index
    return None


def section_marker(label: str) -> str | None:
    lowered = label.strip().lower()
    if lowered == SECTION_INCOME:
        return SECTION_INCOME
    if lowered == SECTION_EXPENSE:
        return SECTION_EXPENSE
    return None


def is_summary_row(label: str) -> bool:
    return bool(SUMMARY_ROW_RE.match(label.strip()))


def _statement_row(section: str, name: str, amount: float) -> NormalizedRow:
    return {
        "Type": SECTION_LABELS[section],
        "Name": name,
        "Amount": format_amount(amount),
        "Frequency": STATEMENT_FREQUENCY,
        "Category": DEFAULT_CATEGORY,
        "Status": STATEMENT_STATUS,
    }


def extract_statement_rows(grid: Grid, anchor_year: int | None = None) -> list[NormalizedRow]:
    """
    Explode each line item into one row per month column holding a non-zero value.

    Rows are read under the most recent "Income" / "Expense" marker row; rows
    before the first marker, subtotal/summary rows and rows with a blank first
    cell are skipped. Month cells that are empty, zero or unparseable emit
    nothing. A statement with no month columns falls back to one row per line
    item carrying its total.
    """
    if not grid:
        return []
    headers = [str(header).strip() for header in grid[0]]
    month_columns = resolve_month_columns(headers, anchor_year)
    total_index = find_total_column(headers)
    month_columns = [column for column in month_columns if column.index != total_index]

    rows: list[NormalizedRow] = []
    section: str | None = None

    for raw_row in grid[1:]:
        name = cell_at(raw_row, 0).strip()
        if not name:
            continue

        marker = section_marker(name)
        if marker is not None:
            section = marker
            continue
        if is_summary_row(name):
            continue
        if section is None:
            continue

        if month_columns:
            for column in month_columns:
                amount = parse_amount(cell_at(raw_row, column.index))
                if amount is None or amount == 0:
                    continue
                row = _statement_row(section, name, amount)
                row["Transaction Date"] = column.iso_date
                row["Month"] = column.label
                rows.append(row)
        elif total_index is not None:
            amount = parse_amount(cell_at(raw_row, total_index))
            if amount is None or amount == 0:
                continue
            rows.append(_statement_row(section, name, amount))

    if not month_columns and total_index is None:
        log.warning("financial statement has neither month nor total columns; no rows extracted")
    return rows


def populated_fields(rows: Sequence[Mapping[str, str]]) -> list[str]:
    """Canonical fields present in any row, in canonical order."""
    present = {key for row in rows for key in row}
    ordered = [name for name in CANONICAL_FIELDS if name in present]
    extras = sorted(present.difference(CANONICAL_FIELDS))
    return ordered + extras
