"""
pipeline.py — wire tokenizer, detector, classifier and extractors together

Public API:
    dataset = parse_text(csv_text)
    dataset = parse_workbook("statement.xlsx")
    dataset = parse_grid([["Date", "Description", "Amount"], [...], ...])
    dataset = remap(dataset, 2, "debit")

Every entry point returns a ParsedDataset. Structural problems (empty input,
unreadable workbook) raise; an unrecognised layout is reported as
``format == "unknown"`` and still goes through flexible extraction.
"""

from __future__ import annotations

import io
import math
from dataclasses import dataclass, field
from datetime import date, datetime
from pathlib import Path
from typing import Any, BinaryIO, Sequence

import pandas as pd

from ledger_import.amounts import has_month_token, resolve_month_columns
from ledger_import.column_detector import DetectedColumns, detect_columns, override_column
from ledger_import.errors import EmptyInputError, UnreadableFileError
from ledger_import.extractors import (
    extract_bank_rows,
    extract_flexible_rows,
    extract_statement_rows,
    populated_fields,
)
from ledger_import.format_classifier import BANK_STATEMENT, FINANCIAL_STATEMENT, UNKNOWN
from ledger_import.logging_setup import get_logger
from ledger_import.tokenizer import is_blank_row, tokenize_text

log = get_logger(__name__)


@dataclass(frozen=True)
class ParsedDataset:
    headers: list[str]
    rows: list[dict[str, str]]
    raw_grid: list[list[str]]
    format: str
    detected_columns: DetectedColumns | None = None
    confidence_percent: int | None = None
    warnings: list[str] = field(default_factory=list)

    @property
    def source_headers(self) -> list[str]:
        return list(self.raw_grid[0]) if self.raw_grid else []

    def to_dict(self, include_raw: bool = False) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "headers": list(self.headers),
            "source_headers": self.source_headers,
            "format": self.format,
            "confidence_percent": self.confidence_percent,
            "detected_columns": self.detected_columns.to_dict() if self.detected_columns else None,
            "row_count": len(self.rows),
            "rows": [dict(row) for row in self.rows],
            "warnings": list(self.warnings),
        }
        if include_raw:
            payload["raw_grid"] = [list(row) for row in self.raw_grid]
        return payload


def parse_grid(
    grid: Sequence[Sequence[str]],
    *,
    anchor_year: int | None = None,
    detected: DetectedColumns | None = None,
    warnings: Sequence[str] = (),
) -> ParsedDataset:
    """
    Run detection, classification and extraction over a header-first grid.

    Passing ``detected`` (e.g. after a reviewer override) skips detection and
    re-extracts with that mapping as-is. ``warnings`` from earlier stages
    (decoding) are carried into the dataset ahead of its own.
    """
    raw_grid = [[str(cell) for cell in row] for row in grid]
    if not raw_grid or is_blank_row(raw_grid[0]):
        raise EmptyInputError("No header row found")

    headers = [cell.strip() for cell in raw_grid[0]]
    raw_grid[0] = headers
    if detected is None:
        detected = detect_columns(headers)

    notes: list[str] = list(warnings)
    if detected.format == FINANCIAL_STATEMENT:
        rows = extract_statement_rows(raw_grid, anchor_year)
        if has_month_token(" ".join(headers)) and not resolve_month_columns(headers, anchor_year):
            notes.append(
                "Headers mention months but none could be read as a month column; "
                "rows carry the Total column without dates"
            )
    elif detected.format == BANK_STATEMENT:
        rows = extract_bank_rows(raw_grid, detected.mapping)
    else:
        rows = extract_flexible_rows(raw_grid, detected.mapping)

    if detected.format == UNKNOWN:
        notes.append(
            "Unable to detect file format. Expected columns like: Date, Description, Amount, "
            "or Type, Name, Amount, Frequency"
        )
    data_rows = sum(1 for row in raw_grid[1:] if not is_blank_row(row))
    if data_rows == 0:
        notes.append("File has a header row but no data rows")
    elif not rows:
        notes.append(f"No rows could be extracted from {data_rows} data rows")

    log.debug(
        "extracted %s rows from %s data rows as %s (%s%% confidence)",
        len(rows), data_rows, detected.format, detected.confidence,
    )

    return ParsedDataset(
        headers=populated_fields(rows),
        rows=rows,
        raw_grid=raw_grid,
        format=detected.format,
        detected_columns=detected,
        confidence_percent=detected.confidence,
        warnings=notes,
    )


def parse_text(
    content: str,
    *,
    anchor_year: int | None = None,
    warnings: Sequence[str] = (),
) -> ParsedDataset:
    """Parse comma-separated text (header row first)."""
    if not content or not content.strip():
        raise EmptyInputError("Empty CSV file")
    grid = tokenize_text(content.strip())
    return parse_grid(grid, anchor_year=anchor_year, warnings=warnings)


# ── Spreadsheets ──────────────────────────────────────────────────────────────

def cell_text(value: Any) -> str:
    """Stringify a workbook cell: ``5000.0`` -> ``"5000"``, NaN -> ``""``, midnight datetimes -> ISO date."""
    if value is None or value is pd.NaT:
        return ""
    if isinstance(value, float) and math.isnan(value):
        return ""
    if isinstance(value, pd.Timestamp):
        value = value.to_pydatetime()
    if isinstance(value, datetime):
        if value.time() == datetime.min.time():
            return value.date().isoformat()
        return value.isoformat(sep=" ")
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).replace("\x00", "").strip()


def read_workbook_grid(source: "str | Path | BinaryIO | bytes") -> list[list[str]]:
    """Read the first sheet of an .xlsx/.xls workbook into a grid of strings."""
    if isinstance(source, (bytes, bytearray)):
        source = io.BytesIO(source)

    try:
        with pd.ExcelFile(source) as xf:
            sheet_names = list(xf.sheet_names)
            if not sheet_names:
                raise EmptyInputError("No sheets found in Excel file")
            df = pd.read_excel(xf, sheet_name=sheet_names[0], header=None, dtype=object)
    except EmptyInputError:
        raise
    except ImportError:
        raise
    except Exception as exc:
        raise UnreadableFileError(f"Could not read workbook: {exc}") from exc

    grid = [[cell_text(value) for value in row] for row in df.itertuples(index=False, name=None)]
    if not grid:
        raise EmptyInputError("Empty Excel sheet")
    return grid


def parse_workbook(
    source: "str | Path | BinaryIO | bytes",
    *,
    anchor_year: int | None = None,
) -> ParsedDataset:
    grid = read_workbook_grid(source)
    return parse_grid(grid, anchor_year=anchor_year)


# ── Reviewer corrections ──────────────────────────────────────────────────────

def remap(
    dataset: ParsedDataset,
    index: int,
    column_type: str,
    *,
    anchor_year: int | None = None,
) -> ParsedDataset:
    """Override one column's type and re-extract from the dataset's raw grid."""
    detected = dataset.detected_columns or detect_columns(dataset.source_headers)
    updated = override_column(detected, index, column_type, headers=dataset.source_headers)
    return parse_grid(dataset.raw_grid, anchor_year=anchor_year, detected=updated)
