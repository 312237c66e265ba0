"""
validation.py — judge normalized rows against a record shape

Two shapes are understood:

    income-expense   Type, Name, Amount (or Debit/Credit), optional Date/Frequency
    bank-statement   Date, Name, Amount (or Debit/Credit)

Validation never raises and never mutates the row. Every applicable problem
is collected so a reviewer sees all of them at once.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping

from ledger_import.amounts import clean_amount_text, is_recognized_date, parse_number

SHAPE_INCOME_EXPENSE = "income-expense"
SHAPE_BANK_STATEMENT = "bank-statement"
SHAPES = (SHAPE_INCOME_EXPENSE, SHAPE_BANK_STATEMENT)

VALID_TYPES = ("income", "expense")


@dataclass(frozen=True)
class ValidationResult:
    valid: bool
    errors: list[str] = field(default_factory=list)
    inferred_type: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {"valid": self.valid, "errors": list(self.errors), "inferred_type": self.inferred_type}


@dataclass(frozen=True)
class RowDiagnostic:
    row_number: int
    row: dict[str, str]
    errors: list[str] = field(default_factory=list)
    inferred_type: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "row_number": self.row_number,
            "row": dict(self.row),
            "errors": list(self.errors),
            "inferred_type": self.inferred_type,
        }


@dataclass
class ValidationReport:
    shape: str
    valid_rows: list[RowDiagnostic] = field(default_factory=list)
    invalid_rows: list[RowDiagnostic] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.valid_rows) + len(self.invalid_rows)

    @property
    def all_valid(self) -> bool:
        return not self.invalid_rows

    def summary(self) -> str:
        if self.all_valid:
            return f"All {len(self.valid_rows)} rows are valid"
        return f"Found {len(self.valid_rows)} valid rows and {len(self.invalid_rows)} invalid rows"

    def to_dict(self) -> dict[str, Any]:
        return {
            "shape": self.shape,
            "total_rows": self.total,
            "valid_count": len(self.valid_rows),
            "invalid_count": len(self.invalid_rows),
            "valid_rows": [item.to_dict() for item in self.valid_rows],
            "invalid_rows": [item.to_dict() for item in self.invalid_rows],
        }


def _text(row: Mapping[str, Any], key: str) -> str:
    value = row.get(key)
    if value is None:
        return ""
    return str(value)


def _loose_float(value: str) -> float | None:
    """Empty counts as zero, the way debit/credit cells are read."""
    if not value.strip():
        return 0.0
    return parse_number(clean_amount_text(value))


def _check_debit_credit(row: Mapping[str, Any], errors: list[str], message: str) -> str | None:
    debit = _loose_float(_text(row, "Debit"))
    credit = _loose_float(_text(row, "Credit"))
    if debit is None and credit is None:
        errors.append(message)
    return _infer_type(debit, credit)


def _infer_type(debit: float | None, credit: float | None) -> str | None:
    inferred = None
    if debit is not None and debit > 0:
        inferred = "expense"
    if credit is not None and credit > 0:
        inferred = "income"
    return inferred


def _validate_income_expense(row: Mapping[str, Any]) -> ValidationResult:
    errors: list[str] = []
    debit_text = _text(row, "Debit")
    credit_text = _text(row, "Credit")
    has_debit_credit = bool(debit_text or credit_text)
    inferred = _infer_type(_loose_float(debit_text), _loose_float(credit_text)) if has_debit_credit else None

    type_value = _text(row, "Type").strip().lower()
    if not any(kind in type_value for kind in VALID_TYPES) and inferred is None:
        if not type_value:
            errors.append('Type is required (must be "Income" or "Expense")')
        else:
            errors.append(f'Type must be "Income" or "Expense" (got: "{_text(row, "Type")}")')

    if not _text(row, "Name").strip():
        errors.append("Description/Name is required")

    amount_text = _text(row, "Amount")
    if amount_text:
        amount = parse_number(clean_amount_text(amount_text))
        if amount is None:
            errors.append(f'Amount must be a valid number (got: "{amount_text}")')
        elif amount < 0:
            errors.append("Amount must be positive")
    elif has_debit_credit:
        _check_debit_credit(row, errors, "Debit or Credit amount must be a valid number")
    else:
        errors.append("Amount (or Debit/Credit) is required")

    # Unknown frequencies are tolerated; they fall back to one-time downstream.

    date_text = _text(row, "Date")
    if date_text and not is_recognized_date(date_text):
        errors.append(f'Date format not recognized (got: "{date_text}")')

    return ValidationResult(valid=not errors, errors=errors, inferred_type=inferred)


def _validate_bank_statement(row: Mapping[str, Any]) -> ValidationResult:
    errors: list[str] = []
    inferred = None

    date_text = _text(row, "Date")
    if not date_text.strip():
        errors.append("Date is required")
    elif not is_recognized_date(date_text):
        errors.append("Date must be in a valid format (YYYY-MM-DD, MM/DD/YYYY, or similar)")

    if not _text(row, "Name").strip():
        errors.append("Description is required")

    if _text(row, "Debit") or _text(row, "Credit"):
        inferred = _check_debit_credit(row, errors, "Debit or Credit must be a valid number")
    elif _text(row, "Amount"):
        if parse_number(clean_amount_text(_text(row, "Amount"))) is None:
            errors.append("Amount must be a valid number")
    else:
        errors.append("Amount, Debit, or Credit is required")

    return ValidationResult(valid=not errors, errors=errors, inferred_type=inferred)


def validate_row(row: Mapping[str, Any], shape: str = SHAPE_INCOME_EXPENSE) -> ValidationResult:
    """Check one normalized row. Unknown shapes are reported, not raised."""
    if shape == SHAPE_BANK_STATEMENT:
        return _validate_bank_statement(row)
    if shape == SHAPE_INCOME_EXPENSE:
        return _validate_income_expense(row)
    return ValidationResult(valid=False, errors=[f"Unknown record shape '{shape}'"])


def validate_rows(rows: Iterable[Mapping[str, Any]], shape: str = SHAPE_INCOME_EXPENSE) -> ValidationReport:
    """Split rows into valid and invalid buckets, numbering rows from 1."""
    report = ValidationReport(shape=shape)
    for row_number, row in enumerate(rows, start=1):
        result = validate_row(row, shape)
        diagnostic = RowDiagnostic(
            row_number=row_number,
            row=dict(row),
            errors=list(result.errors),
            inferred_type=result.inferred_type,
        )
        if result.valid:
            report.valid_rows.append(diagnostic)
        else:
            report.invalid_rows.append(diagnostic)
    return report


def validate_dataset(dataset: Any, shape: str = SHAPE_INCOME_EXPENSE) -> ValidationReport:
    """Validate a ParsedDataset (anything with ``.rows``) or a plain list of rows."""
    rows = getattr(dataset, "rows", dataset)
    return validate_rows(rows, shape)
