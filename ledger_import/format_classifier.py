"""Decide which of the known file layouts a column mapping describes."""

from __future__ import annotations

import re
from typing import Mapping, Sequence

from ledger_import.amounts import has_month_token

BANK_STATEMENT = "bank-statement"
FINANCIAL_STATEMENT = "financial-statement"
SIMPLE = "simple"
UNKNOWN = "unknown"

FORMATS = (BANK_STATEMENT, FINANCIAL_STATEMENT, SIMPLE, UNKNOWN)

FORMAT_LABELS = {
    BANK_STATEMENT: "Bank Statement",
    FINANCIAL_STATEMENT: "Financial Statement",
    SIMPLE: "Simple Format",
    UNKNOWN: "Unknown Format",
}

AMOUNT_BEARING = {"amount", "debit", "credit"}


def classify_format(mapping: Mapping[int, str], headers: Sequence[str]) -> str:
    """
    First matching rule wins:

      1. bank-statement       date + description + amount/debit/credit
      2. financial-statement  a month name in the headers, or a "total" header
                              that was typed ``total``
      3. simple               type/category + name/description + amount-bearing
      4. unknown

    A header set can satisfy both 1 and 3; it is a bank statement because that
    rule is checked first.
    """
    types = set(mapping.values())
    header_text = " ".join(str(header) for header in headers).lower()

    has_amount = bool(types & AMOUNT_BEARING)

    if "date" in types and "description" in types and has_amount:
        return BANK_STATEMENT

    if has_month_token(header_text) or ("total" in header_text and "total" in types):
        return FINANCIAL_STATEMENT

    has_kind = "type" in types or "category" in types
    has_label = "name" in types or "description" in types
    if has_kind and has_label and has_amount:
        return SIMPLE

    return UNKNOWN


_NORMALIZE_RE = re.compile(r"[_\-\s]")

_INCOME_EXPENSE_LABELS = ("type", "name", "description")
_AMOUNT_LABELS = ("amount", "value", "total")
_ASSET_LIABILITY_MARKERS = ("balance", "currentvalue", "valuationdate", "interestrate", "monthlypayment")


def detect_record_kind(headers: Sequence[str]) -> str:
    """
    Which family of records a file holds: ``income-expense``,
    ``asset-liability`` or ``unknown``.

    Income/expense data needs a label column and an amount column plus a
    frequency, debit/credit or date column. Balance-sheet style headers mark
    asset/liability data. A lone amount column still counts as
    income/expense.
    """
    normalized = [_NORMALIZE_RE.sub("", str(header).lower()) for header in headers]

    def any_contains(needles: Sequence[str]) -> bool:
        return any(needle in header for header in normalized for needle in needles)

    has_amount = any_contains(_AMOUNT_LABELS)
    if any_contains(_INCOME_EXPENSE_LABELS) and has_amount:
        if any_contains(("frequency", "debit", "credit", "date")):
            return "income-expense"

    if any_contains(_ASSET_LIABILITY_MARKERS):
        return "asset-liability"

    if has_amount:
        return "income-expense"

    return "unknown"
