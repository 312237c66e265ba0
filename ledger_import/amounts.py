"""Amount, date and month-header normalization shared by extractors and validation."""

from __future__ import annotations

import math
import re
from dataclasses import dataclass
from typing import Sequence

from ledger_import.config import resolve_anchor_year

MONTH_NAMES = {
    "january": 1, "february": 2, "march": 3, "april": 4, "may": 5, "june": 6,
    "july": 7, "august": 8, "september": 9, "october": 10, "november": 11, "december": 12,
    "jan": 1, "feb": 2, "mar": 3, "apr": 4, "jun": 6, "jul": 7, "aug": 8,
    "sep": 9, "sept": 9, "oct": 10, "nov": 11, "dec": 12,
}

_MONTH_ALTERNATION = (
    r"jan(?:uary)?|feb(?:ruary)?|mar(?:ch)?|apr(?:il)?|may|june?|july?|aug(?:ust)?"
    r"|sep(?:t(?:ember)?)?|oct(?:ober)?|nov(?:ember)?|dec(?:ember)?"
)

# A whole header cell that names a month: "Jan", "January", "Jan 2025", "Sept. 2024", "Jan-25".
MONTH_HEADER_RE = re.compile(
    rf"^(?P<month>{_MONTH_ALTERNATION})\.?(?:[\s\-/',]+(?P<year>\d{{4}}|\d{{2}}))?$",
    re.IGNORECASE,
)
# A month name appearing as a word anywhere in a header line.
MONTH_WORD_RE = re.compile(rf"\b(?:{_MONTH_ALTERNATION})\b", re.IGNORECASE)

DATE_PATTERNS = (
    re.compile(r"^\d{4}-\d{2}-\d{2}"),
    re.compile(r"^\d{1,2}/\d{1,2}/\d{2,4}"),
    re.compile(r"^\d{1,2}-\d{1,2}-\d{2,4}"),
    re.compile(r"^(?:jan|feb|mar|apr|may|jun|jul|aug|sep|oct|nov|dec)", re.IGNORECASE),
)

CURRENCY_SYMBOLS = ("$", "€", "£", "¥", "₹")
NUMBER_RE = re.compile(r"^[+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?$")


def parse_number(value: object) -> float | None:
    """Strict float parse of an already-cleaned string; None for anything else."""
    text = str(value if value is not None else "").strip()
    if not NUMBER_RE.fullmatch(text):
        return None
    number = float(text)
    if not math.isfinite(number):
        return None
    return number


def parse_amount(value: object) -> float | None:
    """
    Parse a money cell such as ``"$1,250.00"``, ``"-$40"`` or ``"$(500)"``.

    Currency symbols, thousands separators and spaces are removed first, so
    the sign may sit on either side of the symbol. A value wrapped in
    parentheses is accounting notation for a negative number. Returns None
    when nothing numeric remains.
    """
    text = str(value if value is not None else "").strip()
    for symbol in CURRENCY_SYMBOLS:
        text = text.replace(symbol, "")
    text = text.replace(",", "").replace(" ", "")
    if not text:
        return None

    negative = False
    if text.startswith("(") and text.endswith(")"):
        negative = True
        text = text[1:-1]

    number = parse_number(text)
    if number is None:
        return None
    return -number if negative else number


def clean_amount_text(value: object) -> str:
    """The validator's loose cleanup: drop ``$``, ``,`` and parentheses only."""
    return re.sub(r"[$,()]", "", str(value if value is not None else "")).strip()


def format_amount(number: float) -> str:
    """Render a float the way it is written back into a row: ``5000``, ``-500``, ``12.5``."""
    if number == 0:
        return "0"
    if float(number).is_integer() and abs(number) < 1e21:
        return str(int(number))
    return repr(float(number))


def is_recognized_date(value: object) -> bool:
    text = str(value if value is not None else "").strip()
    if not text:
        return False
    return any(pattern.match(text) for pattern in DATE_PATTERNS)


def parse_month_header(header: str) -> tuple[int, int | None] | None:
    """``"Jan 2025"`` -> ``(1, 2025)``, ``"Feb-25"`` -> ``(2, 2025)``, ``"March"`` -> ``(3, None)``."""
    match = MONTH_HEADER_RE.match(str(header).strip())
    if not match:
        return None
    month = MONTH_NAMES[match.group("month").lower()]
    year = match.group("year")
    if not year:
        return month, None
    # Two-digit years are read as 20YY.
    return month, int(year) + 2000 if len(year) == 2 else int(year)


def has_month_token(text: str) -> bool:
    return bool(MONTH_WORD_RE.search(text))


@dataclass(frozen=True)
class MonthColumn:
    index: int
    label: str
    month: int
    year: int

    @property
    def iso_date(self) -> str:
        return f"{self.year:04d}-{self.month:02d}-01"


def resolve_month_columns(
    headers: Sequence[str],
    anchor_year: int | None = None,
) -> list[MonthColumn]:
    """
    Find every month-named header and pin it to a first-of-month date.

    An explicit year is used as-is and becomes the running year. A header
    without a year takes the running year (initially the anchor year); when
    such a month is not later than the previous month column the running year
    advances, so "Nov, Dec, Jan" reads as a chronological span.
    """
    columns: list[MonthColumn] = []
    running_year: int | None = None
    previous_month: int | None = None

    for index, header in enumerate(headers):
        parsed = parse_month_header(header)
        if parsed is None:
            continue
        month, year = parsed
        if year is None:
            if running_year is None:
                running_year = resolve_anchor_year(anchor_year)
            elif previous_month is not None and month <= previous_month:
                running_year += 1
            year = running_year
        else:
            running_year = year
        previous_month = month
        columns.append(MonthColumn(index=index, label=str(header).strip(), month=month, year=year))

    return columns
