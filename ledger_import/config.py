"""Static settings for ledger-import, with a few environment overrides."""

from __future__ import annotations

import os
from datetime import date

# ── File boundary ──────────────────────────────────────────────────────────────
TEXT_FORMATS     = {".csv"}
WORKBOOK_FORMATS = {".xlsx", ".xls"}
ALL_FORMATS      = TEXT_FORMATS | WORKBOOK_FORMATS

MAX_IMPORT_BYTES = 10 * 1024 * 1024

# ── Defaults written into extracted rows ───────────────────────────────────────
DEFAULT_TYPE      = "Expense"
DEFAULT_FREQUENCY = "one-time"
DEFAULT_CATEGORY  = "Other"
DEFAULT_NAME      = "Transaction"

STATEMENT_FREQUENCY = "monthly"
STATEMENT_STATUS    = "Active"

ANCHOR_YEAR_ENV = "LEDGER_IMPORT_ANCHOR_YEAR"
LOG_LEVEL_ENV   = "LEDGER_IMPORT_LOG_LEVEL"
OUTPUT_STAMP_ENV = "LEDGER_IMPORT_OUTPUT_STAMP"


def resolve_anchor_year(explicit: int | None = None) -> int:
    """
    Year assigned to month-only statement headers such as "Jan".

    Order of precedence: the explicit argument, the LEDGER_IMPORT_ANCHOR_YEAR
    environment variable, then the current calendar year.
    """
    if explicit is not None:
        return int(explicit)
    env_val = os.environ.get(ANCHOR_YEAR_ENV, "").strip()
    if env_val:
        try:
            return int(env_val)
        except ValueError as exc:
            raise ValueError(f"{ANCHOR_YEAR_ENV} must be a 4-digit year, got {env_val!r}") from exc
    return date.today().year
