"""
column_detector.py — header-driven column type detection

Scores every header against a fixed alias catalog and returns the best
column type per index, ranked alternatives, an overall confidence and the
file layout the mapping implies.

Scoring per alias:
    exact match                      100
    header contains alias             80
    alias contains header             60
    character-overlap similarity      40   (ratio >= 0.7)

The catalog order below is the tie-break priority: when two types reach the
same score, the one listed first wins.
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import Mapping, Sequence

from ledger_import.format_classifier import classify_format
from ledger_import.logging_setup import get_logger

log = get_logger(__name__)

COLUMN_TYPES = (
    "type",
    "date",
    "description",
    "amount",
    "debit",
    "credit",
    "category",
    "account",
    "frequency",
    "name",
    "balance",
    "total",
    "ignore",
)

COLUMN_ALIASES: Mapping[str, tuple[str, ...]] = MappingProxyType({
    "type":        ("type", "txtype", "transaction type", "kind", "category type"),
    "date":        ("date", "transaction date", "posting date", "date posted", "trans date", "date of transaction"),
    "description": ("description", "memo", "detail", "transaction description", "note", "narrative", "details", "name"),
    "amount":      ("amount", "amt", "transaction amount", "value", "total", "sum"),
    "debit":       ("debit", "debit amount", "withdrawal", "debit amt", "expenses", "out"),
    "credit":      ("credit", "credit amount", "deposit", "credit amt", "income", "in"),
    "category":    ("category", "cat", "expense category", "income category", "type"),
    "account":     ("account", "account name", "account #", "account number", "acct"),
    "frequency":   ("frequency", "freq", "recurring", "period", "cadence"),
    "name":        ("name", "account name", "item name", "description", "title"),
    "balance":     ("balance", "running balance", "balance after", "account balance", "bal"),
    "total":       ("total", "subtotal", "sum", "amount total"),
    "ignore":      (),
})

COLUMN_TYPE_LABELS = MappingProxyType({
    "type": "Transaction Type (Income/Expense)",
    "date": "Date",
    "description": "Description/Memo",
    "amount": "Amount",
    "debit": "Debit Amount",
    "credit": "Credit Amount",
    "category": "Category",
    "account": "Account",
    "frequency": "Frequency",
    "name": "Name/Title",
    "balance": "Balance",
    "total": "Total",
    "ignore": "Ignore This Column",
})

SIMILARITY_THRESHOLD = 0.7
MAX_SUGGESTIONS = 3

SCORE_EXACT = 100
SCORE_HEADER_CONTAINS = 80
SCORE_ALIAS_CONTAINS = 60
SCORE_SIMILAR = 40

_SEPARATORS_RE = re.compile(r"[\s_\-/\\]+")


@dataclass(frozen=True)
class DetectedColumns:
    mapping: dict[int, str]
    confidence: int
    format: str
    suggestions: dict[int, list[str]] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "mapping": {str(index): kind for index, kind in sorted(self.mapping.items())},
            "confidence": self.confidence,
            "format": self.format,
            "suggestions": {str(index): list(kinds) for index, kinds in sorted(self.suggestions.items())},
        }


@dataclass(frozen=True)
class ColumnGuess:
    column_type: str
    score: int
    suggestions: list[str]


def normalize_header(header: str) -> str:
    return _SEPARATORS_RE.sub(" ", str(header).lower().strip()).strip()


def is_similar(text: str, alias: str, threshold: float = SIMILARITY_THRESHOLD) -> bool:
    """
    Crude character-overlap test.

    Counts the characters of the shorter string that occur anywhere in the
    longer one and divides by the longer length. Not an edit distance; the
    resulting confidence numbers depend on this exact behaviour.
    """
    if not text or not alias:
        return False
    if len(text) > len(alias):
        longer, shorter = text, alias
    else:
        longer, shorter = alias, text
    common = sum(1 for ch in shorter if ch in longer)
    return common / len(longer) >= threshold


def score_alias(normalized: str, alias: str) -> int:
    if normalized == alias:
        return SCORE_EXACT
    if alias in normalized:
        return SCORE_HEADER_CONTAINS
    if normalized in alias:
        return SCORE_ALIAS_CONTAINS
    if is_similar(normalized, alias):
        return SCORE_SIMILAR
    return 0


def score_column_type(normalized: str, column_type: str) -> int:
    return max((score_alias(normalized, alias) for alias in COLUMN_ALIASES[column_type]), default=0)


def detect_column_type(header: str) -> ColumnGuess:
    normalized = normalize_header(header)
    if not normalized:
        return ColumnGuess("ignore", 0, ["ignore"])

    scored: list[tuple[str, int]] = []
    best_type = "ignore"
    best_score = 0

    for column_type in COLUMN_TYPES:
        aliases = COLUMN_ALIASES[column_type]
        if not aliases:
            continue
        if normalized in aliases:
            return ColumnGuess(column_type, SCORE_EXACT, [column_type])

        score = score_column_type(normalized, column_type)
        if score > 0:
            scored.append((column_type, score))
            if score > best_score:
                best_score = score
                best_type = column_type

    # sorted() is stable, so equal scores keep catalog order.
    ranked = [kind for kind, _ in sorted(scored, key=lambda item: item[1], reverse=True)]
    return ColumnGuess(best_type, min(best_score, 100), ranked[:MAX_SUGGESTIONS] or [best_type])


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def detect_columns(headers: Sequence[str]) -> DetectedColumns:
    """Map every header index to a column type and classify the layout."""
    mapping: dict[int, str] = {}
    suggestions: dict[int, list[str]] = {}
    total_score = 0

    for index, header in enumerate(headers):
        guess = detect_column_type(header)
        mapping[index] = guess.column_type
        suggestions[index] = guess.suggestions
        total_score += min(guess.score, 100)

    confidence = _round_half_up(total_score / len(headers)) if headers else 0
    file_format = classify_format(mapping, headers)
    log.debug("detected %s columns as %s (%s%% confidence)", len(headers), file_format, confidence)

    return DetectedColumns(
        mapping=mapping,
        confidence=confidence,
        format=file_format,
        suggestions=suggestions,
    )


def override_column(
    detected: DetectedColumns,
    index: int,
    column_type: str,
    headers: Sequence[str] | None = None,
) -> DetectedColumns:
    """
    Reviewer correction of one mapping entry.

    Returns a new DetectedColumns. Confidence and suggestions are carried over
    unchanged (no re-scoring). When the headers are supplied the layout is
    re-classified from the edited mapping; otherwise the format is kept.
    """
    if column_type not in COLUMN_TYPES:
        raise ValueError(f"Unknown column type '{column_type}'. Choose from: {', '.join(COLUMN_TYPES)}")
    if index not in detected.mapping:
        raise ValueError(f"Column index {index} is out of range (0-{len(detected.mapping) - 1})")
    mapping = dict(detected.mapping)
    mapping[index] = column_type
    if headers is None:
        return replace(detected, mapping=mapping)
    return replace(detected, mapping=mapping, format=classify_format(mapping, headers))


MAPPING_TEMPLATES = MappingProxyType({
    "bank-statement": {0: "date", 1: "description", 2: "debit", 3: "credit", 4: "balance"},
    "financial-statement": {0: "name", 13: "total"},
    "simple": {0: "type", 1: "name", 2: "amount", 3: "frequency", 4: "category"},
})


def mapping_template(file_format: str) -> dict[int, str]:
    """Starter mapping for a known layout; empty for anything else."""
    return dict(MAPPING_TEMPLATES.get(file_format, {}))
