"""Split delimited text into a rectangular-ish grid of string cells."""

from __future__ import annotations

from typing import Sequence

DELIMITER = ","
QUOTE = '"'


def tokenize_line(line: str, delimiter: str = DELIMITER) -> list[str]:
    """
    Split one line on unquoted delimiters.

    Double-quoted fields may contain the delimiter; a doubled quote inside a
    quoted field is a literal quote. An unterminated quote simply runs to the
    end of the line. Every field is stripped. Never raises: an empty line
    gives ``[""]``.
    """
    cells: list[str] = []
    current: list[str] = []
    inside_quotes = False
    i = 0
    length = len(line)

    while i < length:
        char = line[i]
        if char == QUOTE:
            if inside_quotes and i + 1 < length and line[i + 1] == QUOTE:
                current.append(QUOTE)
                i += 1
            else:
                inside_quotes = not inside_quotes
        elif char == delimiter and not inside_quotes:
            cells.append("".join(current).strip())
            current = []
        else:
            current.append(char)
        i += 1

    cells.append("".join(current).strip())
    return cells


def tokenize_text(text: str, delimiter: str = DELIMITER) -> list[list[str]]:
    """Tokenize every ``\\n``-separated line; a BOM and ``\\r`` line endings are dropped."""
    if text.startswith("\ufeff"):
        text = text[1:]
    return [tokenize_line(line.rstrip("\r"), delimiter) for line in text.split("\n")]


def is_blank_row(cells: Sequence[str]) -> bool:
    return all(not str(cell).strip() for cell in cells)


def cell_at(row: Sequence[str], index: int) -> str:
    """Missing trailing cells read as empty strings."""
    if 0 <= index < len(row):
        return row[index]
    return ""
