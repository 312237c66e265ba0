"""
loader.py — file boundary for ledger-import

Supports: .csv .xlsx .xls

Public API:
    dataset = load_file("path/to/statement.csv")
    dataset = load_bytes("upload.xlsx", raw_bytes)

Dispatch is by filename extension and happens before any bytes are parsed.
The size limit lives here, at the caller boundary, not inside the pipeline.

Raises:
    FileNotFoundError       the path does not exist
    UnsupportedFormatError  the extension is not .csv/.xlsx/.xls
    FileTooLargeError       the input exceeds MAX_IMPORT_BYTES
    EmptyInputError         nothing to parse
    UnreadableFileError     the workbook could not be opened
    ImportError             .xls input without xlrd installed
"""

from __future__ import annotations

import io
from pathlib import Path

import chardet

from ledger_import import config
from ledger_import.errors import FileTooLargeError, UnsupportedFormatError
from ledger_import.logging_setup import get_logger
from ledger_import.pipeline import ParsedDataset, parse_text, parse_workbook

log = get_logger(__name__)


# ══════════════════════════════════════════════════════════════════════════════
# ENCODING DETECTION
# ══════════════════════════════════════════════════════════════════════════════

def detect_encoding_info(raw: bytes) -> dict:
    """
    Detect encoding from raw bytes.

    Returns dict with: detected, confidence, is_utf8, suspicious_chars.
    """
    result     = chardet.detect(raw)
    detected   = result.get("encoding") or "unknown"
    confidence = round(result.get("confidence") or 0.0, 2)
    is_utf8    = detected.upper().replace("-", "") in ("UTF8", "ASCII", "UTF8SIG")

    suspicious: list[str] = []
    if not is_utf8:
        for row_idx, line in enumerate(raw.split(b"\n")[:100], start=1):
            try:
                line.decode("utf-8")
            except UnicodeDecodeError as e:
                bad_byte = line[e.start : e.end]
                suspicious.append(
                    f"row {row_idx}: byte {bad_byte!r} at position {e.start}"
                )

    return {
        "detected":         detected,
        "confidence":       confidence,
        "is_utf8":          is_utf8,
        "suspicious_chars": suspicious[:10],
    }


def read_text_safely(raw: bytes, preferred_encoding: str) -> str:
    """
    Decode raw bytes line-by-line.

    Strategy per line:
      1. Try UTF-8
      2. Try preferred_encoding (chardet result)
      3. Try latin-1
      4. CP1252 with replace (never crashes)

    Embedded null bytes are stripped.
    """
    decoded_lines: list[str] = []
    for raw_line in raw.split(b"\n"):
        decoded: str | None = None
        for enc in ("utf-8", preferred_encoding, "latin-1"):
            if not enc or enc == "unknown":
                continue
            try:
                decoded = raw_line.decode(enc)
                break
            except (LookupError, UnicodeDecodeError):
                continue
        if decoded is None:
            decoded = raw_line.decode("cp1252", errors="replace")
        decoded_lines.append(decoded.replace("\x00", ""))
    return "\n".join(decoded_lines)


# ══════════════════════════════════════════════════════════════════════════════
# FORMAT LOADERS
# ══════════════════════════════════════════════════════════════════════════════

def _check_supported(filename: str) -> str:
    suffix = Path(filename).suffix.lower()
    if suffix not in config.ALL_FORMATS:
        supported = ", ".join(sorted(config.ALL_FORMATS))
        raise UnsupportedFormatError(
            f"Unsupported format '{suffix or '[missing extension]'}'. Supported: {supported}"
        )
    return suffix


def _check_size(size: int) -> None:
    if size > config.MAX_IMPORT_BYTES:
        limit_mb = config.MAX_IMPORT_BYTES / (1024 * 1024)
        raise FileTooLargeError(
            f"File is too large ({size:,} bytes); the import limit is {limit_mb:g} MB"
        )


def _load_text(raw: bytes, anchor_year: int | None) -> ParsedDataset:
    enc_info = detect_encoding_info(raw)
    enc      = enc_info["detected"] if enc_info["detected"] != "unknown" else "utf-8"
    text     = read_text_safely(raw, enc)
    log.debug("decoded csv as %s (confidence %s)", enc, enc_info["confidence"])

    decode_warnings = []
    if enc_info["suspicious_chars"]:
        decode_warnings.append(
            f"File is not UTF-8 (detected {enc}); {len(enc_info['suspicious_chars'])} "
            "lines were decoded with a fallback encoding"
        )
    return parse_text(text, anchor_year=anchor_year, warnings=decode_warnings)


def _load_workbook(raw: bytes, suffix: str, anchor_year: int | None) -> ParsedDataset:
    # .xls requires xlrd; give a clear error if missing.
    if suffix == ".xls":
        try:
            import xlrd  # noqa: F401
        except ImportError:
            raise ImportError(
                ".xls files require xlrd — run: pip install xlrd"
            )
    return parse_workbook(io.BytesIO(raw), anchor_year=anchor_year)


# ══════════════════════════════════════════════════════════════════════════════
# PUBLIC API
# ══════════════════════════════════════════════════════════════════════════════

def load_bytes(
    filename: str,
    raw: bytes,
    *,
    anchor_year: int | None = None,
) -> ParsedDataset:
    """Parse an uploaded file's bytes; ``filename`` only selects the parser."""
    suffix = _check_supported(filename)
    _check_size(len(raw))

    if suffix in config.TEXT_FORMATS:
        return _load_text(raw, anchor_year)
    return _load_workbook(raw, suffix, anchor_year)


def load_file(
    path: "str | Path",
    *,
    anchor_year: int | None = None,
) -> ParsedDataset:
    """
    Load a .csv, .xlsx or .xls file into a ParsedDataset.

    Args:
        path:        Path to the file (str or Path).
        anchor_year: Year for month-only statement headers such as "Jan".
                     None = LEDGER_IMPORT_ANCHOR_YEAR or the current year.
    """
    path   = Path(path)
    suffix = _check_supported(path.name)

    if not path.exists():
        raise FileNotFoundError(f"File not found: {path}")

    _check_size(path.stat().st_size)
    log.debug("loading %s as %s", path, suffix)
    return load_bytes(path.name, path.read_bytes(), anchor_year=anchor_year)
