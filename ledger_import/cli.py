from __future__ import annotations

import argparse
import json
import os
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from ledger_import import __version__ as TOOL_VERSION
from ledger_import.column_detector import COLUMN_TYPE_LABELS, COLUMN_TYPES
from ledger_import.config import OUTPUT_STAMP_ENV
from ledger_import.contracts import TOOL_NAME, wrap_payload
from ledger_import.errors import FileTooLargeError, UnsupportedFormatError
from ledger_import.format_classifier import BANK_STATEMENT, FORMAT_LABELS, detect_record_kind
from ledger_import.loader import load_file
from ledger_import.logging_setup import configure_logging, get_logger
from ledger_import.pipeline import ParsedDataset, remap
from ledger_import.validation import SHAPE_BANK_STATEMENT, SHAPE_INCOME_EXPENSE, SHAPES, validate_dataset

EXIT_SUCCESS = 0
EXIT_COMMAND_ERROR = 1
EXIT_PARSE_FAILED = 2
EXIT_VALIDATE_FAILED = 5

log = get_logger(__name__)


class CliError(Exception):
    def __init__(self, message: str, code: int = EXIT_COMMAND_ERROR) -> None:
        super().__init__(message)
        self.code = code


class LedgerImportArgumentParser(argparse.ArgumentParser):
    def error(self, message: str) -> None:
        raise CliError(message, EXIT_COMMAND_ERROR)


def eprint(message: str) -> None:
    print(message, file=sys.stderr)


def emit_human(message: str, *, quiet: bool = False) -> None:
    if not quiet:
        eprint(message)


def json_dumps(payload: Any) -> str:
    return json.dumps(payload, indent=2, ensure_ascii=False, sort_keys=True)


def maybe_emit_json_stdout(payload: Any, enabled: bool) -> None:
    if enabled:
        print(json_dumps(payload))


def timestamp_token() -> str:
    override = os.environ.get(OUTPUT_STAMP_ENV)
    if override:
        return override
    return datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%SZ")


def ensure_parent(path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)


def write_text(path: Path, payload: str) -> None:
    ensure_parent(path)
    path.write_text(payload, encoding="utf-8")


def write_json(path: Path, payload: Any) -> None:
    write_text(path, json_dumps(payload))


def determine_output_path(args: argparse.Namespace, input_path: Path, suffix: str) -> Path | None:
    if getattr(args, "output", None):
        return Path(args.output)
    if getattr(args, "out_dir", None):
        return Path(args.out_dir) / f"{input_path.stem}-{suffix}-{timestamp_token()}.json"
    return None


def classify_backend_exception(exc: Exception) -> int:
    if isinstance(exc, CliError):
        return exc.code
    if isinstance(exc, (FileNotFoundError, UnsupportedFormatError, FileTooLargeError)):
        return EXIT_COMMAND_ERROR
    if isinstance(exc, (ImportError, UnicodeDecodeError)):
        return EXIT_PARSE_FAILED
    if isinstance(exc, ValueError):
        return EXIT_PARSE_FAILED
    return EXIT_COMMAND_ERROR


def parse_map_overrides(values: list[str] | None) -> list[tuple[int, str]]:
    overrides: list[tuple[int, str]] = []
    for item in values or []:
        index_text, sep, column_type = item.partition("=")
        if not sep or not index_text.strip().isdigit():
            raise CliError(f"--map expects IDX=TYPE, got '{item}'", EXIT_COMMAND_ERROR)
        column_type = column_type.strip().lower()
        if column_type not in COLUMN_TYPES:
            raise CliError(
                f"Unknown column type '{column_type}'. Choose from: {', '.join(COLUMN_TYPES)}",
                EXIT_COMMAND_ERROR,
            )
        overrides.append((int(index_text), column_type))
    return overrides


def load_dataset(args: argparse.Namespace) -> ParsedDataset:
    input_path = Path(args.input)
    if not input_path.exists():
        raise CliError(f"File not found: {input_path}", EXIT_COMMAND_ERROR)

    anchor_year = getattr(args, "anchor_year", None)
    overrides = parse_map_overrides(getattr(args, "map", None))
    dataset = load_file(input_path, anchor_year=anchor_year)
    for index, column_type in overrides:
        try:
            dataset = remap(dataset, index, column_type, anchor_year=anchor_year)
        except ValueError as exc:
            raise CliError(str(exc), EXIT_COMMAND_ERROR) from exc
        log.debug("column %s remapped to %s", index, column_type)
    return dataset


def format_label(file_format: str) -> str:
    return f"{FORMAT_LABELS.get(file_format, file_format)} ({file_format})"


def confidence_text(confidence: int | None) -> str:
    if confidence is None:
        return "[n/a]"
    if confidence >= 80:
        band = "high"
    elif confidence >= 50:
        band = "medium"
    else:
        band = "low"
    return f"{confidence}% ({band})"


# ── Text renderers ────────────────────────────────────────────────────────────

def render_detect_text(payload: dict[str, Any]) -> str:
    lines = [
        "ledger-import detect",
        f"File: {payload['input']}",
        f"Format: {format_label(payload['format'])}",
        f"Record kind: {payload['record_kind']}",
        f"Confidence: {confidence_text(payload['confidence'])}",
        "Columns:",
    ]
    for column in payload["columns"]:
        label = COLUMN_TYPE_LABELS.get(column["type"], column["type"])
        line = f"- [{column['index']}] {column['header'] or '[blank]'} -> {label}"
        alternatives = [kind for kind in column["suggestions"] if kind != column["type"]]
        if alternatives:
            line += f" (also: {', '.join(alternatives)})"
        lines.append(line)
    return "\n".join(lines) + "\n"


def render_parse_text(input_path: Path, dataset: ParsedDataset) -> str:
    lines = [
        "ledger-import parse",
        f"File: {input_path}",
        f"Format: {format_label(dataset.format)}",
        f"Confidence: {confidence_text(dataset.confidence_percent)}",
        f"Rows: {len(dataset.rows)}",
        f"Fields: {', '.join(dataset.headers) or '[none]'}",
    ]
    if dataset.warnings:
        lines.append("Warnings:")
        lines.extend(f"- {warning}" for warning in dataset.warnings)
    return "\n".join(lines) + "\n"


def render_validate_text(payload: dict[str, Any]) -> str:
    report = payload["report"]
    lines = [
        "ledger-import validate",
        f"Input: {payload['input']}",
        f"Shape: {report['shape']}",
        f"Summary: {payload['summary']}",
    ]
    if report["invalid_rows"]:
        lines.append("Invalid rows:")
        for item in report["invalid_rows"]:
            lines.append(f"- row {item['row_number']}: {'; '.join(item['errors'])}")
    return "\n".join(lines) + "\n"


# ── Commands ──────────────────────────────────────────────────────────────────

def build_detect_payload(input_path: Path, dataset: ParsedDataset) -> dict[str, Any]:
    detected = dataset.detected_columns
    headers = dataset.source_headers
    columns = [
        {
            "index": index,
            "header": header,
            "type": detected.mapping.get(index, "ignore"),
            "suggestions": list(detected.suggestions.get(index, [])),
        }
        for index, header in enumerate(headers)
    ]
    body = {
        "format": detected.format,
        "format_label": FORMAT_LABELS.get(detected.format, detected.format),
        "record_kind": detect_record_kind(headers),
        "confidence": detected.confidence,
        "columns": columns,
        "detected_columns": detected.to_dict(),
    }
    return wrap_payload(
        "detect",
        body,
        input_path=input_path,
        metrics={"columns": len(headers), "confidence": detected.confidence},
        warnings=dataset.warnings,
    )


def run_detect(args: argparse.Namespace) -> int:
    input_path = Path(args.input)
    try:
        dataset = load_dataset(args)
        payload = build_detect_payload(input_path, dataset)
        if args.json:
            maybe_emit_json_stdout(payload, True)
        else:
            emit_human(render_detect_text(payload).rstrip(), quiet=args.quiet)
        return EXIT_SUCCESS
    except Exception as exc:
        eprint(str(exc))
        return classify_backend_exception(exc)


def run_parse(args: argparse.Namespace) -> int:
    input_path = Path(args.input)
    try:
        dataset = load_dataset(args)
        output_path = determine_output_path(args, input_path, "parsed")
        payload = wrap_payload(
            "parse",
            dataset.to_dict(include_raw=args.include_raw),
            input_path=input_path,
            status="ok" if dataset.rows else "empty",
            output_path=output_path,
            metrics={
                "rows_extracted": len(dataset.rows),
                "source_rows": max(len(dataset.raw_grid) - 1, 0),
                "confidence": dataset.confidence_percent,
            },
            warnings=dataset.warnings,
        )
        if output_path is not None:
            write_json(output_path, payload)
            emit_human(f"Parsed dataset: {output_path}", quiet=args.quiet)
        if args.json:
            maybe_emit_json_stdout(payload, True)
        else:
            emit_human(render_parse_text(input_path, dataset).rstrip(), quiet=args.quiet)
        return EXIT_SUCCESS
    except Exception as exc:
        eprint(str(exc))
        return classify_backend_exception(exc)


def resolve_shape(requested: str, dataset: ParsedDataset) -> str:
    if requested != "auto":
        return requested
    return SHAPE_BANK_STATEMENT if dataset.format == BANK_STATEMENT else SHAPE_INCOME_EXPENSE


def run_validate(args: argparse.Namespace) -> int:
    input_path = Path(args.input)
    try:
        dataset = load_dataset(args)
        shape = resolve_shape(args.shape, dataset)
        report = validate_dataset(dataset, shape)
        output_path = determine_output_path(args, input_path, "validation")
        body = {
            "format": dataset.format,
            "valid": report.all_valid,
            "summary": report.summary(),
            "report": report.to_dict(),
        }
        payload = wrap_payload(
            "validate",
            body,
            input_path=input_path,
            status="ok" if report.all_valid else "invalid_rows",
            output_path=output_path,
            metrics={
                "total_rows": report.total,
                "valid_rows": len(report.valid_rows),
                "invalid_rows": len(report.invalid_rows),
            },
            warnings=dataset.warnings,
        )
        if output_path is not None:
            write_json(output_path, payload)
            emit_human(f"Validation report: {output_path}", quiet=args.quiet)
        if args.json:
            maybe_emit_json_stdout(payload, True)
        else:
            emit_human(render_validate_text(payload).rstrip(), quiet=args.quiet)
        return EXIT_SUCCESS if report.all_valid else EXIT_VALIDATE_FAILED
    except Exception as exc:
        eprint(str(exc))
        return classify_backend_exception(exc)


def run_version() -> int:
    print(TOOL_VERSION)
    return EXIT_SUCCESS


def add_common_arguments(command: argparse.ArgumentParser) -> None:
    command.add_argument("input", help="Input file path (.csv, .xlsx, .xls)")
    command.add_argument("--json", action="store_true", help="Write machine JSON to stdout")
    command.add_argument("--anchor-year", dest="anchor_year", type=int, help="Year for month-only statement headers")
    command.add_argument(
        "--map",
        action="append",
        metavar="IDX=TYPE",
        help="Override the detected type of column IDX (repeatable)",
    )
    command.add_argument("-q", "--quiet", action="store_true", help="Minimal human logs")
    command.add_argument("-v", "--verbose", action="store_true", help="Debug logging on stderr")


def build_parser() -> argparse.ArgumentParser:
    parser = LedgerImportArgumentParser(
        prog=TOOL_NAME,
        description="Import financial CSV and spreadsheet exports into normalized rows.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    detect = subparsers.add_parser("detect", help="Show detected column types and file format.")
    add_common_arguments(detect)

    parse = subparsers.add_parser("parse", help="Extract normalized rows.")
    add_common_arguments(parse)
    parse.add_argument("-o", "--out", dest="out_dir", help="Output directory")
    parse.add_argument("--output", help="Explicit JSON output path")
    parse.add_argument("--include-raw", dest="include_raw", action="store_true", help="Include the raw grid in JSON output")

    validate = subparsers.add_parser("validate", help="Validate extracted rows.")
    add_common_arguments(validate)
    validate.add_argument(
        "--shape",
        choices=["auto", *SHAPES],
        default="auto",
        help="Record shape to validate against (auto = bank-statement for bank files)",
    )
    validate.add_argument("-o", "--out", dest="out_dir", help="Output directory")
    validate.add_argument("--output", help="Explicit validation output path")

    subparsers.add_parser("version", help="Print version")
    return parser


def main(argv: list[str] | None = None) -> int:
    try:
        parser = build_parser()
        args = parser.parse_args(argv)
        if getattr(args, "verbose", False):
            configure_logging("DEBUG")
        else:
            configure_logging()
        if args.command == "detect":
            return run_detect(args)
        if args.command == "parse":
            return run_parse(args)
        if args.command == "validate":
            return run_validate(args)
        if args.command == "version":
            return run_version()
        raise CliError(f"Unknown command: {args.command}", EXIT_COMMAND_ERROR)
    except CliError as exc:
        eprint(str(exc))
        return exc.code


if __name__ == "__main__":
    raise SystemExit(main())
