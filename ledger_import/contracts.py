"""
Versioned JSON envelopes for ledger-import command output.

Every command result is wrapped the same way: a ``contract`` block naming the
output schema first, the command's own fields in the middle and a
``run_summary`` describing the run last. Consumers key on
``contract.name`` / ``contract.version`` before reading anything else.
"""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Mapping, Sequence

from ledger_import import __version__

TOOL_NAME = "ledger-import"

# command -> (contract name, schema version)
COMMAND_CONTRACTS = {
    "detect":   ("ledger_import.detect", "1.0.0"),
    "parse":    ("ledger_import.parse", "1.0.0"),
    "validate": ("ledger_import.validate", "1.0.0"),
}

CONTRACT_VERSIONS = dict(COMMAND_CONTRACTS.values())


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat().replace("+00:00", "Z")


def contract_for(command: str) -> dict[str, str]:
    """Raises KeyError for a command with no published output schema."""
    name, version = COMMAND_CONTRACTS[command]
    return {"name": name, "version": version}


def build_run_summary(
    command: str,
    input_path: Path,
    *,
    status: str = "ok",
    output_path: Path | None = None,
    metrics: Mapping[str, Any] | None = None,
    warnings: Sequence[str] = (),
) -> dict[str, Any]:
    return {
        "tool": TOOL_NAME,
        "tool_version": __version__,
        "command": command,
        "status": status,
        "generated_at": utc_now_iso(),
        "input_file": str(input_path),
        "output_file": str(output_path) if output_path else None,
        "warnings_count": len(warnings),
        "warnings": list(warnings),
        "metrics": dict(metrics or {}),
    }


def wrap_payload(
    command: str,
    body: Mapping[str, Any],
    *,
    input_path: Path,
    status: str = "ok",
    output_path: Path | None = None,
    metrics: Mapping[str, Any] | None = None,
    warnings: Sequence[str] = (),
) -> dict[str, Any]:
    """Envelope ``body`` with its command's contract and a run summary."""
    payload: dict[str, Any] = {"contract": contract_for(command), "input": str(input_path)}
    payload.update((key, value) for key, value in body.items() if key not in ("contract", "run_summary"))
    payload["run_summary"] = build_run_summary(
        command,
        input_path,
        status=status,
        output_path=output_path,
        metrics=metrics,
        warnings=warnings,
    )
    return payload
