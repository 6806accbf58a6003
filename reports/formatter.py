"""
    Report formatting functions

    Everything the auditor produces (AuditReport, a list of AuditResults,
    RemediationScript, ScanResults) knows how to describe itself as a dict
    (to_dict) and as flat string rows (to_rows / to_row). The functions here
    only pick a format; they do not know anything about auditing.
"""
from __future__ import annotations

import csv
import io
import json
from typing import Any

from core.models import AuditReport, AuditResult, RemediationScript, ScanResults

FORMATS = ("pretty", "text", "json", "csv")

_SYMBOLS = {"PASS": "✓", "STRICT": "~", "FAIL": "✗", "ERROR": "!"}


def _as_data(obj: Any) -> Any:
    if hasattr(obj, "to_dict"):
        return obj.to_dict()
    if isinstance(obj, (list, tuple)):
        return [_as_data(x) for x in obj]
    return obj


def _as_rows(obj: Any) -> list[dict[str, str]]:
    if hasattr(obj, "to_rows"):
        return obj.to_rows()
    rows = []
    for item in obj:
        if hasattr(item, "to_row"):
            rows.append(item.to_row())
        else:
            rows.append({k: "" if v is None else str(v) for k, v in item.items()})
    return rows


def filter_rows(rows: list[dict[str, str]], columns: list[str] | None) -> list[dict[str, str]]:
    """Keep only the requested columns (all of them when columns is empty)."""
    if not columns:
        return rows
    return [{c: row[c] for c in columns if c in row} for row in rows]


def render_json(obj: Any) -> str:
    return json.dumps(_as_data(obj), indent=2, ensure_ascii=False) + "\n"


def render_csv(obj: Any, columns: list[str] | None = None) -> str:
    rows = filter_rows(_as_rows(obj), columns)
    headers = list(columns) if columns else (list(rows[0]) if rows else [])
    if not headers:
        return ""

    out = io.StringIO()
    writer = csv.DictWriter(out, fieldnames=headers, extrasaction="ignore", lineterminator="\n")
    writer.writeheader()
    writer.writerows(rows)
    return out.getvalue()


def render_text(obj: Any, columns: list[str] | None = None) -> str:
    blocks = []
    for row in filter_rows(_as_rows(obj), columns):
        blocks.append("".join(f"  {k}: {v}\n" for k, v in row.items()))
    return "\n".join(blocks)


def summary_line(report: AuditReport) -> str:
    return (
        f"Summary: {report.checked} checked, {report.passed} passed, "
        f"{report.strict} strict, {report.failed} failed, {report.errored} errors"
    )


def _pretty_result(r: AuditResult) -> str:
    line = f"{_SYMBOLS[r.status]} [{r.severity}] {r.path}"
    if r.status == "PASS":
        return f"{line} ({r.found})"
    line = f"{line} (found: {r.found}, expected: {r.expected})"
    if r.message:
        line = f"{line}\n    {r.message}"
    return line


def render_pretty(obj: Any) -> str:
    if isinstance(obj, AuditReport):
        lines = [_pretty_result(r) for r in obj.results]
        for err in obj.rule_errors:
            lines.append(f"! rule skipped for {err['path']}: {err['error']}")
        lines.append("")
        lines.append(summary_line(obj))
        return "\n".join(lines) + "\n"

    if isinstance(obj, RemediationScript):
        return obj.text

    if isinstance(obj, ScanResults):
        if obj.not_checked:
            return f"Network discovery not checked: {obj.error}\n  {obj.remediation}\n"
        lines = [
            f"{d.host or 'Unknown'} ({d.ip})"
            + (f" at {d.mac}" if d.mac else "")
            + (f" on {d.interface}" if d.interface else "")
            for d in obj.devices
        ]
        lines.append(f"{len(obj.devices)} device(s) from {obj.source} at {obj.scan_time}")
        return "\n".join(lines) + "\n"

    if isinstance(obj, (list, tuple)) and all(isinstance(x, AuditResult) for x in obj):
        return "\n".join(_pretty_result(r) for r in obj) + "\n"

    return render_text(obj)


def render(obj: Any, fmt: str = "pretty", columns: list[str] | None = None) -> str:
    """Render any auditor output in one of FORMATS."""
    if fmt == "json":
        return render_json(obj)
    if fmt == "csv":
        return render_csv(obj, columns)
    if fmt == "text":
        return render_text(obj, columns)
    if fmt == "pretty":
        return render_pretty(obj)
    raise ValueError(f"unknown output format {fmt!r} (choose from: {', '.join(FORMATS)})")
