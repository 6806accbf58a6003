import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from core.models import AuditReport
from core.remediation import TOOL_NAME
from shared.system import get_system_info


def build_meta(sources: list[str]) -> dict[str, Any]:
    """
    Metadata attached to a report by the CLI.

    generated_at also ends up in the header of any fix script made from the
    report, which keeps that script reproducible.
    """
    return {
        "tool": TOOL_NAME,
        "generated_at": datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ"),
        "sources": sources,
        "host": get_system_info(),
    }


def write_json_report(report: AuditReport, out_path: str | Path) -> Path:
    out_path = Path(out_path)
    out_path.parent.mkdir(parents=True, exist_ok=True)

    with out_path.open("w", encoding="utf-8") as f:
        json.dump(report.to_dict(), f, indent=2, ensure_ascii=False)
        f.write("\n")

    return out_path
