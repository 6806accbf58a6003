from __future__ import annotations

from typing import Iterable

from core.models import AuditReport, AuditResult

# status -> AuditReport counter
_COUNTERS = {
    "PASS": "passed",
    "STRICT": "strict",
    "FAIL": "failed",
    "ERROR": "errored",
}


def aggregate(results: Iterable[AuditResult]) -> AuditReport:
    """
    Fold results into an AuditReport in a single pass, keeping their order.

    `failed` only counts FAIL. ERROR and STRICT have their own counters, so
    "all clear" means failed == 0 and errored == 0 (see AuditReport.is_clean).
    """
    ordered: list[AuditResult] = []
    counts = dict.fromkeys(_COUNTERS.values(), 0)
    for result in results:
        ordered.append(result)
        counts[_COUNTERS[result.status]] += 1

    return AuditReport(results=ordered, checked=len(ordered), **counts)
