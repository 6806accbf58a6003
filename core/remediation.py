"""
    Remediation generator: turns failing results into a fix script.

    Generating a script is all this module does. It never runs anything and
    never touches the filesystem; executing the plan is a separate step the
    caller owns and must confirm with the operator first.

    Rules of thumb enforced here:
      - only FAIL results produce actions (ERROR means "state unknown", and
        we do not write chmod/chown commands for guesses)
      - one action per mismatched dimension: mode -> chmod, owner -> chown
      - link target and existence mismatches produce no action
      - the output order follows the report, so the same report always gives
        the same script
"""
from __future__ import annotations

import logging
import os
from datetime import datetime, timezone

from core.models import AuditReport, AuditResult, RemediationAction, RemediationScript
from core.modes import format_mode

logger = logging.getLogger(__name__)

TOOL_NAME = "perm-auditor"


def _utc_now() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def actions_for(result: AuditResult) -> list[RemediationAction]:
    """Corrective actions for one result (empty unless it is a FAIL)."""
    if result.status != "FAIL":
        return []

    actions: list[RemediationAction] = []

    if "mode" in result.mismatches and result.expected_mode is not None and result.found_mode is not None:
        if result.mode_match == "AT_MOST":
            # only drop the bits that are not allowed
            desired = result.found_mode & result.expected_mode
        else:
            desired = result.expected_mode
        actions.append(RemediationAction(
            target_path=os.path.abspath(result.path),
            command_kind="CHMOD",
            current=format_mode(result.found_mode),
            desired=format_mode(desired),
        ))

    if "owner" in result.mismatches and result.found_uid is not None and result.found_gid is not None:
        uid = result.found_uid if result.expected_uid is None else result.expected_uid
        gid = result.found_gid if result.expected_gid is None else result.expected_gid
        actions.append(RemediationAction(
            target_path=os.path.abspath(result.path),
            command_kind="CHOWN",
            current=f"{result.found_uid}:{result.found_gid}",
            desired=f"{uid}:{gid}",
            no_dereference=result.kind == "SYMLINK" and not result.via_link,
        ))

    return actions


def render_script(actions: list[RemediationAction], generated_at: str) -> str:
    lines = [
        "#!/bin/sh",
        f"# Remediation script generated by {TOOL_NAME}",
        f"# Generated at: {generated_at}",
    ]
    if actions:
        lines.append(f"# {len(actions)} action(s). Review before running.")
        lines.extend(a.command() for a in actions)
    else:
        lines.append("# No remediation actions.")
    return "\n".join(lines) + "\n"


def generate(report: AuditReport, generated_at: str | None = None) -> RemediationScript:
    """
    Build the RemediationScript for a report.

    The header time defaults to report.meta["generated_at"] so regenerating a
    script from the same report gives byte-identical output.
    """
    if generated_at is None:
        generated_at = report.meta.get("generated_at") or _utc_now()

    actions: list[RemediationAction] = []
    seen: set[tuple[str, str]] = set()
    for result in report.results:
        for action in actions_for(result):
            key = (action.target_path, action.command_kind)
            if key in seen:
                continue
            seen.add(key)
            actions.append(action)

    logger.debug("generated %d remediation action(s)", len(actions))
    return RemediationScript(
        actions=tuple(actions),
        generated_at=generated_at,
        text=render_script(actions, generated_at),
    )
