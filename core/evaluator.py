"""
    Rule evaluator: compares a PolicyRule with a PathObservation.

    evaluate() is a pure function. It does not touch the filesystem, so the
    same rule and observation always give the same AuditResult.
"""
from __future__ import annotations

from typing import Literal

from core.models import (
    AuditResult,
    ModeMatch,
    PathObservation,
    PolicyRule,
    Status,
    severity_for,
)
from core.modes import format_mode, is_world_writable, mode_mask

ModeOutcome = Literal["MATCH", "STRICTER", "MISMATCH"]

_ACCESS_LABELS = {
    "PERMISSION_DENIED": "permission denied",
    "NOT_FOUND": "missing",
    "OTHER": "unreadable",
}


def compare_mode(expected: int, found: int, mode_match: ModeMatch) -> ModeOutcome:
    """
    Bitwise comparison of two modes.

    EXACT:   equal is a match, a strict subset of the expected bits is
             STRICTER, anything else (any extra bit) is a mismatch.
    AT_MOST: any subset of the expected bits is a match.
    """
    mask = mode_mask(expected)
    expected &= mask
    found &= mask
    if found == expected:
        return "MATCH"
    if found & ~expected == 0:
        return "STRICTER" if mode_match == "EXACT" else "MATCH"
    return "MISMATCH"


def owner_spec(uid: int | None, gid: int | None) -> str:
    """chown-style owner text: "0:42", "0" (uid only) or ":42" (gid only)."""
    if gid is None:
        return str(uid)
    if uid is None:
        return f":{gid}"
    return f"{uid}:{gid}"


def _describe(values: dict[str, str]) -> str:
    if not values:
        return ""
    if len(values) == 1:
        return next(iter(values.values()))
    return ", ".join(f"{k}={v}" for k, v in values.items())


def _expectations(rule: PolicyRule, kind) -> dict[str, str]:
    expected: dict[str, str] = {}
    mode = rule.mode_for(kind)
    if mode is not None:
        expected["mode"] = format_mode(mode)
    if rule.checks_owner:
        expected["owner"] = owner_spec(rule.expected_uid, rule.expected_gid)
    if rule.expected_link_target is not None:
        expected["link_target"] = rule.expected_link_target
    return expected


def _unreachable(rule: PolicyRule, observation: PathObservation,
                 problem: PathObservation, via_link: bool = False) -> AuditResult:
    """Result for a path whose state could not be observed."""
    missing = problem.access_error == "NOT_FOUND"
    status: Status = "FAIL" if missing and rule.must_exist else "ERROR"

    label = _ACCESS_LABELS.get(problem.access_error or "OTHER", "unreadable")
    if via_link:
        label = f"link target {label}"
        message = f"symlink target {problem.path} could not be inspected"
    elif missing:
        message = "path does not exist"
    else:
        message = "path could not be inspected"
    if problem.error_detail:
        message = f"{message} ({problem.error_detail})"

    expected = _expectations(rule, problem.kind)
    return AuditResult(
        path=observation.path,
        status=status,
        severity=severity_for(status, rule.importance),
        expected=_describe(expected),
        found=label,
        message=message,
        kind=observation.kind,
        importance=rule.importance,
        mismatches=("existence",) if status == "FAIL" else (),
        mode_match=rule.mode_match,
        expected_mode=rule.mode_for(problem.kind),
        found_mode=observation.mode if observation.kind != "SYMLINK" else None,
        expected_uid=rule.expected_uid,
        expected_gid=rule.expected_gid,
        expected_link_target=rule.expected_link_target,
        found_link_target=observation.link_target,
    )


def evaluate(rule: PolicyRule, observation: PathObservation) -> AuditResult:
    if observation.access_error is not None:
        return _unreachable(rule, observation, observation)

    # Which observation carries the mode/owner being audited.
    subject = observation
    is_link = observation.kind == "SYMLINK"
    if is_link and rule.follow_symlinks:
        resolved = observation.resolved
        if resolved is None or resolved.access_error is not None:
            return _unreachable(rule, observation, resolved or observation, via_link=True)
        subject = resolved

    expected: dict[str, str] = {}
    found: dict[str, str] = {}
    mismatches: list[str] = []
    notes: list[str] = []
    stricter = False

    expected_mode = rule.mode_for(subject.kind)
    found_mode = None
    # Permission bits of a link node mean nothing on Linux (always 777).
    if expected_mode is not None and not (is_link and not rule.follow_symlinks):
        found_mode = subject.mode & mode_mask(expected_mode)
        expected["mode"] = format_mode(expected_mode)
        found["mode"] = format_mode(found_mode)
        outcome = compare_mode(expected_mode, subject.mode, rule.mode_match)
        if outcome == "MISMATCH":
            mismatches.append("mode")
            notes.append(f"mode {found['mode']} does not satisfy {expected['mode']}")
            if is_world_writable(found_mode):
                notes.append("world-writable")
        elif outcome == "STRICTER":
            stricter = True
            notes.append(f"mode {found['mode']} is stricter than required {expected['mode']}")
    else:
        if expected_mode is not None:
            expected["mode"] = format_mode(expected_mode)
            found["mode"] = "not compared (symlink)"
            notes.append("symlink node: mode not compared")
        expected_mode = None

    if rule.checks_owner:
        expected["owner"] = owner_spec(rule.expected_uid, rule.expected_gid)
        found["owner"] = owner_spec(subject.uid, subject.gid)
        uid_ok = rule.expected_uid is None or rule.expected_uid == subject.uid
        gid_ok = rule.expected_gid is None or rule.expected_gid == subject.gid
        if not (uid_ok and gid_ok):
            mismatches.append("owner")
            notes.append(f"owner {found['owner']} does not match {expected['owner']}")

    if rule.expected_link_target is not None:
        expected["link_target"] = rule.expected_link_target
        if not is_link:
            found["link_target"] = "not a symlink"
            mismatches.append("link_target")
            notes.append("expected a symlink")
        else:
            found["link_target"] = observation.link_target or ""
            if observation.link_target != rule.expected_link_target:
                mismatches.append("link_target")
                notes.append(f"link points to {observation.link_target}")

    if mismatches:
        status: Status = "FAIL"
    elif stricter:
        status = "STRICT"
    else:
        status = "PASS"

    return AuditResult(
        path=observation.path,
        status=status,
        severity=severity_for(status, rule.importance),
        expected=_describe(expected),
        found=_describe(found),
        message="; ".join(notes) or None,
        kind=observation.kind,
        importance=rule.importance,
        mismatches=tuple(mismatches),
        mode_match=rule.mode_match,
        expected_mode=expected_mode,
        found_mode=found_mode,
        expected_uid=rule.expected_uid,
        expected_gid=rule.expected_gid,
        found_uid=subject.uid,
        found_gid=subject.gid,
        expected_link_target=rule.expected_link_target,
        found_link_target=observation.link_target,
        via_link=subject is not observation,
    )
