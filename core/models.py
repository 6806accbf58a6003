# core/models.py
from __future__ import annotations

import shlex
from dataclasses import dataclass, field, asdict
from typing import Literal, Any

from core.errors import InvalidRuleError
from core.modes import MAX_MODE, format_mode

Importance = Literal["LOW", "MEDIUM", "HIGH", "CRITICAL"]
Severity = Literal["NONE", "LOW", "MEDIUM", "HIGH", "CRITICAL"]
Status = Literal["PASS", "FAIL", "STRICT", "ERROR"]
Kind = Literal["FILE", "DIRECTORY", "SYMLINK", "MISSING", "UNKNOWN"]
AccessError = Literal["PERMISSION_DENIED", "NOT_FOUND", "OTHER"]
ModeMatch = Literal["EXACT", "AT_MOST"]
CommandKind = Literal["CHMOD", "CHOWN"]

# Ordered from least to most severe; index() doubles as a rank.
IMPORTANCE_LEVELS: tuple[str, ...] = ("LOW", "MEDIUM", "HIGH", "CRITICAL")
SEVERITY_LEVELS: tuple[str, ...] = ("NONE", "LOW", "MEDIUM", "HIGH", "CRITICAL")
STATUSES: tuple[str, ...] = ("PASS", "FAIL", "STRICT", "ERROR")
MODE_MATCHES: tuple[str, ...] = ("EXACT", "AT_MOST")


def severity_for(status: Status, importance: Importance) -> Severity:
    """
    Severity is derived, never assigned: it only depends on the status and
    the importance of the rule that produced it.

      PASS   -> NONE
      STRICT -> LOW (tighter than required is not a regression)
      FAIL   -> the rule's importance
      ERROR  -> the rule's importance, but at least MEDIUM
    """
    if status == "PASS":
        return "NONE"
    if status == "STRICT":
        return "LOW"
    if status == "ERROR":
        return max(importance, "MEDIUM", key=SEVERITY_LEVELS.index)
    return importance


@dataclass(frozen=True)
class PolicyRule:
    path: str
    importance: Importance
    expected_mode: int | None = None
    expected_uid: int | None = None
    expected_gid: int | None = None
    expected_link_target: str | None = None
    recursive: bool = False
    follow_symlinks: bool = False
    mode_match: ModeMatch = "EXACT"
    must_exist: bool = True
    expected_dir_mode: int | None = None

    @property
    def checks_owner(self) -> bool:
        return self.expected_uid is not None or self.expected_gid is not None

    def mode_for(self, kind: Kind) -> int | None:
        """Expected mode for an entry of the given kind."""
        if kind == "DIRECTORY" and self.expected_dir_mode is not None:
            return self.expected_dir_mode
        return self.expected_mode

    def validate(self) -> None:
        """Raise InvalidRuleError if the rule cannot be audited as written."""
        if not isinstance(self.path, str) or not self.path.strip():
            raise InvalidRuleError(str(self.path), "path is empty")
        if "\x00" in self.path:
            raise InvalidRuleError(self.path, "path contains a NUL byte")
        if self.importance not in IMPORTANCE_LEVELS:
            raise InvalidRuleError(self.path, f"unknown importance {self.importance!r}")
        if self.mode_match not in MODE_MATCHES:
            raise InvalidRuleError(self.path, f"unknown mode match {self.mode_match!r}")

        if (self.expected_mode is None and self.expected_dir_mode is None
                and not self.checks_owner and self.expected_link_target is None):
            raise InvalidRuleError(self.path, "rule has nothing to compare")

        for name in ("expected_mode", "expected_dir_mode"):
            value = getattr(self, name)
            if value is None:
                continue
            if isinstance(value, bool) or not isinstance(value, int) or not 0 <= value <= MAX_MODE:
                raise InvalidRuleError(self.path, f"{name} must be between 0 and 7777 (octal)")

        for name in ("expected_uid", "expected_gid"):
            value = getattr(self, name)
            if value is None:
                continue
            if isinstance(value, bool) or not isinstance(value, int) or value < 0:
                raise InvalidRuleError(self.path, f"{name} must be a non-negative integer")

        if self.expected_link_target is not None:
            if not isinstance(self.expected_link_target, str) or not self.expected_link_target:
                raise InvalidRuleError(self.path, "expected_link_target must be a non-empty string")
            if self.recursive:
                raise InvalidRuleError(self.path, "a link target cannot be expected of a recursive walk")
            if self.follow_symlinks:
                raise InvalidRuleError(self.path, "a link target cannot be checked while following symlinks")

        if self.expected_dir_mode is not None and not self.recursive:
            raise InvalidRuleError(self.path, "expected_dir_mode only applies to recursive rules")

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        for name in ("expected_mode", "expected_dir_mode"):
            if data[name] is not None:
                data[name] = format_mode(data[name])
        return data


@dataclass(frozen=True)
class PathObservation:
    """What a path looked like at the moment it was inspected."""
    path: str
    kind: Kind
    mode: int | None = None
    uid: int | None = None
    gid: int | None = None
    link_target: str | None = None
    access_error: AccessError | None = None
    error_detail: str | None = None
    # Only set for symlinks inspected with resolution enabled.
    resolved: PathObservation | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "path": self.path,
            "kind": self.kind,
            "mode": None if self.mode is None else format_mode(self.mode),
            "uid": self.uid,
            "gid": self.gid,
            "link_target": self.link_target,
            "access_error": self.access_error,
            "error_detail": self.error_detail,
            "resolved": None if self.resolved is None else self.resolved.to_dict(),
        }


@dataclass(frozen=True)
class AuditResult:
    path: str
    status: Status
    severity: Severity
    expected: str
    found: str
    message: str | None = None
    kind: Kind = "FILE"
    importance: Importance = "LOW"
    mismatches: tuple[str, ...] = ()
    mode_match: ModeMatch = "EXACT"
    expected_mode: int | None = None
    found_mode: int | None = None
    expected_uid: int | None = None
    expected_gid: int | None = None
    found_uid: int | None = None
    found_gid: int | None = None
    expected_link_target: str | None = None
    found_link_target: str | None = None
    # mode/owner were read from the target of a followed symlink
    via_link: bool = False

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["mismatches"] = list(self.mismatches)
        for name in ("expected_mode", "found_mode"):
            if data[name] is not None:
                data[name] = format_mode(data[name])
        return data

    def to_row(self) -> dict[str, str]:
        """Flat, string-only view used by the csv and text renderers."""
        return {
            "path": self.path,
            "kind": self.kind,
            "status": self.status,
            "severity": self.severity,
            "importance": self.importance,
            "expected": self.expected,
            "found": self.found,
            "message": self.message or "",
        }


@dataclass
class AuditReport:
    results: list[AuditResult]
    checked: int = 0
    passed: int = 0
    strict: int = 0
    failed: int = 0
    errored: int = 0
    # Rules rejected before traversal: [{"path": ..., "error": ...}]
    rule_errors: list[dict[str, Any]] = field(default_factory=list)
    meta: dict[str, Any] = field(default_factory=dict)

    @property
    def is_clean(self) -> bool:
        return self.failed == 0 and self.errored == 0

    def summary(self) -> dict[str, int]:
        return {
            "checked": self.checked,
            "passed": self.passed,
            "strict": self.strict,
            "failed": self.failed,
            "errored": self.errored,
        }

    def to_dict(self) -> dict[str, Any]:
        return {
            "meta": self.meta,
            "summary": self.summary(),
            "clean": self.is_clean,
            "rule_errors": self.rule_errors,
            "results": [r.to_dict() for r in self.results],
        }

    def to_rows(self) -> list[dict[str, str]]:
        return [r.to_row() for r in self.results]


@dataclass(frozen=True)
class RemediationAction:
    target_path: str
    command_kind: CommandKind
    current: str
    desired: str
    # chown on a symlink node must not touch the link's target
    no_dereference: bool = False

    def command(self) -> str:
        path = shlex.quote(self.target_path)
        if self.command_kind == "CHMOD":
            return f"chmod {self.desired} {path}"
        flag = "-h " if self.no_dereference else ""
        return f"chown {flag}{self.desired} {path}"

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["command"] = self.command()
        return data


@dataclass(frozen=True)
class RemediationScript:
    actions: tuple[RemediationAction, ...]
    generated_at: str
    text: str

    def __len__(self) -> int:
        return len(self.actions)

    def to_dict(self) -> dict[str, Any]:
        return {
            "generated_at": self.generated_at,
            "actions": [a.to_dict() for a in self.actions],
            "text": self.text,
        }

    def to_rows(self) -> list[dict[str, str]]:
        return [
            {
                "path": a.target_path,
                "kind": a.command_kind,
                "current": a.current,
                "desired": a.desired,
                "command": a.command(),
            }
            for a in self.actions
        ]


@dataclass
class Device:
    ip: str
    host: str | None = None
    mac: str | None = None
    interface: str | None = None

    def to_row(self) -> dict[str, str]:
        return {
            "ip": self.ip,
            "host": self.host or "Unknown",
            "mac": self.mac or "",
            "interface": self.interface or "",
        }


@dataclass
class ScanResults:
    devices: list[Device]
    scan_time: str
    source: str | None = None
    not_checked: bool = False
    error: str | None = None
    remediation: str | None = None
    evidence: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    def to_rows(self) -> list[dict[str, str]]:
        return [d.to_row() for d in self.devices]
