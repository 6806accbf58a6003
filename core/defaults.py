"""
    Built-in audit targets for common Linux system files.

    Each target is a list of PolicyRules reflecting usual distribution
    defaults. Paths that only exist on some systems (grub, btmp, ifupdown)
    use must_exist=False: when they are absent the audit reports an ERROR
    instead of claiming a policy violation.
"""
from __future__ import annotations

from core.models import PolicyRule

USER_RULES: list[PolicyRule] = [
    PolicyRule("/etc/passwd", "MEDIUM", expected_mode=0o644),
    PolicyRule("/etc/shadow", "HIGH", expected_mode=0o600),
    PolicyRule("/etc/group", "MEDIUM", expected_mode=0o644),
    PolicyRule("/etc/gshadow", "HIGH", expected_mode=0o600, must_exist=False),
    PolicyRule("/etc/sudoers", "HIGH", expected_mode=0o440),
    # directory 755, files inside 644
    PolicyRule("/etc/pam.d", "HIGH", expected_mode=0o644, recursive=True, expected_dir_mode=0o755),
]

SYS_RULES: list[PolicyRule] = [
    PolicyRule("/boot/grub/grub.cfg", "HIGH", expected_mode=0o640, must_exist=False),
    PolicyRule("/etc/fstab", "MEDIUM", expected_mode=0o644),
    PolicyRule("/etc/sysctl.conf", "MEDIUM", expected_mode=0o644, must_exist=False),
    PolicyRule("/etc/systemd", "HIGH", expected_mode=0o644, recursive=True, expected_dir_mode=0o755),
]

NET_RULES: list[PolicyRule] = [
    PolicyRule("/etc/hosts", "LOW", expected_mode=0o644),
    PolicyRule("/etc/resolv.conf", "LOW", expected_mode=0o644, follow_symlinks=True),
    PolicyRule("/etc/network/interfaces", "MEDIUM", expected_mode=0o644, must_exist=False),
]

LOG_RULES: list[PolicyRule] = [
    PolicyRule("/var/log/wtmp", "HIGH", expected_mode=0o664),
    PolicyRule("/var/log/btmp", "HIGH", expected_mode=0o660, must_exist=False),
]

TARGETS: dict[str, list[PolicyRule]] = {
    "user": USER_RULES,
    "sys": SYS_RULES,
    "net": NET_RULES,
    "log": LOG_RULES,
}


def rules_for_target(name: str) -> list[PolicyRule]:
    """Rules for a named target; "all" concatenates every target in order."""
    if name == "all":
        return [rule for rules in TARGETS.values() for rule in rules]
    try:
        return list(TARGETS[name])
    except KeyError:
        raise KeyError(f"unknown audit target {name!r} (choose from: {', '.join([*TARGETS, 'all'])})") from None
