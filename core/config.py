"""
    TOML rule files.

    Example:

        [[perm_rules]]
        path = "/etc/passwd"
        expected_mode = 644          # or "0o644", "rw-r--r--", "u=rw,g=r,o=r"
        importance = "Medium"
        recursive = false

        [[owner_rules]]
        path = "/etc/shadow"
        expected_uid = 0
        expected_gid = 42

        [[link_rules]]
        path = "/etc/localtime"
        expected_target = "/usr/share/zoneinfo/UTC"

    A [[rules]] entry may mix all of the keys above.

    Problems with a single entry do not stop the load: the entry is left out
    and described in RuleSet.errors, so one typo does not cancel the whole
    audit. Only an unreadable or unparsable file raises ConfigError.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import toml

from core.errors import ConfigError, InvalidRuleError, ModeParseError
from core.models import PolicyRule
from core.modes import parse_mode

logger = logging.getLogger(__name__)

_COMMON_KEYS = {"path", "importance", "recursive", "follow_symlinks", "must_exist"}
_MODE_KEYS = {"expected_mode", "expected_dir_mode", "mode_match"}
_OWNER_KEYS = {"expected_uid", "expected_gid"}
_LINK_KEYS = {"expected_target", "expected_link_target"}

TABLES: dict[str, set[str]] = {
    "rules": _COMMON_KEYS | _MODE_KEYS | _OWNER_KEYS | _LINK_KEYS,
    "perm_rules": _COMMON_KEYS | _MODE_KEYS,
    "owner_rules": _COMMON_KEYS | _OWNER_KEYS,
    "link_rules": _COMMON_KEYS | _LINK_KEYS,
}

DEFAULT_IMPORTANCE = "MEDIUM"


@dataclass
class RuleSet:
    rules: list[PolicyRule] = field(default_factory=list)
    # [{"table": ..., "index": ..., "path": ..., "error": ...}]
    errors: list[dict[str, Any]] = field(default_factory=list)
    source: str | None = None


def load_rules(path: str | Path) -> RuleSet:
    """Read a TOML rule file."""
    path = Path(path)
    try:
        data = toml.load(path)
    except OSError as e:
        raise ConfigError(f"Failed to read TOML file '{path}': {e}") from e
    except toml.TomlDecodeError as e:
        raise ConfigError(f"Failed to parse TOML file '{path}': {e}") from e
    return rules_from_mapping(data, source=str(path))


def rules_from_mapping(data: dict[str, Any], source: str | None = None) -> RuleSet:
    """Build rules from already-parsed TOML (or JSON) data."""
    ruleset = RuleSet(source=source)

    for table, allowed in TABLES.items():
        entries = data.get(table, [])
        if not isinstance(entries, list):
            ruleset.errors.append({"table": table, "index": None, "path": None,
                                   "error": f"[[{table}]] must be an array of tables"})
            continue

        for index, entry in enumerate(entries):
            rule_path = entry.get("path") if isinstance(entry, dict) else None
            try:
                rule = _build_rule(entry, allowed)
                rule.validate()
            except InvalidRuleError as e:
                ruleset.errors.append({"table": table, "index": index, "path": rule_path, "error": e.reason})
                logger.warning("%s: %s[%d] rejected: %s", source or "config", table, index, e.reason)
                continue
            ruleset.rules.append(rule)

    if not ruleset.rules and not ruleset.errors:
        logger.warning("%s: no rules found", source or "config")
    return ruleset


def _build_rule(entry: Any, allowed: set[str]) -> PolicyRule:
    if not isinstance(entry, dict):
        raise InvalidRuleError("?", "rule must be a table")

    path = entry.get("path")
    if not isinstance(path, str) or not path.strip():
        raise InvalidRuleError(str(path), "path is empty or not a string")

    unknown = sorted(set(entry) - allowed)
    if unknown:
        raise InvalidRuleError(path, f"unknown key(s): {', '.join(unknown)}")

    importance = entry.get("importance", DEFAULT_IMPORTANCE)
    if not isinstance(importance, str):
        raise InvalidRuleError(path, "importance must be a string")

    mode_match = entry.get("mode_match", "exact")
    if not isinstance(mode_match, str):
        raise InvalidRuleError(path, "mode_match must be a string")

    flags = {}
    for name, default in (("recursive", False), ("follow_symlinks", False), ("must_exist", True)):
        value = entry.get(name, default)
        if not isinstance(value, bool):
            raise InvalidRuleError(path, f"{name} must be true or false")
        flags[name] = value

    return PolicyRule(
        path=path,
        importance=importance.strip().upper(),
        expected_mode=_mode(entry, "expected_mode", path),
        expected_dir_mode=_mode(entry, "expected_dir_mode", path),
        expected_uid=entry.get("expected_uid"),
        expected_gid=entry.get("expected_gid"),
        expected_link_target=entry.get("expected_target", entry.get("expected_link_target")),
        mode_match=mode_match.strip().upper().replace("-", "_"),
        **flags,
    )


def _mode(entry: dict[str, Any], key: str, path: str) -> int | None:
    if key not in entry:
        return None
    try:
        return parse_mode(entry[key])
    except ModeParseError as e:
        raise InvalidRuleError(path, f"invalid {key} {entry[key]!r}: {e}") from e
