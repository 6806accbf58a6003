"""
    Traversal engine: walks the paths a rule covers and evaluates each one.

    - A rule's path may be a single path, a directory root (recursive=True)
      or a glob pattern that expands to several roots.
    - Directories are walked depth first, children in sorted order, using an
      explicit stack so deep trees do not hit the recursion limit.
    - Every node's canonical path goes into `visited` before we descend.
      A node already in `visited` is skipped without a result; that is how
      symlink loops and directories reachable twice end.
    - Filesystem failures are contained per node (ERROR results). Only an
      invalid rule raises, and it does so before anything is inspected.
"""
from __future__ import annotations

import dataclasses
import glob
import logging
from typing import Iterable

from collectors.inspector import (
    canonical_path,
    classify_error,
    describe_error,
    inspect_path,
    list_children,
)
from core.aggregate import aggregate
from core.errors import InvalidRuleError
from core.evaluator import evaluate
from core.models import AuditReport, AuditResult, PathObservation, PolicyRule

logger = logging.getLogger(__name__)


def expand_roots(pattern: str) -> list[str]:
    """Sorted glob matches, or the pattern itself when nothing matches."""
    if not glob.has_magic(pattern):
        return [pattern]
    matches = sorted(glob.glob(pattern))
    return matches or [pattern]


def _should_descend(rule: PolicyRule, observation: PathObservation) -> bool:
    if not rule.recursive or observation.access_error is not None:
        return False
    if observation.kind == "DIRECTORY":
        return True
    if observation.kind == "SYMLINK" and rule.follow_symlinks:
        resolved = observation.resolved
        return resolved is not None and resolved.kind == "DIRECTORY"
    return False


def traverse(rule: PolicyRule, visited: set[str] | None = None) -> list[AuditResult]:
    """
    Evaluate every path covered by `rule`.

    `visited` holds canonical paths and is updated in place. Each rule's
    walk should get its own set; sharing one between rules would hide
    legitimate results of the second rule.
    """
    rule.validate()
    if visited is None:
        visited = set()

    results: list[AuditResult] = []
    # Stack of paths still to inspect; reversed pushes keep sorted order.
    stack = list(reversed(expand_roots(rule.path)))

    while stack:
        path = stack.pop()
        key = canonical_path(path, rule.follow_symlinks)
        if key in visited:
            logger.debug("skipping %s: %s already visited", path, key)
            continue
        visited.add(key)

        observation = inspect_path(path, resolve_symlinks=rule.follow_symlinks)
        children: list[str] = []
        if _should_descend(rule, observation):
            try:
                children = list_children(path)
            except OSError as e:
                logger.debug("cannot list %s: %s", path, e)
                # Keep the mode we saw, but the subtree is unknown: report an error.
                observation = dataclasses.replace(
                    observation,
                    access_error=classify_error(e),
                    error_detail=f"cannot list directory ({describe_error(e)})",
                )

        results.append(evaluate(rule, observation))
        stack.extend(reversed(children))

    return results


def audit(rule: PolicyRule) -> AuditReport:
    """Audit one rule with a fresh visited set."""
    return aggregate(traverse(rule, set()))


def audit_rules(rules: Iterable[PolicyRule]) -> AuditReport:
    """
    Audit a batch of rules into one report.

    Each rule owns its visited set. A rule that fails validation is logged,
    recorded in report.rule_errors and skipped; the others still run.
    """
    results: list[AuditResult] = []
    rule_errors: list[dict] = []
    for rule in rules:
        try:
            results.extend(traverse(rule, set()))
        except InvalidRuleError as e:
            logger.warning("rule skipped: %s", e)
            rule_errors.append({"path": e.path, "error": e.reason})

    report = aggregate(results)
    report.rule_errors = rule_errors
    return report
