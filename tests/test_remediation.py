from __future__ import annotations

import os
import shlex

from core.aggregate import aggregate
from core.evaluator import evaluate
from core.models import AuditResult, PathObservation, PolicyRule, RemediationAction
from core.remediation import actions_for, generate
from core.traversal import audit_rules


def _report(*pairs):
    report = aggregate(evaluate(rule, obs) for rule, obs in pairs)
    report.meta = {"generated_at": "2026-01-01T00:00:00Z"}
    return report


def _obs(path, mode=0o644, uid=0, gid=0, kind="FILE", **kwargs):
    return PathObservation(path=path, kind=kind, mode=mode, uid=uid, gid=gid, **kwargs)


def test_shadow_gets_a_chmod_line():
    report = _report((PolicyRule("/etc/shadow", "HIGH", expected_mode=0o600), _obs("/etc/shadow", 0o640)))
    script = generate(report)

    assert len(script) == 1
    assert script.actions[0] == RemediationAction("/etc/shadow", "CHMOD", current="640", desired="600")
    assert "chmod 600 /etc/shadow" in script.text.splitlines()
    assert script.text.startswith("#!/bin/sh\n")
    assert "# Generated at: 2026-01-01T00:00:00Z" in script.text


def test_only_failures_produce_actions():
    denied = PathObservation(path="/root/x", kind="UNKNOWN", access_error="PERMISSION_DENIED")
    report = _report(
        (PolicyRule("/etc/passwd", "LOW", expected_mode=0o644), _obs("/etc/passwd", 0o644)),
        (PolicyRule("/etc/group", "LOW", expected_mode=0o644), _obs("/etc/group", 0o600)),
        (PolicyRule("/root/x", "HIGH", expected_mode=0o600), denied),
    )
    assert [r.status for r in report.results] == ["PASS", "STRICT", "ERROR"]
    script = generate(report)
    assert script.actions == ()
    assert "# No remediation actions." in script.text


def test_owner_fix_keeps_unspecified_half():
    rule = PolicyRule("/etc/shadow", "HIGH", expected_gid=42)
    (action,) = actions_for(evaluate(rule, _obs("/etc/shadow", uid=7, gid=0)))
    assert action.command_kind == "CHOWN"
    assert action.desired == "7:42"
    assert action.command() == "chown 7:42 /etc/shadow"


def test_mode_and_owner_give_two_actions_in_order():
    rule = PolicyRule("/etc/shadow", "HIGH", expected_mode=0o600, expected_uid=0, expected_gid=42)
    actions = actions_for(evaluate(rule, _obs("/etc/shadow", 0o644, uid=1, gid=1)))
    assert [a.command() for a in actions] == ["chmod 600 /etc/shadow", "chown 0:42 /etc/shadow"]


def test_at_most_only_removes_extra_bits():
    rule = PolicyRule("/srv/app.conf", "LOW", expected_mode=0o644, mode_match="AT_MOST")
    (action,) = actions_for(evaluate(rule, _obs("/srv/app.conf", 0o606)))
    assert action.desired == "604"


def test_symlink_node_owner_fix_does_not_dereference():
    link = _obs("/etc/alt", 0o777, uid=5, gid=5, kind="SYMLINK", link_target="/opt/alt")
    (action,) = actions_for(evaluate(PolicyRule("/etc/alt", "LOW", expected_uid=0), link))
    assert action.command() == "chown -h 0:5 /etc/alt"


def test_link_target_mismatch_has_no_action():
    link = _obs("/etc/localtime", 0o777, kind="SYMLINK", link_target="/elsewhere")
    result = evaluate(PolicyRule("/etc/localtime", "LOW", expected_link_target="/usr/share/zoneinfo/UTC"), link)
    assert result.status == "FAIL"
    assert actions_for(result) == []


def test_paths_are_shell_quoted():
    rule = PolicyRule("/srv/my file", "LOW", expected_mode=0o600)
    (action,) = actions_for(evaluate(rule, _obs("/srv/my file", 0o644)))
    assert action.command() == "chmod 600 '/srv/my file'"


def test_duplicate_actions_are_merged():
    result = AuditResult(
        path="/etc/shadow", status="FAIL", severity="HIGH", expected="600", found="644",
        mismatches=("mode",), expected_mode=0o600, found_mode=0o644,
    )
    report = aggregate([result, result])
    assert len(generate(report, generated_at="t")) == 1


def test_same_report_gives_identical_script():
    report = _report((PolicyRule("/etc/shadow", "HIGH", expected_mode=0o600), _obs("/etc/shadow", 0o640)))
    assert generate(report).text == generate(report).text


def test_option_like_relative_path_is_made_absolute(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    (tmp_path / "-R").write_text("x\n", encoding="utf-8")
    os.chmod(tmp_path / "-R", 0o666)

    script = generate(audit_rules([PolicyRule("-R", "HIGH", expected_mode=0o600)]), generated_at="t")

    expected = os.path.join(os.getcwd(), "-R")
    lines = script.text.splitlines()
    assert "chmod 600 -R" not in lines
    assert f"chmod 600 {shlex.quote(expected)}" in lines
    assert script.actions[0].target_path == expected
