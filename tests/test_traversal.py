from __future__ import annotations

import errno
import os

import pytest

import collectors.inspector as inspector
from core.errors import InvalidRuleError
from core.models import PolicyRule
from core.traversal import audit, audit_rules, expand_roots, traverse


def test_directory_with_one_good_and_one_bad_file(conf_tree):
    rule = PolicyRule(str(conf_tree), "MEDIUM", expected_mode=0o644, recursive=True,
                      expected_dir_mode=0o755)
    report = audit(rule)

    assert report.checked == 3
    assert report.failed == 1
    assert report.passed == 2
    assert [r.path for r in report.results] == [
        str(conf_tree),
        str(conf_tree / "good.conf"),
        str(conf_tree / "loose.conf"),
    ]
    bad = report.results[2]
    assert bad.status == "FAIL"
    assert bad.found == "666"


def test_non_recursive_rule_checks_only_the_root(conf_tree):
    rule = PolicyRule(str(conf_tree), "LOW", expected_mode=0o755)
    results = traverse(rule)
    assert len(results) == 1
    assert results[0].kind == "DIRECTORY"
    assert results[0].status == "PASS"


def test_missing_path_is_a_result_not_an_exception(tmp_path):
    rule = PolicyRule(str(tmp_path / "nope"), "HIGH", expected_mode=0o600)
    (result,) = traverse(rule)
    assert result.status == "FAIL"
    assert result.kind == "MISSING"


def test_symlink_cycle_terminates(tmp_path):
    root = tmp_path / "loop"
    (root / "sub").mkdir(parents=True)
    os.chmod(root, 0o755)
    os.chmod(root / "sub", 0o755)
    os.symlink(str(root), str(root / "sub" / "back"))

    rule = PolicyRule(str(root), "LOW", expected_mode=0o755, recursive=True, follow_symlinks=True)
    results = traverse(rule)

    # root, sub; the link resolves to root, which was already visited
    assert [r.path for r in results] == [str(root), str(root / "sub")]


def test_symlink_not_followed_is_its_own_entry(tmp_path):
    root = tmp_path / "d"
    root.mkdir()
    os.chmod(root, 0o755)
    target = root / "real.conf"
    target.write_text("x\n", encoding="utf-8")
    os.chmod(target, 0o600)
    os.symlink("real.conf", str(root / "link.conf"))

    rule = PolicyRule(str(root), "LOW", expected_mode=0o644, recursive=True, expected_dir_mode=0o755)
    results = {os.path.basename(r.path): r for r in traverse(rule)}

    assert results["link.conf"].kind == "SYMLINK"
    assert results["link.conf"].status == "PASS"
    assert results["real.conf"].status == "STRICT"


def test_followed_link_and_its_target_are_one_entry(tmp_path):
    root = tmp_path / "d"
    root.mkdir()
    os.chmod(root, 0o755)
    target = root / "a.conf"
    target.write_text("x\n", encoding="utf-8")
    os.chmod(target, 0o644)
    os.symlink("a.conf", str(root / "b.conf"))

    rule = PolicyRule(str(root), "LOW", expected_mode=0o644, recursive=True,
                      follow_symlinks=True, expected_dir_mode=0o755)
    results = traverse(rule)

    # b.conf sorts after a.conf and resolves to it
    assert [os.path.basename(r.path) for r in results] == ["d", "a.conf"]


def test_glob_expands_to_sorted_roots(make_file, tmp_path):
    make_file("b.conf", 0o644)
    make_file("a.conf", 0o640)
    make_file("c.txt", 0o777)

    report = audit(PolicyRule(str(tmp_path / "*.conf"), "LOW", expected_mode=0o644))
    assert [os.path.basename(r.path) for r in report.results] == ["a.conf", "b.conf"]
    assert report.strict == 1
    assert report.passed == 1


def test_expand_roots_without_matches_keeps_pattern(tmp_path):
    pattern = str(tmp_path / "*.none")
    assert expand_roots(pattern) == [pattern]
    assert expand_roots("/etc/passwd") == ["/etc/passwd"]


def test_unreadable_directory_is_an_error_and_not_descended(conf_tree, monkeypatch):
    real_listdir = os.listdir

    def _listdir(path):
        if os.fspath(path) == str(conf_tree):
            raise PermissionError(errno.EACCES, "Permission denied", str(path))
        return real_listdir(path)

    monkeypatch.setattr(inspector.os, "listdir", _listdir)

    rule = PolicyRule(str(conf_tree), "LOW", expected_mode=0o644, recursive=True,
                      expected_dir_mode=0o755)
    report = audit(rule)

    assert report.checked == 1
    assert report.errored == 1
    (result,) = report.results
    assert result.status == "ERROR"
    assert result.severity == "MEDIUM"
    assert "cannot list directory" in result.message


def test_denied_lstat_is_contained_per_node(conf_tree, monkeypatch):
    real_lstat = os.lstat
    denied = str(conf_tree / "good.conf")

    def _lstat(path, *args, **kwargs):
        if os.fspath(path) == denied:
            raise PermissionError(errno.EACCES, "Permission denied", denied)
        return real_lstat(path, *args, **kwargs)

    monkeypatch.setattr(inspector.os, "lstat", _lstat)

    rule = PolicyRule(str(conf_tree), "LOW", expected_mode=0o644, recursive=True,
                      expected_dir_mode=0o755)
    report = audit(rule)

    statuses = {os.path.basename(r.path): r.status for r in report.results}
    assert statuses == {"conf": "PASS", "good.conf": "ERROR", "loose.conf": "FAIL"}
    assert report.checked == report.passed + report.strict + report.failed + report.errored


def test_invalid_rule_raises_before_inspecting(tmp_path):
    with pytest.raises(InvalidRuleError):
        traverse(PolicyRule(str(tmp_path), "LOW"))


def test_audit_rules_skips_invalid_rules(make_file):
    good = make_file("ok.conf", 0o644)
    report = audit_rules([
        PolicyRule("", "LOW", expected_mode=0o644),
        PolicyRule(str(good), "LOW", expected_mode=0o644),
    ])
    assert report.checked == 1
    assert report.passed == 1
    assert report.rule_errors == [{"path": "", "error": "path is empty"}]


def test_each_rule_gets_its_own_visited_set(make_file, me):
    path = make_file("shared.conf", 0o644)
    uid, gid = me
    report = audit_rules([
        PolicyRule(str(path), "LOW", expected_mode=0o644),
        PolicyRule(str(path), "LOW", expected_uid=uid, expected_gid=gid),
    ])
    assert report.checked == 2
    assert report.is_clean


def test_nul_byte_path_is_rejected_and_the_batch_continues(make_file):
    good = make_file("ok.conf", 0o644)
    report = audit_rules([
        PolicyRule("/etc/pa\x00sswd", "LOW", expected_mode=0o644),
        PolicyRule(str(good), "LOW", expected_mode=0o644),
    ])

    assert report.checked == 1
    assert report.passed == 1
    assert report.rule_errors == [{"path": "/etc/pa\x00sswd", "error": "path contains a NUL byte"}]
