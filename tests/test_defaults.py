from __future__ import annotations

import pytest

from core.defaults import TARGETS, rules_for_target


@pytest.mark.parametrize("name", [*TARGETS, "all"])
def test_builtin_rules_are_valid(name):
    rules = rules_for_target(name)
    assert rules
    for rule in rules:
        rule.validate()


def test_all_is_every_target_in_order():
    expected = [rule for name in TARGETS for rule in rules_for_target(name)]
    assert rules_for_target("all") == expected


def test_shadow_default():
    shadow = next(r for r in rules_for_target("user") if r.path == "/etc/shadow")
    assert shadow.expected_mode == 0o600
    assert shadow.importance == "HIGH"


def test_returned_list_is_a_copy():
    rules = rules_for_target("log")
    rules.clear()
    assert rules_for_target("log")


def test_unknown_target():
    with pytest.raises(KeyError):
        rules_for_target("kernel")
