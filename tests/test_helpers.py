from __future__ import annotations

import logging

import pytest

from helpers.logs import configure_logging
from helpers.unix import get_evidence, run_cmd, run_script


def test_missing_binary_is_rc_127():
    rc, out, err = run_cmd(["perm-auditor-definitely-not-installed"])
    assert rc == 127
    assert out == ""
    assert "command not found" in err


def test_evidence_shape():
    assert get_evidence(["ip"], 0, "out", "") == {"cmd": ["ip"], "rc": 0, "stdout": "out", "stderr": ""}


@pytest.mark.integration
def test_run_script_executes_with_sh(tmp_path):
    marker = tmp_path / "ran"
    rc = run_script(f"#!/bin/sh\ntouch '{marker}'\n", use_sudo=False)
    assert rc == 0
    assert marker.exists()


def test_configure_logging_levels(monkeypatch):
    calls = []
    monkeypatch.setattr(logging, "basicConfig", lambda **kwargs: calls.append(kwargs))

    configure_logging(verbose=True)
    configure_logging(verbose=False)

    assert [c["level"] for c in calls] == [logging.DEBUG, logging.WARNING]
    assert all(c["force"] for c in calls)
