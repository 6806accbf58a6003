import logging
import os
import subprocess
import tempfile

logger = logging.getLogger(__name__)


def run_cmd(cmd: list[str], timeout_s: int = 10) -> tuple[int, str, str]:
    """
    Run a command and return:
      - return code (rc)
      - stdout (string)
      - stderr (string)

    Output is captured so callers can keep it as evidence next to whatever
    they parsed out of it. A missing binary comes back as rc 127 instead of
    an exception, the same way a shell would report it.
    """
    try:
        p = subprocess.run(
            cmd,
            text=True,
            capture_output=True,
            timeout=timeout_s,
        )
    except FileNotFoundError:
        return 127, "", f"command not found: {cmd[0]}"
    except subprocess.TimeoutExpired:
        return 124, "", f"timed out after {timeout_s}s: {' '.join(cmd)}"

    return p.returncode, (p.stdout or "").strip(), (p.stderr or "").strip()


def get_evidence(cmd, rc, stdout, stderr):

    return {
        "cmd": cmd,
        "rc": rc,
        "stdout": stdout,
        "stderr": stderr
    }


def run_script(script_text: str, use_sudo: bool = True) -> int:
    """
    Execute a remediation script with /bin/sh and return its exit code.

    This is the hand-off point for generated fix scripts. It runs whatever
    it is given, so callers must have the operator confirm the script
    first; main.py asks twice and only when attached to a terminal.
    """
    fd, script_path = tempfile.mkstemp(prefix="perm-auditor-fix-", suffix=".sh")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(script_text)
        os.chmod(script_path, 0o700)

        cmd = ["sh", script_path]
        if use_sudo and os.geteuid() != 0:
            cmd = ["sudo", *cmd]

        logger.info("running remediation script: %s", " ".join(cmd))
        return subprocess.run(cmd).returncode
    finally:
        os.unlink(script_path)
