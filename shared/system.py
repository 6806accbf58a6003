"""
    Host facts recorded alongside every audit report.
"""
import os
import platform
import socket
from datetime import datetime, timezone

import psutil


def get_system_info():
    """
    Identify the machine and the account the audit ran as.

    The effective uid matters when reading a report: an unprivileged run
    will show PERMISSION_DENIED errors that a root run would not.
    """
    system_info = {
        "hostname": socket.gethostname(),
        "os": platform.system(),
        "os_release": platform.release(),
        "machine": platform.machine(),
        "euid": os.geteuid() if hasattr(os, "geteuid") else None,
        "boot_time": None,
    }

    # psutil can be refused /proc access inside some sandboxes; that should
    # not cost us the whole report header.
    try:
        booted = psutil.boot_time()
    except (psutil.Error, OSError):
        booted = None
    if booted is not None:
        system_info["boot_time"] = datetime.fromtimestamp(booted, tz=timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")

    return system_info
