from __future__ import annotations

import ipaddress
from datetime import datetime, timezone

from core.models import Device, ScanResults
from helpers.unix import run_cmd, get_evidence

PROC_ARP = "/proc/net/arp"

# /proc/net/arp flags value for an entry that never resolved
_INCOMPLETE = "0x0"


def _is_ip(text: str) -> bool:
    try:
        ipaddress.ip_address(text)
    except ValueError:
        return False
    return True


def _scan_time() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


# -----------------------------
# Parsers (pure, testable)
# -----------------------------
def parse_proc_arp(text: str) -> list[Device]:
    """
    Parse /proc/net/arp:

        IP address       HW type     Flags       HW address            Mask     Device
        192.168.1.1      0x1         0x2         aa:bb:cc:dd:ee:ff     *        eth0

    Incomplete entries (flags 0x0) are skipped.
    """
    devices: list[Device] = []
    for line in text.splitlines()[1:]:
        parts = line.split()
        if len(parts) < 6 or not _is_ip(parts[0]):
            continue
        if parts[2] == _INCOMPLETE:
            continue
        devices.append(Device(ip=parts[0], mac=parts[3], interface=parts[5]))
    return devices


def parse_ip_neigh(text: str) -> list[Device]:
    """
    Parse `ip neigh show`:

        192.168.1.1 dev eth0 lladdr aa:bb:cc:dd:ee:ff REACHABLE
        192.168.1.7 dev eth0 FAILED

    Lines without a link-layer address never resolved and are skipped.
    """
    devices: list[Device] = []
    for line in text.splitlines():
        tokens = line.split()
        if not tokens or not _is_ip(tokens[0]) or "lladdr" not in tokens:
            continue
        mac_at = tokens.index("lladdr") + 1
        iface = None
        if "dev" in tokens and tokens.index("dev") + 1 < len(tokens):
            iface = tokens[tokens.index("dev") + 1]
        devices.append(Device(
            ip=tokens[0],
            mac=tokens[mac_at] if mac_at < len(tokens) else None,
            interface=iface,
        ))
    return devices


def parse_arp(text: str) -> list[Device]:
    """
    Parse `arp -a` output:

        router.local (192.168.1.1) at 00:11:22:33:44:55 [ether] on en0
        ? (192.168.1.100) at 00:aa:bb:cc:dd:ee [ether] on en0

    "?" or an empty name means the host is unknown. Lines that do not look
    like an entry (headers, blanks, garbage) are skipped.
    """
    devices: list[Device] = []
    for line in text.splitlines():
        start, end = line.find("("), line.find(")")
        if start == -1 or end <= start:
            continue
        ip = line[start + 1:end].strip()
        if not _is_ip(ip):
            continue

        host = line[:start].strip()
        rest = line[end + 1:].split()

        mac = None
        if "at" in rest and rest.index("at") + 1 < len(rest):
            mac = rest[rest.index("at") + 1]
            if mac.startswith("<"):  # "<incomplete>"
                mac = None
        iface = None
        if "on" in rest and rest.index("on") + 1 < len(rest):
            iface = rest[rest.index("on") + 1]

        devices.append(Device(
            ip=ip,
            host=None if host in ("", "?") else host,
            mac=mac,
            interface=iface,
        ))
    return devices


# -----------------------------
# Collector
# -----------------------------
def get_arp_devices() -> ScanResults:
    """
    Linux: devices seen on the local network, from the neighbour table.

    Sources, first that works wins:
      - /proc/net/arp        (no external command needed)
      - ip neigh show        (iproute2)
      - arp -a               (net-tools, also gives host names)

    This only reads what the kernel already knows; it sends no packets.
    """
    scan_time = _scan_time()

    try:
        with open(PROC_ARP, "r", encoding="utf-8", errors="replace") as f:
            proc_text = f.read()
    except OSError as e:
        proc_evidence = {"path": PROC_ARP, "error": f"{type(e).__name__}: {e}"}
    else:
        return ScanResults(
            devices=parse_proc_arp(proc_text),
            scan_time=scan_time,
            source="proc",
            evidence={"path": PROC_ARP},
        )

    cmd = ["ip", "neigh", "show"]
    rc, stdout, stderr = run_cmd(cmd)
    evidence = get_evidence(cmd, rc, stdout, stderr)
    if rc == 0:
        return ScanResults(
            devices=parse_ip_neigh(stdout),
            scan_time=scan_time,
            source="ip-neigh",
            evidence=evidence,
        )

    cmd2 = ["arp", "-a"]
    rc2, out2, err2 = run_cmd(cmd2)
    evidence2 = get_evidence(cmd2, rc2, out2, err2)
    if rc2 == 0:
        return ScanResults(
            devices=parse_arp(out2),
            scan_time=scan_time,
            source="arp",
            evidence=evidence2,
        )

    return ScanResults(
        devices=[],
        scan_time=scan_time,
        not_checked=True,
        error=err2 or stderr or "could not read the neighbour table",
        remediation="Make /proc/net/arp readable or install iproute2 (ip) or net-tools (arp).",
        evidence={"proc": proc_evidence, "ip_neigh": evidence, "arp": evidence2},
    )
