from typing import Any
import socket

import psutil


def _family_to_label(fam: object) -> str:
    """
    Convert a psutil address family into "IPv4", "IPv6" or "MAC".

    The link-layer family differs per OS (AF_PACKET on Linux, AF_LINK on
    BSD/macOS) and may come back as an enum, so match on its name.
    """
    if fam == socket.AF_INET:
        return "IPv4"
    if fam == socket.AF_INET6:
        return "IPv6"

    name = getattr(fam, "name", None)
    if isinstance(name, str) and ("LINK" in name or "PACKET" in name):
        return "MAC"
    return str(fam)


def get_net_addr() -> list[dict[str, Any]]:
    """
    Local interfaces with their addresses and link state.

    Shape per interface:
      {
        "name": "eth0",
        "isup": True,
        "mtu": 1500,
        "addresses": [{"family": "IPv4", "address": "192.168.1.10", "netmask": "255.255.255.0"}, ...]
      }
    """
    if_addr = psutil.net_if_addrs()
    if_stats = psutil.net_if_stats()

    results: list[dict[str, Any]] = []
    for iface_name in sorted(if_addr):
        stats = if_stats.get(iface_name)
        results.append({
            "name": iface_name,
            # interfaces without stats (some virtual ones) are reported as unknown
            "isup": None if stats is None else stats.isup,
            "mtu": None if stats is None else stats.mtu,
            "addresses": [
                {
                    "family": _family_to_label(a.family),
                    "address": a.address,
                    "netmask": getattr(a, "netmask", None),
                }
                for a in if_addr[iface_name]
            ],
        })
    return results
