from __future__ import annotations

import os
import re
import subprocess
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Set, Tuple

from idkspot.blocklist import is_mac, normalize_mac
from idkspot.engine.hostapd_cli import create_ap_conf_dirs


@dataclass(frozen=True)
class ConnectedDevice:
    mac: str
    hostname: str = ""
    ip: Optional[str] = None
    source: str = "iw"  # iw | neigh

    def as_dict(self) -> Dict[str, Any]:
        return asdict(self)


_STATION_RE = re.compile(r"Station\s+([0-9A-Fa-f]{2}(?::[0-9A-Fa-f]{2}){5})")
_DEAD_NEIGH_STATES = {"FAILED", "INCOMPLETE"}

DEFAULT_LEASE_FILES = (
    "/var/lib/misc/dnsmasq.leases",
    "/var/lib/dnsmasq/dnsmasq.leases",
    "/var/run/dnsmasq.leases",
    "/run/dnsmasq.leases",
)


def _run(cmd: List[str], timeout_s: float) -> Tuple[int, str, str]:
    """
    Run a command with a hard timeout so a hung tool cannot stall polling.
    Returns (returncode, stdout, stderr).
    """
    try:
        p = subprocess.run(
            cmd,
            text=True,
            capture_output=True,
            timeout=timeout_s,
            env={**os.environ, "LC_ALL": "C", "LANG": "C"},
        )
        return p.returncode, (p.stdout or "").strip(), (p.stderr or "").strip()
    except subprocess.TimeoutExpired as e:
        out = (e.stdout or "").strip() if isinstance(e.stdout, str) else ""
        err = (e.stderr or "").strip() if isinstance(e.stderr, str) else ""
        return 124, out, err
    except Exception as e:
        return 127, "", f"{type(e).__name__}: {e}"


def parse_station_macs(station_dump: str) -> List[str]:
    """
    MACs from `iw dev <if> station dump` blocks (``Station <mac> (on <if>)``),
    canonicalized and deduplicated in first-seen order.
    """
    seen: List[str] = []
    for line in station_dump.splitlines():
        m = _STATION_RE.search(line)
        if not m:
            continue
        mac = normalize_mac(m.group(1))
        if mac not in seen:
            seen.append(mac)
    return seen


def parse_ip_neigh(text: str) -> List[Dict[str, Optional[str]]]:
    entries: List[Dict[str, Optional[str]]] = []
    for raw in text.splitlines():
        parts = raw.strip().split()
        if not parts:
            continue

        ip = parts[0]
        dev = None
        mac = None
        state = None

        if "dev" in parts:
            idx = parts.index("dev")
            if idx + 1 < len(parts):
                dev = parts[idx + 1]

        if "lladdr" in parts:
            idx = parts.index("lladdr")
            if idx + 1 < len(parts) and is_mac(parts[idx + 1]):
                mac = normalize_mac(parts[idx + 1])

        if parts[-1].isupper() and parts[-1].isalpha():
            state = parts[-1]

        entries.append({"ip": ip, "dev": dev, "mac": mac, "state": state})
    return entries


def lease_files(configured: Optional[str] = None) -> List[Path]:
    """
    Candidate dnsmasq lease files in lookup order: the configured path,
    create_ap's per-run conf dirs, then well-known system locations.
    """
    out: List[Path] = []
    if configured and configured.strip():
        out.append(Path(configured.strip()))
    for conf_dir in create_ap_conf_dirs():
        out.append(conf_dir / "dnsmasq.leases")
    out.extend(Path(p) for p in DEFAULT_LEASE_FILES)
    try:
        out.extend(sorted(Path("/var/lib/NetworkManager").glob("dnsmasq-*.leases")))
    except OSError:
        pass
    return out


def lookup_hostname(mac: str, paths: Iterable[Path]) -> str:
    """
    dnsmasq.leases format: <expiry> <mac> <ip> <hostname> <clientid>
    The first file holding the MAC decides; '*' means the client sent no name.
    """
    target = mac.lower()
    for path in paths:
        try:
            raw = path.read_text(encoding="utf-8", errors="replace")
        except (FileNotFoundError, IsADirectoryError, PermissionError):
            continue
        for line in raw.splitlines():
            parts = line.split()
            if len(parts) < 4:
                continue
            if parts[1].lower() == target:
                return "" if parts[3] == "*" else parts[3]
    return ""


def _station_dump(interface: str) -> Tuple[Optional[List[str]], str]:
    rc, stdout, stderr = _run(["iw", "dev", interface, "station", "dump"], timeout_s=1.2)
    if rc != 0:
        return None, f"iw_station_dump_failed(rc={rc}):{stderr[:120]}"
    return parse_station_macs(stdout), ""


def _neighbors(interface: str) -> Tuple[List[Dict[str, Optional[str]]], str]:
    rc, stdout, stderr = _run(["ip", "neigh", "show", "dev", interface], timeout_s=0.8)
    if rc != 0:
        return [], f"ip_neigh_failed(rc={rc}):{stderr[:120]}"
    return parse_ip_neigh(stdout), ""


def poll_devices(
    interface: str,
    blocked: Set[str],
    leases_file: Optional[str] = None,
    warnings: Optional[List[str]] = None,
) -> List[ConnectedDevice]:
    """
    One snapshot of the stations on `interface`, minus blocked MACs.
    Falls back to the neighbor table on `interface` only when the station
    dump yields nothing.
    """
    if warnings is None:
        warnings = []
    blocked_norm = {normalize_mac(m) for m in blocked if is_mac(m)}
    paths = lease_files(leases_file)

    devices: List[ConnectedDevice] = []
    macs, warn = _station_dump(interface)
    if warn:
        warnings.append(warn)
    for mac in macs or []:
        if mac in blocked_norm:
            continue
        devices.append(ConnectedDevice(mac=mac, hostname=lookup_hostname(mac, paths), source="iw"))

    if devices:
        return devices

    seen: Set[str] = set()
    entries, warn = _neighbors(interface)
    if warn:
        warnings.append(warn)
    for entry in entries:
        mac = entry.get("mac")
        if not mac or mac in seen or mac in blocked_norm:
            continue
        # Uplink neighbors (the home gateway) are not hotspot clients.
        if entry.get("dev") and entry.get("dev") != interface:
            continue
        if entry.get("state") in _DEAD_NEIGH_STATES:
            continue
        seen.add(mac)
        devices.append(
            ConnectedDevice(
                mac=mac,
                hostname=lookup_hostname(mac, paths),
                ip=entry.get("ip"),
                source="neigh",
            )
        )
    return devices
