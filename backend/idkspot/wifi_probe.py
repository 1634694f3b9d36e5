from __future__ import annotations

import logging
import os
import re
import shutil
import subprocess
from dataclasses import dataclass
from typing import List, Optional, Tuple

from idkspot.channels import UNKNOWN_CHANNEL, freq_to_channel

log = logging.getLogger("idkspot.wifi_probe")

_COMBINATIONS_HEADER = "valid interface combinations"
_MANAGED_GROUP_RE = re.compile(r"#\{[^}]*\bmanaged\b[^}]*\}", re.IGNORECASE)
_AP_GROUP_RE = re.compile(r"#\{[^}]*\bap\b[^}]*\}", re.IGNORECASE)

_IW_INTERFACE_RE = re.compile(r"Interface\s+(\w+)")
_IW_CHANNEL_FREQ_RE = re.compile(r"channel\s+\d+\s+\((\d+)\s+MHz\)")

SUPPORTED_DETAIL = "Simultaneous AP+Managed mode supported"
UNSUPPORTED_DETAIL = "AP+Managed simultaneous mode not found"


@dataclass(frozen=True)
class CompatibilityResult:
    supported: bool
    detail: str


@dataclass(frozen=True)
class WirelessInterface:
    name: str
    freq_mhz: int
    channel: int


def _iw_bin() -> str:
    iw = shutil.which("iw")
    if iw:
        return iw
    for candidate in ("/usr/sbin/iw", "/sbin/iw"):
        if os.path.exists(candidate):
            return candidate
    return "iw"


def _run(cmd: List[str], timeout_s: float = 3.0) -> Tuple[int, str, Optional[str]]:
    """
    Returns (returncode, stdout, launch_error). launch_error is set only when
    the tool could not be executed at all.
    """
    try:
        p = subprocess.run(
            cmd,
            capture_output=True,
            text=True,
            timeout=timeout_s,
            env={**os.environ, "LC_ALL": "C", "LANG": "C"},
        )
    except subprocess.TimeoutExpired as exc:
        out = exc.stdout if isinstance(exc.stdout, str) else ""
        return 124, out or "", None
    except Exception as exc:
        return 127, "", str(exc)
    return p.returncode, p.stdout or "", None


def parse_ap_managed_support(iw_list_text: str) -> bool:
    """
    True if a line inside a "valid interface combinations" section lists both
    a managed group and an AP group, e.g. ``* #{ managed } <= 1, #{ AP } <= 1``.
    """
    in_section = False
    for line in iw_list_text.splitlines():
        if _COMBINATIONS_HEADER in line:
            in_section = True
            continue

        if not in_section:
            continue

        if line and not line[0].isspace():
            in_section = False
            continue

        if _MANAGED_GROUP_RE.search(line) and _AP_GROUP_RE.search(line):
            return True
    return False


def probe_compatibility() -> CompatibilityResult:
    rc, out, launch_err = _run([_iw_bin(), "list"])
    if launch_err is not None:
        log.warning("iw_list_failed:%s", launch_err)
        return CompatibilityResult(False, f"Failed to run iw list: {launch_err}")
    if rc != 0:
        log.info("iw_list_nonzero rc=%s", rc)

    if parse_ap_managed_support(out):
        return CompatibilityResult(True, SUPPORTED_DETAIL)
    return CompatibilityResult(False, UNSUPPORTED_DETAIL)


def parse_iw_dev(iw_dev_text: str) -> Tuple[str, int]:
    """
    Returns (interface, freq_mhz) keeping the last match of each; iw lists the
    active interface last on single-radio systems. Missing values are "" / 0.
    """
    interface = ""
    freq = 0
    for line in iw_dev_text.splitlines():
        m_if = _IW_INTERFACE_RE.search(line)
        if m_if:
            interface = m_if.group(1)
        m_freq = _IW_CHANNEL_FREQ_RE.search(line)
        if m_freq:
            try:
                freq = int(m_freq.group(1))
            except ValueError:
                pass
    return interface, freq


def detect_interface() -> Tuple[str, int, Optional[str]]:
    rc, out, launch_err = _run([_iw_bin(), "dev"])
    if launch_err is not None:
        return "", 0, f"Failed to run iw dev: {launch_err}"
    if rc != 0:
        log.info("iw_dev_nonzero rc=%s", rc)

    interface, freq = parse_iw_dev(out)
    if not interface:
        return interface, freq, "No wireless interface found"
    if freq == 0:
        return interface, freq, "Could not detect frequency (not connected?)"
    return interface, freq, None


def resolve_interface() -> Tuple[Optional[WirelessInterface], Optional[str]]:
    name, freq, err = detect_interface()
    if err:
        log.warning("interface_detection_failed:%s", err)
        return None, err

    channel = freq_to_channel(freq)
    if channel == UNKNOWN_CHANNEL:
        err = f"Unsupported frequency {freq} MHz"
        log.warning("interface_detection_failed:%s", err)
        return None, err

    iface = WirelessInterface(name=name, freq_mhz=freq, channel=channel)
    log.info("interface_resolved if=%s freq=%s channel=%s", name, freq, channel)
    return iface, None
