import glob
import os
import shutil
from pathlib import Path
from typing import List, Optional

# create_ap keeps hostapd's control socket in its per-run conf dir.
CREATE_AP_CONF_GLOB = "/tmp/create_ap.{ifname}.conf.*"
_CTRL_DIR_CANDIDATES = (Path("/run/hostapd"), Path("/var/run/hostapd"))


def hostapd_cli_bin() -> str:
    return shutil.which("hostapd_cli") or "hostapd_cli"


def create_ap_conf_dirs(ifname: Optional[str] = None) -> List[Path]:
    pat = CREATE_AP_CONF_GLOB.format(ifname=ifname or "*")
    dirs = [Path(p) for p in glob.glob(pat) if os.path.isdir(p)]
    dirs.sort(key=lambda p: p.stat().st_mtime, reverse=True)
    return dirs


def find_ctrl_dir(ifname: str) -> Optional[Path]:
    candidates: List[Path] = [d / "hostapd_ctrl" for d in create_ap_conf_dirs(ifname)]
    candidates.extend(_CTRL_DIR_CANDIDATES)
    for cand in candidates:
        if cand.is_dir():
            return cand
    return None


def _base(ap_ifname: str, ctrl_dir: Optional[Path]) -> List[str]:
    cmd = [hostapd_cli_bin()]
    if ctrl_dir is not None:
        cmd += ["-p", str(ctrl_dir)]
    cmd += ["-i", ap_ifname]
    return cmd


def deauth_cmd(ap_ifname: str, mac: str, ctrl_dir: Optional[Path] = None) -> List[str]:
    return _base(ap_ifname, ctrl_dir) + ["deauthenticate", mac]


def deny_add_cmd(ap_ifname: str, mac: str, ctrl_dir: Optional[Path] = None) -> List[str]:
    return _base(ap_ifname, ctrl_dir) + ["deny_acl", "ADD_MAC", mac]


def deny_del_cmd(ap_ifname: str, mac: str, ctrl_dir: Optional[Path] = None) -> List[str]:
    return _base(ap_ifname, ctrl_dir) + ["deny_acl", "DEL_MAC", mac]


def iface_exists(ifname: str) -> bool:
    return bool(ifname) and os.path.exists(f"/sys/class/net/{ifname}")


def select_ap_ifname(interface: str, ap_bridge_ifname: str) -> str:
    """
    The interface hostapd serves: create_ap's virtual AP interface when it
    exists, else the adapter itself.
    """
    if ap_bridge_ifname and iface_exists(ap_bridge_ifname):
        return ap_bridge_ifname
    return interface
