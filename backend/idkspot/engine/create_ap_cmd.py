import shutil
from typing import List, Optional

MIN_PASSPHRASE_LEN = 8


def _daemon_path(daemon: str) -> str:
    return shutil.which(daemon) or daemon


def build_start_cmd(
    *,
    ifname: str,
    channel: int,
    ssid: str,
    passphrase: str,
    daemon: str = "create_ap",
    elevation: Optional[str] = "pkexec",
) -> List[str]:
    """
    create_ap contract:
      create_ap -c <channel> <wifi_iface> <internet_iface> <ssid> <passphrase>

    The same interface is passed twice: the AP shares the adapter that keeps
    the managed connection, which create_ap handles with a virtual interface.
    """
    if not ifname:
        raise ValueError("ifname is required")
    if not ssid:
        raise ValueError("ssid is required")
    if not passphrase or len(passphrase) < MIN_PASSPHRASE_LEN:
        raise ValueError("passphrase must be at least 8 characters")
    if int(channel) <= 0:
        raise ValueError("channel must be positive")

    cmd: List[str] = [elevation] if elevation else []
    cmd += [
        _daemon_path(daemon),
        "-c",
        str(int(channel)),
        ifname,
        ifname,
        ssid,
        passphrase,
    ]
    return cmd


def build_stop_cmd(
    *,
    ifname: str,
    daemon: str = "create_ap",
    elevation: Optional[str] = "pkexec",
) -> List[str]:
    if not ifname:
        raise ValueError("ifname is required")
    cmd: List[str] = [elevation] if elevation else []
    cmd += [_daemon_path(daemon), "--stop", ifname]
    return cmd


def redact_cmd(cmd: List[str]) -> List[str]:
    """
    The passphrase is the last positional argument of a start command.
    """
    out = list(cmd)
    if "-c" in out and "--stop" not in out and len(out) >= 2:
        out[-1] = "********"
    return out
