import json
import os
from pathlib import Path
from typing import Any, Dict


def _config_dir() -> Path:
    raw = (os.environ.get("IDKSPOT_CONFIG_DIR") or "").strip()
    if raw:
        return Path(raw)
    return Path.home() / ".config" / "idkspot"


CONFIG_DIR = _config_dir()
CONFIG_PATH = CONFIG_DIR / "config.json"
CONFIG_TMP = CONFIG_DIR / "config.json.tmp"
CONFIG_SCHEMA_VERSION = 1

BLOCK_METHODS = ("firewall", "hostapd_ctrl", "hostapd_bridge", "sudo_deauth", "local")

DEFAULT_CONFIG: Dict[str, Any] = {
    "version": CONFIG_SCHEMA_VERSION,

    # Wi-Fi identity (the passphrase is supplied per start)
    "ssid": "idkspot",

    # External tooling
    "ap_daemon": "create_ap",
    "elevation": "pkexec",

    # Keep one elevated helper alive so the credential prompt fires once per run.
    "privileged_helper": True,

    # Client tracking
    "poll_interval_s": 2.0,
    "dnsmasq_leases_file": "",

    # Blocking: strategies tried in order until one succeeds.
    "block_methods": list(BLOCK_METHODS),
    "block_settle_s": 0.1,
    # create_ap puts the AP on a virtual interface when it shares the adapter.
    "ap_bridge_ifname": "ap0",
    # Empty => <config dir>/blocked_macs.txt
    "blocklist_path": "",

    "autostart": False,
    # Only read when autostart is on; the file is kept 0600.
    "autostart_password": "",
    "debug": False,
}


def read_config_file() -> Dict[str, Any]:
    """
    Returns the raw JSON content on disk (or {} if missing/invalid).
    """
    if not CONFIG_PATH.exists():
        return {}
    try:
        data = json.loads(CONFIG_PATH.read_text())
        return data if isinstance(data, dict) else {}
    except Exception:
        return {}


def _write_atomic(path: Path, tmp: Path, payload: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(tmp, "w", encoding="utf-8") as f:
        f.write(payload)
        f.flush()
        try:
            os.fsync(f.fileno())
        except Exception:
            pass
    os.replace(tmp, path)


def _normalize(cfg: Dict[str, Any]) -> Dict[str, Any]:
    """
    Stamp the schema version and drop unknown block methods.
    """
    out = dict(cfg)
    if out.get("version") != CONFIG_SCHEMA_VERSION:
        out["version"] = CONFIG_SCHEMA_VERSION
    methods = out.get("block_methods")
    if not isinstance(methods, list) or not methods:
        out["block_methods"] = list(BLOCK_METHODS)
    else:
        out["block_methods"] = [m for m in methods if m in BLOCK_METHODS] or list(BLOCK_METHODS)
    return out


def load_config() -> Dict[str, Any]:
    """
    Returns DEFAULT_CONFIG merged with on-disk config.
    """
    cfg = DEFAULT_CONFIG.copy()
    cfg.update(read_config_file())
    normalized = _normalize(cfg)
    if normalized != cfg and CONFIG_PATH.exists():
        _write_atomic(CONFIG_PATH, CONFIG_TMP, json.dumps(normalized, indent=2))
        try:
            os.chmod(CONFIG_PATH, 0o600)
        except Exception:
            pass
    return normalized


def write_config_file(partial_updates: Dict[str, Any]) -> Dict[str, Any]:
    """
    Persist a partial update to disk and return the merged config.
    """
    if not isinstance(partial_updates, dict):
        partial_updates = {}

    existing = read_config_file()
    merged: Dict[str, Any] = DEFAULT_CONFIG.copy()
    merged.update(existing)
    merged.update(partial_updates)
    merged = _normalize(merged)

    _write_atomic(CONFIG_PATH, CONFIG_TMP, json.dumps(merged, indent=2))
    CONFIG_PATH.chmod(0o600)
    return merged


def ensure_config_file():
    if CONFIG_PATH.exists():
        return
    write_config_file({})


def blocklist_path(cfg: Dict[str, Any]) -> Path:
    raw = cfg.get("blocklist_path")
    if isinstance(raw, str) and raw.strip():
        return Path(raw.strip()).expanduser()
    return CONFIG_PATH.parent / "blocked_macs.txt"
