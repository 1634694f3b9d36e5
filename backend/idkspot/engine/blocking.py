import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Sequence

from idkspot.blocklist import BlockListStore, normalize_mac
from idkspot.engine import hostapd_cli, iptables
from idkspot.engine.privileged import PrivilegedChannel, run_direct, run_privileged

log = logging.getLogger("idkspot.engine.blocking")

# Records the block without enforcing it; always succeeds.
LOCAL_ONLY = "local"


@dataclass(frozen=True)
class BlockContext:
    interface: str
    ap_bridge_ifname: str = "ap0"
    channel: Optional[PrivilegedChannel] = None
    elevation: str = "pkexec"


@dataclass(frozen=True)
class BlockOutcome:
    mac: str
    method: str
    enforced: bool
    attempts: List[str] = field(default_factory=list)


def _block_firewall(mac: str, ctx: BlockContext) -> bool:
    ok = True
    for cmd in iptables.insert_drop_cmds(mac):
        ok = run_privileged(cmd, ctx.channel, ctx.elevation) and ok
    return ok


def _block_hostapd_ctrl(mac: str, ctx: BlockContext) -> bool:
    ctrl_dir = hostapd_cli.find_ctrl_dir(ctx.interface)
    if ctrl_dir is None:
        return False
    ap_if = hostapd_cli.select_ap_ifname(ctx.interface, ctx.ap_bridge_ifname)
    run_privileged(hostapd_cli.deny_add_cmd(ap_if, mac, ctrl_dir), ctx.channel, ctx.elevation)
    return run_privileged(hostapd_cli.deauth_cmd(ap_if, mac, ctrl_dir), ctx.channel, ctx.elevation)


def _block_hostapd_bridge(mac: str, ctx: BlockContext) -> bool:
    if not hostapd_cli.iface_exists(ctx.ap_bridge_ifname):
        return False
    return run_privileged(
        hostapd_cli.deauth_cmd(ctx.ap_bridge_ifname, mac), ctx.channel, ctx.elevation
    )


def _block_sudo_deauth(mac: str, ctx: BlockContext) -> bool:
    ap_if = hostapd_cli.select_ap_ifname(ctx.interface, ctx.ap_bridge_ifname)
    # -n: never prompt; only works with a passwordless sudoers entry.
    return run_direct(["sudo", "-n", *hostapd_cli.deauth_cmd(ap_if, mac)], None)


def _block_local(mac: str, ctx: BlockContext) -> bool:
    return True


STRATEGIES: Dict[str, Callable[[str, BlockContext], bool]] = {
    "firewall": _block_firewall,
    "hostapd_ctrl": _block_hostapd_ctrl,
    "hostapd_bridge": _block_hostapd_bridge,
    "sudo_deauth": _block_sudo_deauth,
    LOCAL_ONLY: _block_local,
}


def block_device(
    mac: str,
    ctx: BlockContext,
    store: BlockListStore,
    methods: Sequence[str] = tuple(STRATEGIES),
    settle_s: float = 0.1,
) -> BlockOutcome:
    """
    Try each strategy in order until one succeeds, then persist the MAC.
    A block that only reached the local record is reported with enforced=False.
    """
    mac = normalize_mac(mac)
    attempts: List[str] = []
    used = LOCAL_ONLY

    for name in methods:
        fn = STRATEGIES.get(name)
        if fn is None:
            attempts.append(f"{name}:unknown")
            continue
        try:
            ok = fn(mac, ctx)
        except Exception:
            log.exception("block_strategy_error", extra={"mac": mac, "method_used": name})
            ok = False
        attempts.append(f"{name}:{'ok' if ok else 'failed'}")
        if ok:
            used = name
            break
    else:
        attempts.append(f"{LOCAL_ONLY}:ok")

    store.add(mac)

    # The helper gives no acknowledgment; let queued commands land first.
    if settle_s > 0:
        time.sleep(settle_s)

    enforced = used != LOCAL_ONLY
    if enforced:
        log.info("device_blocked", extra={"mac": mac, "method_used": used})
    else:
        log.warning("device_block_not_enforced", extra={"mac": mac, "method_used": used})
    return BlockOutcome(mac=mac, method=used, enforced=enforced, attempts=attempts)


def unblock_device(mac: str, ctx: BlockContext, store: BlockListStore) -> List[str]:
    """
    Best-effort reversal of every enforcement a block may have applied.
    Failures come back as warnings; the MAC always leaves the block list.
    """
    mac = normalize_mac(mac)
    warnings: List[str] = []

    for cmd in iptables.delete_drop_cmds(mac):
        if not run_privileged(cmd, ctx.channel, ctx.elevation):
            warnings.append(f"unblock_firewall_failed:{cmd[2] if len(cmd) > 2 else ''}")

    ctrl_dir = hostapd_cli.find_ctrl_dir(ctx.interface)
    if ctrl_dir is not None:
        ap_if = hostapd_cli.select_ap_ifname(ctx.interface, ctx.ap_bridge_ifname)
        if not run_privileged(hostapd_cli.deny_del_cmd(ap_if, mac, ctrl_dir), ctx.channel, ctx.elevation):
            warnings.append("unblock_deny_acl_failed")

    store.remove(mac)
    if warnings:
        log.warning("device_unblock_partial:%s", ",".join(warnings), extra={"mac": mac})
    else:
        log.info("device_unblocked", extra={"mac": mac})
    return warnings
