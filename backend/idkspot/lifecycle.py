import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from idkspot.blocklist import BlockListStore
from idkspot.channels import band_from_freq_mhz
from idkspot.config import blocklist_path, load_config
from idkspot.diagnostics.tracker import DeviceTracker
from idkspot.engine.blocking import BlockContext, BlockOutcome, block_device, unblock_device
from idkspot.engine.create_ap_cmd import (
    MIN_PASSPHRASE_LEN,
    build_start_cmd,
    build_stop_cmd,
    redact_cmd,
)
from idkspot.engine.privileged import PrivilegedChannel
from idkspot.engine.supervisor import (
    detach_engine,
    engine_pid,
    get_tails,
    reap_detached,
    spawn_stop,
    start_engine,
)
from idkspot.wifi_probe import (
    CompatibilityResult,
    WirelessInterface,
    probe_compatibility,
    resolve_interface,
)

log = logging.getLogger("idkspot.lifecycle")

PHASE_IDLE = "idle"
PHASE_STARTING = "starting"
PHASE_RUNNING = "running"
PHASE_STOPPING = "stopping"

_ERROR_CODES = {"validation_failed", "start_unavailable", "already_running", "stop_failed"}


class LifecycleResult:
    def __init__(self, code, state, message=""):
        self.code = code
        self.state = state
        self.message = message

    @property
    def ok(self) -> bool:
        return self.code not in _ERROR_CODES


@dataclass(frozen=True)
class HotspotConfig:
    ssid: str
    password: str


@dataclass
class HotspotSession:
    phase: str
    interface: Optional[WirelessInterface]
    config: Optional[HotspotConfig] = None


def validate_hotspot_config(ssid: str, password: str) -> Optional[str]:
    """
    Returns the operator-facing error, or None when the inputs are usable.
    """
    if not ssid:
        return "Error: SSID cannot be empty"
    if len(password or "") < MIN_PASSPHRASE_LEN:
        return "Error: Password must be at least 8 characters"
    return None


class HotspotController:
    def __init__(
        self,
        *,
        compat: CompatibilityResult,
        interface: Optional[WirelessInterface],
        detection_error: Optional[str],
        store: BlockListStore,
        cfg: Optional[Dict[str, Any]] = None,
        channel: Optional[PrivilegedChannel] = None,
    ):
        self.cfg = cfg if cfg is not None else load_config()
        self.compat = compat
        self.detection_error = detection_error
        self.store = store
        self.channel = channel
        self.daemon = str(self.cfg.get("ap_daemon") or "create_ap")
        self.elevation = str(self.cfg.get("elevation") or "pkexec")
        self.ap_bridge_ifname = str(self.cfg.get("ap_bridge_ifname") or "")

        self._lock = threading.Lock()
        self._session = HotspotSession(phase=PHASE_IDLE, interface=interface)
        self._status_message = ""
        self._last_error: Optional[str] = None
        self._engine_cmd: Optional[List[str]] = None
        self._launch_thread: Optional[threading.Thread] = None

        self.tracker = DeviceTracker(
            interface.name if interface else "",
            store,
            self.is_running,
            interval_s=float(self.cfg.get("poll_interval_s") or 2.0),
            leases_file=self.cfg.get("dnsmasq_leases_file") or None,
            ap_bridge_ifname=self.ap_bridge_ifname,
        )

    # Gates

    @property
    def interface(self) -> Optional[WirelessInterface]:
        return self._session.interface

    @property
    def phase(self) -> str:
        return self._session.phase

    def is_running(self) -> bool:
        return self._session.phase == PHASE_RUNNING

    def can_start(self) -> bool:
        return self.compat.supported and self.detection_error is None and self.interface is not None

    def inputs_editable(self) -> bool:
        return self.can_start() and not self.is_running()

    def _unavailable_reason(self) -> str:
        if self.detection_error:
            return self.detection_error
        if not self.compat.supported:
            return self.compat.detail
        return "No wireless interface found"

    # Lifecycle

    def start(self, ssid: str, password: str, correlation_id: str = "start") -> LifecycleResult:
        err = validate_hotspot_config(ssid, password)
        if err:
            return LifecycleResult("validation_failed", self.status(), err)

        with self._lock:
            if not self.can_start():
                return LifecycleResult(
                    "start_unavailable", self._status_locked(), f"Error: {self._unavailable_reason()}"
                )
            if self._session.phase != PHASE_IDLE:
                return LifecycleResult(
                    "already_running", self._status_locked(), "Error: Hotspot is already running"
                )

            iface = self._session.interface
            if iface is None:
                return LifecycleResult(
                    "start_unavailable", self._status_locked(), "Error: No wireless interface found"
                )
            cmd = build_start_cmd(
                ifname=iface.name,
                channel=iface.channel,
                ssid=ssid,
                passphrase=password,
                daemon=self.daemon,
                elevation=None,
            )

            self._session.phase = PHASE_STARTING
            self._session.config = HotspotConfig(ssid=ssid, password=password)
            self._last_error = None
            log.info(
                "hotspot_starting if=%s channel=%s",
                iface.name,
                iface.channel,
                extra={"correlation_id": correlation_id, "op": "start"},
            )

            # The elevation prompt and the daemon spawn must not block the caller.
            t = threading.Thread(
                target=self._launch,
                args=(cmd, correlation_id),
                name="idkspot-start",
                daemon=True,
            )
            self._launch_thread = t
            t.start()

            # Optimistic: running means "launch requested", not "AP confirmed up".
            self._session.phase = PHASE_RUNNING
            msg = f"Hotspot '{ssid}' starting on channel {iface.channel}..."
            self._status_message = msg
            self.tracker.ensure_started()

        return LifecycleResult("started", self.status(), msg)

    def _launch(self, cmd: List[str], correlation_id: str) -> None:
        """
        `cmd` carries no elevation prefix. The already-authenticated helper
        runs it in the background when open; otherwise it is spawned through
        the elevation tool and supervised.
        """
        if self.channel is not None and self.channel.is_open():
            if self.channel.submit(cmd, background=True):
                self._engine_cmd = redact_cmd(cmd)
                log.info(
                    "hotspot_launched via=helper",
                    extra={"correlation_id": correlation_id, "cmd": self._engine_cmd},
                )
                return
        res = start_engine([self.elevation, *cmd] if self.elevation else cmd)
        self._engine_cmd = res.cmd
        if not res.ok:
            self._last_error = res.error
            log.warning(
                "hotspot_launch_failed:%s",
                res.error,
                extra={"correlation_id": correlation_id, "op": "start"},
            )
        else:
            log.info(
                "hotspot_launched pid=%s",
                res.pid,
                extra={"correlation_id": correlation_id, "cmd": res.cmd},
            )

    def stop(self, correlation_id: str = "stop") -> LifecycleResult:
        with self._lock:
            if self._session.phase == PHASE_IDLE:
                return LifecycleResult("already_stopped", self._status_locked(), "Hotspot is not running")

            self._session.phase = PHASE_STOPPING
            iface = self._session.interface
            ifname = iface.name if iface else ""

            err = self._issue_stop(ifname)
            if err is None:
                code = "stopped"
                msg = f"Hotspot stopped on {ifname}"
            else:
                code = "stop_failed"
                msg = f"Error stopping hotspot: {err}"
                self._last_error = err

            # Idle regardless of whether the stop command could be issued.
            self._session.phase = PHASE_IDLE
            self._session.config = None
            self._status_message = msg
            log.info(
                "hotspot_stopped if=%s code=%s",
                ifname,
                code,
                extra={"correlation_id": correlation_id, "op": "stop", "result_code": code},
            )
            self.tracker.stop()

        proc = detach_engine()
        if proc is not None:
            threading.Thread(target=reap_detached, args=(proc,), name="idkspot-reap", daemon=True).start()
        return LifecycleResult(code, self.status(), msg)

    def _issue_stop(self, ifname: str) -> Optional[str]:
        if self.channel is not None:
            if self.channel.submit(build_stop_cmd(ifname=ifname, daemon=self.daemon, elevation=None)):
                return None
        return spawn_stop(build_stop_cmd(ifname=ifname, daemon=self.daemon, elevation=self.elevation))

    # Clients

    def _block_context(self) -> BlockContext:
        iface = self._session.interface
        return BlockContext(
            interface=iface.name if iface else "",
            ap_bridge_ifname=self.ap_bridge_ifname,
            channel=self.channel,
            elevation=self.elevation,
        )

    def block(self, mac: str) -> BlockOutcome:
        return block_device(
            mac,
            self._block_context(),
            self.store,
            methods=self.cfg.get("block_methods") or ("local",),
            settle_s=float(self.cfg.get("block_settle_s") or 0.0),
        )

    def unblock(self, mac: str) -> List[str]:
        return unblock_device(mac, self._block_context(), self.store)

    def blocked(self) -> List[str]:
        return sorted(self.store.all())

    def clients(self) -> Dict[str, Any]:
        return self.tracker.snapshot()

    # Status

    def _status_locked(self) -> Dict[str, Any]:
        iface = self._session.interface
        cfg = self._session.config
        out, err = get_tails()
        return {
            "phase": self._session.phase,
            "running": self._session.phase == PHASE_RUNNING,
            "compatible": self.compat.supported,
            "compat_detail": self.compat.detail,
            "detection_error": self.detection_error,
            "can_start": self.can_start(),
            "inputs_editable": self.inputs_editable(),
            "interface": iface.name if iface else None,
            "frequency_mhz": iface.freq_mhz if iface else None,
            "channel": iface.channel if iface else None,
            "band": band_from_freq_mhz(iface.freq_mhz) if iface else None,
            "ssid": cfg.ssid if cfg else None,
            "status_message": self._status_message,
            "last_error": self._last_error,
            "privileged_helper": bool(self.channel and self.channel.is_open()),
            "engine": {
                "pid": engine_pid(),
                "cmd": self._engine_cmd,
                "stdout_tail": out,
                "stderr_tail": err,
            },
            "ts": int(time.time()),
        }

    def status(self) -> Dict[str, Any]:
        with self._lock:
            return self._status_locked()

    def shutdown(self) -> None:
        if self._session.phase != PHASE_IDLE:
            self.stop(correlation_id="shutdown")
        self.tracker.stop()
        if self.channel is not None:
            self.channel.close()


def create_controller(
    cfg: Optional[Dict[str, Any]] = None,
    channel: Optional[PrivilegedChannel] = None,
) -> HotspotController:
    """
    Probe the hardware once and build the controller around the result.
    """
    cfg = cfg if cfg is not None else load_config()
    compat = probe_compatibility()
    log.info("compatibility supported=%s detail=%s", compat.supported, compat.detail)
    interface, detection_error = resolve_interface()
    return HotspotController(
        compat=compat,
        interface=interface,
        detection_error=detection_error,
        store=BlockListStore(blocklist_path(cfg)),
        cfg=cfg,
        channel=channel,
    )
