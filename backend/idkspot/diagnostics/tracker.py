import logging
import threading
import time
from typing import Any, Callable, Dict, List, Optional

from idkspot.blocklist import BlockListStore
from idkspot.diagnostics.clients import ConnectedDevice, poll_devices
from idkspot.engine.hostapd_cli import select_ap_ifname

log = logging.getLogger("idkspot.diagnostics.tracker")


class DeviceTracker:
    """
    Polls connected stations on a fixed interval while `is_running()` holds.
    The loop exits on its own once the session leaves the running phase; the
    snapshot is rebuilt from scratch on every tick.
    """

    def __init__(
        self,
        interface: str,
        store: BlockListStore,
        is_running: Callable[[], bool],
        interval_s: float = 2.0,
        leases_file: Optional[str] = None,
        ap_bridge_ifname: str = "",
    ):
        self.interface = interface
        self.store = store
        self.is_running = is_running
        self.interval_s = max(0.2, float(interval_s))
        self.leases_file = leases_file
        self.ap_bridge_ifname = ap_bridge_ifname
        self._polled_ifname = interface

        self._lock = threading.Lock()
        self._devices: List[ConnectedDevice] = []
        self._warnings: List[str] = []
        self._updated_ts: Optional[int] = None
        self._thread: Optional[threading.Thread] = None
        # One event per run; a lingering thread from an earlier run keeps its own.
        self._stop_event: Optional[threading.Event] = None
        self._run_lock = threading.Lock()

    def poll_once(self) -> List[ConnectedDevice]:
        warnings: List[str] = []
        ifname = select_ap_ifname(self.interface, self.ap_bridge_ifname)
        devices = poll_devices(
            ifname,
            self.store.all(),
            leases_file=self.leases_file,
            warnings=warnings,
        )
        with self._lock:
            self._devices = devices
            self._warnings = warnings
            self._updated_ts = int(time.time())
            self._polled_ifname = ifname
        return devices

    def snapshot(self) -> Dict[str, Any]:
        with self._lock:
            return {
                "interface": self._polled_ifname,
                "clients": [d.as_dict() for d in self._devices],
                "warnings": list(self._warnings),
                "updated_ts": self._updated_ts,
            }

    def _clear(self, stop_event: threading.Event) -> None:
        with self._lock:
            if stop_event is not self._stop_event:
                return
            self._devices = []
            self._warnings = []

    def _loop(self, stop_event: threading.Event) -> None:
        log.info("tracker_started if=%s interval=%s", self.interface, self.interval_s)
        while not stop_event.is_set() and self.is_running():
            try:
                self.poll_once()
            except Exception:
                log.exception("tracker_poll_failed")
            if stop_event.wait(self.interval_s):
                break
        self._clear(stop_event)
        log.info("tracker_stopped if=%s", self.interface)

    def ensure_started(self) -> None:
        with self._run_lock:
            ev = self._stop_event
            t = self._thread
            if ev is not None and not ev.is_set() and t is not None and t.is_alive():
                return
            ev = threading.Event()
            self._stop_event = ev
            self._thread = threading.Thread(
                target=self._loop, args=(ev,), name="idkspot-tracker", daemon=True
            )
            self._thread.start()

    def stop(self, join_timeout_s: float = 2.0) -> None:
        with self._run_lock:
            ev = self._stop_event
            t = self._thread
        if ev is not None:
            ev.set()
        if t and t.is_alive() and t is not threading.current_thread():
            t.join(timeout=join_timeout_s)
