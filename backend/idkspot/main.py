import logging
import signal
import sys
import threading

from idkspot.config import ensure_config_file, load_config
from idkspot.engine.privileged import PrivilegedChannel
from idkspot.lifecycle import create_controller
from idkspot.logging import setup_logging
from idkspot.server import build_server
from idkspot.state import AppState

log = logging.getLogger("idkspot.main")


def _install_signal_handlers(app_state: AppState) -> None:
    def _handler(signum, _frame):
        if not app_state.running:
            return
        try:
            sig_name = signal.Signals(signum).name
        except ValueError:
            sig_name = str(signum)
        log.info("shutdown_signal:%s", sig_name)
        app_state.request_quit()

    for sig in (signal.SIGTERM, signal.SIGINT):
        signal.signal(sig, _handler)


def _autostart(controller, cfg) -> None:
    password = (cfg.get("autostart_password") or "").strip()
    res = controller.start(str(cfg.get("ssid") or ""), password, correlation_id="autostart")
    if res.ok:
        log.info("autostart:%s", res.message)
    else:
        log.warning("autostart_failed:%s", res.message)


def main():
    setup_logging()
    ensure_config_file()
    cfg = load_config()
    if cfg.get("debug"):
        logging.getLogger().setLevel(logging.DEBUG)

    channel = None
    if cfg.get("privileged_helper", True):
        channel = PrivilegedChannel(elevation=str(cfg.get("elevation") or "pkexec"))
        if not channel.open():
            # Not fatal: privileged actions fall back to one-shot elevation.
            channel = None

    controller = create_controller(cfg, channel=channel)
    status = controller.status()
    if status["detection_error"]:
        log.warning("start_disabled:%s", status["detection_error"])
    elif not status["compatible"]:
        log.warning("start_disabled:%s", status["compat_detail"])

    app_state = AppState()
    _install_signal_handlers(app_state)

    server = build_server(controller, app_state)
    server_thread = threading.Thread(
        target=server.serve_forever,
        name="idkspot-http",
        daemon=True,
    )
    server_thread.start()

    if cfg.get("autostart"):
        threading.Thread(
            target=_autostart,
            args=(controller, cfg),
            name="idkspot-autostart",
            daemon=True,
        ).start()

    try:
        version = app_state.version
        while app_state.running and server_thread.is_alive():
            version = app_state.wait_for_change(version, timeout_s=0.5)
    finally:
        try:
            server.shutdown()
            server.server_close()
        except Exception:
            log.exception("server_shutdown_failed")
        server_thread.join(timeout=5)
        try:
            controller.shutdown()
        except Exception:
            log.exception("controller_shutdown_failed")
    return 0


if __name__ == "__main__":
    sys.exit(main())
