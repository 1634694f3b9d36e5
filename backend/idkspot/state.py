import threading
from typing import Dict


class AppState:
    """
    Flags shared between the API threads, the main loop and any front-end:
    whether the window should be shown and whether the app keeps running.
    Writers notify waiters; readers only need eventual visibility.
    """

    def __init__(self, show_window: bool = True):
        self._cond = threading.Condition()
        self._show_window = show_window
        self._running = True
        self._version = 0

    def _bump(self) -> None:
        self._version += 1
        self._cond.notify_all()

    @property
    def show_window(self) -> bool:
        with self._cond:
            return self._show_window

    @property
    def running(self) -> bool:
        with self._cond:
            return self._running

    def set_show_window(self, value: bool) -> None:
        with self._cond:
            if self._show_window != bool(value):
                self._show_window = bool(value)
                self._bump()

    def request_quit(self) -> None:
        with self._cond:
            if self._running:
                self._running = False
                self._bump()

    def wait_for_change(self, since: int, timeout_s: float) -> int:
        """
        Block until the version moves past `since` or the timeout elapses.
        Returns the current version.
        """
        with self._cond:
            self._cond.wait_for(lambda: self._version != since, timeout=timeout_s)
            return self._version

    @property
    def version(self) -> int:
        with self._cond:
            return self._version

    def as_dict(self) -> Dict[str, object]:
        with self._cond:
            return {
                "show_window": self._show_window,
                "running": self._running,
                "version": self._version,
            }
