import logging
import shlex
import subprocess
import threading
from typing import List, Optional, Sequence

log = logging.getLogger("idkspot.engine.privileged")

# Read one line at a time and run it to completion before reading the next.
# The loop ends when our side closes the pipe.
HELPER_LOOP = 'while IFS= read -r line; do eval "$line"; done'

_CLOSE_WAIT_S = 2.0


def _quote_argv(argv: Sequence[str]) -> str:
    if not argv:
        raise ValueError("empty_command")
    parts: List[str] = []
    for arg in argv:
        s = str(arg)
        if "\n" in s or "\r" in s or "\x00" in s:
            raise ValueError("command_argument_contains_newline")
        parts.append(shlex.quote(s))
    return " ".join(parts)


class PrivilegedChannel:
    """
    One long-lived elevated shell fed through its stdin, so the operator
    authenticates once per run. Commands are fire-and-forget: the helper
    gives no acknowledgment and no exit status.
    """

    def __init__(self, elevation: str = "pkexec"):
        self.elevation = elevation
        self._proc: Optional[subprocess.Popen] = None
        self._lock = threading.Lock()

    def open(self) -> bool:
        with self._lock:
            if self._proc is not None and self._proc.poll() is None:
                return True
            try:
                self._proc = subprocess.Popen(
                    [self.elevation, "sh", "-c", HELPER_LOOP],
                    stdin=subprocess.PIPE,
                    stdout=subprocess.DEVNULL,
                    stderr=subprocess.DEVNULL,
                    text=True,
                    bufsize=1,
                    close_fds=True,
                )
            except Exception as e:
                self._proc = None
                log.warning("privileged_helper_spawn_failed:%s", e)
                return False
        log.info("privileged_helper_started pid=%s", self._proc.pid)
        return True

    def is_open(self) -> bool:
        proc = self._proc
        return proc is not None and proc.poll() is None and proc.stdin is not None

    def submit(self, argv: Sequence[str], background: bool = False) -> bool:
        """
        The helper runs one line at a time, so a long-running command (the AP
        daemon) must be sent with background=True or it blocks every later line.
        """
        line = _quote_argv(argv)
        if background:
            line += " </dev/null >/dev/null 2>&1 &"
        with self._lock:
            proc = self._proc
            if proc is None or proc.stdin is None or proc.poll() is not None:
                return False
            try:
                proc.stdin.write(line + "\n")
                proc.stdin.flush()
            except (OSError, ValueError) as e:
                log.warning("privileged_submit_failed:%s", e)
                return False
        log.debug("privileged_submit cmd=%s", argv[0])
        return True

    def close(self) -> None:
        with self._lock:
            proc = self._proc
            self._proc = None
            if proc is None:
                return
            try:
                if proc.stdin is not None:
                    proc.stdin.close()
            except OSError:
                pass

        # Outside the lock: EOF ends the helper loop; terminate if it lingers.
        try:
            proc.wait(timeout=_CLOSE_WAIT_S)
        except subprocess.TimeoutExpired:
            try:
                proc.terminate()
            except (PermissionError, ProcessLookupError) as e:
                log.warning("privileged_helper_terminate_failed:%s", e)
        log.info("privileged_helper_closed")


def run_direct(argv: Sequence[str], elevation: Optional[str]) -> bool:
    """
    One-shot invocation, wrapped in the elevation tool when given. Blocks until
    the command exits; may prompt for credentials again.
    """
    cmd = [elevation, *argv] if elevation else list(argv)
    try:
        p = subprocess.run(cmd, capture_output=True, text=True, check=False)
    except Exception as e:
        log.warning("direct_exec_failed cmd=%s err=%s", argv[0] if argv else "", e)
        return False
    if p.returncode != 0:
        log.info(
            "direct_exec_nonzero cmd=%s rc=%s err=%s",
            argv[0] if argv else "",
            p.returncode,
            (p.stderr or "").strip()[:120],
        )
    return p.returncode == 0


def run_privileged(
    argv: Sequence[str],
    channel: Optional[PrivilegedChannel],
    elevation: str,
) -> bool:
    if channel is not None and channel.submit(argv):
        return True
    return run_direct(argv, elevation)
