import logging
import os
import subprocess
import threading
import time
from collections import deque
from dataclasses import dataclass
from typing import Deque, List, Optional, Tuple

from idkspot.engine.create_ap_cmd import redact_cmd

log = logging.getLogger("idkspot.engine.supervisor")

ENGINE_STDOUT_MAX_LINES = 200
ENGINE_STDERR_MAX_LINES = 200

_proc: Optional[subprocess.Popen] = None
_proc_lock = threading.Lock()
_stdout_tail: Deque[str] = deque(maxlen=ENGINE_STDOUT_MAX_LINES)
_stderr_tail: Deque[str] = deque(maxlen=ENGINE_STDERR_MAX_LINES)


def _note(msg: str) -> None:
    # Supervisor notes go to the stderr tail so they show up in status.
    _stderr_tail.append(f"[supervisor] {msg}")


def _reader_thread(stream, tail: Deque[str], label: str) -> None:
    try:
        for line in iter(stream.readline, ""):
            if not line:
                break
            tail.append(line.rstrip("\n"))
    except Exception:
        tail.append(f"[{label}] reader error")
    finally:
        try:
            stream.close()
        except Exception:
            pass


@dataclass
class EngineStartResult:
    ok: bool
    pid: Optional[int]
    exit_code: Optional[int]
    error: Optional[str]
    cmd: List[str]
    started_ts: Optional[int]


def is_running() -> bool:
    proc = _proc
    return proc is not None and proc.poll() is None


def engine_pid() -> Optional[int]:
    proc = _proc
    return proc.pid if proc is not None and proc.poll() is None else None


def get_tails() -> Tuple[List[str], List[str]]:
    return list(_stdout_tail), list(_stderr_tail)


def _build_engine_env():
    env = os.environ.copy()
    env.setdefault("LC_ALL", "C")
    env.setdefault("LANG", "C")
    return env


def start_engine(cmd: List[str], early_fail_window_s: float = 1.0) -> EngineStartResult:
    """
    Spawn the AP daemon and watch it briefly for an immediate exit
    (wrong passphrase for the elevation prompt, create_ap refusing the
    interface, ...). The process keeps running after we return.
    """
    global _proc

    with _proc_lock:
        if _proc is not None and _proc.poll() is None:
            return EngineStartResult(
                ok=True,
                pid=_proc.pid,
                exit_code=None,
                error=None,
                cmd=redact_cmd(cmd),
                started_ts=int(time.time()),
            )

        _stdout_tail.clear()
        _stderr_tail.clear()
        started_ts = int(time.time())

        try:
            proc = subprocess.Popen(
                cmd,  # full cmd, includes the real passphrase
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                bufsize=1,
                close_fds=True,
                env=_build_engine_env(),
            )
        except Exception as e:
            _proc = None
            _note(f"spawn failed: {e}")
            return EngineStartResult(
                ok=False,
                pid=None,
                exit_code=None,
                error=f"spawn_failed: {e}",
                cmd=redact_cmd(cmd),
                started_ts=None,
            )
        _proc = proc

    assert proc.stdout is not None
    assert proc.stderr is not None

    threading.Thread(
        target=_reader_thread,
        args=(proc.stdout, _stdout_tail, "stdout"),
        daemon=True,
    ).start()
    threading.Thread(
        target=_reader_thread,
        args=(proc.stderr, _stderr_tail, "stderr"),
        daemon=True,
    ).start()

    deadline = time.time() + early_fail_window_s
    while time.time() < deadline:
        rc = proc.poll()
        if rc is not None:
            _note(f"engine exited early rc={rc}")
            return EngineStartResult(
                ok=False,
                pid=None,
                exit_code=rc,
                error=f"engine_exited_early: rc={rc}",
                cmd=redact_cmd(cmd),
                started_ts=started_ts,
            )
        time.sleep(0.05)

    return EngineStartResult(
        ok=True,
        pid=proc.pid,
        exit_code=None,
        error=None,
        cmd=redact_cmd(cmd),
        started_ts=started_ts,
    )


def spawn_stop(cmd: List[str]) -> Optional[str]:
    """
    Launch the daemon's stop command without waiting for it.
    Returns None on success or the spawn error.
    """
    try:
        subprocess.Popen(
            cmd,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
            close_fds=True,
            env=_build_engine_env(),
        )
    except Exception as e:
        _note(f"stop spawn failed: {e}")
        return str(e)
    return None


def detach_engine() -> Optional[subprocess.Popen]:
    """
    Hand over the daemon handle after a stop request so a following start
    begins from a clean slate.
    """
    global _proc
    with _proc_lock:
        proc = _proc
        _proc = None
    return proc


def reap_detached(proc: subprocess.Popen, timeout_s: float = 5.0) -> Optional[int]:
    """
    Wait for a detached daemon to exit. It runs elevated, so we cannot signal
    it ourselves; if it outlives the timeout we just stop watching.
    """
    deadline = time.time() + timeout_s
    while time.time() < deadline:
        rc = proc.poll()
        if rc is not None:
            _note(f"engine exited rc={rc}")
            return rc
        time.sleep(0.05)
    _note("engine still alive after stop request; handle released")
    log.warning("engine_outlived_stop pid=%s", proc.pid)
    return None
