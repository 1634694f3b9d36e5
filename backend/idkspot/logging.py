import json
import logging
import os
import shlex
import sys
import time
from typing import Any, Dict, Optional, TextIO

_STRUCTURED_FIELDS = ("op", "bind", "path", "method", "result_code", "mac", "method_used", "phase")

# Worker threads (launch, tracker, reap, API) interleave; say which one spoke.
_TEXT_FORMAT = "%(asctime)s %(levelname)s %(name)s [%(threadName)s] %(message)s"


def _render_cmd(cmd: Any) -> str:
    if isinstance(cmd, (list, tuple)):
        return " ".join(shlex.quote(str(a)) for a in cmd)
    return str(cmd)


class JsonFormatter(logging.Formatter):
    """
    One JSON object per line. `cmd` extras must already be redacted by the
    caller; they are rendered as a single shell-quoted string.
    """

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "ts": time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime(record.created)),
            "level": record.levelname,
            "logger": record.name,
            "thread": record.threadName,
            "msg": record.getMessage(),
        }
        if hasattr(record, "correlation_id"):
            payload["correlation_id"] = getattr(record, "correlation_id")
        for k in _STRUCTURED_FIELDS:
            if hasattr(record, k):
                payload[k] = getattr(record, k)
        if hasattr(record, "cmd"):
            payload["cmd"] = _render_cmd(getattr(record, "cmd"))

        if record.exc_info:
            payload["exc"] = self.formatException(record.exc_info)

        return json.dumps(payload, separators=(",", ":"))


def setup_logging(
    level: Optional[str] = None,
    fmt: Optional[str] = None,
    stream: Optional[TextIO] = None,
) -> None:
    """
    IDKSPOT_LOG_LEVEL picks the level; IDKSPOT_LOG_FORMAT=text switches to a
    plain line format for running in a terminal.
    """
    lvl = (level or os.environ.get("IDKSPOT_LOG_LEVEL") or "INFO").upper()
    kind = (fmt or os.environ.get("IDKSPOT_LOG_FORMAT") or "json").strip().lower()
    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(getattr(logging, lvl, logging.INFO))

    handler = logging.StreamHandler(stream=stream or sys.stdout)
    if kind == "text":
        handler.setFormatter(logging.Formatter(_TEXT_FORMAT))
    else:
        handler.setFormatter(JsonFormatter())
    root.addHandler(handler)
