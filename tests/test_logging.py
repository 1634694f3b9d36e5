import io
import json
import logging

import pytest

from idkspot.logging import JsonFormatter, setup_logging


@pytest.fixture
def restore_root():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


def _record(**extra):
    rec = logging.LogRecord("idkspot.lifecycle", logging.INFO, __file__, 1, "hotspot_launched pid=%s", (7,), None)
    for k, v in extra.items():
        setattr(rec, k, v)
    return rec


def test_json_line_carries_structured_fields():
    rec = _record(correlation_id="abc", op="start", mac="AA:BB:CC:DD:EE:01", unrelated="x")
    payload = json.loads(JsonFormatter().format(rec))
    assert payload["msg"] == "hotspot_launched pid=7"
    assert payload["logger"] == "idkspot.lifecycle"
    assert payload["correlation_id"] == "abc"
    assert payload["op"] == "start"
    assert payload["mac"] == "AA:BB:CC:DD:EE:01"
    assert payload["thread"] == rec.threadName
    assert "unrelated" not in payload


def test_cmd_rendered_as_one_shell_string():
    rec = _record(cmd=["create_ap", "-c", "6", "wlan0", "wlan0", "My Net", "********"])
    payload = json.loads(JsonFormatter().format(rec))
    assert payload["cmd"] == "create_ap -c 6 wlan0 wlan0 'My Net' '********'"


def test_setup_logging_json_by_default(monkeypatch, restore_root):
    monkeypatch.delenv("IDKSPOT_LOG_FORMAT", raising=False)
    monkeypatch.setenv("IDKSPOT_LOG_LEVEL", "warning")
    buf = io.StringIO()
    setup_logging(stream=buf)

    log = logging.getLogger("idkspot.test")
    log.info("dropped")
    log.warning("kept", extra={"result_code": "stop_failed"})

    lines = buf.getvalue().splitlines()
    assert len(lines) == 1
    assert json.loads(lines[0])["result_code"] == "stop_failed"


def test_setup_logging_text_format(monkeypatch, restore_root):
    monkeypatch.setenv("IDKSPOT_LOG_FORMAT", "text")
    buf = io.StringIO()
    setup_logging("INFO", stream=buf)
    logging.getLogger("idkspot.test").info("tracker_started if=%s", "ap0")
    line = buf.getvalue().strip()
    assert "INFO idkspot.test [MainThread] tracker_started if=ap0" in line
