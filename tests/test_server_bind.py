from types import SimpleNamespace

import pytest

from idkspot import main, server
from idkspot.lifecycle import LifecycleResult


def test_is_loopback():
    assert server._is_loopback("127.0.0.1")
    assert server._is_loopback("::1")
    assert server._is_loopback("127.0.0.5")
    assert not server._is_loopback("0.0.0.0")
    assert not server._is_loopback("my-host")


def test_bind_address_env(monkeypatch):
    monkeypatch.setenv("IDKSPOT_HOST", "127.0.0.1")
    monkeypatch.setenv("IDKSPOT_PORT", "not-a-port")
    assert server._bind_address() == ("127.0.0.1", server.DEFAULT_PORT)


def test_refuses_public_bind_without_token(monkeypatch):
    monkeypatch.setenv("IDKSPOT_HOST", "0.0.0.0")
    monkeypatch.delenv("IDKSPOT_API_TOKEN", raising=False)
    with pytest.raises(SystemExit):
        server.build_server(None, None)


def test_autostart_uses_saved_password():
    calls = []

    def _start(ssid, password, correlation_id=""):
        calls.append((ssid, password, correlation_id))
        return LifecycleResult("started", {}, "ok")

    main._autostart(SimpleNamespace(start=_start), {"ssid": "MyNet", "autostart_password": "password1"})
    assert calls == [("MyNet", "password1", "autostart")]
