import pytest

from idkspot.engine import create_ap_cmd, hostapd_cli, iptables


@pytest.fixture(autouse=True)
def _no_path_lookup(monkeypatch):
    monkeypatch.setattr(create_ap_cmd.shutil, "which", lambda _name: None)


def test_start_cmd_contract():
    cmd = create_ap_cmd.build_start_cmd(
        ifname="wlan0", channel=6, ssid="MyNet", passphrase="password1"
    )
    assert cmd == ["pkexec", "create_ap", "-c", "6", "wlan0", "wlan0", "MyNet", "password1"]


def test_start_cmd_keeps_ssid_with_spaces_as_one_argument():
    cmd = create_ap_cmd.build_start_cmd(
        ifname="wlan0", channel=36, ssid="My Net", passphrase="password1", elevation=None
    )
    assert cmd == ["create_ap", "-c", "36", "wlan0", "wlan0", "My Net", "password1"]


@pytest.mark.parametrize(
    "kwargs",
    [
        {"ifname": "", "channel": 6, "ssid": "n", "passphrase": "password1"},
        {"ifname": "wlan0", "channel": 6, "ssid": "", "passphrase": "password1"},
        {"ifname": "wlan0", "channel": 6, "ssid": "n", "passphrase": "short"},
        {"ifname": "wlan0", "channel": 0, "ssid": "n", "passphrase": "password1"},
    ],
)
def test_start_cmd_rejects_bad_input(kwargs):
    with pytest.raises(ValueError):
        create_ap_cmd.build_start_cmd(**kwargs)


def test_stop_cmd():
    assert create_ap_cmd.build_stop_cmd(ifname="wlan0") == ["pkexec", "create_ap", "--stop", "wlan0"]
    assert create_ap_cmd.build_stop_cmd(ifname="wlan0", elevation=None) == ["create_ap", "--stop", "wlan0"]


def test_redact_hides_passphrase_only_on_start():
    start = ["pkexec", "create_ap", "-c", "6", "wlan0", "wlan0", "MyNet", "password1"]
    assert create_ap_cmd.redact_cmd(start)[-1] == "********"
    assert start[-1] == "password1"
    stop = ["pkexec", "create_ap", "--stop", "wlan0"]
    assert create_ap_cmd.redact_cmd(stop) == stop


def test_iptables_rules(monkeypatch):
    monkeypatch.setattr(iptables.shutil, "which", lambda _name: None)
    assert iptables.insert_drop_cmds("AA:BB:CC:DD:EE:01") == [
        ["iptables", "-I", "FORWARD", "-m", "mac", "--mac-source", "AA:BB:CC:DD:EE:01", "-j", "DROP"],
        ["iptables", "-I", "INPUT", "-m", "mac", "--mac-source", "AA:BB:CC:DD:EE:01", "-j", "DROP"],
    ]
    assert [c[1] for c in iptables.delete_drop_cmds("AA:BB:CC:DD:EE:01")] == ["-D", "-D"]


def test_hostapd_cli_commands(monkeypatch, tmp_path):
    monkeypatch.setattr(hostapd_cli.shutil, "which", lambda _name: None)
    assert hostapd_cli.deauth_cmd("ap0", "AA:BB:CC:DD:EE:01") == [
        "hostapd_cli", "-i", "ap0", "deauthenticate", "AA:BB:CC:DD:EE:01"
    ]
    assert hostapd_cli.deny_add_cmd("ap0", "AA:BB:CC:DD:EE:01", tmp_path) == [
        "hostapd_cli", "-p", str(tmp_path), "-i", "ap0", "deny_acl", "ADD_MAC", "AA:BB:CC:DD:EE:01"
    ]


def test_find_ctrl_dir_prefers_create_ap_conf_dir(monkeypatch, tmp_path):
    conf = tmp_path / "create_ap.wlan0.conf.XYZ"
    (conf / "hostapd_ctrl").mkdir(parents=True)
    monkeypatch.setattr(hostapd_cli, "CREATE_AP_CONF_GLOB", str(tmp_path / "create_ap.{ifname}.conf.*"))
    assert hostapd_cli.find_ctrl_dir("wlan0") == conf / "hostapd_ctrl"


def test_select_ap_ifname(monkeypatch):
    monkeypatch.setattr(hostapd_cli, "iface_exists", lambda ifname: ifname == "ap0")
    assert hostapd_cli.select_ap_ifname("wlan0", "ap0") == "ap0"
    assert hostapd_cli.select_ap_ifname("wlan0", "") == "wlan0"
    monkeypatch.setattr(hostapd_cli, "iface_exists", lambda ifname: False)
    assert hostapd_cli.select_ap_ifname("wlan0", "ap0") == "wlan0"
