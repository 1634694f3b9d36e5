import json
import stat

import pytest

from idkspot import config


@pytest.fixture
def cfg_paths(monkeypatch, tmp_path):
    monkeypatch.setattr(config, "CONFIG_PATH", tmp_path / "config.json")
    monkeypatch.setattr(config, "CONFIG_TMP", tmp_path / "config.json.tmp")
    return tmp_path


def test_defaults_when_missing(cfg_paths):
    cfg = config.load_config()
    assert cfg["ssid"] == "idkspot"
    assert cfg["block_methods"] == list(config.BLOCK_METHODS)
    assert not (cfg_paths / "config.json").exists()


def test_ensure_config_file_is_private(cfg_paths):
    config.ensure_config_file()
    path = cfg_paths / "config.json"
    assert path.exists()
    assert stat.S_IMODE(path.stat().st_mode) == 0o600
    assert json.loads(path.read_text())["version"] == config.CONFIG_SCHEMA_VERSION


def test_version_and_block_methods_normalized_on_load(cfg_paths):
    (cfg_paths / "config.json").write_text(
        json.dumps({"version": 0, "ssid": "Mine", "block_methods": ["firewall", "nope"]})
    )
    cfg = config.load_config()
    assert cfg["ssid"] == "Mine"
    assert cfg["version"] == config.CONFIG_SCHEMA_VERSION == 1
    assert cfg["block_methods"] == ["firewall"]
    on_disk = json.loads((cfg_paths / "config.json").read_text())
    assert on_disk["block_methods"] == ["firewall"]
    assert on_disk["version"] == 1


def test_unknown_block_methods_filtered(cfg_paths):
    merged = config.write_config_file({"block_methods": ["bogus", "firewall"]})
    assert merged["block_methods"] == ["firewall"]
    merged = config.write_config_file({"block_methods": ["bogus"]})
    assert merged["block_methods"] == list(config.BLOCK_METHODS)


def test_invalid_json_falls_back_to_defaults(cfg_paths):
    (cfg_paths / "config.json").write_text("{not json")
    assert config.load_config()["poll_interval_s"] == 2.0


def test_blocklist_path(cfg_paths, tmp_path):
    assert config.blocklist_path({}) == cfg_paths / "blocked_macs.txt"
    assert config.blocklist_path({"blocklist_path": str(tmp_path / "x.txt")}) == tmp_path / "x.txt"
