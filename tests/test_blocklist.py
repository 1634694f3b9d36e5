import pytest

from idkspot.blocklist import BlockListStore, is_mac, normalize_mac


def test_normalize_mac():
    assert normalize_mac("aa-bb-cc-dd-ee-ff") == "AA:BB:CC:DD:EE:FF"
    assert normalize_mac(" aa:bb:cc:dd:ee:ff\n") == "AA:BB:CC:DD:EE:FF"
    with pytest.raises(ValueError):
        normalize_mac("aa:bb:cc:dd:ee")
    with pytest.raises(ValueError):
        normalize_mac("zz:bb:cc:dd:ee:ff")
    assert is_mac("00:11:22:33:44:55")
    assert not is_mac("")


def test_add_persists_across_instances(tmp_path):
    path = tmp_path / "sub" / "blocked_macs.txt"
    store = BlockListStore(path)
    assert store.add("aa:bb:cc:dd:ee:01") is True
    assert store.add("AA:BB:CC:DD:EE:01") is False

    reopened = BlockListStore(path)
    assert reopened.all() == {"AA:BB:CC:DD:EE:01"}
    assert reopened.contains("aa-bb-cc-dd-ee-01")
    assert path.read_text() == "AA:BB:CC:DD:EE:01\n"


def test_remove(tmp_path):
    path = tmp_path / "blocked_macs.txt"
    store = BlockListStore(path)
    store.add("AA:BB:CC:DD:EE:01")
    store.add("AA:BB:CC:DD:EE:02")

    assert store.remove("aa:bb:cc:dd:ee:01") is True
    assert store.remove("aa:bb:cc:dd:ee:01") is False
    assert BlockListStore(path).all() == {"AA:BB:CC:DD:EE:02"}
    assert not (tmp_path / "blocked_macs.txt.tmp").exists()


def test_add_to_file_without_trailing_newline(tmp_path):
    path = tmp_path / "blocked_macs.txt"
    path.write_text("AA:BB:CC:DD:EE:01")
    store = BlockListStore(path)
    store.add("AA:BB:CC:DD:EE:02")
    assert path.read_text() == "AA:BB:CC:DD:EE:01\nAA:BB:CC:DD:EE:02\n"
    assert store.all() == {"AA:BB:CC:DD:EE:01", "AA:BB:CC:DD:EE:02"}


def test_read_skips_comments_blanks_and_garbage(tmp_path):
    path = tmp_path / "blocked_macs.txt"
    path.write_text("# blocked devices\n\naa:bb:cc:dd:ee:01\nnot-a-mac\n")
    assert BlockListStore(path).all() == {"AA:BB:CC:DD:EE:01"}


def test_missing_file_is_empty(tmp_path):
    store = BlockListStore(tmp_path / "nope.txt")
    assert store.all() == set()
    assert store.remove("AA:BB:CC:DD:EE:01") is False


def test_invalid_mac_rejected(tmp_path):
    store = BlockListStore(tmp_path / "blocked_macs.txt")
    with pytest.raises(ValueError):
        store.add("garbage")
