import json

from lottery_client.utils.common import parse_id_list, shorten_hex
from lottery_client.utils.config import _apply_env_overrides, get_config_value, load_config


def test_load_config_file_then_env(tmp_path, monkeypatch):
    path = tmp_path / "client.conf"
    path.write_text(json.dumps({"blockchain": {"rpc_url": "http://file:8545", "chain_id": 1}}))
    monkeypatch.setenv("BLOCKCHAIN_CHAIN_ID", "5042002")
    monkeypatch.setenv("WATCHER_LOTTERY_IDS", "3,4")

    config = load_config(str(path))

    assert config["blockchain"]["rpc_url"] == "http://file:8545"
    assert config["blockchain"]["chain_id"] == "5042002"
    assert config["watcher"]["lottery_ids"] == "3,4"


def test_missing_file_is_not_fatal(tmp_path):
    config = load_config(str(tmp_path / "absent.conf"))
    assert isinstance(config, dict)


def test_env_prefixes_map_to_sections():
    config = _apply_env_overrides(
        {},
        {"ESTIMATOR_MAX_SAMPLES": "30", "SERVER_PORT": "7000", "LOTTERY_CLIENT_CONFIG": "x", "PATH": "/bin"},
    )
    assert config == {"estimator": {"max_samples": "30"}, "server": {"port": "7000"}}


def test_get_config_value():
    config = {"a": {"b": {"c": 1}}}
    assert get_config_value(config, "a.b.c") == 1
    assert get_config_value(config, "a.x", "fallback") == "fallback"
    assert get_config_value(config, "a.b.c.d", None) is None


def test_common_helpers():
    assert shorten_hex("0x" + "1234567890abcdef" * 2) == "0x123456...cdef"
    assert shorten_hex("") == ""
    assert parse_id_list("1, 2,,3") == [1, 2, 3]
    assert parse_id_list([4, "5"]) == [4, 5]
    assert parse_id_list(None) == []
