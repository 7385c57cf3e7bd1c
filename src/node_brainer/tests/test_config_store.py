# -*- coding: utf-8 -*-

"""
测试配置存储：JSON 字段名、整份重写、缺失 / 损坏文件的报错，以及项目根目录的确定。
"""

import json

import pytest

from node_brainer.clients import CLIENTS, CLIENT_NAMES, default_config
from node_brainer.errors import ConfigError
from node_brainer.service.config_store import ConfigStore
from node_brainer.service.paths import find_root_path, get_root_dir
from node_brainer.workers.schemas import NOT_RUNNING_PID, ClientConfig, GethConfig, LighthouseConfig


def test_round_trip_keeps_wire_names(tmp_path):
    store = ConfigStore(tmp_path, "lighthouse", LighthouseConfig)
    config = LighthouseConfig.default()
    config.binary.path = "clients/binaries/lighthouse/v1/lighthouse"
    config.pid = 4321
    store.save(config)

    raw = json.loads(store.path.read_text(encoding="utf-8"))
    assert raw["stdoutFile"] == "clients/logs/lighthouse.log"
    assert raw["checkpointSyncUrl"] == "https://sepolia.beaconstate.info"
    assert raw["pid"] == 4321
    assert "shaCommit" not in raw["binary"]

    loaded = store.load()
    assert loaded == config
    assert not list(tmp_path.glob("clients/configs/.*.tmp"))


def test_unknown_fields_are_ignored(tmp_path):
    store = ConfigStore(tmp_path, "geth", GethConfig)
    store.path.parent.mkdir(parents=True)
    data = GethConfig.default().to_json_dict()
    data["legacy"] = True
    data["binary"]["shaCommit"] = "916d6a44"
    store.path.write_text(json.dumps(data), encoding="utf-8")

    loaded = store.load()
    assert loaded.binary.sha_commit == "916d6a44"
    assert loaded.authrpc.port == 8551


def test_missing_and_corrupt_files(tmp_path):
    store = ConfigStore(tmp_path, "geth", GethConfig)
    with pytest.raises(ConfigError):
        store.load()

    store.path.parent.mkdir(parents=True)
    store.path.write_text("{not json", encoding="utf-8")
    with pytest.raises(ConfigError):
        store.load()

    store.path.write_text(json.dumps({"network": "sepolia"}), encoding="utf-8")
    with pytest.raises(ConfigError):
        store.load()


def test_ensure_writes_default_once(tmp_path):
    store = ConfigStore(tmp_path, "geth", GethConfig)
    store.ensure(GethConfig.default())
    config = store.load()
    config.network = "holesky"
    store.save(config)

    assert store.ensure(GethConfig.default()).network == "holesky"


def test_root_discovery(tmp_path, monkeypatch):
    (tmp_path / "pyproject.toml").write_text("[project]\n")
    nested = tmp_path / "a" / "b"
    nested.mkdir(parents=True)
    assert find_root_path(nested) == tmp_path.resolve()

    monkeypatch.delenv("NODE_BRAINER_ROOT", raising=False)
    monkeypatch.chdir(nested)
    assert get_root_dir() == tmp_path.resolve()

    monkeypatch.setenv("NODE_BRAINER_ROOT", str(nested))
    assert get_root_dir() == nested.resolve()
    assert get_root_dir(tmp_path / "a") == (tmp_path / "a").resolve()


def test_every_client_has_its_own_default(tmp_path):
    assert "default" not in vars(ClientConfig)
    for name in CLIENT_NAMES:
        config = default_config(name)
        assert type(config) is CLIENTS[name].config_model
        assert config.pid == NOT_RUNNING_PID
        assert not config.binary.is_recorded()

        store = ConfigStore(tmp_path, name, type(config))
        store.save(config)
        assert store.load() == config

    with pytest.raises(ConfigError):
        default_config("prysm")
