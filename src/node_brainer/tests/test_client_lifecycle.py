# -*- coding: utf-8 -*-

"""
测试客户端门面的完整生命周期：download -> start -> logs -> stop -> status

仅测试公开接口，上游 HTTP 通过 fake_upstream 隔离，客户端二进制是以当前解释器运行的脚本。
"""

import io
import json
import os
import sys
import threading
import time

import pytest

from node_brainer.clients import GethClient, LighthouseClient, create_client
from node_brainer.errors import (
    AlreadyRunningError,
    ConfigError,
    NetworkError,
    NoSuchProcessError,
    NotInstalledError,
    NotRunningError,
    UnsupportedPlatform,
    UpstreamError,
)
from node_brainer.workers.schemas import NOT_RUNNING_PID, ClientState

needs_posix = pytest.mark.skipif(sys.platform == "win32", reason="依赖 shebang 脚本与 SIGINT")

LIGHTHOUSE_BINARY = "clients/binaries/lighthouse/v1.2.3/lighthouse"
LIGHTHOUSE_ARCHIVE_URL = (
    "https://github.com/sigp/lighthouse/releases/download/"
    "v1.2.3/lighthouse-v1.2.3-x86_64-unknown-linux-gnu.tar.gz"
)


def read_config(root, name):
    with open(root / "clients" / "configs" / f"{name}.json", encoding="utf-8") as f:
        return json.load(f)


def wait_for(predicate, timeout=10.0):
    deadline = time.time() + timeout
    while time.time() < deadline:
        if predicate():
            return True
        time.sleep(0.05)
    return False


@needs_posix
def test_lighthouse_download_installs_and_records(project_root, lighthouse_upstream):
    client = LighthouseClient(project_root)
    progress = []
    binary = client.download(lambda n, p: progress.append(p))

    assert binary.path == LIGHTHOUSE_BINARY
    assert binary.version == "v1.2.3"
    assert binary.os == "linux-gnu"
    assert binary.arch == "x86_64-unknown"
    assert binary.sha_commit is None
    assert (project_root / LIGHTHOUSE_BINARY).exists()
    assert progress[-1] == 100.0

    on_disk = read_config(project_root, "lighthouse")
    assert on_disk["binary"] == {
        "path": LIGHTHOUSE_BINARY,
        "version": "v1.2.3",
        "os": "linux-gnu",
        "arch": "x86_64-unknown",
    }
    # 其它字段保持不变
    assert on_disk["checkpointSyncUrl"] == "https://sepolia.beaconstate.info"
    assert on_disk["pid"] == NOT_RUNNING_PID


@needs_posix
def test_download_is_idempotent(project_root, lighthouse_upstream):
    LighthouseClient(project_root).download()
    config_path = project_root / "clients" / "configs" / "lighthouse.json"
    before = config_path.read_bytes()

    # 新实例从磁盘重新加载配置
    binary = LighthouseClient(project_root).download()

    assert binary.path == LIGHTHOUSE_BINARY
    assert lighthouse_upstream.count(LIGHTHOUSE_ARCHIVE_URL) == 1
    assert config_path.read_bytes() == before


@needs_posix
def test_interrupted_download_is_retried(project_root, fake_upstream, large_lighthouse_files):
    fake_upstream.add_json("https://api.github.com/repos/sigp/lighthouse/releases/latest",
                           {"tag_name": "v1.2.3"})
    fake_upstream.add_archive(LIGHTHOUSE_ARCHIVE_URL, large_lighthouse_files, fail_at=0.5)
    config_path = project_root / "clients" / "configs" / "lighthouse.json"
    before = config_path.read_bytes()

    with pytest.raises(NetworkError):
        LighthouseClient(project_root).download()
    assert not (project_root / LIGHTHOUSE_BINARY).exists()
    assert config_path.read_bytes() == before

    fake_upstream.add_archive(LIGHTHOUSE_ARCHIVE_URL, large_lighthouse_files)
    binary = LighthouseClient(project_root).download()

    assert binary.path == LIGHTHOUSE_BINARY
    assert fake_upstream.count(LIGHTHOUSE_ARCHIVE_URL) == 2
    assert (project_root / LIGHTHOUSE_BINARY).read_bytes() == large_lighthouse_files["lighthouse"]


def test_download_upstream_failure_leaves_config(project_root, fake_upstream):
    fake_upstream.add_json("https://api.github.com/repos/sigp/lighthouse/releases/latest",
                           {"message": "API rate limit exceeded"}, status=403)
    config_path = project_root / "clients" / "configs" / "lighthouse.json"
    before = config_path.read_bytes()

    client = LighthouseClient(project_root)
    with pytest.raises(UpstreamError) as exc:
        client.download()
    assert "[lighthouse/download]" in str(exc.value)
    assert "403" in str(exc.value)
    assert config_path.read_bytes() == before


def test_unsupported_host_fails_before_download(project_root, lighthouse_upstream, monkeypatch):
    from node_brainer import asset_client

    monkeypatch.setattr(asset_client, "host_os", lambda: "windows")
    with pytest.raises(UnsupportedPlatform):
        LighthouseClient(project_root).download()
    assert lighthouse_upstream.count(LIGHTHOUSE_ARCHIVE_URL) == 0


def test_geth_plan_and_args(project_root, fake_upstream):
    fake_upstream.add_json("https://api.github.com/repos/ethereum/go-ethereum/releases/latest",
                           {"tag_name": "v1.13.5"})
    fake_upstream.add_json("https://api.github.com/repos/ethereum/go-ethereum/git/refs/tags/v1.13.5",
                           {"object": {"sha": "916d6a441a866cb618ae826c220866de118899f7"}})

    client = GethClient(project_root)
    plan = client.plan_install("linux", "amd64")
    assert plan.url == "https://gethstore.blob.core.windows.net/builds/geth-linux-amd64-1.13.5-916d6a44.tar.gz"
    assert plan.install_dir == "clients/binaries/geth/v1.13.5"
    assert plan.binary_path == "clients/binaries/geth/v1.13.5/geth-linux-amd64-1.13.5-916d6a44/geth"
    assert plan.provenance().sha_commit == "916d6a44"

    args = client.build_args()
    assert args[0] == "--sepolia"
    assert args[args.index("--datadir") + 1] == str(project_root / "clients/data/geth")
    assert args[args.index("--authrpc.port") + 1] == "8551"
    assert args[args.index("--authrpc.jwtsecret") + 1] == str(project_root / "clients/secrets/jwt.hex")
    assert args[-3:] == ["--http", "--http.api", "eth,net"]


def test_lighthouse_args(project_root):
    args = LighthouseClient(project_root).build_args()
    assert args[0] == "bn"
    assert args[args.index("--execution-endpoint") + 1] == "http://localhost:8551"
    assert args[args.index("--execution-jwt") + 1] == str(project_root / "clients/secrets/jwt.hex")
    assert args[args.index("--checkpoint-sync-url") + 1] == "https://sepolia.beaconstate.info"
    assert "--http" in args
    assert args[-1] == "--disable-deposit-contract-sync"


def test_geth_and_lighthouse_share_secret(project_root):
    geth = GethClient(project_root)
    lighthouse = LighthouseClient(project_root)
    assert geth.resolve(geth.secret_paths()[0]) == lighthouse.resolve(lighthouse.secret_paths()[0])


def test_stop_without_running_process_leaves_file_unchanged(project_root):
    config_path = project_root / "clients" / "configs" / "geth.json"
    before = config_path.read_bytes()
    with pytest.raises(NotRunningError) as exc:
        create_client("geth", project_root).stop()
    assert str(exc.value) == "[geth/stop] 没有正在运行的 geth 进程"
    assert config_path.read_bytes() == before


def test_stop_with_stale_pid_clears_it(project_root):
    client = GethClient(project_root)
    client.config.pid = 2 ** 22 + 4242
    client.store.save(client.config)

    with pytest.raises(NoSuchProcessError):
        GethClient(project_root).stop()
    assert read_config(project_root, "geth")["pid"] == NOT_RUNNING_PID


def test_start_requires_install(project_root):
    with pytest.raises(NotInstalledError):
        LighthouseClient(project_root).start()


def test_unknown_client_and_missing_config(tmp_path):
    with pytest.raises(ConfigError):
        create_client("prysm", tmp_path)
    with pytest.raises(ConfigError) as exc:
        create_client("geth", tmp_path)
    assert "[geth/load-config]" in str(exc.value)


@needs_posix
def test_start_logs_stop(project_root, lighthouse_upstream):
    LighthouseClient(project_root).download()
    secret = project_root / "clients" / "secrets" / "jwt.hex"
    assert not secret.exists()

    client = LighthouseClient(project_root)
    pid = client.start()
    try:
        assert pid > 0
        assert secret.exists()
        assert read_config(project_root, "lighthouse")["pid"] == pid

        log_path = project_root / "clients" / "logs" / "lighthouse.log"
        assert wait_for(lambda: log_path.exists() and b"started" in log_path.read_bytes())
        assert b"started bn --datadir" in log_path.read_bytes()

        fresh = LighthouseClient(project_root)
        assert fresh.status().state == ClientState.RUNNING
        with pytest.raises(AlreadyRunningError):
            fresh.start()

        out = io.BytesIO()
        stop_event = threading.Event()
        stop_event.set()
        fresh.logs(stop_event, out)
        assert out.getvalue().startswith(b"started bn")
    finally:
        LighthouseClient(project_root).stop()

    assert read_config(project_root, "lighthouse")["pid"] == NOT_RUNNING_PID
    status = LighthouseClient(project_root).status()
    assert status.state == ClientState.INSTALLED
    assert status.version == "v1.2.3"
    assert status.pid == NOT_RUNNING_PID


@needs_posix
def test_start_replaces_stale_pid(project_root, lighthouse_upstream):
    LighthouseClient(project_root).download()
    client = LighthouseClient(project_root)
    client.config.pid = 2 ** 22 + 777
    client.store.save(client.config)

    pid = LighthouseClient(project_root).start()
    try:
        assert pid != 2 ** 22 + 777
        assert read_config(project_root, "lighthouse")["pid"] == pid
    finally:
        log_path = project_root / "clients" / "logs" / "lighthouse.log"
        wait_for(lambda: log_path.exists() and b"started" in log_path.read_bytes())
        LighthouseClient(project_root).stop()


def test_status_not_installed(project_root):
    status = GethClient(project_root).status()
    assert status.state == ClientState.NOT_INSTALLED
    assert status.version is None
    assert status.log_file == os.path.join(str(project_root), "clients", "logs", "geth.log")
