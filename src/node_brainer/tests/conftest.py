# -*- coding: utf-8 -*-

"""
客户端门面测试共用的 fixture：
 - project_root: 写好默认配置的临时项目根目录
 - fake_upstream: 替换 releases / archive 模块中的 requests，记录请求次数
"""

import gzip
import io
import random
import sys
import tarfile
from types import SimpleNamespace

import pytest
import requests

from node_brainer import asset_client
from node_brainer.clients import CLIENT_NAMES, default_config
from node_brainer.service.config_store import ConfigStore

FAKE_CLIENT = """#!{python}
import signal, sys, time
if "--version" in sys.argv:
    print("{name} version {tag}")
    sys.exit(0)
signal.signal(signal.SIGINT, lambda *_: sys.exit(0))
print("started", " ".join(sys.argv[1:]), flush=True)
while True:
    time.sleep(0.05)
"""


def fake_client_script(name, tag):
    return FAKE_CLIENT.format(python=sys.executable, name=name, tag=tag).encode()


def make_tar_gz(files):
    raw = io.BytesIO()
    with tarfile.open(fileobj=raw, mode="w") as tar:
        for member, data in files.items():
            info = tarfile.TarInfo(member)
            info.size = len(data)
            info.mode = 0o644
            tar.addfile(info, io.BytesIO(data))
    return gzip.compress(raw.getvalue())


class FakeResponse:
    def __init__(self, *, status=200, json_obj=None, body=b"", fail_after=None):
        self.status_code = status
        self.headers = {"Content-Length": str(len(body))} if body else {}
        self._json_obj = json_obj
        self._body = body
        self._fail_after = fail_after

    def json(self):
        if self._json_obj is None:
            raise ValueError("not json")
        return self._json_obj

    def iter_content(self, chunk_size=1):
        for i in range(0, len(self._body), chunk_size):
            if self._fail_after is not None and i >= self._fail_after:
                raise requests.exceptions.ConnectionError("connection reset by peer")
            yield self._body[i:i + chunk_size]

    def close(self):
        pass


class FakeUpstream:
    """按 URL 返回预先登记的响应，并统计每个 URL 的请求次数"""

    def __init__(self):
        self.routes = {}
        self.calls = []

    def add_json(self, url, obj, status=200):
        self.routes[url] = FakeResponse(status=status, json_obj=obj)

    def add_archive(self, url, files, fail_at=None):
        """fail_at: 按压缩包长度的比例在该处断开连接"""
        body = make_tar_gz(files)
        fail_after = int(len(body) * fail_at) if fail_at is not None else None
        self.routes[url] = FakeResponse(body=body, fail_after=fail_after)

    def count(self, url):
        return self.calls.count(url)

    def get(self, url, **kwargs):
        self.calls.append(url)
        if url not in self.routes:
            return FakeResponse(status=404)
        return self.routes[url]


@pytest.fixture
def project_root(tmp_path):
    root = tmp_path / "project"
    root.mkdir()
    for name in CLIENT_NAMES:
        config = default_config(name)
        ConfigStore(root, name, type(config)).ensure(config)
    return root


@pytest.fixture
def fake_upstream(monkeypatch):
    upstream = FakeUpstream()
    fake_requests = SimpleNamespace(get=upstream.get)
    monkeypatch.setattr("node_brainer.asset_client.releases.requests", fake_requests)
    monkeypatch.setattr("node_brainer.asset_client.archive.requests", fake_requests)
    # 固定宿主平台为 linux/amd64
    monkeypatch.setattr(asset_client, "host_os", lambda: "linux")
    monkeypatch.setattr(asset_client, "host_arch", lambda: "amd64")
    return upstream


LIGHTHOUSE_TAG = "v1.2.3"
LIGHTHOUSE_ARCHIVE_URL = (
    "https://github.com/sigp/lighthouse/releases/download/"
    "v1.2.3/lighthouse-v1.2.3-x86_64-unknown-linux-gnu.tar.gz"
)


@pytest.fixture
def lighthouse_upstream(fake_upstream):
    fake_upstream.add_json("https://api.github.com/repos/sigp/lighthouse/releases/latest",
                           {"tag_name": LIGHTHOUSE_TAG})
    fake_upstream.add_archive(LIGHTHOUSE_ARCHIVE_URL,
                              {"lighthouse": fake_client_script("Lighthouse", LIGHTHOUSE_TAG)})
    return fake_upstream




@pytest.fixture
def large_lighthouse_files():
    """可执行的假 lighthouse，末尾附加约 600KB 不可压缩的注释，使压缩包跨越多个下载分块"""
    padding = random.Random(5).randbytes(300_000).hex().encode()
    script = fake_client_script("Lighthouse", LIGHTHOUSE_TAG) + b"# " + padding + b"\n"
    return {"lighthouse": script}
