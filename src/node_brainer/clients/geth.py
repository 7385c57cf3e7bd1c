# -*- coding: utf-8 -*-
"""
执行层客户端 geth

发布包按 <os>-<arch>-<version>-<commit> 命名，因此下载前还需要解析标签对应的提交哈希。
解压后的目录结构: clients/binaries/geth/<tag>/geth-<os>-<arch>-<version>-<commit>/geth
"""

from __future__ import annotations

from typing import List

from ..asset_client import ClientIdentity, ReleaseDescriptor, UrlTemplate
from ..asset_client.platforms import GETH_PLATFORMS
from ..config import GETH_DOWNLOAD_URL, GETH_RELEASES_URL, GETH_TAG_COMMIT_URL
from ..workers.schemas import GethConfig
from .base import BaseClient


class GethClient(BaseClient[GethConfig]):
    identity = ClientIdentity(
        name="geth",
        releases_url=GETH_RELEASES_URL,
        download_url=UrlTemplate(GETH_DOWNLOAD_URL),
        tag_commit_url=UrlTemplate(GETH_TAG_COMMIT_URL),
        platforms=GETH_PLATFORMS,
    )
    config_model = GethConfig

    def _layout(self, release: ReleaseDescriptor, os_token: str, arch_token: str) -> tuple[str, str]:
        install_dir = f"clients/binaries/{self.name}/{release.tag}"
        folder = f"{self.name}-{os_token}-{arch_token}-{release.version}-{release.commit}"
        return install_dir, f"{install_dir}/{folder}/geth"

    def build_args(self) -> List[str]:
        cfg = self.config
        args = [
            f"--{cfg.network}",
            "--datadir", str(self.resolve(cfg.datadir)),
            "--authrpc.addr", cfg.authrpc.addr,
            "--authrpc.port", str(cfg.authrpc.port),
            "--authrpc.vhosts", cfg.authrpc.vhosts,
            "--authrpc.jwtsecret", str(self.resolve(cfg.authrpc.jwtsecret)),
        ]
        if cfg.http.enabled:
            args.append("--http")
            if cfg.http.api:
                args.extend(["--http.api", ",".join(cfg.http.api)])
        return args

    def secret_paths(self) -> List[str]:
        return [self.config.authrpc.jwtsecret]
