# -*- coding: utf-8 -*-
"""
共识层客户端 lighthouse

发布包只包含一个 lighthouse 可执行文件，解压到 clients/binaries/lighthouse/<tag>/lighthouse。
"""

from __future__ import annotations

from typing import List

from ..asset_client import ClientIdentity, ReleaseDescriptor, UrlTemplate
from ..asset_client.platforms import LIGHTHOUSE_PLATFORMS
from ..config import LIGHTHOUSE_DOWNLOAD_URL, LIGHTHOUSE_RELEASES_URL
from ..workers.schemas import LighthouseConfig
from .base import BaseClient


class LighthouseClient(BaseClient[LighthouseConfig]):
    identity = ClientIdentity(
        name="lighthouse",
        releases_url=LIGHTHOUSE_RELEASES_URL,
        download_url=UrlTemplate(LIGHTHOUSE_DOWNLOAD_URL),
        platforms=LIGHTHOUSE_PLATFORMS,
    )
    config_model = LighthouseConfig

    def _layout(self, release: ReleaseDescriptor, os_token: str, arch_token: str) -> tuple[str, str]:
        install_dir = f"clients/binaries/{self.name}/{release.tag}"
        return install_dir, f"{install_dir}/lighthouse"

    def build_args(self) -> List[str]:
        cfg = self.config
        args = [
            "bn",
            "--datadir", str(self.resolve(cfg.datadir)),
            "--network", cfg.network,
            "--execution-endpoint", cfg.execution.endpoint,
            "--execution-jwt", str(self.resolve(cfg.execution.jwt)),
        ]
        if cfg.checkpoint_sync_url:
            args.extend(["--checkpoint-sync-url", cfg.checkpoint_sync_url])
        if cfg.http:
            args.append("--http")
        args.append("--disable-deposit-contract-sync")
        return args

    def secret_paths(self) -> List[str]:
        return [self.config.execution.jwt]
