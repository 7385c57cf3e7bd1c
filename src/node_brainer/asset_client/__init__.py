# -*- coding: utf-8 -*-
"""
资源下载客户端

负责解析客户端的最新发布版本、按宿主平台渲染下载地址，并下载解压发布包。

公开接口:
    - 类 AssetClient
        - 方法: latest_release() -> ReleaseDescriptor
        - 方法: platform_tokens(os_name=None, arch_name=None) -> tuple[str, str, str]
        - 方法: download_url(release, os_token, arch_token) -> str
        - 方法: fetch_and_extract(url, dest_dir, progress_callback=None) -> int
"""
from typing import Optional, Tuple

from .archive import ProgressCallback, fetch_and_extract as fetch_and_extract_func
from .platforms import host_arch, host_os, resolve_arch, resolve_os, url_os_token
from .releases import (
    ClientIdentity,
    ReleaseDescriptor,
    UrlTemplate,
    resolve_commit,
    resolve_latest_version,
)

__all__ = ["AssetClient", "ClientIdentity", "ReleaseDescriptor", "UrlTemplate"]


class AssetClient:
    """封装了某个客户端的版本解析与发布包下载逻辑"""

    def __init__(self, identity: ClientIdentity):
        self.identity = identity

    def latest_release(self) -> ReleaseDescriptor:
        """解析最新版本；配置了标签提交地址的客户端同时解析提交哈希"""
        tag = resolve_latest_version(self.identity)
        commit = None
        if self.identity.tag_commit_url is not None:
            commit = resolve_commit(self.identity, tag)
        return ReleaseDescriptor(tag=tag, commit=commit)

    def platform_tokens(self, os_name: Optional[str] = None, arch_name: Optional[str] = None) -> Tuple[str, str, str]:
        """
        返回 (os_token, arch_token, url_os_token)。

        url_os_token 在需要 portable 变体时带有后缀，仅用于渲染下载地址。
        """
        os_name = os_name or host_os()
        arch_name = arch_name or host_arch()
        table = self.identity.platforms
        os_token = resolve_os(table, os_name)
        arch_token = resolve_arch(table, os_token, arch_name)
        return os_token, arch_token, url_os_token(table, os_token, arch_name)

    def download_url(self, release: ReleaseDescriptor, os_token: str, arch_token: str) -> str:
        values = {"tag": release.tag, "version": release.version, "os": os_token, "arch": arch_token}
        if release.commit is not None:
            values["commit"] = release.commit
        return self.identity.download_url.render(**values)

    def fetch_and_extract(self, url: str, dest_dir: str, progress_callback: Optional[ProgressCallback] = None) -> int:
        return fetch_and_extract_func(url, dest_dir, progress_callback)
