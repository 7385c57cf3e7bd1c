# -*- coding: utf-8 -*-
"""
平台解析

将宿主操作系统 / CPU 架构映射为各上游项目发布包使用的命名。
所有映射都是纯查表，不读取任何全局状态（宿主信息由 host_os()/host_arch() 单独获取）。
"""

from __future__ import annotations

import platform
import sys
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import FrozenSet, Mapping, Tuple

from ..errors import UnsupportedArch, UnsupportedPlatform

# platform.machine() 的各种写法 -> Go 风格 GOARCH
_MACHINE_ALIASES = {
    "x86_64": "amd64",
    "amd64": "amd64",
    "aarch64": "arm64",
    "arm64": "arm64",
    "armv8": "arm64",
    "i386": "386",
    "i686": "386",
    "x86": "386",
}


def host_os() -> str:
    """返回 Go 风格的 GOOS: linux / darwin / windows，其它原样返回"""
    if sys.platform.startswith("linux"):
        return "linux"
    if sys.platform == "darwin":
        return "darwin"
    if sys.platform in ("win32", "cygwin"):
        return "windows"
    return sys.platform


def host_arch() -> str:
    """返回 Go 风格的 GOARCH: amd64 / arm64 / 386，未知写法原样返回（小写）"""
    machine = platform.machine().lower()
    return _MACHINE_ALIASES.get(machine, machine)


@dataclass(frozen=True)
class PlatformTable:
    """某个上游项目的发布包命名规则"""

    os_tokens: Mapping[str, str]
    arch_tokens: Mapping[str, str]
    # 某些 OS token 无论宿主架构如何都使用固定的架构名
    fixed_arch: Mapping[str, str] = field(default_factory=dict)
    # 需要请求 portable 变体的 (os_token, host_arch) 组合
    portable: FrozenSet[Tuple[str, str]] = frozenset()
    portable_suffix: str = "-portable"

    def __post_init__(self):
        object.__setattr__(self, "os_tokens", MappingProxyType(dict(self.os_tokens)))
        object.__setattr__(self, "arch_tokens", MappingProxyType(dict(self.arch_tokens)))
        object.__setattr__(self, "fixed_arch", MappingProxyType(dict(self.fixed_arch)))
        object.__setattr__(self, "portable", frozenset(self.portable))


def resolve_os(table: PlatformTable, os_name: str) -> str:
    try:
        return table.os_tokens[os_name]
    except KeyError:
        raise UnsupportedPlatform(f"不支持的操作系统: {os_name}") from None


def resolve_arch(table: PlatformTable, os_token: str, arch_name: str) -> str:
    if os_token in table.fixed_arch:
        return table.fixed_arch[os_token]
    try:
        return table.arch_tokens[arch_name]
    except KeyError:
        raise UnsupportedArch(f"不支持的 CPU 架构: {arch_name}") from None


def requires_portable_variant(table: PlatformTable, os_token: str, arch_name: str) -> bool:
    return (os_token, arch_name) in table.portable


def url_os_token(table: PlatformTable, os_token: str, arch_name: str) -> str:
    """渲染下载地址时使用的 OS token（必要时附加 portable 后缀）"""
    if requires_portable_variant(table, os_token, arch_name):
        return f"{os_token}{table.portable_suffix}"
    return os_token


# lighthouse: apple-darwin 只发布 x86_64 包，arm64 的 Mac 需要 portable 变体
LIGHTHOUSE_PLATFORMS = PlatformTable(
    os_tokens={"linux": "linux-gnu", "darwin": "apple-darwin"},
    arch_tokens={"amd64": "x86_64-unknown", "arm64": "aarch64-unknown"},
    fixed_arch={"apple-darwin": "x86_64"},
    portable=frozenset({("apple-darwin", "arm64")}),
)

# geth: 直接使用 GOOS/GOARCH；Windows 只有 zip 包，不在支持范围内
GETH_PLATFORMS = PlatformTable(
    os_tokens={"linux": "linux", "darwin": "darwin"},
    arch_tokens={"amd64": "amd64", "arm64": "arm64", "386": "386"},
)
