# -*- coding: utf-8 -*-
"""
统一的路径管理服务。

文件功能:
    - 确定项目根目录：显式传入 > 环境变量 NODE_BRAINER_ROOT > 自当前目录向上查找 pyproject.toml。
    - 集中管理根目录下的固定布局（配置、二进制、下载锁）。

公开接口:
    - find_root_path(start_dir): 向上查找标记文件所在目录。
    - get_root_dir(explicit=None): 获取项目根目录。
    - get_configs_dir(root) / get_client_config_path(root, name)
    - get_binaries_dir(root, name) / get_download_lock_path(root, name)
    - resolve_under_root(root, path): 相对路径按根目录解析，绝对路径原样返回。
"""

import os
from pathlib import Path
from typing import Optional, Union

from ..config import ROOT_ENV, ROOT_MARKER
from ..errors import ConfigError

PathLike = Union[str, Path]


def find_root_path(start_dir: PathLike = ".", marker: str = ROOT_MARKER) -> Path:
    """从 start_dir 开始逐级向上查找包含 marker 的目录"""
    current = Path(start_dir).resolve()
    for candidate in (current, *current.parents):
        if (candidate / marker).exists():
            return candidate
    raise ConfigError(f"未找到项目根目录：{current} 及其上级目录中都没有 {marker}")


def get_root_dir(explicit: Optional[PathLike] = None) -> Path:
    if explicit is not None:
        return Path(explicit).resolve()
    from_env = os.environ.get(ROOT_ENV)
    if from_env:
        return Path(from_env).resolve()
    return find_root_path(Path.cwd())


def get_configs_dir(root: PathLike) -> Path:
    return Path(root) / "clients" / "configs"


def get_client_config_path(root: PathLike, name: str) -> Path:
    return get_configs_dir(root) / f"{name}.json"


def get_binaries_dir(root: PathLike, name: str) -> Path:
    # 例如 <root>/clients/binaries/lighthouse
    return Path(root) / "clients" / "binaries" / name


def get_download_lock_path(root: PathLike, name: str) -> Path:
    return get_binaries_dir(root, name) / ".download.lock"


def resolve_under_root(root: PathLike, path: PathLike) -> Path:
    return Path(root) / path
