# -*- coding: utf-8 -*-
"""
客户端配置存储

文件功能:
    - 读取与写回 <root>/clients/configs/<name>.json。
    - 每次写入都是整份重写，先写临时文件再 os.replace，避免进程中途退出留下半个文件。
    - 磁盘上的文件是"是否已安装 / 是否在运行"的唯一依据。

公开接口:
    - 类 ConfigStore
        - 方法: load() -> ClientConfig 子类实例
        - 方法: save(config) -> None
        - 方法: ensure(default) -> 配置（文件不存在时写入 default）
        - 方法: exists() -> bool
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Generic, Type, TypeVar

from loguru import logger
from pydantic import ValidationError

from ..errors import ConfigError, FilesystemError
from ..workers.schemas import ClientConfig
from .paths import PathLike, get_client_config_path

ConfigT = TypeVar("ConfigT", bound=ClientConfig)


class ConfigStore(Generic[ConfigT]):
    """单个客户端配置文件的读写；不做加锁，调用方需保证同一客户端的操作串行"""

    def __init__(self, root: PathLike, name: str, model: Type[ConfigT]):
        self.root = Path(root)
        self.name = name
        self.model = model
        self.path = get_client_config_path(self.root, name)

    def exists(self) -> bool:
        return self.path.exists()

    def load(self) -> ConfigT:
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError:
            raise ConfigError(f"未找到 {self.name} 配置文件: {self.path}") from None
        except json.JSONDecodeError as e:
            raise ConfigError(f"解析 {self.name} 配置文件失败 {self.path}: {e}") from e
        except OSError as e:
            raise ConfigError(f"读取 {self.name} 配置文件失败 {self.path}: {e}") from e

        try:
            return self.model.model_validate(data)
        except ValidationError as e:
            raise ConfigError(f"{self.name} 配置文件内容无效 {self.path}: {e}") from e

    def save(self, config: ConfigT) -> None:
        tmp_path = self.path.with_name(f".{self.path.name}.tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(tmp_path, "w", encoding="utf-8") as f:
                json.dump(config.to_json_dict(), f, ensure_ascii=False, indent=2)
                f.write("\n")
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, self.path)
        except OSError as e:
            raise FilesystemError(f"写入 {self.name} 配置文件失败 {self.path}: {e}") from e
        logger.info(f"配置已写入: {self.path}")

    def ensure(self, default: ConfigT) -> ConfigT:
        if self.exists():
            return self.load()
        logger.info(f"{self.name} 配置文件不存在，写入默认配置: {self.path}")
        self.save(default)
        return default
