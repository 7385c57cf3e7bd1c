# -*- coding: utf-8 -*-

"""
通用数据模型（schemas）

文件功能:
    - 定义持久化到 clients/configs/<name>.json 的 pydantic 模型。
    - JSON 字段名沿用既有配置文件格式（datadir、stdoutFile、shaCommit 等），
      Python 侧使用 snake_case 属性名。

公开接口的 pydantic 模型:
    - Binary: 已安装二进制的来源记录（路径、版本、OS、架构、提交哈希）
    - ClientConfig: 各客户端共有的配置字段
    - AuthRPC / GethHTTP / GethConfig: geth 专用配置
    - Execution / LighthouseConfig: lighthouse 专用配置
    - ClientState / ClientStatus: 状态查询结果
"""

from __future__ import annotations

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

NOT_RUNNING_PID = -1


class _Model(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class Binary(_Model):
    """已安装二进制的来源记录；path 为相对项目根目录的路径，空串表示未安装"""
    path: str = ""
    version: str = ""
    os: str = ""
    arch: str = ""
    sha_commit: Optional[str] = Field(default=None, alias="shaCommit")

    def is_recorded(self) -> bool:
        return bool(self.path)


class ClientConfig(_Model):
    network: str = "sepolia"
    datadir: str
    stdout_file: str = Field(alias="stdoutFile")
    binary: Binary = Field(default_factory=Binary)
    pid: int = NOT_RUNNING_PID

    def to_json_dict(self) -> dict:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class AuthRPC(_Model):
    addr: str = "localhost"
    port: int = 8551
    vhosts: str = "localhost"
    jwtsecret: str = "clients/secrets/jwt.hex"


class GethHTTP(_Model):
    enabled: bool = True
    api: List[str] = Field(default_factory=lambda: ["eth", "net"])


class GethConfig(ClientConfig):
    authrpc: AuthRPC = Field(default_factory=AuthRPC)
    http: GethHTTP = Field(default_factory=GethHTTP)

    @classmethod
    def default(cls) -> "GethConfig":
        return cls(datadir="clients/data/geth", stdout_file="clients/logs/geth.log")


class Execution(_Model):
    endpoint: str = "http://localhost:8551"
    jwt: str = "clients/secrets/jwt.hex"


class LighthouseConfig(ClientConfig):
    execution: Execution = Field(default_factory=Execution)
    checkpoint_sync_url: str = Field(default="https://sepolia.beaconstate.info", alias="checkpointSyncUrl")
    http: bool = True

    @classmethod
    def default(cls) -> "LighthouseConfig":
        return cls(datadir="clients/data/lighthouse", stdout_file="clients/logs/lighthouse.log")


class ClientState(str, Enum):
    NOT_INSTALLED = "not_installed"
    INSTALLED = "installed"
    RUNNING = "running"


class ClientStatus(BaseModel):
    """客户端状态信息模型"""
    name: str
    state: ClientState
    version: Optional[str] = None
    binary_path: Optional[str] = None
    pid: int = NOT_RUNNING_PID
    log_file: str
