# -*- coding: utf-8 -*-
"""
错误分类

文件功能:
    - 为客户端生命周期管理的每一类失败定义异常类型。
    - 门面层（clients.base）通过 bind() 为异常附加客户端名称与操作名称，
      使最终展示的信息形如 "[geth/stop] 没有正在运行的 geth 进程"。

公开接口:
    - NodeBrainerError 及其子类
"""

from __future__ import annotations

from typing import Optional


class NodeBrainerError(RuntimeError):
    """所有可预期失败的基类"""

    def __init__(self, message: str, *, client: Optional[str] = None, operation: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.client = client
        self.operation = operation

    def bind(self, client: str, operation: str) -> "NodeBrainerError":
        """附加客户端与操作上下文（已绑定的不覆盖）"""
        if self.client is None:
            self.client = client
        if self.operation is None:
            self.operation = operation
        return self

    def __str__(self) -> str:
        if self.client and self.operation:
            return f"[{self.client}/{self.operation}] {self.message}"
        return self.message


# ---- 网络 / 上游 ----

class NetworkError(NodeBrainerError):
    """无法连接上游地址（传输层失败）"""


class UpstreamError(NodeBrainerError):
    """上游返回非 200 状态码"""

    def __init__(self, message: str, status_code: int, **kwargs):
        super().__init__(message, **kwargs)
        self.status_code = status_code


class DecodeError(NodeBrainerError):
    """响应体格式错误或缺少字段"""


class ResolveError(NodeBrainerError):
    """下载地址模板无效或渲染失败"""


# ---- 文件与压缩包 ----

class FilesystemError(NodeBrainerError):
    """创建 / 打开 / 写入 / 授权失败"""


class DecompressionError(NodeBrainerError):
    """gzip 数据损坏或被截断"""


class ArchiveFormatError(NodeBrainerError):
    """tar 结构损坏或内容不符合预期"""


# ---- 进程控制 ----

class SpawnError(NodeBrainerError):
    """无法启动二进制或执行 --version"""


class NoSuchProcessError(NodeBrainerError):
    """按 PID 查找进程失败（进程不存在或已不是目标二进制）"""


class NotRunningError(NoSuchProcessError):
    """PID 为哨兵值 -1，没有记录在运行的进程"""


class SignalError(NodeBrainerError):
    """向进程发送信号失败"""


class AlreadyRunningError(NodeBrainerError):
    """客户端已在运行"""


class NotInstalledError(NodeBrainerError):
    """客户端尚未安装，或记录的二进制已不存在"""


# ---- 平台 ----

class UnsupportedPlatform(NodeBrainerError):
    """当前操作系统不在平台映射表中"""


class UnsupportedArch(NodeBrainerError):
    """当前 CPU 架构不在平台映射表中"""


# ---- 其它 ----

class ConfigError(NodeBrainerError):
    """配置文件缺失、损坏或项目根目录无法确定"""


class GenerationError(NodeBrainerError):
    """共享密钥生成失败"""
