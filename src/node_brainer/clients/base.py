# -*- coding: utf-8 -*-

"""
客户端门面基类

文件功能:
    - 为每种客户端（执行层 geth、共识层 lighthouse）提供统一的生命周期操作:
      download / start / stop / logs / status。
    - 串联 资源下载（AssetClient）-> 配置存储（ConfigStore）-> 密钥生成 -> 进程管理 -> 日志跟踪。
    - 子类只负责: 身份信息、配置模型、安装目录布局、启动参数、需要的密钥文件。

公开接口:
    - 类 InstallPlan: 一次 download 解析出的安装计划
    - 类 BaseClient:
        - 方法: download(progress_callback=None) -> Binary
        - 方法: start() -> int
        - 方法: stop() -> None
        - 方法: logs(stop_event=None, out=None) -> None
        - 方法: status() -> ClientStatus

内部方法:
    - _operation(name): 为异常绑定客户端名与操作名并记录日志
    - _download_lock(): 同一客户端的下载互斥（进程内锁 + 文件锁）
"""

from __future__ import annotations

import sys
import threading
from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO, ClassVar, Dict, Generic, Iterator, List, Optional, Type, TypeVar

from loguru import logger

from ..asset_client import AssetClient, ClientIdentity, ReleaseDescriptor
from ..asset_client.archive import ProgressCallback
from ..asset_client.utils import path_exists
from ..errors import (
    AlreadyRunningError,
    ArchiveFormatError,
    FilesystemError,
    NodeBrainerError,
    NoSuchProcessError,
    NotInstalledError,
)
from ..service.config_store import ConfigStore
from ..service.paths import PathLike, get_download_lock_path, resolve_under_root
from ..workers import log_follower, process_supervisor
from ..workers.jwt_secret import ensure_secret
from ..workers.schemas import NOT_RUNNING_PID, Binary, ClientConfig, ClientState, ClientStatus

try:
    import fcntl  # type: ignore
except ImportError:  # Windows
    fcntl = None

ConfigT = TypeVar("ConfigT", bound=ClientConfig)

# 同一进程内每个客户端一把下载锁
_DOWNLOAD_LOCKS: Dict[str, threading.Lock] = {}
_DOWNLOAD_LOCKS_GUARD = threading.Lock()


def _lock_for(key: str) -> threading.Lock:
    with _DOWNLOAD_LOCKS_GUARD:
        return _DOWNLOAD_LOCKS.setdefault(key, threading.Lock())


@dataclass(frozen=True)
class InstallPlan:
    release: ReleaseDescriptor
    os_token: str
    arch_token: str
    url: str
    # 以下路径均相对项目根目录
    install_dir: str
    binary_path: str

    def provenance(self) -> Binary:
        return Binary(
            path=self.binary_path,
            version=self.release.tag,
            os=self.os_token,
            arch=self.arch_token,
            sha_commit=self.release.commit,
        )


class BaseClient(ABC, Generic[ConfigT]):
    """统一的客户端生命周期门面"""

    identity: ClassVar[ClientIdentity]
    # 具体的配置模型，需提供 default() 类方法返回该客户端的默认配置
    config_model: ClassVar[Type[ClientConfig]]

    def __init__(self, root: PathLike, asset_client: Optional[AssetClient] = None):
        self.root = Path(root)
        self.asset_client = asset_client or AssetClient(self.identity)
        self.store: ConfigStore[ConfigT] = ConfigStore(self.root, self.name, self.config_model)
        with self._operation("load-config"):
            self.config: ConfigT = self.store.load()

    @property
    def name(self) -> str:
        return self.identity.name

    # ---- 子类实现 ----

    @abstractmethod
    def _layout(self, release: ReleaseDescriptor, os_token: str, arch_token: str) -> tuple[str, str]:
        """返回 (install_dir, binary_path)，均为相对项目根目录的路径"""

    @abstractmethod
    def build_args(self) -> List[str]:
        """根据配置渲染启动参数（不含二进制本身）"""

    @abstractmethod
    def secret_paths(self) -> List[str]:
        """启动前需要确保存在的共享密钥文件（相对或绝对路径）"""

    # ---- 路径 ----

    def resolve(self, path: str) -> Path:
        return resolve_under_root(self.root, path)

    @property
    def log_path(self) -> Path:
        return self.resolve(self.config.stdout_file)

    # ---- 公共流程 ----

    @contextmanager
    def _operation(self, operation: str) -> Iterator[None]:
        try:
            yield
        except NodeBrainerError as e:
            e.bind(self.name, operation)
            logger.error(str(e))
            raise

    @contextmanager
    def _download_lock(self) -> Iterator[None]:
        lock_path = get_download_lock_path(self.root, self.name)
        with _lock_for(str(lock_path)):
            if fcntl is None:
                yield
                return
            try:
                lock_path.parent.mkdir(parents=True, exist_ok=True)
                fh = open(lock_path, "w")
            except OSError as e:
                raise FilesystemError(f"无法创建下载锁文件 {lock_path}: {e}") from e
            with fh:
                fcntl.flock(fh, fcntl.LOCK_EX)
                try:
                    yield
                finally:
                    fcntl.flock(fh, fcntl.LOCK_UN)

    def plan_install(self, os_name: Optional[str] = None, arch_name: Optional[str] = None) -> InstallPlan:
        """解析最新版本与平台，计算下载地址和安装路径（平台校验先于地址渲染）"""
        release = self.asset_client.latest_release()
        os_token, arch_token, url_os = self.asset_client.platform_tokens(os_name, arch_name)
        url = self.asset_client.download_url(release, url_os, arch_token)
        install_dir, binary_path = self._layout(release, os_token, arch_token)
        return InstallPlan(
            release=release,
            os_token=os_token,
            arch_token=arch_token,
            url=url,
            install_dir=install_dir,
            binary_path=binary_path,
        )

    def download(self, progress_callback: Optional[ProgressCallback] = None) -> Binary:
        """
        下载并安装最新版本。

        预期二进制已存在时跳过下载，只探测版本；同一版本重复安装最多发生一次下载。
        """
        with self._operation("download"), self._download_lock():
            plan = self.plan_install()
            binary_path = self.resolve(plan.binary_path)

            if path_exists(binary_path):
                version = process_supervisor.probe_version(str(binary_path))
                logger.info(f"{self.name} 已安装，使用: {binary_path} ({version})")
            else:
                logger.info(
                    f"正在下载 {self.name} {plan.release.tag}"
                    f"{' ' + plan.release.commit if plan.release.commit else ''} "
                    f"({plan.os_token} {plan.arch_token})"
                )
                self.asset_client.fetch_and_extract(plan.url, str(self.resolve(plan.install_dir)), progress_callback)
                if not path_exists(binary_path):
                    raise ArchiveFormatError(f"发布包中未找到预期的二进制: {plan.binary_path}")
                version = process_supervisor.probe_version(str(binary_path))
                logger.info(f"{self.name} 安装成功: {version}")

            provenance = plan.provenance()
            if self.config.binary != provenance:
                self.config.binary = provenance
                self.store.save(self.config)
            return provenance

    def _installed_binary(self) -> Path:
        binary = self.config.binary
        if not binary.is_recorded():
            raise NotInstalledError(f"{self.name} 尚未安装，请先执行 download")
        path = self.resolve(binary.path)
        if not path_exists(path):
            raise NotInstalledError(f"{self.name} 记录的二进制不存在: {path}，请重新执行 download")
        return path

    def is_running(self) -> bool:
        if self.config.pid == NOT_RUNNING_PID:
            return False
        binary = self.config.binary
        expected = str(self.resolve(binary.path)) if binary.is_recorded() else None
        return process_supervisor.is_process_running(self.config.pid, expected)

    def start(self) -> int:
        with self._operation("start"):
            binary_path = self._installed_binary()

            if self.config.pid != NOT_RUNNING_PID:
                if process_supervisor.is_process_running(self.config.pid, str(binary_path)):
                    raise AlreadyRunningError(f"{self.name} 已在运行，PID: {self.config.pid}")
                logger.warning(f"{self.name} 记录的 PID {self.config.pid} 已失效，将重新启动")

            for secret in self.secret_paths():
                ensure_secret(self.resolve(secret))

            pid = process_supervisor.spawn(str(binary_path), self.build_args(), str(self.log_path))
            logger.info(f"{self.name} 启动成功，PID: {pid}，输出重定向到 {self.log_path}")

            self.config.pid = pid
            self.store.save(self.config)
            return pid

    def stop(self) -> None:
        with self._operation("stop"):
            pid = self.config.pid
            binary = self.config.binary
            expected = str(self.resolve(binary.path)) if binary.is_recorded() else None
            try:
                process_supervisor.signal_process(pid, expected)
            except NoSuchProcessError as e:
                if pid == NOT_RUNNING_PID:
                    e.message = f"没有正在运行的 {self.name} 进程"
                else:
                    # 崩溃或重启后遗留的 PID：清理记录后仍报告错误
                    self.config.pid = NOT_RUNNING_PID
                    self.store.save(self.config)
                    e.message = f"{self.name} 进程已不存在，已清除记录的 PID {pid}: {e.message}"
                raise

            logger.info(f"已向 {self.name} 进程 {pid} 发送停止信号")
            self.config.pid = NOT_RUNNING_PID
            self.store.save(self.config)

    def logs(self, stop_event: Optional[threading.Event] = None, out: Optional[BinaryIO] = None) -> None:
        """输出日志文件现有内容并持续跟踪，直到 stop_event 被设置"""
        out = out or sys.stdout.buffer
        with self._operation("logs"):
            for chunk in log_follower.follow(self.log_path, stop_event):
                out.write(chunk)
                out.flush()

    def status(self) -> ClientStatus:
        binary = self.config.binary
        installed = binary.is_recorded() and path_exists(self.resolve(binary.path))
        if not installed:
            state = ClientState.NOT_INSTALLED
        elif self.is_running():
            state = ClientState.RUNNING
        else:
            state = ClientState.INSTALLED
        return ClientStatus(
            name=self.name,
            state=state,
            version=binary.version or None,
            binary_path=binary.path or None,
            pid=self.config.pid,
            log_file=str(self.log_path),
        )
