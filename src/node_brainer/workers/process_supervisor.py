# -*- coding: utf-8 -*-

"""
进程管理（ProcessSupervisor）

文件功能:
    - 以子进程方式启动客户端二进制，stdout/stderr 都重定向到日志文件，不等待其结束
    - 按持久化的 PID 向进程发送中断信号
    - 检查 PID 是否仍然存活且确实属于预期的二进制（避免对复用的 PID 发信号）
    - 执行 `<binary> --version` 探测版本

公开接口:
    - spawn(binary_path, args, log_path) -> int
    - signal_process(pid, expected_binary=None) -> None
    - is_process_running(pid, expected_binary=None) -> bool
    - probe_version(binary_path) -> str

内部方法:
    - _matches_binary(proc, expected_binary): 进程命令行是否引用了预期的二进制
"""

from __future__ import annotations

import os
import signal
import subprocess
import sys
from pathlib import Path
from typing import List, Optional, Sequence

import psutil
from loguru import logger

from ..config import VERSION_PROBE_TIMEOUT
from ..errors import (
    FilesystemError,
    NoSuchProcessError,
    NotRunningError,
    SignalError,
    SpawnError,
)
from .schemas import NOT_RUNNING_PID


def _same_file(a: str, b: str) -> bool:
    try:
        return os.path.realpath(a) == os.path.realpath(b)
    except (OSError, ValueError):
        return False


def _matches_binary(proc: psutil.Process, expected_binary: str) -> bool:
    """进程的可执行文件或命令行参数中是否包含 expected_binary（脚本解释器场景看参数）"""
    try:
        exe = proc.exe()
    except (psutil.NoSuchProcess, psutil.AccessDenied, OSError):
        exe = ""
    if exe and _same_file(exe, expected_binary):
        return True
    try:
        cmdline: List[str] = proc.cmdline()
    except (psutil.NoSuchProcess, psutil.AccessDenied):
        return False
    return any(_same_file(arg, expected_binary) for arg in cmdline[:2])


def _lookup(pid: int, expected_binary: Optional[str]) -> psutil.Process:
    if pid == NOT_RUNNING_PID:
        raise NotRunningError("没有正在运行的进程（PID 为 -1）")
    try:
        proc = psutil.Process(pid)
        if proc.status() == psutil.STATUS_ZOMBIE:
            raise NoSuchProcessError(f"进程 {pid} 已退出")
    except psutil.NoSuchProcess:
        raise NoSuchProcessError(f"进程 {pid} 不存在") from None
    except psutil.AccessDenied as e:
        raise NoSuchProcessError(f"无权访问进程 {pid}: {e}") from e

    if expected_binary is not None and not _matches_binary(proc, expected_binary):
        raise NoSuchProcessError(f"进程 {pid} 不是 {expected_binary}，PID 可能已被复用")
    return proc


def is_process_running(pid: int, expected_binary: Optional[str] = None) -> bool:
    """检查给定的 PID 是否对应一个正在运行的目标进程"""
    try:
        _lookup(pid, expected_binary)
        return True
    except NoSuchProcessError:
        return False


def spawn(binary_path: str, args: Sequence[str], log_path: str) -> int:
    """
    启动 binary_path，输出写入 log_path（截断重写），返回子进程 PID。

    子进程放在新的会话中，终端里的 Ctrl-C 不会传递给它。
    """
    log_file = Path(log_path)
    try:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        out = open(log_file, "wb")
    except OSError as e:
        raise FilesystemError(f"打开日志文件失败 {log_file}: {e}") from e

    cmd = [str(binary_path), *args]
    logger.debug(f"启动命令: {subprocess.list2cmdline(cmd)}")
    try:
        with out:
            proc = subprocess.Popen(
                cmd,
                stdin=subprocess.DEVNULL,
                stdout=out,
                stderr=out,
                start_new_session=(sys.platform != "win32"),
            )
    except OSError as e:
        raise SpawnError(f"启动 {binary_path} 失败: {e}") from e

    return proc.pid


def signal_process(pid: int, expected_binary: Optional[str] = None) -> None:
    """向进程发送中断信号（Windows 上没有 SIGINT 语义，改为 terminate）"""
    proc = _lookup(pid, expected_binary)
    try:
        if sys.platform == "win32":
            proc.terminate()
        else:
            proc.send_signal(signal.SIGINT)
    except psutil.NoSuchProcess:
        raise NoSuchProcessError(f"进程 {pid} 在发送信号前已退出") from None
    except (psutil.AccessDenied, OSError) as e:
        raise SignalError(f"向进程 {pid} 发送中断信号失败: {e}") from e


def probe_version(binary_path: str) -> str:
    """执行 `<binary> --version`，返回第一行非空输出"""
    try:
        result = subprocess.run(
            [str(binary_path), "--version"],
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            text=True,
            timeout=VERSION_PROBE_TIMEOUT,
            check=False,
        )
    except subprocess.TimeoutExpired:
        raise SpawnError(f"执行 {binary_path} --version 超时 ({VERSION_PROBE_TIMEOUT}s)") from None
    except OSError as e:
        raise SpawnError(f"执行 {binary_path} --version 失败: {e}") from e

    if result.returncode != 0:
        raise SpawnError(f"{binary_path} --version 返回码 {result.returncode}: {(result.stdout or '').strip()}")

    for line in (result.stdout or "").splitlines():
        if line.strip():
            return line.strip()
    return ""
