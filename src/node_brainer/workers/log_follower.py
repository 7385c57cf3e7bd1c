# -*- coding: utf-8 -*-

"""
日志跟踪

先输出日志文件的现有内容，再持续输出追加写入的内容（类似 tail -f）。
读到文件末尾时按固定间隔轮询；通过 stop_event（线程）或任务取消 / 客户端断开（asyncio）结束。
客户端重新启动时日志会被清空重写，以下任一情况都视为新文件并从头开始读:
    - 文件大小小于当前读取位置
    - 文件开头的字节与上次看到的不同（截断后新内容已超过原读取位置）
    - 路径指向了另一个文件（被删除后重建）

公开接口:
    - follow(path, stop_event=None, interval=LOG_POLL_INTERVAL) -> Iterator[bytes]
    - afollow(path, should_stop=None, interval=LOG_POLL_INTERVAL) -> AsyncIterator[bytes]
"""

from __future__ import annotations

import asyncio
import os
import threading
from typing import AsyncIterator, Awaitable, BinaryIO, Callable, Iterator, Optional

from ..config import LOG_POLL_INTERVAL
from ..errors import FilesystemError

CHUNK_SIZE = 4096
HEAD_SIZE = 64


def _open(path) -> BinaryIO:
    try:
        return open(path, "rb")
    except OSError as e:
        raise FilesystemError(f"打开日志文件失败 {path}: {e}") from e


class _Tail:
    """打开的日志文件及其读取位置"""

    def __init__(self, path):
        self.path = path
        self.f = _open(path)
        # 已读到的文件开头，用于识别截断重写
        self.head = b""

    def close(self):
        self.f.close()

    def _peek_head(self) -> bytes:
        pos = self.f.tell()
        self.f.seek(0)
        head = self.f.read(HEAD_SIZE)
        self.f.seek(pos)
        return head

    def _replaced(self) -> bool:
        try:
            current = os.stat(self.path)
        except FileNotFoundError:
            return False
        return current.st_ino != os.fstat(self.f.fileno()).st_ino

    def _rewritten(self) -> bool:
        if os.fstat(self.f.fileno()).st_size < self.f.tell():
            return True
        return bool(self.head) and not self._peek_head().startswith(self.head)

    def read(self, chunk_size: int) -> bytes:
        try:
            if self._replaced():
                self.f.close()
                self.f = _open(self.path)
                self.head = b""
            elif self._rewritten():
                self.f.seek(0)
                self.head = b""
            data = self.f.read(chunk_size)
            if data and len(self.head) < HEAD_SIZE:
                self.head = self._peek_head()
            return data
        except OSError as e:
            raise FilesystemError(f"读取日志文件失败 {self.path}: {e}") from e


def follow(path, stop_event: Optional[threading.Event] = None,
           interval: float = LOG_POLL_INTERVAL, chunk_size: int = CHUNK_SIZE) -> Iterator[bytes]:
    stop_event = stop_event or threading.Event()
    tail = _Tail(path)
    try:
        # 先整体输出现有内容
        existing = tail.read(-1)
        if existing:
            yield existing
        while not stop_event.is_set():
            chunk = tail.read(chunk_size)
            if chunk:
                yield chunk
                continue
            # 到达文件末尾，等待新内容；stop_event 被设置时立即返回
            if stop_event.wait(interval):
                break
    finally:
        tail.close()


async def afollow(path, should_stop: Optional[Callable[[], Awaitable[bool]]] = None,
                  interval: float = LOG_POLL_INTERVAL, chunk_size: int = CHUNK_SIZE) -> AsyncIterator[bytes]:
    tail = _Tail(path)
    try:
        existing = tail.read(-1)
        if existing:
            yield existing
        while True:
            if should_stop is not None and await should_stop():
                break
            chunk = tail.read(chunk_size)
            if chunk:
                yield chunk
                continue
            await asyncio.sleep(interval)
    finally:
        tail.close()
