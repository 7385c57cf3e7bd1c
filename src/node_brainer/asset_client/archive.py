# -*- coding: utf-8 -*-
"""
下载并解压 .tar.gz 发布包

文件功能:
    - 流式下载发布包，依次经过 进度统计 -> gzip 解压 -> tar 顺序读取，边下载边解压，
      不在磁盘上保留压缩包。
    - 目标路径为 dest_dir/<压缩包内路径>，不假设压缩包只有一个顶层目录，
      因此调用方应传入已按版本区分的 dest_dir。
    - 重复解压到已有（可能不完整的）目录时，目录被复用，普通文件被覆盖。
    - 普通文件先写入同目录的 <name>.part，整个压缩包（含 gzip 尾部 CRC）校验通过后
      才 os.replace 到最终路径；任何失败都会删除已暂存的 .part 文件。

公开接口:
    - 类 ProgressReader: 将分块迭代器包装为带进度回调的只读文件对象
    - fetch_and_extract(url, dest_dir, progress_callback=None) -> int（解压的文件数）

异常:
    NetworkError / UpstreamError / DecompressionError / ArchiveFormatError / FilesystemError
"""

from __future__ import annotations

import gzip
import os
import tarfile
import zlib
from pathlib import Path
from typing import Callable, Dict, Iterable, Iterator, Optional

import requests
from requests.exceptions import RequestException
from loguru import logger

from ..config import DOWNLOAD_TIMEOUT
from ..errors import (
    ArchiveFormatError,
    DecompressionError,
    FilesystemError,
    NetworkError,
    UpstreamError,
)
from .utils import make_executable

CHUNK_SIZE = 64 * 1024
DIR_MODE = 0o755
PART_SUFFIX = ".part"

# (已下载字节数, 百分比；服务器未声明 Content-Length 时为 None)
ProgressCallback = Callable[[int, Optional[float]], None]


class ProgressReader:
    """把 response.iter_content() 的分块包装成可 read() 的对象，并汇报下载进度"""

    def __init__(self, chunks: Iterable[bytes], total_size: Optional[int] = None,
                 progress_callback: Optional[ProgressCallback] = None):
        self._chunks: Iterator[bytes] = iter(chunks)
        self._buffer = b""
        self._eof = False
        self.total_read = 0
        self.total_size = total_size if total_size and total_size > 0 else None
        self.progress_callback = progress_callback

    @property
    def percent(self) -> Optional[float]:
        if self.total_size is None:
            return None
        return min(self.total_read / self.total_size * 100, 100.0)

    def _pull(self) -> bool:
        try:
            chunk = next(self._chunks)
        except StopIteration:
            self._eof = True
            return False
        except RequestException as e:
            raise NetworkError(f"下载过程中连接中断: {e}") from e

        if chunk:
            self._buffer += chunk
            self.total_read += len(chunk)
            if self.progress_callback is not None:
                self.progress_callback(self.total_read, self.percent)
        return True

    def read(self, size: int = -1) -> bytes:
        if size is None or size < 0:
            while not self._eof:
                self._pull()
            data, self._buffer = self._buffer, b""
            return data

        while len(self._buffer) < size and not self._eof:
            self._pull()
        data, self._buffer = self._buffer[:size], self._buffer[size:]
        return data

    def readable(self) -> bool:
        return True


def _content_length(resp) -> Optional[int]:
    value = resp.headers.get("Content-Length")
    try:
        return int(value) if value is not None else None
    except (TypeError, ValueError):
        return None


def _safe_target(dest: Path, member_name: str) -> Path:
    """计算条目目标路径，拒绝绝对路径与跳出 dest 的路径"""
    target = (dest / member_name).resolve()
    if target != dest and dest not in target.parents:
        raise ArchiveFormatError(f"压缩包条目路径越界: {member_name}")
    return target


def _extract_member(tar: tarfile.TarFile, member: tarfile.TarInfo, dest: Path,
                    staged: Dict[Path, Path]) -> bool:
    """解压单个条目，普通文件写入 .part 并登记到 staged（最终路径 -> 暂存路径），返回是否写出了普通文件"""
    target = _safe_target(dest, member.name)

    if member.isdir():
        try:
            target.mkdir(mode=DIR_MODE, parents=True, exist_ok=True)
        except OSError as e:
            raise FilesystemError(f"创建目录失败 {target}: {e}") from e
        return False

    if not member.isfile():
        logger.debug(f"跳过非普通文件条目: {member.name} (type={member.type!r})")
        return False

    source = tar.extractfile(member)
    if source is None:
        raise ArchiveFormatError(f"无法读取压缩包条目: {member.name}")

    part = target.with_name(target.name + PART_SUFFIX)
    staged[target] = part
    try:
        target.parent.mkdir(mode=DIR_MODE, parents=True, exist_ok=True)
        with open(part, "wb") as out:
            while True:
                block = source.read(CHUNK_SIZE)
                if not block:
                    break
                out.write(block)
        make_executable(str(part))
    except OSError as e:
        raise FilesystemError(f"写入文件失败 {part}: {e}") from e

    logger.debug(f"已解压: {member.name}")
    return True


def _commit(staged: Dict[Path, Path]) -> None:
    for target, part in staged.items():
        try:
            os.replace(part, target)
        except OSError as e:
            raise FilesystemError(f"移动文件到 {target} 失败: {e}") from e


def _discard(staged: Dict[Path, Path]) -> None:
    for part in staged.values():
        try:
            part.unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning(f"清理暂存文件失败 {part}: {e}")


def _extract_stream(url: str, reader: ProgressReader, dest: Path, staged: Dict[Path, Path]) -> int:
    extracted = 0
    try:
        with gzip.GzipFile(fileobj=reader, mode="rb") as gz:
            with tarfile.open(fileobj=gz, mode="r|") as tar:
                for member in tar:
                    if _extract_member(tar, member, dest, staged):
                        extracted += 1
            # tar 流模式读到结束块就停止，需读完剩余数据才会校验 gzip 尾部的 CRC 与长度
            while gz.read(CHUNK_SIZE):
                pass
    except (gzip.BadGzipFile, zlib.error, EOFError) as e:
        raise DecompressionError(f"解压 {url} 失败: {e}") from e
    except tarfile.TarError as e:
        raise ArchiveFormatError(f"压缩包 {url} 结构错误: {e}") from e
    return extracted


def fetch_and_extract(url: str, dest_dir: str, progress_callback: Optional[ProgressCallback] = None) -> int:
    """
    下载 url 指向的 .tar.gz 并解压到 dest_dir。

    :param url: 发布包地址
    :param dest_dir: 解压目标目录（应已按版本区分）
    :param progress_callback: 进度回调 (downloaded_bytes, percent | None)
    :return: 写出的普通文件数
    """
    logger.info(f"开始下载: {url}")
    try:
        resp = requests.get(url, stream=True, timeout=DOWNLOAD_TIMEOUT)
    except RequestException as e:
        raise NetworkError(f"下载 {url} 失败: {e}") from e

    try:
        if resp.status_code != 200:
            raise UpstreamError(f"下载 {url} 失败: HTTP {resp.status_code}", status_code=resp.status_code)

        total_size = _content_length(resp)
        if total_size is None:
            logger.info("服务器未声明文件大小，无法计算下载百分比")

        dest = Path(dest_dir).resolve()
        try:
            dest.mkdir(mode=DIR_MODE, parents=True, exist_ok=True)
        except OSError as e:
            raise FilesystemError(f"创建目录失败 {dest}: {e}") from e

        reader = ProgressReader(resp.iter_content(chunk_size=CHUNK_SIZE), total_size, progress_callback)
        staged: Dict[Path, Path] = {}
        try:
            extracted = _extract_stream(url, reader, dest, staged)
            _commit(staged)
        except BaseException:
            _discard(staged)
            raise
    finally:
        close = getattr(resp, "close", None)
        if close is not None:
            close()

    logger.info(f"下载并解压完成: {extracted} 个文件 -> {dest_dir}")
    return extracted
