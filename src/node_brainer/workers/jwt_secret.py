# -*- coding: utf-8 -*-

"""
共享密钥（JWT secret）工具模块

执行层与共识层客户端之间的认证 RPC 使用同一个 32 字节十六进制密钥文件。
文件只在不存在时创建一次，之后视为不可变：即使内容不合法也不会重新生成，仅记录警告。
"""

import os
import re
import secrets
from pathlib import Path

from loguru import logger

from ..errors import FilesystemError, GenerationError

SECRET_BYTES = 32
_SECRET_PATTERN = re.compile(r"^(0x)?[0-9a-fA-F]{64}$")


def ensure_secret(path) -> bool:
    """
    确保 path 处存在共享密钥文件。

    :param path: 密钥文件路径
    :return: 本次是否新建了文件
    """
    secret_path = Path(path)
    if secret_path.exists():
        _warn_if_malformed(secret_path)
        return False

    try:
        secret = secrets.token_hex(SECRET_BYTES)
    except (NotImplementedError, OSError) as e:
        # 系统没有可用的随机源
        raise GenerationError(f"生成 JWT 密钥失败: {e}") from e

    try:
        secret_path.parent.mkdir(parents=True, exist_ok=True)
        with open(secret_path, "w", encoding="utf-8") as f:
            f.write(secret)
        os.chmod(secret_path, 0o600)
    except OSError as e:
        raise FilesystemError(f"写入 JWT 密钥到 {secret_path} 失败: {e}") from e

    # 写入"成功"但文件仍不存在时（例如只读挂载的异常行为）明确失败
    if not secret_path.exists():
        raise GenerationError(f"JWT 密钥在写入后仍不存在: {secret_path}")

    logger.info(f"已生成 JWT 密钥: {secret_path}")
    return True


def _warn_if_malformed(secret_path: Path) -> None:
    try:
        content = secret_path.read_text(encoding="utf-8").strip()
    except OSError as e:
        logger.warning(f"无法读取已有的 JWT 密钥 {secret_path}: {e}")
        return
    if not _SECRET_PATTERN.match(content):
        logger.warning(f"已有的 JWT 密钥格式不正确（不会重新生成）: {secret_path}")
