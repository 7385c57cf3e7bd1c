# -*- coding: utf-8 -*-
"""
资源下载客户端的工具函数
"""
import os
import sys

EXECUTABLE_MODE = 0o755


def make_executable(path: str, mode: int = EXECUTABLE_MODE):
    """赋予文件可执行权限"""
    if sys.platform != "win32":
        os.chmod(path, mode)


def path_exists(path) -> bool:
    """路径是否存在；权限等其它错误向上抛出，不视为不存在"""
    try:
        os.stat(path)
    except FileNotFoundError:
        return False
    except NotADirectoryError:
        return False
    return True
