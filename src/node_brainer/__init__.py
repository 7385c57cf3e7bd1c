# -*- coding: utf-8 -*-
"""
node-brainer: 以太坊客户端（geth / lighthouse）本地生命周期管理。

公开接口:
    - create_client(name, root) -> BaseClient
    - NodeBrainerError 及其子类（见 errors.py）
"""

from .clients import create_client, CLIENT_NAMES
from .errors import NodeBrainerError

__all__ = ["create_client", "CLIENT_NAMES", "NodeBrainerError"]

__version__ = "0.1.0"
