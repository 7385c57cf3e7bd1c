# -*- coding: utf-8 -*-
"""
客户端门面

公开接口:
    - create_client(name, root) -> BaseClient
    - default_config(name) -> ClientConfig
    - CLIENT_NAMES
"""
from typing import Dict, Type

from ..errors import ConfigError
from ..service.paths import PathLike
from ..workers.schemas import ClientConfig
from .base import BaseClient, InstallPlan
from .geth import GethClient
from .lighthouse import LighthouseClient

CLIENTS: Dict[str, Type[BaseClient]] = {
    GethClient.identity.name: GethClient,
    LighthouseClient.identity.name: LighthouseClient,
}
CLIENT_NAMES = tuple(CLIENTS)

__all__ = ["BaseClient", "InstallPlan", "GethClient", "LighthouseClient",
           "CLIENTS", "CLIENT_NAMES", "create_client", "default_config"]


def _client_class(name: str) -> Type[BaseClient]:
    try:
        return CLIENTS[name]
    except KeyError:
        raise ConfigError(f"未知的客户端: {name}（可选: {', '.join(CLIENT_NAMES)}）") from None


def create_client(name: str, root: PathLike) -> BaseClient:
    return _client_class(name)(root)


def default_config(name: str) -> ClientConfig:
    return _client_class(name).config_model.default()
