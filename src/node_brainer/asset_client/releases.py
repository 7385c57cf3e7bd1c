# -*- coding: utf-8 -*-
"""
发布版本解析

文件功能:
    - 从上游发布索引（GitHub releases API）获取最新版本标签。
    - 对按提交哈希命名发布包的客户端，解析标签对应的提交哈希（前 8 位）。
    - 渲染下载地址模板。

公开接口:
    - 类 UrlTemplate: 构造时校验占位符，render(**values) 渲染
    - 类 ClientIdentity: 客户端不可变身份（名称、索引地址、下载模板、平台表）
    - 类 ReleaseDescriptor: 一次解析得到的 (tag, commit)
    - resolve_latest_version(identity) -> str
    - resolve_commit(identity, tag) -> str
"""

from __future__ import annotations

import os
import string
from dataclasses import dataclass
from typing import Any, Dict, Optional

import requests
from requests.exceptions import RequestException
from loguru import logger

from ..config import GITHUB_TOKEN_ENV, HTTP_TIMEOUT
from ..errors import DecodeError, NetworkError, ResolveError, UpstreamError
from .platforms import PlatformTable

TEMPLATE_FIELDS = frozenset({"tag", "version", "os", "arch", "commit"})
SHORT_COMMIT_LENGTH = 8


class UrlTemplate:
    """下载地址模板，使用 str.format 风格的命名占位符，如 {tag}、{os}"""

    def __init__(self, template: str):
        try:
            parsed = list(string.Formatter().parse(template))
        except ValueError as e:
            raise ResolveError(f"地址模板语法错误 {template!r}: {e}") from e

        fields = set()
        for _literal, field_name, _spec, _conv in parsed:
            if field_name is None:
                continue
            if field_name not in TEMPLATE_FIELDS:
                raise ResolveError(f"地址模板 {template!r} 包含未知占位符: {{{field_name}}}")
            fields.add(field_name)

        self.template = template
        self.fields = frozenset(fields)

    def render(self, **values: str) -> str:
        missing = self.fields - values.keys()
        if missing:
            raise ResolveError(f"渲染地址模板 {self.template!r} 缺少变量: {', '.join(sorted(missing))}")
        return self.template.format(**values)

    def __repr__(self) -> str:
        return f"UrlTemplate({self.template!r})"


@dataclass(frozen=True)
class ClientIdentity:
    name: str
    releases_url: str
    download_url: UrlTemplate
    platforms: PlatformTable
    tag_commit_url: Optional[UrlTemplate] = None


@dataclass(frozen=True)
class ReleaseDescriptor:
    tag: str
    commit: Optional[str] = None

    @property
    def version(self) -> str:
        """去掉前导 v 的版本号，如 v1.13.5 -> 1.13.5"""
        return self.tag[1:] if self.tag.startswith("v") else self.tag


def _headers_for(url: str) -> Dict[str, str]:
    headers = {"Accept": "application/json"}
    token = os.environ.get(GITHUB_TOKEN_ENV)
    if token and url.startswith("https://api.github.com/"):
        headers["Authorization"] = f"Bearer {token}"
    return headers


def _get_json(name: str, url: str, what: str) -> Any:
    """GET 一个 JSON 地址；网络错误、非 200、无法解码分别映射为不同异常"""
    try:
        resp = requests.get(url, headers=_headers_for(url), timeout=HTTP_TIMEOUT)
    except RequestException as e:
        raise NetworkError(f"获取 {name} 的{what}失败: {e}") from e

    if resp.status_code != 200:
        raise UpstreamError(
            f"获取 {name} 的{what}失败: HTTP {resp.status_code}",
            status_code=resp.status_code,
        )

    try:
        return resp.json()
    except ValueError as e:
        raise DecodeError(f"解析 {name} 的{what}响应失败: {e}") from e


def resolve_latest_version(identity: ClientIdentity) -> str:
    data = _get_json(identity.name, identity.releases_url, "最新版本")
    tag = data.get("tag_name") if isinstance(data, dict) else None
    if not isinstance(tag, str) or not tag:
        raise DecodeError(f"{identity.name} 的最新版本响应中缺少 tag_name 字段")
    logger.info(f"{identity.name} 最新版本: {tag}")
    return tag


def resolve_commit(identity: ClientIdentity, tag: str) -> str:
    """解析标签对应的提交哈希，返回前 8 位"""
    if identity.tag_commit_url is None:
        raise ResolveError(f"{identity.name} 未配置标签提交查询地址")

    url = identity.tag_commit_url.render(tag=tag)
    data = _get_json(identity.name, url, f" {tag} 标签提交哈希")

    sha = None
    if isinstance(data, dict) and isinstance(data.get("object"), dict):
        sha = data["object"].get("sha")
    if not isinstance(sha, str) or len(sha) < SHORT_COMMIT_LENGTH:
        raise DecodeError(f"{identity.name} 的 {tag} 标签响应中缺少有效的 object.sha 字段")

    return sha[:SHORT_COMMIT_LENGTH]
