# -*- coding: utf-8 -*-
"""
全局配置常量

上游发布索引地址、下载地址模板、超时与轮询间隔等。
可通过环境变量覆盖的项:
    - NODE_BRAINER_ROOT: 项目根目录（默认向上查找 pyproject.toml）
    - GITHUB_TOKEN: 访问 api.github.com 时附带的令牌，仅用于提高限流额度
"""

# ---- 上游地址 ----
GETH_RELEASES_URL = "https://api.github.com/repos/ethereum/go-ethereum/releases/latest"
GETH_TAG_COMMIT_URL = "https://api.github.com/repos/ethereum/go-ethereum/git/refs/tags/{tag}"
GETH_DOWNLOAD_URL = "https://gethstore.blob.core.windows.net/builds/geth-{os}-{arch}-{version}-{commit}.tar.gz"

LIGHTHOUSE_RELEASES_URL = "https://api.github.com/repos/sigp/lighthouse/releases/latest"
LIGHTHOUSE_DOWNLOAD_URL = "https://github.com/sigp/lighthouse/releases/download/{tag}/lighthouse-{tag}-{arch}-{os}.tar.gz"

# ---- 超时（秒） ----
HTTP_TIMEOUT = 30
DOWNLOAD_TIMEOUT = 180
VERSION_PROBE_TIMEOUT = 30

# 日志跟踪在文件末尾时的轮询间隔（秒）
LOG_POLL_INTERVAL = 1.0

# 项目根目录标记文件
ROOT_MARKER = "pyproject.toml"

# 环境变量名（在调用时读取）
ROOT_ENV = "NODE_BRAINER_ROOT"
GITHUB_TOKEN_ENV = "GITHUB_TOKEN"
