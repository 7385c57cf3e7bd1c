# -*- coding: utf-8 -*-
"""
命令行入口

用法:
    node-brainer <init|download|start|stop|logs|status|serve> --eth-client {geth,lighthouse} [--root PATH] [--verbose]

失败时打印错误信息并以退出码 1 结束。
"""

import argparse
import json
import sys
import threading
from typing import List, Optional

from loguru import logger

from .clients import CLIENT_NAMES, create_client, default_config
from .errors import NodeBrainerError
from .service.config_store import ConfigStore
from .service.paths import get_root_dir

COMMANDS = ("init", "download", "start", "stop", "logs", "status", "serve")


def setup_logging(verbose: bool = False):
    logger.remove()
    logger.add(sys.stderr, level="DEBUG" if verbose else "INFO")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="node-brainer",
        description="下载、启动、停止并跟踪以太坊执行层 / 共识层客户端",
    )
    parser.add_argument("command", choices=COMMANDS, help="要执行的操作")
    parser.add_argument("--eth-client", choices=CLIENT_NAMES, default="geth",
                        help="目标客户端 (默认: geth)")
    parser.add_argument("--root", default=None, help="项目根目录 (默认: $NODE_BRAINER_ROOT 或向上查找 pyproject.toml)")
    parser.add_argument("--verbose", "-v", action="store_true", help="输出调试日志")
    parser.add_argument("--host", default="localhost", help="serve: 监听地址")
    parser.add_argument("--port", type=int, default=1234, help="serve: 监听端口")
    return parser


def print_progress(downloaded: int, percent: Optional[float]):
    if percent is None:
        sys.stdout.write(f"\rDownloading... {downloaded} bytes")
    else:
        sys.stdout.write(f"\rDownloading... {percent:.2f}% complete")
    sys.stdout.flush()


def cmd_init(args) -> int:
    root = get_root_dir(args.root)
    store = ConfigStore(root, args.eth_client, type(default_config(args.eth_client)))
    if store.exists():
        print(f"{args.eth_client} 配置已存在: {store.path}")
    else:
        store.ensure(default_config(args.eth_client))
        print(f"已写入默认配置: {store.path}")
    return 0


def cmd_download(args) -> int:
    client = create_client(args.eth_client, get_root_dir(args.root))
    binary = client.download(print_progress)
    print()
    print(f"{client.name} {binary.version} -> {binary.path}")
    return 0


def cmd_start(args) -> int:
    client = create_client(args.eth_client, get_root_dir(args.root))
    pid = client.start()
    print(f"{client.name} 已启动，PID: {pid}")
    return 0


def cmd_stop(args) -> int:
    client = create_client(args.eth_client, get_root_dir(args.root))
    client.stop()
    print(f"{client.name} 已停止")
    return 0


def cmd_logs(args) -> int:
    client = create_client(args.eth_client, get_root_dir(args.root))
    stop_event = threading.Event()
    try:
        client.logs(stop_event)
    except KeyboardInterrupt:
        stop_event.set()
    return 0


def cmd_status(args) -> int:
    client = create_client(args.eth_client, get_root_dir(args.root))
    print(json.dumps(client.status().model_dump(mode="json"), ensure_ascii=False, indent=2))
    return 0


def cmd_serve(args) -> int:
    from . import main as api

    api.state.root = get_root_dir(args.root)
    api.run(args.host, args.port)
    return 0


HANDLERS = {
    "init": cmd_init,
    "download": cmd_download,
    "start": cmd_start,
    "stop": cmd_stop,
    "logs": cmd_logs,
    "status": cmd_status,
    "serve": cmd_serve,
}


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(args.verbose)
    try:
        return HANDLERS[args.command](args)
    except NodeBrainerError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
