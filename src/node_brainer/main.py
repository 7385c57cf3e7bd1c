# -*- coding: utf-8 -*-
"""
后端管理 API

文件功能:
    - 提供基于 FastAPI 的管理接口，供前端 / TUI 调用客户端的 download/start/stop/logs。
    - 下载在后台任务中执行，进度与结果通过 SSE 推送。

公开接口:
    - POST /api/{client}/download: 后台下载并安装最新版本。
    - POST /api/{client}/start: 启动客户端。
    - POST /api/{client}/stop: 停止客户端。
    - GET /api/{client}/status: 获取客户端状态。
    - GET /api/{client}/logs/stream: 通过 SSE 跟踪客户端日志文件。
    - GET /api/logs/stream: 通过 SSE 推送管理端事件（下载进度等）。
"""

import asyncio
from pathlib import Path
from typing import Dict, Optional

from fastapi import BackgroundTasks, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger
from pydantic import BaseModel
from starlette.responses import StreamingResponse

from .clients import BaseClient, create_client
from .errors import NodeBrainerError
from .service.paths import get_root_dir
from .workers.log_follower import afollow

# --- 应用和状态管理 ---

app = FastAPI(
    title="node-brainer 客户端管理后端",
    description="提供以太坊执行层 / 共识层客户端的下载、启停与日志查询 API",
    version="0.1.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


class AppState:
    """管理应用程序的全局状态"""
    def __init__(self, root: Optional[Path] = None):
        self.root: Optional[Path] = root
        self.log_queue: asyncio.Queue = asyncio.Queue()
        # 持有 log_queue 的事件循环，在第一次异步推送时记录
        self.loop: Optional[asyncio.AbstractEventLoop] = None

    def get_root(self) -> Path:
        if self.root is None:
            self.root = get_root_dir()
        return self.root

    def client(self, name: str) -> BaseClient:
        # 每次请求重新从磁盘加载配置，磁盘文件是唯一的状态来源
        return create_client(name, self.get_root())

    def bind_loop(self):
        self.loop = asyncio.get_running_loop()

    async def push_log(self, message: str):
        self.bind_loop()
        await self.log_queue.put(message)

    def push_log_sync(self, message: str):
        """供线程池中的后台任务调用；asyncio.Queue 不是线程安全的，需交给事件循环执行"""
        loop = self.loop
        if loop is not None and loop.is_running():
            loop.call_soon_threadsafe(self.log_queue.put_nowait, message)
        else:
            self.log_queue.put_nowait(message)


state = AppState()

# --- Pydantic 模型 ---

class ApiResponse(BaseModel):
    success: bool
    message: str
    data: Optional[Dict] = None

# --- SSE 日志流 ---

async def log_generator(request: Request):
    state.bind_loop()
    while True:
        if await request.is_disconnected():
            break
        log_message = await state.log_queue.get()
        yield f"data: {log_message}\n\n"


@app.get("/api/logs/stream")
def stream_logs(request: Request):
    return StreamingResponse(log_generator(request), media_type="text/event-stream")


@app.get("/api/{client_name}/logs/stream")
async def stream_client_logs(client_name: str, request: Request):
    try:
        client = state.client(client_name)
    except NodeBrainerError as e:
        return ApiResponse(success=False, message=str(e))

    async def client_log_generator():
        try:
            async for chunk in afollow(client.log_path, should_stop=request.is_disconnected):
                for line in chunk.decode("utf-8", errors="replace").splitlines():
                    yield f"data: {line}\n\n"
        except NodeBrainerError as e:
            yield f"data: [ERROR] {e}\n\n"

    return StreamingResponse(client_log_generator(), media_type="text/event-stream")

# --- API Endpoints ---

def run_download_task(client_name: str):
    state.push_log_sync(f"[DOWNLOAD] {client_name} 后台下载任务已启动...")
    last_reported = {"percent": -10.0}

    def progress_callback(downloaded: int, percent: Optional[float]):
        # 每 10% 推送一次，避免刷屏
        if percent is not None and percent - last_reported["percent"] >= 10:
            last_reported["percent"] = percent
            state.push_log_sync(f"[DOWNLOAD] {client_name} {percent:.0f}%")

    try:
        binary = state.client(client_name).download(progress_callback)
        state.push_log_sync(f"[SUCCESS] {client_name} {binary.version} 已安装: {binary.path}")
    except NodeBrainerError as e:
        state.push_log_sync(f"[ERROR] {e}")
    except Exception as e:
        logger.exception("下载过程中发生意外错误")
        state.push_log_sync(f"[ERROR] {client_name} 下载过程中发生意外错误: {e}")


@app.post("/api/{client_name}/download", response_model=ApiResponse, summary="下载并安装最新版本")
async def download_client(client_name: str, background_tasks: BackgroundTasks):
    try:
        state.client(client_name)
    except NodeBrainerError as e:
        return ApiResponse(success=False, message=str(e))
    await state.push_log(f"[INFO] 收到 {client_name} 下载请求")
    background_tasks.add_task(run_download_task, client_name)
    return ApiResponse(success=True, message="下载任务已开始，请关注日志输出。")


@app.post("/api/{client_name}/start", response_model=ApiResponse, summary="启动客户端")
async def start_client(client_name: str):
    try:
        pid = state.client(client_name).start()
    except NodeBrainerError as e:
        return ApiResponse(success=False, message=str(e))
    await state.push_log(f"[SUCCESS] {client_name} 已启动，PID: {pid}")
    return ApiResponse(success=True, message=f"{client_name} 已启动", data={"pid": pid})


@app.post("/api/{client_name}/stop", response_model=ApiResponse, summary="停止客户端")
async def stop_client(client_name: str):
    try:
        state.client(client_name).stop()
    except NodeBrainerError as e:
        return ApiResponse(success=False, message=str(e))
    await state.push_log(f"[INFO] {client_name} 已停止")
    return ApiResponse(success=True, message=f"{client_name} 已停止")


@app.get("/api/{client_name}/status", response_model=ApiResponse, summary="获取客户端状态")
def get_status(client_name: str):
    try:
        status = state.client(client_name).status()
    except NodeBrainerError as e:
        return ApiResponse(success=False, message=str(e))
    return ApiResponse(success=True, message=status.state.value, data=status.model_dump(mode="json"))


def run(host: str = "localhost", port: int = 1234):
    import uvicorn

    uvicorn.run(app, host=host, port=port, reload=False)


if __name__ == "__main__":
    run()
