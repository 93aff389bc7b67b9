"""
tests.conftest
~~~~~~~~~~~~~~

共享 pytest fixtures —— 用假 WebSocket 和假补全客户端替代所有外部依赖，
使单元测试可在无网络环境下快速运行。
"""
from __future__ import annotations

import asyncio
import json
import os
from collections.abc import AsyncGenerator
from typing import Any

import pytest
import pytest_asyncio

# ── 在所有测试导入前设置环境变量 ─────────────────────────────────────
os.environ.setdefault("ENVIRONMENT", "test")  # 激活 .env.test 配置
os.environ.setdefault("LLM_PROVIDER", "litellm")

from botanic.llm.base import ChatMessage, CompletionClient  # noqa: E402
from botanic.services.connection import Connection  # noqa: E402
from botanic.services.hub import ConnectionHub  # noqa: E402


# ── WebSocket Mock ────────────────────────────────────────────────────

class FakeWebSocket:
    """模拟 FastAPI ``WebSocket``：``feed()`` 注入客户端帧，``sent`` 记录服务端发出的帧。"""

    def __init__(self) -> None:
        self.incoming: asyncio.Queue[Any] = asyncio.Queue()
        self.sent: list[str] = []
        self.close_code: int | None = None

    def feed(self, *items: Any) -> None:
        """按顺序注入客户端帧：``str`` 为文本帧，``bytes`` 为二进制帧，异常实例会在 ``receive`` 时抛出。"""
        for item in items:
            self.incoming.put_nowait(item)

    def disconnect(self, code: int = 1000) -> None:
        self.incoming.put_nowait({"type": "websocket.disconnect", "code": code})

    async def accept(self) -> None:
        return None

    async def receive(self) -> dict[str, Any]:
        item = await self.incoming.get()
        if isinstance(item, BaseException):
            raise item
        if isinstance(item, dict):
            return item
        if isinstance(item, bytes):
            return {"type": "websocket.receive", "bytes": item}
        return {"type": "websocket.receive", "text": item}

    async def send_text(self, data: str) -> None:
        self.sent.append(data)

    async def close(self, code: int = 1000) -> None:
        self.close_code = code

    def sent_frames(self) -> list[dict]:
        return [json.loads(data) for data in self.sent]


# ── 补全客户端 Mock ───────────────────────────────────────────────────

class FakeCompletionClient(CompletionClient):
    """记录调用参数的假补全客户端。

    设置 ``gate`` 后，请求会一直挂起直到 ``gate.set()``，用于模拟慢请求和取消。
    """

    def __init__(
        self,
        reply: str = "hello",
        error: Exception | None = None,
        gate: asyncio.Event | None = None,
    ) -> None:
        self.reply = reply
        self.error = error
        self.gate = gate
        self.calls: list[tuple[list[ChatMessage], str, float]] = []
        self.cancelled: int = 0
        self.closed: bool = False

    async def get_chat_completion(
        self,
        messages: list[ChatMessage],
        model: str,
        temperature: float,
    ) -> str:
        self.calls.append((messages, model, temperature))
        try:
            if self.gate is not None:
                await self.gate.wait()
        except asyncio.CancelledError:
            self.cancelled += 1
            raise
        if self.error is not None:
            raise self.error
        return self.reply

    async def aclose(self) -> None:
        self.closed = True


# ── 辅助函数 ──────────────────────────────────────────────────────────

def make_connection(room: str = "s1", queue_size: int = 16) -> Connection:
    """创建挂在假 WebSocket 上的连接。"""
    return Connection(FakeWebSocket(), room, queue_size=queue_size)  # type: ignore[arg-type]


def queued_frames(conn: Connection) -> list[dict]:
    """取出连接发送队列里的所有帧（跳过结束标记）。"""
    frames: list[dict] = []
    while not conn.send_queue.empty():
        data = conn.send_queue.get_nowait()
        if data is not None:
            frames.append(json.loads(data))
    return frames


async def settle(hub: ConnectionHub) -> None:
    """等待收件箱清空且所有补全任务结束（含它们回灌的广播）。"""
    while True:
        await hub._inbox.join()
        pending = [task for task in hub._completion_tasks if not task.done()]
        if not pending:
            # join() 被唤醒后、返回前，补全任务可能已回灌新的广播
            if hub._inbox._unfinished_tasks == 0:
                return
            continue
        await asyncio.gather(*pending, return_exceptions=True)


async def wait_until(predicate: Any, timeout: float = 1.0) -> None:
    """轮询直到 ``predicate()`` 为真。"""
    async def _poll() -> None:
        while not predicate():
            await asyncio.sleep(0.005)

    await asyncio.wait_for(_poll(), timeout=timeout)


# ── Fixtures ──────────────────────────────────────────────────────────

@pytest.fixture()
def fake_client() -> FakeCompletionClient:
    return FakeCompletionClient(reply="hello")


@pytest_asyncio.fixture()
async def hub(fake_client: FakeCompletionClient) -> AsyncGenerator[ConnectionHub, None]:
    """已启动的 Hub，测试结束后自动停止。"""
    instance = ConnectionHub(fake_client, default_model="test-model", temperature=0.7)
    await instance.start()
    yield instance
    await instance.stop()
