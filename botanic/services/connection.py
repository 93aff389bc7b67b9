"""
botanic.services.connection
~~~~~~~~~~~~~~~~~~~~~~~~~~~

单个 WebSocket 连接 —— Hub 与 socket 之间的中间层。

每个连接有两个独立协程:
  - ``read_pump``  —— 阻塞读取客户端帧，解码后交给 Hub 的 ``broadcast``
  - ``write_pump`` —— 把发送队列里的数据写回 socket，空闲时发送心跳

发送队列有容量上限。Hub 向满队列投递时会直接踢掉该连接，而不是阻塞等待。
"""
from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable

from fastapi import WebSocket, WebSocketDisconnect, status
from pydantic import ValidationError

from botanic.core.logging import get_logger
from botanic.schemas.ws_messages import ChatFrame, ErrorMessage, Ping, decode_frame, encode_frame

logger = get_logger(__name__)

# 发送队列的结束标记
_CLOSE = None


class Connection:
    """Hub 视角下的一个客户端连接。

    Attributes:
        websocket: 底层 FastAPI WebSocket。
        room: 所属房间（会话 ID），来自 URL 参数，不信任帧内字段。
        send_queue: 待发送的已序列化帧。
        closed: 发送队列是否已关闭。
    """

    def __init__(
        self,
        websocket: WebSocket,
        room: str,
        *,
        queue_size: int = 256,
        max_message_size: int = 4096,
    ) -> None:
        self.websocket = websocket
        self.room = room
        self.max_message_size = max_message_size
        self.send_queue: asyncio.Queue[str | None] = asyncio.Queue(maxsize=queue_size)
        self.closed: bool = False

    def __repr__(self) -> str:
        return f"<Connection room={self.room!r} id={id(self):#x}>"

    def enqueue(self, data: str) -> bool:
        """非阻塞投递一帧。队列已满或连接已关闭时返回 ``False``。"""
        if self.closed:
            return False
        try:
            self.send_queue.put_nowait(data)
        except asyncio.QueueFull:
            return False
        return True

    def close(self) -> None:
        """关闭发送队列，可重复调用。

        积压的数据会被丢弃，以保证结束标记一定能入队，``write_pump`` 随后退出。
        """
        if self.closed:
            return
        self.closed = True
        while True:
            try:
                self.send_queue.get_nowait()
            except asyncio.QueueEmpty:
                break
        self.send_queue.put_nowait(_CLOSE)

    async def read_pump(self, forward: Callable[[ChatFrame], Awaitable[None]]) -> None:
        """读取客户端帧并转交给 Hub，直到连接断开。

        文本帧和二进制帧都按 JSON 解码。``error`` 帧只能由服务端发出，
        客户端发来的会被丢弃。

        Args:
            forward: 接收解码后帧的协程函数，通常是 ``ConnectionHub.broadcast``。
        """
        try:
            while True:
                message = await self.websocket.receive()
                if message["type"] == "websocket.disconnect":
                    raise WebSocketDisconnect(code=message.get("code", status.WS_1000_NORMAL_CLOSURE))

                raw: str | bytes = message.get("text") or message.get("bytes") or b""
                size = len(raw.encode("utf-8")) if isinstance(raw, str) else len(raw)
                if size > self.max_message_size:
                    logger.warning(
                        "帧超出大小限制，断开连接 | room=%s | limit=%d",
                        self.room, self.max_message_size,
                    )
                    await self.websocket.close(code=status.WS_1009_MESSAGE_TOO_BIG)
                    return

                try:
                    frame = decode_frame(raw)
                except ValidationError as e:
                    logger.warning("无法解析客户端帧，已丢弃 | room=%s | %s", self.room, e.errors()[:1])
                    continue

                if isinstance(frame, ErrorMessage):
                    logger.warning("客户端发送了 error 帧，已丢弃 | room=%s", self.room)
                    continue

                # 会话 ID 始终以 URL 参数为准
                frame.session_id = self.room
                await forward(frame)
        except WebSocketDisconnect as e:
            logger.debug("客户端断开 | room=%s | code=%s", self.room, e.code)
        except Exception as e:
            logger.error("WebSocket 接收异常: %s | room=%s", e, self.room, exc_info=True)

    async def write_pump(self, *, write_wait: float = 10.0, ping_period: float = 54.0) -> None:
        """把发送队列写回 socket，空闲 ``ping_period`` 秒后发送一次心跳。

        Args:
            write_wait: 单次写入的超时（秒）。
            ping_period: 心跳间隔（秒）。
        """
        try:
            while True:
                try:
                    data = await asyncio.wait_for(self.send_queue.get(), timeout=ping_period)
                except asyncio.TimeoutError:
                    data = encode_frame(Ping(session_id=self.room))

                if data is _CLOSE:
                    await self.websocket.close()
                    return

                await asyncio.wait_for(self.websocket.send_text(data), timeout=write_wait)
        except asyncio.TimeoutError:
            logger.warning("写入超时，断开连接 | room=%s", self.room)
        except WebSocketDisconnect:
            logger.debug("写入时客户端已断开 | room=%s", self.room)
        except Exception as e:
            logger.error("WebSocket 发送异常: %s | room=%s", e, self.room, exc_info=True)
