"""
botanic.api.ws
~~~~~~~~~~~~~~

WebSocket 聊天端点 —— ``/ws?session_id=<房间 ID>``。

同一 ``session_id`` 的所有连接属于同一个房间，共享 AI 回复和“正在输入”提示。

消息协议见 ``botanic.schemas.ws_messages``:
  - 客户端 → 服务端: ``message``（role=user）、``stop``、``typing``
  - 服务端 → 客户端: ``typing``、``message``（role=assistant）、``error``、``ping``
"""
from __future__ import annotations

import asyncio
import contextlib
import uuid

from fastapi import APIRouter, WebSocket, status
from fastapi.websockets import WebSocketState

from botanic.core.config import settings
from botanic.core.logging import get_logger, request_id_ctx_var
from botanic.services.connection import Connection
from botanic.services.hub import ConnectionHub

logger = get_logger(__name__)

router: APIRouter = APIRouter()


@router.websocket("/ws")
async def websocket_chat_endpoint(websocket: WebSocket, session_id: str | None = None) -> None:
    """WebSocket 聊天端点。

    读协程与写协程并发运行，任意一方结束（客户端断开、写入失败、被 Hub 踢出）
    都会取消另一方并注销连接。

    Args:
        websocket: FastAPI WebSocket 连接对象。
        session_id: 房间（会话）ID，来自查询参数。
    """
    if not session_id:
        logger.warning("缺少 session_id，拒绝连接")
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    ws_req_id = f"ws-{uuid.uuid4().hex[:8]}"
    token = request_id_ctx_var.set(ws_req_id)

    try:
        hub: ConnectionHub = websocket.app.state.hub
        conn = Connection(
            websocket,
            session_id,
            queue_size=settings.WS_SEND_QUEUE_SIZE,
            max_message_size=settings.WS_MAX_MESSAGE_SIZE,
        )
        # 先注册再握手：握手完成时连接已排在后续广播之前
        await hub.register(conn)
        try:
            await websocket.accept()
            logger.info("客户端已连接 | room=%s", session_id)

            reader = asyncio.create_task(conn.read_pump(hub.broadcast))
            writer = asyncio.create_task(
                conn.write_pump(
                    write_wait=settings.WS_WRITE_WAIT,
                    ping_period=settings.ws_ping_period,
                ),
            )
            try:
                await asyncio.wait({reader, writer}, return_when=asyncio.FIRST_COMPLETED)
            finally:
                for task in (reader, writer):
                    task.cancel()
                await asyncio.gather(reader, writer, return_exceptions=True)
        finally:
            await hub.unregister(conn)
            conn.close()
            # 写协程被取消时没来得及发送关闭帧，这里补发
            if (
                websocket.client_state == WebSocketState.CONNECTED
                and websocket.application_state == WebSocketState.CONNECTED
            ):
                with contextlib.suppress(RuntimeError):
                    await websocket.close()
            logger.info("客户端已断开 | room=%s", session_id)
    finally:
        request_id_ctx_var.reset(token)
