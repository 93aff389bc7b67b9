"""
botanic.services.hub
~~~~~~~~~~~~~~~~~~~~

连接中枢 —— 维护房间成员、按房间广播，并把用户消息中继给补全服务。

并发模型:
  - 所有 ``register`` / ``unregister`` / ``broadcast`` 事件进入同一个 FIFO 收件箱，
    由唯一的事件循环协程逐个处理，房间表只在该协程里读写。
  - 每次补全请求在独立任务中运行，慢请求不会阻塞事件循环或其他房间。
  - 进行中的补全任务表（按房间）可能同时被事件循环（``stop``）和补全任务
    自身（结束时清理）修改，两条路径都通过 ``_inflight_lock``。
"""
from __future__ import annotations

import asyncio
from typing import Literal, NamedTuple

from botanic.core.logging import get_logger
from botanic.llm.base import ChatMessage, CompletionClient
from botanic.schemas.rooms import RoomInfoData
from botanic.schemas.ws_messages import (
    AssistantMessage,
    ChatFrame,
    ErrorMessage,
    Ping,
    StopCommand,
    TypingIndicator,
    UserMessage,
    encode_frame,
)
from botanic.services.connection import Connection
from botanic.services.room import Room

logger = get_logger(__name__)

# 补全失败时推送给房间的提示
_COMPLETION_FAILED_TEXT = "Failed to get AI response"


class _HubEvent(NamedTuple):
    kind: Literal["register", "unregister", "broadcast"]
    payload: Connection | ChatFrame


class ConnectionHub:
    """WebSocket 连接中枢。

    Attributes:
        rooms: 房间 ID → 房间。只在事件循环内修改。
        default_model: 客户端未指定模型时使用的模型。
        temperature: 补全采样温度。
        send_error_frames: 补全失败时是否向房间推送 ``error`` 帧。
    """

    def __init__(
        self,
        completion_client: CompletionClient,
        *,
        default_model: str,
        temperature: float = 0.7,
        send_error_frames: bool = True,
    ) -> None:
        self.completion_client = completion_client
        self.default_model = default_model
        self.temperature = temperature
        self.send_error_frames = send_error_frames

        self.rooms: dict[str, Room] = {}
        self._inbox: asyncio.Queue[_HubEvent] = asyncio.Queue()
        self._inflight: dict[str, asyncio.Task[None]] = {}
        self._inflight_lock = asyncio.Lock()
        # 持有所有补全任务的强引用，包括被覆盖句柄的旧任务
        self._completion_tasks: set[asyncio.Task[None]] = set()
        self._loop_task: asyncio.Task[None] | None = None

    # ── 生命周期 ──────────────────────────────────────────────────────

    async def start(self) -> None:
        """启动事件循环协程。重复调用无副作用。"""
        if self._loop_task is None or self._loop_task.done():
            self._loop_task = asyncio.create_task(self.run(), name="connection-hub")
            logger.info("Hub 已启动")

    async def stop(self) -> None:
        """停止事件循环，取消所有补全任务并关闭所有连接。"""
        if self._loop_task is not None:
            self._loop_task.cancel()
            try:
                await self._loop_task
            except asyncio.CancelledError:
                pass
            self._loop_task = None

        tasks = list(self._completion_tasks)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._inflight.clear()

        for room in self.rooms.values():
            for conn in room.connections:
                conn.close()
        self.rooms.clear()
        logger.info("Hub 已停止")

    @property
    def running(self) -> bool:
        return self._loop_task is not None and not self._loop_task.done()

    # ── 对外入口：只负责投递事件 ──────────────────────────────────────

    async def register(self, conn: Connection) -> None:
        await self._inbox.put(_HubEvent("register", conn))

    async def unregister(self, conn: Connection) -> None:
        await self._inbox.put(_HubEvent("unregister", conn))

    async def broadcast(self, frame: ChatFrame) -> None:
        await self._inbox.put(_HubEvent("broadcast", frame))

    # ── 事件循环 ──────────────────────────────────────────────────────

    async def run(self) -> None:
        """逐个处理收件箱事件。单个事件出错只记录日志，循环继续。"""
        while True:
            event = await self._inbox.get()
            try:
                if event.kind == "register":
                    self._handle_register(event.payload)
                elif event.kind == "unregister":
                    self._handle_unregister(event.payload)
                else:
                    await self._handle_broadcast(event.payload)
            except Exception as e:
                logger.error("Hub 处理事件异常: %s | kind=%s", e, event.kind, exc_info=True)
            finally:
                self._inbox.task_done()

    def _handle_register(self, conn: Connection) -> None:
        room = self.rooms.get(conn.room)
        if room is None:
            room = self.rooms[conn.room] = Room(conn.room)
        room.add(conn)
        logger.info("连接加入房间 | room=%s | 在线: %d", conn.room, room.online_count)

    def _handle_unregister(self, conn: Connection) -> None:
        room = self.rooms.get(conn.room)
        if room is not None:
            room.discard(conn)
            if room.is_empty:
                del self.rooms[conn.room]
                logger.info("房间已关闭 | room=%s", conn.room)
            else:
                logger.info("连接离开房间 | room=%s | 在线: %d", conn.room, room.online_count)
        conn.close()

    async def _handle_broadcast(self, frame: ChatFrame) -> None:
        if isinstance(frame, StopCommand):
            await self._cancel_completion(frame.session_id)
        elif isinstance(frame, UserMessage):
            # 用户消息不回显，只推送“正在输入”并发起补全
            self._fan_out(TypingIndicator(session_id=frame.session_id))
            await self._start_completion(frame)
        elif isinstance(frame, Ping):
            return
        else:
            self._fan_out(frame)

    def _fan_out(self, frame: AssistantMessage | TypingIndicator | ErrorMessage) -> None:
        """把帧投递到房间内每个连接的发送队列，队列已满的连接直接踢掉。"""
        room = self.rooms.get(frame.session_id)
        if room is None:
            logger.debug("房间不存在，丢弃广播 | room=%s | type=%s", frame.session_id, frame.type)
            return

        try:
            data = encode_frame(frame)
        except ValueError as e:
            logger.error("广播帧序列化失败: %s | room=%s", e, frame.session_id)
            return

        for conn in list(room.connections):
            if not conn.enqueue(data):
                logger.warning("发送队列已满，移除慢连接 | room=%s | %r", room.room_id, conn)
                conn.close()
                room.discard(conn)

        if room.is_empty:
            del self.rooms[room.room_id]
            logger.info("房间已关闭 | room=%s", room.room_id)

    # ── 补全请求 ──────────────────────────────────────────────────────

    async def _start_completion(self, frame: UserMessage) -> None:
        async with self._inflight_lock:
            previous = self._inflight.get(frame.session_id)
            if previous is not None and not previous.done():
                # 旧请求不会被取消，只是不再能被 stop 命中
                logger.warning(
                    "房间已有进行中的补全，句柄被覆盖 | room=%s", frame.session_id,
                )
            task = asyncio.create_task(
                self._run_completion(frame),
                name=f"completion:{frame.session_id}",
            )
            self._inflight[frame.session_id] = task

        self._completion_tasks.add(task)
        task.add_done_callback(self._completion_tasks.discard)

    async def _cancel_completion(self, session_id: str) -> None:
        async with self._inflight_lock:
            task = self._inflight.pop(session_id, None)
        if task is not None:
            task.cancel()
            logger.info("已取消进行中的补全 | room=%s", session_id)
        else:
            logger.debug("没有可取消的补全 | room=%s", session_id)

    async def _run_completion(self, frame: UserMessage) -> None:
        session_id = frame.session_id
        model = frame.model or self.default_model
        messages: list[ChatMessage] = [{"role": "user", "content": frame.content}]
        try:
            logger.debug("请求补全 | room=%s | model=%s", session_id, model)
            reply = await self.completion_client.get_chat_completion(
                messages, model, self.temperature,
            )
        except asyncio.CancelledError:
            logger.info("补全请求已取消 | room=%s", session_id)
            return
        except Exception as e:
            logger.error("补全请求失败: %s | room=%s", e, session_id, exc_info=True)
            if self.send_error_frames:
                await self.broadcast(
                    ErrorMessage(session_id=session_id, content=_COMPLETION_FAILED_TEXT),
                )
            return
        finally:
            await self._release_completion(session_id)

        logger.debug("收到补全回复 | room=%s | len=%d", session_id, len(reply))
        await self.broadcast(
            AssistantMessage(
                session_id=session_id,
                user_id="assistant",
                content=reply,
                model=model,
            ),
        )

    async def _release_completion(self, session_id: str) -> None:
        """移除本任务自己的句柄；句柄已被新请求覆盖时保持不动。"""
        current = asyncio.current_task()
        async with self._inflight_lock:
            if self._inflight.get(session_id) is current:
                del self._inflight[session_id]

    # ── 查询 ──────────────────────────────────────────────────────────

    def get_room(self, room_id: str) -> Room | None:
        return self.rooms.get(room_id)

    def list_rooms(self) -> list[RoomInfoData]:
        """列出所有活跃房间的摘要信息。"""
        return [
            room.info(completion_in_flight=room_id in self._inflight)
            for room_id, room in self.rooms.items()
        ]
