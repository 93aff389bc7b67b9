"""
botanic.schemas.ws_messages
~~~~~~~~~~~~~~~~~~~~~~~~~~~

WebSocket 帧协议 —— 客户端与 Hub 之间往来的 JSON 消息。

线上格式::

    {"id": "...", "type": "message", "sessionId": "s1", "userId": "u1",
     "role": "user", "content": "hi", "model": "...", "createdAt": "..."}

按 ``type`` + ``role`` 区分为以下几种帧（在边界处一次性解码）:

  - ``UserMessage``       —— ``type=message, role=user``，触发 AI 补全
  - ``AssistantMessage``  —— ``type=message, role=assistant``，广播给房间
  - ``TypingIndicator``   —— ``type=typing``，广播给房间
  - ``StopCommand``       —— ``type=stop``，取消进行中的补全，不转发
  - ``ErrorMessage``      —— ``type=error``，服务端错误提示
  - ``Ping``              —— ``type=ping``，服务端心跳
"""
from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Discriminator, Field, Tag, TypeAdapter


def _new_id() -> str:
    return str(uuid.uuid4())


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class _Frame(BaseModel):
    """所有帧共享的字段。"""

    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(default_factory=_new_id, description="消息唯一 ID")
    session_id: str = Field(default="", alias="sessionId", description="所属房间（会话）ID")
    user_id: str | None = Field(default=None, alias="userId", description="发送者 ID")
    content: str = Field(default="", description="消息文本")
    model: str | None = Field(default=None, description="使用的模型 ID")
    created_at: datetime = Field(
        default_factory=_utc_now, alias="createdAt", description="创建时间（UTC）",
    )


class UserMessage(_Frame):
    """用户发送的聊天消息。"""

    type: Literal["message"] = "message"
    role: Literal["user"] = "user"


class AssistantMessage(_Frame):
    """AI 助手的回复。"""

    type: Literal["message"] = "message"
    role: Literal["assistant"] = "assistant"


class TypingIndicator(_Frame):
    """“正在输入”提示。"""

    type: Literal["typing"] = "typing"
    role: str | None = "assistant"


class StopCommand(_Frame):
    """停止当前房间正在生成的回复。"""

    type: Literal["stop"] = "stop"
    role: str | None = None


class ErrorMessage(_Frame):
    """服务端错误提示。"""

    type: Literal["error"] = "error"
    role: str | None = "system"


class Ping(_Frame):
    """服务端心跳帧，客户端可直接忽略。"""

    type: Literal["ping"] = "ping"
    role: str | None = None


def _frame_kind(value: Any) -> str | None:
    """根据 ``type`` 和 ``role`` 计算帧的判别标签。"""
    if isinstance(value, dict):
        frame_type, role = value.get("type"), value.get("role")
    else:
        frame_type, role = getattr(value, "type", None), getattr(value, "role", None)

    if frame_type == "message":
        # message 帧必须带合法角色，否则解码失败
        if role in ("user", "assistant"):
            return f"{role}_message"
        return None
    return frame_type


ChatFrame = Annotated[
    Union[
        Annotated[UserMessage, Tag("user_message")],
        Annotated[AssistantMessage, Tag("assistant_message")],
        Annotated[TypingIndicator, Tag("typing")],
        Annotated[StopCommand, Tag("stop")],
        Annotated[ErrorMessage, Tag("error")],
        Annotated[Ping, Tag("ping")],
    ],
    Discriminator(_frame_kind),
]

_frame_adapter: TypeAdapter[ChatFrame] = TypeAdapter(ChatFrame)


def decode_frame(raw: str | bytes) -> ChatFrame:
    """把一帧原始 JSON 解码为具体的帧类型。

    Args:
        raw: WebSocket 收到的文本。

    Returns:
        对应的帧实例。

    Raises:
        pydantic.ValidationError: JSON 非法、``type`` 未知，或 message 帧角色非法。
    """
    return _frame_adapter.validate_json(raw)


def encode_frame(frame: _Frame) -> str:
    """把帧序列化为线上 JSON（camelCase，省略空字段）。"""
    return frame.model_dump_json(by_alias=True, exclude_none=True)
