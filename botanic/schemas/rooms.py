"""
botanic.schemas.rooms
~~~~~~~~~~~~~~~~~~~~~

房间相关的 Pydantic 响应模型。
"""
from __future__ import annotations

from pydantic import BaseModel, Field


class RoomInfoData(BaseModel):
    """房间摘要信息数据类型"""

    room_id: str = Field(..., description="房间唯一标识（即会话 ID）")
    online_count: int = Field(..., description="当前在线连接数")
    completion_in_flight: bool = Field(
        default=False, description="是否有进行中的 AI 补全请求",
    )
