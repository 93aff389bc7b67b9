"""
botanic.api.rooms
~~~~~~~~~~~~~~~~~

房间查询接口 —— 只读地暴露 Hub 当前的房间状态。

端点:
  - ``GET /rooms``            → 获取活跃房间列表
  - ``GET /rooms/{room_id}``  → 获取房间详情（不存在返回 404）
"""
from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException

from botanic.api.deps import get_hub
from botanic.schemas.api_response import ApiResponse
from botanic.schemas.rooms import RoomInfoData
from botanic.services.hub import ConnectionHub

router: APIRouter = APIRouter()


@router.get("/rooms", summary="获取活跃房间列表")
async def list_rooms(hub: ConnectionHub = Depends(get_hub)) -> ApiResponse[list[RoomInfoData]]:
    """返回所有至少有一个在线连接的房间。"""
    return ApiResponse.ok(data=hub.list_rooms())


@router.get("/rooms/{room_id}", summary="获取房间详情")
async def room_info(room_id: str, hub: ConnectionHub = Depends(get_hub)) -> ApiResponse[RoomInfoData]:
    """返回指定房间的在线人数和补全状态。

    Args:
        room_id: 房间唯一标识（会话 ID）。
    """
    for info in hub.list_rooms():
        if info.room_id == room_id:
            return ApiResponse.ok(data=info)
    raise HTTPException(status_code=404, detail=f"房间不存在: {room_id}")
