"""
botanic.services.room
~~~~~~~~~~~~~~~~~~~~~

聊天房间 —— 同一会话 ID 下的所有在线连接。

房间只由 ``ConnectionHub`` 的事件循环读写，本身不加锁。
"""
from __future__ import annotations

from typing import TYPE_CHECKING

from botanic.schemas.rooms import RoomInfoData

if TYPE_CHECKING:
    from botanic.services.connection import Connection


class Room:
    """一个聊天房间。

    Attributes:
        room_id: 房间唯一标识（即会话 ID）。
        connections: 当前在线的所有连接。
    """

    def __init__(self, room_id: str) -> None:
        self.room_id = room_id
        self.connections: set[Connection] = set()

    def add(self, conn: Connection) -> None:
        self.connections.add(conn)

    def discard(self, conn: Connection) -> None:
        self.connections.discard(conn)

    @property
    def is_empty(self) -> bool:
        return not self.connections

    @property
    def online_count(self) -> int:
        """当前在线连接数。"""
        return len(self.connections)

    def info(self, completion_in_flight: bool = False) -> RoomInfoData:
        """返回房间摘要信息。"""
        return RoomInfoData(
            room_id=self.room_id,
            online_count=self.online_count,
            completion_in_flight=completion_in_flight,
        )
