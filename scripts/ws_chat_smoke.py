"""
手动联调脚本 —— 需要先启动服务（``python -m botanic.main``）。

两个客户端加入同一房间，A 发送一条消息，检查 A、B 都先收到 typing，再收到助手回复。
"""
import asyncio
import json

import httpx
from websockets.asyncio.client import connect

BASE = "127.0.0.1:8000"
ROOM = "smoke-room"


async def recv_until(ws, frame_type: str, timeout: float = 120.0) -> dict:
    """读取帧直到出现指定类型（跳过心跳）。"""
    while True:
        frame = json.loads(await asyncio.wait_for(ws.recv(), timeout=timeout))
        if frame.get("type") == frame_type:
            return frame
        if frame.get("type") == "error":
            raise RuntimeError(f"服务端返回错误: {frame.get('content')}")


async def main() -> None:
    uri = f"ws://{BASE}/ws?session_id={ROOM}"
    async with connect(uri) as a, connect(uri) as b:
        print("✅ 两个客户端已连接")

        async with httpx.AsyncClient() as client:
            resp = await client.get(f"http://{BASE}/api/rooms")
            print(f"房间列表: {resp.json()}")

        await a.send(json.dumps({"type": "message", "role": "user", "content": "hi"}))

        for name, ws in (("A", a), ("B", b)):
            await recv_until(ws, "typing")
            print(f"{name} 收到 typing")

        for name, ws in (("A", a), ("B", b)):
            frame = await recv_until(ws, "message")
            print(f"{name} 收到回复: {frame['content'][:80]!r}")


if __name__ == "__main__":
    asyncio.run(main())
