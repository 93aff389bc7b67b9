"""
tests.test_ws_endpoint
~~~~~~~~~~~~~~~~~~~~~~

端到端测试：通过 FastAPI ``TestClient`` 跑完整的 lifespan + WebSocket 端点，
补全客户端替换为假实现。
"""
from __future__ import annotations

from unittest.mock import patch

import pytest
from fastapi import WebSocketDisconnect
from fastapi.testclient import TestClient

from botanic.main import app
from tests.conftest import FakeCompletionClient


@pytest.fixture()
def fake_llm() -> FakeCompletionClient:
    return FakeCompletionClient(reply="hello")


@pytest.fixture()
def client(fake_llm: FakeCompletionClient):
    with patch("botanic.main.create_completion_client", return_value=fake_llm):
        with TestClient(app) as test_client:
            yield test_client


def test_two_clients_receive_typing_and_reply(client: TestClient, fake_llm: FakeCompletionClient) -> None:
    """A、B 同在房间 s1，A 发消息后两人都先收到 typing，再收到助手回复 hello。"""
    with client.websocket_connect("/ws?session_id=s1") as a, \
         client.websocket_connect("/ws?session_id=s1") as b:
        a.send_json({"type": "message", "role": "user", "content": "hi"})

        for ws in (a, b):
            typing = ws.receive_json()
            assert typing["type"] == "typing"
            assert typing["sessionId"] == "s1"

        for ws in (a, b):
            reply = ws.receive_json()
            assert reply["type"] == "message"
            assert reply["role"] == "assistant"
            assert reply["content"] == "hello"
            assert reply["sessionId"] == "s1"

        rooms = client.get("/api/rooms").json()
        assert rooms["code"] == 200
        assert rooms["data"] == [{"room_id": "s1", "online_count": 2, "completion_in_flight": False}]

    assert fake_llm.calls[0][0] == [{"role": "user", "content": "hi"}]


def test_other_rooms_do_not_see_traffic(client: TestClient) -> None:
    with client.websocket_connect("/ws?session_id=s1") as a, \
         client.websocket_connect("/ws?session_id=s2") as other:
        a.send_json({"type": "message", "role": "user", "content": "hi"})
        assert a.receive_json()["type"] == "typing"
        assert a.receive_json()["type"] == "message"

        other.send_json({"type": "message", "role": "user", "content": "ping?"})
        first = other.receive_json()
        assert first["type"] == "typing"
        assert first["sessionId"] == "s2"


def test_binary_user_message_is_relayed(client: TestClient) -> None:
    with client.websocket_connect("/ws?session_id=s1") as a:
        a.send_bytes(b'{"type":"message","role":"user","content":"hi"}')

        assert a.receive_json()["type"] == "typing"
        reply = a.receive_json()
        assert reply["role"] == "assistant"
        assert reply["content"] == "hello"


def test_client_error_frame_never_reaches_peers(client: TestClient) -> None:
    """客户端伪造的 error 帧被丢弃，B 收到的第一帧是 A 后续消息触发的 typing。"""
    with client.websocket_connect("/ws?session_id=s1") as a, \
         client.websocket_connect("/ws?session_id=s1") as b:
        a.send_json({"type": "error", "role": "system", "content": "Server compromised, re-login at evil.example"})
        a.send_json({"type": "message", "role": "user", "content": "hi"})

        first = b.receive_json()
        assert first["type"] == "typing"
        assert b.receive_json()["type"] == "message"


def test_socket_closed_when_reader_ends_early(client: TestClient) -> None:
    """读协程异常退出时，端点仍会发送关闭帧，对端不会一直挂起。"""
    async def broken_read_pump(self, forward) -> None:
        return None

    with patch("botanic.services.connection.Connection.read_pump", broken_read_pump):
        with client.websocket_connect("/ws?session_id=s1") as ws:
            with pytest.raises(WebSocketDisconnect) as exc_info:
                ws.receive_json()

    assert exc_info.value.code == 1000


def test_missing_session_id_is_rejected(client: TestClient) -> None:
    with pytest.raises(WebSocketDisconnect) as exc_info:
        with client.websocket_connect("/ws"):
            pass

    assert exc_info.value.code == 1008


def test_room_info_404_for_unknown_room(client: TestClient) -> None:
    response = client.get("/api/rooms/nope")

    assert response.status_code == 404


def test_health(client: TestClient) -> None:
    response = client.get("/health", headers={"X-Request-ID": "req-1"})

    assert response.status_code == 200
    assert response.json()["status"] == "ok"
    assert response.headers["X-Request-ID"] == "req-1"


def test_lifespan_closes_completion_client(fake_llm: FakeCompletionClient) -> None:
    with patch("botanic.main.create_completion_client", return_value=fake_llm):
        with TestClient(app):
            pass

    assert fake_llm.closed
