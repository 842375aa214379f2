from __future__ import annotations

import time

import pytest
from starlette.testclient import WebSocketTestSession
from starlette.websockets import WebSocketDisconnect

from matchfyn.realtime import RealtimeHub

from app.api import ws as ws_module
from app.config import get_settings
from app.core.clock import utcnow
from app.core.security import create_access_token
from app.models import RoomType
from app.services.room_lifecycle import build_room
from app.services.room_sessions import RoomSessionManager


@pytest.fixture()
def sessions(monkeypatch) -> RoomSessionManager:
    manager = RoomSessionManager(hub=RealtimeHub(), settings=get_settings())
    monkeypatch.setattr(ws_module, "get_room_sessions", lambda: manager)
    return manager


@pytest.fixture()
def token(make_user) -> str:
    user = make_user(full_name="Socket User")
    return create_access_token({"sub": str(user.id)})


def receive_until(connection: WebSocketTestSession, event_type: str) -> dict:
    for _ in range(20):
        frame = connection.receive_json()
        if frame["type"] == event_type:
            return frame
    raise AssertionError(f"{event_type} was never received")


def test_chat_connection_survives_keepalive_timeout(client, sessions, token, monkeypatch) -> None:
    """Ensure that the server side keepalive pings keep the socket open."""

    monkeypatch.setattr(ws_module.settings, "websocket_keepalive_timeout_seconds", 0.1)
    monkeypatch.setattr(ws_module.settings, "websocket_keepalive_ping_interval_seconds", 0.05)

    with client.websocket_connect(f"/ws/chat?token={token}") as connection:
        _assert_keepalive_sequence(connection)


def _assert_keepalive_sequence(connection: WebSocketTestSession) -> None:
    """Observe two keepalive pings with client responses to keep the connection active."""

    online = connection.receive_json()
    assert online["type"] == "UserOnline"
    assert online["data"]["user_name"] == "Socket User"

    time.sleep(0.15)
    ping = connection.receive_json()
    assert ping["type"] == "ping"
    connection.send_json({"type": "pong"})

    time.sleep(0.12)
    ping_again = receive_until(connection, "ping")
    assert ping_again == {"type": "ping"}
    connection.send_json({"type": "pong"})

    connection.send_json({"type": "ping"})
    assert receive_until(connection, "pong") == {"type": "pong"}


def test_chat_connection_requires_valid_token(client, sessions) -> None:
    with pytest.raises(WebSocketDisconnect) as missing:
        with client.websocket_connect("/ws/chat"):
            pass
    assert missing.value.code == 1008

    with pytest.raises(WebSocketDisconnect):
        with client.websocket_connect("/ws/chat?token=not-a-jwt"):
            pass


def test_join_room_and_send_message_over_socket(client, sessions, token, db_session) -> None:
    room = build_room(get_settings(), RoomType.PUBLIC, name="Lounge", now=utcnow())
    db_session.add(room)
    db_session.commit()
    room_id = room.id

    with client.websocket_connect(f"/ws/chat?token={token}") as connection:
        receive_until(connection, "UserOnline")

        connection.send_json({"type": "JoinRoom", "room_id": room_id})
        joined = receive_until(connection, "JoinedRoom")
        assert joined["data"]["id"] == room_id
        assert joined["data"]["current_participants"] == 1
        system = receive_until(connection, "SystemMessage")
        assert system["data"]["content"] == "Socket User joined the room"

        connection.send_json({"type": "SendMessage", "room_id": room_id, "content": " hi all "})
        message = receive_until(connection, "NewMessage")
        assert message["data"]["content"] == "hi all"

        connection.send_json({"type": "SendMessage", "room_id": room_id, "content": ""})
        error = receive_until(connection, "Error")
        assert error["data"]["operation"] == "SendMessage"

        connection.send_json({"type": "JoinRoom", "room_id": "one"})
        bad_argument = receive_until(connection, "Error")
        assert bad_argument["data"] == {"message": "'room_id' must be an integer", "operation": "JoinRoom"}

        connection.send_json({"type": "Teleport"})
        unsupported = receive_until(connection, "Error")
        assert unsupported["data"]["message"] == "Unsupported operation: Teleport"

        connection.send_text("not json")
        assert receive_until(connection, "Error")["data"]["message"] == "Invalid message format"
