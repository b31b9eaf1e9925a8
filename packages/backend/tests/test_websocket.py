"""Chat WebSocket endpoint tests.

Learn: Starlette's TestClient drives the real /ws/chat endpoint. The
app's MessagingEngine is swapped for one backed by in-memory fakes,
because TestClient runs the app on its own event loop thread and an
aiosqlite pool can't be shared across loops. All sockets in a test
must be opened from the same `with TestClient(app)` block so they
share that loop.

Users: alice = "1", bob = "2".
"""

import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from edushare.auth.jwt import create_access_token
from edushare.config import settings
from edushare.main import app
from edushare.realtime import pubsub
from edushare.realtime.engine import MessagingEngine
from fakes import InMemoryDirectory, InMemoryMessageStore

CONVO = "1_2"


@pytest.fixture()
def chat(monkeypatch):
    async def no_redis():
        raise ConnectionError("redis disabled in tests")

    monkeypatch.setattr(pubsub, "init_redis", no_redis)
    engine = MessagingEngine(
        store=InMemoryMessageStore(),
        directory=InMemoryDirectory({"1": "alice", "2": "bob"}),
    )
    previous = app.state.engine
    app.state.engine = engine
    with TestClient(app) as client:
        yield client, engine
    app.state.engine = previous


def _url(user_id=None):
    if user_id is None:
        return "/ws/chat"
    return f"/ws/chat?token={create_access_token(user_id)}"


def _sync(ws):
    """Round-trip a ping so every earlier frame on ws has been handled."""
    ws.send_json({"event": "ping", "data": "sync"})
    assert ws.receive_json() == {"event": "pong", "data": "sync"}


def test_invalid_token_is_rejected(chat):
    client, _ = chat
    with pytest.raises(WebSocketDisconnect) as exc:
        with client.websocket_connect("/ws/chat?token=garbage"):
            pass
    assert exc.value.code == 4001


def test_token_required_outside_development(chat, monkeypatch):
    client, _ = chat
    monkeypatch.setattr(settings, "environment", "production")
    with pytest.raises(WebSocketDisconnect) as exc:
        with client.websocket_connect(_url()):
            pass
    assert exc.value.code == 4001


def test_non_json_frame_gets_error(chat):
    client, _ = chat
    with client.websocket_connect(_url()) as ws:
        ws.send_text("hello?")
        assert ws.receive_json() == {"event": "message-error", "data": "Frames must be JSON"}
        _sync(ws)


def test_binary_frame_gets_error_and_socket_survives(chat):
    client, _ = chat
    with client.websocket_connect(_url()) as ws:
        ws.send_bytes(b'{"event": "ping", "data": "bytes"}')
        assert ws.receive_json() == {"event": "message-error", "data": "Frames must be JSON"}
        _sync(ws)


def test_join_user_must_match_token(chat):
    client, engine = chat
    with client.websocket_connect(_url("1")) as ws:
        ws.send_json({"event": "join-user", "data": "2"})
        frame = ws.receive_json()
        assert frame["event"] == "message-error"
        assert engine.presence.list_online() == []


def test_alice_and_bob_chat(chat):
    client, engine = chat
    with client.websocket_connect(_url("1")) as alice:
        alice.send_json({"event": "join-user", "data": "1"})
        assert alice.receive_json() == {"event": "user-online", "data": "1"}
        assert alice.receive_json() == {"event": "online-users", "data": ["1"]}
        alice.send_json({"event": "join-conversation", "data": CONVO})

        with client.websocket_connect(_url("2")) as bob:
            bob.send_json({"event": "join-user", "data": "2"})
            assert bob.receive_json() == {"event": "user-online", "data": "2"}
            online = bob.receive_json()
            assert online["event"] == "online-users"
            assert sorted(online["data"]) == ["1", "2"]
            assert alice.receive_json() == {"event": "user-online", "data": "2"}

            bob.send_json({"event": "join-conversation", "data": CONVO})
            _sync(bob)

            # ── send ────────────────────────────────────────
            alice.send_json({
                "event": "send-message",
                "data": {
                    "senderId": "1",
                    "receiverId": "2",
                    "content": "hi",
                    "conversationId": CONVO,
                },
            })
            own = alice.receive_json()
            assert own["event"] == "new-message"

            received = bob.receive_json()
            assert received["event"] == "new-message"
            assert received["data"]["content"] == "hi"
            assert received["data"]["sender"]["username"] == "alice"
            assert bob.receive_json() == {
                "event": "message-notification",
                "data": {"conversationId": CONVO, "message": "hi", "sender": "alice"},
            }

            # ── typing ──────────────────────────────────────
            alice.send_json({
                "event": "typing-start",
                "data": {"conversationId": CONVO, "userId": "1", "username": "alice"},
            })
            assert bob.receive_json() == {
                "event": "user-typing",
                "data": {"userId": "1", "username": "alice"},
            }
            _sync(alice)  # a typing echo would have arrived before the pong

            # ── delete ──────────────────────────────────────
            message_id = received["data"]["id"]
            bob.send_json({
                "event": "delete-message",
                "data": {"messageId": message_id, "conversationId": CONVO},
            })
            _sync(bob)  # non-owner: nothing comes back
            assert message_id in engine.store.messages

            alice.send_json({
                "event": "delete-message",
                "data": {"messageId": message_id, "conversationId": CONVO},
            })
            deleted = {"event": "message-deleted", "data": {"messageId": message_id}}
            assert alice.receive_json() == deleted
            assert bob.receive_json() == deleted
            assert message_id not in engine.store.messages
