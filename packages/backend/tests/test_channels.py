"""Conversation ids, channel membership, and fan-out."""

import pytest
from structlog.testing import capture_logs

from edushare.realtime.channels import (
    ConversationRouter,
    conversation_id_for,
    is_participant,
    personal_channel,
)
from fakes import BrokenConnection, RecordingConnection

PAIRS = [
    ("1", "2"),
    ("alice", "bob"),
    ("b6f1c0e2-0d7e-4a5e-9c1b-2f7d3b8a9e10", "0a4c2d17-5e3f-4b8a-8c6d-9e1f2a3b4c5d"),
    ("10", "9"),
    ("same", "same"),
]


@pytest.mark.parametrize("a, b", PAIRS)
def test_conversation_id_is_symmetric(a, b):
    assert conversation_id_for(a, b) == conversation_id_for(b, a)


def test_conversation_id_sorts_lexicographically():
    assert conversation_id_for("2", "1") == "1_2"
    # String order, not numeric order.
    assert conversation_id_for("9", "10") == "10_9"


@pytest.mark.parametrize("a, b", [("", "2"), ("1", ""), (None, "2")])
def test_conversation_id_rejects_empty_ids(a, b):
    with pytest.raises(ValueError):
        conversation_id_for(a, b)


def test_personal_channel_name():
    assert personal_channel("2") == "user_2"


def test_is_participant():
    assert is_participant("1_2", "1")
    assert is_participant("1_2", "2")
    assert not is_participant("1_2", "3")
    # Not a canonical id, so nobody is a participant.
    assert not is_participant("2_1", "2")
    assert not is_participant("general", "1")


def test_join_is_idempotent():
    router = ConversationRouter()
    conn = RecordingConnection()
    router.attach(conn)

    assert router.join(conn, "1_2") is True
    assert router.join(conn, "1_2") is False
    assert router.members("1_2") == [conn]
    assert router.channels_of(conn) == {"1_2"}


def test_join_rejects_empty_channel():
    router = ConversationRouter()
    conn = RecordingConnection()
    router.attach(conn)
    with pytest.raises(ValueError):
        router.join(conn, "")


def test_detach_drops_all_memberships():
    router = ConversationRouter()
    a, b = RecordingConnection(), RecordingConnection()
    for conn in (a, b):
        router.attach(conn)
        router.join(conn, "1_2")
    router.join(a, "user_1")

    router.detach(a)

    assert router.members("1_2") == [b]
    assert router.members("user_1") == []
    assert router.channels_of(a) == set()
    assert router.connection_count == 1


def test_leave_removes_single_channel():
    router = ConversationRouter()
    conn = RecordingConnection()
    router.attach(conn)
    router.join(conn, "1_2")
    router.join(conn, "user_1")

    router.leave(conn, "user_1")

    assert router.channels_of(conn) == {"1_2"}


@pytest.mark.asyncio
async def test_emit_excludes_and_counts():
    router = ConversationRouter()
    a, b, outsider = RecordingConnection(), RecordingConnection(), RecordingConnection()
    for conn in (a, b, outsider):
        router.attach(conn)
    router.join(a, "1_2")
    router.join(b, "1_2")

    delivered = await router.emit("1_2", "user-typing", {"userId": "1"}, exclude=a)

    assert delivered == 1
    assert b.received == [("user-typing", {"userId": "1"})]
    assert a.received == []
    assert outsider.received == []


@pytest.mark.asyncio
async def test_emit_survives_broken_member():
    router = ConversationRouter()
    broken, ok = BrokenConnection(), RecordingConnection()
    for conn in (broken, ok):
        router.attach(conn)
        router.join(conn, "1_2")

    delivered = await router.emit("1_2", "new-message", {"content": "hi"})

    assert delivered == 1
    assert ok.received == [("new-message", {"content": "hi"})]


@pytest.mark.asyncio
async def test_emit_all_reaches_every_attached_connection():
    router = ConversationRouter()
    conns = [RecordingConnection() for _ in range(3)]
    for conn in conns:
        router.attach(conn)

    assert await router.emit_all("user-online", "1") == 3
    assert all(c.received == [("user-online", "1")] for c in conns)


@pytest.mark.asyncio
async def test_emit_to_empty_channel():
    router = ConversationRouter()
    assert await router.emit("nobody_here", "new-message", {}) == 0


@pytest.mark.asyncio
async def test_delivery_failure_is_logged_not_raised():
    router = ConversationRouter()
    broken = BrokenConnection()
    router.attach(broken)

    with capture_logs() as logs:
        assert await router.send(broken, "pong", None) is False

    failures = [e for e in logs if e["event"] == "chat.delivery_failed"]
    assert len(failures) == 1
    assert failures[0]["chat_event"] == "pong"
    assert failures[0]["connection_id"] == broken.id
