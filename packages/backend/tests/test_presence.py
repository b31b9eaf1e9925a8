"""Presence registry tests."""

from edushare.realtime.presence import PresenceRegistry
from fakes import RecordingConnection


def _identified(user_id):
    conn = RecordingConnection()
    conn.user_id = user_id
    return conn


def test_register_and_list():
    registry = PresenceRegistry()
    registry.register("1", _identified("1"))
    registry.register("2", _identified("2"))

    assert sorted(registry.list_online()) == ["1", "2"]
    assert "1" in registry
    assert len(registry) == 2


def test_register_overwrites_existing_entry():
    registry = PresenceRegistry()
    old, new = _identified("1"), _identified("1")

    assert registry.register("1", old) is None
    assert registry.register("1", new) is old

    assert registry.list_online() == ["1"]
    assert registry.connection_for("1") is new


def test_register_same_connection_twice_reports_no_replacement():
    registry = PresenceRegistry()
    conn = _identified("1")
    registry.register("1", conn)
    assert registry.register("1", conn) is None


def test_unregister_returns_user_id():
    registry = PresenceRegistry()
    conn = _identified("1")
    registry.register("1", conn)

    assert registry.unregister(conn) == "1"
    assert registry.list_online() == []


def test_unregister_anonymous_connection_is_noop():
    registry = PresenceRegistry()
    registry.register("1", _identified("1"))

    assert registry.unregister(RecordingConnection()) is None
    assert registry.list_online() == ["1"]


def test_unregister_replaced_connection_keeps_newest():
    registry = PresenceRegistry()
    old, new = _identified("1"), _identified("1")
    registry.register("1", old)
    registry.register("1", new)

    assert registry.unregister(old) is None
    assert registry.connection_for("1") is new


def test_list_online_is_a_copy():
    registry = PresenceRegistry()
    registry.register("1", _identified("1"))

    registry.list_online().append("intruder")

    assert registry.list_online() == ["1"]
