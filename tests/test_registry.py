"""
Tests for the connection registry.
"""

import asyncio

import pytest

from registry import ConnectionRegistry, ConnectionState
from tests.conftest import FakeTransport


class TestRegistry:

    @pytest.mark.asyncio
    async def test_register_starts_unjoined_with_monitor(self, registry):
        connection = registry.register(FakeTransport())
        assert connection in registry
        assert connection.state == ConnectionState.UNJOINED
        assert registry.lookup_room(connection) is None
        assert connection.monitor is not None
        assert not connection.monitor.cancelled

    @pytest.mark.asyncio
    async def test_identities_are_distinct(self, registry):
        a = registry.register(FakeTransport())
        b = registry.register(FakeTransport())
        assert a.identity != b.identity

    @pytest.mark.asyncio
    async def test_assign_room_once(self, registry):
        connection = registry.register(FakeTransport())
        assert registry.assign_room(connection, "abc") is True
        assert registry.lookup_room(connection) == "abc"
        assert connection.state == ConnectionState.JOINED

        assert registry.assign_room(connection, "other") is False
        assert registry.lookup_room(connection) == "abc"
        assert registry.members_of("other") == frozenset()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("room", ["", None])
    async def test_assign_room_requires_name(self, registry, room):
        connection = registry.register(FakeTransport())
        assert registry.assign_room(connection, room) is False
        assert connection.state == ConnectionState.UNJOINED

    @pytest.mark.asyncio
    async def test_members_of_tracks_joins_and_leaves(self, registry):
        connections = [registry.register(FakeTransport()) for _ in range(4)]
        for connection in connections[:3]:
            registry.assign_room(connection, "abc")
        registry.assign_room(connections[3], "xyz")

        assert registry.members_of("abc") == frozenset(connections[:3])
        assert registry.members_of("xyz") == frozenset(connections[3:])

        registry.remove(connections[0])
        assert registry.members_of("abc") == frozenset(connections[1:3])
        assert len(registry) == 3

    @pytest.mark.asyncio
    async def test_members_of_returns_snapshot(self, registry):
        a = registry.register(FakeTransport())
        registry.assign_room(a, "abc")
        snapshot = registry.members_of("abc")
        b = registry.register(FakeTransport())
        registry.assign_room(b, "abc")
        assert snapshot == frozenset({a})
        assert registry.members_of("abc") == frozenset({a, b})

    @pytest.mark.asyncio
    async def test_remove_is_idempotent(self, registry):
        connection = registry.register(FakeTransport())
        registry.assign_room(connection, "abc")

        assert registry.remove(connection) == "abc"
        assert registry.remove(connection) is None
        assert connection not in registry
        assert connection.state == ConnectionState.CLOSED
        assert connection.monitor.cancelled

    @pytest.mark.asyncio
    async def test_remove_unjoined_returns_none(self, registry):
        connection = registry.register(FakeTransport())
        assert registry.remove(connection) is None
        assert len(registry) == 0

    @pytest.mark.asyncio
    async def test_last_member_removal_drops_room(self, registry):
        a = registry.register(FakeTransport())
        registry.assign_room(a, "abc")
        registry.remove(a)
        assert registry.members_of("abc") == frozenset()

        b = registry.register(FakeTransport())
        registry.assign_room(b, "abc")
        assert registry.members_of("abc") == frozenset({b})

    @pytest.mark.asyncio
    async def test_removed_connection_cannot_join(self, registry):
        connection = registry.register(FakeTransport())
        registry.remove(connection)
        assert registry.assign_room(connection, "abc") is False
        assert registry.members_of("abc") == frozenset()

    @pytest.mark.asyncio
    async def test_pump_delivers_in_order_and_stops(self, registry):
        transport = FakeTransport()
        connection = registry.register(transport)
        writer = asyncio.create_task(connection.pump())
        for text in ["one", "two", "three"]:
            connection.deliver(text)
        registry.remove(connection)
        await asyncio.wait_for(writer, timeout=1)
        assert transport.sent == ["one", "two", "three"]

    @pytest.mark.asyncio
    async def test_pump_survives_send_failure(self, registry):
        transport = FakeTransport()
        transport.fail_send = True
        connection = registry.register(transport)
        writer = asyncio.create_task(connection.pump())
        connection.deliver("lost")
        while not connection.outbox.empty():
            await asyncio.sleep(0)
        transport.fail_send = False
        connection.deliver("kept")
        registry.remove(connection)
        await asyncio.wait_for(writer, timeout=1)
        assert transport.sent == ["kept"]

    @pytest.mark.asyncio
    async def test_full_outbox_drops_new_messages(self):
        registry = ConnectionRegistry(keepalive_interval=3600, outbox_size=2)
        connection = registry.register(FakeTransport())
        for text in ["one", "two", "three"]:
            connection.deliver(text)

        assert connection.outbox.qsize() == 2
        assert connection.dropped == 1

        registry.remove(connection)
        assert connection.outbox.get_nowait() == "two"
        assert connection.outbox.get_nowait() is None
