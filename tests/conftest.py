"""
Pytest configuration and fixtures for relay tests.
"""

import asyncio

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient

from app import create_app
from broadcast import RoomBroadcastEngine
from registry import ConnectionRegistry
from transport import TransportClosed


class FakeTransport:
    """In-memory stand-in for a WebSocket transport."""

    def __init__(self, name="peer"):
        self.peer = name
        self.sent = []
        self.close_codes = []
        self.fail_ping = False
        self.fail_send = False
        self.pings = 0

    @property
    def closed(self):
        return bool(self.close_codes)

    async def send_text(self, text):
        if self.closed:
            raise TransportClosed(f"{self.peer} closed")
        if self.fail_send:
            raise ConnectionResetError(f"{self.peer} reset")
        self.sent.append(text)

    async def ping(self):
        if self.closed or self.fail_ping:
            raise TransportClosed(f"{self.peer} gone")
        self.pings += 1

    async def close(self, code=1000):
        self.close_codes.append(code)


class StalledTransport(FakeTransport):
    """Transport whose sends never complete, like a peer that stopped reading."""

    def __init__(self, name="stalled"):
        super().__init__(name)
        self.release = asyncio.Event()
        self.attempts = 0

    async def send_text(self, text):
        self.attempts += 1
        await self.release.wait()
        await super().send_text(text)


def drain(connection):
    """Return everything queued for a connection, without the stop marker."""
    items = []
    while not connection.outbox.empty():
        item = connection.outbox.get_nowait()
        if item is not None:
            items.append(item)
    return items


@pytest_asyncio.fixture
async def registry():
    registry = ConnectionRegistry(keepalive_interval=3600)
    yield registry
    for connection in registry.connections():
        registry.remove(connection)


@pytest_asyncio.fixture
async def engine(registry):
    engine = RoomBroadcastEngine(registry)
    registry.on_probe_failure = engine.disconnect
    return engine


@pytest.fixture
def client():
    app = create_app(keepalive_interval=3600)
    with TestClient(app) as client:
        yield client
