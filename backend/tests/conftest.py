"""Shared fixtures for hazard tests."""

import pytest

from rover.realtime import ConnectionManager, HazardEventService, SubscriptionRegistry
from rover.services.hazard_store import InMemoryHazardStore

class FakeWebSocket:
    """Records frames sent by the server; optionally fails every send."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.accepted = False
        self.closed = False
        self.sent = []

    async def accept(self):
        self.accepted = True

    async def send_json(self, data):
        if self.fail:
            raise RuntimeError("connection closed")
        self.sent.append(data)

    async def close(self, code: int = 1000):
        self.closed = True

    def events(self, name):
        return [frame["data"] for frame in self.sent if frame["event"] == name]

@pytest.fixture
def store():
    return InMemoryHazardStore()

@pytest.fixture
def registry():
    return SubscriptionRegistry()

@pytest.fixture
def connections():
    return ConnectionManager()

@pytest.fixture
def service(store, registry, connections):
    return HazardEventService(store=store, registry=registry, connections=connections)

@pytest.fixture
def make_session(service):
    """Connect a fake socket through the service and return (session_id, socket)."""

    async def _make(fail: bool = False):
        websocket = FakeWebSocket(fail=fail)
        session_id = await service.connections.connect(websocket)
        await service.connect(session_id)
        return session_id, websocket

    return _make
