import json

import pytest
from fastapi.testclient import TestClient

from app import create_app
from backend import RoomStore
from registry import ConnectionRegistry
from signaling import SignalingRouter


class StubChannel:
    """Stands in for a websocket; the core only ever closes it."""

    def __init__(self):
        self.closed_with = None

    async def close(self, code=1000, reason=None):
        self.closed_with = (code, reason)


@pytest.fixture
def registry():
    return ConnectionRegistry()


@pytest.fixture
def room_store():
    return RoomStore()


@pytest.fixture
def signaling(registry, room_store):
    return SignalingRouter(registry, room_store)


@pytest.fixture
def connect(registry):
    def _connect():
        return registry.register(StubChannel())
    return _connect


@pytest.fixture
def drain(registry):
    """Pop every queued outbound frame for a connection, decoded."""
    def _drain(connection_id):
        connection = registry.get(connection_id)
        frames = []
        while not connection.outbox.empty():
            frames.append(json.loads(connection.outbox.get_nowait()))
        return frames
    return _drain


@pytest.fixture
def send(signaling):
    def _send(connection_id, **message):
        signaling.handle_frame(connection_id, json.dumps(message))
    return _send


@pytest.fixture
def client():
    with TestClient(create_app()) as test_client:
        yield test_client
