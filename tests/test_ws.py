"""WebSocket endpoint tests through the ASGI app."""

from __future__ import annotations

import pytest
from fakes import FakeChatStore
from starlette.testclient import TestClient

from marias.api.app import create_api
from marias.api.registry import ConnectionRegistry
from marias.config import Config


@pytest.fixture
def registry() -> ConnectionRegistry:
    return ConnectionRegistry()


@pytest.fixture
def client(registry):
    app = create_api(
        Config(database_url="sqlite+aiosqlite://"),
        registry=registry,
        store=FakeChatStore(users={"ana": 1, "bruno": 2}),
    )
    with TestClient(app) as c:
        yield c


def test_auth_handshake(client, registry):
    with client.websocket_connect("/ws") as ws:
        ws.send_json({"type": "auth", "userId": 1})
        assert ws.receive_json() == {"type": "auth_success"}
        assert registry.stats()["authenticated"] == 1


def test_chat_before_auth_is_refused(client):
    with client.websocket_connect("/ws") as ws:
        ws.send_json({"type": "chat_message", "channelId": "general", "content": "hi"})
        assert ws.receive_json() == {"type": "error", "message": "Not authenticated"}


def test_malformed_frame(client):
    with client.websocket_connect("/ws") as ws:
        ws.send_text("not json")
        reply = ws.receive_json()
        assert reply["type"] == "error"
        assert reply["message"].startswith("Malformed envelope")


def test_broadcast_and_mention(client):
    with client.websocket_connect("/ws") as ana, client.websocket_connect("/api/ws") as bruno:
        ana.send_json({"type": "auth", "userId": 1})
        ana.receive_json()
        bruno.send_json({"type": "auth", "userId": 2})
        bruno.receive_json()

        ana.send_json(
            {"type": "chat_message", "channelId": "general", "content": "oi @bruno"}
        )

        own = ana.receive_json()
        assert own["type"] == "new_message"
        assert own["message"]["content"] == "oi @bruno"

        first = bruno.receive_json()
        second = bruno.receive_json()
        assert first["type"] == "new_message"
        assert first["message"]["sender"] == 1
        assert second["type"] == "notification"
        assert second["notification"]["type"] == "mention"


def test_registry_cleared_on_disconnect(client, registry):
    with client.websocket_connect("/ws") as ws:
        ws.send_json({"type": "auth", "userId": 1})
        ws.receive_json()
        assert len(registry) == 1
    assert len(registry) == 0
