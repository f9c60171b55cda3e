"""Tests for the HTTP and WebSocket surface of the chat session.

The app runs with CHAT_BACKEND=memory, so the lifespan seeds the "General"
and "Welcome" rooms and a profile for the configured user.
"""
import asyncio
from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

from chatsync.api.routes import utils
from chatsync.core import state
from chatsync.core.config import settings
from chatsync.main import app


@pytest.fixture
def configure(monkeypatch):
    monkeypatch.setattr(settings, "CHAT_BACKEND", "memory")
    monkeypatch.setattr(settings, "CHAT_USER_ID", "user-1")
    monkeypatch.setattr(settings, "CHAT_USER_EMAIL", "alice@example.com")
    monkeypatch.setattr(settings, "CHAT_USERNAME", "alice")
    monkeypatch.setattr(settings, "DEFAULT_ROOM_ID", "")
    return monkeypatch


@pytest.fixture
def api_client(configure):
    with TestClient(app) as client:
        yield client


def room_named(client, name):
    return next(r for r in client.get("/rooms").json() if r["name"] == name)


def test_root_lists_endpoints(api_client):
    data = api_client.get("/").json()
    assert data["endpoints"]["messages"] == "/messages"


def test_health_reports_active_subscription(api_client):
    data = api_client.get("/health").json()

    assert data["status"] == "healthy"
    assert data["subscription"] == "active"
    assert data["loading"] is False
    assert data["messages"] == 0


def test_rooms_oldest_first_and_current_defaults_to_first(api_client):
    rooms = api_client.get("/rooms").json()

    assert [r["name"] for r in rooms] == ["General", "Welcome"]
    assert api_client.get("/rooms/current").json()["name"] == "General"


def test_empty_room_view(api_client):
    view = api_client.get("/messages").json()

    assert view["loading"] is False
    assert view["messages"] == []
    assert view["groups"] == []
    assert view["can_send"] is True


def test_send_then_read(api_client):
    response = api_client.post("/messages", json={"content": "  hello  "})
    assert response.status_code == 201
    assert response.json()["content"] == "hello"

    api_client.post("/messages", json={"content": "second"})
    view = api_client.get("/messages").json()

    assert [m["content"] for m in view["messages"]] == ["hello", "second"]
    assert len(view["groups"]) == 1
    assert view["groups"][0]["display_name"] == "alice"


def test_blank_message_rejected(api_client):
    response = api_client.post("/messages", json={"content": "   "})

    assert response.status_code == 502
    assert response.json()["detail"] == "Failed to send message"


def test_padded_message_is_trimmed_before_length_check(api_client):
    content = "x" * 1000

    response = api_client.post("/messages", json={"content": f"   {content}   "})

    assert response.status_code == 201
    assert response.json()["content"] == content


def test_overlong_message_rejected(api_client):
    response = api_client.post("/messages", json={"content": "x" * 1001})

    assert response.status_code == 502
    assert api_client.get("/messages").json()["messages"] == []


def test_switch_room(api_client):
    api_client.post("/messages", json={"content": "in general"})
    welcome = room_named(api_client, "Welcome")

    response = api_client.put("/rooms/current", json={"room_id": welcome["id"]})

    assert response.status_code == 200
    assert api_client.get("/rooms/current").json()["id"] == welcome["id"]
    assert api_client.get("/messages").json()["messages"] == []


def test_switch_to_unknown_room(api_client):
    response = api_client.put("/rooms/current", json={"room_id": "nope"})

    assert response.status_code == 404
    notifications = api_client.get("/notifications").json()
    assert [n["description"] for n in notifications] == ["Room not found"]
    assert api_client.get("/notifications").json() == []


def test_send_requires_user(configure):
    configure.setattr(settings, "CHAT_USER_ID", "")
    with TestClient(app) as client:
        response = client.post("/messages", json={"content": "hello"})

    assert response.status_code == 401


def test_session_is_torn_down_on_shutdown(configure):
    with TestClient(app):
        assert state.session is not None
    assert state.session is None


def test_websocket_compose_and_send(api_client):
    with api_client.websocket_connect("/ws") as ws:
        initial = ws.receive_json()
        assert initial["type"] == "state"
        assert initial["room"]["name"] == "General"

        ws.send_json({"action": "draft", "text": "  hi there  "})
        draft = ws.receive_json()
        assert draft == {"type": "draft", "text": "  hi there  ", "can_submit": True}

        ws.send_json({"action": "key", "key": "Enter", "shift": True})
        ws.send_json({"action": "key", "key": "Enter"})
        replies = {}
        for _ in range(2):
            payload = ws.receive_json()
            replies[payload["type"]] = payload

        assert replies["draft"]["sent"] == "hi there"
        assert replies["draft"]["text"] == ""
        assert [m["content"] for m in replies["state"]["messages"]] == ["hi there"]


def test_websocket_unknown_action(api_client):
    with api_client.websocket_connect("/ws") as ws:
        ws.receive_json()
        ws.send_json({"action": "dance"})
        assert ws.receive_json() == {"type": "error", "message": "Unknown action: dance"}

        ws.send_text("{not json")
        assert ws.receive_json() == {"type": "error", "message": "Invalid JSON"}


@pytest.mark.asyncio
async def test_scheduled_broadcast_is_held_until_done(monkeypatch, caplog):
    release = asyncio.Event()

    async def slow_broadcast():
        await release.wait()
        raise RuntimeError("viewer gone")

    monkeypatch.setattr(state, "connection_manager", MagicMock(connection_count=1))
    monkeypatch.setattr(utils, "broadcast_state", slow_broadcast)

    utils.schedule_state_broadcast()
    assert len(utils._broadcast_tasks) == 1
    task = next(iter(utils._broadcast_tasks))

    release.set()
    with pytest.raises(RuntimeError):
        await task
    await asyncio.sleep(0)

    assert utils._broadcast_tasks == set()
    assert "State broadcast failed" in caplog.text


def test_no_broadcast_without_viewers(monkeypatch):
    monkeypatch.setattr(state, "connection_manager", MagicMock(connection_count=0))

    utils.schedule_state_broadcast()

    assert utils._broadcast_tasks == set()
