"""
Realtime delivery: the in-process broadcast manager and the notifications
WebSocket endpoint.
"""
import pytest
from starlette.websockets import WebSocketDisconnect, WebSocketState

import arreglame_api.api.main as main_module
from arreglame_api.services.realtime import BroadcastManager
from conftest import BEFORE_IMAGE, auth_headers, register

LAT, LNG = -34.6037, -58.3816


class FakeSocket:
    def __init__(self, fail=False, state=WebSocketState.CONNECTED):
        self.fail = fail
        self.application_state = state
        self.client_state = state
        self.sent = []

    async def send_json(self, message):
        if self.fail:
            raise RuntimeError("socket closed")
        self.sent.append(message)


async def test_broadcast_reaches_topic_subscribers_only():
    manager = BroadcastManager()
    alice, bob = FakeSocket(), FakeSocket()
    await manager.connect(manager.notifications_topic("alice"), alice)
    await manager.connect(manager.notifications_topic("bob"), bob)

    await manager.broadcast("notifications:alice", {"hello": "world"})

    assert alice.sent == [{"hello": "world"}]
    assert bob.sent == []


async def test_broadcast_drops_dead_sockets():
    manager = BroadcastManager()
    topic = manager.notifications_topic("u1")
    healthy, broken, closed = FakeSocket(), FakeSocket(fail=True), FakeSocket(state=WebSocketState.DISCONNECTED)
    for ws in (healthy, broken, closed):
        await manager.connect(topic, ws)

    await manager.broadcast(topic, {"n": 1})

    assert healthy.sent == [{"n": 1}]
    assert manager.subscriber_count(topic) == 1


async def test_disconnect_and_unknown_topic():
    manager = BroadcastManager()
    ws = FakeSocket()
    await manager.disconnect("notifications:nobody", ws)
    await manager.connect("notifications:u2", ws)
    await manager.disconnect("notifications:u2", ws)
    await manager.broadcast("notifications:u2", {"n": 1})
    assert ws.sent == []


async def test_empty_topics_are_forgotten():
    manager = BroadcastManager()
    first, second = FakeSocket(), FakeSocket(fail=True)
    await manager.connect("notifications:u3", first)
    await manager.connect("notifications:u4", second)

    await manager.disconnect("notifications:u3", first)
    await manager.broadcast("notifications:u4", {"n": 1})

    assert manager._topics == {}
    assert manager._locks == {}


async def test_publish_notification_wraps_in_envelope():
    manager = BroadcastManager()
    ws = FakeSocket()
    user_id = "8b0c6a52-7d6f-4f53-9a59-8f3f6f0e7a11"
    await manager.connect(manager.notifications_topic(user_id), ws)

    await manager.publish_notification(user_id, {"title": "Hola"})

    message = ws.sent[0]
    assert message["type"] == "notification.received"
    assert message["payload"] == {"title": "Hola"}
    assert message["user_id"] == user_id


@pytest.fixture
def ws_client(client, session_maker, monkeypatch):
    monkeypatch.setattr(main_module, "get_session_maker", lambda: session_maker)
    return client


def test_ws_rejects_invalid_token(ws_client):
    with ws_client.websocket_connect("/ws/notifications?token=not-a-jwt") as ws:
        with pytest.raises(WebSocketDisconnect) as exc:
            ws.receive_text()
    assert exc.value.code == 4401


def test_ws_answers_ping(ws_client):
    token = register(ws_client, "ws@example.com")["access_token"]
    with ws_client.websocket_connect(f"/ws/notifications?token={token}") as ws:
        ws.send_text("ping")
        assert ws.receive_json()["type"] == "pong"
        ws.send_text('{"type": "ping"}')
        assert ws.receive_json()["type"] == "pong"


def test_worker_receives_new_job_over_ws(ws_client):
    client_token = register(ws_client, "cliente@example.com")["access_token"]
    worker = register(ws_client, "pro@example.com", role="WORKER")
    worker_headers = auth_headers(worker["access_token"])
    ws_client.put("/api/v1/workers/me/location", json={"lat": LAT, "lng": LNG}, headers=worker_headers)
    ws_client.put("/api/v1/workers/me/status", json={"is_available": True}, headers=worker_headers)

    with ws_client.websocket_connect(f"/ws/notifications?token={worker['access_token']}") as ws:
        ws.send_text("ping")
        assert ws.receive_json()["type"] == "pong"

        resp = ws_client.post(
            "/api/v1/jobs",
            json={
                "category_slug": "corte-pasto",
                "description": "Corte de pasto",
                "lat": LAT,
                "lng": LNG,
                "square_meters": 50,
                "image_before": BEFORE_IMAGE,
            },
            headers=auth_headers(client_token),
        )
        assert resp.status_code == 201

        message = ws.receive_json()
        assert message["type"] == "notification.received"
        assert message["user_id"] == worker["user"]["id"]
        assert message["payload"]["type"] == "NEW_JOB"
        assert message["payload"]["data"]["jobId"] == resp.json()["id"]
