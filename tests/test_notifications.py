import uuid

import pytest

from arreglame_api.core.errors import NotFoundError
from arreglame_api.db.models.enums import ActiveRole, NotificationType
from arreglame_api.services.auth import AuthService
from arreglame_api.services.notifications import NotificationService
from conftest import auth_headers, register


class RecordingBroadcaster:
    def __init__(self):
        self.published = []

    async def publish_notification(self, user_id, notification):
        self.published.append((user_id, notification))


class RecordingPushProvider:
    def __init__(self, fail=False):
        self.fail = fail
        self.sent = []

    async def send(self, tokens, title, body, data=None):
        if self.fail:
            raise ConnectionError("push gateway down")
        self.sent.append((tokens, title, body, data))


async def make_user(session, email):
    return await AuthService(session).register(email=email, password="secret123", full_name=None, role=ActiveRole.CLIENT)


async def test_notify_publishes_after_commit(session):
    user = await make_user(session, "n@example.com")
    broadcaster = RecordingBroadcaster()
    svc = NotificationService(session, broadcaster=broadcaster)

    await svc.notify(user.id, "Hola", "Bienvenido", NotificationType.INFO, {"k": "v"})
    assert broadcaster.published == []

    await session.commit()
    await svc.publish_pending()

    assert len(broadcaster.published) == 1
    user_id, payload = broadcaster.published[0]
    assert user_id == user.id
    assert payload["title"] == "Hola"
    assert payload["data"] == {"k": "v"}
    assert payload["read"] is False

    await svc.publish_pending()
    assert len(broadcaster.published) == 1


async def test_read_flow(session):
    user = await make_user(session, "r@example.com")
    other = await make_user(session, "o@example.com")
    svc = NotificationService(session, broadcaster=RecordingBroadcaster())
    first = await svc.notify(user.id, "Uno", "1")
    await svc.notify(user.id, "Dos", "2")
    await session.commit()

    assert await svc.unread_count(user.id) == 2
    with pytest.raises(NotFoundError, match="Notificación no encontrada"):
        await svc.mark_as_read(first.id, other.id)
    with pytest.raises(NotFoundError):
        await svc.mark_as_read(uuid.uuid4(), user.id)

    assert (await svc.mark_as_read(first.id, user.id)).read is True
    assert await svc.unread_count(user.id) == 1
    assert await svc.mark_all_as_read(user.id) is True
    assert await svc.unread_count(user.id) == 0

    assert await svc.delete_notification(first.id, user.id) is True
    with pytest.raises(NotFoundError):
        await svc.delete_notification(first.id, user.id)
    assert len(await svc.list_notifications(user.id)) == 1


async def test_push_without_devices_is_skipped(session):
    user = await make_user(session, "p@example.com")
    provider = RecordingPushProvider()
    svc = NotificationService(session, broadcaster=RecordingBroadcaster(), push_provider=provider)

    assert await svc.send_push_to_user(user.id, "T", "B") is False
    assert provider.sent == []


async def test_push_to_registered_device_stores_in_app_copy(session):
    user = await make_user(session, "d@example.com")
    provider = RecordingPushProvider()
    svc = NotificationService(session, broadcaster=RecordingBroadcaster(), push_provider=provider)
    await svc.register_device(user.id, "token-1", "android")

    assert await svc.send_push_to_user(user.id, "Oferta", "Nuevo trabajo", {"jobId": "1"}) is True
    assert provider.sent == [(["token-1"], "Oferta", "Nuevo trabajo", {"jobId": "1"})]
    stored = await svc.list_notifications(user.id)
    assert [n.type for n in stored] == ["PUSH"]


async def test_push_provider_failure_is_not_raised(session):
    user = await make_user(session, "f@example.com")
    svc = NotificationService(session, broadcaster=RecordingBroadcaster(), push_provider=RecordingPushProvider(fail=True))
    await svc.register_device(user.id, "token-2")

    assert await svc.send_push_to_user(user.id, "T", "B") is False
    assert await svc.list_notifications(user.id) == []


async def test_device_token_is_reassigned(session):
    first = await make_user(session, "a@example.com")
    second = await make_user(session, "b@example.com")
    svc = NotificationService(session, broadcaster=RecordingBroadcaster())
    await svc.register_device(first.id, "shared-token")
    await svc.register_device(second.id, "shared-token", "ios")

    assert await svc.repo.list_active_devices(first.id) == []
    devices = await svc.repo.list_active_devices(second.id)
    assert [(d.token, d.platform) for d in devices] == [("shared-token", "ios")]


def test_notifications_api(client):
    token = register(client, "api@example.com")["access_token"]
    headers = auth_headers(token)

    assert client.get("/api/v1/notifications", headers=headers).json() == []
    assert client.get("/api/v1/notifications/unread-count", headers=headers).json() == {"count": 0}

    resp = client.post("/api/v1/notifications/devices", json={"token": "web-token"}, headers=headers)
    assert resp.json() == {"success": True}

    assert client.post("/api/v1/notifications/read-all", headers=headers).json() == {"success": True}

    missing = client.post(f"/api/v1/notifications/{uuid.uuid4()}/read", headers=headers)
    assert missing.status_code == 404
    assert missing.json()["error"]["message"] == "Notificación no encontrada"

    gone = client.delete(f"/api/v1/notifications/{uuid.uuid4()}", headers=headers)
    assert gone.status_code == 404
