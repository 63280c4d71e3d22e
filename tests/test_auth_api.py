from jose import jwt

from conftest import auth_headers, register

SECRET = "test-secret-key"


def claims(token: str) -> dict:
    return jwt.decode(token, SECRET, algorithms=["HS256"])


def test_register_client(client):
    body = register(client, "Ana@Example.com")
    assert body["token_type"] == "bearer"
    assert body["user"]["email"] == "ana@example.com"
    assert body["user"]["roles"] == ["CLIENT"]
    assert body["user"]["active_role"] == "CLIENT"
    access = claims(body["access_token"])
    assert access["type"] == "access"
    assert access["active_role"] == "CLIENT"
    assert access["sub"] == body["user"]["id"]


def test_register_worker_gets_profile(client):
    body = register(client, "worker@example.com", role="WORKER")
    resp = client.get(f"/api/v1/workers/{body['user']['id']}", headers=auth_headers(body["access_token"]))
    assert resp.status_code == 200
    profile = resp.json()
    assert profile["is_available"] is False
    assert profile["review_count"] == 0
    assert profile["completed_jobs"] == 0


def test_duplicate_email_is_rejected(client):
    register(client, "dup@example.com")
    resp = client.post(
        "/api/v1/auth/register",
        json={"email": "dup@example.com", "password": "secret123", "role": "CLIENT"},
    )
    assert resp.status_code == 409
    assert resp.json()["error"]["code"] == "BAD_USER_INPUT"
    assert resp.json()["error"]["message"] == "Este email ya está registrado"


def test_login_and_me(client):
    register(client, "login@example.com")
    resp = client.post("/api/v1/auth/login", json={"email": "login@example.com", "password": "secret123"})
    assert resp.status_code == 200
    me = client.get("/api/v1/auth/me", headers=auth_headers(resp.json()["access_token"]))
    assert me.status_code == 200
    assert me.json()["email"] == "login@example.com"


def test_login_with_wrong_password(client):
    register(client, "wrong@example.com")
    resp = client.post("/api/v1/auth/login", json={"email": "wrong@example.com", "password": "nope"})
    assert resp.status_code == 401
    assert resp.json()["error"]["code"] == "UNAUTHENTICATED"
    assert resp.json()["error"]["title"] == "Sesión expirada"


def test_login_with_role_not_held(client):
    register(client, "onlyclient@example.com")
    resp = client.post(
        "/api/v1/auth/login",
        json={"email": "onlyclient@example.com", "password": "secret123", "role": "WORKER"},
    )
    assert resp.status_code == 401
    assert resp.json()["error"]["message"] == "Este usuario no tiene el rol de WORKER"


def test_refresh_issues_new_pair(client):
    body = register(client, "refresh@example.com")
    resp = client.post("/api/v1/auth/refresh", json={"refresh_token": body["refresh_token"]})
    assert resp.status_code == 200
    assert claims(resp.json()["access_token"])["sub"] == body["user"]["id"]


def test_refresh_rejects_access_token(client):
    body = register(client, "refresh2@example.com")
    resp = client.post("/api/v1/auth/refresh", json={"refresh_token": body["access_token"]})
    assert resp.status_code == 401


def test_refresh_token_cannot_authenticate_requests(client):
    body = register(client, "refresh3@example.com")
    resp = client.get("/api/v1/auth/me", headers=auth_headers(body["refresh_token"]))
    assert resp.status_code == 401


def test_logout(client):
    assert client.post("/api/v1/auth/logout").json()["message"] == "Sesión cerrada"


def test_switch_to_role_not_held_is_forbidden(client):
    token = register(client, "switch@example.com")["access_token"]
    resp = client.put("/api/v1/users/me/active-role", json={"active_role": "WORKER"}, headers=auth_headers(token))
    assert resp.status_code == 403
    assert resp.json()["error"]["code"] == "FORBIDDEN"


def test_become_worker_then_switch_modes(client):
    token = register(client, "both@example.com")["access_token"]

    upgraded = client.post("/api/v1/users/me/roles/worker", headers=auth_headers(token))
    assert upgraded.status_code == 200
    assert sorted(upgraded.json()["user"]["roles"]) == ["CLIENT", "WORKER"]
    # idempotent
    again = client.post("/api/v1/users/me/roles/worker", headers=auth_headers(token))
    assert sorted(again.json()["user"]["roles"]) == ["CLIENT", "WORKER"]

    # still in client mode: worker-only actions are refused
    resp = client.put("/api/v1/workers/me/status", json={"is_available": True}, headers=auth_headers(token))
    assert resp.status_code == 403
    assert resp.json()["error"]["message"] == "Esta acción requiere estar en modo Profesional"

    switched = client.put("/api/v1/users/me/active-role", json={"active_role": "WORKER"}, headers=auth_headers(token))
    assert switched.status_code == 200
    assert switched.json()["user"]["active_role"] == "WORKER"
    assert claims(switched.json()["access_token"])["active_role"] == "WORKER"

    # the old token works too: the mode is read from the database
    resp = client.put("/api/v1/workers/me/status", json={"is_available": True}, headers=auth_headers(token))
    assert resp.status_code == 200
    assert resp.json()["is_available"] is True


def test_missing_token(client):
    resp = client.get("/api/v1/auth/me")
    assert resp.status_code == 401
    assert resp.json()["error"]["code"] == "UNAUTHENTICATED"
