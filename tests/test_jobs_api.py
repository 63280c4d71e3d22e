"""
Booking lifecycle over HTTP: create, accept, start with PIN, complete with
photo audit, review, cancellation, price increments, extra time and history.
"""
from decimal import Decimal

import pytest

from arreglame_api.core.deps import get_audit_service
from arreglame_api.api.main import app
from arreglame_api.services.audit import PhotoAuditService
from conftest import AFTER_IMAGE, BEFORE_IMAGE, auth_headers, register

LAT, LNG = -34.6037, -58.3816


@pytest.fixture
def client_token(client):
    return register(client, "cliente@example.com")["access_token"]


@pytest.fixture
def worker_token(client):
    token = register(client, "pro@example.com", role="WORKER")["access_token"]
    client.put("/api/v1/workers/me/location", json={"lat": LAT, "lng": LNG}, headers=auth_headers(token))
    client.put("/api/v1/workers/me/status", json={"is_available": True}, headers=auth_headers(token))
    return token


def create_job(client, token, **overrides):
    payload = {
        "category_slug": "corte-pasto",
        "description": "Corte de pasto simple",
        "lat": LAT,
        "lng": LNG,
        "square_meters": 100,
        "image_before": BEFORE_IMAGE,
    }
    payload.update(overrides)
    resp = client.post("/api/v1/jobs", json=payload, headers=auth_headers(token))
    assert resp.status_code == 201, resp.text
    return resp.json()


def test_create_job_prices_with_rules_and_notifies_nearby_worker(client, client_token, worker_token):
    job = create_job(client, client_token)

    assert job["status"] == "OPEN"
    assert job["version"] == 1
    assert job["pricing_engine"] == "RuleBasedPricingEngine"
    assert Decimal(job["total_amount"]) == Decimal("21000.00")
    assert Decimal(job["worker_net"]) == Decimal("15750.00")
    assert Decimal(job["platform_commission"]) == Decimal("5250.00")

    notifications = client.get("/api/v1/notifications", headers=auth_headers(worker_token)).json()
    assert [n["type"] for n in notifications] == ["NEW_JOB"]
    assert notifications[0]["data"]["jobId"] == job["id"]


def test_create_job_requires_client_mode(client, worker_token):
    resp = client.post(
        "/api/v1/jobs",
        json={"category_slug": "corte-pasto", "description": "pasto", "lat": LAT, "lng": LNG, "square_meters": 10},
        headers=auth_headers(worker_token),
    )
    assert resp.status_code == 403
    assert resp.json()["error"]["message"] == "Esta acción requiere estar en modo Cliente"


def test_idempotency_key_returns_same_job(client, client_token):
    first = create_job(client, client_token, idempotency_key="req-1")
    second = create_job(client, client_token, idempotency_key="req-1")
    assert first["id"] == second["id"]
    assert len(client.get("/api/v1/jobs/mine", headers=auth_headers(client_token)).json()) == 1


def test_nearby_jobs(client, client_token, worker_token):
    job = create_job(client, client_token)
    create_job(client, client_token, lat=-31.4201, lng=-64.1888)  # Córdoba, far away

    resp = client.get("/api/v1/jobs/nearby", params={"lat": LAT, "lng": LNG}, headers=auth_headers(worker_token))
    assert resp.status_code == 200
    found = resp.json()
    assert [f["job"]["id"] for f in found] == [job["id"]]
    assert found[0]["distance_km"] == 0.0


def test_full_lifecycle(client, client_token, worker_token):
    job = create_job(client, client_token)
    job_id = job["id"]

    accepted = client.post(
        f"/api/v1/jobs/{job_id}/accept", json={"expected_version": 1}, headers=auth_headers(worker_token)
    )
    assert accepted.status_code == 200
    assert accepted.json()["status"] == "ASSIGNED"
    assert accepted.json()["start_pin"] is None

    as_client = client.get(f"/api/v1/jobs/{job_id}", headers=auth_headers(client_token)).json()
    pin = as_client["start_pin"]
    assert len(pin) == 4 and pin.isdigit()

    wrong = client.post(f"/api/v1/jobs/{job_id}/start", json={"pin": "0000"}, headers=auth_headers(worker_token))
    assert wrong.status_code == 400
    assert wrong.json()["error"]["message"] == "PIN incorrecto"

    started = client.post(f"/api/v1/jobs/{job_id}/start", json={"pin": pin}, headers=auth_headers(worker_token))
    assert started.status_code == 200
    assert started.json()["status"] == "IN_PROGRESS"

    completed = client.post(
        f"/api/v1/jobs/{job_id}/complete", json={"image_after": AFTER_IMAGE}, headers=auth_headers(worker_token)
    )
    assert completed.status_code == 200
    body = completed.json()
    assert body["audit"]["approved"] is True
    assert body["job"]["status"] == "COMPLETED"
    assert body["job"]["warranty_expires_at"] is not None

    early = client.post(f"/api/v1/jobs/{job_id}/release-payout", headers=auth_headers(worker_token))
    assert early.status_code == 400

    review = client.post(
        f"/api/v1/jobs/{job_id}/review", json={"rating": 5, "comment": "Excelente"}, headers=auth_headers(client_token)
    )
    assert review.status_code == 201
    duplicate = client.post(f"/api/v1/jobs/{job_id}/review", json={"rating": 4}, headers=auth_headers(client_token))
    assert duplicate.status_code == 409

    client_updates = client.get("/api/v1/notifications", headers=auth_headers(client_token)).json()
    assert {n["title"] for n in client_updates} >= {"Tu pedido fue aceptado", "Trabajo iniciado", "Trabajo completado"}


def test_stale_version_is_a_conflict(client, client_token, worker_token):
    job = create_job(client, client_token)
    resp = client.post(
        f"/api/v1/jobs/{job['id']}/accept", json={"expected_version": 7}, headers=auth_headers(worker_token)
    )
    assert resp.status_code == 409
    assert resp.json()["error"]["code"] == "BAD_USER_INPUT"


def test_second_worker_cannot_accept(client, client_token, worker_token):
    job = create_job(client, client_token)
    other = register(client, "otro@example.com", role="WORKER")["access_token"]

    assert client.post(f"/api/v1/jobs/{job['id']}/accept", headers=auth_headers(worker_token)).status_code == 200
    resp = client.post(f"/api/v1/jobs/{job['id']}/accept", headers=auth_headers(other))
    assert resp.status_code == 400
    assert "Invalid state transition from ASSIGNED to ASSIGNED" in resp.json()["error"]["message"]


def test_rejected_audit_keeps_job_in_progress(client, client_token, worker_token, rejecting_genai):
    app.dependency_overrides[get_audit_service] = lambda: PhotoAuditService(rejecting_genai, model="test-model")
    job = create_job(client, client_token)
    job_id = job["id"]
    client.post(f"/api/v1/jobs/{job_id}/accept", headers=auth_headers(worker_token))
    pin = client.get(f"/api/v1/jobs/{job_id}", headers=auth_headers(client_token)).json()["start_pin"]
    client.post(f"/api/v1/jobs/{job_id}/start", json={"pin": pin}, headers=auth_headers(worker_token))

    resp = client.post(
        f"/api/v1/jobs/{job_id}/complete", json={"image_after": BEFORE_IMAGE}, headers=auth_headers(worker_token)
    )
    assert resp.status_code == 200
    assert resp.json()["audit"] == {"approved": False, "confidence": 0.8, "feedback": "Las fotos son idénticas"}
    assert resp.json()["job"]["status"] == "IN_PROGRESS"


def test_cancel_assigned_job_charges_penalty(client, client_token, worker_token):
    job = create_job(client, client_token)
    client.post(f"/api/v1/jobs/{job['id']}/accept", headers=auth_headers(worker_token))

    resp = client.post(
        f"/api/v1/jobs/{job['id']}/cancel", json={"reason": "Cambio de planes"}, headers=auth_headers(client_token)
    )
    assert resp.status_code == 200
    body = resp.json()
    assert body["job"]["status"] == "CANCELLED"
    assert Decimal(body["fee"]) == Decimal("6300.00")
    assert Decimal(body["refund"]) == Decimal("14700.00")

    wallet = client.get("/api/v1/wallet", headers=auth_headers(client_token)).json()
    assert Decimal(wallet["balance"]) == Decimal("-6300.00")
    transactions = client.get("/api/v1/wallet/transactions", headers=auth_headers(client_token)).json()
    assert [t["kind"] for t in transactions] == ["CANCELLATION_FEE"]

    worker_titles = [n["title"] for n in client.get("/api/v1/notifications", headers=auth_headers(worker_token)).json()]
    assert "Trabajo cancelado" in worker_titles

    again = client.post(f"/api/v1/jobs/{job['id']}/cancel", json={"reason": "x"}, headers=auth_headers(client_token))
    assert again.status_code == 400


def test_cancel_open_job_is_free(client, client_token):
    job = create_job(client, client_token)
    resp = client.post(f"/api/v1/jobs/{job['id']}/cancel", json={"reason": "Ya no"}, headers=auth_headers(client_token))
    assert Decimal(resp.json()["fee"]) == Decimal("0.00")
    assert Decimal(client.get("/api/v1/wallet", headers=auth_headers(client_token)).json()["balance"]) == 0


def test_outsider_cannot_see_assigned_job(client, client_token, worker_token):
    job = create_job(client, client_token)
    client.post(f"/api/v1/jobs/{job['id']}/accept", headers=auth_headers(worker_token))
    outsider = register(client, "curioso@example.com")["access_token"]
    assert client.get(f"/api/v1/jobs/{job['id']}", headers=auth_headers(outsider)).status_code == 404


def test_participant_opens_support_ticket(client, client_token, worker_token):
    job = create_job(client, client_token)
    ticket = {"category": "BILLING", "subject": "Cobro", "description": "No entiendo el precio"}

    resp = client.post(f"/api/v1/jobs/{job['id']}/tickets", json=ticket, headers=auth_headers(client_token))
    assert resp.status_code == 201
    assert resp.json()["priority"] == "MEDIUM"
    assert resp.json()["status"] == "OPEN"

    stranger = client.post(f"/api/v1/jobs/{job['id']}/tickets", json=ticket, headers=auth_headers(worker_token))
    assert stranger.status_code == 403


def test_client_increments_price_until_limit(client, client_token, worker_token):
    job = create_job(client, client_token)
    url = f"/api/v1/jobs/{job['id']}/increment-price"

    first = client.post(url, headers=auth_headers(client_token))
    assert first.status_code == 200
    body = first.json()
    assert Decimal(body["increment"]) == Decimal("2100")
    assert Decimal(body["job"]["total_amount"]) == Decimal("23100.00")
    assert (body["increment_count"], body["max_increment_count"], body["can_increment_again"]) == (1, 3, True)

    assert client.post(url, headers=auth_headers(worker_token)).status_code == 403

    client.post(url, headers=auth_headers(client_token))
    last = client.post(url, headers=auth_headers(client_token)).json()
    assert last["can_increment_again"] is False
    assert Decimal(last["job"]["extra_increment"]) == Decimal("6300.00")

    over = client.post(url, headers=auth_headers(client_token))
    assert over.status_code == 400

    titles = [n["title"] for n in client.get("/api/v1/notifications", headers=auth_headers(worker_token)).json()]
    assert titles.count("Precio Aumentado") == 3


def test_extra_time_flow(client, client_token, worker_token):
    job = create_job(client, client_token)
    job_id = job["id"]
    client.post(f"/api/v1/jobs/{job_id}/accept", headers=auth_headers(worker_token))

    asked = client.post(
        f"/api/v1/jobs/{job_id}/extra-time",
        json={"minutes": 30, "reason": "Pasto más alto de lo esperado"},
        headers=auth_headers(worker_token),
    )
    assert asked.status_code == 200
    assert asked.json()["extra_time_status"] == "PENDING"

    from_client = client.post(
        f"/api/v1/jobs/{job_id}/extra-time", json={"minutes": 30, "reason": "x"}, headers=auth_headers(client_token)
    )
    assert from_client.status_code == 403

    answered = client.post(
        f"/api/v1/jobs/{job_id}/extra-time/respond", json={"approved": False}, headers=auth_headers(client_token)
    )
    assert answered.status_code == 200
    assert answered.json()["extra_time_status"] == "REJECTED"
    assert Decimal(answered.json()["total_amount"]) == Decimal(job["total_amount"])

    titles = {n["title"] for n in client.get("/api/v1/notifications", headers=auth_headers(worker_token)).json()}
    assert "Tiempo extra rechazado" in titles


def test_job_history(client, client_token, worker_token):
    job = create_job(client, client_token)
    job_id = job["id"]
    client.post(f"/api/v1/jobs/{job_id}/accept", headers=auth_headers(worker_token))
    pin = client.get(f"/api/v1/jobs/{job_id}", headers=auth_headers(client_token)).json()["start_pin"]
    client.post(f"/api/v1/jobs/{job_id}/start", json={"pin": pin}, headers=auth_headers(worker_token))
    client.post(f"/api/v1/jobs/{job_id}/complete", json={"image_after": AFTER_IMAGE}, headers=auth_headers(worker_token))
    client.post(f"/api/v1/jobs/{job_id}/review", json={"rating": 2, "comment": "Regular"}, headers=auth_headers(client_token))

    history = client.get(f"/api/v1/jobs/{job_id}/history", headers=auth_headers(client_token))
    assert history.status_code == 200
    body = history.json()
    assert body["job"]["status"] == "COMPLETED"
    assert body["my_review"]["rating"] == 2
    assert body["active_ticket"]["priority"] == "HIGH"

    as_worker = client.get(f"/api/v1/jobs/{job_id}/history", headers=auth_headers(worker_token)).json()
    assert as_worker["my_review"] is None

    outsider = register(client, "curioso@example.com")["access_token"]
    assert client.get(f"/api/v1/jobs/{job_id}/history", headers=auth_headers(outsider)).status_code == 403
