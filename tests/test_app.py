import enum

import pytest

from arreglame_api.api.enum_registry import EnumRegistry, enum_registry
from arreglame_api.core.errors import code_for_status, humanize_error_message
from arreglame_api.db.models.enums import ServiceRequestStatus


class TestHumanizeErrorMessage:
    def test_strips_technical_prefixes(self):
        assert humanize_error_message("GraphQL error: Servicio no disponible") == "Servicio no disponible"
        assert humanize_error_message("Network error: Error: algo falló") == "algo falló"

    def test_maps_known_patterns(self):
        assert humanize_error_message("Error: jwt expired") == "Tu sesión ha expirado. Por favor, inicia sesión nuevamente."
        assert humanize_error_message("duplicate key value violates unique constraint") == "Este registro ya existe."

    def test_unknown_messages_pass_through(self):
        assert humanize_error_message("PIN incorrecto") == "PIN incorrecto"


@pytest.mark.parametrize(
    "status, code",
    [(401, "UNAUTHENTICATED"), (403, "FORBIDDEN"), (404, "NOT_FOUND"), (405, "BAD_USER_INPUT"), (502, "INTERNAL_SERVER_ERROR")],
)
def test_code_for_status(status, code):
    assert code_for_status(status) == code


class TestEnumRegistry:
    def test_duplicate_name_with_other_enum_raises(self):
        registry = EnumRegistry()

        class Color(str, enum.Enum):
            RED = "RED"

        class OtherColor(str, enum.Enum):
            BLUE = "BLUE"

        registry.register(Color)
        registry.register(Color)
        with pytest.raises(ValueError, match="Duplicate enum type name"):
            registry.register(OtherColor, name="Color")

    def test_domain_enums_are_registered(self):
        for name in (
            "UserRole",
            "ActiveRole",
            "ServiceRequestStatus",
            "DifficultyLevel",
            "ServiceSubcategory",
            "NotificationType",
            "TicketStatus",
        ):
            assert name in enum_registry
        assert enum_registry.get("ServiceRequestStatus") is ServiceRequestStatus


def test_health(client):
    resp = client.get("/api/v1/health")
    assert resp.status_code == 200
    body = resp.json()
    assert body["status"] == "ok"
    assert body["message"] == "Servidor operativo"
    assert body["environment"] == "test"
    assert body["api"] == {"endpoint": "/api/v1", "available": True}
    assert body["version"] == "1.0.0"
    assert "X-Correlation-ID" in resp.headers


def test_correlation_id_is_echoed(client):
    resp = client.get("/api/v1/health", headers={"X-Correlation-ID": "abc-123"})
    assert resp.headers["X-Correlation-ID"] == "abc-123"


def test_enums_endpoint(client):
    resp = client.get("/api/v1/enums")
    assert resp.status_code == 200
    enums = {e["name"]: e["values"] for e in resp.json()["enums"]}
    assert enums["ServiceRequestStatus"] == ["OPEN", "ASSIGNED", "IN_PROGRESS", "COMPLETED", "CANCELLED"]
    assert enums["DifficultyLevel"] == ["EASY", "MEDIUM", "HARD"]


def test_unknown_route_uses_error_envelope(client):
    resp = client.get("/api/v1/does-not-exist", headers={"X-Correlation-ID": "cid-1"})
    assert resp.status_code == 404
    body = resp.json()
    assert body["status"] == 404
    assert body["error"]["code"] == "NOT_FOUND"
    assert body["error"]["title"] == "No encontrado"
    assert body["correlation_id"] == "cid-1"
    assert body["path"] == "/api/v1/does-not-exist"
    assert body["method"] == "GET"


def test_validation_error_is_bad_user_input(client):
    resp = client.post("/api/v1/auth/register", json={"email": "x@example.com"})
    assert resp.status_code == 422
    error = resp.json()["error"]
    assert error["code"] == "BAD_USER_INPUT"
    assert error["title"] == "Error de validación"
    assert error["message"] == "Los datos ingresados no son válidos."
    assert any(d["loc"][-1] == "password" for d in error["details"])
