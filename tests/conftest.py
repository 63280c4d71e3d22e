"""
Pytest configuration and shared fixtures.

Every test gets its own SQLite file. The schema and catalog are created with a
sync engine; the app and services talk to it through aiosqlite.
"""
import base64
import json
import os
from types import SimpleNamespace
from typing import Any, Generator, List, Optional

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./arreglame-test.db")
os.environ["JWT_SECRET_KEY"] = "test-secret-key"
os.environ["RUN_MIGRATIONS_ON_STARTUP"] = "false"
os.environ["AUTO_SEED"] = "false"
os.environ["GEMINI_API_KEY"] = ""
os.environ["ENVIRONMENT"] = "test"

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.orm import Session
from sqlalchemy.pool import NullPool

from arreglame_api.api.main import app
from arreglame_api.core.deps import get_audit_service, get_pricing_service, get_session
from arreglame_api.db.base import Base
from arreglame_api.db.models import ServiceCategory
from arreglame_api.db.seed import CATEGORIES
from arreglame_api.services.audit import PhotoAuditService
from arreglame_api.services.pricing import PricingService


def b64(data: bytes) -> str:
    return base64.b64encode(data).decode()


BEFORE_IMAGE = "data:image/jpeg;base64," + b64(b"before-photo")
AFTER_IMAGE = "data:image/png;base64," + b64(b"after-photo")


class FakeModels:
    """Stands in for client.aio.models; returns canned text or raises."""

    def __init__(self, response: Any) -> None:
        self.response = response
        self.calls: List[dict] = []

    async def generate_content(self, *, model: str, contents: list, config: Optional[dict] = None):
        self.calls.append({"model": model, "contents": contents, "config": config})
        if isinstance(self.response, Exception):
            raise self.response
        text = self.response if isinstance(self.response, str) else json.dumps(self.response)
        return SimpleNamespace(text=text)


class FakeGenAIClient:
    def __init__(self, response: Any) -> None:
        self.models = FakeModels(response)
        self.aio = SimpleNamespace(models=self.models)


@pytest.fixture
def approving_genai() -> FakeGenAIClient:
    return FakeGenAIClient({"approved": True, "confidence": 0.92, "feedback": "Trabajo impecable"})


@pytest.fixture
def rejecting_genai() -> FakeGenAIClient:
    return FakeGenAIClient({"approved": False, "confidence": 0.8, "feedback": "Las fotos son idénticas"})


@pytest.fixture
def db_url(tmp_path) -> str:
    """Fresh database with the schema and the seeded catalog."""
    path = tmp_path / "test.db"
    engine = create_engine(f"sqlite:///{path}")
    Base.metadata.create_all(engine)
    with Session(engine) as session:
        session.add_all([ServiceCategory(active=True, **data) for data in CATEGORIES])
        session.commit()
    engine.dispose()
    return f"sqlite+aiosqlite:///{path}"


@pytest.fixture
def session_maker(db_url):
    engine = create_async_engine(db_url, poolclass=NullPool)
    return async_sessionmaker(bind=engine, expire_on_commit=False, autoflush=False)


@pytest.fixture
async def session(session_maker):
    async with session_maker() as s:
        yield s


@pytest.fixture
def client(session_maker, approving_genai) -> Generator[TestClient, None, None]:
    """FastAPI TestClient bound to the test database, rule-based pricing and a fake AI auditor."""

    async def override_get_session():
        async with session_maker() as s:
            yield s

    app.dependency_overrides[get_session] = override_get_session
    app.dependency_overrides[get_pricing_service] = lambda: PricingService()
    app.dependency_overrides[get_audit_service] = lambda: PhotoAuditService(approving_genai, model="test-model")
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def register(client: TestClient, email: str, role: str = "CLIENT", password: str = "secret123") -> dict:
    resp = client.post(
        "/api/v1/auth/register",
        json={"email": email, "password": password, "full_name": email.split("@")[0], "role": role},
    )
    assert resp.status_code == 201, resp.text
    return resp.json()


def auth_headers(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}
