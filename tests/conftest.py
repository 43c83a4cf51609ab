import os
import sys
from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

sys.path.append(str(Path(__file__).resolve().parents[1]))
os.environ.setdefault("RATE_LIMIT_BACKEND", "memory")

from consultbook.db.base import Base
from consultbook.db.models import Appointment, ConsultantAvailability, ConsultantProfile, HeldSlot, User  # noqa: F401
from consultbook.db.session import get_db
from consultbook.main import app
from consultbook.core.rate_limiter import rate_limiter

TEST_DATABASE_URL = "sqlite+pysqlite:///:memory:"
engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(autouse=True)
def reset_database() -> None:
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    rate_limiter.reset()


@pytest.fixture()
def db_session():
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def client() -> TestClient:
    def override_get_db():
        db = TestingSessionLocal()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture()
def login_as(client):
    """Register a user with ``role`` and return bearer headers for them."""

    def _login_as(email: str, role: str = "client", password: str = "StrongPass123") -> dict[str, str]:
        client.post("/auth/register", json={"email": email, "password": password, "role": role})
        login = client.post("/auth/login", json={"email": email, "password": password})
        return {"Authorization": f"Bearer {login.json()['access_token']}"}

    return _login_as


@pytest.fixture()
def consultant(client, login_as):
    """A consultant profile with the default Mon-Fri 09:00-17:00 hours, 60 min sessions and no buffer."""
    headers = login_as("consultant@example.com", role="consultant")
    profile = client.post(
        "/consultants/me",
        headers=headers,
        json={"display_name": "Dr. Rao", "description": "Career counselling"},
    ).json()
    client.put(
        f"/consultants/{profile['id']}/availability",
        headers=headers,
        json={"session_settings": {"default_duration_minutes": 60, "buffer_minutes": 0, "max_sessions_per_day": 8}},
    )
    return {"id": profile["id"], "headers": headers}
