from consultbook.core.config import settings
from consultbook.core.rate_limiter import rate_limiter


def test_register_rate_limit_returns_429(client):
    original_limit = settings.auth_register_max_attempts
    original_window = settings.auth_rate_limit_window_seconds
    settings.auth_register_max_attempts = 2
    settings.auth_rate_limit_window_seconds = 60
    rate_limiter.reset()
    try:
        first = client.post(
            "/auth/register",
            json={"email": "limit1@example.com", "password": "StrongPass123", "role": "client"},
        )
        second = client.post(
            "/auth/register",
            json={"email": "limit2@example.com", "password": "StrongPass123", "role": "client"},
        )
        third = client.post(
            "/auth/register",
            json={"email": "limit3@example.com", "password": "StrongPass123", "role": "client"},
        )

        assert first.status_code == 201
        assert second.status_code == 201
        assert third.status_code == 429
        assert "error" in third.json()
        assert third.headers.get("Retry-After")
    finally:
        settings.auth_register_max_attempts = original_limit
        settings.auth_rate_limit_window_seconds = original_window
        rate_limiter.reset()


def test_login_rate_limit_returns_429(client):
    original_limit = settings.auth_login_max_attempts
    original_window = settings.auth_rate_limit_window_seconds
    settings.auth_login_max_attempts = 2
    settings.auth_rate_limit_window_seconds = 60
    rate_limiter.reset()
    try:
        client.post(
            "/auth/register",
            json={"email": "loglimit@example.com", "password": "StrongPass123", "role": "client"},
        )

        first = client.post("/auth/login", json={"email": "loglimit@example.com", "password": "WrongPass123"})
        second = client.post("/auth/login", json={"email": "loglimit@example.com", "password": "WrongPass123"})
        third = client.post("/auth/login", json={"email": "loglimit@example.com", "password": "WrongPass123"})

        assert first.status_code == 401
        assert second.status_code == 401
        assert third.status_code == 429
        assert third.json()["error"]["code"] == "http_429"
    finally:
        settings.auth_login_max_attempts = original_limit
        settings.auth_rate_limit_window_seconds = original_window
        rate_limiter.reset()


def test_hold_rate_limit_is_per_user(client, consultant, login_as):
    original_limit = settings.hold_max_attempts
    settings.hold_max_attempts = 2
    rate_limiter.reset()
    try:
        alice = login_as("hold-limit-alice@example.com")
        bob = login_as("hold-limit-bob@example.com")
        body = {"consultant_id": consultant["id"], "date": "2030-01-07", "start_time": "10:00", "end_time": "11:00"}

        first = client.post("/holds", headers=alice, json=body)
        second = client.post("/holds", headers=alice, json=body)
        third = client.post("/holds", headers=alice, json=body)
        other_user = client.post("/holds", headers=bob, json={**body, "start_time": "11:00", "end_time": "12:00"})

        assert first.status_code == 201
        assert second.status_code == 201
        assert third.status_code == 429
        assert third.headers.get("Retry-After")
        assert other_user.status_code == 201
    finally:
        settings.hold_max_attempts = original_limit
        rate_limiter.reset()
