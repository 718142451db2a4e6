"""
Tests for application wiring: headers, CORS, error rendering.
"""
from webtracker.api.main import _sanitize_error_message, build_authenticator
from webtracker.core.auth import Authenticator
from webtracker.core.config import Settings


def test_security_headers(client):
    response = client.get("/api/health")

    assert response.headers["X-Content-Type-Options"] == "nosniff"
    assert response.headers["X-Frame-Options"] == "DENY"


def test_cors_preflight_allows_signed_headers(client):
    response = client.options(
        "/api/location",
        headers={
            "Origin": "https://tracker.example",
            "Access-Control-Request-Method": "POST",
            "Access-Control-Request-Headers": "X-Device-Id, X-Ts, X-Nonce, X-Sig",
        },
    )

    assert response.status_code == 200
    allowed = response.headers["access-control-allow-headers"].lower()
    for header in ("x-device-id", "x-ts", "x-nonce", "x-sig"):
        assert header in allowed


def test_validation_error_is_422(client, user_token):
    response = client.post(
        "/api/trusted",
        json={"lat": 123.0, "lon": 8.0},
        headers={"Authorization": f"Bearer {user_token}"},
    )
    assert response.status_code == 422


def test_sanitize_error_message():
    message = (
        "could not connect to postgresql://tracker:hunter2@db:5432/app "
        "with Authorization: Bearer abc.def.ghi and jwt_secret=topsecret"
    )
    sanitized = _sanitize_error_message(message)

    assert "hunter2" not in sanitized
    assert "abc.def.ghi" not in sanitized
    assert "topsecret" not in sanitized


def test_build_authenticator_from_settings(session_factory):
    settings = Settings(bearer_backend="none", clock_skew_seconds=120)
    authenticator = build_authenticator(settings, session_factory)

    assert isinstance(authenticator, Authenticator)
    assert authenticator.bearer is None
    assert authenticator.config.clock_skew_seconds == 120
