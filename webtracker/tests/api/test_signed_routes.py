"""
End-to-end tests for signed device requests through the HTTP layer.

Tests cover:
- Signed location upload and notification pull
- Error body shape and status codes for each rejection
- Replay and tampering over HTTP
- Query strings in the signed path
- Revocation and device linking
- Storage outages
"""
import json
import time
import uuid

from webtracker.core.auth import Authenticator, CollaboratorUnavailable
from webtracker.core.config import AuthConfig
from webtracker.core.database import Location, Notification, TrustedPlace
from webtracker.core.signing import generate_keypair, public_key_to_base64
from webtracker.core.signing.client import sign_request


def location_body(**overrides):
    fix = {"ts_ms": int(time.time() * 1000), "lat": 47.3769, "lon": 8.5417, "accuracy_m": 12.5}
    fix.update(overrides)
    return json.dumps(fix, separators=(",", ":")).encode()


def signed_headers(private_key, device_id, method, path, body=b"", **kwargs):
    headers = sign_request(private_key, device_id, method, path, body, **kwargs)
    if body:
        headers["Content-Type"] = "application/json"
    return headers


def test_health_needs_no_auth(client):
    response = client.get("/api/health")
    assert response.status_code == 200
    assert response.json()["ok"] is True


# ============================================================================
# Happy paths
# ============================================================================

def test_signed_location_is_stored(client, linked_device, user, test_db):
    device_id, private_key = linked_device
    body = location_body()

    response = client.post(
        "/api/location",
        content=body,
        headers=signed_headers(private_key, device_id, "POST", "/api/location", body),
    )

    assert response.status_code == 200
    assert response.json()["ok"] is True
    row = test_db.query(Location).one()
    assert row.device_id == device_id
    assert row.user_id == user.id
    assert row.lat == 47.3769


def test_signed_notification_pull(client, linked_device, test_db):
    device_id, private_key = linked_device
    test_db.add(Notification(device_id=device_id, type="ring", payload={"volume": 5}))
    test_db.commit()

    path = "/api/notifications"
    first = client.get(path, headers=signed_headers(private_key, device_id, "GET", path))
    second = client.get(path, headers=signed_headers(private_key, device_id, "GET", path))

    assert first.status_code == 200
    notifications = first.json()["notifications"]
    assert len(notifications) == 1
    assert notifications[0]["type"] == "ring"
    assert notifications[0]["payload"] == {"volume": 5}
    assert second.json()["notifications"] == []


def test_signed_query_string_path(client, linked_device, user, test_db):
    device_id, private_key = linked_device
    place = TrustedPlace(user_id=user.id, label="Home", lat=47.0, lon=8.0, radius_m=50)
    test_db.add(place)
    test_db.commit()

    path = f"/api/trusted?id={place.id}"
    response = client.delete(path, headers=signed_headers(private_key, device_id, "DELETE", path))

    assert response.status_code == 200
    test_db.expire_all()
    assert test_db.query(TrustedPlace).count() == 0


def test_signed_trusted_round_trip(client, linked_device):
    device_id, private_key = linked_device
    body = json.dumps({"label": "Office", "latitude": 47.1, "longitude": 8.2, "radius": 120}).encode()

    created = client.post(
        "/api/trusted",
        content=body,
        headers=signed_headers(private_key, device_id, "POST", "/api/trusted", body),
    )
    listed = client.get("/api/trusted", headers=signed_headers(private_key, device_id, "GET", "/api/trusted"))

    assert created.status_code == 200
    assert created.json()["trusted"]["radius_m"] == 120
    assert [p["label"] for p in listed.json()["trusted"]] == ["Office"]


# ============================================================================
# Rejections
# ============================================================================

def test_no_credentials(client):
    response = client.get("/api/notifications")

    assert response.status_code == 401
    assert response.json() == {"ok": False, "error": "missing_credentials", "message": "Unauthorized"}
    assert response.headers["WWW-Authenticate"] == "Bearer"


def test_replay_over_http(client, linked_device):
    device_id, private_key = linked_device
    body = location_body()
    headers = signed_headers(private_key, device_id, "POST", "/api/location", body)

    first = client.post("/api/location", content=body, headers=headers)
    replay = client.post("/api/location", content=body, headers=headers)

    assert first.status_code == 200
    assert replay.status_code == 401
    assert replay.json()["error"] == "replay_detected"


def test_tampered_body_over_http(client, linked_device, test_db):
    device_id, private_key = linked_device
    body = location_body(lat=10.0)
    headers = signed_headers(private_key, device_id, "POST", "/api/location", body)

    response = client.post("/api/location", content=location_body(lat=11.0), headers=headers)

    assert response.status_code == 401
    assert response.json()["error"] == "bad_signature"
    assert test_db.query(Location).count() == 0


def test_stale_timestamp(client, linked_device):
    device_id, private_key = linked_device
    path = "/api/notifications"
    headers = signed_headers(private_key, device_id, "GET", path, timestamp=int(time.time()) - 301)

    response = client.get(path, headers=headers)

    assert response.status_code == 401
    assert response.json()["error"] == "clock_skew"


def test_unknown_device_and_bad_signature_share_message(client, linked_device, keypair):
    device_id, private_key = linked_device
    other_key, _ = generate_keypair()
    path = "/api/notifications"

    unknown = client.get(path, headers=signed_headers(private_key, "ghost-device", "GET", path))
    forged = client.get(path, headers=signed_headers(other_key, device_id, "GET", path))

    assert unknown.json()["error"] == "unknown_device"
    assert forged.json()["error"] == "bad_signature"
    assert unknown.json()["message"] == forged.json()["message"] == "Unauthorized"


def test_bad_device_id(client, keypair):
    private_key, _ = keypair
    path = "/api/notifications"
    response = client.get(path, headers=signed_headers(private_key, "x!", "GET", path))

    assert response.status_code == 401
    assert response.json()["error"] == "bad_device_id"


def test_user_token_on_device_route(client, user_token):
    body = location_body()
    response = client.post(
        "/api/location",
        content=body,
        headers={"Authorization": f"Bearer {user_token}", "Content-Type": "application/json"},
    )
    assert response.status_code == 403


def test_device_on_user_route(client, linked_device):
    device_id, private_key = linked_device
    path = "/api/export?from=1&to=2&format=json"
    response = client.get(path, headers=signed_headers(private_key, device_id, "GET", path))
    assert response.status_code == 403


def test_valid_bearer_ignores_broken_signature(client, user_token, test_db):
    from webtracker.core.database import Nonce

    response = client.get(
        "/api/trusted",
        headers={
            "Authorization": f"Bearer {user_token}",
            "X-Device-Id": "phone-0001",
            "X-Ts": "0",
            "X-Nonce": "unused",
            "X-Sig": "garbage",
        },
    )

    assert response.status_code == 200
    assert test_db.query(Nonce).count() == 0


# ============================================================================
# Lifecycle
# ============================================================================

def test_revoked_device_rejected_on_next_request(client, linked_device, user_token):
    device_id, private_key = linked_device
    path = "/api/notifications"

    assert client.get(path, headers=signed_headers(private_key, device_id, "GET", path)).status_code == 200

    revoke = client.post(f"/api/devices/{device_id}/revoke", headers={"Authorization": f"Bearer {user_token}"})
    assert revoke.status_code == 200

    response = client.get(path, headers=signed_headers(private_key, device_id, "GET", path))
    assert response.status_code == 401
    assert response.json()["error"] == "unknown_device"


def test_link_flow_enables_signed_requests(client, user, user_token):
    private_key, public_key = generate_keypair()
    device_id = "tablet-" + uuid.uuid4().hex[:8]

    code_response = client.post(
        "/api/generate-device-code",
        json={"device_id": device_id, "pubkey": public_key_to_base64(public_key)},
    )
    assert code_response.status_code == 200
    code = code_response.json()["code"]
    assert len(code) == 8

    link = client.post(
        "/api/link-device",
        json={"code": code, "label": "Kitchen tablet"},
        headers={"Authorization": f"Bearer {user_token}"},
    )
    assert link.status_code == 200
    assert link.json()["device"]["user_id"] == str(user.id)

    body = location_body()
    response = client.post(
        "/api/location",
        content=body,
        headers=signed_headers(private_key, device_id, "POST", "/api/location", body),
    )
    assert response.status_code == 200


# ============================================================================
# Outages
# ============================================================================

def test_storage_outage_returns_503(app, client, linked_device):
    class DownRegistry:
        async def get_device(self, device_id):
            raise CollaboratorUnavailable("connection refused")

    class UnusedNonces:
        async def claim_nonce(self, nonce, device_id, timestamp):
            raise AssertionError("nonce store must not be reached")

    app.state.authenticator = Authenticator(AuthConfig(), DownRegistry(), UnusedNonces())
    device_id, private_key = linked_device
    path = "/api/notifications"

    response = client.get(path, headers=signed_headers(private_key, device_id, "GET", path))

    assert response.status_code == 503
    assert response.json()["error"] == "storage_unavailable"
    assert response.headers["Retry-After"] == "1"
