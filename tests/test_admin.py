"""Tests for admin endpoints: devices, patterns, requests, accounts, notifications."""

from __future__ import annotations

from datetime import timedelta
from unittest.mock import patch

from litestar.testing import TestClient

from tests.conftest import create_device, device_headers
from watchtower.utils.time import Time


def _pattern(
    client: TestClient,  # type: ignore[type-arg]
    device_id: str,
    pattern: str,
    pattern_type: str = "allow",
    **extra: object,
) -> dict[str, object]:
    resp = client.post(
        "/api/admin/patterns",
        json={"device_id": device_id, "pattern": pattern, "type": pattern_type, **extra},
    )
    assert resp.status_code == 201, resp.text
    created: dict[str, object] = resp.json()
    return created


def _request(
    client: TestClient, device: dict[str, str], url: str,  # type: ignore[type-arg]
) -> dict[str, object]:
    resp = client.post("/api/requests", json={"url": url}, headers=device_headers(device))
    assert resp.status_code == 201, resp.text
    created: dict[str, object] = resp.json()
    return created


def _check(
    client: TestClient, device: dict[str, str], url: str,  # type: ignore[type-arg]
) -> str:
    resp = client.post("/api/check", json={"url": url}, headers=device_headers(device))
    decision: str = resp.json()["decision"]
    return decision


# --- Access control ---


def test_admin_routes_require_session(client: TestClient) -> None:  # type: ignore[type-arg]
    """Every admin route rejects callers without a session cookie."""
    assert client.get("/api/admin/devices").status_code == 401
    assert client.post("/api/admin/devices", json={"name": "x"}).status_code == 401
    assert client.get("/api/admin/patterns").status_code == 401
    assert client.get("/api/admin/status").status_code == 401


def test_device_token_is_not_an_admin_session(
    admin_client: TestClient,  # type: ignore[type-arg]
) -> None:
    device = create_device(admin_client)
    admin_client.cookies.clear()
    resp = admin_client.get("/api/admin/devices", headers=device_headers(device))
    assert resp.status_code == 401


# --- Devices ---


def test_create_and_list_devices(admin_client: TestClient) -> None:  # type: ignore[type-arg]
    device = create_device(admin_client, "kid-chromebook")
    assert device["status"] == "active"
    listed = admin_client.get("/api/admin/devices").json()
    assert [d["name"] for d in listed] == ["kid-chromebook"]
    assert listed[0]["connected"] is False
    assert admin_client.post("/api/admin/devices", json={"name": "  "}).status_code == 400


def test_delete_device_cascades(admin_client: TestClient) -> None:  # type: ignore[type-arg]
    """Deleting a device removes its patterns, requests, and token."""
    device = create_device(admin_client)
    _pattern(admin_client, device["id"], "example.com/*")
    _request(admin_client, device, "https://other.org/")

    resp = admin_client.delete(f"/api/admin/devices/{device['id']}")
    assert resp.json() == {"success": True}
    assert admin_client.get("/api/admin/devices").json() == []
    assert admin_client.get("/api/admin/patterns").json() == []
    assert admin_client.get("/api/admin/requests").json() == []
    assert admin_client.get("/api/patterns", headers=device_headers(device)).status_code == 401
    assert admin_client.delete(f"/api/admin/devices/{device['id']}").status_code == 404


def test_regenerate_token(admin_client: TestClient) -> None:  # type: ignore[type-arg]
    """The old token stops working the moment a new one is issued."""
    device = create_device(admin_client)
    resp = admin_client.post(f"/api/admin/devices/{device['id']}/regenerate-token")
    assert resp.status_code == 200
    rotated = resp.json()
    assert rotated["id"] == device["id"]
    assert rotated["token"] != device["token"]

    assert admin_client.get("/api/patterns", headers=device_headers(device)).status_code == 401
    new_headers = {"Authorization": f"Bearer {rotated['token']}"}
    assert admin_client.get("/api/patterns", headers=new_headers).status_code == 200
    assert admin_client.post("/api/admin/devices/missing/regenerate-token").status_code == 404


def test_admin_check_url(admin_client: TestClient) -> None:  # type: ignore[type-arg]
    device = create_device(admin_client)
    _pattern(admin_client, device["id"], "ads.example/*", "deny")
    resp = admin_client.post(
        f"/api/admin/devices/{device['id']}/check", json={"url": "https://ads.example/x"},
    )
    assert resp.json() == {"url": "https://ads.example/x", "decision": "block"}
    resp = admin_client.post("/api/admin/devices/missing/check", json={"url": "https://a.b/"})
    assert resp.status_code == 404
    resp = admin_client.post(f"/api/admin/devices/{device['id']}/check", json={})
    assert resp.status_code == 400


def test_status_counts(admin_client: TestClient) -> None:  # type: ignore[type-arg]
    assert admin_client.get("/api/admin/status").json() == {
        "connected_devices": 0, "sessions": 0,
    }


# --- Patterns ---


def test_pattern_validation(admin_client: TestClient) -> None:  # type: ignore[type-arg]
    """Bad type, empty text, bad duration are 400; unknown device is 404."""
    device = create_device(admin_client)
    body = {"device_id": device["id"], "pattern": "example.com/*", "type": "allow"}

    assert admin_client.post("/api/admin/patterns", json={**body, "type": "maybe"}).status_code == 400
    assert admin_client.post("/api/admin/patterns", json={**body, "pattern": " "}).status_code == 400
    assert admin_client.post("/api/admin/patterns", json={**body, "duration": "2d"}).status_code == 400
    resp = admin_client.post(
        "/api/admin/patterns", json={**body, "duration": "custom", "custom_minutes": 0},
    )
    assert resp.status_code == 400
    resp = admin_client.post(
        "/api/admin/patterns", json={**body, "duration": "custom", "custom_minutes": 10**10},
    )
    assert resp.status_code == 400
    resp = admin_client.post("/api/admin/patterns", json={**body, "device_id": "missing"})
    assert resp.status_code == 404
    assert admin_client.get("/api/admin/patterns").json() == []


def test_pattern_listing_puts_deny_first(admin_client: TestClient) -> None:  # type: ignore[type-arg]
    device = create_device(admin_client)
    _pattern(admin_client, device["id"], "a.example/*")
    _pattern(admin_client, device["id"], "b.example/*", "deny")
    _pattern(admin_client, device["id"], "c.example/*")
    listed = admin_client.get("/api/admin/patterns").json()
    assert [p["type"] for p in listed] == ["deny", "allow", "allow"]
    assert listed[1]["pattern"] == "c.example/*"


def test_expiry_is_computed_from_server_time(
    admin_client: TestClient,  # type: ignore[type-arg]
) -> None:
    """Presets and custom minutes set expires_at; permanent leaves it null."""
    device = create_device(admin_client)
    permanent = _pattern(admin_client, device["id"], "p.example/*", duration="permanent")
    assert permanent["expires_at"] is None

    now = Time.utcnow()
    with patch.object(Time, "utcnow", return_value=now):
        hourly = _pattern(admin_client, device["id"], "h.example/*", duration="1h")
        custom = _pattern(
            admin_client, device["id"], "c.example/*", duration="custom", custom_minutes=90,
        )
    assert hourly["expires_at"] == (now + timedelta(hours=1)).isoformat()
    assert custom["expires_at"] == (now + timedelta(minutes=90)).isoformat()


def test_update_toggle_delete_pattern(admin_client: TestClient) -> None:  # type: ignore[type-arg]
    device = create_device(admin_client)
    headers = device_headers(device)
    created = _pattern(admin_client, device["id"], "example.com/*")

    resp = admin_client.put(
        f"/api/admin/patterns/{created['id']}",
        json={"pattern": "example.org/*", "type": "deny"},
    )
    assert resp.status_code == 200
    assert resp.json()["pattern"] == "example.org/*"
    assert resp.json()["type"] == "deny"
    assert _check(admin_client, device, "https://example.org/") == "block"

    toggle = f"/api/admin/patterns/{created['id']}/toggle"
    assert admin_client.post(toggle, json={"enabled": "no"}).status_code == 400
    assert admin_client.post(toggle, json={"enabled": False}).json()["enabled"] is False
    assert _check(admin_client, device, "https://example.org/") == "allow"
    assert admin_client.get("/api/patterns", headers=headers).json() == {"patterns": []}

    assert admin_client.delete(f"/api/admin/patterns/{created['id']}").json() == {"success": True}
    assert admin_client.delete(f"/api/admin/patterns/{created['id']}").status_code == 404
    assert admin_client.post(toggle, json={"enabled": True}).status_code == 404
    resp = admin_client.put(
        f"/api/admin/patterns/{created['id']}", json={"pattern": "x/*", "type": "allow"},
    )
    assert resp.status_code == 404


# --- Access requests ---


def test_approve_request_grants_access(admin_client: TestClient) -> None:  # type: ignore[type-arg]
    """Approval creates the pattern and resolves the request in one step."""
    device = create_device(admin_client)
    _pattern(admin_client, device["id"], "school.example/*")
    assert _check(admin_client, device, "https://www.wikipedia.org/wiki/Owl") == "block"

    request = _request(admin_client, device, "https://www.wikipedia.org/wiki/Owl")
    resp = admin_client.post(
        f"/api/admin/requests/{request['id']}/approve",
        json={"pattern": request["suggested_pattern"], "duration": "1h"},
    )
    assert resp.status_code == 200
    result = resp.json()
    assert result["request"]["status"] == "approved"
    assert result["request"]["resolved_at"] is not None
    assert result["pattern"]["type"] == "allow"
    assert result["pattern"]["pattern"] == "www.wikipedia.org/*"
    assert result["pattern"]["device_id"] == device["id"]

    assert _check(admin_client, device, "https://www.wikipedia.org/wiki/Owl") == "allow"
    later = Time.utcnow() + timedelta(hours=2)
    with patch.object(Time, "utcnow", return_value=later):
        assert _check(admin_client, device, "https://www.wikipedia.org/wiki/Owl") == "block"


def test_resolved_requests_are_terminal(admin_client: TestClient) -> None:  # type: ignore[type-arg]
    """Approving or denying a resolved request conflicts; unknown is 404."""
    device = create_device(admin_client)
    approved = _request(admin_client, device, "https://a.example/")
    denied = _request(admin_client, device, "https://b.example/")

    approve = f"/api/admin/requests/{approved['id']}/approve"
    assert admin_client.post(approve, json={"pattern": "a.example/*"}).status_code == 200
    assert admin_client.post(approve, json={"pattern": "a.example/*"}).status_code == 409
    assert admin_client.post(f"/api/admin/requests/{approved['id']}/deny").status_code == 409

    resp = admin_client.post(f"/api/admin/requests/{denied['id']}/deny")
    assert resp.json()["status"] == "denied"
    resp = admin_client.post(
        f"/api/admin/requests/{denied['id']}/approve", json={"pattern": "b.example/*"},
    )
    assert resp.status_code == 409
    assert admin_client.post("/api/admin/requests/missing/deny").status_code == 404
    resp = admin_client.post("/api/admin/requests/missing/approve", json={"pattern": "x/*"})
    assert resp.status_code == 404


def test_invalid_approval_leaves_request_pending(
    admin_client: TestClient,  # type: ignore[type-arg]
) -> None:
    device = create_device(admin_client)
    request = _request(admin_client, device, "https://a.example/")
    approve = f"/api/admin/requests/{request['id']}/approve"
    assert admin_client.post(approve, json={"pattern": ""}).status_code == 400
    assert admin_client.post(approve, json={"pattern": "a/*", "duration": "9y"}).status_code == 400
    pending = admin_client.get("/api/admin/requests?status=pending").json()
    assert [r["id"] for r in pending] == [request["id"]]
    assert admin_client.get("/api/admin/patterns").json() == []


def test_request_status_filter(admin_client: TestClient) -> None:  # type: ignore[type-arg]
    device = create_device(admin_client)
    first = _request(admin_client, device, "https://a.example/")
    _request(admin_client, device, "https://b.example/")
    admin_client.post(f"/api/admin/requests/{first['id']}/deny")

    assert len(admin_client.get("/api/admin/requests").json()) == 2
    pending = admin_client.get("/api/admin/requests?status=pending").json()
    assert [r["url"] for r in pending] == ["https://b.example/"]
    denied = admin_client.get("/api/admin/requests?status=denied").json()
    assert [r["id"] for r in denied] == [first["id"]]


# --- Accounts and notifications ---


def test_create_admin_users(admin_client: TestClient) -> None:  # type: ignore[type-arg]
    resp = admin_client.post(
        "/api/admin/users", json={"username": "second", "password": "password123"},
    )
    assert resp.status_code == 201
    assert resp.json()["username"] == "second"
    resp = admin_client.post(
        "/api/admin/users", json={"username": "second", "password": "password123"},
    )
    assert resp.status_code == 409
    resp = admin_client.post("/api/admin/users", json={"username": "third", "password": "x"})
    assert resp.status_code == 400
    names = [u["username"] for u in admin_client.get("/api/admin/users").json()]
    assert sorted(names) == ["admin", "second"]


def test_notification_preferences(admin_client: TestClient) -> None:  # type: ignore[type-arg]
    prefs = admin_client.get("/api/admin/notifications/prefs").json()
    assert prefs == {"notify_new_requests": True, "notify_device_status": True}

    resp = admin_client.put(
        "/api/admin/notifications/prefs", json={"notify_device_status": False},
    )
    assert resp.json() == {"notify_new_requests": True, "notify_device_status": False}
    prefs = admin_client.get("/api/admin/notifications/prefs").json()
    assert prefs["notify_device_status"] is False

    resp = admin_client.put("/api/admin/notifications/prefs", json={"notify_new_requests": 1})
    assert resp.status_code == 400


def test_push_subscriptions(admin_client: TestClient) -> None:  # type: ignore[type-arg]
    """Subscribing twice with one endpoint keeps a single row."""
    body = {"endpoint": "https://push.example/abc", "keys": {"p256dh": "key", "auth": "secret"}}
    assert admin_client.post("/api/admin/push/subscribe", json=body).status_code == 201
    assert admin_client.post("/api/admin/push/subscribe", json=body).status_code == 201
    subs = admin_client.get("/api/admin/push/subscriptions").json()
    assert [s["endpoint"] for s in subs] == ["https://push.example/abc"]

    resp = admin_client.post("/api/admin/push/subscribe", json={"endpoint": "https://x"})
    assert resp.status_code == 400

    resp = admin_client.post("/api/admin/push/unsubscribe", json={"endpoint": body["endpoint"]})
    assert resp.json() == {"success": True}
    assert admin_client.get("/api/admin/push/subscriptions").json() == []
    assert admin_client.post("/api/admin/push/unsubscribe", json={}).status_code == 400
