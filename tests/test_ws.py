"""Tests for the device WebSocket channel."""

from __future__ import annotations

import time

import pytest
from litestar.exceptions import WebSocketDisconnect
from litestar.testing import TestClient

from tests.conftest import create_device
from watchtower.controllers.ws import AUTH_FAILED


def test_bad_token_closes_with_auth_code(admin_client: TestClient) -> None:  # type: ignore[type-arg]
    """An unknown token is closed with 4001 and never registered."""
    with admin_client.websocket_connect("/api/ws?token=wt_bogus") as ws:
        with pytest.raises(WebSocketDisconnect) as excinfo:
            ws.receive_json()
    assert excinfo.value.code == AUTH_FAILED
    assert admin_client.get("/api/admin/status").json()["sessions"] == 0


def test_missing_token_closes_with_auth_code(admin_client: TestClient) -> None:  # type: ignore[type-arg]
    with admin_client.websocket_connect("/api/ws") as ws:
        with pytest.raises(WebSocketDisconnect) as excinfo:
            ws.receive_json()
    assert excinfo.value.code == AUTH_FAILED


def test_initial_snapshot_and_push(admin_client: TestClient) -> None:  # type: ignore[type-arg]
    """A new session gets the current snapshot, then every change."""
    device = create_device(admin_client)
    admin_client.post(
        "/api/admin/patterns",
        json={"device_id": device["id"], "pattern": "example.com/*", "type": "allow"},
    )

    with admin_client.websocket_connect(f"/api/ws?token={device['token']}") as ws:
        initial = ws.receive_json()
        assert initial["type"] == "patterns_updated"
        assert [p["pattern"] for p in initial["data"]["patterns"]] == ["example.com/*"]

        listed = admin_client.get("/api/admin/devices").json()
        assert listed[0]["connected"] is True
        assert admin_client.get("/api/admin/status").json() == {
            "connected_devices": 1, "sessions": 1,
        }

        resp = admin_client.post(
            "/api/admin/patterns",
            json={"device_id": device["id"], "pattern": "ads.example/*", "type": "deny"},
        )
        pushed = ws.receive_json()
        assert pushed["type"] == "patterns_updated"
        patterns = {p["id"]: p for p in pushed["data"]["patterns"]}
        assert patterns[resp.json()["id"]]["type"] == "deny"
        assert len(patterns) == 2

        admin_client.delete(f"/api/admin/patterns/{resp.json()['id']}")
        pushed = ws.receive_json()
        assert [p["pattern"] for p in pushed["data"]["patterns"]] == ["example.com/*"]


def test_push_reaches_only_the_owning_device(
    admin_client: TestClient,  # type: ignore[type-arg]
) -> None:
    """A change for one device is not delivered to another device's session."""
    mine = create_device(admin_client, "mine")
    theirs = create_device(admin_client, "theirs")

    with admin_client.websocket_connect(f"/api/ws?token={mine['token']}") as ws:
        assert ws.receive_json()["data"]["patterns"] == []
        admin_client.post(
            "/api/admin/patterns",
            json={"device_id": theirs["id"], "pattern": "x.example/*", "type": "allow"},
        )
        admin_client.post(
            "/api/admin/patterns",
            json={"device_id": mine["id"], "pattern": "y.example/*", "type": "allow"},
        )
        pushed = ws.receive_json()
        assert [p["pattern"] for p in pushed["data"]["patterns"]] == ["y.example/*"]


def test_approval_pushes_new_pattern(admin_client: TestClient) -> None:  # type: ignore[type-arg]
    device = create_device(admin_client)
    headers = {"Authorization": f"Bearer {device['token']}"}
    request = admin_client.post(
        "/api/requests", json={"url": "https://news.example/today"}, headers=headers,
    ).json()

    with admin_client.websocket_connect(f"/api/ws?token={device['token']}") as ws:
        ws.receive_json()
        admin_client.post(
            f"/api/admin/requests/{request['id']}/approve",
            json={"pattern": request["suggested_pattern"]},
        )
        pushed = ws.receive_json()
        assert [p["pattern"] for p in pushed["data"]["patterns"]] == ["news.example/*"]


def test_pong_keeps_session_and_closing_unregisters(
    admin_client: TestClient,  # type: ignore[type-arg]
) -> None:
    """Pongs are accepted quietly; disconnect drops the session from the hub."""
    device = create_device(admin_client)
    with admin_client.websocket_connect(f"/api/ws?token={device['token']}") as ws:
        ws.receive_json()
        ws.send_json({"type": "pong"})
        ws.send_json({"type": "pong"})
        admin_client.post(
            "/api/admin/patterns",
            json={"device_id": device["id"], "pattern": "a.example/*", "type": "allow"},
        )
        assert ws.receive_json()["type"] == "patterns_updated"

    hub = admin_client.app.state.hub
    for _ in range(100):
        if hub.session_count() == 0:
            break
        time.sleep(0.02)
    assert hub.session_count() == 0
    assert admin_client.get("/api/admin/devices").json()[0]["connected"] is False


@pytest.mark.parametrize("revoke", ["regenerate", "delete"])
def test_revoking_device_token_closes_live_session(
    admin_client: TestClient,  # type: ignore[type-arg]
    revoke: str,
) -> None:
    """Sessions opened with a rotated or deleted token stop receiving pushes."""
    device = create_device(admin_client)
    with admin_client.websocket_connect(f"/api/ws?token={device['token']}") as ws:
        ws.receive_json()
        if revoke == "regenerate":
            resp = admin_client.post(f"/api/admin/devices/{device['id']}/regenerate-token")
        else:
            resp = admin_client.delete(f"/api/admin/devices/{device['id']}")
        assert resp.status_code == 200
        assert admin_client.app.state.hub.session_count() == 0
        with pytest.raises(WebSocketDisconnect):
            ws.receive_json()
