"""Shared fixtures for watchtower tests."""

from __future__ import annotations

from collections.abc import AsyncIterator, Iterator

import pytest
from litestar.testing import TestClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from watchtower.app import create_app
from watchtower.config import Settings
from watchtower.utils.db import Database

ADMIN_USERNAME = "admin"
ADMIN_PASSWORD = "correct-horse"


@pytest.fixture()
def settings() -> Settings:
    """Test settings with in-memory SQLite."""
    return Settings(
        secret_key="test-secret-key",
        database_url="sqlite+aiosqlite://",
    )


@pytest.fixture()
def client(settings: Settings) -> Iterator[TestClient]:  # type: ignore[type-arg]
    """Sync test client with the app lifespan (tables, hub, monitor) running."""
    app = create_app(settings)
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture()
def admin_client(client: TestClient) -> TestClient:  # type: ignore[type-arg]
    """Test client holding a session cookie for the first admin."""
    login(client)
    return client


@pytest.fixture()
async def pool() -> AsyncIterator[async_sessionmaker[AsyncSession]]:
    """Connection pool over a fresh in-memory database."""
    session_pool = Database.init("sqlite+aiosqlite://")
    await Database.create_tables()
    yield session_pool
    await Database.close()


def login(client: TestClient) -> dict[str, object]:  # type: ignore[type-arg]
    """Run first-run setup; the client keeps the session cookie."""
    response = client.post(
        "/api/setup/create-user",
        json={
            "username": ADMIN_USERNAME,
            "password": ADMIN_PASSWORD,
            "confirm_password": ADMIN_PASSWORD,
        },
    )
    assert response.status_code == 201, response.text
    user: dict[str, object] = response.json()["user"]
    return user


def create_device(
    client: TestClient, name: str = "kitchen-laptop",  # type: ignore[type-arg]
) -> dict[str, str]:
    """Create a device as admin. Returns the device dict with its token."""
    response = client.post("/api/admin/devices", json={"name": name})
    assert response.status_code == 201, response.text
    device: dict[str, str] = response.json()
    return device


def device_headers(device: dict[str, str]) -> dict[str, str]:
    """Bearer headers for a device."""
    return {"Authorization": f"Bearer {device['token']}"}
