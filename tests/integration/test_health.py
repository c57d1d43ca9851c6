"""Tests for the health endpoint."""

from unittest.mock import AsyncMock, patch

import pytest
from httpx import AsyncClient

import src.tapcards.main as main_module

pytestmark = pytest.mark.integration


@pytest.fixture(autouse=True)
def clear_health_cache(monkeypatch):
    """Each test starts without a cached health result."""
    monkeypatch.setattr(main_module, "_health_cache", None)
    monkeypatch.setattr(main_module, "_health_cache_time", 0)


async def test_healthy_when_dependencies_respond(client: AsyncClient):
    with patch.object(main_module, "get_temporal_client", AsyncMock()):
        response = await client.get("/health")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert data["database"] == "healthy"
    assert data["temporal"] == "healthy"
    assert data["redis"] == "not_configured"
    assert data["cached"] is False


async def test_temporal_outage_is_degraded_not_unhealthy(client: AsyncClient):
    failing = AsyncMock(side_effect=RuntimeError("connection refused"))
    with patch.object(main_module, "get_temporal_client", failing):
        response = await client.get("/health")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "degraded"
    assert data["database"] == "healthy"
    assert data["temporal"].startswith("unhealthy")


async def test_second_call_is_served_from_cache(client: AsyncClient):
    probe = AsyncMock()
    with patch.object(main_module, "get_temporal_client", probe):
        first = await client.get("/health")
        second = await client.get("/health")

    assert first.json()["cached"] is False
    assert second.json()["cached"] is True
    assert second.json()["cache_age_seconds"] < 10
    probe.assert_awaited_once()
