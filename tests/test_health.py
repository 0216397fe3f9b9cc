"""Tests for GET /api/health."""
import pytest
from httpx import AsyncClient

from tests.fakes import ScriptedSuggestionClient


@pytest.mark.asyncio
async def test_health_returns_200(client: AsyncClient):
    resp = await client.get("/api/health/")
    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "healthy"
    assert data["database"] == "ok"
    assert data["ollama"] == "ok"
    assert "timestamp" in data


@pytest.mark.asyncio
async def test_health_degraded_without_ollama(
    client: AsyncClient, suggestion_client: ScriptedSuggestionClient
):
    suggestion_client.healthy = False
    resp = await client.get("/api/health/")
    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "degraded"
    assert data["database"] == "ok"
    assert data["ollama"] == "error"


@pytest.mark.asyncio
async def test_health_degraded_without_database(client: AsyncClient, stub_session):
    stub_session.healthy = False
    resp = await client.get("/api/health/")
    data = resp.json()
    assert data["status"] == "degraded"
    assert data["database"] == "error"


@pytest.mark.asyncio
async def test_root_endpoint(client: AsyncClient):
    resp = await client.get("/")
    assert resp.status_code == 200
    data = resp.json()
    assert data["name"] == "StudyBuddy API"
    assert data["endpoints"]["match"] == "/api/match"


@pytest.mark.asyncio
async def test_process_time_header(client: AsyncClient):
    resp = await client.get("/")
    assert resp.headers["X-Process-Time"].endswith("ms")
