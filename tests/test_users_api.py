"""Tests for user registration and blind-spot endpoints."""
import pytest
from httpx import AsyncClient

from app.errors import ExternalServiceError
from tests.fakes import InMemoryStudyRepository, ScriptedSuggestionClient


async def _create_user(client: AsyncClient, email: str = "ada@example.com", **extra):
    body = {
        "name": "Ada",
        "email": email,
        "interestTags": ["Mathematics", " physics ", ""],
        "studyStyle": "Hands-On",
        "availability": "weekends",
        "experienceLevel": "advanced",
    }
    body.update(extra)
    return await client.post("/api/users", json=body)


@pytest.mark.asyncio
async def test_create_user(client: AsyncClient):
    resp = await _create_user(client)
    assert resp.status_code == 201
    data = resp.json()
    assert isinstance(data["id"], int)
    assert data["name"] == "Ada"
    assert data["interestTags"] == ["Mathematics", "physics"]
    assert data["studyStyle"] == "hands-on"
    assert data["availability"] == "weekends"
    assert data["experienceLevel"] == "advanced"


@pytest.mark.asyncio
async def test_create_user_minimal(client: AsyncClient):
    resp = await client.post("/api/users", json={"name": "Byron", "email": "byron@example.com"})
    assert resp.status_code == 201
    data = resp.json()
    assert data["interestTags"] == []
    assert data["studyStyle"] is None


@pytest.mark.asyncio
async def test_duplicate_email_rejected(client: AsyncClient):
    await _create_user(client)
    resp = await _create_user(client)
    assert resp.status_code == 400
    assert "already registered" in resp.json()["error"]


@pytest.mark.asyncio
async def test_create_user_invalid_style(client: AsyncClient):
    resp = await _create_user(client, studyStyle="osmosis")
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_get_user(client: AsyncClient):
    created = (await _create_user(client)).json()

    resp = await client.get(f"/api/users/{created['id']}")

    assert resp.status_code == 200
    assert resp.json()["email"] == "ada@example.com"


@pytest.mark.asyncio
async def test_get_unknown_user(client: AsyncClient):
    resp = await client.get("/api/users/9999")
    assert resp.status_code == 404
    assert resp.json() == {"error": "User 9999 not found"}


@pytest.mark.asyncio
async def test_blind_spots_round_trip(client: AsyncClient):
    user_id = (await _create_user(client)).json()["id"]

    resp = await client.post(
        f"/api/users/{user_id}/blind-spots",
        json={"topic": "  Linear Algebra ", "confidence": 0.85},
    )
    assert resp.status_code == 201
    assert resp.json()["topic"] == "Linear Algebra"
    assert resp.json()["userId"] == user_id

    await client.post(f"/api/users/{user_id}/blind-spots", json={"topic": "Topology", "confidence": 0.1})

    resp = await client.get(f"/api/users/{user_id}/blind-spots")
    assert resp.status_code == 200
    assert [(s["topic"], s["confidence"]) for s in resp.json()] == [
        ("Linear Algebra", 0.85),
        ("Topology", 0.1),
    ]


@pytest.mark.asyncio
async def test_blind_spot_confidence_out_of_range(client: AsyncClient):
    user_id = (await _create_user(client)).json()["id"]
    resp = await client.post(
        f"/api/users/{user_id}/blind-spots", json={"topic": "Topology", "confidence": 1.2}
    )
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_blind_spot_for_unknown_user(client: AsyncClient):
    resp = await client.post("/api/users/31337/blind-spots", json={"topic": "Sets", "confidence": 0.5})
    assert resp.status_code == 404

    resp = await client.get("/api/users/31337/blind-spots")
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_get_and_delete_blind_spot(client: AsyncClient, repository: InMemoryStudyRepository):
    user_id = (await _create_user(client)).json()["id"]
    other_id = (await _create_user(client, email="byron@example.com")).json()["id"]
    spot = (
        await client.post(
            f"/api/users/{user_id}/blind-spots",
            json={"topic": "Topology", "confidence": 0.1, "aiAnalysis": {"source": "quiz"}},
        )
    ).json()

    resp = await client.get(f"/api/users/{user_id}/blind-spots/{spot['id']}")
    assert resp.status_code == 200
    assert resp.json()["topic"] == "Topology"
    assert resp.json()["aiAnalysis"] == {"source": "quiz"}
    assert resp.json()["createdAt"] is not None

    # Another user's id does not reach it
    resp = await client.get(f"/api/users/{other_id}/blind-spots/{spot['id']}")
    assert resp.status_code == 404
    resp = await client.delete(f"/api/users/{other_id}/blind-spots/{spot['id']}")
    assert resp.status_code == 404
    assert len(repository.blind_spots) == 1

    resp = await client.delete(f"/api/users/{user_id}/blind-spots/{spot['id']}")
    assert resp.status_code == 204
    assert resp.content == b""
    assert repository.blind_spots == []

    resp = await client.delete(f"/api/users/{user_id}/blind-spots/{spot['id']}")
    assert resp.status_code == 404
    assert resp.json() == {"error": f"Blind spot {spot['id']} not found"}


@pytest.mark.asyncio
async def test_analyze_content(client: AsyncClient, suggestion_client: ScriptedSuggestionClient):
    user_id = (await _create_user(client)).json()["id"]

    resp = await client.post(
        f"/api/users/{user_id}/analyze",
        json={"content": "Eigenvectors keep their direction...", "userAssessment": {"eigenvalues": 0.3}},
    )

    assert resp.status_code == 200
    data = resp.json()
    assert [(s["topic"], s["confidence"], s["userId"]) for s in data["blindSpots"]] == [
        ("Eigenvalues", 0.2, user_id)
    ]
    assert data["blindSpots"][0]["aiAnalysis"]["recommendations"][0] == (
        "Start with basic concepts of Eigenvalues"
    )
    assert data["analysis"]["topics"] == [
        {"topic": "Eigenvalues", "confidence": 0.2, "isBlindSpot": True},
        {"topic": "Vector spaces", "confidence": 0.8, "isBlindSpot": False},
    ]
    assert data["analysis"]["recommendations"] == [
        "Focus on these areas: Eigenvalues",
        "Build on your strengths in: Vector spaces",
    ]
    assert suggestion_client.analysis_calls[0]["user_assessment"] == {"eigenvalues": 0.3}

    # Stored rows are visible through the blind-spot listing
    resp = await client.get(f"/api/users/{user_id}/blind-spots")
    assert [s["topic"] for s in resp.json()] == ["Eigenvalues"]


@pytest.mark.asyncio
async def test_analyze_content_validation(client: AsyncClient):
    user_id = (await _create_user(client)).json()["id"]

    resp = await client.post(f"/api/users/{user_id}/analyze", json={"content": "   "})
    assert resp.status_code == 400
    assert resp.json() == {"error": "Content cannot be empty"}

    resp = await client.post(f"/api/users/{user_id}/analyze", json={"content": "a" * 10_001})
    assert resp.status_code == 400
    assert "10,000" in resp.json()["error"]

    resp = await client.post(f"/api/users/{user_id}/analyze", json={})
    assert resp.status_code == 400
    assert resp.json()["error"] == "Invalid request"

    resp = await client.post(
        f"/api/users/{user_id}/analyze",
        json={"content": "notes", "userAssessment": {"sets": 1.5}},
    )
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_analyze_content_unknown_user(client: AsyncClient):
    resp = await client.post("/api/users/404/analyze", json={"content": "notes"})
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_analyze_content_service_failure(
    client: AsyncClient,
    suggestion_client: ScriptedSuggestionClient,
    repository: InMemoryStudyRepository,
):
    user_id = (await _create_user(client)).json()["id"]
    suggestion_client.analysis = ExternalServiceError("Text generation timed out")

    resp = await client.post(f"/api/users/{user_id}/analyze", json={"content": "notes"})

    assert resp.status_code == 502
    assert resp.json() == {"error": "Text generation timed out"}
    assert repository.blind_spots == []
