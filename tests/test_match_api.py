"""Tests for POST / GET / PUT /api/match."""
import pytest
from httpx import AsyncClient

from app.errors import ExternalServiceError
from tests.fakes import InMemoryStudyRepository, ScriptedSuggestionClient


def _match_body(user_id: int = 1, **patterns):
    learning_patterns = {
        "preferredSubjects": ["mathematics", "physics"],
        "studyStyle": "visual",
        "availability": "evening",
        "experienceLevel": "intermediate",
    }
    learning_patterns.update(patterns)
    return {
        "userId": user_id,
        "learningPatterns": learning_patterns,
        "knowledgeGaps": [{"topic": "calculus", "confidence": 0.2}],
    }


async def _seed_users(repo: InMemoryStudyRepository):
    people = [
        ("Requester", ["mathematics", "physics"], "visual", "intermediate"),
        ("Ada", ["mathematics", "physics"], "visual", "intermediate"),
        ("Byron", ["literature"], "reading", "expert"),
        ("Cleo", ["Mathematics", "History"], "hands-on", "beginner"),
    ]
    for name, tags, style, level in people:
        await repo.create_user(
            name=name,
            email=f"{name.lower()}@example.com",
            interest_tags=tags,
            study_style=style,
            availability="evening",
            experience_level=level,
        )


@pytest.mark.asyncio
async def test_request_matches(client: AsyncClient, repository: InMemoryStudyRepository):
    await _seed_users(repository)

    resp = await client.post("/api/match", json=_match_body())

    assert resp.status_code == 200
    data = resp.json()
    assert [m["userId"] for m in data["matches"]] == [2, 4]
    top = data["matches"][0]
    assert top["compatibilityScore"] == pytest.approx(0.8)
    assert top["commonTopics"] == ["mathematics", "physics"]
    assert top["learningStyle"] == "visual"
    assert top["availability"] == "evening"
    assert 1 <= len(top["suggestedActivities"]) <= 5
    assert data["suggestedTopics"] == [{"topic": "Proof techniques", "reason": "Builds rigor"}]
    assert len(repository.matches) == 2


@pytest.mark.asyncio
async def test_request_matches_with_no_other_users(client: AsyncClient):
    resp = await client.post("/api/match", json=_match_body(user_id=77))
    assert resp.status_code == 200
    data = resp.json()
    assert data["matches"] == []
    assert len(data["suggestedTopics"]) >= 1


@pytest.mark.asyncio
async def test_request_matches_falls_back_when_generation_fails(
    client: AsyncClient,
    repository: InMemoryStudyRepository,
    suggestion_client: ScriptedSuggestionClient,
):
    await _seed_users(repository)
    suggestion_client.activities = ExternalServiceError("down")
    suggestion_client.topics = ExternalServiceError("down")

    resp = await client.post("/api/match", json=_match_body())

    assert resp.status_code == 200
    data = resp.json()
    assert data["matches"][0]["suggestedActivities"][-2:] == [
        "Schedule regular study sessions",
        "Share study resources and notes",
    ]
    assert data["suggestedTopics"][0] == {
        "topic": "Latest developments in mathematics",
        "reason": "You're interested in mathematics",
    }


@pytest.mark.asyncio
async def test_request_matches_accepts_mixed_case_enums(client: AsyncClient):
    resp = await client.post("/api/match", json=_match_body(studyStyle="Visual", experienceLevel="BEGINNER"))
    assert resp.status_code == 200


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "mutate",
    [
        lambda body: body.pop("learningPatterns"),
        lambda body: body.pop("userId"),
        lambda body: body["learningPatterns"].update(preferredSubjects=[]),
        lambda body: body["learningPatterns"].update(studyStyle="telepathic"),
        lambda body: body["knowledgeGaps"].append({"topic": "x", "confidence": 1.5}),
    ],
)
async def test_request_matches_rejects_malformed_profiles(client: AsyncClient, mutate):
    body = _match_body()
    mutate(body)

    resp = await client.post("/api/match", json=body)

    assert resp.status_code == 400
    assert resp.json()["error"] == "Invalid request"


@pytest.mark.asyncio
async def test_candidate_load_failure_is_500(client: AsyncClient, repository: InMemoryStudyRepository):
    repository.fail_candidates = True
    resp = await client.post("/api/match", json=_match_body())
    assert resp.status_code == 500
    assert resp.json() == {"error": "Failed to load candidate users"}


@pytest.mark.asyncio
async def test_persistence_failure_still_returns_matches(
    client: AsyncClient, repository: InMemoryStudyRepository
):
    await _seed_users(repository)
    repository.fail_save = True

    resp = await client.post("/api/match", json=_match_body())

    assert resp.status_code == 200
    assert len(resp.json()["matches"]) == 2


@pytest.mark.asyncio
async def test_list_matches(client: AsyncClient, repository: InMemoryStudyRepository):
    await _seed_users(repository)
    await client.post("/api/match", json=_match_body())

    resp = await client.get("/api/match", params={"userId": 2})

    assert resp.status_code == 200
    matches = resp.json()["matches"]
    assert len(matches) == 1
    stored = matches[0]
    assert stored["userId"] == 1
    assert stored["status"] == "pending"
    assert stored["learningStyle"] == "visual"
    assert stored["compatibilityScore"] == pytest.approx(0.8)


@pytest.mark.asyncio
async def test_list_matches_requires_user_id(client: AsyncClient):
    resp = await client.get("/api/match")
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_list_matches_unknown_user(client: AsyncClient):
    resp = await client.get("/api/match", params={"userId": 404})
    assert resp.status_code == 404
    assert "error" in resp.json()


@pytest.mark.asyncio
async def test_list_matches_read_failure(client: AsyncClient, repository: InMemoryStudyRepository):
    await _seed_users(repository)
    repository.fail_match_reads = True
    resp = await client.get("/api/match", params={"userId": 1})
    assert resp.status_code == 500
    assert resp.json() == {"error": "Failed to retrieve matches"}


@pytest.mark.asyncio
async def test_update_match_status_flow(client: AsyncClient, repository: InMemoryStudyRepository):
    await _seed_users(repository)
    await client.post("/api/match", json=_match_body())
    match_id = next(iter(repository.matches))

    resp = await client.put("/api/match", params={"matchId": match_id, "status": "accepted"})
    assert resp.status_code == 200
    assert resp.json() == {"success": True, "matchId": match_id, "status": "accepted"}

    resp = await client.put("/api/match", params={"matchId": match_id, "status": "active"})
    assert resp.status_code == 200
    assert resp.json()["status"] == "active"

    resp = await client.put("/api/match", params={"matchId": match_id, "status": "rejected"})
    assert resp.status_code == 409
    assert resp.json()["error"] == "Cannot move match from 'active' to 'rejected'; 'active' is final"


@pytest.mark.asyncio
async def test_update_match_status_rejects_pending_and_unknown_values(
    client: AsyncClient, repository: InMemoryStudyRepository
):
    await _seed_users(repository)
    await client.post("/api/match", json=_match_body())
    match_id = next(iter(repository.matches))

    for value in ("pending", "maybe"):
        resp = await client.put("/api/match", params={"matchId": match_id, "status": value})
        assert resp.status_code == 400


@pytest.mark.asyncio
async def test_update_unknown_match(client: AsyncClient):
    resp = await client.put("/api/match", params={"matchId": 999, "status": "accepted"})
    assert resp.status_code == 404
