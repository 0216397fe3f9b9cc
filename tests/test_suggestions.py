"""Tests for the suggestion adapter and its template fallbacks."""
import pytest

from app.errors import ExternalServiceError
from app.services.operation_log import OperationLogger
from app.services.suggestions import SuggestionAdapter, fallback_activities
from tests.fakes import ScriptedSuggestionClient, failing_client, make_candidate, make_profile


@pytest.mark.asyncio
async def test_fallback_activities_with_common_topic():
    log = OperationLogger()
    adapter = SuggestionAdapter(failing_client(), log)

    activities = await adapter.suggest_activities(make_profile(), make_candidate(), ["algebra", "geometry"])

    assert activities == [
        "Study algebra together",
        "Work on algebra problems",
        "Schedule regular study sessions",
        "Share study resources and notes",
    ]
    assert log.snapshot()["fallback.activities"] == 1


@pytest.mark.asyncio
async def test_fallback_activities_without_common_topic():
    adapter = SuggestionAdapter(failing_client())
    activities = await adapter.suggest_activities(make_profile(), make_candidate(), [])
    assert activities == ["Schedule regular study sessions", "Share study resources and notes"]


@pytest.mark.asyncio
async def test_generated_activities_follow_topic_lines_and_are_capped():
    client = ScriptedSuggestionClient(activities=[f"Idea {i}" for i in range(6)])
    adapter = SuggestionAdapter(client)

    activities = await adapter.suggest_activities(make_profile(), make_candidate(), ["algebra"])

    assert len(activities) == 5
    assert activities[:2] == ["Study algebra together", "Work on algebra problems"]
    assert activities[2:] == ["Idea 0", "Idea 1", "Idea 2"]
    assert client.activity_calls[0]["topics"] == ["algebra"]


@pytest.mark.asyncio
async def test_empty_generation_falls_back():
    adapter = SuggestionAdapter(ScriptedSuggestionClient(activities=[]))
    activities = await adapter.suggest_activities(make_profile(), make_candidate(), [])
    assert activities == list(fallback_activities([]))


@pytest.mark.asyncio
async def test_missing_client_falls_back():
    adapter = SuggestionAdapter(None)
    topics = await adapter.suggest_discussion_topics(make_profile(subjects=["physics"]))
    assert [(t.topic, t.reason) for t in topics] == [
        ("Latest developments in physics", "You're interested in physics"),
    ]


@pytest.mark.asyncio
async def test_discussion_topics_fallback_one_per_subject():
    log = OperationLogger()
    adapter = SuggestionAdapter(
        ScriptedSuggestionClient(topics=ExternalServiceError("down")), log
    )

    topics = await adapter.suggest_discussion_topics(make_profile(subjects=["math", "chemistry"]))

    assert [t.topic for t in topics] == [
        "Latest developments in math",
        "Latest developments in chemistry",
    ]
    assert log.snapshot()["fallback.discussion_topics"] == 1


@pytest.mark.asyncio
async def test_discussion_topic_without_reason_gets_default():
    client = ScriptedSuggestionClient(
        topics=[{"topic": "Linear maps"}, {"topic": "Eigenvalues", "reason": "Core idea"}, {"reason": "x"}]
    )
    topics = await SuggestionAdapter(client).suggest_discussion_topics(make_profile())

    assert [(t.topic, t.reason) for t in topics] == [
        ("Linear maps", "Based on your interest in Linear maps"),
        ("Eigenvalues", "Core idea"),
    ]


def test_fallback_activities_respects_limit():
    assert fallback_activities(["a"], limit=3) == [
        "Study a together",
        "Work on a problems",
        "Schedule regular study sessions",
    ]
