"""
Ollama-backed text generation for study suggestions and content analysis.

Uses Ollama's /api/generate endpoint with qwen2.5:3b (or whatever
OLLAMA_LLM_MODEL is configured to).  Prompts are module-level constants so
they can be tuned without touching logic code.

Public API
----------
OllamaSuggestionClient.generate_study_activities(profile, candidate, common_topics) -> List[str]
OllamaSuggestionClient.generate_discussion_topics(profile)                          -> List[Dict]
OllamaSuggestionClient.analyze_content(content, user_assessment)                    -> Dict
OllamaSuggestionClient.check_health()                                               -> bool

All three generators raise ``ExternalServiceError`` on timeouts, connection
failures, non-200 responses and unparseable output.  Callers decide what to
fall back to.
"""
from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Dict, List, Optional, Sequence

import httpx

from app.config import settings
from app.errors import ExternalServiceError
from app.services.profiles import CandidateRecord, UserProfile
from app.utils.helpers import parse_llm_json, truncate_text

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Prompt templates
# ---------------------------------------------------------------------------

_ACTIVITIES_PROMPT = """\
You are a study coach pairing two learners as study buddies.

Learner A:
{requester_json}

Learner B:
{candidate_json}

Topics they have in common: {common_topics}

Suggest between 3 and 5 concrete study activities these two learners could do \
together. Each activity is one short imperative sentence (under 15 words) that \
fits both learning styles and experience levels.

Respond ONLY with a valid JSON array of strings. No explanation, no markdown:
["...", "..."]\
"""

_ACTIVITIES_RETRY_PROMPT = """\
List 3 study activities for two learners who share these topics: {common_topics}

Return ONLY a JSON array of strings and nothing else:
["Quiz each other on key definitions"]\
"""

_DISCUSSION_PROMPT = """\
You are a study coach.

A learner has these learning patterns:
{patterns_json}

and these self-assessed knowledge gaps (confidence 0.0 = no idea, 1.0 = mastered):
{gaps_json}

Suggest between 3 and 5 discussion topics this learner should explore with a \
study buddy. For each provide:
1. topic: a short topic title (2-6 words)
2. reason: one sentence on why it is worth discussing for this learner

Respond ONLY with valid JSON array. No explanation, no markdown:
[{{"topic": "...", "reason": "..."}}]\
"""

_DISCUSSION_RETRY_PROMPT = """\
Suggest 3 discussion topics for a learner interested in: {subjects}

Return ONLY a JSON array and nothing else:
[{{"topic": "Topic Title", "reason": "One sentence."}}]\
"""

_ANALYSIS_PROMPT = """\
You are a study coach reviewing what a learner wrote about a subject.

Learner's text:
---
{content}
---

The learner's own confidence per topic (0.0 = no idea, 1.0 = mastered), may be empty:
{assessment_json}

Identify between 2 and 8 topics the text covers. For each provide:
1. topic: a short topic title (2-6 words)
2. confidence: how well the learner seems to understand it, 0.0 to 1.0
3. isBlindSpot: true when the learner is missing or misunderstanding it

Then write a two-sentence overall analysis.

Respond ONLY with a valid JSON object. No explanation, no markdown:
{{"topics": [{{"topic": "...", "confidence": 0.4, "isBlindSpot": true}}], "analysis": "..."}}\
"""

_ANALYSIS_RETRY_PROMPT = """\
List the main topics in this text with a confidence from 0.0 to 1.0:
{excerpt}

Return ONLY a JSON object and nothing else:
{{"topics": [{{"topic": "Topic Title", "confidence": 0.5, "isBlindSpot": false}}], "analysis": "One sentence."}}\
"""


def _profile_payload(profile: UserProfile) -> Dict[str, Any]:
    return {
        "subjects": profile.preferred_subjects,
        "learningStyle": profile.study_style.value if profile.study_style else "unknown",
        "availability": profile.availability.value if profile.availability else "flexible",
        "experienceLevel": profile.experience_level.value if profile.experience_level else "unknown",
    }


def _candidate_payload(candidate: CandidateRecord) -> Dict[str, Any]:
    return {
        "subjects": candidate.interest_tags,
        "learningStyle": candidate.learning_style_label,
        "experienceLevel": (
            candidate.experience_level.value if candidate.experience_level else "intermediate"
        ),
    }


# ---------------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------------

class OllamaSuggestionClient:
    """
    Text-generation collaborator via Ollama /api/generate.

    Limits concurrency to MAX_CONCURRENT simultaneous LLM calls.
    Retries JSON parsing up to MAX_JSON_RETRIES times with a simpler prompt.
    Owns one ``httpx.AsyncClient``; call ``aclose()`` at shutdown.
    """

    MAX_CONCURRENT: int = 2
    MAX_JSON_RETRIES: int = 2
    MAX_ACTIVITIES: int = 5
    # Topics without an explicit isBlindSpot flag are weak below this
    BLIND_SPOT_CONFIDENCE: float = 0.5

    ACTIVITIES_PROMPT = _ACTIVITIES_PROMPT
    ACTIVITIES_RETRY_PROMPT = _ACTIVITIES_RETRY_PROMPT
    DISCUSSION_PROMPT = _DISCUSSION_PROMPT
    DISCUSSION_RETRY_PROMPT = _DISCUSSION_RETRY_PROMPT
    ANALYSIS_PROMPT = _ANALYSIS_PROMPT
    ANALYSIS_RETRY_PROMPT = _ANALYSIS_RETRY_PROMPT

    def __init__(
        self,
        base_url: Optional[str] = None,
        model: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.base_url = (base_url or settings.OLLAMA_BASE_URL).rstrip("/")
        self.model = model or settings.OLLAMA_LLM_MODEL
        self.llm_timeout = float(timeout if timeout is not None else settings.OLLAMA_TIMEOUT)
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=httpx.Timeout(self.llm_timeout, connect=10.0),
            transport=transport,
        )
        self._semaphore = asyncio.Semaphore(self.MAX_CONCURRENT)

    async def aclose(self) -> None:
        await self._client.aclose()

    # ------------------------------------------------------------------
    # Public generation methods
    # ------------------------------------------------------------------

    async def generate_study_activities(
        self,
        profile: UserProfile,
        candidate: CandidateRecord,
        common_topics: Sequence[str],
    ) -> List[str]:
        """Return up to MAX_ACTIVITIES activity strings for the pair."""
        topics = ", ".join(common_topics) or "none yet"
        prompt = self.ACTIVITIES_PROMPT.format(
            requester_json=json.dumps(_profile_payload(profile)),
            candidate_json=json.dumps(_candidate_payload(candidate)),
            common_topics=topics,
        )
        retry_prompt = self.ACTIVITIES_RETRY_PROMPT.format(common_topics=topics)

        parsed = await self._call_llm_json(prompt, max_tokens=400, retry_prompt=retry_prompt)
        if not isinstance(parsed, list):
            raise ExternalServiceError("Activity suggestions were not a JSON array")

        activities = [str(item).strip() for item in parsed if isinstance(item, str) and item.strip()]
        if not activities:
            raise ExternalServiceError("Activity suggestions were empty")
        return activities[: self.MAX_ACTIVITIES]

    async def generate_discussion_topics(self, profile: UserProfile) -> List[Dict[str, str]]:
        """Return ``[{"topic": ..., "reason": ...}]``; reason may be empty."""
        prompt = self.DISCUSSION_PROMPT.format(
            patterns_json=json.dumps(_profile_payload(profile)),
            gaps_json=json.dumps(
                [{"topic": g.topic, "confidence": g.confidence} for g in profile.knowledge_gaps]
            ),
        )
        retry_prompt = self.DISCUSSION_RETRY_PROMPT.format(
            subjects=", ".join(profile.preferred_subjects)
        )

        parsed = await self._call_llm_json(prompt, max_tokens=600, retry_prompt=retry_prompt)
        if isinstance(parsed, dict):
            parsed = [parsed]
        if not isinstance(parsed, list):
            raise ExternalServiceError("Discussion topics were not a JSON array")

        topics: List[Dict[str, str]] = []
        for item in parsed:
            if not isinstance(item, dict):
                continue
            topic = str(item.get("topic") or "").strip()
            if not topic:
                continue
            topics.append({"topic": topic, "reason": str(item.get("reason") or "").strip()})

        if not topics:
            raise ExternalServiceError("Discussion topics were empty")
        return topics

    async def analyze_content(
        self,
        content: str,
        user_assessment: Optional[Dict[str, float]] = None,
    ) -> Dict[str, Any]:
        """
        Identify the topics a piece of study content covers.

        Returns ``{"topics": [{"topic", "confidence", "is_blind_spot"}],
        "analysis": str}``; confidences are clamped to [0, 1].
        """
        prompt = self.ANALYSIS_PROMPT.format(
            content=content,
            assessment_json=json.dumps(user_assessment or {}),
        )
        retry_prompt = self.ANALYSIS_RETRY_PROMPT.format(excerpt=truncate_text(content, 1500))

        parsed = await self._call_llm_json(prompt, max_tokens=800, retry_prompt=retry_prompt)
        if isinstance(parsed, list):
            parsed = {"topics": parsed}
        if not isinstance(parsed, dict):
            raise ExternalServiceError("Content analysis was not a JSON object")

        topics: List[Dict[str, Any]] = []
        for item in parsed.get("topics") or []:
            if not isinstance(item, dict):
                continue
            topic = str(item.get("topic") or "").strip()
            if not topic:
                continue
            try:
                confidence = max(0.0, min(1.0, float(item.get("confidence", 0.5))))
            except (TypeError, ValueError):
                continue
            flag = item.get("isBlindSpot", item.get("is_blind_spot"))
            is_blind_spot = flag if isinstance(flag, bool) else confidence < self.BLIND_SPOT_CONFIDENCE
            topics.append(
                {"topic": topic[:255], "confidence": confidence, "is_blind_spot": is_blind_spot}
            )

        if not topics:
            raise ExternalServiceError("Content analysis found no topics")
        return {"topics": topics, "analysis": str(parsed.get("analysis") or "").strip()}

    async def check_health(self) -> bool:
        """True when Ollama answers GET /api/tags with 200."""
        try:
            resp = await self._client.get("/api/tags", timeout=5.0)
            return resp.status_code == 200
        except httpx.HTTPError as exc:
            logger.warning("Ollama health check failed: %s", exc)
            return False

    # ------------------------------------------------------------------
    # Internal LLM plumbing
    # ------------------------------------------------------------------

    async def _call_llm(self, prompt: str, max_tokens: int = 500) -> str:
        """
        POST to Ollama /api/generate and return the response text.

        Raises ``ExternalServiceError`` on timeout, connection failure or a
        non-200 response.
        """
        async with self._semaphore:
            try:
                resp = await self._client.post(
                    "/api/generate",
                    json={
                        "model": self.model,
                        "prompt": prompt,
                        "stream": False,
                        "options": {
                            "num_predict": max_tokens,
                            "temperature": 0.4,
                        },
                    },
                )
            except httpx.TimeoutException as exc:
                logger.error("_call_llm: request timed out after %.0f s", self.llm_timeout)
                raise ExternalServiceError("Text generation timed out") from exc
            except httpx.HTTPError as exc:
                logger.error("_call_llm: connection error: %s", exc)
                raise ExternalServiceError("Text generation service unreachable") from exc

        if resp.status_code != 200:
            logger.error(
                "_call_llm: Ollama returned HTTP %d: %s",
                resp.status_code,
                truncate_text(resp.text, 300),
            )
            raise ExternalServiceError(f"Text generation returned HTTP {resp.status_code}")

        try:
            return resp.json().get("response", "")
        except ValueError as exc:
            raise ExternalServiceError("Text generation returned malformed JSON") from exc

    async def _call_llm_json(
        self,
        prompt: str,
        max_tokens: int = 500,
        retry_prompt: Optional[str] = None,
    ) -> Any:
        """
        Call the LLM and parse the response as JSON.

        Retries up to MAX_JSON_RETRIES times, using *retry_prompt* on retry.
        Transport errors are not retried.
        """
        prompts = [prompt] + [retry_prompt or prompt] * (self.MAX_JSON_RETRIES - 1)

        for attempt, current_prompt in enumerate(prompts, start=1):
            response_text = await self._call_llm(current_prompt, max_tokens)

            success, parsed = parse_llm_json(response_text)
            if success:
                if attempt > 1:
                    logger.info("_call_llm_json: JSON parsed successfully on attempt %d", attempt)
                return parsed

            if attempt < self.MAX_JSON_RETRIES:
                logger.warning(
                    "_call_llm_json: JSON parse failed on attempt %d/%d, retrying",
                    attempt,
                    self.MAX_JSON_RETRIES,
                )

        logger.error("_call_llm_json: all %d JSON parse attempts failed", self.MAX_JSON_RETRIES)
        raise ExternalServiceError("Text generation returned unparseable output")
