"""
AnthropicScorer — LLM-backed compatibility scoring for intent pairs.

Asks Claude for a JSON object ``{"score": 0..1, "reason": "..."}``.
Any API failure or unparseable answer raises ScoringError; the
FallbackScorer in ``social_mcp.matching.scorer`` turns that into a
category heuristic so matching never hard-fails.
"""

from __future__ import annotations

import asyncio
import json
import logging
import re
import time
from typing import Any, Optional

import anthropic

from social_mcp.core.errors import ScoringError
from social_mcp.core.models import IntentSnapshot, MatchScore

logger = logging.getLogger(__name__)

SCORING_SYSTEM_PROMPT = """You are a matchmaking assistant. Given two people's connection intents, rate how compatible they are.

Return ONLY a JSON object: {"score": <number between 0 and 1>, "reason": "<one short sentence>"}

Consider:
- Category alignment
- Complementary needs (one teaches, one learns; one hires, one seeks work)
- Location compatibility
- Intent alignment"""

_JSON_OBJECT = re.compile(r"\{.*\}", re.DOTALL)


def _describe(intent: IntentSnapshot) -> str:
    return (
        f"Category: {intent.category}\n"
        f"Description: {intent.description}\n"
        f"Criteria: {json.dumps(intent.criteria or {})}\n"
        f"Profile: {intent.display_name or 'Anonymous'}, {intent.bio or 'No bio'}"
    )


class AnthropicScorer:
    """MatchScorer implementation calling the Anthropic Messages API."""

    def __init__(
        self,
        api_key: str,
        model: str = "claude-sonnet-4-5-20250929",
        max_tokens: int = 300,
        base_url: str | None = None,
        max_concurrent: int = 5,
        client: Optional[Any] = None,
    ):
        client_kwargs: dict[str, Any] = {}
        if base_url:
            client_kwargs["base_url"] = base_url
        self._client = client or anthropic.AsyncAnthropic(api_key=api_key, **client_kwargs)
        self._model = model
        self._max_tokens = max_tokens
        self._semaphore = asyncio.Semaphore(max_concurrent)

        logger.info(
            "AnthropicScorer: model=%s, max_concurrent=%d, base_url=%s",
            model, max_concurrent, base_url or "default",
        )

    async def score(self, intent_a: IntentSnapshot, intent_b: IntentSnapshot) -> MatchScore:
        prompt = f"Intent A:\n{_describe(intent_a)}\n\nIntent B:\n{_describe(intent_b)}\n\nAnalyze and return JSON."

        async with self._semaphore:
            t0 = time.monotonic()
            try:
                response = await self._client.messages.create(
                    model=self._model,
                    max_tokens=self._max_tokens,
                    system=SCORING_SYSTEM_PROMPT,
                    messages=[{"role": "user", "content": prompt}],
                )
            except anthropic.APIError as e:
                logger.error("Scoring call FAIL | %.0fms | %s", (time.monotonic() - t0) * 1000, e)
                raise ScoringError(f"Scoring call failed: {e}") from e

        elapsed_ms = (time.monotonic() - t0) * 1000
        text = "".join(block.text for block in response.content if block.type == "text")
        result = self.parse_score(text)
        logger.debug(
            "Scoring call OK | %.0fms | %s x %s -> %.2f",
            elapsed_ms, intent_a.intent_id, intent_b.intent_id, result.score,
        )
        return result

    @staticmethod
    def parse_score(text: str) -> MatchScore:
        """Extract ``{score, reason}`` from model output, tolerating prose around the JSON."""
        found = _JSON_OBJECT.search(text or "")
        if not found:
            raise ScoringError(f"No JSON object in scorer output: {text[:100]!r}")
        try:
            data = json.loads(found.group(0))
            score = float(data["score"])
        except (ValueError, KeyError, TypeError) as e:
            raise ScoringError(f"Malformed scorer output: {text[:100]!r}") from e
        return MatchScore(score=score, reason=str(data.get("reason") or "Compatible intents"))
