"""Tests for match scorers and the fallback wrapper."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock

import pytest

from social_mcp.core.errors import ScoringError
from social_mcp.core.models import IntentSnapshot, MatchScore
from social_mcp.infra.circuit_breaker import CircuitBreaker, CircuitState
from social_mcp.infra.config import SocialConfig
from social_mcp.matching.scorer import CategoryScorer, FallbackScorer, build_scorer


def _intent(category: str, profile_id: str = "p1") -> IntentSnapshot:
    return IntentSnapshot(
        intent_id=f"i-{profile_id}",
        profile_id=profile_id,
        category=category,
        description="Looking for people",
    )


class TestCategoryScorer:
    @pytest.mark.asyncio
    async def test_same_category(self):
        result = await CategoryScorer().score(_intent("sports"), _intent("sports", "p2"))
        assert result.score == 0.6
        assert "sports" in result.reason

    @pytest.mark.asyncio
    async def test_different_category(self):
        result = await CategoryScorer().score(_intent("sports"), _intent("romance", "p2"))
        assert result.score == 0.0


class TestFallbackScorer:
    @pytest.mark.asyncio
    async def test_primary_result_used(self):
        primary = AsyncMock()
        primary.score.return_value = MatchScore(0.9, "great fit")
        scorer = FallbackScorer(primary)

        result = await scorer.score(_intent("sports"), _intent("romance", "p2"))
        assert result.score == 0.9
        assert scorer.get_stats()["primary_calls"] == 1

    @pytest.mark.asyncio
    async def test_scoring_error_falls_back(self):
        primary = AsyncMock()
        primary.score.side_effect = ScoringError("down")
        scorer = FallbackScorer(primary)

        result = await scorer.score(_intent("sports"), _intent("sports", "p2"))
        assert result.score == 0.6
        stats = scorer.get_stats()
        assert stats["errors"] == 1
        assert stats["fallback_calls"] == 1

    @pytest.mark.asyncio
    async def test_timeout_falls_back(self):
        class SlowScorer:
            async def score(self, a, b):
                await asyncio.sleep(1)
                return MatchScore(1.0, "never")

        scorer = FallbackScorer(SlowScorer(), timeout=0.01)
        result = await scorer.score(_intent("sports"), _intent("sports", "p2"))
        assert result.score == 0.6
        assert scorer.get_stats()["timeouts"] == 1

    @pytest.mark.asyncio
    async def test_open_circuit_skips_primary(self):
        primary = AsyncMock()
        primary.score.side_effect = ScoringError("down")
        breaker = CircuitBreaker(failure_threshold=2, recovery_timeout=60)
        scorer = FallbackScorer(primary, circuit_breaker=breaker)

        for _ in range(2):
            await scorer.score(_intent("sports"), _intent("sports", "p2"))
        assert breaker.state == CircuitState.OPEN

        await scorer.score(_intent("sports"), _intent("sports", "p2"))
        assert primary.score.await_count == 2
        assert scorer.get_stats()["fallback_calls"] == 3


class TestBuildScorer:
    def test_without_key_uses_category(self):
        assert isinstance(build_scorer(SocialConfig(anthropic_api_key="")), CategoryScorer)

    def test_with_key_wraps_in_fallback(self):
        scorer = build_scorer(SocialConfig(anthropic_api_key="sk-test", circuit_failure_threshold=7))
        assert isinstance(scorer, FallbackScorer)
        assert scorer.circuit_breaker.failure_threshold == 7
