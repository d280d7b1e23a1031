"""
Match scorers.

- CategoryScorer: deterministic category-equality heuristic, never fails
- FallbackScorer: wraps a primary scorer (usually the Anthropic one)
  with a timeout and circuit breaker, degrading to the heuristic
"""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, Optional

from social_mcp.core.errors import ScoringError
from social_mcp.core.models import IntentSnapshot, MatchScore
from social_mcp.core.protocols import MatchScorer
from social_mcp.infra.circuit_breaker import CircuitBreaker
from social_mcp.infra.config import SocialConfig

logger = logging.getLogger(__name__)


class CategoryScorer:
    """Scores by category equality only."""

    SAME_CATEGORY_SCORE = 0.6
    DIFFERENT_CATEGORY_SCORE = 0.0

    async def score(self, intent_a: IntentSnapshot, intent_b: IntentSnapshot) -> MatchScore:
        if intent_a.category == intent_b.category:
            return MatchScore(
                score=self.SAME_CATEGORY_SCORE,
                reason=f"Both looking for {intent_a.category} connections",
            )
        return MatchScore(score=self.DIFFERENT_CATEGORY_SCORE, reason="Different connection categories")


class FallbackScorer:
    """
    Primary scorer guarded by timeout + circuit breaker.

    While the breaker is open the primary is not called at all.
    """

    def __init__(
        self,
        primary: MatchScorer,
        fallback: Optional[MatchScorer] = None,
        timeout: float = 15.0,
        circuit_breaker: Optional[CircuitBreaker] = None,
    ):
        self.primary = primary
        self.fallback = fallback or CategoryScorer()
        self.timeout = timeout
        self.circuit_breaker = circuit_breaker or CircuitBreaker()
        self._stats = {
            "total_calls": 0,
            "primary_calls": 0,
            "fallback_calls": 0,
            "timeouts": 0,
            "errors": 0,
        }

    async def score(self, intent_a: IntentSnapshot, intent_b: IntentSnapshot) -> MatchScore:
        self._stats["total_calls"] += 1

        if not self.circuit_breaker.can_execute():
            logger.warning("Scorer circuit open, using fallback")
            return await self._fallback(intent_a, intent_b)

        try:
            result = await asyncio.wait_for(
                self.primary.score(intent_a, intent_b), timeout=self.timeout
            )
        except asyncio.TimeoutError:
            self._stats["timeouts"] += 1
            self.circuit_breaker.record_failure()
            logger.warning("Primary scorer timed out after %.1fs, using fallback", self.timeout)
            return await self._fallback(intent_a, intent_b)
        except ScoringError as e:
            self._stats["errors"] += 1
            self.circuit_breaker.record_failure()
            logger.warning("Primary scorer failed (%s), using fallback", e)
            return await self._fallback(intent_a, intent_b)

        self.circuit_breaker.record_success()
        self._stats["primary_calls"] += 1
        return result

    async def _fallback(self, intent_a: IntentSnapshot, intent_b: IntentSnapshot) -> MatchScore:
        self._stats["fallback_calls"] += 1
        return await self.fallback.score(intent_a, intent_b)

    def get_stats(self) -> Dict[str, Any]:
        return {**self._stats, "circuit_breaker": self.circuit_breaker.get_status()}


def build_scorer(config: SocialConfig) -> MatchScorer:
    """Anthropic scorer with fallback when a key is configured, else the heuristic."""
    if not config.anthropic_api_key:
        logger.info("No Anthropic API key configured, scoring by category only")
        return CategoryScorer()

    from social_mcp.infra.llm_client import AnthropicScorer

    primary = AnthropicScorer(
        api_key=config.anthropic_api_key,
        model=config.scoring_model,
        max_tokens=config.scoring_max_tokens,
        base_url=config.get_base_url(),
    )
    return FallbackScorer(
        primary,
        timeout=config.scoring_timeout_seconds,
        circuit_breaker=CircuitBreaker(
            failure_threshold=config.circuit_failure_threshold,
            recovery_timeout=config.circuit_recovery_seconds,
        ),
    )
