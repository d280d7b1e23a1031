"""
MatchEngine — compares intents pairwise and creates pending matches.

Three pass shapes:
- match_new_intent: one fresh intent against same-category candidates
  (runs inside set_intent)
- run_for_profile: all of one profile's intents against everyone else
- run_global: every active intent pair (legacy, off by default)

Every pass is idempotent: pairs that already have a match in either
order are skipped, and the unique pair key absorbs concurrent duplicates.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Optional, Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from social_mcp.core.models import IntentSnapshot, NotificationType, utcnow
from social_mcp.core.protocols import MatchScorer
from social_mcp.database.models import Intent, Match, Notification, Profile
from social_mcp.database.services import (
    IntentService,
    MatchService,
    NotificationService,
    ProfileService,
)

logger = logging.getLogger(__name__)

DEFAULT_THRESHOLD = 0.3


@dataclass
class MatchPassResult:
    pairs_compared: int = 0
    matches: list[Match] = field(default_factory=list)
    notifications: list[Notification] = field(default_factory=list)


def snapshot(intent: Intent, profile: Optional[Profile]) -> IntentSnapshot:
    return IntentSnapshot(
        intent_id=intent.id,
        profile_id=intent.profile_id,
        category=intent.category,
        description=intent.description,
        criteria=intent.criteria or {},
        display_name=profile.display_name if profile else "",
        bio=(profile.bio or "") if profile else "",
    )


class MatchEngine:
    """Scores intent pairs and persists the ones above threshold."""

    def __init__(
        self,
        scorer: MatchScorer,
        threshold: float = DEFAULT_THRESHOLD,
        match_ttl: Optional[timedelta] = None,
    ):
        self.scorer = scorer
        self.threshold = threshold
        self.match_ttl = match_ttl

    async def match_new_intent(self, session: AsyncSession, intent: Intent) -> MatchPassResult:
        """Pair a freshly created intent with same-category intents of other profiles."""
        candidates = await IntentService(session).list_candidates(
            category=intent.category, exclude_profile_id=intent.profile_id
        )
        return await self._run(session, [(intent, other) for other in candidates])

    async def run_for_profile(self, session: AsyncSession, profile_id: str) -> MatchPassResult:
        """Compare the profile's active intents against every other active intent."""
        intents = IntentService(session)
        mine = await intents.list_active_for_profile(profile_id)
        if not mine:
            return MatchPassResult()
        others = await intents.list_candidates(exclude_profile_id=profile_id)
        return await self._run(session, [(a, b) for a in mine for b in others])

    async def run_global(self, session: AsyncSession) -> MatchPassResult:
        """Compare all active intents pairwise. Cost grows quadratically."""
        everything = await IntentService(session).list_candidates()
        pairs = [
            (a, b)
            for i, a in enumerate(everything)
            for b in everything[i + 1:]
            if a.profile_id != b.profile_id
        ]
        return await self._run(session, pairs)

    async def _run(self, session: AsyncSession, pairs: Sequence[tuple[Intent, Intent]]) -> MatchPassResult:
        result = MatchPassResult()
        if not pairs:
            return result

        profile_ids = {i.profile_id for pair in pairs for i in pair}
        profiles = await ProfileService(session).get_many(profile_ids)
        matches = MatchService(session)
        notifications = NotificationService(session)
        expires_at = utcnow() + self.match_ttl if self.match_ttl else None

        for intent_a, intent_b in pairs:
            if await matches.exists_for_pair(intent_a.id, intent_b.id):
                continue

            result.pairs_compared += 1
            scored = await self.scorer.score(
                snapshot(intent_a, profiles.get(intent_a.profile_id)),
                snapshot(intent_b, profiles.get(intent_b.profile_id)),
            )
            if scored.score < self.threshold:
                continue

            match = await matches.create_if_absent(
                intent_a, intent_b, scored.score, scored.reason, expires_at=expires_at
            )
            if match is None:
                continue

            other = profiles.get(intent_b.profile_id)
            result.matches.append(match)
            result.notifications.append(await notifications.create(
                intent_a.profile_id,
                NotificationType.NEW_MATCH,
                {
                    "match_id": match.id,
                    "score": match.match_score,
                    "reason": match.match_reason,
                    "category": intent_b.category,
                    "display_name": other.display_name if other else None,
                },
            ))
            logger.info(
                "Match %s created: %s x %s (score=%.2f)",
                match.id, intent_a.id, intent_b.id, match.match_score,
            )

        return result
