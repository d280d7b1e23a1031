"""
MatchLifecycle — applies consent decisions to stored matches.

Each response is a compare-and-set on the status the caller observed.
If another request changed the match first, the match is reloaded and
the action is decided again against the new status, so whichever of two
concurrent accepts lands second sees the first one's effect.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from social_mcp.core.errors import TransitionConflictError
from social_mcp.core.models import MatchAction, MatchStatus, NotificationType, utcnow
from social_mcp.core.state_machine import decide
from social_mcp.database.models import Match, Notification
from social_mcp.database.services import MatchService, NotificationService

logger = logging.getLogger(__name__)


class ResponseOutcome(str, Enum):
    NOT_FOUND = "not_found"
    NOT_A_PARTY = "not_a_party"
    TRANSITIONED = "transitioned"
    UNCHANGED = "unchanged"


@dataclass
class MatchResponse:
    outcome: ResponseOutcome
    message: str
    match: Optional[Match] = None
    notifications: list[Notification] = field(default_factory=list)

    @property
    def status(self) -> Optional[MatchStatus]:
        return MatchStatus(self.match.status) if self.match else None


class MatchLifecycle:
    # The status graph has two forward edges, so a handful of reloads always settles
    MAX_ATTEMPTS = 5

    def __init__(self, session: AsyncSession):
        self.session = session
        self.matches = MatchService(session)
        self.notifications = NotificationService(session)

    async def respond(self, match_id: str, profile_id: str, action: MatchAction) -> MatchResponse:
        for attempt in range(1, self.MAX_ATTEMPTS + 1):
            match = await self.matches.get_by_id(match_id)
            if match is None:
                return MatchResponse(ResponseOutcome.NOT_FOUND, "Match not found.")

            role = match.role_of(profile_id)
            if role is None:
                return MatchResponse(
                    ResponseOutcome.NOT_A_PARTY, "Not authorized for this match.", match
                )

            current = MatchStatus(match.status)
            decision = decide(current, role, action)
            if not decision.is_transition:
                return MatchResponse(ResponseOutcome.UNCHANGED, decision.message, match)

            values = {}
            if decision.new_status == MatchStatus.PENDING_B:
                values["a_accepted_at"] = utcnow()
            elif decision.new_status == MatchStatus.ACCEPTED:
                values["b_accepted_at"] = utcnow()

            swapped = await self.matches.compare_and_set_status(
                match_id, current, decision.new_status, **values
            )
            if swapped:
                match = await self.matches.get_by_id(match_id)
                logger.info(
                    "Match %s: %s -> %s (by %s)",
                    match_id, current.value, decision.new_status.value, role.value,
                )
                notifications = await self._emit(match, decision.new_status)
                return MatchResponse(
                    ResponseOutcome.TRANSITIONED, decision.message, match, notifications
                )

            logger.info(
                "Match %s changed concurrently (attempt %d), reloading", match_id, attempt
            )

        raise TransitionConflictError(f"Match {match_id} kept changing during {action.value}")

    async def _emit(self, match: Match, new_status: MatchStatus) -> list[Notification]:
        payload = {"match_id": match.id}
        if new_status == MatchStatus.PENDING_B:
            return [await self.notifications.create(
                match.profile_b_id,
                NotificationType.CONNECTION_REQUEST,
                {**payload, "from_profile_id": match.profile_a_id},
            )]
        if new_status == MatchStatus.ACCEPTED:
            return [
                await self.notifications.create(
                    profile_id,
                    NotificationType.MATCH_ACCEPTED,
                    {**payload, "with_profile_id": match.other_party(profile_id)},
                )
                for profile_id in (match.profile_a_id, match.profile_b_id)
            ]
        return []
