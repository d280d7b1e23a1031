"""Tests for applying consent decisions with compare-and-set."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock

import pytest
from sqlalchemy import update

from social_mcp.core.errors import TransitionConflictError
from social_mcp.core.models import MatchAction, MatchStatus, NotificationType
from social_mcp.database.models import Match
from social_mcp.database.services import MatchService, NotificationService
from social_mcp.matching.lifecycle import MatchLifecycle, ResponseOutcome


async def _respond(database, match_id, profile_id, action):
    async with database.session() as session:
        return await MatchLifecycle(session).respond(match_id, profile_id, action)


class TestRespond:
    @pytest.mark.asyncio
    async def test_full_acceptance(self, database, pair):
        match_id = pair["match"].id

        first = await _respond(database, match_id, pair["a"].id, MatchAction.ACCEPT)
        assert first.outcome == ResponseOutcome.TRANSITIONED
        assert first.status == MatchStatus.PENDING_B
        assert first.match.a_accepted_at is not None
        [request] = first.notifications
        assert request.profile_id == pair["b"].id
        assert request.notification_type == NotificationType.CONNECTION_REQUEST.value

        second = await _respond(database, match_id, pair["b"].id, MatchAction.ACCEPT)
        assert second.status == MatchStatus.ACCEPTED
        assert second.match.b_accepted_at is not None
        assert {n.profile_id for n in second.notifications} == {pair["a"].id, pair["b"].id}
        assert all(n.notification_type == NotificationType.MATCH_ACCEPTED.value for n in second.notifications)

    @pytest.mark.asyncio
    async def test_b_cannot_jump_the_queue(self, database, pair):
        response = await _respond(database, pair["match"].id, pair["b"].id, MatchAction.ACCEPT)
        assert response.outcome == ResponseOutcome.UNCHANGED
        assert response.status == MatchStatus.PENDING_A
        assert response.notifications == []

    @pytest.mark.asyncio
    async def test_reject_by_b(self, database, pair):
        response = await _respond(database, pair["match"].id, pair["b"].id, MatchAction.REJECT)
        assert response.status == MatchStatus.REJECTED
        assert response.notifications == []

    @pytest.mark.asyncio
    async def test_not_found(self, database, pair):
        response = await _respond(database, "missing", pair["a"].id, MatchAction.ACCEPT)
        assert response.outcome == ResponseOutcome.NOT_FOUND

    @pytest.mark.asyncio
    async def test_outsider_rejected(self, database, factory, pair):
        outsider = await factory.profile("Casey")
        response = await _respond(database, pair["match"].id, outsider.id, MatchAction.ACCEPT)
        assert response.outcome == ResponseOutcome.NOT_A_PARTY


class TestConcurrentTransitions:
    @pytest.mark.asyncio
    async def test_lost_race_is_redecided(self, database, pair):
        """A's accept loses to B's reject; the retry sees the rejection."""
        match_id = pair["match"].id
        async with database.session() as session:
            lifecycle = MatchLifecycle(session)
            original = lifecycle.matches.compare_and_set_status
            raced = []

            async def racing(mid, expected, new, **values):
                if not raced:
                    raced.append(True)
                    await original(mid, expected, MatchStatus.REJECTED)
                return await original(mid, expected, new, **values)

            lifecycle.matches.compare_and_set_status = racing
            response = await lifecycle.respond(match_id, pair["a"].id, MatchAction.ACCEPT)

        assert response.outcome == ResponseOutcome.UNCHANGED
        assert response.status == MatchStatus.REJECTED
        assert "declined" in response.message

    @pytest.mark.asyncio
    async def test_gives_up_after_max_attempts(self, database, pair):
        async with database.session() as session:
            lifecycle = MatchLifecycle(session)
            lifecycle.matches.compare_and_set_status = AsyncMock(return_value=False)
            with pytest.raises(TransitionConflictError):
                await lifecycle.respond(pair["match"].id, pair["a"].id, MatchAction.ACCEPT)
            assert lifecycle.matches.compare_and_set_status.await_count == MatchLifecycle.MAX_ATTEMPTS


class TestConcurrentTransactions:
    @pytest.mark.asyncio
    async def test_double_accept_transitions_once(self, disk_database, disk_pair):
        match_id = disk_pair["match"].id
        responses = await asyncio.gather(
            _respond(disk_database, match_id, disk_pair["a"].id, MatchAction.ACCEPT),
            _respond(disk_database, match_id, disk_pair["a"].id, MatchAction.ACCEPT),
        )

        assert sorted(r.outcome.value for r in responses) == ["transitioned", "unchanged"]
        async with disk_database.session() as session:
            pending = await NotificationService(session).list_undelivered(disk_pair["b"].id)
        assert [n.notification_type for n in pending] == [NotificationType.CONNECTION_REQUEST.value]

    @pytest.mark.asyncio
    async def test_accept_and_reject_settle_on_rejected(self, disk_database, disk_pair):
        match_id = disk_pair["match"].id
        for _ in range(5):
            async with disk_database.session() as session:
                await session.execute(
                    update(Match).where(Match.id == match_id).values(status=MatchStatus.PENDING_A.value)
                )

            await asyncio.gather(
                _respond(disk_database, match_id, disk_pair["a"].id, MatchAction.ACCEPT),
                _respond(disk_database, match_id, disk_pair["b"].id, MatchAction.REJECT),
            )

            async with disk_database.session() as session:
                match = await MatchService(session).get_by_id(match_id)
            assert match.status == MatchStatus.REJECTED.value
