"""Tests for the maintenance sweep."""

from __future__ import annotations

import asyncio
from datetime import timedelta
from unittest.mock import AsyncMock, patch

import pytest

from social_mcp.core.models import MatchStatus, utcnow
from social_mcp.database.services import MatchService, SessionBindingService
from social_mcp.infra.maintenance import maintenance_loop, run_maintenance


class TestRunMaintenance:
    @pytest.mark.asyncio
    async def test_expires_and_purges(self, database, factory):
        alex = await factory.profile("Alex")
        blake = await factory.profile("Blake")
        intent_a = await factory.intent(alex.id)
        intent_b = await factory.intent(blake.id)
        async with database.session() as session:
            match = await MatchService(session).create_if_absent(
                intent_a, intent_b, 0.6, "x", expires_at=utcnow() - timedelta(minutes=5)
            )
            await SessionBindingService(session).bind("s-1", alex.id)

        counts = await run_maintenance(database, timedelta(0))

        assert counts == {"matches_expired": 1, "sessions_purged": 1}
        async with database.session() as session:
            assert (await MatchService(session).get_by_id(match.id)).status == MatchStatus.EXPIRED.value

    @pytest.mark.asyncio
    async def test_purge_disabled(self, database, factory):
        alex = await factory.profile("Alex")
        async with database.session() as session:
            await SessionBindingService(session).bind("s-1", alex.id)

        counts = await run_maintenance(database, None)
        assert counts["sessions_purged"] == 0


class TestMaintenanceLoop:
    @pytest.mark.asyncio
    async def test_survives_failures(self, database):
        failing = AsyncMock(side_effect=RuntimeError("db down"))
        with patch("social_mcp.infra.maintenance.run_maintenance", failing):
            task = asyncio.create_task(maintenance_loop(database, 0.01, None))
            await asyncio.sleep(0.1)
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        assert failing.await_count >= 2
