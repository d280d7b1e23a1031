"""
Periodic housekeeping: expire stale pending matches and purge idle
session bindings.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import timedelta
from typing import Optional

from social_mcp.core.models import utcnow
from social_mcp.database.connection import Database
from social_mcp.database.services import MatchService, SessionBindingService

logger = logging.getLogger(__name__)


async def run_maintenance(database: Database, session_idle_ttl: Optional[timedelta]) -> dict[str, int]:
    """Run one sweep and return how many rows each step touched."""
    now = utcnow()
    async with database.session() as session:
        expired = await MatchService(session).expire_stale(now)
        purged = 0
        if session_idle_ttl is not None:
            purged = await SessionBindingService(session).purge_idle(now - session_idle_ttl)

    if expired or purged:
        logger.info("Maintenance: %d match(es) expired, %d idle session(s) purged", expired, purged)
    return {"matches_expired": expired, "sessions_purged": purged}


async def maintenance_loop(
    database: Database,
    interval_seconds: float,
    session_idle_ttl: Optional[timedelta],
) -> None:
    """Run ``run_maintenance`` forever; failures are logged and retried next tick."""
    while True:
        await asyncio.sleep(interval_seconds)
        try:
            await run_maintenance(database, session_idle_ttl)
        except Exception:
            logger.exception("Maintenance sweep failed")
