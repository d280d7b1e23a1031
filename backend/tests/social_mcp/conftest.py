"""
Shared test fixtures for the Social MCP tests.

Every test gets its own in-memory SQLite database. Concurrency tests
use ``disk_database``, a file-backed one where each session holds its
own connection. The ``factory`` fixture creates profiles, intents and
matches through the service layer; ``call_tool`` runs tools through a
dispatcher wired with the category scorer.
"""

from __future__ import annotations

from typing import Any, Optional

import pytest

from social_mcp.auth.credentials import KeyHasher
from social_mcp.core.models import AuthMethod, Identity, ToolResult
from social_mcp.database.connection import Database
from social_mcp.database.models import Intent, Match, Profile
from social_mcp.database.services import (
    IntentService,
    MatchService,
    ProfileService,
)
from social_mcp.infra.config import SocialConfig
from social_mcp.matching.engine import MatchEngine
from social_mcp.matching.scorer import CategoryScorer
from social_mcp.tools.catalog import ToolName
from social_mcp.tools.dispatcher import CallContext, ToolDispatcher

TEST_PEPPER = "test-pepper"


class Factory:
    """Creates rows directly, each in its own committed transaction."""

    def __init__(self, database: Database):
        self.database = database

    async def profile(self, name: str, bio: str = "", client_id: Optional[str] = None) -> Profile:
        async with self.database.session() as session:
            profile, _ = await ProfileService(session).upsert_by_client_id(
                client_id or f"client-{name.lower()}", display_name=name, bio=bio
            )
            return profile

    async def intent(self, profile_id: str, category: str = "friendship", description: str = "Looking for friends") -> Intent:
        async with self.database.session() as session:
            return await IntentService(session).create(profile_id, category, description)

    async def match(self, intent_a: Intent, intent_b: Intent, score: float = 0.6) -> Match:
        async with self.database.session() as session:
            match = await MatchService(session).create_if_absent(intent_a, intent_b, score, "test pairing")
            assert match is not None
            return match


@pytest.fixture
def config() -> SocialConfig:
    return SocialConfig(
        database_url="sqlite+aiosqlite://",
        credential_pepper=TEST_PEPPER,
        maintenance_interval_seconds=0,
    )


@pytest.fixture
def hasher() -> KeyHasher:
    return KeyHasher(TEST_PEPPER)


@pytest.fixture
async def database():
    db = Database("sqlite+aiosqlite://")
    await db.create_tables()
    yield db
    await db.close()


@pytest.fixture
def factory(database) -> Factory:
    return Factory(database)


@pytest.fixture
async def disk_database(tmp_path):
    db = Database(f"sqlite+aiosqlite:///{tmp_path / 'social.db'}")
    await db.create_tables()
    yield db
    await db.close()


@pytest.fixture
def disk_factory(disk_database) -> Factory:
    return Factory(disk_database)


@pytest.fixture
def engine(config) -> MatchEngine:
    return MatchEngine(CategoryScorer(), threshold=config.match_threshold, match_ttl=config.get_match_ttl())


@pytest.fixture
def dispatcher(database, engine, hasher, config) -> ToolDispatcher:
    return ToolDispatcher(database, engine, hasher, config)


@pytest.fixture
def call_tool(dispatcher):
    """Call a tool as ``profile_id`` (or anonymously) on ``session_id``."""

    async def _call(
        tool: ToolName,
        args: Optional[dict[str, Any]] = None,
        profile_id: Optional[str] = None,
        session_id: str = "session-test",
    ) -> ToolResult:
        identity = Identity(profile_id, AuthMethod.SESSION) if profile_id else None
        return await dispatcher.dispatch(tool, args or {}, CallContext(session_id, identity))

    return _call


async def _make_pair(factory: Factory) -> dict[str, Any]:
    alex = await factory.profile("Alex", bio="Engineer")
    blake = await factory.profile("Blake", bio="Climber and cook")
    intent_a = await factory.intent(alex.id)
    intent_b = await factory.intent(blake.id)
    match = await factory.match(intent_a, intent_b)
    return {"a": alex, "b": blake, "intent_a": intent_a, "intent_b": intent_b, "match": match}


@pytest.fixture
async def pair(factory):
    """Alex (A side) and Blake (B side) with one pending_a match between them."""
    return await _make_pair(factory)


@pytest.fixture
async def disk_pair(disk_factory):
    """Same as ``pair``, stored in ``disk_database``."""
    return await _make_pair(disk_factory)
