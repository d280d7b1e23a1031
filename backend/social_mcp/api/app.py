"""
FastAPI application for the Social MCP server.

Start with: uvicorn social_mcp.api.app:app --port 3000
or the ``social-mcp-server`` console script.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from contextlib import asynccontextmanager
from typing import Optional

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from social_mcp.auth.authenticator import Authenticator
from social_mcp.auth.credentials import KeyHasher
from social_mcp.core.protocols import MatchScorer
from social_mcp.database.connection import Database
from social_mcp.infra.config import SocialConfig
from social_mcp.infra.event_pusher import NotificationPusher, SessionStreamRegistry
from social_mcp.infra.maintenance import maintenance_loop
from social_mcp.matching.engine import MatchEngine
from social_mcp.matching.scorer import build_scorer
from social_mcp.tools.dispatcher import ToolDispatcher

from .gateway import SERVER_VERSION, ProtocolGateway
from .routes import SESSION_HEADER, router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize all dependencies on startup, clean up on shutdown."""
    config: SocialConfig = app.state.config

    database = Database(
        config.database_url,
        echo=config.database_echo,
        busy_timeout=config.database_busy_timeout_seconds,
    )
    await database.create_tables()
    app.state.database = database

    registry = SessionStreamRegistry(max_queue=config.stream_queue_size)
    app.state.stream_registry = registry
    app.state.rpc_tasks = set()

    scorer: MatchScorer = app.state.scorer or build_scorer(config)
    engine = MatchEngine(
        scorer,
        threshold=config.match_threshold,
        match_ttl=config.get_match_ttl(),
    )
    hasher = KeyHasher(config.credential_pepper)
    if not config.credential_pepper:
        logger.warning("No SOCIAL_MCP_CREDENTIAL_PEPPER set, API key digests are unkeyed")

    dispatcher = ToolDispatcher(
        database,
        engine,
        hasher,
        config,
        pusher=NotificationPusher(registry, database),
    )
    app.state.gateway = ProtocolGateway(
        database,
        Authenticator.default(hasher, allow_profile_id=config.allow_profile_id_fallback),
        dispatcher,
        registry,
    )

    sweeper: Optional[asyncio.Task] = None
    if config.maintenance_interval_seconds > 0:
        sweeper = asyncio.create_task(maintenance_loop(
            database,
            config.maintenance_interval_seconds,
            config.get_session_idle_ttl(),
        ))

    logger.info("Social MCP server started (database=%s)", database.engine.url.render_as_string(hide_password=True))
    yield

    if sweeper is not None:
        sweeper.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await sweeper
    for task in list(app.state.rpc_tasks):
        task.cancel()
    await registry.close_all()
    await database.close()
    logger.info("Social MCP server shutdown")


def create_app(config: Optional[SocialConfig] = None, scorer: Optional[MatchScorer] = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        config: Settings; read from the environment when omitted.
        scorer: Match scorer override (tests); built from config when omitted.
    """
    config = config or SocialConfig()
    app = FastAPI(
        title="Social MCP",
        description="Matchmaking over the Model Context Protocol",
        version=SERVER_VERSION,
        lifespan=lifespan,
    )
    app.state.config = config
    app.state.scorer = scorer

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.get_cors_origins(),
        allow_credentials=False,
        allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
        allow_headers=["*"],
        expose_headers=[SESSION_HEADER],
    )
    app.include_router(router)
    return app


def main() -> None:
    """Console entry point: load .env, configure logging, serve."""
    import uvicorn

    load_dotenv()
    config = SocialConfig()
    logging.basicConfig(
        level=config.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    uvicorn.run(create_app(config), host=config.host, port=config.port)


if __name__ == "__main__":
    main()
