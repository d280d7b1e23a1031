"""
Configuration management using pydantic-settings.

All settings are loaded from environment variables with the SOCIAL_MCP_
prefix.
"""

from __future__ import annotations

from datetime import timedelta
from typing import Optional

from pydantic_settings import BaseSettings


class SocialConfig(BaseSettings):
    """
    Social MCP server configuration.

    Environment variables are prefixed with SOCIAL_MCP_, e.g.:
    - SOCIAL_MCP_DATABASE_URL=postgresql://user:pw@db:5432/social
    - SOCIAL_MCP_ANTHROPIC_API_KEY=sk-...
    """

    model_config = {"env_prefix": "SOCIAL_MCP_"}

    # Storage
    database_url: str = "sqlite+aiosqlite:///./data/social_mcp.db"
    database_echo: bool = False
    database_busy_timeout_seconds: float = 30.0  # SQLite only

    # HTTP
    host: str = "0.0.0.0"
    port: int = 3000
    log_level: str = "INFO"
    cors_origins: str = "*"  # Comma-separated

    def get_cors_origins(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    # Legacy SSE transport
    legacy_streams_enabled: bool = True
    stream_keepalive_seconds: float = 30.0
    stream_queue_size: int = 100

    # Authentication
    credential_pepper: str = ""
    allow_profile_id_fallback: bool = True
    session_idle_ttl_hours: float = 720.0  # 0 disables purging

    def get_session_idle_ttl(self) -> Optional[timedelta]:
        if self.session_idle_ttl_hours <= 0:
            return None
        return timedelta(hours=self.session_idle_ttl_hours)

    # Matching
    match_threshold: float = 0.3
    match_ttl_days: float = 7.0  # 0 disables expiry
    auto_match_on_intent: bool = True
    allow_global_match_pass: bool = False

    def get_match_ttl(self) -> Optional[timedelta]:
        if self.match_ttl_days <= 0:
            return None
        return timedelta(days=self.match_ttl_days)

    # Messaging
    max_message_length: int = 4000
    message_history_limit: int = 200

    # Background sweep (match expiry, idle session purge)
    maintenance_interval_seconds: float = 300.0

    # LLM scorer
    anthropic_api_key: str = ""
    anthropic_base_url: str = ""
    scoring_model: str = "claude-sonnet-4-5-20250929"
    scoring_max_tokens: int = 300
    scoring_timeout_seconds: float = 15.0
    circuit_failure_threshold: int = 3
    circuit_recovery_seconds: float = 60.0

    def get_base_url(self) -> str | None:
        """Return base URL or None for Anthropic default."""
        return self.anthropic_base_url or None
