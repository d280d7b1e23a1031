"""Tests for SocialConfig."""

from __future__ import annotations

from datetime import timedelta

from social_mcp.infra.config import SocialConfig


class TestSocialConfig:
    def test_defaults(self):
        config = SocialConfig()
        assert config.port == 3000
        assert config.match_threshold == 0.3
        assert config.allow_global_match_pass is False
        assert config.legacy_streams_enabled is True

    def test_env_override(self, monkeypatch):
        monkeypatch.setenv("SOCIAL_MCP_PORT", "8080")
        monkeypatch.setenv("SOCIAL_MCP_MATCH_THRESHOLD", "0.5")
        monkeypatch.setenv("SOCIAL_MCP_ALLOW_PROFILE_ID_FALLBACK", "false")
        config = SocialConfig()
        assert config.port == 8080
        assert config.match_threshold == 0.5
        assert config.allow_profile_id_fallback is False

    def test_cors_origins(self):
        config = SocialConfig(cors_origins="https://a.example, https://b.example,")
        assert config.get_cors_origins() == ["https://a.example", "https://b.example"]

    def test_ttls(self):
        config = SocialConfig(match_ttl_days=2, session_idle_ttl_hours=0)
        assert config.get_match_ttl() == timedelta(days=2)
        assert config.get_session_idle_ttl() is None

    def test_base_url_none_when_empty(self):
        assert SocialConfig(anthropic_base_url="").get_base_url() is None
        assert SocialConfig(anthropic_base_url="http://proxy").get_base_url() == "http://proxy"
