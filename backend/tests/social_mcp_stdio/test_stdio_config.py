"""Tests for the stdio proxy's local config file."""

import json

from social_mcp_stdio import config


class TestGatewayUrl:
    def test_default(self):
        assert config.get_gateway_url() == "http://localhost:3000/mcp"

    def test_env_wins(self, monkeypatch):
        monkeypatch.setenv("SOCIAL_MCP_GATEWAY_URL", "https://social.example/mcp/")
        assert config.get_gateway_url() == "https://social.example/mcp"


class TestClientId:
    def test_created_once(self, config_home):
        first = config.get_client_id()
        assert first.startswith("mcp_")
        assert config.get_client_id() == first
        assert json.loads((config_home / "config.json").read_text())["client_id"] == first


class TestSecrets:
    def test_api_key_round_trip(self):
        assert config.get_api_key() is None
        config.save_api_key("smcp_" + "a" * 64)
        assert config.get_api_key() == "smcp_" + "a" * 64

    def test_env_api_key_wins(self, monkeypatch):
        config.save_api_key("smcp_stored")
        monkeypatch.setenv("SOCIAL_MCP_API_KEY", "smcp_env")
        assert config.get_api_key() == "smcp_env"

    def test_session_id_saved(self):
        config.save_session_id("s-1")
        assert config.get_session_id() == "s-1"

    def test_corrupt_file_ignored(self, config_home):
        (config_home / "config.json").write_text("{broken")
        assert config.get_session_id() is None
