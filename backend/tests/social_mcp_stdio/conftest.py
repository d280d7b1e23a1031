"""Point the stdio proxy's local config at a temp directory."""

import pytest

from social_mcp_stdio import config


@pytest.fixture(autouse=True)
def config_home(tmp_path, monkeypatch):
    monkeypatch.setattr(config, "CONFIG_DIR", tmp_path)
    monkeypatch.setattr(config, "CONFIG_FILE", tmp_path / "config.json")
    monkeypatch.delenv("SOCIAL_MCP_GATEWAY_URL", raising=False)
    monkeypatch.delenv("SOCIAL_MCP_API_KEY", raising=False)
    return tmp_path
