"""Local configuration management for ~/.social-mcp/config.json."""

import json
import os
import secrets
import time
from pathlib import Path
from typing import Any

CONFIG_DIR = Path.home() / ".social-mcp"
CONFIG_FILE = CONFIG_DIR / "config.json"

DEFAULT_GATEWAY_URL = "http://localhost:3000/mcp"


def _read_config() -> dict[str, Any]:
    if not CONFIG_FILE.exists():
        return {}
    try:
        return json.loads(CONFIG_FILE.read_text(encoding="utf-8"))
    except (json.JSONDecodeError, OSError):
        return {}


def _write_config(data: dict[str, Any]) -> None:
    CONFIG_DIR.mkdir(parents=True, exist_ok=True)
    CONFIG_FILE.write_text(
        json.dumps(data, ensure_ascii=False, indent=2),
        encoding="utf-8",
    )


def get_gateway_url() -> str:
    env_url = os.environ.get("SOCIAL_MCP_GATEWAY_URL")
    if env_url:
        return env_url.rstrip("/")
    return _read_config().get("gateway_url", DEFAULT_GATEWAY_URL).rstrip("/")


def get_client_id() -> str:
    """Stable per-machine client id, created on first use."""
    config = _read_config()
    client_id = config.get("client_id")
    if not client_id:
        client_id = f"mcp_{int(time.time() * 1000)}_{secrets.token_hex(4)}"
        config["client_id"] = client_id
        _write_config(config)
    return client_id


def get_api_key() -> str | None:
    return os.environ.get("SOCIAL_MCP_API_KEY") or _read_config().get("api_key")


def get_session_id() -> str | None:
    return _read_config().get("session_id")


def save_api_key(api_key: str) -> None:
    config = _read_config()
    config["api_key"] = api_key
    _write_config(config)


def save_session_id(session_id: str) -> None:
    config = _read_config()
    if config.get("session_id") == session_id:
        return
    config["session_id"] = session_id
    _write_config(config)
