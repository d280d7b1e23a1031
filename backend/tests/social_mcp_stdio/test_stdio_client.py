"""Tests for the stdio proxy's gateway client and tool relay."""

import json

import httpx
import pytest
from mcp.server.fastmcp.exceptions import ToolError

from social_mcp_stdio import config, server
from social_mcp_stdio.client import GatewayError, SocialClient

ISSUED_KEY = "smcp_" + "0123456789abcdef" * 4


def _gateway(handler):
    """Wrap a handler(body, headers) -> (payload, extra_headers) as a mock transport."""
    seen = []

    def respond(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        seen.append((body, request.headers))
        payload, headers = handler(body, request.headers)
        return httpx.Response(200, json={"jsonrpc": "2.0", "id": body["id"], **payload}, headers=headers)

    return httpx.MockTransport(respond), seen


def _tool_result(text, is_error=False):
    result = {"content": [{"type": "text", "text": text}]}
    if is_error:
        result["isError"] = True
    return {"result": result}


class TestCallTool:
    @pytest.mark.asyncio
    async def test_saves_session_and_key(self):
        transport, seen = _gateway(
            lambda body, headers: (_tool_result(f"Profile registered!\nAPI Key: {ISSUED_KEY}"), {"Mcp-Session-Id": "s-77"})
        )
        client = SocialClient(gateway_url="http://gw/mcp", transport=transport)

        text, is_error = await client.call_tool("social_register", {"display_name": "Alex", "bio": ""})
        await client.close()

        assert not is_error
        assert "Profile registered!" in text
        assert config.get_session_id() == "s-77"
        assert config.get_api_key() == ISSUED_KEY
        assert seen[0][0]["params"]["arguments"] == {"display_name": "Alex"}

    @pytest.mark.asyncio
    async def test_sends_credentials(self):
        transport, seen = _gateway(lambda body, headers: (_tool_result("ok"), {}))
        client = SocialClient(gateway_url="http://gw/mcp", api_key="smcp_x", session_id="s-1", transport=transport)

        await client.call_tool("social_whoami", {})
        await client.close()

        headers = seen[0][1]
        assert headers["X-MCP-API-Key"] == "smcp_x"
        assert headers["Mcp-Session-Id"] == "s-1"

    @pytest.mark.asyncio
    async def test_error_result(self):
        transport, _ = _gateway(lambda body, headers: (_tool_result("Not logged in.", is_error=True), {}))
        client = SocialClient(gateway_url="http://gw/mcp", transport=transport)

        text, is_error = await client.call_tool("social_get_matches", {})
        await client.close()

        assert is_error
        assert config.get_api_key() is None

    @pytest.mark.asyncio
    async def test_rpc_error_raises(self):
        transport, _ = _gateway(lambda body, headers: ({"error": {"code": -32601, "message": "Method not found"}}, {}))
        client = SocialClient(gateway_url="http://gw/mcp", transport=transport)

        with pytest.raises(GatewayError) as excinfo:
            await client.request("nope")
        await client.close()
        assert excinfo.value.code == -32601

    @pytest.mark.asyncio
    async def test_initialize(self):
        transport, seen = _gateway(lambda body, headers: ({"result": {"protocolVersion": "2024-11-05"}}, {}))
        client = SocialClient(gateway_url="http://gw/mcp", transport=transport)

        result = await client.initialize()
        await client.close()

        assert result["protocolVersion"] == "2024-11-05"
        assert seen[0][0]["params"]["clientInfo"]["name"] == "social-mcp-stdio"


class TestRelay:
    def _relay(self, monkeypatch, transport, **kwargs):
        monkeypatch.setattr(
            server, "_get_client", lambda: SocialClient(gateway_url="http://gw/mcp", transport=transport, **kwargs)
        )

    @pytest.mark.asyncio
    async def test_first_call_initializes_session(self, monkeypatch):
        def handler(body, headers):
            if body["method"] == "initialize":
                return {"result": {"protocolVersion": "2024-11-05"}}, {"Mcp-Session-Id": "s-9"}
            return _tool_result("Not logged in."), {}

        transport, seen = _gateway(handler)
        self._relay(monkeypatch, transport)

        assert await server._call("social_whoami") == "Not logged in."
        assert [body["method"] for body, _ in seen] == ["initialize", "tools/call"]
        assert seen[1][1]["Mcp-Session-Id"] == "s-9"
        assert config.get_session_id() == "s-9"

    @pytest.mark.asyncio
    async def test_known_session_skips_initialize(self, monkeypatch):
        transport, seen = _gateway(lambda body, headers: (_tool_result("ok"), {}))
        self._relay(monkeypatch, transport, session_id="s-1")

        await server._call("social_get_matches")
        assert [body["method"] for body, _ in seen] == ["tools/call"]

    @pytest.mark.asyncio
    async def test_error_result_raises_tool_error(self, monkeypatch):
        transport, _ = _gateway(lambda body, headers: (_tool_result("Match not found.", is_error=True), {}))
        self._relay(monkeypatch, transport, session_id="s-1")

        with pytest.raises(ToolError, match="Match not found"):
            await server._call("social_respond_match", match_id="m", action="accept")
