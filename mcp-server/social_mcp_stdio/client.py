"""JSON-RPC client for the Social MCP HTTP gateway."""

import itertools
import re

import httpx

from .config import get_api_key, get_gateway_url, get_session_id, save_api_key, save_session_id

SESSION_HEADER = "Mcp-Session-Id"
API_KEY_HEADER = "X-MCP-API-Key"
PROTOCOL_VERSION = "2024-11-05"

_API_KEY_PATTERN = re.compile(r"smcp_[0-9a-f]{64}")


class GatewayError(Exception):
    """The gateway answered with a JSON-RPC error."""

    def __init__(self, code: int, message: str):
        super().__init__(f"[{code}] {message}")
        self.code = code


class SocialClient:
    """Forwards tool calls to the gateway, keeping the session id and API key."""

    def __init__(
        self,
        gateway_url: str | None = None,
        api_key: str | None = None,
        session_id: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.url = gateway_url or get_gateway_url()
        self.api_key = api_key or get_api_key()
        self.session_id = session_id or get_session_id()
        self._ids = itertools.count(1)
        self._http = httpx.AsyncClient(timeout=30.0, transport=transport)

    def _headers(self) -> dict[str, str]:
        headers = {"Accept": "application/json, text/event-stream"}
        if self.api_key:
            headers[API_KEY_HEADER] = self.api_key
        if self.session_id:
            headers[SESSION_HEADER] = self.session_id
        return headers

    async def request(self, method: str, params: dict | None = None) -> dict:
        resp = await self._http.post(
            self.url,
            json={"jsonrpc": "2.0", "id": next(self._ids), "method": method, "params": params or {}},
            headers=self._headers(),
        )
        session_id = resp.headers.get(SESSION_HEADER)
        if session_id and session_id != self.session_id:
            self.session_id = session_id
            save_session_id(session_id)
        resp.raise_for_status()

        data = resp.json()
        if "error" in data:
            raise GatewayError(data["error"].get("code", 0), data["error"].get("message", ""))
        return data.get("result", {})

    async def initialize(self) -> dict:
        return await self.request("initialize", {
            "protocolVersion": PROTOCOL_VERSION,
            "capabilities": {},
            "clientInfo": {"name": "social-mcp-stdio", "version": "1.0.0"},
        })

    async def call_tool(self, name: str, arguments: dict) -> tuple[str, bool]:
        """Call a gateway tool.

        Returns:
            (text, is_error). A freshly issued API key in the text is saved.
        """
        result = await self.request("tools/call", {
            "name": name,
            "arguments": {k: v for k, v in arguments.items() if v not in (None, "")},
        })
        text = "\n".join(
            block.get("text", "") for block in result.get("content", []) if block.get("type") == "text"
        )
        is_error = bool(result.get("isError"))

        issued = _API_KEY_PATTERN.search(text)
        if issued and not is_error:
            self.api_key = issued.group(0)
            save_api_key(self.api_key)
        return text, is_error

    async def close(self) -> None:
        await self._http.aclose()
