"""
ProtocolGateway — JSON-RPC 2.0 framing for the MCP method set.

Transport-agnostic: routes.py parses HTTP, builds a RequestContext and
passes the decoded payload here. Every message gets exactly one
response (or none for notifications), which goes to the Delivery the
route picked.

Error codes:
    -32700 parse error (raised by the route, the body never gets here)
    -32600 invalid envelope
    -32601 unknown method
    -32602 invalid params
    -32603 unexpected failure (storage down, bug)
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional

from mcp.types import (
    INTERNAL_ERROR,
    INVALID_PARAMS,
    INVALID_REQUEST,
    METHOD_NOT_FOUND,
)

from social_mcp.auth.authenticator import AuthRequest, Authenticator
from social_mcp.core.errors import RpcError
from social_mcp.core.models import Identity, ToolResult
from social_mcp.core.protocols import Delivery
from social_mcp.database.connection import Database
from social_mcp.infra.event_pusher import SessionStreamRegistry
from social_mcp.tools.catalog import parse_tool_name, tool_definitions
from social_mcp.tools.dispatcher import (
    RESOURCE_MATCHES,
    RESOURCE_NOTIFICATIONS,
    CallContext,
    ToolDispatcher,
)
from social_mcp.tools.formatting import NOT_LOGGED_IN

logger = logging.getLogger(__name__)

JSONRPC_VERSION = "2.0"
SERVER_NAME = "social-mcp"
SERVER_VERSION = "1.0.0"
DEFAULT_PROTOCOL_VERSION = "2024-11-05"
SUPPORTED_PROTOCOL_VERSIONS = ("2024-11-05", "2025-03-26", "2025-06-18")

INSTRUCTIONS = (
    "Social MCP introduces people through their AI assistants. Register with social_register "
    "(or social_login), declare what you are looking for with social_set_intent, then review "
    "introductions with social_get_matches. Both sides must accept before chatting. "
    "Check social_get_notifications regularly."
)

RESOURCES = [
    {
        "uri": RESOURCE_MATCHES,
        "name": "Matches",
        "description": "Your current matches (bios hidden until both accept)",
        "mimeType": "application/json",
    },
    {
        "uri": RESOURCE_NOTIFICATIONS,
        "name": "Notifications",
        "description": "Undelivered notifications (reading does not mark them delivered)",
        "mimeType": "application/json",
    },
]


@dataclass
class RequestContext:
    """Transport-level facts about one inbound HTTP request."""
    session_id: str
    api_key: Optional[str] = None


def error_response(request_id: Any, code: int, message: str) -> Dict[str, Any]:
    return {
        "jsonrpc": JSONRPC_VERSION,
        "id": request_id,
        "error": {"code": code, "message": message},
    }


def negotiate_protocol_version(requested: Any) -> str:
    if requested in SUPPORTED_PROTOCOL_VERSIONS:
        return requested
    return DEFAULT_PROTOCOL_VERSION


MethodHandler = Callable[[Dict[str, Any], RequestContext], Awaitable[Dict[str, Any]]]


class ProtocolGateway:
    """Dispatches JSON-RPC methods; ``initialize`` is not required before ``tools/call``."""

    def __init__(
        self,
        database: Database,
        authenticator: Authenticator,
        dispatcher: ToolDispatcher,
        registry: Optional[SessionStreamRegistry] = None,
    ):
        self._database = database
        self._authenticator = authenticator
        self._dispatcher = dispatcher
        self._registry = registry

        self._methods: Dict[str, MethodHandler] = {
            "initialize": self._initialize,
            "initialized": self._acknowledge,
            "notifications/initialized": self._acknowledge,
            "notifications/cancelled": self._acknowledge,
            "ping": self._acknowledge,
            "tools/list": self._tools_list,
            "tools/call": self._tools_call,
            "resources/list": self._resources_list,
            "resources/read": self._resources_read,
            "prompts/list": self._prompts_list,
        }

    async def handle(self, payload: Any, ctx: RequestContext, delivery: Delivery) -> bool:
        """Process a decoded body and deliver the response.

        Returns:
            True if a response was delivered, False if the body held only
            notifications.
        """
        response = await self.process(payload, ctx)
        if response is None:
            return False
        await delivery.deliver(response)
        return True

    async def process(self, payload: Any, ctx: RequestContext) -> Any:
        if isinstance(payload, list):
            if not payload:
                return error_response(None, INVALID_REQUEST, "Invalid Request: empty batch")
            responses = []
            for message in payload:
                response = await self.handle_message(message, ctx)
                if response is not None:
                    responses.append(response)
            return responses or None
        return await self.handle_message(payload, ctx)

    async def handle_message(self, message: Any, ctx: RequestContext) -> Optional[Dict[str, Any]]:
        if not isinstance(message, dict):
            return error_response(None, INVALID_REQUEST, "Invalid Request: expected a JSON object")

        request_id = message.get("id")
        if message.get("jsonrpc") != JSONRPC_VERSION:
            return error_response(request_id, INVALID_REQUEST, 'Invalid Request: jsonrpc must be "2.0"')

        method = message.get("method")
        if not isinstance(method, str):
            if "result" in message or "error" in message:
                # A client's reply to a server request; nothing to answer
                return None
            return error_response(request_id, INVALID_REQUEST, "Invalid Request: missing method")

        is_notification = "id" not in message
        params = message.get("params")
        if params is None:
            params = {}

        try:
            handler = self._methods.get(method)
            if handler is None:
                raise RpcError(METHOD_NOT_FOUND, f"Method not found: {method}")
            if not isinstance(params, dict):
                raise RpcError(INVALID_PARAMS, "Invalid params: expected an object")
            result = await handler(params, ctx)
        except RpcError as e:
            if is_notification:
                return None
            return error_response(request_id, e.code, e.message)
        except Exception as e:
            logger.exception("Internal error handling %s (session %s)", method, ctx.session_id)
            if is_notification:
                return None
            return error_response(request_id, INTERNAL_ERROR, f"Internal error: {e}")

        if is_notification:
            return None
        return {"jsonrpc": JSONRPC_VERSION, "id": request_id, "result": result}

    # ============ Methods ============

    async def _initialize(self, params: Dict[str, Any], ctx: RequestContext) -> Dict[str, Any]:
        client = params.get("clientInfo") or {}
        version = negotiate_protocol_version(params.get("protocolVersion"))
        logger.info(
            "Initialize: session=%s client=%s protocol=%s",
            ctx.session_id, client.get("name", "unknown"), version,
        )
        return {
            "protocolVersion": version,
            "capabilities": {
                "tools": {"listChanged": False},
                "resources": {"subscribe": False, "listChanged": False},
                "logging": {},
            },
            "serverInfo": {"name": SERVER_NAME, "version": SERVER_VERSION},
            "instructions": INSTRUCTIONS,
        }

    async def _acknowledge(self, params: Dict[str, Any], ctx: RequestContext) -> Dict[str, Any]:
        return {}

    async def _tools_list(self, params: Dict[str, Any], ctx: RequestContext) -> Dict[str, Any]:
        return {"tools": tool_definitions()}

    async def _prompts_list(self, params: Dict[str, Any], ctx: RequestContext) -> Dict[str, Any]:
        return {"prompts": []}

    async def _resources_list(self, params: Dict[str, Any], ctx: RequestContext) -> Dict[str, Any]:
        return {"resources": RESOURCES}

    async def _tools_call(self, params: Dict[str, Any], ctx: RequestContext) -> Dict[str, Any]:
        name = params.get("name")
        arguments = params.get("arguments")
        if arguments is None:
            arguments = {}
        if not isinstance(arguments, dict):
            raise RpcError(INVALID_PARAMS, "Invalid params: arguments must be an object")

        tool = parse_tool_name(name)
        if tool is None:
            return ToolResult.error(f"Unknown tool: {name}. Call tools/list to see available tools.").to_call_result()

        identity = await self._authenticate(ctx, arguments.get("profile_id"))
        logger.debug(
            "tools/call %s session=%s identity=%s",
            tool.value, ctx.session_id, identity.method.value if identity else "none",
        )
        result = await self._dispatcher.dispatch(tool, arguments, CallContext(ctx.session_id, identity))

        bound = result.bound_profile_id or (identity.profile_id if identity else None)
        if bound and self._registry is not None:
            await self._registry.bind_profile(ctx.session_id, bound)
        return result.to_call_result()

    async def _resources_read(self, params: Dict[str, Any], ctx: RequestContext) -> Dict[str, Any]:
        uri = params.get("uri")
        if uri not in (RESOURCE_MATCHES, RESOURCE_NOTIFICATIONS):
            raise RpcError(INVALID_PARAMS, f"Unknown resource: {uri}")

        identity = await self._authenticate(ctx, None)
        if identity is None:
            text = json.dumps({"error": NOT_LOGGED_IN})
        else:
            text = await self._dispatcher.read_resource(uri, identity)
        return {"contents": [{"uri": uri, "mimeType": "application/json", "text": text}]}

    async def _authenticate(self, ctx: RequestContext, profile_hint: Any) -> Optional[Identity]:
        request = AuthRequest(
            api_key=ctx.api_key,
            session_id=ctx.session_id,
            profile_id=profile_hint if isinstance(profile_hint, str) else None,
        )
        async with self._database.session() as session:
            return await self._authenticator.resolve(session, request)
