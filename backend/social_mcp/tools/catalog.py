"""
Tool Catalog — the closed set of tools exposed over ``tools/list``.

ToolName is an enum so the dispatcher can check at construction time
that every tool has a handler.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

from mcp.types import Tool

from social_mcp.core.models import IntentCategory, MatchAction, MessageType


class ToolName(str, Enum):
    REGISTER = "social_register"
    LOGIN = "social_login"
    WHOAMI = "social_whoami"
    UPDATE_PROFILE = "social_update_profile"
    SET_INTENT = "social_set_intent"
    GET_INTENTS = "social_get_intents"
    DEACTIVATE_INTENT = "social_deactivate_intent"
    GET_MATCHES = "social_get_matches"
    RESPOND_MATCH = "social_respond_match"
    SEND_MESSAGE = "social_send_message"
    GET_MESSAGES = "social_get_messages"
    GET_NOTIFICATIONS = "social_get_notifications"
    FIND_MATCHES = "social_find_matches"


@dataclass(frozen=True)
class ToolSpec:
    name: ToolName
    description: str
    properties: dict[str, Any]
    required: tuple[str, ...] = ()
    requires_identity: bool = True

    def input_schema(self) -> dict[str, Any]:
        properties = dict(self.properties)
        if self.requires_identity:
            properties["profile_id"] = PROFILE_ID_PROPERTY
        schema: dict[str, Any] = {"type": "object", "properties": properties}
        if self.required:
            schema["required"] = list(self.required)
        return schema

    def to_tool(self) -> Tool:
        return Tool(name=self.name.value, description=self.description, inputSchema=self.input_schema())


PROFILE_ID_PROPERTY = {
    "type": "string",
    "description": "Your profile ID (optional, use if session auth fails)",
}

_LOGIN_HINT = " Requires login first. If session is lost, pass your profile_id directly."

_MATCH_ID = {"type": "string", "description": "The match ID"}

TOOL_SPECS: dict[ToolName, ToolSpec] = {spec.name: spec for spec in (
    ToolSpec(
        ToolName.REGISTER,
        "Register a Social MCP profile, or update it when called again with the same client_id. "
        "Returns an API key shown only once. Use social_login instead if you have registered before.",
        {
            "display_name": {"type": "string", "description": "Your display name"},
            "bio": {"type": "string", "description": "A brief bio about yourself"},
            "location": {"type": "string", "description": "Your location (optional)"},
            "client_id": {"type": "string", "description": "Stable client identifier; re-registering with it updates the same profile"},
            "profile_data": {"type": "object", "description": "Extra profile fields (optional)"},
        },
        required=("display_name",),
        requires_identity=False,
    ),
    ToolSpec(
        ToolName.LOGIN,
        "Log in to your existing Social MCP profile in a new session, by display_name or profile_id.",
        {
            "display_name": {"type": "string", "description": "Your display name (case-insensitive)"},
            "profile_id": {"type": "string", "description": "Your profile ID (if you know it)"},
        },
        requires_identity=False,
    ),
    ToolSpec(
        ToolName.WHOAMI,
        "Check if you are currently logged in and see your profile info.",
        {},
        requires_identity=False,
    ),
    ToolSpec(
        ToolName.UPDATE_PROFILE,
        "Update your display name, bio or location." + _LOGIN_HINT,
        {
            "display_name": {"type": "string", "description": "New display name"},
            "bio": {"type": "string", "description": "New bio"},
            "location": {"type": "string", "description": "New location"},
        },
    ),
    ToolSpec(
        ToolName.SET_INTENT,
        "Set what kind of connections you are looking for. Matching runs right away against "
        "people looking for the same kind of connection." + _LOGIN_HINT,
        {
            "category": {
                "type": "string",
                "enum": [c.value for c in IntentCategory],
                "description": "The category of connection",
            },
            "description": {"type": "string", "description": "What you are looking for"},
            "criteria": {"type": "object", "description": "Additional criteria (optional)"},
        },
        required=("category", "description"),
    ),
    ToolSpec(
        ToolName.GET_INTENTS,
        "Get your current active intents." + _LOGIN_HINT,
        {},
    ),
    ToolSpec(
        ToolName.DEACTIVATE_INTENT,
        "Stop matching on one of your intents." + _LOGIN_HINT,
        {"intent_id": {"type": "string", "description": "The intent ID"}},
        required=("intent_id",),
    ),
    ToolSpec(
        ToolName.GET_MATCHES,
        "Get your current matches and pending introductions. Bios are revealed once both sides accept." + _LOGIN_HINT,
        {},
    ),
    ToolSpec(
        ToolName.RESPOND_MATCH,
        "Accept or reject a match introduction." + _LOGIN_HINT,
        {
            "match_id": _MATCH_ID,
            "action": {
                "type": "string",
                "enum": [a.value for a in MatchAction],
                "description": "Accept or reject",
            },
        },
        required=("match_id", "action"),
    ),
    ToolSpec(
        ToolName.SEND_MESSAGE,
        "Send a message to a matched user. Both sides must have accepted the match." + _LOGIN_HINT,
        {
            "match_id": _MATCH_ID,
            "content": {"type": "string", "description": "Your message"},
            "message_type": {
                "type": "string",
                "enum": [t.value for t in MessageType],
                "description": "Message type (default text)",
            },
        },
        required=("match_id", "content"),
    ),
    ToolSpec(
        ToolName.GET_MESSAGES,
        "Get chat history with a matched user. Call this or social_get_notifications "
        "periodically to check for new messages." + _LOGIN_HINT,
        {"match_id": _MATCH_ID},
        required=("match_id",),
    ),
    ToolSpec(
        ToolName.GET_NOTIFICATIONS,
        "Check for new notifications (new matches, accepted matches, messages). Each notification "
        "is returned once; call this periodically during conversations." + _LOGIN_HINT,
        {},
    ),
    ToolSpec(
        ToolName.FIND_MATCHES,
        "Run the matching algorithm now for your intents. The system also matches "
        "automatically when you set an intent." + _LOGIN_HINT,
        {},
    ),
)}


def parse_tool_name(name: Any) -> Optional[ToolName]:
    try:
        return ToolName(name)
    except ValueError:
        return None


def list_tools() -> list[Tool]:
    return [spec.to_tool() for spec in TOOL_SPECS.values()]


def tool_definitions() -> list[dict[str, Any]]:
    """``tools/list`` payload entries."""
    return [tool.model_dump(by_alias=True, exclude_none=True) for tool in list_tools()]
