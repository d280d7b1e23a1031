"""
Core data models for the Social MCP service.

Enums describe the closed vocabularies stored in the database
(categories, statuses, notification types). Dataclasses carry values
between layers without exposing ORM rows.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import uuid4

from mcp.types import CallToolResult, TextContent


def generate_id() -> str:
    """Generate a row identifier (UUID4 string)."""
    return str(uuid4())


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ============ Enums ============

class IntentCategory(str, Enum):
    PROFESSIONAL = "professional"
    ROMANCE = "romance"
    FRIENDSHIP = "friendship"
    EXPERTISE = "expertise"
    SPORTS = "sports"
    LEARNING = "learning"
    OTHER = "other"


class MatchStatus(str, Enum):
    PENDING_A = "pending_a"    # waiting on profile A
    PENDING_B = "pending_b"    # A accepted, waiting on profile B
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    EXPIRED = "expired"

    @property
    def is_terminal(self) -> bool:
        return self in (MatchStatus.ACCEPTED, MatchStatus.REJECTED, MatchStatus.EXPIRED)


PENDING_STATUSES = (MatchStatus.PENDING_A, MatchStatus.PENDING_B)
HIDDEN_STATUSES = (MatchStatus.REJECTED, MatchStatus.EXPIRED)


class MatchAction(str, Enum):
    ACCEPT = "accept"
    REJECT = "reject"


class MatchRole(str, Enum):
    """Which slot of a match a profile occupies."""
    A = "a"
    B = "b"


class MessageType(str, Enum):
    TEXT = "text"
    SYSTEM = "system"
    INTRO = "intro"


class NotificationType(str, Enum):
    NEW_MATCH = "new_match"
    CONNECTION_REQUEST = "connection_request"
    MATCH_ACCEPTED = "match_accepted"
    NEW_MESSAGE = "new_message"


class AuthMethod(str, Enum):
    """How a caller's identity was established, strongest first."""
    API_KEY = "api_key"
    SESSION = "session"
    PROFILE_ID = "profile_id"


# ============ Value objects ============

@dataclass(frozen=True)
class Identity:
    """A resolved caller identity."""
    profile_id: str
    method: AuthMethod


@dataclass
class IntentSnapshot:
    """
    Read-only view of an intent handed to match scorers.

    Includes the owner's public profile fields so a scorer can use them
    without touching the database.
    """
    intent_id: str
    profile_id: str
    category: str
    description: str
    criteria: dict[str, Any] = field(default_factory=dict)
    display_name: str = ""
    bio: str = ""


@dataclass
class MatchScore:
    """Compatibility score in [0, 1] plus a human-readable reason."""
    score: float
    reason: str

    def __post_init__(self) -> None:
        self.score = max(0.0, min(1.0, float(self.score)))


@dataclass
class ToolResult:
    """
    Outcome of one tool invocation.

    Business failures (not logged in, not a party, not found) are
    ToolResults with is_error=True, never exceptions.
    bound_profile_id is set by tools that establish identity for the
    current session (register, login).
    """
    text: str
    is_error: bool = False
    bound_profile_id: Optional[str] = None

    @classmethod
    def ok(cls, text: str, bound_profile_id: Optional[str] = None) -> ToolResult:
        return cls(text=text, bound_profile_id=bound_profile_id)

    @classmethod
    def error(cls, text: str) -> ToolResult:
        return cls(text=text, is_error=True)

    def to_call_result(self) -> dict[str, Any]:
        """Render as an MCP ``tools/call`` result payload."""
        result = CallToolResult(
            content=[TextContent(type="text", text=self.text)],
            isError=self.is_error,
        )
        dumped = result.model_dump(by_alias=True, exclude_none=True)
        # Wire shape is exactly {content, isError?}, whatever else the SDK model carries
        payload = {"content": dumped["content"]}
        if self.is_error:
            payload["isError"] = True
        return payload
