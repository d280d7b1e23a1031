"""
Social MCP — matchmaking over the Model Context Protocol.

Public API surface::

    from social_mcp import create_app, SocialConfig

Extension points (implement these Protocols to customize):

- ``MatchScorer``: swap the compatibility scorer
- ``AuthStrategy``: add a client authentication accommodation
- ``Delivery``: add a response transport
"""

from social_mcp.api.app import create_app
from social_mcp.api.gateway import SERVER_VERSION as __version__
from social_mcp.api.gateway import ProtocolGateway

from social_mcp.auth import Authenticator, AuthRequest, KeyHasher

from social_mcp.core.errors import (
    ConfigError,
    RpcError,
    ScoringError,
    SocialError,
    ToolArgumentError,
    TransitionConflictError,
)
from social_mcp.core.models import (
    Identity,
    IntentCategory,
    MatchAction,
    MatchStatus,
    NotificationType,
    ToolResult,
)
from social_mcp.core.protocols import AuthStrategy, Delivery, MatchScorer
from social_mcp.core.state_machine import decide

from social_mcp.database import Database
from social_mcp.infra.config import SocialConfig
from social_mcp.matching import CategoryScorer, FallbackScorer, MatchEngine, MatchLifecycle
from social_mcp.tools import ToolDispatcher, ToolName

__all__ = [
    "__version__",
    "create_app", "ProtocolGateway",
    "Authenticator", "AuthRequest", "KeyHasher",
    "SocialError", "ConfigError", "RpcError", "ScoringError",
    "ToolArgumentError", "TransitionConflictError",
    "Identity", "IntentCategory", "MatchAction", "MatchStatus",
    "NotificationType", "ToolResult",
    "AuthStrategy", "Delivery", "MatchScorer", "decide",
    "Database", "SocialConfig",
    "CategoryScorer", "FallbackScorer", "MatchEngine", "MatchLifecycle",
    "ToolDispatcher", "ToolName",
]
