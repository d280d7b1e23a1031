"""Core layer: consent rules, models, errors, collaborator contracts."""

from .errors import (
    ConfigError,
    RpcError,
    ScoringError,
    SocialError,
    ToolArgumentError,
    TransitionConflictError,
)
from .models import (
    AuthMethod,
    Identity,
    IntentCategory,
    IntentSnapshot,
    MatchAction,
    MatchRole,
    MatchScore,
    MatchStatus,
    MessageType,
    NotificationType,
    ToolResult,
    generate_id,
    utcnow,
)
from .protocols import AuthStrategy, Delivery, MatchScorer, NotificationPublisher
from .state_machine import VALID_TRANSITIONS, Decision, decide

__all__ = [
    "SocialError", "ConfigError", "ScoringError", "ToolArgumentError",
    "TransitionConflictError", "RpcError",
    "AuthMethod", "Identity", "IntentCategory", "IntentSnapshot",
    "MatchAction", "MatchRole", "MatchScore", "MatchStatus",
    "MessageType", "NotificationType", "ToolResult", "generate_id", "utcnow",
    "AuthStrategy", "Delivery", "MatchScorer", "NotificationPublisher",
    "VALID_TRANSITIONS", "Decision", "decide",
]
