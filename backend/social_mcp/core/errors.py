"""
Unified exception hierarchy for the Social MCP service.

All exceptions inherit from SocialError. Business conditions (not logged
in, not a party, not found) are never raised: tools report them as error
results. These exceptions cover configuration, scoring and protocol
failures.
"""


class SocialError(Exception):
    """Base exception for all Social MCP errors."""
    pass


class ConfigError(SocialError):
    """Configuration error (missing handler, invalid settings, etc.)."""
    pass


class ScoringError(SocialError):
    """Primary match scorer failure (LLM unavailable, unparseable output, etc.)."""
    pass


class ToolArgumentError(SocialError):
    """A tool was called with missing or malformed arguments."""
    pass


class TransitionConflictError(SocialError):
    """A match status kept changing underneath a compare-and-set write."""
    pass


class RpcError(SocialError):
    """JSON-RPC protocol error carrying its wire code."""

    def __init__(self, code: int, message: str):
        super().__init__(message)
        self.code = code
        self.message = message
