"""Credential handling and the authentication strategy chain."""

from .authenticator import (
    ApiKeyStrategy,
    AuthRequest,
    Authenticator,
    ExplicitProfileStrategy,
    SessionBindingStrategy,
)
from .credentials import API_KEY_PREFIX, KeyHasher, generate_api_key

__all__ = [
    "ApiKeyStrategy", "AuthRequest", "Authenticator", "ExplicitProfileStrategy",
    "SessionBindingStrategy", "API_KEY_PREFIX", "KeyHasher", "generate_api_key",
]
