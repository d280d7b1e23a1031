"""
API key generation and digesting.

Keys look like ``smcp_`` + 64 hex chars. Only an HMAC-SHA256 digest
(keyed with the server's pepper) is stored and keys are looked up
by that digest.
"""

from __future__ import annotations

import hashlib
import hmac
import secrets

API_KEY_PREFIX = "smcp_"


def generate_api_key() -> str:
    return API_KEY_PREFIX + secrets.token_hex(32)


def looks_like_api_key(value: str) -> bool:
    return value.startswith(API_KEY_PREFIX) and len(value) == len(API_KEY_PREFIX) + 64


class KeyHasher:
    """Derives the stored digest of an API key."""

    def __init__(self, pepper: str = ""):
        self._pepper = pepper.encode("utf-8")

    def digest(self, api_key: str) -> str:
        return hmac.new(self._pepper, api_key.encode("utf-8"), hashlib.sha256).hexdigest()
