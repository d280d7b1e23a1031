"""
Authenticator — resolves a request to a profile via an ordered strategy chain.

Strongest proof first:

1. ApiKeyStrategy: possession of a bearer secret
2. SessionBindingStrategy: continuity of a persisted transport session
3. ExplicitProfileStrategy: a bare profile id in the tool arguments,
   for clients that can keep neither a secret nor a session id

A strategy that cannot prove identity returns None and the next one is
tried. Adding a client accommodation means adding a strategy, not
editing the others.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from social_mcp.core.models import AuthMethod, Identity
from social_mcp.core.protocols import AuthStrategy
from social_mcp.database.services import (
    CredentialService,
    ProfileService,
    SessionBindingService,
)

from .credentials import KeyHasher, looks_like_api_key

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AuthRequest:
    """Authentication material extracted from one inbound call."""
    api_key: Optional[str] = None
    session_id: Optional[str] = None
    profile_id: Optional[str] = None


class ApiKeyStrategy:
    method = AuthMethod.API_KEY

    def __init__(self, hasher: KeyHasher):
        self._hasher = hasher

    async def resolve(self, session: AsyncSession, request: AuthRequest) -> Optional[str]:
        if not request.api_key or not looks_like_api_key(request.api_key):
            return None
        credentials = CredentialService(session)
        credential = await credentials.get_active_by_hash(self._hasher.digest(request.api_key))
        if credential is None:
            logger.debug("API key rejected, falling through")
            return None
        if await ProfileService(session).get_active(credential.profile_id) is None:
            return None
        await credentials.touch(credential.id)
        return credential.profile_id


class SessionBindingStrategy:
    method = AuthMethod.SESSION

    async def resolve(self, session: AsyncSession, request: AuthRequest) -> Optional[str]:
        if not request.session_id:
            return None
        bindings = SessionBindingService(session)
        binding = await bindings.get(request.session_id)
        if binding is None:
            return None
        if await ProfileService(session).get_active(binding.profile_id) is None:
            return None
        await bindings.touch(request.session_id)
        return binding.profile_id


class ExplicitProfileStrategy:
    method = AuthMethod.PROFILE_ID

    async def resolve(self, session: AsyncSession, request: AuthRequest) -> Optional[str]:
        if not request.profile_id:
            return None
        profile = await ProfileService(session).get_active(request.profile_id)
        return profile.id if profile else None


class Authenticator:
    """Runs the strategy chain; first success wins."""

    def __init__(self, strategies: Sequence[AuthStrategy]):
        self._strategies = list(strategies)

    @classmethod
    def default(cls, hasher: KeyHasher, allow_profile_id: bool = True) -> Authenticator:
        strategies: list[AuthStrategy] = [ApiKeyStrategy(hasher), SessionBindingStrategy()]
        if allow_profile_id:
            strategies.append(ExplicitProfileStrategy())
        return cls(strategies)

    @property
    def methods(self) -> list[AuthMethod]:
        return [s.method for s in self._strategies]

    async def resolve(self, session: AsyncSession, request: AuthRequest) -> Optional[Identity]:
        """Resolve ``request`` to an identity, or None if nothing proves one."""
        for strategy in self._strategies:
            profile_id = await strategy.resolve(session, request)
            if profile_id:
                await ProfileService(session).touch(profile_id)
                if request.session_id and strategy.method != AuthMethod.SESSION:
                    await SessionBindingService(session).touch(request.session_id)
                logger.debug("Authenticated profile %s via %s", profile_id, strategy.method.value)
                return Identity(profile_id=profile_id, method=strategy.method)
        return None
