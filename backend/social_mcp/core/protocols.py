"""
Module-boundary Protocol definitions.

These describe the collaborators the gateway and dispatcher depend on,
so scorers, delivery channels and auth strategies can be swapped
without touching the callers.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Optional, Protocol, runtime_checkable

from .models import AuthMethod, IntentSnapshot, MatchScore

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession


@runtime_checkable
class MatchScorer(Protocol):
    """
    Scores the compatibility of two intents.

    Implementations may fail (raise ScoringError); callers that need a
    guaranteed answer wrap them in a FallbackScorer.
    """

    async def score(self, intent_a: IntentSnapshot, intent_b: IntentSnapshot) -> MatchScore:
        ...


@runtime_checkable
class AuthStrategy(Protocol):
    """
    One link of the authentication chain.

    Returns the profile id the request proves, or None to let the next
    strategy try. Must not raise for bad input.
    """

    method: AuthMethod

    async def resolve(self, session: AsyncSession, request: Any) -> Optional[str]:
        ...


@runtime_checkable
class Delivery(Protocol):
    """
    Where a JSON-RPC response goes.

    Stateless POSTs answer in the HTTP body; legacy sessions with an open
    stream get it pushed over SSE.
    """

    async def deliver(self, message: dict[str, Any] | list[dict[str, Any]]) -> None:
        ...


@runtime_checkable
class NotificationPublisher(Protocol):
    """Best-effort, at-most-once out-of-band push to a profile."""

    async def publish(self, profile_id: str, event: dict[str, Any]) -> bool:
        ...
