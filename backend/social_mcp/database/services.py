"""Data service layer for database operations.

One service class per table, each wrapping the request's AsyncSession.
Services flush but never commit; the caller's ``Database.session()``
block owns the transaction.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from sqlalchemy import and_, delete, func, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from social_mcp.core.models import (
    PENDING_STATUSES,
    HIDDEN_STATUSES,
    MatchStatus,
    MessageType,
    NotificationType,
    utcnow,
)
from social_mcp.database.models import (
    ApiKey,
    Intent,
    Match,
    Message,
    Notification,
    Profile,
    SessionBinding,
    pair_key,
)

logger = logging.getLogger(__name__)


class ProfileService:
    """Service for managing profiles."""

    def __init__(self, session: AsyncSession):
        """Initialize service with database session.

        Args:
            session: Async database session.
        """
        self.session = session

    async def get_by_id(self, profile_id: str) -> Optional[Profile]:
        return await self.session.get(Profile, profile_id)

    async def get_active(self, profile_id: str) -> Optional[Profile]:
        """Get a profile only if it exists and is active."""
        result = await self.session.execute(
            select(Profile).where(Profile.id == profile_id, Profile.is_active.is_(True))
        )
        return result.scalar_one_or_none()

    async def get_by_client_id(self, client_id: str) -> Optional[Profile]:
        result = await self.session.execute(
            select(Profile).where(Profile.mcp_client_id == client_id)
        )
        return result.scalar_one_or_none()

    async def find_by_display_name(self, display_name: str) -> Optional[Profile]:
        """Find an active profile by display name, case-insensitively.

        When several profiles share the name, the most recently created wins.

        Args:
            display_name: Name to look up.

        Returns:
            Matching profile or None.
        """
        result = await self.session.execute(
            select(Profile)
            .where(func.lower(Profile.display_name) == display_name.strip().lower())
            .where(Profile.is_active.is_(True))
            .order_by(Profile.created_at.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def get_many(self, profile_ids: Iterable[str]) -> Dict[str, Profile]:
        ids = set(profile_ids)
        if not ids:
            return {}
        result = await self.session.execute(select(Profile).where(Profile.id.in_(ids)))
        return {p.id: p for p in result.scalars()}

    async def upsert_by_client_id(
        self,
        client_id: str,
        display_name: str,
        bio: Optional[str] = None,
        location: Optional[str] = None,
        profile_data: Optional[Dict[str, Any]] = None,
    ) -> Tuple[Profile, bool]:
        """Create a profile or update the one registered under ``client_id``.

        Args:
            client_id: Stable external client identifier.
            display_name: Display name.
            bio: Short bio.
            location: Free-text location.
            profile_data: Arbitrary extra profile fields.

        Returns:
            (profile, created) tuple.
        """
        fields = {
            "display_name": display_name,
            "bio": bio,
            "location": location,
            "profile_data": profile_data or {},
        }
        existing = await self.get_by_client_id(client_id)
        if existing is None:
            profile = Profile(mcp_client_id=client_id, last_seen_at=utcnow(), **fields)
            try:
                async with self.session.begin_nested():
                    self.session.add(profile)
                return profile, True
            except IntegrityError:
                # Concurrent registration with the same client id won the insert
                existing = await self.get_by_client_id(client_id)
                if existing is None:
                    raise

        for key, value in fields.items():
            setattr(existing, key, value)
        existing.is_active = True
        existing.last_seen_at = utcnow()
        await self.session.flush()
        return existing, False

    async def update(self, profile_id: str, **kwargs: Any) -> Optional[Profile]:
        """Update profile fields; ignores unknown or None values."""
        profile = await self.get_active(profile_id)
        if profile is None:
            return None
        for key, value in kwargs.items():
            if value is not None and hasattr(profile, key):
                setattr(profile, key, value)
        await self.session.flush()
        return profile

    async def touch(self, profile_id: str) -> None:
        await self.session.execute(
            update(Profile).where(Profile.id == profile_id).values(last_seen_at=utcnow())
        )


class CredentialService:
    """Service for API keys. Never sees plaintext secrets."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(
        self,
        profile_id: str,
        key_hash: str,
        name: str = "default",
        scopes: Optional[List[str]] = None,
    ) -> ApiKey:
        credential = ApiKey(
            profile_id=profile_id,
            key_hash=key_hash,
            name=name,
            scopes=scopes or ["read", "write"],
        )
        self.session.add(credential)
        await self.session.flush()
        return credential

    async def get_active_by_hash(self, key_hash: str) -> Optional[ApiKey]:
        result = await self.session.execute(
            select(ApiKey).where(ApiKey.key_hash == key_hash, ApiKey.is_active.is_(True))
        )
        return result.scalar_one_or_none()

    async def touch(self, credential_id: str) -> None:
        await self.session.execute(
            update(ApiKey).where(ApiKey.id == credential_id).values(last_used_at=utcnow())
        )


class SessionBindingService:
    """Service for persisted session-to-profile bindings."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get(self, session_id: str) -> Optional[SessionBinding]:
        return await self.session.get(SessionBinding, session_id)

    async def bind(self, session_id: str, profile_id: str) -> SessionBinding:
        """Bind (or rebind) a session id to a profile."""
        binding = await self.get(session_id)
        if binding is None:
            binding = SessionBinding(session_id=session_id, profile_id=profile_id)
            try:
                async with self.session.begin_nested():
                    self.session.add(binding)
                return binding
            except IntegrityError:
                binding = await self.get(session_id)
                if binding is None:
                    raise

        binding.profile_id = profile_id
        binding.last_used_at = utcnow()
        await self.session.flush()
        return binding

    async def touch(self, session_id: str) -> None:
        await self.session.execute(
            update(SessionBinding)
            .where(SessionBinding.session_id == session_id)
            .values(last_used_at=utcnow())
        )

    async def delete(self, session_id: str) -> bool:
        result = await self.session.execute(
            delete(SessionBinding).where(SessionBinding.session_id == session_id)
        )
        return result.rowcount > 0

    async def purge_idle(self, before: datetime) -> int:
        """Delete bindings unused since ``before``.

        Returns:
            Number of bindings removed.
        """
        result = await self.session.execute(
            delete(SessionBinding).where(SessionBinding.last_used_at < before)
        )
        return result.rowcount


class IntentService:
    """Service for managing intents."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(
        self,
        profile_id: str,
        category: str,
        description: str,
        criteria: Optional[Dict[str, Any]] = None,
    ) -> Intent:
        intent = Intent(
            profile_id=profile_id,
            category=category,
            description=description,
            criteria=criteria or {},
        )
        self.session.add(intent)
        await self.session.flush()
        return intent

    async def list_active_for_profile(self, profile_id: str) -> Sequence[Intent]:
        result = await self.session.execute(
            select(Intent)
            .where(Intent.profile_id == profile_id, Intent.is_active.is_(True))
            .order_by(Intent.created_at.desc())
        )
        return result.scalars().all()

    async def list_candidates(
        self,
        category: Optional[str] = None,
        exclude_profile_id: Optional[str] = None,
    ) -> Sequence[Intent]:
        """List active intents of active profiles, oldest first.

        Args:
            category: Restrict to one category.
            exclude_profile_id: Leave out this profile's intents.

        Returns:
            List of intents.
        """
        query = (
            select(Intent)
            .join(Profile, Profile.id == Intent.profile_id)
            .where(Intent.is_active.is_(True), Profile.is_active.is_(True))
        )
        if category is not None:
            query = query.where(Intent.category == category)
        if exclude_profile_id is not None:
            query = query.where(Intent.profile_id != exclude_profile_id)
        result = await self.session.execute(query.order_by(Intent.created_at))
        return result.scalars().all()

    async def get_many(self, intent_ids: Iterable[str]) -> Dict[str, Intent]:
        ids = set(intent_ids)
        if not ids:
            return {}
        result = await self.session.execute(select(Intent).where(Intent.id.in_(ids)))
        return {i.id: i for i in result.scalars()}

    async def deactivate(self, intent_id: str, profile_id: str) -> bool:
        """Deactivate an intent owned by ``profile_id``.

        Returns:
            False if no such active intent belongs to the profile.
        """
        result = await self.session.execute(
            update(Intent)
            .where(
                Intent.id == intent_id,
                Intent.profile_id == profile_id,
                Intent.is_active.is_(True),
            )
            .values(is_active=False)
        )
        return result.rowcount > 0


class MatchService:
    """Service for matches. Status changes go through compare_and_set_status."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_id(self, match_id: str) -> Optional[Match]:
        """Load a match, always refreshing any copy already in the session."""
        result = await self.session.execute(
            select(Match)
            .where(Match.id == match_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def exists_for_pair(self, intent_x_id: str, intent_y_id: str) -> bool:
        """Whether a match already references this intent pair, in either order."""
        result = await self.session.execute(
            select(Match.id).where(
                or_(
                    and_(Match.intent_a_id == intent_x_id, Match.intent_b_id == intent_y_id),
                    and_(Match.intent_a_id == intent_y_id, Match.intent_b_id == intent_x_id),
                )
            ).limit(1)
        )
        return result.scalar_one_or_none() is not None

    async def create_if_absent(
        self,
        intent_a: Intent,
        intent_b: Intent,
        score: float,
        reason: str,
        expires_at: Optional[datetime] = None,
    ) -> Optional[Match]:
        """Create a pending match unless the pair was already compared.

        The insert runs in a savepoint against the unique pair key, so a
        concurrent duplicate is absorbed instead of failing the
        surrounding transaction.

        Args:
            intent_a: Intent whose owner responds first.
            intent_b: Counterpart intent.
            score: Compatibility score in [0, 1].
            reason: Human-readable reason.
            expires_at: When the pending match lapses.

        Returns:
            The new match, or None when the pair already has one.
        """
        if intent_a.profile_id == intent_b.profile_id:
            return None
        if await self.exists_for_pair(intent_a.id, intent_b.id):
            return None

        match = Match(
            intent_a_id=intent_a.id,
            intent_b_id=intent_b.id,
            profile_a_id=intent_a.profile_id,
            profile_b_id=intent_b.profile_id,
            pair_key=pair_key(intent_a.id, intent_b.id),
            match_score=score,
            match_reason=reason,
            status=MatchStatus.PENDING_A.value,
            expires_at=expires_at,
        )
        try:
            async with self.session.begin_nested():
                self.session.add(match)
        except IntegrityError:
            logger.debug("Match for %s/%s created concurrently, skipping", intent_a.id, intent_b.id)
            return None
        return match

    async def list_visible_for_profile(self, profile_id: str) -> Sequence[Match]:
        """Matches involving the profile, minus rejected and expired ones."""
        result = await self.session.execute(
            select(Match)
            .where(or_(Match.profile_a_id == profile_id, Match.profile_b_id == profile_id))
            .where(Match.status.not_in([s.value for s in HIDDEN_STATUSES]))
            .order_by(Match.created_at.desc())
        )
        return result.scalars().all()

    async def compare_and_set_status(
        self,
        match_id: str,
        expected: MatchStatus,
        new: MatchStatus,
        **values: Any,
    ) -> bool:
        """Atomically move a match from ``expected`` to ``new``.

        Args:
            match_id: Match ID.
            expected: Status the caller observed.
            new: Target status.
            **values: Extra columns to set in the same UPDATE.

        Returns:
            True if this call performed the transition, False if the
            status had already changed.
        """
        result = await self.session.execute(
            update(Match)
            .where(Match.id == match_id, Match.status == expected.value)
            .values(status=new.value, **values)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def expire_stale(self, now: Optional[datetime] = None) -> int:
        """Move pending matches past their expiry to ``expired``."""
        result = await self.session.execute(
            update(Match)
            .where(Match.status.in_([s.value for s in PENDING_STATUSES]))
            .where(Match.expires_at.is_not(None), Match.expires_at < (now or utcnow()))
            .values(status=MatchStatus.EXPIRED.value)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount


class MessageService:
    """Service for chat messages."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(
        self,
        match_id: str,
        sender_profile_id: str,
        content: str,
        message_type: MessageType = MessageType.TEXT,
    ) -> Message:
        message = Message(
            match_id=match_id,
            sender_profile_id=sender_profile_id,
            content=content,
            message_type=message_type.value,
        )
        self.session.add(message)
        await self.session.flush()
        return message

    async def list_recent_for_match(self, match_id: str, limit: int) -> Tuple[List[Message], bool]:
        """The newest ``limit`` messages of a match, oldest first.

        Args:
            match_id: Match ID.
            limit: Maximum number of messages to return.

        Returns:
            (messages, truncated) tuple; truncated is True when older
            messages were left out.
        """
        result = await self.session.execute(
            select(Message)
            .where(Message.match_id == match_id)
            .order_by(Message.created_at.desc(), Message.id.desc())
            .limit(limit + 1)
        )
        newest = list(result.scalars())
        truncated = len(newest) > limit
        return list(reversed(newest[:limit])), truncated

    async def mark_read(self, match_id: str, reader_profile_id: str) -> int:
        """Mark the other party's unread messages as read by ``reader_profile_id``."""
        result = await self.session.execute(
            update(Message)
            .where(
                Message.match_id == match_id,
                Message.sender_profile_id != reader_profile_id,
                Message.read_at.is_(None),
            )
            .values(read_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        return result.rowcount


class NotificationService:
    """Service for notifications. Delivery is at-most-once."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(
        self,
        profile_id: str,
        notification_type: NotificationType,
        payload: Optional[Dict[str, Any]] = None,
    ) -> Notification:
        notification = Notification(
            profile_id=profile_id,
            notification_type=notification_type.value,
            payload=payload or {},
        )
        self.session.add(notification)
        await self.session.flush()
        return notification

    async def list_undelivered(self, profile_id: str) -> Sequence[Notification]:
        """Peek at pending notifications without claiming them."""
        result = await self.session.execute(
            select(Notification)
            .where(Notification.profile_id == profile_id, Notification.is_delivered.is_(False))
            .order_by(Notification.created_at.desc())
        )
        return result.scalars().all()

    async def claim_undelivered(self, profile_id: str) -> Sequence[Notification]:
        """Mark all pending notifications delivered and return them, newest first.

        The flag flip and the selection are one UPDATE ... RETURNING, so
        two concurrent polls never receive the same notification.
        """
        result = await self.session.execute(
            update(Notification)
            .where(Notification.profile_id == profile_id, Notification.is_delivered.is_(False))
            .values(is_delivered=True, delivered_at=utcnow())
            .returning(Notification.id)
            .execution_options(synchronize_session=False)
        )
        claimed = list(result.scalars())
        if not claimed:
            return []

        rows = await self.session.execute(
            select(Notification)
            .where(Notification.id.in_(claimed))
            .order_by(Notification.created_at.desc())
            .execution_options(populate_existing=True)
        )
        return rows.scalars().all()

    async def mark_delivered(self, notification_ids: Sequence[str]) -> int:
        """Flag notifications as delivered after a successful push."""
        if not notification_ids:
            return 0
        result = await self.session.execute(
            update(Notification)
            .where(Notification.id.in_(list(notification_ids)), Notification.is_delivered.is_(False))
            .values(is_delivered=True, delivered_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        return result.rowcount
