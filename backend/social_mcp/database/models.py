"""Database models for the Social MCP service."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    DateTime,
    Float,
    ForeignKey,
    Index,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column

from social_mcp.core.models import (
    MatchRole,
    MatchStatus,
    MessageType,
    generate_id,
    utcnow,
)
from social_mcp.database.connection import Base


def pair_key(intent_a_id: str, intent_b_id: str) -> str:
    """Order-independent key for an intent pair."""
    first, second = sorted((intent_a_id, intent_b_id))
    return f"{first}|{second}"


class Profile(Base):
    """A registered person, soft-deactivated only."""

    __tablename__ = "profiles"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_id)
    # Stable external client identifier; re-registration with it updates this row
    mcp_client_id: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    display_name: Mapped[str] = mapped_column(String(255), nullable=False)
    bio: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    location: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    profile_data: Mapped[Dict[str, Any]] = mapped_column(JSON, default=dict)

    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    last_seen_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )

    __table_args__ = (
        Index("idx_profiles_display_name", "display_name"),
    )

    def __repr__(self) -> str:
        return f"<Profile(id={self.id}, display_name={self.display_name})>"


class ApiKey(Base):
    """Bearer credential. Only the keyed digest is stored."""

    __tablename__ = "mcp_api_keys"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_id)
    profile_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False
    )
    key_hash: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String(100), default="default")
    scopes: Mapped[List[str]] = mapped_column(JSON, default=list)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    last_used_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    __table_args__ = (
        Index("idx_api_keys_profile", "profile_id"),
    )


class SessionBinding(Base):
    """Maps a transport session id to the profile that authenticated on it."""

    __tablename__ = "mcp_sessions"

    session_id: Mapped[str] = mapped_column(String(255), primary_key=True)
    profile_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    last_used_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    __table_args__ = (
        Index("idx_sessions_last_used", "last_used_at"),
    )


class Intent(Base):
    """A declared wish for a kind of connection."""

    __tablename__ = "intents"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_id)
    profile_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False
    )
    category: Mapped[str] = mapped_column(String(50), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    criteria: Mapped[Dict[str, Any]] = mapped_column(JSON, default=dict)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )

    __table_args__ = (
        Index("idx_intents_active_category", "is_active", "category"),
        Index("idx_intents_profile", "profile_id"),
    )


class Match(Base):
    """A scored pairing of two intents owned by two different profiles."""

    __tablename__ = "matches"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_id)
    intent_a_id: Mapped[str] = mapped_column(String(36), ForeignKey("intents.id"), nullable=False)
    intent_b_id: Mapped[str] = mapped_column(String(36), ForeignKey("intents.id"), nullable=False)
    profile_a_id: Mapped[str] = mapped_column(String(36), ForeignKey("profiles.id"), nullable=False)
    profile_b_id: Mapped[str] = mapped_column(String(36), ForeignKey("profiles.id"), nullable=False)
    # Sorted intent pair; one match per unordered pair
    pair_key: Mapped[str] = mapped_column(String(80), unique=True, nullable=False)

    match_score: Mapped[float] = mapped_column(Float, nullable=False)
    match_reason: Mapped[str] = mapped_column(Text, default="")
    status: Mapped[str] = mapped_column(String(20), default=MatchStatus.PENDING_A.value)

    a_accepted_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    b_accepted_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    expires_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )

    __table_args__ = (
        CheckConstraint("profile_a_id <> profile_b_id", name="ck_matches_distinct_profiles"),
        Index("idx_matches_profile_a", "profile_a_id"),
        Index("idx_matches_profile_b", "profile_b_id"),
        Index("idx_matches_status", "status"),
    )

    def role_of(self, profile_id: str) -> Optional[MatchRole]:
        """Slot the profile occupies in this match, or None if not a party."""
        if profile_id == self.profile_a_id:
            return MatchRole.A
        if profile_id == self.profile_b_id:
            return MatchRole.B
        return None

    def other_party(self, profile_id: str) -> str:
        return self.profile_b_id if profile_id == self.profile_a_id else self.profile_a_id

    def __repr__(self) -> str:
        return f"<Match(id={self.id}, status={self.status})>"


class Message(Base):
    """A chat line inside an accepted match."""

    __tablename__ = "messages"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_id)
    match_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("matches.id", ondelete="CASCADE"), nullable=False
    )
    sender_profile_id: Mapped[str] = mapped_column(String(36), ForeignKey("profiles.id"), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    message_type: Mapped[str] = mapped_column(String(20), default=MessageType.TEXT.value)
    read_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    __table_args__ = (
        Index("idx_messages_match_created", "match_id", "created_at"),
    )


class Notification(Base):
    """At-most-once delivery record for an asynchronous event."""

    __tablename__ = "notifications"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_id)
    profile_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False
    )
    notification_type: Mapped[str] = mapped_column(String(50), nullable=False)
    payload: Mapped[Dict[str, Any]] = mapped_column(JSON, default=dict)
    is_delivered: Mapped[bool] = mapped_column(Boolean, default=False)
    delivered_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    __table_args__ = (
        Index("idx_notifications_undelivered", "profile_id", "is_delivered"),
    )

    def to_event(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": self.notification_type,
            "payload": self.payload or {},
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
