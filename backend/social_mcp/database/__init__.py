"""Persistence layer: async SQLAlchemy engine, models and services."""

from .connection import Base, Database
from .models import (
    ApiKey,
    Intent,
    Match,
    Message,
    Notification,
    Profile,
    SessionBinding,
    pair_key,
)
from .services import (
    CredentialService,
    IntentService,
    MatchService,
    MessageService,
    NotificationService,
    ProfileService,
    SessionBindingService,
)

__all__ = [
    "Base", "Database",
    "ApiKey", "Intent", "Match", "Message", "Notification", "Profile",
    "SessionBinding", "pair_key",
    "CredentialService", "IntentService", "MatchService", "MessageService",
    "NotificationService", "ProfileService", "SessionBindingService",
]
