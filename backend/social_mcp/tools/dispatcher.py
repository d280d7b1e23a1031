"""
ToolDispatcher — executes catalog tools against storage.

Each tool runs in one database transaction. Business conditions (not
logged in, not a party, not found, bad arguments) come back as error
ToolResults; only storage and other unexpected failures propagate.
Notifications created during a call are pushed to live streams after
the transaction commits.
"""

from __future__ import annotations

import json
import logging
import secrets
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from social_mcp.auth.credentials import KeyHasher, generate_api_key
from social_mcp.core.errors import ConfigError, ToolArgumentError
from social_mcp.core.models import (
    Identity,
    IntentCategory,
    MatchAction,
    MatchStatus,
    MessageType,
    NotificationType,
    ToolResult,
)
from social_mcp.database.connection import Database
from social_mcp.database.models import Match, Notification
from social_mcp.database.services import (
    CredentialService,
    IntentService,
    MatchService,
    MessageService,
    NotificationService,
    ProfileService,
    SessionBindingService,
)
from social_mcp.infra.config import SocialConfig
from social_mcp.infra.event_pusher import NotificationPusher
from social_mcp.matching.engine import MatchEngine
from social_mcp.matching.lifecycle import MatchLifecycle, ResponseOutcome

from .catalog import TOOL_SPECS, ToolName
from .formatting import (
    NOT_LOGGED_IN,
    build_match_view,
    format_intents,
    format_match_views,
    format_messages,
    format_notifications,
    format_profile,
)

logger = logging.getLogger(__name__)

MATCH_NOT_FOUND = "Match not found. Use social_get_matches to see your match IDs."
NOT_A_PARTY = "Not authorized for this match."

RESOURCE_MATCHES = "social://matches"
RESOURCE_NOTIFICATIONS = "social://notifications"


@dataclass
class CallContext:
    """Per-call context handed to tool handlers."""
    session_id: str
    identity: Optional[Identity] = None

    @property
    def profile_id(self) -> str:
        if self.identity is None:
            raise ToolArgumentError(NOT_LOGGED_IN)
        return self.identity.profile_id


Outbox = List[Notification]
Handler = Callable[[AsyncSession, Dict[str, Any], CallContext, Outbox], Awaitable[ToolResult]]


# ============ Argument helpers ============

def _require_str(args: Dict[str, Any], key: str) -> str:
    value = args.get(key)
    if not isinstance(value, str) or not value.strip():
        raise ToolArgumentError(f"Missing required argument: {key}")
    return value.strip()


def _optional_str(args: Dict[str, Any], key: str) -> Optional[str]:
    value = args.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise ToolArgumentError(f"Argument {key} must be a string")
    return value.strip() or None


def _optional_dict(args: Dict[str, Any], key: str) -> Dict[str, Any]:
    value = args.get(key)
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ToolArgumentError(f"Argument {key} must be an object")
    return value


def _require_choice(args: Dict[str, Any], key: str, enum_cls: type) -> Any:
    raw = _require_str(args, key)
    try:
        return enum_cls(raw.lower())
    except ValueError:
        choices = ", ".join(e.value for e in enum_cls)
        raise ToolArgumentError(f"Invalid {key} '{raw}'. Choose one of: {choices}") from None


def generate_client_id() -> str:
    return f"mcp_{int(time.time() * 1000)}_{secrets.token_hex(4)}"


class ToolDispatcher:
    """Routes a ToolName to its handler."""

    def __init__(
        self,
        database: Database,
        engine: MatchEngine,
        hasher: KeyHasher,
        config: SocialConfig,
        pusher: Optional[NotificationPusher] = None,
    ):
        self._database = database
        self._engine = engine
        self._hasher = hasher
        self._config = config
        self._pusher = pusher

        self._handlers: Dict[ToolName, Handler] = {
            ToolName.REGISTER: self._register,
            ToolName.LOGIN: self._login,
            ToolName.WHOAMI: self._whoami,
            ToolName.UPDATE_PROFILE: self._update_profile,
            ToolName.SET_INTENT: self._set_intent,
            ToolName.GET_INTENTS: self._get_intents,
            ToolName.DEACTIVATE_INTENT: self._deactivate_intent,
            ToolName.GET_MATCHES: self._get_matches,
            ToolName.RESPOND_MATCH: self._respond_match,
            ToolName.SEND_MESSAGE: self._send_message,
            ToolName.GET_MESSAGES: self._get_messages,
            ToolName.GET_NOTIFICATIONS: self._get_notifications,
            ToolName.FIND_MATCHES: self._find_matches,
        }
        missing = [t.value for t in ToolName if t not in self._handlers]
        if missing:
            raise ConfigError(f"No handler for tool(s): {', '.join(missing)}")

    def _needs_identity(self, tool: ToolName) -> bool:
        if tool == ToolName.FIND_MATCHES and self._config.allow_global_match_pass:
            return False
        return TOOL_SPECS[tool].requires_identity

    async def dispatch(self, tool: ToolName, args: Dict[str, Any], ctx: CallContext) -> ToolResult:
        """Run one tool call.

        Args:
            tool: Tool to run.
            args: Tool arguments (already a dict).
            ctx: Session id and resolved identity.

        Returns:
            The tool's result; business failures have is_error set.
        """
        if self._needs_identity(tool) and ctx.identity is None:
            return ToolResult.error(NOT_LOGGED_IN)

        outbox: Outbox = []
        try:
            async with self._database.session() as session:
                result = await self._handlers[tool](session, args, ctx, outbox)
        except ToolArgumentError as e:
            return ToolResult.error(str(e))

        if outbox:
            await self._push(outbox)
        return result

    async def _push(self, notifications: Sequence[Notification]) -> None:
        if self._pusher is None:
            return
        try:
            await self._pusher.flush(notifications)
        except Exception:
            # Stored notifications stay pollable via social_get_notifications
            logger.exception("Live push of %d notification(s) failed", len(notifications))

    # ============ Profile tools ============

    async def _register(self, session: AsyncSession, args: Dict[str, Any], ctx: CallContext, outbox: Outbox) -> ToolResult:
        display_name = _require_str(args, "display_name")
        client_id = _optional_str(args, "client_id") or generate_client_id()

        profile, created = await ProfileService(session).upsert_by_client_id(
            client_id,
            display_name=display_name,
            bio=_optional_str(args, "bio"),
            location=_optional_str(args, "location"),
            profile_data=_optional_dict(args, "profile_data"),
        )
        api_key = generate_api_key()
        await CredentialService(session).create(profile.id, self._hasher.digest(api_key))
        await SessionBindingService(session).bind(ctx.session_id, profile.id)
        logger.info("Profile %s %s (client %s)", profile.id, "registered" if created else "updated", client_id)

        headline = "Profile registered!" if created else "Profile updated!"
        text = (
            f"{headline}\n\n"
            f"{format_profile(profile)}\n"
            f"Client ID: {client_id}\n"
            f"API Key: {api_key}\n\n"
            "Save the API key now, it is shown only once. Send it as the X-MCP-API-Key header "
            "(or Authorization: Bearer) to stay logged in across sessions.\n"
            "Next: use social_set_intent to say what kind of connections you are looking for."
        )
        return ToolResult.ok(text, bound_profile_id=profile.id)

    async def _login(self, session: AsyncSession, args: Dict[str, Any], ctx: CallContext, outbox: Outbox) -> ToolResult:
        profile_id = _optional_str(args, "profile_id")
        display_name = _optional_str(args, "display_name")
        if not profile_id and not display_name:
            raise ToolArgumentError("Provide display_name or profile_id to log in.")

        profiles = ProfileService(session)
        if profile_id:
            profile = await profiles.get_active(profile_id)
        else:
            profile = await profiles.find_by_display_name(display_name)
        if profile is None:
            return ToolResult.error(
                "Profile not found. Check the name or ID, or use social_register to create a profile."
            )

        await SessionBindingService(session).bind(ctx.session_id, profile.id)
        await profiles.touch(profile.id)
        logger.info("Profile %s logged in on session %s", profile.id, ctx.session_id)
        return ToolResult.ok(
            f"Logged in! Welcome back, {profile.display_name}.\n\n{format_profile(profile)}",
            bound_profile_id=profile.id,
        )

    async def _whoami(self, session: AsyncSession, args: Dict[str, Any], ctx: CallContext, outbox: Outbox) -> ToolResult:
        if ctx.identity is None:
            return ToolResult.ok(
                "Not logged in. Use social_register to create a profile or social_login if you have one."
            )
        profile = await ProfileService(session).get_by_id(ctx.profile_id)
        if profile is None:
            return ToolResult.error(NOT_LOGGED_IN)
        intents = await IntentService(session).list_active_for_profile(profile.id)
        return ToolResult.ok(
            f"Logged in (via {ctx.identity.method.value}).\n\n"
            f"{format_profile(profile)}\n"
            f"Active intents: {len(intents)}"
        )

    async def _update_profile(self, session: AsyncSession, args: Dict[str, Any], ctx: CallContext, outbox: Outbox) -> ToolResult:
        changes = {
            key: _optional_str(args, key)
            for key in ("display_name", "bio", "location")
        }
        if all(value is None for value in changes.values()):
            raise ToolArgumentError("Nothing to update. Pass display_name, bio or location.")
        profile = await ProfileService(session).update(ctx.profile_id, **changes)
        if profile is None:
            return ToolResult.error(NOT_LOGGED_IN)
        return ToolResult.ok(f"Profile updated!\n\n{format_profile(profile)}")

    # ============ Intent tools ============

    async def _set_intent(self, session: AsyncSession, args: Dict[str, Any], ctx: CallContext, outbox: Outbox) -> ToolResult:
        category = _require_choice(args, "category", IntentCategory)
        description = _require_str(args, "description")
        intent = await IntentService(session).create(
            ctx.profile_id, category.value, description, _optional_dict(args, "criteria")
        )
        text = (
            "Intent created!\n\n"
            f"Category: {intent.category}\n"
            f"Description: {intent.description}\n"
            f"Intent ID: {intent.id}"
        )

        if self._config.auto_match_on_intent:
            result = await self._engine.match_new_intent(session, intent)
            outbox.extend(result.notifications)
            if result.matches:
                text += f"\n\nFound {len(result.matches)} new match(es)! Use social_get_matches to review them."
            else:
                text += "\n\nNo matches yet. We'll notify you when someone compatible joins!"
        return ToolResult.ok(text)

    async def _get_intents(self, session: AsyncSession, args: Dict[str, Any], ctx: CallContext, outbox: Outbox) -> ToolResult:
        intents = await IntentService(session).list_active_for_profile(ctx.profile_id)
        return ToolResult.ok(format_intents(intents))

    async def _deactivate_intent(self, session: AsyncSession, args: Dict[str, Any], ctx: CallContext, outbox: Outbox) -> ToolResult:
        intent_id = _require_str(args, "intent_id")
        if not await IntentService(session).deactivate(intent_id, ctx.profile_id):
            return ToolResult.error("Intent not found among your active intents. Use social_get_intents to list them.")
        return ToolResult.ok(f"Intent {intent_id} deactivated. It will no longer be matched.")

    # ============ Match tools ============

    async def _match_views(self, session: AsyncSession, matches: Sequence[Match], viewer_id: str) -> List[Dict[str, Any]]:
        profiles = await ProfileService(session).get_many(
            pid for m in matches for pid in (m.profile_a_id, m.profile_b_id)
        )
        intents = await IntentService(session).get_many(
            iid for m in matches for iid in (m.intent_a_id, m.intent_b_id)
        )
        return [build_match_view(m, viewer_id, profiles, intents) for m in matches]

    async def _get_matches(self, session: AsyncSession, args: Dict[str, Any], ctx: CallContext, outbox: Outbox) -> ToolResult:
        matches = await MatchService(session).list_visible_for_profile(ctx.profile_id)
        views = await self._match_views(session, matches, ctx.profile_id)
        return ToolResult.ok(format_match_views(views))

    async def _respond_match(self, session: AsyncSession, args: Dict[str, Any], ctx: CallContext, outbox: Outbox) -> ToolResult:
        match_id = _require_str(args, "match_id")
        action = _require_choice(args, "action", MatchAction)

        response = await MatchLifecycle(session).respond(match_id, ctx.profile_id, action)
        if response.outcome == ResponseOutcome.NOT_FOUND:
            return ToolResult.error(MATCH_NOT_FOUND)
        if response.outcome == ResponseOutcome.NOT_A_PARTY:
            return ToolResult.error(NOT_A_PARTY)

        text = f"{response.message}\n\nMatch ID: {match_id}\nStatus: {response.status.value}"
        if response.outcome == ResponseOutcome.UNCHANGED and not response.status.is_terminal:
            # Out of turn; repeats on a closed match stay informative
            return ToolResult.error(text)
        outbox.extend(response.notifications)
        return ToolResult.ok(text)

    async def _find_matches(self, session: AsyncSession, args: Dict[str, Any], ctx: CallContext, outbox: Outbox) -> ToolResult:
        if ctx.identity is not None:
            result = await self._engine.run_for_profile(session, ctx.profile_id)
        else:
            logger.info("Running global match pass (unauthenticated find_matches)")
            result = await self._engine.run_global(session)
        outbox.extend(result.notifications)

        text = (
            f"Matching complete. Compared {result.pairs_compared} new pair(s) "
            f"and created {len(result.matches)} match(es)."
        )
        if result.matches:
            text += " Use social_get_matches to review them."
        return ToolResult.ok(text)

    # ============ Messaging ============

    async def _party_match(self, session: AsyncSession, match_id: str, profile_id: str) -> tuple[Optional[Match], Optional[ToolResult]]:
        match = await MatchService(session).get_by_id(match_id)
        if match is None:
            return None, ToolResult.error(MATCH_NOT_FOUND)
        if match.role_of(profile_id) is None:
            return None, ToolResult.error(NOT_A_PARTY)
        return match, None

    async def _send_message(self, session: AsyncSession, args: Dict[str, Any], ctx: CallContext, outbox: Outbox) -> ToolResult:
        match_id = _require_str(args, "match_id")
        content = _require_str(args, "content")
        if len(content) > self._config.max_message_length:
            raise ToolArgumentError(
                f"Message too long ({len(content)} characters, max {self._config.max_message_length})."
            )
        message_type = MessageType.TEXT
        if args.get("message_type") is not None:
            message_type = _require_choice(args, "message_type", MessageType)

        match, failure = await self._party_match(session, match_id, ctx.profile_id)
        if failure is not None:
            return failure
        if match.status != MatchStatus.ACCEPTED.value:
            return ToolResult.error(
                "Cannot message until both parties accept the match. "
                "Use social_respond_match to accept first."
            )

        message = await MessageService(session).create(match.id, ctx.profile_id, content, message_type)
        sender = await ProfileService(session).get_by_id(ctx.profile_id)
        outbox.append(await NotificationService(session).create(
            match.other_party(ctx.profile_id),
            NotificationType.NEW_MESSAGE,
            {
                "match_id": match.id,
                "message_id": message.id,
                "sender_name": sender.display_name if sender else None,
                "preview": content[:100],
            },
        ))
        return ToolResult.ok(f"Message sent! (ID: {message.id})")

    async def _get_messages(self, session: AsyncSession, args: Dict[str, Any], ctx: CallContext, outbox: Outbox) -> ToolResult:
        match_id = _require_str(args, "match_id")
        match, failure = await self._party_match(session, match_id, ctx.profile_id)
        if failure is not None:
            return failure

        messages_service = MessageService(session)
        await messages_service.mark_read(match.id, ctx.profile_id)
        limit = self._config.message_history_limit
        messages, truncated = await messages_service.list_recent_for_match(match.id, limit)
        profiles = await ProfileService(session).get_many([match.profile_a_id, match.profile_b_id])
        other = profiles.get(match.other_party(ctx.profile_id))
        header = f"Conversation with {other.display_name if other else 'your match'}:\n\n"
        if truncated:
            header += f"(Showing the latest {limit} messages. Earlier ones are not shown.)\n\n"
        return ToolResult.ok(header + format_messages(messages, ctx.profile_id, profiles))

    async def _get_notifications(self, session: AsyncSession, args: Dict[str, Any], ctx: CallContext, outbox: Outbox) -> ToolResult:
        notifications = await NotificationService(session).claim_undelivered(ctx.profile_id)
        return ToolResult.ok(format_notifications(notifications))

    # ============ Resources ============

    async def read_resource(self, uri: str, identity: Identity) -> Optional[str]:
        """JSON text of a ``social://`` resource, or None for unknown URIs.

        Reading notifications here does not mark them delivered.
        """
        async with self._database.session() as session:
            if uri == RESOURCE_MATCHES:
                matches = await MatchService(session).list_visible_for_profile(identity.profile_id)
                views = await self._match_views(session, matches, identity.profile_id)
                return json.dumps({"matches": views})
            if uri == RESOURCE_NOTIFICATIONS:
                pending = await NotificationService(session).list_undelivered(identity.profile_id)
                return json.dumps({"notifications": [n.to_event() for n in pending]})
        return None
