"""
Match views and human-readable tool output.

``build_match_view`` is where the privacy rule lives: the counterpart's
bio is only included once the match is accepted.
"""

from __future__ import annotations

from typing import Any, Dict, Mapping, Optional, Sequence

from social_mcp.core.models import MatchRole, MatchStatus
from social_mcp.database.models import Intent, Match, Message, Notification, Profile

NOT_LOGGED_IN = (
    "Not logged in. Use social_register to create a profile or social_login to resume one, "
    "or pass profile_id directly in your request."
)

_STATUS_LABELS = {
    MatchStatus.PENDING_A: "waiting for first response",
    MatchStatus.PENDING_B: "waiting for second response",
    MatchStatus.ACCEPTED: "connected",
    MatchStatus.REJECTED: "declined",
    MatchStatus.EXPIRED: "expired",
}


def requires_action(match: Match, viewer_id: str) -> bool:
    status = MatchStatus(match.status)
    role = match.role_of(viewer_id)
    return (status == MatchStatus.PENDING_A and role == MatchRole.A) or (
        status == MatchStatus.PENDING_B and role == MatchRole.B
    )


def build_match_view(
    match: Match,
    viewer_id: str,
    profiles: Mapping[str, Profile],
    intents: Mapping[str, Intent],
) -> Dict[str, Any]:
    """Describe a match from one party's point of view."""
    status = MatchStatus(match.status)
    is_a = viewer_id == match.profile_a_id
    other_id = match.profile_b_id if is_a else match.profile_a_id
    my_intent = intents.get(match.intent_a_id if is_a else match.intent_b_id)
    their_intent = intents.get(match.intent_b_id if is_a else match.intent_a_id)
    other = profiles.get(other_id)

    other_profile: Dict[str, Any] = {
        "id": other_id,
        "display_name": other.display_name if other else "Unknown",
    }
    if status == MatchStatus.ACCEPTED and other is not None:
        other_profile["bio"] = other.bio
        other_profile["location"] = other.location

    return {
        "id": match.id,
        "status": status.value,
        "match_score": match.match_score,
        "match_reason": match.match_reason,
        "requires_my_action": requires_action(match, viewer_id),
        "expires_at": match.expires_at.isoformat() if match.expires_at else None,
        "my_intent": _intent_view(my_intent),
        "their_intent": _intent_view(their_intent),
        "other_profile": other_profile,
    }


def _intent_view(intent: Optional[Intent]) -> Optional[Dict[str, Any]]:
    if intent is None:
        return None
    return {"id": intent.id, "category": intent.category, "description": intent.description}


# ============ Text rendering ============

def format_profile(profile: Profile) -> str:
    lines = [f"Display Name: {profile.display_name}", f"Profile ID: {profile.id}"]
    if profile.bio:
        lines.append(f"Bio: {profile.bio}")
    if profile.location:
        lines.append(f"Location: {profile.location}")
    if profile.created_at:
        lines.append(f"Member since: {profile.created_at.date().isoformat()}")
    return "\n".join(lines)


def format_intents(intents: Sequence[Intent]) -> str:
    if not intents:
        return "No active intents. Use social_set_intent to create one."
    lines = ["Your active intents:"]
    for intent in intents:
        lines.append(f"- [{intent.category}] {intent.description} (ID: {intent.id})")
    return "\n".join(lines)


def format_match_views(views: Sequence[Dict[str, Any]]) -> str:
    if not views:
        return "No matches yet. Set an intent with social_set_intent and we'll introduce you when someone compatible joins."

    needs_action = [v for v in views if v["requires_my_action"]]
    lines = [f"You have {len(views)} match(es), {len(needs_action)} waiting on you.", ""]
    for view in views:
        other = view["other_profile"]
        label = _STATUS_LABELS[MatchStatus(view["status"])]
        lines.append(f"- {other['display_name']} ({round(view['match_score'] * 100)}% match)")
        if view["their_intent"]:
            lines.append(f"  Their intent: [{view['their_intent']['category']}] {view['their_intent']['description']}")
        if view["match_reason"]:
            lines.append(f"  Why: {view['match_reason']}")
        if "bio" in other and other["bio"]:
            lines.append(f"  Bio: {other['bio']}")
        turn = " - your move (social_respond_match)" if view["requires_my_action"] else ""
        lines.append(f"  Status: {label}{turn}")
        lines.append(f"  Match ID: {view['id']}")
    return "\n".join(lines)


def format_messages(
    messages: Sequence[Message],
    viewer_id: str,
    profiles: Mapping[str, Profile],
) -> str:
    if not messages:
        return "No messages yet. Say hello with social_send_message!"
    lines = []
    for message in messages:
        if message.sender_profile_id == viewer_id:
            sender = "You"
        else:
            other = profiles.get(message.sender_profile_id)
            sender = other.display_name if other else "Them"
        stamp = message.created_at.strftime("%Y-%m-%d %H:%M") if message.created_at else ""
        lines.append(f"[{stamp}] {sender}: {message.content}")
    return "\n".join(lines)


def describe_notification(notification: Notification) -> str:
    payload = notification.payload or {}
    kind = notification.notification_type
    if kind == "new_match":
        who = payload.get("display_name") or "someone"
        return f"New match with {who}: {payload.get('reason', '')} (match {payload.get('match_id')})"
    if kind == "connection_request":
        return f"Someone accepted your introduction and is waiting on you (match {payload.get('match_id')})"
    if kind == "match_accepted":
        return f"Match accepted! You can now chat (match {payload.get('match_id')})"
    if kind == "new_message":
        preview = payload.get("preview", "")
        return f"New message from {payload.get('sender_name', 'your match')}: {preview} (match {payload.get('match_id')})"
    return f"{kind}: {payload}"


def format_notifications(notifications: Sequence[Notification]) -> str:
    if not notifications:
        return "No new notifications."
    lines = [f"{len(notifications)} new notification(s):"]
    lines.extend(f"- {describe_notification(n)}" for n in notifications)
    return "\n".join(lines)
