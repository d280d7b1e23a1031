"""
Match consent state machine: the pure transition rules.

Given a match's current status, the acting profile's role and the action,
``decide`` returns either a target status or an informative no-op.
Nothing here touches storage; applying a decision atomically is the job
of ``social_mcp.matching.lifecycle``.

    pending_a --A accept--> pending_b --B accept--> accepted
        |                       |
        +--reject (A or B)------+--> rejected

    expired is set by the maintenance sweep only.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from .models import MatchAction, MatchRole, MatchStatus


# ============ Transition table ============

VALID_TRANSITIONS: dict[tuple[MatchStatus, MatchRole, MatchAction], MatchStatus] = {
    (MatchStatus.PENDING_A, MatchRole.A, MatchAction.ACCEPT): MatchStatus.PENDING_B,
    (MatchStatus.PENDING_B, MatchRole.B, MatchAction.ACCEPT): MatchStatus.ACCEPTED,
    (MatchStatus.PENDING_A, MatchRole.A, MatchAction.REJECT): MatchStatus.REJECTED,
    (MatchStatus.PENDING_A, MatchRole.B, MatchAction.REJECT): MatchStatus.REJECTED,
    (MatchStatus.PENDING_B, MatchRole.A, MatchAction.REJECT): MatchStatus.REJECTED,
    (MatchStatus.PENDING_B, MatchRole.B, MatchAction.REJECT): MatchStatus.REJECTED,
}

TRANSITION_MESSAGES: dict[MatchStatus, str] = {
    MatchStatus.PENDING_B: "You accepted! Waiting for their response.",
    MatchStatus.ACCEPTED: "Match accepted! You can now message each other with social_send_message.",
    MatchStatus.REJECTED: "Match declined.",
}

# Out-of-turn accepts while the match is still pending
WAITING_MESSAGES: dict[tuple[MatchStatus, MatchRole], str] = {
    (MatchStatus.PENDING_B, MatchRole.A): "You already accepted. Waiting on the other party to respond.",
    (MatchStatus.PENDING_A, MatchRole.B): "Waiting on the other party to see and respond to this match first.",
}

TERMINAL_MESSAGES: dict[MatchStatus, str] = {
    MatchStatus.ACCEPTED: "Already connected! Use social_send_message to chat.",
    MatchStatus.REJECTED: "This match was declined and is closed.",
    MatchStatus.EXPIRED: "This match expired and is closed.",
}


@dataclass(frozen=True)
class Decision:
    """Result of applying an action to a status.

    ``new_status`` is None for no-ops; ``message`` is always set and is
    meant for the caller.
    """
    current: MatchStatus
    new_status: Optional[MatchStatus]
    message: str

    @property
    def is_transition(self) -> bool:
        return self.new_status is not None


def decide(status: MatchStatus, role: MatchRole, action: MatchAction) -> Decision:
    """Decide what ``action`` by ``role`` does to a match in ``status``."""
    target = VALID_TRANSITIONS.get((status, role, action))
    if target is not None:
        return Decision(status, target, TRANSITION_MESSAGES[target])

    if status.is_terminal:
        return Decision(status, None, TERMINAL_MESSAGES[status])

    return Decision(status, None, WAITING_MESSAGES[(status, role)])
