"""Tests for the pure match transition rules."""

from __future__ import annotations

import pytest

from social_mcp.core.models import MatchAction, MatchRole, MatchStatus
from social_mcp.core.state_machine import VALID_TRANSITIONS, decide


class TestForwardTransitions:
    def test_a_accepts_pending_a(self):
        decision = decide(MatchStatus.PENDING_A, MatchRole.A, MatchAction.ACCEPT)
        assert decision.new_status == MatchStatus.PENDING_B
        assert decision.is_transition

    def test_b_accepts_pending_b(self):
        decision = decide(MatchStatus.PENDING_B, MatchRole.B, MatchAction.ACCEPT)
        assert decision.new_status == MatchStatus.ACCEPTED

    @pytest.mark.parametrize("status", [MatchStatus.PENDING_A, MatchStatus.PENDING_B])
    @pytest.mark.parametrize("role", [MatchRole.A, MatchRole.B])
    def test_either_party_can_reject_while_pending(self, status, role):
        decision = decide(status, role, MatchAction.REJECT)
        assert decision.new_status == MatchStatus.REJECTED


class TestConsentAsymmetry:
    def test_b_cannot_accept_before_a(self):
        decision = decide(MatchStatus.PENDING_A, MatchRole.B, MatchAction.ACCEPT)
        assert decision.new_status is None
        assert "waiting" in decision.message.lower()

    def test_a_accepting_twice_is_informative(self):
        decision = decide(MatchStatus.PENDING_B, MatchRole.A, MatchAction.ACCEPT)
        assert decision.new_status is None
        assert "already accepted" in decision.message.lower()


class TestTerminalStates:
    @pytest.mark.parametrize("status", [MatchStatus.ACCEPTED, MatchStatus.REJECTED, MatchStatus.EXPIRED])
    @pytest.mark.parametrize("role", [MatchRole.A, MatchRole.B])
    @pytest.mark.parametrize("action", [MatchAction.ACCEPT, MatchAction.REJECT])
    def test_terminal_states_never_move(self, status, role, action):
        decision = decide(status, role, action)
        assert decision.new_status is None
        assert decision.message

    def test_accepted_mentions_messaging(self):
        decision = decide(MatchStatus.ACCEPTED, MatchRole.A, MatchAction.ACCEPT)
        assert "social_send_message" in decision.message

    def test_no_transition_leaves_a_terminal_state(self):
        for (status, _role, _action) in VALID_TRANSITIONS:
            assert not status.is_terminal
