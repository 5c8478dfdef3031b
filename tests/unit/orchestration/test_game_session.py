# ABOUTME: Unit tests for the GameSession controller.
# ABOUTME: Validates secret ownership, strict mode, full local turns and the five-ping blackout.

import random

import pytest

from proof_of_life.models.session import Beacon, Coord, Directive, Outcome, Stage
from proof_of_life.orchestration.exceptions import MissingSecret, SessionEnded, ValidationError
from proof_of_life.orchestration.game_session import GameSession

from tests.conftest import DISPATCHER_ADDR, EVADER_ADDR, place_pursuer


class TestStart:
    """Test suite for GameSession.start"""

    def test_evader_client_holds_secret(self, rules):
        """Test that the evader's client creates and stores a secret"""
        s = GameSession.start(7, DISPATCHER_ADDR, EVADER_ADDR, rules, rng=random.Random(3))
        secret = s.require_secret()
        assert secret.commitment_hex.startswith("0x")
        assert len(secret.commitment_hex) == 66
        assert s.stage == Stage.DISPATCHER_ACTION

    def test_dispatcher_client_has_no_secret(self, rules):
        """Test that a dispatcher-only client never sees the pursuer"""
        s = GameSession.start(7, DISPATCHER_ADDR, EVADER_ADDR, rules, holds_secret=False)
        assert s.secret() is None
        with pytest.raises(MissingSecret):
            s.require_secret()

    def test_secret_never_in_public_state(self, session):
        """Test that the public state carries no pursuer coordinate"""
        dumped = session.state.model_dump()
        assert "pursuer" not in dumped
        assert "salt" not in dumped


class TestLocalTurn:
    """Test suite for a full local turn"""

    def test_ping_command_resolve(self, session):
        """Test one complete turn"""
        assert session.request_ping(Beacon.E).accepted
        assert session.stage == Stage.DISPATCHER_COMMAND
        assert session.set_command(Directive.STAY).accepted
        assert session.stage == Stage.EVADER
        t = session.resolve_evader_phase()
        assert t.accepted
        assert session.state.turn == 1
        assert session.require_secret().pursuer == t.trace.destination

    def test_legal_directives_follow_ward(self, session):
        """Test that the directive list is computed from the current ward tile"""
        assert Directive.STAY in session.legal_directives()
        assert Directive.HIDE in session.legal_directives()

    def test_plan_pursuer_turn(self, session):
        """Test the pursuer plan exposed to the evader"""
        session.recharge()
        session.set_command(Directive.STAY)
        plan = session.plan_pursuer_turn()
        assert plan.origin == Coord(x=9, y=1)
        assert plan.max_steps == 1


class TestBlackout:
    """Test suite for the battery blackout"""

    def test_five_pings_black_out(self, rules):
        """Test that five pings from a full battery end the game at zero"""
        s = GameSession.start(7, DISPATCHER_ADDR, EVADER_ADDR, rules, ward=Coord(x=5, y=1), strict=True)
        place_pursuer(s, Coord(x=8, y=8))
        s.arm_commitment()

        for i in range(5):
            s.request_ping(Beacon.N)
            if i < 4:
                s.set_command(Directive.STAY)
                s.resolve_evader_phase()

        assert s.state.battery == 0
        assert s.state.ended
        assert s.state.outcome == Outcome.BLACKOUT
        assert s.state.turn == 4


class TestStrictMode:
    """Test suite for strict sessions"""

    def test_rejection_raises(self, rules):
        """Test that a rejected action raises ValidationError with its stage"""
        s = GameSession.start(7, DISPATCHER_ADDR, EVADER_ADDR, rules, strict=True)
        with pytest.raises(ValidationError, match="NO COMMITMENT") as exc_info:
            s.request_ping(Beacon.N)
        assert exc_info.value.stage == "dispatcher.action"

    def test_ended_session_raises(self, rules):
        """Test that a terminal strict session refuses further actions"""
        s = GameSession.start(7, DISPATCHER_ADDR, EVADER_ADDR, rules, strict=True)
        s.replace_state(s.state.model_copy(update={"ended": True, "outcome": Outcome.CAPTURE}))
        with pytest.raises(SessionEnded, match="capture"):
            s.recharge()

    def test_lenient_rejection_is_logged(self, session):
        """Test that a non-strict session records the rejection instead"""
        t = session.set_command(Directive.STAY)
        assert not t.accepted
        assert session.state.log[-1].startswith("ERR:")


class TestSecretLifecycle:
    """Test suite for secret replacement and abandonment"""

    def test_abandon_discards_secret(self, session):
        """Test that abandoning drops the secret"""
        session.abandon()
        assert session.secret() is None

    def test_replace_secret_without_store(self, rules, session):
        """Test that a dispatcher-only client cannot adopt a secret"""
        other = GameSession.start(7, DISPATCHER_ADDR, EVADER_ADDR, rules, holds_secret=False)
        with pytest.raises(MissingSecret):
            other.replace_secret(session.require_secret())
