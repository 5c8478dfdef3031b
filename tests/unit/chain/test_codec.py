# ABOUTME: Unit tests for ledger record decoding and the local/remote public-field merge.
# ABOUTME: Covers phase normalization, u32 validation, envelope unwrapping and command encoding.

import pytest
from pydantic import ValidationError as PydanticValidationError

from proof_of_life.chain.codec import (
    directive_to_command,
    has_public_diff,
    hex_to_buf32,
    merge_public_fields,
    normalize_phase,
    parse_remote_session,
    public_diff,
)
from proof_of_life.chain.exceptions import FatalChainError
from proof_of_life.models.session import Beacon, Directive, Outcome, SessionState, TurnPhase, TurnStep


def record(**overrides) -> dict:
    base = {
        "session_id": 7,
        "dispatcher": "GA",
        "evader": "GB",
        "commitment": None,
        "battery": 100,
        "ping_cost": 20,
        "recharge_amount": 10,
        "turn": 0,
        "phase": 0,
        "ended": False,
        "moved_this_turn": False,
        "alpha": 5,
        "alpha_max": 5,
        "ward_x": 5,
        "ward_y": 5,
        "ward_hidden": False,
        "hide_streak": 0,
        "pending_beacon": None,
    }
    base.update(overrides)
    return base


def local_state(**overrides) -> SessionState:
    return SessionState(session_id=7, dispatcher="GA", evader="GB", **overrides)


class TestNormalizePhase:
    """Test suite for normalize_phase"""

    @pytest.mark.parametrize("raw,expected", [
        (0, TurnPhase.DISPATCHER),
        (1, TurnPhase.EVADER),
        ("0", TurnPhase.DISPATCHER),
        ("1", TurnPhase.EVADER),
        ("Dispatcher", TurnPhase.DISPATCHER),
        ("EvaderTurn", TurnPhase.EVADER),
        ({"tag": "Evader", "values": None}, TurnPhase.EVADER),
        ({"tag": "Phase", "values": [1]}, TurnPhase.EVADER),
        ({"value": "0"}, TurnPhase.DISPATCHER),
    ])
    def test_known_shapes(self, raw, expected):
        """Test that every ledger phase shape is understood"""
        assert normalize_phase(raw) == expected

    @pytest.mark.parametrize("raw", [None, 7, "limbo", {"tag": "Other"}, [1]])
    def test_unknown_fails_closed(self, raw):
        """Test that unrecognized phases read as dispatcher"""
        assert normalize_phase(raw) == TurnPhase.DISPATCHER


class TestParseRemoteSession:
    """Test suite for parse_remote_session"""

    def test_ok_envelope(self):
        """Test unwrapping an Ok result"""
        remote = parse_remote_session({"tag": "Ok", "values": [record(phase=1, pending_beacon=2)]})
        assert remote.phase == TurnPhase.EVADER
        assert remote.pending_beacon == Beacon.S

    def test_value_envelope_and_bare_record(self):
        """Test the value wrapper and an unwrapped record"""
        assert parse_remote_session({"value": record(turn=3)}).turn == 3
        assert parse_remote_session(record(turn=4)).turn == 4

    def test_err_envelope(self):
        """Test that an Err result is fatal"""
        with pytest.raises(FatalChainError, match="on-chain error"):
            parse_remote_session({"tag": "Err", "values": [1]})

    def test_unexpected_shape(self):
        """Test that garbage is fatal"""
        with pytest.raises(FatalChainError, match="unexpected shape"):
            parse_remote_session([1, 2, 3])

    def test_numeric_strings_accepted(self):
        """Test that u32 fields given as strings are coerced"""
        assert parse_remote_session(record(battery="80")).battery == 80

    @pytest.mark.parametrize("field,value", [("battery", -1), ("turn", 2**32), ("alpha", "many")])
    def test_u32_range_enforced(self, field, value):
        """Test that out-of-range numbers are rejected"""
        with pytest.raises(PydanticValidationError):
            parse_remote_session(record(**{field: value}))

    def test_commitment_bytes_rendered_as_hex(self):
        """Test that byte commitments become 0x-prefixed hex"""
        remote = parse_remote_session(record(commitment=bytes(32)))
        assert remote.commitment == "0x" + "00" * 32


class TestMerge:
    """Test suite for merge_public_fields and public_diff"""

    def test_remote_fields_overlay_local(self):
        """Test that the ledger wins for public fields while the log stays local"""
        local = local_state(log=["hello"])
        remote = parse_remote_session(record(turn=2, alpha=3, ward_x=4, battery=60))
        merged = merge_public_fields(local, remote)
        assert (merged.turn, merged.alpha, merged.ward_x, merged.battery) == (2, 3, 4, 60)
        assert merged.log == ["hello"]

    def test_deferred_dispatcher_state_preserved(self):
        """Test that a chosen but unsent ping survives a refresh"""
        local = local_state(turn_step=TurnStep.COMMAND, battery=80, pending_beacon=Beacon.E)
        remote = parse_remote_session(record(battery=100))
        merged = merge_public_fields(local, remote)
        assert merged.battery == 80
        assert merged.pending_beacon == Beacon.E
        assert merged.turn_step == TurnStep.COMMAND
        assert public_diff(local, remote) == {}

    def test_commitment_flag_never_cleared(self):
        """Test that a locally armed commitment stays armed"""
        merged = merge_public_fields(local_state(commitment_set=True), parse_remote_session(record()))
        assert merged.commitment_set

    def test_remote_dispatcher_phase_resets_step(self):
        """Test that a new dispatcher turn starts at the action step"""
        local = local_state(phase=TurnPhase.EVADER, turn_step=TurnStep.COMMAND)
        merged = merge_public_fields(local, parse_remote_session(record(turn=1)))
        assert merged.phase == TurnPhase.DISPATCHER
        assert merged.turn_step == TurnStep.ACTION

    @pytest.mark.parametrize(
        "overrides,expected",
        [
            ({"battery": 0}, Outcome.BLACKOUT),
            ({"alpha": 0}, Outcome.PANIC),
            ({"turn": 10}, Outcome.EXTRACTION_WIN),
            ({"turn": 3}, Outcome.CAPTURE),
        ],
    )
    def test_remote_end_records_outcome(self, overrides, expected):
        """Test that a session ended only on the ledger gets an outcome from its public fields"""
        merged = merge_public_fields(local_state(), parse_remote_session(record(ended=True, **overrides)))
        assert merged.ended
        assert merged.outcome == expected

    def test_local_outcome_kept(self):
        """Test that an outcome decided locally is not replaced by the ledger reading"""
        local = local_state(ended=True, outcome=Outcome.PANIC)
        merged = merge_public_fields(local, parse_remote_session(record(ended=True, turn=10)))
        assert merged.outcome == Outcome.PANIC

    def test_diff_reports_pairs(self):
        """Test that differing fields are listed as (local, remote)"""
        local = local_state(phase=TurnPhase.EVADER, turn=1)
        diff = public_diff(local, parse_remote_session(record(turn=2, ward_y=6)))
        assert diff["turn"] == (1, 2)
        assert diff["phase"] == (TurnPhase.EVADER, TurnPhase.DISPATCHER)
        assert diff["ward_y"] == (5, 6)
        assert has_public_diff(local, parse_remote_session(record(turn=2)))


class TestCommandEncoding:
    """Test suite for directive_to_command and hex_to_buf32"""

    @pytest.mark.parametrize("directive,command", [
        (Directive.STAY, {"tag": "Stay", "values": None}),
        (Directive.HIDE, {"tag": "Hide", "values": None}),
        (Directive.WALK_N, {"tag": "WalkGarden", "values": [0]}),
        (Directive.WALK_W, {"tag": "WalkGarden", "values": [3]}),
        (Directive.GO_GARDEN, {"tag": "GoRoom", "values": [0]}),
        (Directive.GO_GRAND_HALL, {"tag": "GoRoom", "values": [7]}),
    ])
    def test_directive_commands(self, directive, command):
        """Test the tagged command for each directive family"""
        assert directive_to_command(directive) == command

    def test_hex_to_buf32(self):
        """Test decoding with and without the 0x prefix"""
        assert hex_to_buf32("0x" + "11" * 32) == bytes([0x11]) * 32
        assert hex_to_buf32("22" * 32) == bytes([0x22]) * 32
        with pytest.raises(ValueError, match="32-byte"):
            hex_to_buf32("0x1234")
