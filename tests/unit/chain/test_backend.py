# ABOUTME: Unit tests for the game contract client over the in-memory ledger.
# ABOUTME: Covers argument encoding, address checks, batch splitting, tower fallback and session-key handling.

import pytest

from proof_of_life.chain.backend import (
    DISPATCHER_ALLOW_MASK,
    ChainRole,
    EVADER_ALLOW_MASK,
    SessionKeyParams,
    SessionKeyScope,
    SessionPermission,
)
from proof_of_life.chain.exceptions import AuthorizationFailure, FatalChainError
from proof_of_life.models.session import Beacon, Coord, Directive
from proof_of_life.orchestration.exceptions import ValidationError
from proof_of_life.world.beacons import DEFAULT_BEACONS
from proof_of_life.zk.encoding import ProofBundle, ProofKind

from tests.conftest import DISPATCHER_ADDR, EVADER_ADDR

OVERSIZED = "simulation failed: HostError: Error(Budget, ExceededLimit)"


def move_bundle(i: int) -> ProofBundle:
    field = "0x" + f"{i:02x}" * 32
    return ProofBundle(
        kind=ProofKind.MOVEMENT_TRANSITION,
        layout_version=3,
        proof=b"\xab" * 16,
        fields=[field, field, field, field],
        commitment_old=field,
        commitment_new=field,
    )


class TestLifecycle:
    """Test suite for session start and mode calls"""

    @pytest.mark.asyncio
    async def test_invalid_address_never_sends(self, backend, ledger):
        """Test that malformed player addresses are rejected before any ledger call"""
        with pytest.raises(ValidationError, match="dispatcher"):
            await backend.start_game(7, "not-an-address", EVADER_ADDR)
        with pytest.raises(ValidationError, match="evader"):
            await backend.start_game(7, DISPATCHER_ADDR, "G123")
        assert ledger.attempted == []

    @pytest.mark.asyncio
    async def test_start_game_creates_session(self, backend, ledger):
        """Test that a started game can be read back"""
        result = await backend.start_game(7, DISPATCHER_ADDR, EVADER_ADDR, alpha_max=4)
        assert result.confirmed
        remote = await backend.get_session(7)
        assert remote.alpha == 4
        assert remote.turn == 0

    @pytest.mark.asyncio
    async def test_session_key_start_sets_insecure_mode(self, backend, ledger):
        """Test that an insecure start issues a follow-up mode switch"""
        params = SessionKeyParams(delegate="G" + "C" * 55, ttl_ledgers=1000, max_writes=50)
        await backend.start_game_with_session_key(7, DISPATCHER_ADDR, EVADER_ADDR, params, insecure_mode=True)
        assert ledger.operations == ["start_game_with_session_key", "set_insecure_mode"]
        assert (await backend.get_session(7)).insecure_mode


class TestDispatcherCalls:
    """Test suite for dispatcher entrypoints"""

    @pytest.mark.asyncio
    async def test_dispatch_args(self, backend, ledger):
        """Test that dispatch carries the tower index and tagged command"""
        await backend.start_game(7, DISPATCHER_ADDR, EVADER_ADDR)
        await backend.dispatch(7, Beacon.W, Directive.GO_GARDEN)
        sent = ledger.sent[-1]
        assert sent.operation == "dispatch"
        assert sent.args["tower_id"] == 3
        assert sent.args["command"] == {"tag": "GoRoom", "values": [0]}
        assert sent.args["dispatcher"] == DISPATCHER_ADDR

    @pytest.mark.asyncio
    async def test_delegate_signs_when_active(self, backend, ledger):
        """Test that writes act as the session key when one is set"""
        delegate = "G" + "C" * 55
        backend.use_session_key(delegate)
        await backend.start_game(7, DISPATCHER_ADDR, EVADER_ADDR)
        await backend.recharge_with_command(7, Directive.STAY)
        assert ledger.sent[-1].args["dispatcher"] == delegate

    @pytest.mark.asyncio
    async def test_auth_failure_drops_delegate(self, backend, ledger):
        """Test that a persistent auth failure disables delegated mode"""
        backend.use_session_key("G" + "C" * 55)
        ledger.fail("recharge", "txBadAuth", "txBadAuth")
        with pytest.raises(AuthorizationFailure):
            await backend.recharge(7)
        assert backend.delegate is None
        assert backend.acting_as == DISPATCHER_ADDR
        assert backend.log.entries[-1].level == "WARN"

    @pytest.mark.asyncio
    async def test_failed_write_logged(self, backend, ledger):
        """Test that a fatal write appears in the activity log"""
        ledger.fail("recharge", "HostError: Error(Contract, #2)")
        with pytest.raises(FatalChainError):
            await backend.recharge(7)
        assert backend.log.entries[-1].level == "ERROR"
        assert "recharge" in backend.log.entries[-1].msg


class TestEvaderCalls:
    """Test suite for evader entrypoints"""

    @pytest.mark.asyncio
    async def test_proof_kind_checked(self, backend, ledger):
        """Test that a proof of the wrong kind is refused locally"""
        with pytest.raises(ValidationError):
            await backend.submit_ping_proof(7, Beacon.N, move_bundle(1))
        with pytest.raises(ValidationError):
            await backend.submit_multi_move_proof(7, [])
        assert ledger.attempted == []

    @pytest.mark.asyncio
    async def test_multi_move_split_on_budget(self, backend, ledger):
        """Test that an oversized batch is split in order and resubmitted"""
        await backend.start_game(7, DISPATCHER_ADDR, EVADER_ADDR)
        ledger.fail("submit_multi_move_proof", OVERSIZED)
        bundles = [move_bundle(i) for i in range(1, 4)]
        await backend.submit_multi_move_proof(7, bundles)

        batches = [i.args["entries"] for i in ledger.sent if i.operation == "submit_multi_move_proof"]
        assert [len(b) for b in batches] == [2, 1]
        firsts = [b[0]["new_commitment"] for b in batches]
        assert firsts == [bytes([1]) * 32, bytes([3]) * 32]

    @pytest.mark.asyncio
    async def test_single_move_not_split(self, backend, ledger):
        """Test that a one-step batch failure is raised as is"""
        ledger.fail("submit_multi_move_proof", OVERSIZED)
        with pytest.raises(FatalChainError):
            await backend.submit_multi_move_proof(7, [move_bundle(1)])


class TestReads:
    """Test suite for read-only calls"""

    @pytest.mark.asyncio
    async def test_towers_from_contract(self, backend, ledger):
        """Test that contract towers override the defaults"""
        ledger.towers = {"n_x": 4, "n_y": 0, "e_x": 9, "e_y": 4, "s_x": 4, "s_y": 9, "w_x": 0, "w_y": 4}
        towers = await backend.get_towers()
        assert towers[Beacon.N] == Coord(x=4, y=0)
        assert towers[Beacon.W] == Coord(x=0, y=4)
        assert backend.log.entries[-1].msg.startswith("TOWERS N=(4,0)")

    @pytest.mark.asyncio
    async def test_towers_fallback(self, backend, ledger):
        """Test that a failing tower read falls back to defaults with a warning"""
        ledger.towers = None
        assert await backend.get_towers() == DEFAULT_BEACONS
        assert backend.log.entries[-1].level == "WARN"

    @pytest.mark.asyncio
    async def test_verifiers(self, backend):
        """Test that the verifier triple is parsed"""
        verifiers = await backend.get_verifiers()
        assert verifiers.ping == "CPINGVERIFIER"
        assert verifiers.move == "CMOVEVERIFIER"

    @pytest.mark.asyncio
    async def test_missing_session_key_scope(self, backend):
        """Test that an empty option reads as None"""
        assert await backend.get_session_key_scope(DISPATCHER_ADDR, 7, ChainRole.DISPATCHER) is None


class TestSessionKeyScope:
    """Test suite for SessionKeyScope"""

    def test_permissions_and_remaining(self):
        """Test allow-mask checks and remaining write count"""
        scope = SessionKeyScope(
            owner=DISPATCHER_ADDR,
            delegate="G" + "C" * 55,
            session_id=7,
            role="Dispatcher",
            expires_ledger=500,
            max_writes=10,
            writes_used=12,
            allow_mask=int(DISPATCHER_ALLOW_MASK),
        )
        assert scope.allows(SessionPermission.DISPATCH)
        assert not scope.allows(SessionPermission.SUBMIT_PING_PROOF)
        assert scope.remaining_writes == 0

    def test_masks_disjoint(self):
        """Test that no permission is granted to both roles"""
        assert int(DISPATCHER_ALLOW_MASK) & int(EVADER_ALLOW_MASK) == 0
