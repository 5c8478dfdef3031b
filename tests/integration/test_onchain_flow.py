# ABOUTME: Integration tests for multi-turn games mirrored to the in-memory ledger with mock proofs.
# ABOUTME: Verifies local and remote state stay in lockstep across ping and recharge turns, including retried writes.

import pytest

from proof_of_life.chain.codec import public_diff
from proof_of_life.chain.sync import OnchainTurnRunner
from proof_of_life.models.session import Beacon, Directive, TurnPhase


@pytest.fixture
def runner(session, backend, ledger, prover, test_settings, fake_sleep):
    ledger.mirror = lambda: session.state
    return OnchainTurnRunner(session, backend, prover=prover, settings=test_settings, sleep=fake_sleep)


async def play_turn(runner: OnchainTurnRunner, ping: Beacon | None) -> None:
    session = runner.session
    t = session.request_ping(ping) if ping is not None else session.recharge()
    assert t.accepted
    await runner.submit_dispatcher_turn(Directive.STAY)
    await runner.submit_evader_turn()


class TestOnchainFlow:
    """Integration tests for a full mirrored game"""

    @pytest.mark.asyncio
    async def test_four_turns_stay_in_lockstep(self, runner, session, backend):
        """
        Test alternating ping and recharge turns:
        - every turn ends with remote and local public state equal
        - battery follows ping cost and recharge amounts on both sides
        - the activity log records each confirmed transaction
        """
        await runner.bootstrap(secure=True)
        plan = [Beacon.N, None, Beacon.E, None]
        expected_battery = [80, 90, 70, 80]

        for i, (beacon, battery) in enumerate(zip(plan, expected_battery), start=1):
            await play_turn(runner, beacon)
            remote = await backend.get_session(session.state.session_id)
            assert remote.turn == i == session.state.turn
            assert remote.phase == TurnPhase.DISPATCHER
            assert remote.battery == battery == session.state.battery
            assert public_diff(session.state, remote) == {}

        assert not session.state.ended
        assert runner.health.healthy
        assert any(e.msg.startswith("TX ") and "ok dispatch" in e.msg for e in backend.log.entries)

    @pytest.mark.asyncio
    async def test_congestion_mid_game_is_absorbed(self, runner, session, ledger, sleeps):
        """Test that a congested dispatch is retried with backoff and the turn completes"""
        await runner.bootstrap(secure=True)
        ledger.fail("dispatch", "TRY_AGAIN_LATER", "txBadSeq")
        await play_turn(runner, Beacon.S)

        assert sleeps[:2] == [0.8, 1.6]
        assert ledger.attempted.count("dispatch") == 3
        assert ledger.operations.count("dispatch") == 1
        assert session.state.turn == 1

    @pytest.mark.asyncio
    async def test_ping_not_evader_turn_retried(self, runner, session, ledger, sleeps):
        """Test that a lagging NotEvaderTurn on the ping proof is retried before giving up"""
        await runner.bootstrap(secure=True)
        ledger.fail("submit_ping_proof", "HostError: Error(Contract, #7)")
        await play_turn(runner, Beacon.W)

        assert 0.9 in sleeps
        assert ledger.operations.count("submit_ping_proof") == 1
        assert session.state.turn == 1
        assert runner.health.healthy

    @pytest.mark.asyncio
    async def test_insecure_game_without_prover(self, session, backend, ledger, test_settings, fake_sleep):
        """Test that an insecure session with a dead verifier still advances via the tick"""
        ledger.mirror = lambda: session.state
        runner = OnchainTurnRunner(session, backend, prover=None, settings=test_settings, sleep=fake_sleep)
        await runner.bootstrap(secure=False)
        runner.verifier_bypass = True

        await play_turn(runner, Beacon.N)
        assert ledger.operations[-2:] == ["dispatch", "evader_tick"]
        assert session.state.turn == 1
        assert not runner.verifier_bypass
