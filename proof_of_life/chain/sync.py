# ABOUTME: On-chain turn runner mirroring each locally resolved turn to the ledger with proofs.
# ABOUTME: Owns the verifier bypass and tick fallback rules, and polls remote state back into the local session.

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any, NoReturn, TypeVar

from pydantic import BaseModel

from proof_of_life.config.settings import Settings, get_settings
from proof_of_life.models.secret import SecretState
from proof_of_life.models.session import Beacon, Coord, Directive, Stage, TurnPhase
from proof_of_life.orchestration.exceptions import ValidationError
from proof_of_life.orchestration.game_session import GameSession
from proof_of_life.orchestration.locks import PipelineLock
from proof_of_life.orchestration.state_machine import Transition
from proof_of_life.utils.logging import log_turn_event
from proof_of_life.utils.polling import poll_until
from proof_of_life.zk.compatibility import evaluate_ping_verifier_compatibility
from proof_of_life.zk.encoding import ProofBundle
from proof_of_life.zk.prover_client import (
    MoveProofRequest,
    PingDistanceRequest,
    ProverClient,
    TurnStatusRequest,
)

from .backend import ChainBackend, SessionKeyParams
from .classify import ContractCode, has_contract_code, is_desync_error
from .codec import RemoteSession, merge_public_fields, public_diff
from .exceptions import ChainError, FatalChainError, ProofRejected, StateDesync, Unconfirmed
from .transport import TxResult

T = TypeVar("T")


class TurnSync(BaseModel):
    """What the dispatcher half of a turn left on the ledger"""

    turn: int
    had_ping: bool
    beacon: Beacon | None = None
    ping_verified: bool = False


class OnchainTurnRunner:
    """
    Mirrors a local GameSession to the game contract.

    Dispatcher turns send one combined transaction (dispatch or
    recharge_with_command) and, after a ping, the ping proof. Evader turns
    send movement proofs and then either the status proof (ping turns) or an
    evader_tick (recharge turns, dev mode, verifier bypass). The tick is only
    sent without verified movement when the session is insecure.
    """

    PING_SUBMIT_ATTEMPTS = 6

    def __init__(
        self,
        session: GameSession,
        backend: ChainBackend,
        prover: ProverClient | None = None,
        settings: Settings | None = None,
        lock: PipelineLock | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.session = session
        self.backend = backend
        self.prover = prover
        self.settings = settings or get_settings()
        self.lock = lock or PipelineLock(self.settings.action_lock_watchdog_seconds)
        self.dev_mode = self.settings.dev_mode
        self.verifier_bypass = False
        self._pending: TurnSync | None = None
        self._sleep = sleep

    @property
    def session_id(self) -> int:
        return self.session.state.session_id

    @property
    def health(self):
        return self.backend.writer.health

    @property
    def log(self):
        return self.backend.log

    # --- Helpers -----------------------------------------------------------

    def _desync(self, reason: str) -> NoReturn:
        self.health.mark_desynced(reason)
        self.log.warn(
            f"ONCHAIN: session desynchronized ({reason}). "
            "Disabling on-chain mutations for this session; restart required."
        )
        raise StateDesync(reason)

    async def _run_locked(self, label: str, fn: Callable[[], Awaitable[T]]) -> T:
        # The lock is taken before fn touches the local session.
        if not self.lock.try_acquire(label):
            raise ValidationError(f"ACTION IN FLIGHT ({self.lock.holder})")
        try:
            return await fn()
        finally:
            self.lock.release(label)

    def _require_confirmed(self, result: TxResult, what: str) -> None:
        if not result.confirmed:
            self.log.error(f"ONCHAIN: {what} tx {result.tx_hash} never confirmed; session setup stopped")
            raise Unconfirmed(f"{what} was submitted but its final status is unknown", tx_hash=result.tx_hash)

    async def _guard(self, call: Awaitable[T], what: str) -> T:
        try:
            return await call
        except (StateDesync, ProofRejected):
            raise
        except ChainError as e:
            if is_desync_error(e):
                self._desync(f"{what} mismatch")
            raise

    async def _remote_insecure(self) -> bool:
        try:
            return (await self.backend.get_session(self.session_id)).insecure_mode
        except ChainError:
            # Unknown reads as secure so a bypass is never enabled by mistake.
            return False

    def _on_proof_rejected(self, insecure: bool, what: str, err: ProofRejected) -> None:
        if not insecure:
            self.log.warn(
                f"ONCHAIN: {what} verifier rejected proof while session is secure. "
                "Bypass disabled; stopping local progression."
            )
            self.health.mark_desynced(f"{what} verifier rejected proof in secure mode")
            raise err
        if not self.verifier_bypass:
            self.verifier_bypass = True
            self.log.warn(
                f"ONCHAIN: {what} verifier rejected proof (#22 InvalidProof). Session is insecure; "
                "enabling one-time verifier bypass, evader_tick keeps turns synchronized."
            )

    def _adopt(self, secret: SecretState, commitment: str | None) -> None:
        if commitment is None or self.session.store is None:
            return
        self.session.replace_secret(self.session.store.adopt_commitment(secret, commitment))

    async def _read_session(self) -> RemoteSession:
        return await self.backend.get_session(self.session_id)

    async def _poll(self, predicate: Callable[[RemoteSession], bool], attempts: int | None = None):
        return await poll_until(
            self._read_session,
            predicate,
            interval=self.settings.poll_interval_seconds,
            max_attempts=attempts or self.settings.poll_max_attempts,
        )

    # --- Session setup -----------------------------------------------------

    async def bootstrap(self, secure: bool = True, session_key: SessionKeyParams | None = None) -> RemoteSession:
        """
        Create the remote session, then load towers and the remote state.

        Secure sessions run the verifier compatibility preflight first and
        fail closed; dev mode always plays insecure.

        Raises:
            FatalChainError: When the secure-mode preflight fails
            Unconfirmed: When a setup write was accepted but never confirmed
        """
        secure = secure and not self.dev_mode
        state = self.session.state
        rules = self.session.rules

        if secure:
            verifiers = await self.backend.get_verifiers()
            decision = evaluate_ping_verifier_compatibility(
                verifiers.ping,
                secure_mode=True,
                expected_ping_verifier=self.settings.expected_ping_verifier,
            )
            if not decision.ok:
                for reason in decision.reasons:
                    self.log.error(f"ONCHAIN: {reason}")
                raise FatalChainError(decision.reasons[0])

        if session_key is not None:
            started = await self.backend.start_game_with_session_key(
                self.session_id, state.dispatcher, state.evader, session_key, insecure_mode=not secure,
            )
            self._require_confirmed(started, "start_game_with_session_key")
            self.backend.use_session_key(session_key.delegate)
        else:
            started = await self.backend.start_game(
                self.session_id, state.dispatcher, state.evader,
                alpha_max=rules.alpha_max, strong_radius_sq=rules.strong_radius_sq,
            )
            self._require_confirmed(started, "start_game")
            if not secure:
                self._require_confirmed(
                    await self.backend.set_insecure_mode(self.session_id, True), "set_insecure_mode",
                )

        if secure:
            self._require_confirmed(await self.backend.lock_secure_mode(self.session_id), "lock_secure_mode")

        self.session.beacons = await self.backend.get_towers()
        if not self.session.state.commitment_set and self.session.store is not None:
            self.session.arm_commitment()
        return await self.pull()

    async def pull(self) -> RemoteSession:
        """Read the remote session once and merge its public fields"""
        remote = await self._read_session()
        self.session.replace_state(merge_public_fields(self.session.state, remote))
        return remote

    # --- Dispatcher half ---------------------------------------------------

    async def submit_dispatcher_turn(self, directive: Directive) -> TurnSync:
        """
        Apply the ward directive locally, then send the deferred dispatcher action.

        The local ping/recharge must already have been applied (stage
        dispatcher.command). Local rejections raise ValidationError without
        touching the network.
        """
        state = self.session.state
        if state.stage != Stage.DISPATCHER_COMMAND:
            raise ValidationError("NOT DISPATCHER COMMAND STEP", stage=state.stage.value)
        self.health.ensure_writable("dispatch")

        beacon = state.pending_beacon
        turn = state.turn

        async def run() -> TurnSync:
            transition = self.session.set_command(directive)
            if not transition.accepted:
                raise ValidationError(transition.rejection or "command rejected", stage=state.stage.value)
            if beacon is None:
                await self._guard(self.backend.recharge_with_command(self.session_id, directive), "recharge_with_command")
                sync = TurnSync(turn=turn, had_ping=False)
            else:
                await self._guard(self.backend.dispatch(self.session_id, beacon, directive), "dispatch")
                remote = await self._await_ping_phase(beacon)
                if remote.turn != turn:
                    self.log.warn(
                        f"ONCHAIN: authoritative turn differs from local simulation "
                        f"local={turn} onchain={remote.turn}; using on-chain turn for proofs."
                    )
                verified = await self._prove_ping(beacon, remote)
                sync = TurnSync(turn=remote.turn, had_ping=True, beacon=beacon, ping_verified=verified)
            self._pending = sync
            return sync

        return await self._run_locked("dispatch", run)

    async def _await_ping_phase(self, beacon: Beacon) -> RemoteSession:
        outcome = await self._poll(lambda s: s.phase == TurnPhase.EVADER and s.pending_beacon == beacon)
        if outcome.ok and outcome.value is not None:
            return outcome.value
        last = outcome.value
        if last is None:
            self._desync("post-dispatch session fetch failed")
        self._desync(
            f"post-dispatch did not converge (phase={last.phase.value}, "
            f"pending_tower={last.pending_beacon.value if last.pending_beacon else None}, expected_tower={beacon.value})"
        )

    async def _prove_ping(self, beacon: Beacon, remote: RemoteSession) -> bool:
        if self.dev_mode:
            self.log.warn(f"DEV MODE: skipping submit_ping_proof session={self.session_id} turn={remote.turn}")
            return False
        if self.verifier_bypass:
            if not remote.insecure_mode:
                self.verifier_bypass = False
                self._desync("verifier bypass requested while session is secure mode")
            self.log.warn(f"ONCHAIN: verifier bypass active; skipping submit_ping_proof turn={remote.turn}")
            return False
        if self.prover is None:
            raise ValidationError("no prover configured for a secure session")

        secret = self.session.require_secret()
        tower = self.session.beacons[beacon]
        bundle = await self.prover.ping_distance(PingDistanceRequest(
            x=secret.pursuer.x,
            y=secret.pursuer.y,
            salt=secret.salt,
            tower_x=tower.x,
            tower_y=tower.y,
            session_id=self.session_id,
            turn=remote.turn,
        ))
        local_d2 = self.session.state.last_ping_d2
        if local_d2 is not None and bundle.distance_squared != local_d2:
            self.log.warn(f"PING MISMATCH local_d2={local_d2} prover_d2={bundle.distance_squared} (tower={beacon.value})")
        self.log.info(f"ZK ping_distance proof generated [{len(bundle.fields)} public inputs]")

        try:
            await self._submit_ping(beacon, bundle)
        except ProofRejected as e:
            self._on_proof_rejected(remote.insecure_mode, "ping", e)
            return False
        self._adopt(secret, bundle.commitment)
        return True

    async def _submit_ping(self, beacon: Beacon, bundle: ProofBundle) -> None:
        # Remote state can lag the dispatch; NotEvaderTurn is retried before declaring a desync.
        for attempt in range(1, self.PING_SUBMIT_ATTEMPTS + 1):
            try:
                await self._guard(self.backend.submit_ping_proof(self.session_id, beacon, bundle), "ping proof")
                return
            except ChainError as e:
                if not has_contract_code(e, ContractCode.NOT_EVADER_TURN):
                    raise
                if attempt == self.PING_SUBMIT_ATTEMPTS:
                    self._desync("submit_ping_proof remained NotEvaderTurn after retries")
                self.log.warn(f"submit_ping_proof retry {attempt}/{self.PING_SUBMIT_ATTEMPTS - 1} after NotEvaderTurn")
                await self._sleep(0.9 * attempt)
                await self._poll(lambda s: s.phase == TurnPhase.EVADER and s.pending_beacon == beacon, attempts=8)

    # --- Evader half -------------------------------------------------------

    async def submit_evader_turn(self, path: list[Coord] | None = None) -> Transition:
        """Resolve the evader phase locally, mirror it on the ledger, then merge the remote state"""
        state = self.session.state
        if state.stage != Stage.EVADER:
            raise ValidationError("NOT EVADER TURN", stage=state.stage.value)
        self.health.ensure_writable("evader turn")

        sync = self._pending or TurnSync(turn=state.turn, had_ping=state.pending_beacon is not None)
        before = self.session.require_secret()
        ward = state.ward

        async def run() -> Transition:
            transition = self.session.resolve_evader_phase(path)
            if not transition.accepted:
                raise ValidationError(transition.rejection or "evader phase rejected", stage=state.stage.value)
            try:
                await self._mirror_evader(sync, transition, before, ward)
                await self._settle(sync.turn + 1)
            finally:
                self._pending = None
            return transition

        return await self._run_locked("evader", run)

    async def _mirror_evader(self, sync: TurnSync, transition: Transition, before: SecretState, ward: Coord) -> None:
        if self.dev_mode or self.verifier_bypass:
            reason = "dev mode" if self.dev_mode else "verifier bypass"
            self.log.warn(f"ONCHAIN: skipping proofs ({reason}) session={self.session_id} turn={sync.turn}")
            await self._tick_fallback(reason, moves_verified=False)
            self.verifier_bypass = False
            return
        if sync.had_ping and not sync.ping_verified:
            self.log.warn(f"ONCHAIN: skipping move/status proofs (ping proof not confirmed) turn={sync.turn}")
            await self._tick_fallback("ping proof unavailable", moves_verified=False)
            return
        if self.prover is None:
            raise ValidationError("no prover configured for a secure session")

        trace = transition.trace
        steps = trace.path if trace is not None else []
        origin = trace.origin if trace is not None else before.pursuer
        secret = self.session.require_secret()

        try:
            moves_verified = await self._submit_moves(sync.turn, origin, steps, before.salt, secret)
            if sync.had_ping:
                dest = steps[-1] if steps else origin
                bundle = await self.prover.turn_status(TurnStatusRequest(
                    x=dest.x, y=dest.y, salt=before.salt,
                    cx=ward.x, cy=ward.y,
                    session_id=self.session_id, turn=sync.turn,
                ))
                await self._guard(self.backend.submit_turn_status_proof(self.session_id, bundle), "status proof")
                self._adopt(self.session.require_secret(), bundle.commitment)
            else:
                # Recharge turns carry no status proof; the tick follows verified movement.
                await self._tick_fallback("recharge path", moves_verified=moves_verified)
        except ProofRejected as e:
            self._on_proof_rejected(await self._remote_insecure(), "move/status", e)
            await self._tick_fallback("verifier bypass", moves_verified=False)
            self.verifier_bypass = False

    async def _submit_moves(
        self,
        turn: int,
        origin: Coord,
        steps: list[Coord],
        salt: int,
        secret: SecretState,
    ) -> bool:
        if not steps:
            return False
        prev = [origin, *steps[:-1]]
        # Salt stays fixed for the session, so old and new salts are equal.
        bundles = await asyncio.gather(*(
            self.prover.move_proof(MoveProofRequest(
                x_old=a.x, y_old=a.y, salt_old=salt,
                x_new=b.x, y_new=b.y, salt_new=salt,
                session_id=self.session_id, turn=turn,
            ))
            for a, b in zip(prev, steps)
        ))
        self.log.info(f"ZK {len(bundles)} move_proofs generated")
        await self._guard(self.backend.submit_multi_move_proof(self.session_id, list(bundles)), "move proofs")
        self._adopt(secret, bundles[-1].commitment_new)
        return True

    async def _tick_fallback(self, reason: str, moves_verified: bool) -> None:
        pre = await self._read_session()
        if pre.phase != TurnPhase.EVADER:
            self.log.warn(f"evader_tick skipped ({reason}) because on-chain phase={pre.phase.value}")
            return
        if not pre.insecure_mode and not moves_verified:
            self._desync(f"evader_tick without verified movement refused in secure mode ({reason})")
        try:
            await self._guard(self.backend.evader_tick(self.session_id, d2_ward=0), f"evader_tick ({reason})")
        except ChainError:
            self.health.mark_desynced(f"evader_tick fallback failed ({reason})")
            raise

    async def _settle(self, expect_turn: int) -> RemoteSession:
        outcome = await self._poll(
            lambda s: s.ended or (s.turn >= expect_turn and s.phase == TurnPhase.DISPATCHER)
        )
        if not outcome.ok or outcome.value is None:
            self._desync(f"post-turn session did not converge (expected turn {expect_turn})")
        remote = outcome.value
        local = self.session.state
        diff = public_diff(local, remote)
        if not (local.ended or remote.ended) and ("phase" in diff or "pending_beacon" in diff):
            self._desync(f"post-poll divergence ({', '.join(sorted(diff))})")
        if diff:
            self.log.warn(f"ONCHAIN: adopting remote values for {', '.join(sorted(diff))}")
        self.session.replace_state(merge_public_fields(local, remote))
        log_turn_event(
            "Turn mirrored on-chain",
            stage=self.session.state.stage.value,
            session_id=self.session_id,
            turn=remote.turn,
        )
        return remote
