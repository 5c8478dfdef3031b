# ABOUTME: GameSession controller binding the pure reducer to a session-scoped secret store.
# ABOUTME: Provides the high-level operations used by the local game loop and the on-chain turn runner.

import random

from loguru import logger

from proof_of_life.commitment.store import SecretKey, SecretStore
from proof_of_life.config.settings import GameRules
from proof_of_life.engine.directives import legal_directives
from proof_of_life.engine.movement import PursuerTurn, prepare_pursuer_turn
from proof_of_life.models.actions import (
    Action,
    ArmCommitment,
    Recharge,
    RequestPing,
    ResolveEvaderPhase,
    SetCommand,
)
from proof_of_life.models.secret import SecretState
from proof_of_life.models.session import (
    Beacon,
    Coord,
    Directive,
    GameMode,
    Role,
    SessionState,
    Stage,
)
from proof_of_life.utils.logging import log_phase_transition, log_turn_event
from proof_of_life.world.beacons import DEFAULT_BEACONS

from .exceptions import MissingSecret, SessionEnded, ValidationError
from .state_machine import Transition, new_session, reduce


class GameSession:
    """
    Controller for one game session.

    Owns the public SessionState and, on the evader's client, the SecretStore
    whose key lives exactly as long as this object. Every mutation goes through
    the pure reducer; with strict=True a rejected action raises ValidationError
    instead of only being logged.
    """

    def __init__(
        self,
        state: SessionState,
        rules: GameRules,
        store: SecretStore | None = None,
        beacons: dict[Beacon, Coord] | None = None,
        strict: bool = False,
    ):
        self.state = state
        self.rules = rules
        self.store = store
        self.beacons = dict(beacons or DEFAULT_BEACONS)
        self.strict = strict
        self.last_transition: Transition | None = None

    @classmethod
    def start(
        cls,
        session_id: int,
        dispatcher: str,
        evader: str,
        rules: GameRules,
        ward: Coord | None = None,
        mode: GameMode = GameMode.SINGLE,
        holds_secret: bool = True,
        rng: random.Random | None = None,
        strict: bool = False,
        insecure_mode: bool = False,
    ) -> "GameSession":
        """
        Create a session and, when this client plays the evader, a fresh secret.

        Args:
            session_id: u32 session id
            dispatcher: Dispatcher identity
            evader: Evader identity
            rules: Rule constants
            ward: Starting ward tile (defaults to 5,5)
            mode: Single-player or two-player
            holds_secret: False on a dispatcher-only client
            rng: Optional RNG for the pursuer spawn
            strict: Raise ValidationError on rejected actions
            insecure_mode: Session accepts unverified turn advances

        Returns:
            A new GameSession in stage dispatcher.action
        """
        state = new_session(
            session_id, dispatcher, evader, rules,
            ward=ward, mode=mode, insecure_mode=insecure_mode,
        )
        store = None
        if holds_secret:
            store = SecretStore(SecretKey.generate(), session_id)
            store.create(state.ward, rng=rng)
        log_turn_event("Session started", stage=state.stage.value, session_id=session_id, turn=0, mode=mode.value)
        return cls(state, rules, store=store, strict=strict)

    @property
    def stage(self) -> Stage:
        return self.state.stage

    def secret(self) -> SecretState | None:
        """Decrypt the current secret (raises SecretDecryptionError on corruption)"""
        if self.store is None or not self.store.is_armed:
            return None
        return self.store.load()

    def require_secret(self) -> SecretState:
        secret = self.secret()
        if secret is None:
            raise MissingSecret(f"Session {self.state.session_id} holds no pursuer secret")
        return secret

    def apply(self, action: Action) -> Transition:
        before = self.state
        if self.strict and before.ended:
            raise SessionEnded(f"Session {before.session_id} already ended ({before.outcome.value if before.outcome else 'unknown'})")
        transition = reduce(before, self.secret(), action, self.rules, self.beacons)
        self.last_transition = transition

        if not transition.accepted:
            if self.strict:
                raise ValidationError(transition.rejection or "action rejected", stage=before.stage.value)
            self.state = transition.state
            return transition

        self.state = transition.state
        if self.store is not None and transition.secret is not None:
            self.store.put(transition.secret)

        if before.stage != transition.state.stage:
            log_phase_transition(
                before.stage.value,
                transition.state.stage.value,
                session_id=transition.state.session_id,
                turn=transition.state.turn,
            )
        if transition.state.ended and not before.ended:
            logger.bind(session=transition.state.session_id).info(
                f"Session ended: {transition.state.outcome.value if transition.state.outcome else 'unknown'}"
            )
        return transition

    # --- Operations -------------------------------------------------------

    def request_ping(self, beacon: Beacon) -> Transition:
        return self.apply(RequestPing(actor=Role.DISPATCHER, beacon=beacon))

    def recharge(self) -> Transition:
        return self.apply(Recharge(actor=Role.DISPATCHER))

    def set_command(self, directive: Directive) -> Transition:
        return self.apply(SetCommand(actor=Role.DISPATCHER, directive=directive))

    def arm_commitment(self) -> Transition:
        return self.apply(ArmCommitment(actor=Role.EVADER))

    def resolve_evader_phase(self, path: list[Coord] | None = None) -> Transition:
        return self.apply(ResolveEvaderPhase(actor=Role.EVADER, path=path))

    # --- Queries ----------------------------------------------------------

    def legal_directives(self) -> list[Directive]:
        return legal_directives(self.state.ward, self.state.hide_streak, self.state.turn)

    def plan_pursuer_turn(self) -> PursuerTurn:
        """Pursuer plan for the current evader phase (tracker already updated by set_command)"""
        return prepare_pursuer_turn(self.require_secret(), self.state.ward, self.state.ward_hidden, track=False)

    def replace_state(self, state: SessionState) -> None:
        """Adopt a merged remote snapshot as the local public state"""
        if state.stage != self.state.stage:
            log_phase_transition(self.state.stage.value, state.stage.value, state.session_id, state.turn)
        self.state = state

    def replace_secret(self, secret: SecretState) -> None:
        if self.store is None:
            raise MissingSecret(f"Session {self.state.session_id} has no secret store")
        self.store.put(secret)

    def abandon(self) -> None:
        """Drop the secret; the key dies with the store"""
        if self.store is not None:
            self.store.discard()
        logger.bind(session=self.state.session_id).info("Session abandoned")
