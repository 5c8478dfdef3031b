# ABOUTME: Pure session reducer: (state, secret, action, rules) -> Transition for all five game operations.
# ABOUTME: Dispatches on the tagged stage; rejections are logged no-ops, never exceptions.

from loguru import logger
from pydantic import BaseModel, Field

from proof_of_life.commitment.store import commit
from proof_of_life.config.settings import GameRules
from proof_of_life.engine.directives import MAX_HIDE_STREAK, apply_directive, is_directive_allowed
from proof_of_life.engine.movement import (
    auto_path,
    pop_out_of_hide_tile,
    prepare_pursuer_turn,
    track_ward,
    validate_path,
)
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
    Outcome,
    Role,
    SessionState,
    Stage,
    TurnPhase,
    TurnStep,
)
from proof_of_life.utils.power import format_power_meter
from proof_of_life.world.beacons import DEFAULT_BEACONS
from proof_of_life.world.floorplan import is_hide_tile, room_at, room_meta_at


class PursuerTrace(BaseModel):
    """Ordered pursuer steps taken during one evader phase (origin excluded)"""

    origin: Coord
    path: list[Coord]
    destination: Coord

    model_config = {"frozen": True}


class Transition(BaseModel):
    """Result of one reducer step"""

    state: SessionState
    secret: SecretState | None = None
    accepted: bool = True
    rejection: str | None = Field(default=None, description="Reason the action was rejected")
    trace: PursuerTrace | None = None

    model_config = {"frozen": True}


def new_session(
    session_id: int,
    dispatcher: str,
    evader: str,
    rules: GameRules,
    ward: Coord | None = None,
    mode: GameMode = GameMode.SINGLE,
    insecure_mode: bool = False,
) -> SessionState:
    """Create a fresh session in stage dispatcher.action"""
    ward = ward or Coord(x=5, y=5)
    return SessionState(
        session_id=session_id,
        mode=mode,
        dispatcher=dispatcher,
        evader=evader,
        battery=rules.battery_max,
        battery_max=rules.battery_max,
        ping_cost=rules.ping_cost,
        recharge_amount=rules.recharge_amount,
        extraction_turn=rules.extraction_turn,
        alpha=rules.alpha_max,
        alpha_max=rules.alpha_max,
        ward_x=ward.x,
        ward_y=ward.y,
        insecure_mode=insecure_mode,
        log=["LINK ESTABLISHED", "STORM WARNING: GENERATOR ONLINE"],
    )


def _reject(state: SessionState, secret: SecretState | None, reason: str, rules: GameRules) -> Transition:
    logger.bind(session=state.session_id, turn=state.turn, stage=state.stage.value).warning(
        f"Action rejected: {reason}"
    )
    prefix = "WARN" if reason.startswith("COMMITMENT ALREADY") else "ERR"
    return Transition(
        state=state.with_log(f"{prefix}: {reason}", limit=rules.log_limit),
        secret=secret,
        accepted=False,
        rejection=reason,
    )


def _check_dispatcher_action(state: SessionState, actor: Role) -> str | None:
    if actor != Role.DISPATCHER:
        return "UNAUTHORIZED (DISPATCHER ONLY)"
    if state.phase != TurnPhase.DISPATCHER:
        return "NOT DISPATCHER TURN"
    if state.turn_step != TurnStep.ACTION:
        return "ACTION ALREADY TAKEN"
    if not state.commitment_set:
        return "NO COMMITMENT"
    return None


def _request_ping(
    state: SessionState,
    secret: SecretState | None,
    action: RequestPing,
    rules: GameRules,
    beacons: dict[Beacon, Coord],
) -> Transition:
    problem = _check_dispatcher_action(state, action.actor)
    if problem is None and state.battery < state.ping_cost:
        problem = "INSUFFICIENT POWER"
    if problem:
        return _reject(state, secret, problem, rules)

    battery = state.battery - state.ping_cost
    d2 = secret.pursuer.d2(beacons[action.beacon]) if secret is not None else None
    lines = [f"PING {action.beacon.value}... EST. DRAIN: -{state.ping_cost}%"]
    if d2 is not None:
        lines.append(f"PING {action.beacon.value} RESPONSE: D2={d2}")

    next_state = state.model_copy(update={
        "battery": battery,
        "turn_step": TurnStep.COMMAND,
        "pending_beacon": action.beacon,
        "last_ping_d2": d2,
    }).with_log(*lines, limit=rules.log_limit)

    if battery == 0:
        next_state = next_state.model_copy(update={
            "ended": True,
            "outcome": Outcome.BLACKOUT,
        }).with_log("BLACKOUT: TERMINAL OFFLINE", limit=rules.log_limit)

    return Transition(state=next_state, secret=secret)


def _recharge(state: SessionState, secret: SecretState | None, action: Recharge, rules: GameRules) -> Transition:
    problem = _check_dispatcher_action(state, action.actor)
    if problem:
        return _reject(state, secret, problem, rules)

    battery = min(state.battery_max, state.battery + state.recharge_amount)
    next_state = state.model_copy(update={
        "battery": battery,
        "turn_step": TurnStep.COMMAND,
        "pending_beacon": None,
        "last_ping_d2": None,
    }).with_log(f"RECHARGE... +{state.recharge_amount}% (BLIND TURN)", limit=rules.log_limit)
    return Transition(state=next_state, secret=secret)


def _set_command(state: SessionState, secret: SecretState | None, action: SetCommand, rules: GameRules) -> Transition:
    if action.actor != Role.DISPATCHER:
        return _reject(state, secret, "UNAUTHORIZED (DISPATCHER ONLY)", rules)
    if state.phase != TurnPhase.DISPATCHER:
        return _reject(state, secret, "NOT DISPATCHER TURN", rules)
    if state.turn_step != TurnStep.COMMAND:
        return _reject(state, secret, "COMMAND LOCKED (PING FIRST)", rules)

    ward = state.ward
    directive = action.directive
    notes: list[str] = []
    if directive == Directive.HIDE and state.hide_streak >= MAX_HIDE_STREAK:
        directive = Directive.STAY
        notes.append("I can't stay hidden any longer. I have to move.")
    elif not is_directive_allowed(ward, state.hide_streak, state.turn, directive):
        return _reject(state, secret, "COMMAND NOT AVAILABLE", rules)

    origin_room = room_at(ward.x, ward.y)
    move = apply_directive(ward, directive, state.turn)
    pos = move.pos
    if move.note:
        notes.insert(0, move.note)

    if not move.hidden and is_hide_tile(pos.x, pos.y):
        popped = pop_out_of_hide_tile(pos, origin_room)
        if popped is not None and popped != pos:
            pos = popped
            notes.append("I'm coming out of hiding.")

    hide_streak = state.hide_streak + 1 if move.hidden else 0
    room = room_meta_at(pos.x, pos.y)

    lines = [f"YOU: {directive.value}"]
    lines.extend(f"WARD: {note}" for note in notes)
    lines.append(f"WARD: I'm in the {room.label}. {room.flavor}")

    next_state = state.model_copy(update={
        "ward_x": pos.x,
        "ward_y": pos.y,
        "ward_hidden": move.hidden,
        "hide_streak": hide_streak,
        "pending_directive": Directive.STAY,
        "phase": TurnPhase.EVADER,
        "moved_this_turn": False,
    }).with_log(*lines, limit=rules.log_limit)

    next_secret = track_ward(secret, pos, move.hidden) if secret is not None else None
    return Transition(state=next_state, secret=next_secret)


def _arm_commitment(
    state: SessionState,
    secret: SecretState | None,
    action: ArmCommitment,
    rules: GameRules,
) -> Transition:
    if action.actor != Role.EVADER:
        return _reject(state, secret, "UNAUTHORIZED (EVADER ONLY)", rules)
    if state.commitment_set:
        return _reject(state, secret, "COMMITMENT ALREADY SET", rules)
    if secret is None:
        return _reject(state, secret, "NO SECRET TO COMMIT", rules)

    next_state = state.model_copy(update={"commitment_set": True}).with_log(
        "COMMITMENT SET", limit=rules.log_limit
    )
    return Transition(state=next_state, secret=secret)


def _resolve_evader_phase(
    state: SessionState,
    secret: SecretState | None,
    action: ResolveEvaderPhase,
    rules: GameRules,
) -> Transition:
    if action.actor != Role.EVADER:
        return _reject(state, secret, "UNAUTHORIZED (EVADER ONLY)", rules)
    if state.phase != TurnPhase.EVADER:
        return _reject(state, secret, "NOT EVADER TURN", rules)
    if secret is None:
        return _reject(state, secret, "NO SECRET TO MOVE", rules)

    ward = state.ward
    plan = prepare_pursuer_turn(secret, ward, state.ward_hidden, track=False)
    path = list(action.path) if action.path is not None else auto_path(plan)
    validation = validate_path(plan, path)
    if not validation.ok:
        return _reject(state, secret, f"INVALID PATH ({validation.reason})", rules)

    moved = path[-1] if path else plan.origin
    next_secret = plan.secret.model_copy(update={
        "pursuer": moved,
        "commitment_hex": commit(moved.x, moved.y, plan.secret.salt),
    })
    trace = PursuerTrace(origin=plan.origin, path=path, destination=moved)

    d2 = moved.d2(ward)
    limit = rules.log_limit
    next_state = state.model_copy(update={"moved_this_turn": bool(path)}).with_log(
        f"STATUS... D2_WARD={d2}", limit=limit
    )

    def finish(s: SessionState) -> Transition:
        return Transition(state=s, secret=next_secret, trace=trace)

    if d2 == 0:
        return finish(next_state.model_copy(update={"ended": True, "outcome": Outcome.CAPTURE}).with_log(
            "SIGNAL LOST: SCREAM THROUGH STATIC", limit=limit
        ))

    same_room = room_at(ward.x, ward.y) == room_at(moved.x, moved.y)
    if same_room and not state.ward_hidden:
        return finish(next_state.model_copy(update={"ended": True, "outcome": Outcome.CAPTURE}).with_log(
            "SIGNAL LOST: FOOTSTEPS IN THE ROOM", limit=limit
        ))
    if same_room:
        next_state = next_state.with_log("BREATH HELD... HE IS IN THE ROOM", limit=limit)

    strong = d2 <= rules.strong_radius_sq or same_room
    alpha = max(0, state.alpha - 1) if strong else min(state.alpha_max, state.alpha + 1)
    meter = format_power_meter(state.battery).text
    next_state = next_state.model_copy(update={"alpha": alpha}).with_log(
        f"PROXIMITY GLITCH... {meter}" if strong else f"LINE CLEAR... {meter}", limit=limit
    )

    if alpha == 0:
        return finish(next_state.model_copy(update={"ended": True, "outcome": Outcome.PANIC}).with_log(
            "WARD PANICS: RAN INTO THE STORM", limit=limit
        ))

    turn = state.turn + 1
    next_state = next_state.model_copy(update={
        "turn": turn,
        "phase": TurnPhase.DISPATCHER,
        "turn_step": TurnStep.ACTION,
        "pending_beacon": None,
        "moved_this_turn": False,
    }).with_log(f"TURN {turn} READY", limit=limit)

    if turn >= state.extraction_turn:
        next_state = next_state.model_copy(update={
            "ended": True,
            "outcome": Outcome.EXTRACTION_WIN,
        }).with_log("SIRENS INBOUND... EXTRACTION COMPLETE: WARD IS SAFE", limit=limit)

    return finish(next_state)


def reduce(
    state: SessionState,
    secret: SecretState | None,
    action: Action,
    rules: GameRules,
    beacons: dict[Beacon, Coord] | None = None,
) -> Transition:
    """
    Apply one action to a session.

    Never raises for game-rule violations: a rejected action returns the
    original state with an error line appended and `accepted=False`.

    Args:
        state: Current public session state
        secret: Evader secret, or None on a dispatcher-only client
        action: One of the tagged action models
        rules: Session rule constants
        beacons: Beacon coordinates (defaults to the ledger defaults)

    Returns:
        Transition with the next state, the next secret and an optional pursuer trace
    """
    if state.stage == Stage.ENDED:
        return _reject(state, secret, "SESSION ENDED", rules)

    if isinstance(action, RequestPing):
        return _request_ping(state, secret, action, rules, beacons or DEFAULT_BEACONS)
    if isinstance(action, Recharge):
        return _recharge(state, secret, action, rules)
    if isinstance(action, SetCommand):
        return _set_command(state, secret, action, rules)
    if isinstance(action, ArmCommitment):
        return _arm_commitment(state, secret, action, rules)
    if isinstance(action, ResolveEvaderPhase):
        return _resolve_evader_phase(state, secret, action, rules)

    return _reject(state, secret, f"UNKNOWN ACTION {type(action).__name__}", rules)
