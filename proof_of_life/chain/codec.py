# ABOUTME: Conversions between ledger session records and local models, and the public-field merge.
# ABOUTME: Remote numbers are u32; the phase is normalized from int, string or tagged object and fails closed.

from typing import Any

from loguru import logger
from pydantic import BaseModel, Field, field_validator

from proof_of_life.engine.directives import ROOM_FOR_DIRECTIVE
from proof_of_life.models.session import Beacon, Directive, Outcome, SessionState, TurnPhase, TurnStep
from proof_of_life.world.floorplan import RoomCode

from .exceptions import FatalChainError

U32_MAX = 0xFFFFFFFF

# Room ids used by the contract's GoRoom(u32) command.
ROOM_IDS: dict[RoomCode, int] = {
    RoomCode.GARDEN: 0,
    RoomCode.HALLWAY: 1,
    RoomCode.LIVING: 2,
    RoomCode.STUDY: 3,
    RoomCode.LIBRARY: 4,
    RoomCode.DINING: 5,
    RoomCode.KITCHEN: 6,
    RoomCode.GRAND_HALL: 7,
}

WALK_IDS: dict[Directive, int] = {
    Directive.WALK_N: 0,
    Directive.WALK_E: 1,
    Directive.WALK_S: 2,
    Directive.WALK_W: 3,
}


def normalize_phase(raw: Any) -> TurnPhase:
    """
    Read a phase from any of the shapes the ledger SDK produces.

    Accepts 0/1, "0"/"1", names containing "dispatcher"/"evader", and tagged
    objects ({"tag": ...} or {"values": [n]}). Anything else reads as the
    dispatcher phase so that proof submission guards stay closed.
    """
    if raw in (0, "0"):
        return TurnPhase.DISPATCHER
    if raw in (1, "1"):
        return TurnPhase.EVADER
    if isinstance(raw, TurnPhase):
        return raw
    if isinstance(raw, str):
        r = raw.lower()
        if "dispatcher" in r:
            return TurnPhase.DISPATCHER
        if "evader" in r:
            return TurnPhase.EVADER
    if isinstance(raw, dict):
        tag = str(raw.get("tag") or raw.get("_tag") or "").lower()
        if "dispatcher" in tag:
            return TurnPhase.DISPATCHER
        if "evader" in tag:
            return TurnPhase.EVADER
        values = raw.get("values")
        val = raw.get("value", values[0] if isinstance(values, list) and values else None)
        if val in (0, "0"):
            return TurnPhase.DISPATCHER
        if val in (1, "1"):
            return TurnPhase.EVADER
    logger.warning(f"Unrecognized remote phase {raw!r}; treating as dispatcher")
    return TurnPhase.DISPATCHER


class RemoteSession(BaseModel):
    """Public session record as stored by the game contract"""

    session_id: int
    dispatcher: str
    evader: str
    commitment: str | None = None
    battery: int
    ping_cost: int
    recharge_amount: int
    turn: int
    phase: TurnPhase
    ended: bool = False
    moved_this_turn: bool = False
    alpha: int
    alpha_max: int
    ward_x: int
    ward_y: int
    ward_hidden: bool = False
    hide_streak: int = 0
    pending_beacon: Beacon | None = Field(default=None, description="Tower index of the pending ping")
    insecure_mode: bool = False

    model_config = {"frozen": True, "extra": "ignore"}

    @field_validator(
        "session_id", "battery", "ping_cost", "recharge_amount", "turn",
        "alpha", "alpha_max", "ward_x", "ward_y", "hide_streak",
        mode="before",
    )
    @classmethod
    def _u32(cls, v: Any) -> int:
        if isinstance(v, bool) or not isinstance(v, int):
            try:
                v = int(v)
            except (TypeError, ValueError) as e:
                raise ValueError(f"expected u32, got {v!r}") from e
        if not 0 <= v <= U32_MAX:
            raise ValueError(f"value out of u32 range: {v}")
        return v

    @field_validator("phase", mode="before")
    @classmethod
    def _phase(cls, v: Any) -> TurnPhase:
        return normalize_phase(v)

    @field_validator("pending_beacon", mode="before")
    @classmethod
    def _beacon(cls, v: Any) -> Beacon | None:
        if v is None or isinstance(v, Beacon):
            return v
        if isinstance(v, str) and v in Beacon.__members__:
            return Beacon(v)
        return Beacon.from_index(int(v))

    @field_validator("commitment", mode="before")
    @classmethod
    def _commitment(cls, v: Any) -> str | None:
        if v is None:
            return None
        if isinstance(v, (bytes, bytearray)):
            return "0x" + bytes(v).hex()
        return str(v)


def _unwrap(raw: Any) -> Any:
    if isinstance(raw, dict):
        tag = raw.get("tag")
        if tag == "Ok" and isinstance(raw.get("values"), list) and raw["values"]:
            return _unwrap(raw["values"][0])
        if tag == "Err":
            raise FatalChainError(f"get_session on-chain error: {raw.get('values')!r}")
        if isinstance(raw.get("value"), dict):
            return raw["value"]
        if "session_id" in raw:
            return raw
    raise FatalChainError(f"get_session returned unexpected shape: {raw!r}")


def parse_remote_session(raw: Any) -> RemoteSession:
    """Decode a session record, unwrapping Ok/value envelopes"""
    return RemoteSession.model_validate(_unwrap(raw))


def _deferred_dispatcher(local: SessionState, remote: RemoteSession) -> bool:
    """Local dispatcher picked ping/recharge but the combined tx has not been sent yet"""
    return (
        local.phase == TurnPhase.DISPATCHER
        and local.turn_step == TurnStep.COMMAND
        and remote.phase == TurnPhase.DISPATCHER
        and remote.turn == local.turn
    )


def infer_remote_outcome(local: SessionState, remote: RemoteSession) -> Outcome:
    """
    Best reading of why the ledger ended a session the local reducer still has open.

    Blackout, panic and extraction show in the public fields. Capture depends on
    the hidden pursuer position, so it is what remains.
    """
    if remote.battery == 0:
        return Outcome.BLACKOUT
    if remote.alpha == 0:
        return Outcome.PANIC
    if remote.turn >= local.extraction_turn:
        return Outcome.EXTRACTION_WIN
    return Outcome.CAPTURE


def merge_public_fields(local: SessionState, remote: RemoteSession) -> SessionState:
    """
    Overlay the remote public fields on the local state.

    The narrative log, rules and outcome stay local. A locally armed
    commitment is never cleared, and a deferred dispatcher action (battery,
    pending beacon, sub-phase) survives until the ledger catches up.
    """
    update: dict[str, Any] = {
        "turn": remote.turn,
        "phase": remote.phase,
        "ended": local.ended or remote.ended,
        "alpha": remote.alpha,
        "alpha_max": remote.alpha_max,
        "ward_x": remote.ward_x,
        "ward_y": remote.ward_y,
        "ward_hidden": remote.ward_hidden,
        "hide_streak": remote.hide_streak,
        "insecure_mode": remote.insecure_mode,
        "moved_this_turn": remote.moved_this_turn,
        "commitment_set": local.commitment_set or remote.commitment is not None,
        "ping_cost": remote.ping_cost,
        "recharge_amount": remote.recharge_amount,
    }
    if remote.ended and not local.ended and local.outcome is None:
        outcome = infer_remote_outcome(local, remote)
        logger.warning(
            f"Session {remote.session_id} ended on the ledger before the local reducer; "
            f"recording outcome {outcome.value}"
        )
        update["outcome"] = outcome
    if _deferred_dispatcher(local, remote):
        return local.model_copy(update=update)

    update["battery"] = remote.battery
    update["pending_beacon"] = remote.pending_beacon
    if remote.phase == TurnPhase.DISPATCHER:
        update["turn_step"] = TurnStep.ACTION
    return local.model_copy(update=update)


_COMPARED = (
    "turn", "phase", "battery", "alpha", "alpha_max", "ward_x", "ward_y",
    "ward_hidden", "hide_streak", "ended", "pending_beacon",
)
_DEFERRED = frozenset({"battery", "pending_beacon"})


def public_diff(local: SessionState, remote: RemoteSession) -> dict[str, tuple[Any, Any]]:
    """Fields whose local and remote values differ, as {name: (local, remote)}"""
    deferred = _deferred_dispatcher(local, remote)
    return {
        name: (getattr(local, name), getattr(remote, name))
        for name in _COMPARED
        if getattr(local, name) != getattr(remote, name)
        and not (deferred and name in _DEFERRED)
    }


def has_public_diff(local: SessionState, remote: RemoteSession) -> bool:
    return bool(public_diff(local, remote))


def directive_to_command(directive: Directive) -> dict[str, Any]:
    """Encode a directive as the contract's tagged command value"""
    if directive == Directive.STAY:
        return {"tag": "Stay", "values": None}
    if directive == Directive.HIDE:
        return {"tag": "Hide", "values": None}
    if directive in WALK_IDS:
        return {"tag": "WalkGarden", "values": [WALK_IDS[directive]]}
    room = ROOM_FOR_DIRECTIVE.get(directive)
    if room is None or room not in ROOM_IDS:
        raise ValueError(f"Unsupported command: {directive.value}")
    return {"tag": "GoRoom", "values": [ROOM_IDS[room]]}


def hex_to_buf32(value: str) -> bytes:
    h = value[2:] if value.startswith("0x") else value
    buf = bytes.fromhex(h)
    if len(buf) != 32:
        raise ValueError(f"expected 32-byte hex, got {len(buf)} bytes")
    return buf
