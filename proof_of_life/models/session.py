# ABOUTME: Pydantic models for the public session state shared between both players and the ledger.
# ABOUTME: Defines roles, phases, outcomes, directives, beacons and the tagged session stage.

from enum import Enum

from pydantic import BaseModel, Field


class Role(str, Enum):
    """The two seats at the table"""
    DISPATCHER = "dispatcher"
    EVADER = "evader"


class GameMode(str, Enum):
    SINGLE = "single"
    TWO_PLAYER = "two-player"


class TurnPhase(str, Enum):
    """Which player may act"""
    DISPATCHER = "dispatcher"
    EVADER = "evader"


class TurnStep(str, Enum):
    """Dispatcher sub-phase: pick ping/recharge first, then a ward directive"""
    ACTION = "action"
    COMMAND = "command"


class Stage(str, Enum):
    """Tagged stage the reducer dispatches on"""
    DISPATCHER_ACTION = "dispatcher.action"
    DISPATCHER_COMMAND = "dispatcher.command"
    EVADER = "evader"
    ENDED = "ended"


class Outcome(str, Enum):
    BLACKOUT = "blackout"
    CAPTURE = "capture"
    PANIC = "panic"
    EXTRACTION_WIN = "extraction-win"


class Beacon(str, Enum):
    """Fixed distance beacons; the ledger addresses them by index"""
    N = "N"
    E = "E"
    S = "S"
    W = "W"

    @property
    def index(self) -> int:
        return _BEACON_ORDER.index(self)

    @classmethod
    def from_index(cls, index: int) -> "Beacon":
        if not 0 <= index < len(_BEACON_ORDER):
            raise ValueError(f"Unknown beacon index: {index}")
        return _BEACON_ORDER[index]


_BEACON_ORDER: tuple[Beacon, ...] = (Beacon.N, Beacon.E, Beacon.S, Beacon.W)


class Directive(str, Enum):
    """Commands the dispatcher can give the ward"""
    STAY = "STAY"
    HIDE = "HIDE"
    WALK_N = "WALK_N"
    WALK_S = "WALK_S"
    WALK_W = "WALK_W"
    WALK_E = "WALK_E"
    GO_GARDEN = "GO_GARDEN"
    GO_HALLWAY = "GO_HALLWAY"
    GO_LIVING = "GO_LIVING"
    GO_STUDY = "GO_STUDY"
    GO_LIBRARY = "GO_LIBRARY"
    GO_DINING = "GO_DINING"
    GO_KITCHEN = "GO_KITCHEN"
    GO_GRAND_HALL = "GO_GRAND_HALL"

    @property
    def is_walk(self) -> bool:
        return self.value.startswith("WALK_")

    @property
    def is_go(self) -> bool:
        return self.value.startswith("GO_")


class Coord(BaseModel):
    x: int
    y: int

    model_config = {"frozen": True}

    def d2(self, other: "Coord") -> int:
        """Squared euclidean distance"""
        dx = self.x - other.x
        dy = self.y - other.y
        return dx * dx + dy * dy

    def manhattan(self, other: "Coord") -> int:
        return abs(self.x - other.x) + abs(self.y - other.y)


class SessionState(BaseModel):
    """
    Public state of one game, mirrored on the ledger when playing on-chain.

    Mutated only through the session reducer; every transition produces a new
    instance via model_copy. The pursuer's coordinate is never stored here.
    """

    session_id: int = Field(ge=0, le=0xFFFFFFFF, description="Session id (u32)")
    mode: GameMode = Field(default=GameMode.SINGLE)
    dispatcher: str = Field(description="Dispatcher identity (address or local handle)")
    evader: str = Field(description="Evader identity (address or local handle)")

    phase: TurnPhase = Field(default=TurnPhase.DISPATCHER)
    turn_step: TurnStep = Field(default=TurnStep.ACTION)
    turn: int = Field(default=0, ge=0, description="Turn counter, advanced only by evader resolution")

    battery: int = Field(default=100, ge=0, description="Remaining battery, 0..battery_max")
    battery_max: int = Field(default=100, ge=1)
    ping_cost: int = Field(default=20, ge=0)
    recharge_amount: int = Field(default=10, ge=0)
    extraction_turn: int = Field(default=10, ge=1)
    alpha: int = Field(default=5, ge=0, description="Ward composure")
    alpha_max: int = Field(default=5, ge=1)

    ended: bool = Field(default=False)
    outcome: Outcome | None = Field(default=None)

    ward_x: int = Field(default=5, ge=0)
    ward_y: int = Field(default=5, ge=0)
    ward_hidden: bool = Field(default=False)
    hide_streak: int = Field(default=0, ge=0, description="Consecutive successful hides")
    pending_directive: Directive = Field(default=Directive.STAY)
    pending_beacon: Beacon | None = Field(default=None, description="Beacon pinged this turn, if any")
    last_ping_d2: int | None = Field(default=None, description="Squared distance reported by the last ping")

    commitment_set: bool = Field(default=False)
    insecure_mode: bool = Field(default=False)
    moved_this_turn: bool = Field(default=False)

    log: list[str] = Field(default_factory=list, description="Narrative log, capped")

    @property
    def stage(self) -> Stage:
        if self.ended:
            return Stage.ENDED
        if self.phase == TurnPhase.EVADER:
            return Stage.EVADER
        if self.turn_step == TurnStep.COMMAND:
            return Stage.DISPATCHER_COMMAND
        return Stage.DISPATCHER_ACTION

    @property
    def ward(self) -> Coord:
        return Coord(x=self.ward_x, y=self.ward_y)

    def with_log(self, *lines: str, limit: int = 200) -> "SessionState":
        """Return a copy with lines appended, keeping at most `limit` entries"""
        log = [*self.log, *lines]
        if len(log) > limit:
            log = log[len(log) - limit:]
        return self.model_copy(update={"log": log})
