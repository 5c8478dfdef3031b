"""Data models for the Proof of Life client"""

from .actions import (
    Action,
    ArmCommitment,
    Recharge,
    RequestPing,
    ResolveEvaderPhase,
    SetCommand,
    parse_action,
)
from .lobby import LobbyCode, LobbyResponse
from .secret import SEEN_WINDOW, SecretState
from .session import (
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

__all__ = [
    # Actions
    "Action",
    "ArmCommitment",
    "Recharge",
    "RequestPing",
    "ResolveEvaderPhase",
    "SetCommand",
    "parse_action",
    # Lobby
    "LobbyCode",
    "LobbyResponse",
    # Secret
    "SEEN_WINDOW",
    "SecretState",
    # Session
    "Beacon",
    "Coord",
    "Directive",
    "GameMode",
    "Outcome",
    "Role",
    "SessionState",
    "Stage",
    "TurnPhase",
    "TurnStep",
]
