"""Movement and visibility engine"""

from .directives import (
    MAX_HIDE_STREAK,
    WardMove,
    apply_directive,
    can_hide,
    is_directive_allowed,
    legal_directives,
)
from .movement import (
    HIDDEN_STEP_BUDGET,
    VISIBLE_STEP_BUDGET,
    PathValidation,
    PursuerTurn,
    auto_path,
    bfs_distance,
    next_step_toward,
    pick_any_pursuer_move,
    pop_out_of_hide_tile,
    prepare_pursuer_turn,
    prepare_pursuer_turn_from_remote,
    spawn_pursuer,
    step_budget,
    track_ward,
    validate_path,
)

__all__ = [
    "MAX_HIDE_STREAK",
    "WardMove",
    "apply_directive",
    "can_hide",
    "is_directive_allowed",
    "legal_directives",
    "HIDDEN_STEP_BUDGET",
    "VISIBLE_STEP_BUDGET",
    "PathValidation",
    "PursuerTurn",
    "auto_path",
    "bfs_distance",
    "next_step_toward",
    "pick_any_pursuer_move",
    "pop_out_of_hide_tile",
    "prepare_pursuer_turn",
    "prepare_pursuer_turn_from_remote",
    "spawn_pursuer",
    "step_budget",
    "track_ward",
    "validate_path",
]
