"""Session orchestration: reducer, controller and pipeline locks"""

from .exceptions import MissingSecret, SessionEnded, ValidationError
from .game_session import GameSession
from .locks import PipelineLock, commands_disabled
from .state_machine import PursuerTrace, Transition, new_session, reduce

__all__ = [
    "GameSession",
    "MissingSecret",
    "PipelineLock",
    "PursuerTrace",
    "SessionEnded",
    "Transition",
    "ValidationError",
    "commands_disabled",
    "new_session",
    "reduce",
]
