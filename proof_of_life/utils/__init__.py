"""Utility modules for the Proof of Life client"""

from .logging import (
    log_chain_event,
    log_phase_transition,
    log_turn_event,
    setup_logging,
    setup_logging_from_settings,
)
from .polling import PollOutcome, PollStatus, poll_until
from .power import PowerMeter, format_power_meter, power_level

__all__ = [
    "setup_logging",
    "setup_logging_from_settings",
    "log_turn_event",
    "log_phase_transition",
    "log_chain_event",
    "PollOutcome",
    "PollStatus",
    "poll_until",
    "PowerMeter",
    "format_power_meter",
    "power_level",
]
