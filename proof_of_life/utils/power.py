# ABOUTME: Battery power meter rendering for status log lines.
# ABOUTME: Converts a battery value into a fixed-width bar and a severity level.

from typing import Literal

from pydantic import BaseModel

PowerLevel = Literal["ok", "warn", "crit"]


class PowerMeter(BaseModel):
    """Rendered battery meter"""

    battery: int
    level: PowerLevel
    filled: int
    text: str

    model_config = {"frozen": True}


def power_level(battery: int) -> PowerLevel:
    if battery <= 20:
        return "crit"
    if battery <= 50:
        return "warn"
    return "ok"


def format_power_meter(battery: float, width: int = 10) -> PowerMeter:
    """Render e.g. 'POWER: [||||......] 40%' for a battery in 0..100"""
    clamped = max(0, min(100, int(battery)))
    filled = max(0, min(width, (clamped * width) // 100))
    bar = "|" * filled + "." * (width - filled)
    return PowerMeter(
        battery=clamped,
        level=power_level(clamped),
        filled=filled,
        text=f"POWER: [{bar}] {clamped}%",
    )
