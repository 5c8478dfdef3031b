"""Configuration module for the Proof of Life client"""

from .settings import GameRules, Settings, get_settings

__all__ = [
    "GameRules",
    "Settings",
    "get_settings",
]
